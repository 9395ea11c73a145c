"""
Test fixtures and utilities for pointmarker tests.

Provides reusable fixtures for sessions, stores, images and a fake
persistence backend.
"""

import asyncio
import itertools
from typing import Any, Dict, Optional

import numpy as np
import pytest
from unittest.mock import Mock

from pointmarker.core.annotation import (
    AreaModel,
    CanvasRect,
    EditorSession,
    EventEmitter,
    PointStore,
    RouteModel,
    SpotStore,
    ValidationEngine,
)
from pointmarker.utils.config import get_default_cfg


@pytest.fixture
def cfg():
    """Default config, independent of the test environment."""
    return get_default_cfg()


@pytest.fixture
def events():
    return EventEmitter()


@pytest.fixture
def points(events):
    return PointStore(events)


@pytest.fixture
def spots(events):
    return SpotStore(events)


@pytest.fixture
def routes(events):
    return RouteModel(events)


@pytest.fixture
def areas(events):
    return AreaModel(events)


@pytest.fixture
def validation(points, spots, routes, events):
    return ValidationEngine(points, spots, routes, events)


@pytest.fixture
def test_image():
    """Create a test RGB image."""
    return np.random.randint(0, 255, (100, 200, 3), dtype=np.uint8)


@pytest.fixture
def rect():
    """Unscaled 200x100 canvas at the page origin."""
    return CanvasRect.unscaled(200, 100)


@pytest.fixture
def session(cfg, test_image):
    """Session with a 200x100 image on a canvas of the same size."""
    session = EditorSession(cfg=cfg)
    session.load_image(test_image, "test.png")
    return session


@pytest.fixture
def confirm_yes():
    return Mock(return_value=True)


@pytest.fixture
def confirm_no():
    return Mock(return_value=False)


@pytest.fixture
def record_events():
    """Attach a recording listener to each event type; returns the record list."""

    def record(emitter: EventEmitter, *event_types):
        received = []
        for event_type in event_types:
            emitter.on(event_type, received.append)
        return received

    return record


class FakeBackend:
    """In-memory PersistenceBackend keyed by kind."""

    def __init__(self):
        self.records: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.calls = []
        self._ids = itertools.count(1)
        self.fail = False
        # Seconds each lookup and insert yields to the loop
        self.latency = 0

    @staticmethod
    def key_of(kind: str, data: Dict[str, Any]) -> str:
        if kind == "point":
            return data["id"]
        if kind == "spot":
            return data["name"]
        if kind == "route":
            return f"{data['startPoint']}->{data['endPoint']}"
        return data["areaName"]

    async def find_by_key(self, kind: str, key: str) -> Optional[Dict[str, Any]]:
        self.calls.append(("find_by_key", kind, key))
        await asyncio.sleep(self.latency)
        if self.fail:
            raise ConnectionError("backend offline")
        for ref, data in self.records.get(kind, {}).items():
            if self.key_of(kind, data) == key:
                return dict(data, ref=ref)
        return None

    async def add(self, kind: str, data: Dict[str, Any]) -> str:
        self.calls.append(("add", kind, data))
        await asyncio.sleep(self.latency)
        ref = f"{kind}-{next(self._ids)}"
        self.records.setdefault(kind, {})[ref] = dict(data)
        return ref

    async def update(self, kind: str, ref: str, data: Dict[str, Any]) -> None:
        self.calls.append(("update", kind, ref, data))
        self.records.setdefault(kind, {})[ref] = dict(data)

    async def delete(self, kind: str, ref: str) -> None:
        self.calls.append(("delete", kind, ref))
        self.records.get(kind, {}).pop(ref, None)


@pytest.fixture
def backend():
    return FakeBackend()
