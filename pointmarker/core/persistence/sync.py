"""
Keeps a persistence backend in step with an editor session.

Every push converts canvas coordinates to image space and hands a
coroutine to the :class:`PersistenceScheduler`; the session never waits
for the result. Entities without a label are not persisted.
"""

import asyncio
import concurrent.futures
import copy
import inspect
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Hashable, Optional

from ..annotation.state import EntityKind
from ..annotation.validation import DuplicateConflict
from .protocol import AREA, POINT, ROUTE, SPOT, PersistenceBackend
from .scheduler import Pending, PersistenceScheduler

if TYPE_CHECKING:
    from ..annotation.session import EditorSession

logger = logging.getLogger(__name__)


class ConflictResolution(str, Enum):
    """Answer to a remote record that already uses the same key."""

    UPDATE = "update"  # overwrite the remote record
    RENAME = "rename"  # store as a new record; the entity was renamed locally
    KEEP = "keep"  # keep the remote record untouched and link to it
    CANCEL = "cancel"  # do nothing


ConflictHandler = Callable[[DuplicateConflict], Any]


def route_key(start_ref: str, end_ref: str) -> str:
    return f"{start_ref}->{end_ref}"


class PersistenceSync:
    """
    Pushes committed changes of a session to a :class:`PersistenceBackend`.

    Points and spots are keyed by their label and upserted. Routes and
    areas are keyed by ``external_ref`` once linked; before that a remote
    record with the same natural key is a duplicate and goes to the
    conflict handler, which defaults to :attr:`ConflictResolution.UPDATE`.
    """

    def __init__(
        self,
        session: "EditorSession",
        backend: PersistenceBackend,
        scheduler: Optional[PersistenceScheduler] = None,
        conflict_handler: Optional[ConflictHandler] = None,
    ):
        if not isinstance(backend, PersistenceBackend):
            raise ValueError(f"{type(backend).__name__} is not a PersistenceBackend")
        self.session = session
        self.backend = backend
        self.scheduler = scheduler if scheduler is not None else PersistenceScheduler()
        self.conflict_handler = conflict_handler
        self._chains: Dict[Hashable, Pending] = {}

    # --- Payloads ---

    def _image_xy(self, position) -> Dict[str, int]:
        x, y = self.session.to_image(position.x, position.y)
        return {"x": x, "y": y}

    def point_payload(self, point) -> Dict[str, Any]:
        return dict(
            self._image_xy(point), id=point.id, index=point.index, isMarker=point.is_marker
        )

    def spot_payload(self, spot) -> Dict[str, Any]:
        return dict(self._image_xy(spot), name=spot.name.strip(), index=spot.index)

    def route_payload(self, route) -> Dict[str, Any]:
        waypoints = [self._image_xy(wp) for wp in route.waypoints]
        return {
            "routeName": route.route_name,
            "startPoint": route.start_ref,
            "endPoint": route.end_ref,
            "waypoints": waypoints,
            "waypointCount": len(waypoints),
        }

    def area_payload(self, area) -> Dict[str, Any]:
        return {
            "areaName": area.area_name,
            "vertices": [self._image_xy(v) for v in area.vertices],
        }

    # --- Per-entity ordering ---

    def _chain(self, key, coro, description: str) -> Pending:
        """Schedule ``coro`` after the write still pending for ``key``."""
        previous = self._chains.get(key)
        pending = self.scheduler.schedule(self._after(previous, coro), description)
        self._chains[key] = pending

        def release(done):
            if self._chains.get(key) is done:
                del self._chains[key]

        pending.add_done_callback(release)
        return pending

    @staticmethod
    async def _after(previous: Optional[Pending], coro: Awaitable):
        if previous is not None and not previous.done():
            if isinstance(previous, concurrent.futures.Future):
                await asyncio.wrap_future(previous)
            elif previous.get_loop() is asyncio.get_running_loop():
                await previous
        return await coro

    # --- Points and spots ---

    def push_point(self, index: int) -> Optional[Pending]:
        point = self.session.points.get(index)
        if point is None or not point.id.strip() or not self.session.has_image:
            return None
        return self._chain(
            (POINT, point.id),
            self._upsert(POINT, point.id, self.point_payload(point)),
            f"save of point {point.id}",
        )

    def push_spot(self, index: int) -> Optional[Pending]:
        spot = self.session.spots.get(index)
        if spot is None or not spot.name.strip() or not self.session.has_image:
            return None
        name = spot.name.strip()
        return self._chain(
            (SPOT, name), self._upsert(SPOT, name, self.spot_payload(spot)), f"save of spot {name}"
        )

    def delete_point(self, label: str) -> Optional[Pending]:
        if not label or not label.strip():
            return None
        return self._chain(
            (POINT, label), self._delete_by_key(POINT, label), f"delete of point {label}"
        )

    def delete_spot(self, name: str) -> Optional[Pending]:
        if not name or not name.strip():
            return None
        name = name.strip()
        return self._chain(
            (SPOT, name), self._delete_by_key(SPOT, name), f"delete of spot {name}"
        )

    async def _upsert(self, kind: str, key: str, data: Dict[str, Any]):
        existing = await self.backend.find_by_key(kind, key)
        if existing is not None:
            await self.backend.update(kind, existing["ref"], data)
            return existing["ref"]
        return await self.backend.add(kind, data)

    async def _delete_by_key(self, kind: str, key: str):
        existing = await self.backend.find_by_key(kind, key)
        if existing is None:
            logger.debug(f"No remote {kind} '{key}' to delete")
            return None
        await self.backend.delete(kind, existing["ref"])
        return existing["ref"]

    # --- Routes and areas ---

    def push_route(self, index: int) -> Optional[Pending]:
        route = self.session.routes.get(index)
        if route is None or not self.session.has_image:
            return None
        return self._chain(
            (ROUTE, id(route)),
            self._push_linked(
                ROUTE,
                EntityKind.ROUTE,
                route,
                route_key(route.start_ref, route.end_ref),
                route.display_name,
                self.route_payload(route),
            ),
            f"save of route {route.display_name}",
        )

    def push_area(self, index: int) -> Optional[Pending]:
        area = self.session.areas.get(index)
        if area is None or not area.area_name.strip() or not self.session.has_image:
            return None
        name = area.area_name.strip()
        return self._chain(
            (AREA, id(area)),
            self._push_linked(AREA, EntityKind.AREA, area, name, name, self.area_payload(area)),
            f"save of area {name}",
        )

    def delete_route(self, external_ref: Optional[str]) -> Optional[Pending]:
        if not external_ref:
            return None
        return self.scheduler.schedule(
            self.backend.delete(ROUTE, external_ref), f"delete of route {external_ref}"
        )

    def delete_area(self, external_ref: Optional[str]) -> Optional[Pending]:
        if not external_ref:
            return None
        return self.scheduler.schedule(
            self.backend.delete(AREA, external_ref), f"delete of area {external_ref}"
        )

    async def _push_linked(self, kind, entity_kind, entity, key, label, data):
        if entity.external_ref:
            await self.backend.update(kind, entity.external_ref, data)
            return entity.external_ref

        existing = await self.backend.find_by_key(kind, key)
        if existing is None:
            entity.external_ref = await self.backend.add(kind, data)
            return entity.external_ref

        resolution = await self._resolve(
            DuplicateConflict(entity_kind, label, existing=existing, attempted=copy.deepcopy(data))
        )
        logger.debug(f"Remote {kind} '{key}' already exists, resolved as {resolution.value}")
        if resolution == ConflictResolution.UPDATE:
            entity.external_ref = existing["ref"]
            await self.backend.update(kind, entity.external_ref, data)
        elif resolution == ConflictResolution.KEEP:
            entity.external_ref = existing["ref"]
        elif resolution == ConflictResolution.RENAME:
            entity.external_ref = await self.backend.add(kind, data)
        return entity.external_ref


    async def _resolve(self, conflict: DuplicateConflict) -> ConflictResolution:
        if self.conflict_handler is None:
            return ConflictResolution.UPDATE
        answer = self.conflict_handler(conflict)
        if inspect.isawaitable(answer):
            answer = await answer
        return ConflictResolution(answer)

    # --- Bulk ---

    def save_all(self) -> int:
        """
        Push every labeled point and spot, every route and named area.

        Returns:
            Number of writes scheduled
        """
        scheduled = []
        for i in range(len(self.session.points)):
            scheduled.append(self.push_point(i))
        for i in range(len(self.session.spots)):
            scheduled.append(self.push_spot(i))
        for i in range(len(self.session.routes)):
            scheduled.append(self.push_route(i))
        for i in range(len(self.session.areas)):
            scheduled.append(self.push_area(i))
        return len([s for s in scheduled if s is not None])
