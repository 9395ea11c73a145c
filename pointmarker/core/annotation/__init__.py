"""
Core annotation module - UI-agnostic editing logic.

This module provides the entity stores, route and area models, hit
testing, dragging and validation behind the editor, usable from any UI
framework (web, desktop, CLI).
"""

from .session import EditorSession
from .events import AnnotationEvent, EventType, EventEmitter
from .state import Area, EditMode, EntityKind, Point, Position, Route, RouteState, Spot, Viewport
from .coordinates import CanvasRect
from .stores import EntityStore, PointStore, SpotStore
from .routes import RouteModel
from .areas import AreaModel
from .hit_testing import Hit, HitTester
from .drag import DragController, DragResult, DragState
from .validation import (
    DuplicateConflict,
    EndpointResolution,
    EndpointStatus,
    IssueKind,
    ValidationEngine,
    ValidationIssue,
)

__all__ = [
    "EditorSession",
    "AnnotationEvent",
    "EventType",
    "EventEmitter",
    "Area",
    "EditMode",
    "EntityKind",
    "Point",
    "Position",
    "Route",
    "RouteState",
    "Spot",
    "Viewport",
    "CanvasRect",
    "EntityStore",
    "PointStore",
    "SpotStore",
    "RouteModel",
    "AreaModel",
    "Hit",
    "HitTester",
    "DragController",
    "DragResult",
    "DragState",
    "DuplicateConflict",
    "EndpointResolution",
    "EndpointStatus",
    "IssueKind",
    "ValidationEngine",
    "ValidationIssue",
]
