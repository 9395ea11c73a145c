"""
Event system for the editor core.

Provides a decoupled way for the core to notify UI collaborators
(rendering, overlay widgets, validation feedback) without depending on
a specific UI framework.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of events that can occur while editing."""

    # Image events
    IMAGE_LOADED = "image_loaded"

    # Entity store events
    POINTS_CHANGED = "points_changed"
    POINT_COUNT_CHANGED = "point_count_changed"
    SPOTS_CHANGED = "spots_changed"
    SPOT_COUNT_CHANGED = "spot_count_changed"

    # Route events
    ROUTES_CHANGED = "routes_changed"
    ROUTE_SELECTION_CHANGED = "route_selection_changed"
    NO_ROUTE_AVAILABLE = "no_route_available"
    NO_ROUTE_SELECTED = "no_route_selected"
    ROUTE_ENDPOINTS_CHANGED = "route_endpoints_changed"
    WAYPOINTS_CHANGED = "waypoints_changed"
    WAYPOINT_REJECTED = "waypoint_rejected"
    ROUTE_MODIFIED_CHANGED = "route_modified_changed"

    # Area events
    AREAS_CHANGED = "areas_changed"
    AREA_SELECTION_CHANGED = "area_selection_changed"
    NO_AREA_SELECTED = "no_area_selected"
    VERTICES_CHANGED = "vertices_changed"
    AREA_MODIFIED_CHANGED = "area_modified_changed"

    # Validation events
    VALIDATION_FEEDBACK = "validation_feedback"
    DUPLICATE_DETECTED = "duplicate_detected"

    # Session events
    MODE_CHANGED = "mode_changed"
    VIEWPORT_CHANGED = "viewport_changed"
    DRAG_ENDED = "drag_ended"


@dataclass
class AnnotationEvent:
    """Event that occurs while editing."""

    event_type: EventType
    data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.data is None:
            self.data = {}


class EventEmitter:
    """
    Event emitter with one active listener per event type.

    Registering a listener for an event type replaces the previous one,
    so each notification has exactly one owner.
    """

    def __init__(self):
        self._listeners: Dict[EventType, Callable[[AnnotationEvent], None]] = {}

    def on(self, event_type: EventType, callback: Callable[[AnnotationEvent], None]):
        """Set the listener for an event type, replacing any previous one."""
        if event_type in self._listeners:
            logger.debug(f"Replacing listener for {event_type.value}")
        self._listeners[event_type] = callback

    def off(self, event_type: EventType):
        """Remove the listener for an event type."""
        self._listeners.pop(event_type, None)

    def has_listener(self, event_type: EventType) -> bool:
        return event_type in self._listeners

    def emit(self, event: AnnotationEvent):
        """Deliver an event to its listener, if any."""
        callback = self._listeners.get(event.event_type)
        if callback is None:
            return
        try:
            callback(event)
        except Exception:
            # Log but don't crash on listener errors
            logger.exception(f"Error in event listener for {event.event_type.value}")

    def clear(self):
        """Clear all event listeners."""
        self._listeners.clear()
