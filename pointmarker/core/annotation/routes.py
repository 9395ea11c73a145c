"""
Route collection management.

Routes reference a start and an end anchor by free text and carry an
ordered list of waypoints. Waypoints can only be edited once both
anchors are set; that is the one hard precondition of the editor.
"""

import logging
from gettext import gettext as _
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Tuple

from .events import AnnotationEvent, EventEmitter, EventType
from .state import Position, Route
from .utils import find_nearest_within, indices_within_box

if TYPE_CHECKING:
    from .validation import EndpointResolution, ValidationEngine

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool]

START = "start"
END = "end"


class RouteModel:
    """
    Manages the route collection, the selected route and its waypoints.

    Endpoint and waypoint operations act on the selected route. An
    out-of-range ``selected_index`` means no route is selected.
    """

    def __init__(self, events: Optional[EventEmitter] = None):
        self.routes: List[Route] = []
        self.selected_index: int = -1
        self.events = events if events is not None else EventEmitter()

    # --- Collection ---

    def __len__(self) -> int:
        return len(self.routes)

    def get(self, index: int) -> Optional[Route]:
        if 0 <= index < len(self.routes):
            return self.routes[index]
        return None

    @property
    def selected(self) -> Optional[Route]:
        return self.get(self.selected_index)

    def add_route(self, route: Optional[Route] = None) -> int:
        """
        Append a route; unnamed routes get a default name.

        Returns:
            Index of the new route
        """
        if route is None:
            route = Route()
        if not route.route_name:
            route.route_name = _("Route {n}").format(n=len(self.routes) + 1)
        self.routes.append(route)
        self._emit(EventType.ROUTES_CHANGED, self._list_payload())
        return len(self.routes) - 1

    def delete_route(self, index: int) -> bool:
        """Delete a route, keeping the selection on the same route if possible."""
        if self.get(index) is None:
            logger.debug(f"Ignoring delete of route at invalid index {index}")
            return False
        del self.routes[index]
        if self.selected_index == index:
            self.selected_index = -1
            self._emit(EventType.ROUTE_SELECTION_CHANGED, {"index": -1, "route": None})
        elif self.selected_index > index:
            self.selected_index -= 1
            self._emit(
                EventType.ROUTE_SELECTION_CHANGED,
                {"index": self.selected_index, "route": self.selected},
            )
        self._emit(EventType.ROUTES_CHANGED, self._list_payload())
        return True

    def select(self, index: int) -> bool:
        """
        Select a route by index; -1 (or any out-of-range index) deselects.

        Selecting in an empty collection raises ``NO_ROUTE_AVAILABLE``
        instead of failing.

        Returns:
            True if a route is selected afterwards
        """
        if not self.routes and index != -1:
            self.selected_index = -1
            self._emit(EventType.NO_ROUTE_AVAILABLE, {"requested_index": index})
            return False
        if self.get(index) is None:
            index = -1
        self.selected_index = index
        self._emit(
            EventType.ROUTE_SELECTION_CHANGED, {"index": index, "route": self.selected}
        )
        return index != -1

    def clear(self):
        self.routes = []
        self.selected_index = -1
        self._emit(EventType.ROUTES_CHANGED, self._list_payload())
        self._emit(EventType.ROUTE_SELECTION_CHANGED, {"index": -1, "route": None})

    def replace_all(self, routes: Iterable[Route]):
        self.routes = list(routes)
        self.selected_index = -1
        self._emit(EventType.ROUTES_CHANGED, self._list_payload())

    # --- Endpoints ---

    def set_start(self, value: str, confirm: Optional[ConfirmCallback] = None) -> bool:
        """
        Set the selected route's start reference.

        Empty → start set; in any other state the reference is overwritten
        without changing state.
        """
        return self._set_ref(START, value, confirm)

    def set_end(self, value: str, confirm: Optional[ConfirmCallback] = None) -> bool:
        """
        Set the selected route's end reference.

        Allowed before the start is set, but waypoints stay locked until
        both references are present.
        """
        return self._set_ref(END, value, confirm)

    def _set_ref(self, which: str, value: str, confirm: Optional[ConfirmCallback]) -> bool:
        route = self._require_selected()
        if route is None:
            return False
        value = value or ""
        attr = "start_ref" if which == START else "end_ref"
        previous = getattr(route, attr)
        setattr(route, attr, value)

        if previous != value and route.waypoints:
            label = _("Start point") if which == START else _("End point")
            message = _(
                "{label} changed ({old} -> {new}). Clear the {count} waypoints on this route?"
            ).format(
                label=label,
                old=previous or _("(empty)"),
                new=value or _("(empty)"),
                count=len(route.waypoints),
            )
            if confirm is not None and confirm(message):
                self.clear_waypoints()

        self._emit(
            EventType.ROUTE_ENDPOINTS_CHANGED,
            {
                "index": self.selected_index,
                "start": route.start_ref,
                "end": route.end_ref,
                "state": route.state,
            },
        )
        self._check_modified()
        return previous != value

    def commit_endpoint(
        self,
        which: str,
        text: str,
        validator: "ValidationEngine",
        confirm: Optional[ConfirmCallback] = None,
    ) -> Optional["EndpointResolution"]:
        """
        Resolve endpoint text when its field loses focus.

        The resolved value is stored and both endpoints are re-validated,
        since changing one can invalidate the other.

        Returns:
            The resolution, or None when no route is selected
        """
        if which not in (START, END):
            raise ValueError(f"Unknown endpoint '{which}'")
        if self._require_selected() is None:
            return None
        resolution = validator.resolve_endpoint(text)
        self._set_ref(which, resolution.value, confirm)
        validator.validate_route_endpoints(self.selected_index)
        return resolution

    # --- Waypoints ---

    def editable_route(self) -> Optional[Route]:
        route = self._require_selected()
        if route is None:
            return None
        if not route.accepts_waypoints:
            self._emit(
                EventType.WAYPOINT_REJECTED,
                {
                    "index": self.selected_index,
                    "reason": _("Select the start and end points first"),
                },
            )
            return None
        return route

    def add_waypoint(self, x: float, y: float) -> Optional[Position]:
        """Append a waypoint to the selected route; None when rejected."""
        route = self.editable_route()
        if route is None:
            return None
        waypoint = Position(int(round(x)), int(round(y)))
        route.waypoints.append(waypoint)
        self._waypoints_changed(route)
        return waypoint

    def update_waypoint(self, index: int, x: float, y: float, skip_resync: bool = False) -> bool:
        route = self.editable_route()
        if route is None or not 0 <= index < len(route.waypoints):
            return False
        route.waypoints[index].x = int(round(x))
        route.waypoints[index].y = int(round(y))
        self._waypoints_changed(route, skip_resync=skip_resync)
        return True

    def remove_waypoint(self, index: int) -> bool:
        return self.remove_waypoints([index]) == 1

    def remove_waypoints(self, indices: Iterable[int]) -> int:
        """
        Remove several waypoints of the selected route.

        Returns:
            Number of waypoints removed; invalid indices are skipped
        """
        route = self.editable_route()
        if route is None:
            return 0
        removed = 0
        for index in sorted(set(indices), reverse=True):
            if 0 <= index < len(route.waypoints):
                del route.waypoints[index]
                removed += 1
        if removed:
            self._waypoints_changed(route)
        return removed

    def clear_waypoints(self) -> int:
        """Clear the selected route's waypoints; allowed in any state."""
        route = self.selected
        if route is None or not route.waypoints:
            return 0
        count = len(route.waypoints)
        route.waypoints = []
        self._waypoints_changed(route)
        return count

    def refresh_waypoints(self):
        """Request a full resync of the selected route's waypoints."""
        route = self.selected
        if route is not None:
            self._waypoints_changed(route)

    def find_nearest(self, x: float, y: float, max_dist: float = 10) -> Optional[Tuple[int, Position]]:
        """Closest waypoint of the selected route within ``max_dist``."""
        route = self.selected
        if route is None:
            return None
        index, _dist = find_nearest_within(route.waypoints, x, y, max_dist)
        if index < 0:
            return None
        return index, route.waypoints[index]

    def find_within_rectangle(
        self, x1: float, y1: float, x2: float, y2: float
    ) -> List[Tuple[int, Position]]:
        """Waypoints of the selected route inside the box; corner order is irrelevant."""
        route = self.selected
        if route is None:
            return []
        return [
            (i, route.waypoints[i])
            for i in indices_within_box(route.waypoints, x1, y1, x2, y2)
        ]

    # --- Modified state ---

    def _check_modified(self):
        route = self.selected
        if route is None or route.is_modified:
            return
        if route.accepts_waypoints and route.waypoints:
            route.is_modified = True
            self._emit(
                EventType.ROUTE_MODIFIED_CHANGED,
                {"index": self.selected_index, "is_modified": True},
            )

    def mark_saved(self, index: Optional[int] = None):
        """Reset the modified flag after the route was persisted."""
        if index is None:
            index = self.selected_index
        route = self.get(index)
        if route is None or not route.is_modified:
            return
        route.is_modified = False
        self._emit(
            EventType.ROUTE_MODIFIED_CHANGED, {"index": index, "is_modified": False}
        )

    def default_filename(self, image_name: str = "") -> str:
        route = self.selected or Route()
        base = image_name or "route"
        start = route.start_ref or "start"
        end = route.end_ref or "end"
        return f"{base}_route_{start}_to_{end}.json"

    # --- Helpers ---

    def _require_selected(self) -> Optional[Route]:
        route = self.selected
        if route is None:
            self._emit(EventType.NO_ROUTE_SELECTED, {"index": self.selected_index})
        return route

    def _waypoints_changed(self, route: Route, skip_resync: bool = False):
        self._emit(
            EventType.WAYPOINTS_CHANGED,
            {
                "index": self.selected_index,
                "waypoints": list(route.waypoints),
                "skip_resync": skip_resync,
            },
        )
        self._check_modified()

    def _list_payload(self):
        return {"routes": list(self.routes), "selected_index": self.selected_index}

    def _emit(self, event_type: EventType, data):
        self.events.emit(AnnotationEvent(event_type, data))
