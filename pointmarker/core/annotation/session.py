"""
Editor session management.

Core logic for an interactive editing session over one image.
UI-agnostic - pointer input arrives as client coordinates plus a
:class:`CanvasRect`, and every visible change leaves as an event.
"""

import logging
from datetime import datetime, timezone
from gettext import gettext as _
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from ...utils.config import get_cfg
from .areas import AreaModel
from .coordinates import (
    CanvasRect,
    canvas_point_to_image,
    image_point_to_canvas,
    screen_to_canvas,
)
from .drag import DragController, DragResult
from .events import AnnotationEvent, EventEmitter, EventType
from .hit_testing import Hit, HitTester
from .routes import END, START, ConfirmCallback, RouteModel
from .state import Area, EditMode, EntityKind, Point, Position, Route, Spot, Viewport
from .stores import PointStore, SpotStore
from .validation import EndpointResolution, IssueKind, ValidationEngine, ValidationIssue

logger = logging.getLogger(__name__)

# Which entity kinds can be dragged in which mode
_DRAG_MODES = {
    EntityKind.POINT: EditMode.POINT,
    EntityKind.SPOT: EditMode.SPOT,
    EntityKind.WAYPOINT: EditMode.ROUTE,
    EntityKind.VERTEX: EditMode.AREA,
}


class EditorSession:
    """
    Owns the editing state of one image and routes pointer input.

    This class handles:
    - Mode and viewport
    - Point, spot, route and area collections
    - Hit testing and dragging
    - Label commits and endpoint resolution
    - Scheduling persistence after committed changes

    Collaborators (renderer, overlay widgets, feedback) listen to
    ``session.events`` instead of being called directly.
    """

    def __init__(
        self,
        cfg=None,
        events: Optional[EventEmitter] = None,
        persistence=None,
        confirm: Optional[ConfirmCallback] = None,
    ):
        """
        Initialize an editor session.

        Args:
            cfg: Config from :func:`get_cfg`; environment defaults when None
            events: Shared event emitter
            persistence: Optional :class:`PersistenceSync`
            confirm: Yes/no prompt used before clearing waypoints
        """
        self.cfg = cfg if cfg is not None else get_cfg()
        self.events = events if events is not None else EventEmitter()
        self.mode = EditMode.POINT
        self.viewport = Viewport.from_cfg(self.cfg.viewport)

        self.points = PointStore(self.events)
        self.spots = SpotStore(self.events)
        self.routes = RouteModel(self.events)
        self.areas = AreaModel(self.events)

        self.validation = ValidationEngine(self.points, self.spots, self.routes, self.events)
        self.hit_tester = HitTester.from_cfg(
            self.cfg.hit, self.points, self.spots, self.routes, self.areas
        )
        self.drag = DragController(self.cfg.drag.threshold)

        self.persistence = persistence
        self.confirm = confirm

        self.image: Optional[np.ndarray] = None
        self.image_path: Optional[str] = None
        self.image_size: Optional[Tuple[int, int]] = None
        self.canvas_size: Optional[Tuple[int, int]] = None
        self._suppress_click = False

    # --- Image and mode ---

    @property
    def has_image(self) -> bool:
        return self.image_size is not None

    def load_image(
        self,
        image: np.ndarray,
        image_path: Optional[str] = None,
        canvas_size: Optional[Tuple[int, int]] = None,
    ):
        """
        Load a new image, discarding every annotation.

        Args:
            image: Image as a (H, W) or (H, W, C) array
            image_path: Optional path of the image file
            canvas_size: (width, height) of the canvas the image is shown
                on; defaults to the image size
        """
        if not isinstance(image, np.ndarray) or image.ndim not in (2, 3):
            raise ValueError("Image must be a 2D or 3D numpy array")
        height, width = image.shape[:2]
        if width == 0 or height == 0:
            raise ValueError("Image must not be empty")

        self.image = image
        self.image_path = image_path
        self.image_size = (width, height)
        self.canvas_size = tuple(canvas_size) if canvas_size else (width, height)
        self.drag.cancel(self.points, self.spots, self.routes, self.areas)
        self._suppress_click = False

        self.points.clear()
        self.spots.clear()
        self.routes.clear()
        self.areas.clear()
        self.viewport.reset()

        self.events.emit(
            AnnotationEvent(
                EventType.IMAGE_LOADED,
                {
                    "image_shape": image.shape,
                    "path": image_path,
                    "canvas_size": self.canvas_size,
                },
            )
        )
        self._viewport_changed()

    def set_mode(self, mode) -> EditMode:
        """Switch the edit mode; accepts an :class:`EditMode` or its value."""
        try:
            mode = EditMode(mode)
        except ValueError:
            raise ValueError(f"Unknown edit mode: {mode!r}") from None
        if mode == self.mode:
            return mode
        self.drag.cancel(self.points, self.spots, self.routes, self.areas)
        self.mode = mode
        self.events.emit(AnnotationEvent(EventType.MODE_CHANGED, {"mode": mode}))
        return mode

    # --- Pointer input ---

    def to_canvas(self, client_x: float, client_y: float, rect: CanvasRect) -> Tuple[float, float]:
        return screen_to_canvas(client_x, client_y, rect, self.viewport)

    def find_at(self, x: float, y: float) -> Optional[Hit]:
        """Entity under a canvas position for the current mode."""
        return self.hit_tester.find_at(x, y, self.mode)

    def pointer_down(self, client_x: float, client_y: float, rect: CanvasRect) -> Optional[Hit]:
        """
        Arm a drag when the pointer goes down on a draggable entity.

        Only entities belonging to the current mode can be dragged.
        Waypoints additionally require both route endpoints.

        Returns:
            The hit under the pointer, or None
        """
        if not self.has_image:
            return None
        x, y = self.to_canvas(client_x, client_y, rect)
        hit = self.find_at(x, y)
        if hit is None or _DRAG_MODES.get(hit.kind) != self.mode:
            return hit
        if hit.kind == EntityKind.WAYPOINT and self.routes.editable_route() is None:
            return hit
        self.drag.start_drag(hit.kind, hit.index, x, y, hit.entity)
        return hit

    def pointer_move(self, client_x: float, client_y: float, rect: CanvasRect) -> bool:
        """Update an active drag; returns True if a position was written."""
        if not self.drag.is_dragging:
            return False
        x, y = self.to_canvas(client_x, client_y, rect)
        return self.drag.update_drag(x, y, self.points, self.spots, self.routes, self.areas)

    def pointer_up(
        self,
        client_x: Optional[float] = None,
        client_y: Optional[float] = None,
        rect: Optional[CanvasRect] = None,
    ) -> DragResult:
        """
        Finish an active drag, applying the release position if given.

        A drag that moved past the threshold swallows the click event
        that follows the release.
        """
        if rect is not None and client_x is not None and client_y is not None:
            self.pointer_move(client_x, client_y, rect)
        result = self.drag.end_drag(
            {
                EntityKind.POINT: self._point_dropped,
                EntityKind.SPOT: self._spot_dropped,
                EntityKind.WAYPOINT: self._waypoint_dropped,
                EntityKind.VERTEX: self._vertex_dropped,
            }
        )
        if not result.was_dragging:
            return result
        if result.has_moved:
            self._suppress_click = True
        self.events.emit(
            AnnotationEvent(
                EventType.DRAG_ENDED,
                {"kind": result.kind, "index": result.index, "has_moved": result.has_moved},
            )
        )
        return result

    def cancel_drag(self) -> bool:
        return self.drag.cancel(self.points, self.spots, self.routes, self.areas)

    def click(self, client_x: float, client_y: float, rect: CanvasRect) -> Optional[Any]:
        """
        Handle a click on the canvas.

        Returns:
            The created entity or waypoint/vertex, the hit entity, or None
        """
        if self._suppress_click:
            self._suppress_click = False
            return None
        if not self.has_image or self.drag.is_dragging:
            return None

        x, y = self.to_canvas(client_x, client_y, rect)
        hit = self.find_at(x, y)

        if self.mode == EditMode.ROUTE:
            if hit is not None and hit.kind in (EntityKind.POINT, EntityKind.SPOT):
                self.assign_endpoint_from(hit)
                return hit
            if hit is not None:
                return hit
            return self.routes.add_waypoint(x, y)

        if hit is not None:
            return hit

        if self.mode == EditMode.AREA:
            index = self.areas.find_label_at(
                x, y, self.viewport.scale, self.cfg.hit.area_label_radius
            )
            if index >= 0:
                self.areas.select(index)
                return self.areas.get(index)
            return self.areas.add_vertex(x, y)

        if self.mode == EditMode.SPOT:
            return self.spots.add(x, y)
        return self.points.add(x, y)

    def assign_endpoint_from(self, hit: Hit) -> Optional[str]:
        """
        Fill the selected route's next empty endpoint from a clicked entity.

        The start is filled first, then the end. Once both are set,
        clicking points and spots no longer changes them.

        Returns:
            The endpoint that was set (``"start"``/``"end"``), or None
        """
        route = self.routes.selected
        if route is None:
            self.events.emit(
                AnnotationEvent(EventType.NO_ROUTE_SELECTED, {"index": self.routes.selected_index})
            )
            return None
        label = (hit.entity.label or "").strip()
        if not label:
            self.validation.publish(
                "route_endpoints",
                [
                    ValidationIssue(
                        IssueKind.MISSING_NAME,
                        hit.kind,
                        hit.index,
                        _("This {kind} has no label").format(kind=hit.kind.value),
                        field=hit.entity.LABEL_FIELD,
                    )
                ],
            )
            return None
        if not route.start_ref:
            self.routes.set_start(label, self.confirm)
            return START
        if not route.end_ref:
            self.routes.set_end(label, self.confirm)
            return END
        return None

    def remove_waypoints_in_box(
        self,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        confirm: Optional[ConfirmCallback] = None,
    ) -> int:
        """
        Remove the selected route's waypoints inside a canvas-space box.

        Args:
            confirm: Asked before deleting; defaults to the session prompt

        Returns:
            Number of waypoints removed
        """
        found = self.routes.find_within_rectangle(x1, y1, x2, y2)
        if not found:
            return 0
        confirm = confirm if confirm is not None else self.confirm
        message = _("Delete {count} waypoints?").format(count=len(found))
        if confirm is not None and not confirm(message):
            return 0
        removed = self.routes.remove_waypoints([i for i, _wp in found])
        if removed:
            self._push_route(self.routes.selected_index)
        return removed

    # --- Labels and endpoints ---

    def edit_point_label(self, index: int, text: str) -> bool:
        return self.points.edit_label(index, text)

    def commit_point_label(self, index: int, text: str) -> bool:
        """
        Commit a point id, checking for duplicates and persisting it.

        Returns:
            True if the point still exists
        """
        return self._commit_label(self.points, index, text)

    def edit_spot_name(self, index: int, text: str) -> bool:
        return self.spots.edit_label(index, text)

    def commit_spot_name(self, index: int, text: str) -> bool:
        """Commit a spot name; a blank name deletes the spot."""
        return self._commit_label(self.spots, index, text)

    def _commit_label(self, store, index: int, text: str) -> bool:
        previous = (store.committed_label(index) or "").strip()
        exists = store.commit_label(index, text)
        self.validation.check_duplicate_labels(store.kind)
        if self.persistence is None:
            return exists

        if store.kind == EntityKind.POINT:
            push, delete = self.persistence.push_point, self.persistence.delete_point
        else:
            push, delete = self.persistence.push_spot, self.persistence.delete_spot
        current = store.get(index).label.strip() if exists else ""
        # The old remote record goes away on rename or clear, unless a
        # duplicate still holds that label
        remaining = [label.strip() for label in store.registered_labels()]
        if previous and previous != current and previous not in remaining:
            delete(previous)
        if exists:
            push(index)
        return exists

    def commit_route_endpoint(self, which: str, text: str) -> Optional[EndpointResolution]:
        return self.routes.commit_endpoint(which, text, self.validation, self.confirm)

    def remove_point(self, index: int) -> bool:
        label = self.points.committed_label(index)
        if not self.points.remove(index):
            return False
        if self.persistence is not None:
            self.persistence.delete_point(label)
        return True

    def remove_spot(self, index: int) -> bool:
        name = self.spots.committed_label(index)
        if not self.spots.remove(index):
            return False
        if self.persistence is not None:
            self.persistence.delete_spot(name)
        return True

    # --- Routes and areas ---

    def save_route(self, index: Optional[int] = None) -> List[ValidationIssue]:
        """
        Persist a route once it has both endpoints and a waypoint.

        Returns:
            The blocking issues; empty when the route was scheduled
        """
        if index is None:
            index = self.routes.selected_index
        route = self.routes.get(index)
        if route is None:
            issues = [
                ValidationIssue(
                    IssueKind.NO_SELECTION, EntityKind.ROUTE, index, _("No route is selected")
                )
            ]
        else:
            issues = self.validation.validate_route_for_save(route, index)
        self.validation.publish("route_save", issues)
        if issues:
            return issues
        self._push_route(index)
        self.routes.mark_saved(index)
        return issues

    def delete_route(self, index: int) -> bool:
        route = self.routes.get(index)
        if route is None or not self.routes.delete_route(index):
            return False
        if self.persistence is not None:
            self.persistence.delete_route(route.external_ref)
        return True

    def save_area(self, index: Optional[int] = None) -> List[ValidationIssue]:
        """Persist a named area with at least three vertices."""
        if index is None:
            index = self.areas.selected_index
        issues = self.validation.validate_area(self.areas.get(index), index)
        self.validation.publish("area_save", issues)
        if issues:
            return issues
        if self.persistence is not None:
            self.persistence.push_area(index)
        self.areas.mark_saved(index)
        return issues

    def delete_area(self, index: int) -> bool:
        area = self.areas.get(index)
        if area is None or not self.areas.delete_area(index):
            return False
        if self.persistence is not None:
            self.persistence.delete_area(area.external_ref)
        return True

    # --- Viewport ---

    def zoom(self, direction: int) -> bool:
        changed = self.viewport.zoom(direction)
        if changed:
            self._viewport_changed()
        return changed

    def zoom_in(self) -> bool:
        return self.zoom(1)

    def zoom_out(self) -> bool:
        return self.zoom(-1)

    def pan(self, dx: int = 0, dy: int = 0) -> bool:
        changed = self.viewport.pan(dx, dy)
        if changed:
            self._viewport_changed()
        return changed

    def reset_view(self):
        self.viewport.reset()
        self._viewport_changed()

    def _viewport_changed(self):
        self.events.emit(
            AnnotationEvent(EventType.VIEWPORT_CHANGED, self.viewport.to_dict())
        )

    # --- Drag completion ---

    def _point_dropped(self, index: int):
        self.points.refresh()
        if self.persistence is not None:
            self.persistence.push_point(index)

    def _spot_dropped(self, index: int):
        self.spots.refresh()
        if self.persistence is not None:
            self.persistence.push_spot(index)

    def _waypoint_dropped(self, index: int):
        self.routes.refresh_waypoints()
        self._push_route(self.routes.selected_index)

    def _vertex_dropped(self, index: int):
        self.areas.reorder_vertices(self.areas.selected_index)
        self.areas.refresh_vertices()
        if self.persistence is not None:
            self.persistence.push_area(self.areas.selected_index)

    def _push_route(self, index: int):
        if self.persistence is not None:
            self.persistence.push_route(index)

    # --- Views ---

    def snapshot(self) -> Dict[str, Any]:
        """
        Get data needed for rendering.

        Returns:
            Dictionary with the current collections, selections and viewport
        """
        route = self.routes.selected
        return {
            "points": list(self.points.items),
            "spots": list(self.spots.items),
            "routes": list(self.routes.routes),
            "selected_route_index": self.routes.selected_index,
            "route_waypoints": list(route.waypoints) if route is not None else [],
            "areas": list(self.areas.areas),
            "selected_area_index": self.areas.selected_index,
            "viewport": self.viewport.to_dict(),
            "mode": self.mode,
        }

    def validate(self) -> List:
        """Run every check on the whole document without publishing it."""
        issues = []
        issues.extend(self.validation.find_duplicate_labels(EntityKind.POINT)[0])
        issues.extend(self.validation.find_duplicate_labels(EntityKind.SPOT)[0])
        for i, route in enumerate(self.routes.routes):
            issues.extend(self.validation.validate_route_for_save(route, i))
        for i, area in enumerate(self.areas.areas):
            issues.extend(self.validation.validate_area(area, i))
        return issues

    # --- Image-space export ---

    def to_image(self, x: float, y: float) -> Tuple[int, int]:
        self._require_sizes()
        return canvas_point_to_image(x, y, self.canvas_size, self.image_size)

    def to_canvas_from_image(self, x: float, y: float) -> Tuple[int, int]:
        self._require_sizes()
        return image_point_to_canvas(x, y, self.canvas_size, self.image_size)

    def _require_sizes(self):
        if self.image_size is None or self.canvas_size is None:
            raise ValueError("No image loaded")

    def _image_position(self, position, index: int) -> Dict[str, int]:
        image_x, image_y = self.to_image(position.x, position.y)
        return {"index": index + 1, "imageX": image_x, "imageY": image_y}

    def to_dict(self) -> Dict[str, Any]:
        """
        Export the document in image space.

        Spots without a name are left out; export indices are 1-based.
        """
        self._require_sizes()
        points = []
        for i, point in enumerate(self.points.items):
            entry = self._image_position(point, i)
            entry.update({"id": point.id or "", "isMarker": point.is_marker})
            points.append(entry)

        spots = []
        for spot in self.spots.items:
            if not spot.name or not spot.name.strip():
                continue
            entry = self._image_position(spot, len(spots))
            entry["name"] = spot.name.strip()
            spots.append(entry)

        routes = [
            {
                "routeName": route.route_name,
                "startPoint": route.start_ref,
                "endPoint": route.end_ref,
                "waypoints": [
                    dict(self._image_position(wp, i), type="waypoint")
                    for i, wp in enumerate(route.waypoints)
                ],
            }
            for route in self.routes.routes
        ]
        areas = [
            {
                "areaName": area.area_name,
                "vertices": [self._image_position(v, i) for i, v in enumerate(area.vertices)],
            }
            for area in self.areas.areas
        ]

        return {
            "imageReference": self.image_path or "",
            "imageInfo": {"width": self.image_size[0], "height": self.image_size[1]},
            "points": points,
            "spots": spots,
            "routes": routes,
            "areas": areas,
            "exportedAt": datetime.now(timezone.utc).isoformat(),
        }

    def from_dict(self, data: Dict[str, Any], canvas_size: Optional[Tuple[int, int]] = None):
        """
        Replace the document with one exported by :meth:`to_dict`.

        Without a loaded image the dimensions come from ``imageInfo`` and
        the canvas defaults to the image size. With a loaded image of other
        dimensions, image coordinates are scaled to the loaded image.
        """
        info = data.get("imageInfo") or {}
        scale = (1.0, 1.0)
        if self.image_size is None:
            if not info.get("width") or not info.get("height"):
                raise ValueError("Document has no imageInfo and no image is loaded")
            self.image_size = (int(info["width"]), int(info["height"]))
            self.image_path = data.get("imageReference") or None
        elif info.get("width") and info.get("height"):
            # Coordinates were stored against another resolution of the image
            scale = (
                self.image_size[0] / float(info["width"]),
                self.image_size[1] / float(info["height"]),
            )
            if scale != (1.0, 1.0):
                logger.info(
                    f"Rescaling document from {info['width']}x{info['height']} "
                    f"to {self.image_size[0]}x{self.image_size[1]}"
                )
        if canvas_size is not None:
            self.canvas_size = tuple(canvas_size)
        elif self.canvas_size is None:
            self.canvas_size = self.image_size

        self.points.replace_all(
            Point(*self._canvas_xy(p, scale), id=p.get("id", ""), is_marker=p.get("isMarker", False))
            for p in data.get("points", [])
            if self._has_image_xy(p)
        )
        self.spots.replace_all(
            Spot(*self._canvas_xy(s, scale), name=s.get("name", ""))
            for s in data.get("spots", [])
            if self._has_image_xy(s)
        )
        self.routes.replace_all(
            Route(
                route_name=r.get("routeName", ""),
                start_ref=r.get("startPoint", ""),
                end_ref=r.get("endPoint", ""),
                waypoints=self._positions(r.get("waypoints", []), scale),
            )
            for r in data.get("routes", [])
        )
        self.areas.replace_all(
            Area(
                area_name=a.get("areaName", ""),
                vertices=self._positions(a.get("vertices", []), scale),
            )
            for a in data.get("areas", [])
        )
        logger.debug(
            f"Loaded {len(self.points)} points, {len(self.spots)} spots, "
            f"{len(self.routes)} routes, {len(self.areas)} areas"
        )

    @staticmethod
    def _has_image_xy(entry: Dict[str, Any]) -> bool:
        return isinstance(entry.get("imageX"), (int, float)) and isinstance(
            entry.get("imageY"), (int, float)
        )

    def _canvas_xy(self, entry: Dict[str, Any], scale=(1.0, 1.0)) -> Tuple[int, int]:
        return self.to_canvas_from_image(entry["imageX"] * scale[0], entry["imageY"] * scale[1])

    def _positions(self, entries, scale=(1.0, 1.0)) -> List[Position]:
        return [Position(*self._canvas_xy(e, scale)) for e in entries if self._has_image_xy(e)]
