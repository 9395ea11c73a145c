"""
Render adapter for the editor session.

Draws the session's annotations over its image with OpenCV, following
the session through its change events.
"""

import logging
from typing import Callable, Optional, Sequence

import cv2
import numpy as np

from ..core.annotation import AnnotationEvent, EditorSession, EventType
from ..core.annotation.coordinates import canvas_to_view

logger = logging.getLogger(__name__)

POINT_COLOR = (255, 64, 64)
MARKER_COLOR = (160, 160, 160)
SPOT_COLOR = (64, 128, 255)
WAYPOINT_COLOR = (255, 165, 0)
ROUTE_COLOR = (255, 210, 0)
VERTEX_COLOR = (255, 255, 255)
OUTLINE_COLOR = (255, 255, 255)

REDRAW_EVENTS = (
    EventType.IMAGE_LOADED,
    EventType.POINTS_CHANGED,
    EventType.SPOTS_CHANGED,
    EventType.ROUTES_CHANGED,
    EventType.ROUTE_SELECTION_CHANGED,
    EventType.WAYPOINTS_CHANGED,
    EventType.AREAS_CHANGED,
    EventType.AREA_SELECTION_CHANGED,
    EventType.VERTICES_CHANGED,
    EventType.VIEWPORT_CHANGED,
)


class OverlayRenderer:
    """
    Adapter turning session snapshots into RGB images.

    Provides:
    - Redraw notifications on every change event
    - Viewport (zoom and pan) applied to the image
    - Markers that keep their on-screen size under zoom
    """

    def __init__(
        self,
        session: EditorSession,
        update_image_callback: Optional[Callable[[], None]] = None,
        cfg=None,
    ):
        """
        Initialize adapter.

        Args:
            session: Editor session to draw
            update_image_callback: Called whenever the drawing is stale
            cfg: ``render`` config section; the session's when None
        """
        self.session = session
        self.update_image_callback = update_image_callback
        self.cfg = cfg if cfg is not None else session.cfg.render
        self.redraw_count = 0

        self._setup_event_handlers()

    def _setup_event_handlers(self):
        for event_type in REDRAW_EVENTS:
            self.session.events.on(event_type, self._on_change)

    def _on_change(self, event: AnnotationEvent):
        self.redraw_count += 1
        if self.update_image_callback:
            self.update_image_callback()

    def render(self, image: Optional[np.ndarray] = None) -> Optional[np.ndarray]:
        """
        Draw the current snapshot.

        Args:
            image: Background to draw on; the session image when None

        Returns:
            RGB image of canvas size, or None without a background
        """
        if image is None:
            image = self.session.image
        if image is None:
            return None

        vis = self._canvas_background(image)
        data = self.session.snapshot()

        vis = self._draw_areas(vis, data["areas"], data["selected_area_index"])
        self._draw_route(vis, data["route_waypoints"])
        for spot in data["spots"]:
            self._draw_spot(vis, spot)
        for point in data["points"]:
            self._draw_point(vis, point)
        return vis

    def _view(self, x, y):
        vx, vy = canvas_to_view(x, y, self.session.viewport)
        return int(round(vx)), int(round(vy))

    def _canvas_background(self, image: np.ndarray) -> np.ndarray:
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
        elif image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_RGBA2RGB)
        image = np.ascontiguousarray(image, dtype=np.uint8)

        width, height = self.session.canvas_size or (image.shape[1], image.shape[0])
        if (image.shape[1], image.shape[0]) != (width, height):
            image = cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)

        viewport = self.session.viewport
        matrix = np.float32(
            [[viewport.scale, 0, viewport.offset_x], [0, viewport.scale, viewport.offset_y]]
        )
        return cv2.warpAffine(image, matrix, (width, height))

    def _draw_point(self, vis: np.ndarray, point):
        center = self._view(point.x, point.y)
        color = MARKER_COLOR if point.is_marker else POINT_COLOR
        cv2.circle(vis, center, self.cfg.point_radius, color, -1)
        cv2.circle(vis, center, self.cfg.point_radius + 1, OUTLINE_COLOR, 1)
        self._draw_label(vis, point.id, center, self.cfg.point_radius)

    def _draw_spot(self, vis: np.ndarray, spot):
        cx, cy = self._view(spot.x, spot.y)
        half = self.cfg.spot_size // 2
        cv2.rectangle(vis, (cx - half, cy - half), (cx + half, cy + half), SPOT_COLOR, -1)
        cv2.rectangle(vis, (cx - half, cy - half), (cx + half, cy + half), OUTLINE_COLOR, 1)
        self._draw_label(vis, spot.name, (cx, cy), half)

    def _draw_route(self, vis: np.ndarray, waypoints: Sequence):
        if not waypoints:
            return
        coords = np.array([self._view(wp.x, wp.y) for wp in waypoints], dtype=np.int32)
        if len(coords) > 1:
            cv2.polylines(vis, [coords.reshape(-1, 1, 2)], False, ROUTE_COLOR, 2)
        r = self.cfg.waypoint_radius
        for cx, cy in coords:
            diamond = np.array(
                [[cx, cy - r], [cx + r, cy], [cx, cy + r], [cx - r, cy]], dtype=np.int32
            )
            cv2.fillPoly(vis, [diamond], WAYPOINT_COLOR)

    def _draw_areas(self, vis: np.ndarray, areas: Sequence, selected_index: int) -> np.ndarray:
        if not areas:
            return vis
        overlay = vis.copy()
        outlines = []
        for i, area in enumerate(areas):
            if not area.vertices:
                continue
            color = area_color(i, len(areas), self.cfg.colormap)
            coords = np.array([self._view(v.x, v.y) for v in area.vertices], dtype=np.int32)
            if area.is_closed:
                cv2.fillPoly(overlay, [coords], color)
            outlines.append((coords, color, area.is_closed, i == selected_index))

        alpha = self.cfg.area_alpha
        vis = cv2.addWeighted(overlay, alpha, vis, 1 - alpha, 0)
        for coords, color, is_closed, selected in outlines:
            cv2.polylines(vis, [coords.reshape(-1, 1, 2)], is_closed, color, 2)
            if selected:
                for cx, cy in coords:
                    cv2.circle(vis, (int(cx), int(cy)), 4, VERTEX_COLOR, -1)
        return vis

    def _draw_label(self, vis: np.ndarray, text: str, center, offset: int):
        if not text:
            return
        origin = (center[0] + offset + 2, center[1] - offset - 2)
        cv2.putText(vis, text, origin, cv2.FONT_HERSHEY_SIMPLEX, 0.4, (0, 0, 0), 3, cv2.LINE_AA)
        cv2.putText(vis, text, origin, cv2.FONT_HERSHEY_SIMPLEX, 0.4, OUTLINE_COLOR, 1, cv2.LINE_AA)


def area_color(index: int, count: int, colormap: str = "tab20"):
    """RGB color of the ``index``-th of ``count`` areas from a matplotlib colormap."""
    import matplotlib.pyplot as plt

    cmap = plt.get_cmap(colormap)
    rgb = np.array(cmap(index / max(count, 1))[:3]) * 255
    return tuple(int(c) for c in rgb.astype(np.uint8))
