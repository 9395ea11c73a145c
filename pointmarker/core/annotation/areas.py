"""
Area (polygon) collection management.

Mirrors the route collection: a list of areas with one optional
selection. Vertex operations act on the selected area.
"""

import logging
from gettext import gettext as _
from typing import Iterable, List, Optional, Tuple

from .events import AnnotationEvent, EventEmitter, EventType
from .state import Area, Position
from .utils import centroid, centroid_angle_order, find_first_within, distance

logger = logging.getLogger(__name__)


class AreaModel:
    """Manages areas, the selected area and its vertices."""

    def __init__(self, events: Optional[EventEmitter] = None):
        self.areas: List[Area] = []
        self.selected_index: int = -1
        self.events = events if events is not None else EventEmitter()

    # --- Collection ---

    def __len__(self) -> int:
        return len(self.areas)

    def get(self, index: int) -> Optional[Area]:
        if 0 <= index < len(self.areas):
            return self.areas[index]
        return None

    @property
    def selected(self) -> Optional[Area]:
        return self.get(self.selected_index)

    def add_area(self, area: Optional[Area] = None) -> int:
        if area is None:
            area = Area()
        if not area.area_name:
            area.area_name = _("Area {n}").format(n=len(self.areas) + 1)
        self.areas.append(area)
        self._emit(EventType.AREAS_CHANGED, self._list_payload())
        return len(self.areas) - 1

    def delete_area(self, index: int) -> bool:
        if self.get(index) is None:
            logger.debug(f"Ignoring delete of area at invalid index {index}")
            return False
        del self.areas[index]
        if self.selected_index == index:
            self.selected_index = -1
            self._emit(EventType.AREA_SELECTION_CHANGED, {"index": -1, "area": None})
        elif self.selected_index > index:
            self.selected_index -= 1
            self._emit(
                EventType.AREA_SELECTION_CHANGED,
                {"index": self.selected_index, "area": self.selected},
            )
        self._emit(EventType.AREAS_CHANGED, self._list_payload())
        return True

    def select(self, index: int) -> bool:
        """Select an area; -1 or any out-of-range index deselects."""
        if self.get(index) is None:
            index = -1
        self.selected_index = index
        self._emit(
            EventType.AREA_SELECTION_CHANGED, {"index": index, "area": self.selected}
        )
        return index != -1

    def set_area_name(self, name: str) -> bool:
        area = self._require_selected()
        if area is None:
            return False
        area.area_name = name
        self._emit(EventType.AREAS_CHANGED, self._list_payload())
        self._check_modified()
        return True

    def clear(self):
        self.areas = []
        self.selected_index = -1
        self._emit(EventType.AREAS_CHANGED, self._list_payload())
        self._emit(EventType.AREA_SELECTION_CHANGED, {"index": -1, "area": None})

    def replace_all(self, areas: Iterable[Area]):
        self.areas = list(areas)
        self.selected_index = -1
        self._emit(EventType.AREAS_CHANGED, self._list_payload())

    # --- Vertices ---

    def add_vertex(self, x: float, y: float) -> Optional[Position]:
        """
        Append a vertex to the selected area.

        Returns:
            The new vertex, or None (reported) when no area is selected
        """
        area = self._require_selected()
        if area is None:
            return None
        vertex = Position(int(round(x)), int(round(y)))
        area.vertices.append(vertex)
        self.reorder_vertices(self.selected_index)
        self._vertices_changed(area)
        return vertex

    def get_vertex(self, index: int) -> Optional[Position]:
        area = self.selected
        if area is None or not 0 <= index < len(area.vertices):
            return None
        return area.vertices[index]

    def update_vertex(self, index: int, x: float, y: float, skip_resync: bool = False) -> bool:
        area = self.selected
        if area is None or not 0 <= index < len(area.vertices):
            return False
        area.vertices[index].x = int(round(x))
        area.vertices[index].y = int(round(y))
        self._vertices_changed(area, skip_resync=skip_resync)
        return True

    def remove_vertex(self, index: int) -> bool:
        return self.remove_vertices([index]) == 1

    def remove_vertices(self, indices: Iterable[int]) -> int:
        area = self.selected
        if area is None:
            return 0
        removed = 0
        for index in sorted(set(indices), reverse=True):
            if 0 <= index < len(area.vertices):
                del area.vertices[index]
                removed += 1
        if removed:
            self.reorder_vertices(self.selected_index)
            self._vertices_changed(area)
        return removed

    def refresh_vertices(self):
        area = self.selected
        if area is not None:
            self._vertices_changed(area)

    def find_vertex_at(self, x: float, y: float, radius: float = 10) -> Optional[Tuple[int, Position]]:
        """First vertex of the selected area within ``radius``."""
        area = self.selected
        if area is None:
            return None
        index = find_first_within(area.vertices, x, y, radius)
        if index < 0:
            return None
        return index, area.vertices[index]

    def reorder_vertices(self, area_index: int) -> bool:
        """
        Sort an area's vertices by angle around their centroid, in place.

        Areas with fewer than three vertices keep their insertion order.

        Returns:
            True if the order changed
        """
        area = self.get(area_index)
        if area is None or not area.is_closed:
            return False
        order = centroid_angle_order(area.vertices)
        if order == list(range(len(area.vertices))):
            return False
        area.vertices[:] = [area.vertices[i] for i in order]
        return True

    def find_label_at(self, x: float, y: float, scale: float = 1.0, radius: float = 20.0) -> int:
        """
        Index of the area whose centroid label is under (x, y), or -1.

        ``radius`` is in screen pixels and is divided by the zoom scale.
        """
        threshold = radius / scale
        for i, area in enumerate(self.areas):
            center = centroid(area.vertices)
            if center is None:
                continue
            if distance(x, y, center[0], center[1]) <= threshold:
                return i
        return -1

    # --- Modified state ---

    def _check_modified(self):
        area = self.selected
        if area is None or area.is_modified:
            return
        if area.area_name.strip() and area.is_closed:
            area.is_modified = True
            self._emit(
                EventType.AREA_MODIFIED_CHANGED,
                {"index": self.selected_index, "is_modified": True},
            )

    def mark_saved(self, index: Optional[int] = None):
        if index is None:
            index = self.selected_index
        area = self.get(index)
        if area is None or not area.is_modified:
            return
        area.is_modified = False
        self._emit(
            EventType.AREA_MODIFIED_CHANGED, {"index": index, "is_modified": False}
        )

    # --- Helpers ---

    def _require_selected(self) -> Optional[Area]:
        area = self.selected
        if area is None:
            logger.debug("No area selected")
            self._emit(
                EventType.NO_AREA_SELECTED,
                {"reason": _("Select an area before adding vertices")},
            )
        return area

    def _vertices_changed(self, area: Area, skip_resync: bool = False):
        self._emit(
            EventType.VERTICES_CHANGED,
            {
                "index": self.selected_index,
                "vertices": list(area.vertices),
                "is_closed": area.is_closed,
                "skip_resync": skip_resync,
            },
        )
        self._check_modified()

    def _list_payload(self):
        return {"areas": list(self.areas), "selected_index": self.selected_index}

    def _emit(self, event_type: EventType, data):
        self.events.emit(AnnotationEvent(event_type, data))
