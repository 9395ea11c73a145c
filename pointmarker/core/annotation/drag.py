"""
Generic drag-and-drop state machine.

IDLE -> ARMED (pointer down on a hit) -> DRAGGING (moved past the
threshold) -> IDLE (release). A press that is released without crossing
the threshold is a click, reported through ``has_moved``.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from .areas import AreaModel
from .routes import RouteModel
from .state import EntityKind
from .stores import PointStore, SpotStore
from .utils import distance

logger = logging.getLogger(__name__)

DRAGGABLE_KINDS = (
    EntityKind.POINT,
    EntityKind.SPOT,
    EntityKind.WAYPOINT,
    EntityKind.VERTEX,
)


class DragState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    DRAGGING = "dragging"


@dataclass
class DragResult:
    """Summary of a finished drag."""

    was_dragging: bool
    has_moved: bool = False
    kind: Optional[EntityKind] = None
    index: int = -1


class DragController:
    """
    Relocates whichever entity was hit, on every pointer move.

    Positions are written through the owning store or model; the
    controller itself never touches entity lists.
    """

    def __init__(self, threshold: float = 3.0):
        self.threshold = threshold
        self._reset()

    def _reset(self):
        self.state = DragState.IDLE
        self.kind: Optional[EntityKind] = None
        self.index = -1
        self.offset_x = 0.0
        self.offset_y = 0.0
        self.start_pointer_x = 0.0
        self.start_pointer_y = 0.0
        self.origin_x = 0
        self.origin_y = 0
        self.has_moved = False

    @property
    def is_dragging(self) -> bool:
        """True while a drag is armed or in progress."""
        return self.state != DragState.IDLE

    @property
    def dragged(self) -> Optional[Dict]:
        if not self.is_dragging:
            return None
        return {"kind": self.kind, "index": self.index}

    def start_drag(self, kind: EntityKind, index: int, px: float, py: float, entity) -> None:
        """
        Arm a drag of ``entity``.

        The grab offset keeps the pointer fixed relative to the entity
        instead of snapping the entity's origin to the pointer.
        """
        if kind not in DRAGGABLE_KINDS:
            raise ValueError(f"Entities of kind {kind} cannot be dragged")
        self.state = DragState.ARMED
        self.kind = kind
        self.index = index
        self.offset_x = px - entity.x
        self.offset_y = py - entity.y
        self.start_pointer_x = px
        self.start_pointer_y = py
        self.origin_x = entity.x
        self.origin_y = entity.y
        self.has_moved = False

    def update_drag(
        self,
        px: float,
        py: float,
        points: Optional[PointStore] = None,
        spots: Optional[SpotStore] = None,
        routes: Optional[RouteModel] = None,
        areas: Optional[AreaModel] = None,
    ) -> bool:
        """
        Move the dragged entity to follow the pointer.

        Returns:
            True if a position was written; False when idle or when the
            index no longer exists (entity deleted mid-drag)
        """
        if not self.is_dragging:
            return False

        if not self.has_moved:
            moved = distance(px, py, self.start_pointer_x, self.start_pointer_y)
            if moved > self.threshold:
                self.has_moved = True
                self.state = DragState.DRAGGING

        return self._write(px - self.offset_x, py - self.offset_y, points, spots, routes, areas)

    def _write(self, x, y, points, spots, routes, areas) -> bool:
        if self.kind == EntityKind.POINT and points is not None:
            return points.move(self.index, x, y)
        if self.kind == EntityKind.SPOT and spots is not None:
            return spots.move(self.index, x, y)
        if self.kind == EntityKind.WAYPOINT and routes is not None:
            return routes.update_waypoint(self.index, x, y, skip_resync=True)
        if self.kind == EntityKind.VERTEX and areas is not None:
            return areas.update_vertex(self.index, x, y, skip_resync=True)
        return False

    def end_drag(
        self, callbacks: Optional[Dict[EntityKind, Callable[[int], None]]] = None
    ) -> DragResult:
        """
        Finish the drag and run the kind's completion callback.

        The callback receives the entity index. State is reset
        unconditionally, even for drags that never moved.
        """
        if not self.is_dragging:
            return DragResult(was_dragging=False)

        result = DragResult(
            was_dragging=True,
            has_moved=self.has_moved,
            kind=self.kind,
            index=self.index,
        )
        try:
            callback = (callbacks or {}).get(self.kind)
            if callback is not None:
                callback(self.index)
        finally:
            self._reset()
        return result

    def cancel(
        self,
        points: Optional[PointStore] = None,
        spots: Optional[SpotStore] = None,
        routes: Optional[RouteModel] = None,
        areas: Optional[AreaModel] = None,
    ) -> bool:
        """
        Abort the drag, putting the entity back where it was picked up.

        No completion callback runs.

        Returns:
            True if a drag was cancelled
        """
        if not self.is_dragging:
            return False
        self._write(self.origin_x, self.origin_y, points, spots, routes, areas)
        logger.debug(f"Cancelled drag of {self.kind.value} {self.index}")
        self._reset()
        return True
