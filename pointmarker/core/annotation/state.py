"""
State for annotation editing sessions.

Contains data classes representing the entities placed on the reference
image and the zoom/pan viewport. All positions are canvas-space integer
pixels; conversion to image space happens at the export boundary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, List, Optional


class EditMode(str, Enum):
    """Current editing mode of the canvas."""

    POINT = "point"
    SPOT = "spot"
    ROUTE = "route"
    AREA = "area"


class EntityKind(str, Enum):
    """Kinds of entity that can be hit, dragged or validated."""

    POINT = "point"
    SPOT = "spot"
    WAYPOINT = "waypoint"
    VERTEX = "vertex"
    ROUTE = "route"
    AREA = "area"


class RouteState(str, Enum):
    """Endpoint state of a route; derived from its start/end references."""

    EMPTY = "empty"
    START_SET = "start_set"
    BOTH_SET = "both_set"


@dataclass
class Position:
    """A route waypoint or an area vertex."""

    x: int
    y: int

    def to_dict(self):
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict):
        return cls(x=int(round(data["x"])), y=int(round(data["y"])))


@dataclass
class Point:
    """A labeled point; ``id`` is expected to be unique among non-empty ids."""

    LABEL_FIELD: ClassVar[str] = "id"

    x: int
    y: int
    id: str = ""
    index: int = 0
    is_marker: bool = False

    @property
    def label(self) -> str:
        return self.id

    def to_dict(self):
        """Convert to dictionary for serialization."""
        return {
            "x": self.x,
            "y": self.y,
            "id": self.id,
            "index": self.index,
            "is_marker": self.is_marker,
        }

    @classmethod
    def from_dict(cls, data: dict):
        """Create from dictionary."""
        return cls(
            x=int(round(data["x"])),
            y=int(round(data["y"])),
            id=data.get("id", ""),
            index=data.get("index", 0),
            is_marker=data.get("is_marker", False),
        )


@dataclass
class Spot:
    """A named spot; same shape as a point, keyed by ``name``."""

    LABEL_FIELD: ClassVar[str] = "name"

    x: int
    y: int
    name: str = ""
    index: int = 0

    @property
    def label(self) -> str:
        return self.name

    def to_dict(self):
        return {"x": self.x, "y": self.y, "name": self.name, "index": self.index}

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            x=int(round(data["x"])),
            y=int(round(data["y"])),
            name=data.get("name", ""),
            index=data.get("index", 0),
        )


@dataclass
class Route:
    """
    A route between two referents with ordered waypoints.

    ``start_ref`` and ``end_ref`` are free text resolved lazily against
    point ids or spot names.
    """

    route_name: str = ""
    start_ref: str = ""
    end_ref: str = ""
    waypoints: List[Position] = field(default_factory=list)
    is_modified: bool = False
    external_ref: Optional[str] = None

    @property
    def state(self) -> RouteState:
        if self.start_ref and self.end_ref:
            return RouteState.BOTH_SET
        if self.start_ref:
            return RouteState.START_SET
        return RouteState.EMPTY

    @property
    def accepts_waypoints(self) -> bool:
        return self.state == RouteState.BOTH_SET

    @property
    def display_name(self) -> str:
        return self.route_name or f"{self.start_ref} ~ {self.end_ref}"

    def to_dict(self):
        return {
            "route_name": self.route_name,
            "start_ref": self.start_ref,
            "end_ref": self.end_ref,
            "waypoints": [w.to_dict() for w in self.waypoints],
            "is_modified": self.is_modified,
            "external_ref": self.external_ref,
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            route_name=data.get("route_name", ""),
            start_ref=data.get("start_ref", ""),
            end_ref=data.get("end_ref", ""),
            waypoints=[Position.from_dict(w) for w in data.get("waypoints", [])],
            is_modified=data.get("is_modified", False),
            external_ref=data.get("external_ref"),
        )


@dataclass
class Area:
    """A polygonal area; fewer than three vertices is an open polyline."""

    area_name: str = ""
    vertices: List[Position] = field(default_factory=list)
    is_modified: bool = False
    external_ref: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return len(self.vertices) >= 3

    def to_dict(self):
        return {
            "area_name": self.area_name,
            "vertices": [v.to_dict() for v in self.vertices],
            "is_modified": self.is_modified,
            "external_ref": self.external_ref,
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            area_name=data.get("area_name", ""),
            vertices=[Position.from_dict(v) for v in data.get("vertices", [])],
            is_modified=data.get("is_modified", False),
            external_ref=data.get("external_ref"),
        )


@dataclass
class Viewport:
    """
    Zoom scale and pan offset applied on top of canvas space.

    A canvas position (x, y) is displayed at
    ``(x * scale + offset_x, y * scale + offset_y)``.
    """

    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    min_scale: float = 1.0
    max_scale: float = 5.0
    zoom_step: float = 0.2
    pan_step: float = 50.0

    @classmethod
    def from_cfg(cls, cfg):
        """Create from the ``viewport`` section of the config."""
        return cls(
            min_scale=cfg.min_scale,
            max_scale=cfg.max_scale,
            zoom_step=cfg.zoom_step,
            pan_step=cfg.pan_step,
            scale=max(cfg.min_scale, min(1.0, cfg.max_scale)),
        )

    @property
    def can_zoom_in(self) -> bool:
        return self.scale < self.max_scale

    @property
    def can_zoom_out(self) -> bool:
        return self.scale > self.min_scale

    def zoom(self, direction: int) -> bool:
        """
        Step the scale in ``direction`` (+1 in, -1 out), clamped to bounds.

        Returns:
            True if the scale changed
        """
        new_scale = self.scale + self.zoom_step * direction
        # Round away floating drift from repeated steps
        new_scale = round(min(max(new_scale, self.min_scale), self.max_scale), 6)
        if new_scale == self.scale:
            return False
        self.scale = new_scale
        return True

    def pan(self, dx: int = 0, dy: int = 0) -> bool:
        """
        Shift the offset by one pan step per unit of ``dx``/``dy``.

        Returns:
            True if the offset changed
        """
        if dx == 0 and dy == 0:
            return False
        self.offset_x += self.pan_step * dx
        self.offset_y += self.pan_step * dy
        return True

    def reset(self):
        self.scale = max(self.min_scale, min(1.0, self.max_scale))
        self.offset_x = 0.0
        self.offset_y = 0.0

    def to_dict(self):
        return {
            "scale": self.scale,
            "offset_x": self.offset_x,
            "offset_y": self.offset_y,
        }
