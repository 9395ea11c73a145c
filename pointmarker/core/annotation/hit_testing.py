"""
Mode-aware hit testing on canvas-space coordinates.
"""

from dataclasses import dataclass
from typing import Any, Optional

from .areas import AreaModel
from .routes import RouteModel
from .state import EditMode, EntityKind
from .stores import PointStore, SpotStore


@dataclass
class Hit:
    """The single entity found under the pointer."""

    kind: EntityKind
    index: int
    entity: Any


class HitTester:
    """
    Finds the entity under a canvas position.

    The selected route's waypoints (route mode) or the selected area's
    vertices (area mode) are tested first, then spots before points,
    since spots render larger and should win overlaps. Radii are canvas
    units and do not follow the zoom.
    """

    def __init__(
        self,
        points: PointStore,
        spots: SpotStore,
        routes: Optional[RouteModel] = None,
        areas: Optional[AreaModel] = None,
        spot_radius: float = 10.0,
        point_radius: float = 8.0,
        waypoint_radius: float = 10.0,
        vertex_radius: float = 10.0,
    ):
        self.points = points
        self.spots = spots
        self.routes = routes
        self.areas = areas
        self.spot_radius = spot_radius
        self.point_radius = point_radius
        self.waypoint_radius = waypoint_radius
        self.vertex_radius = vertex_radius

    @classmethod
    def from_cfg(cls, cfg, points, spots, routes=None, areas=None):
        """Create with radii from the ``hit`` section of the config."""
        return cls(
            points,
            spots,
            routes,
            areas,
            spot_radius=cfg.spot_radius,
            point_radius=cfg.point_radius,
            waypoint_radius=cfg.waypoint_radius,
            vertex_radius=cfg.vertex_radius,
        )

    def find_at(
        self,
        x: float,
        y: float,
        mode: Optional[EditMode] = None,
        radius: Optional[float] = None,
    ) -> Optional[Hit]:
        """
        Return the first hit in priority order, or None.

        Args:
            x: Canvas X coordinate
            y: Canvas Y coordinate
            mode: Current edit mode
            radius: Waypoint/vertex radius; defaults to the configured one
        """
        if mode == EditMode.ROUTE and self.routes is not None:
            found = self.routes.find_nearest(
                x, y, self.waypoint_radius if radius is None else radius
            )
            if found is not None:
                return Hit(EntityKind.WAYPOINT, found[0], found[1])

        if mode == EditMode.AREA and self.areas is not None:
            found = self.areas.find_vertex_at(
                x, y, self.vertex_radius if radius is None else radius
            )
            if found is not None:
                return Hit(EntityKind.VERTEX, found[0], found[1])

        index = self.spots.find_index_at(x, y, self.spot_radius)
        if index >= 0:
            return Hit(EntityKind.SPOT, index, self.spots.items[index])

        index = self.points.find_index_at(x, y, self.point_radius)
        if index >= 0:
            return Hit(EntityKind.POINT, index, self.points.items[index])

        return None
