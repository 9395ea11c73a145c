"""
Tests for EditorSession.

These tests drive the session the way a UI would: client coordinates
plus a canvas rect, without any rendering.
"""

import numpy as np
import pytest
from unittest.mock import Mock

from pointmarker.core.annotation import (
    Area,
    EditMode,
    EditorSession,
    EntityKind,
    EventType,
    IssueKind,
    Point,
    Position,
    Route,
    Spot,
)


@pytest.fixture
def route_session(session):
    """Session in route mode with a labeled point, a spot and a selected route."""
    session.points.add(20, 20, "A-01")
    session.spots.add(100, 50, "Gate")
    session.set_mode(EditMode.ROUTE)
    session.routes.add_route()
    session.routes.select(0)
    return session


@pytest.fixture
def area_session(session, rect):
    """Session in area mode with a selected square area."""
    session.set_mode("area")
    session.areas.add_area(Area("Hall"))
    session.areas.select(0)
    for x, y in [(20, 20), (80, 20), (80, 80), (20, 80)]:
        session.click(x, y, rect)
    return session


class TestImageAndMode:
    def test_load_image_resets_state(self, session, test_image):
        session.points.add(5, 5, "A-01")
        session.zoom_in()
        session.load_image(test_image, "other.png", canvas_size=(100, 50))
        assert len(session.points) == 0
        assert session.viewport.scale == 1.0
        assert session.image_size == (200, 100)
        assert session.canvas_size == (100, 50)

    def test_load_image_rejects_bad_input(self, session):
        with pytest.raises(ValueError):
            session.load_image(np.zeros(5))

    def test_set_mode(self, session, record_events):
        received = record_events(session.events, EventType.MODE_CHANGED)
        assert session.set_mode("spot") == EditMode.SPOT
        assert received[-1].data["mode"] == EditMode.SPOT
        with pytest.raises(ValueError):
            session.set_mode("polygon")

    def test_no_image_no_input(self, cfg, rect):
        session = EditorSession(cfg=cfg)
        assert session.click(10, 10, rect) is None
        assert session.pointer_down(10, 10, rect) is None


class TestPointerFlow:
    """Clicks create entities, drags move them."""

    def test_click_creates_point(self, session, rect):
        point = session.click(50, 40, rect)
        assert isinstance(point, Point)
        assert (point.x, point.y) == (50, 40)

    def test_click_on_existing_entity_does_not_create(self, session, rect):
        session.click(50, 40, rect)
        hit = session.click(52, 41, rect)
        assert hit.kind == EntityKind.POINT
        assert len(session.points) == 1

    def test_spot_mode_creates_spot(self, session, rect):
        session.set_mode(EditMode.SPOT)
        session.click(30, 30, rect)
        assert len(session.spots) == 1
        assert len(session.points) == 0

    def test_click_under_zoom(self, session, rect):
        session.zoom_in()
        point = session.click(120, 60, rect)
        assert (point.x, point.y) == (100, 50)

    def test_moved_drag_suppresses_next_click(self, session, rect):
        session.points.add(50, 50, "A-01")
        hit = session.pointer_down(50, 50, rect)
        assert hit.kind == EntityKind.POINT
        session.pointer_move(60, 55, rect)
        result = session.pointer_up()
        assert result.has_moved
        assert (session.points.items[0].x, session.points.items[0].y) == (60, 55)

        assert session.click(60, 55, rect) is None
        assert len(session.points) == 1
        session.click(150, 80, rect)
        assert len(session.points) == 2

    def test_unmoved_drag_is_a_click(self, session, rect):
        session.points.add(50, 50, "A-01")
        session.pointer_down(50, 50, rect)
        result = session.pointer_up(51, 50, rect)
        assert result.was_dragging
        assert not result.has_moved
        assert session.click(51, 50, rect).kind == EntityKind.POINT

    def test_drag_requires_matching_mode(self, session, rect):
        session.points.add(50, 50, "A-01")
        session.set_mode(EditMode.SPOT)
        session.pointer_down(50, 50, rect)
        assert not session.drag.is_dragging

    def test_drag_end_pushes_to_persistence(self, session, rect):
        session.persistence = Mock()
        session.spots.add(40, 40, "Gate")
        session.set_mode(EditMode.SPOT)
        session.pointer_down(40, 40, rect)
        session.pointer_move(60, 60, rect)
        session.pointer_up()
        session.persistence.push_spot.assert_called_once_with(0)

    def test_drag_ended_event(self, session, rect, record_events):
        received = record_events(session.events, EventType.DRAG_ENDED)
        session.points.add(50, 50, "A-01")
        session.pointer_down(50, 50, rect)
        session.pointer_up()
        assert received[0].data == {"kind": EntityKind.POINT, "index": 0, "has_moved": False}

    def test_cancel_drag(self, session, rect):
        session.points.add(50, 50, "A-01")
        session.pointer_down(50, 50, rect)
        session.pointer_move(90, 90, rect)
        assert session.cancel_drag()
        assert (session.points.items[0].x, session.points.items[0].y) == (50, 50)


class TestRouteMode:
    """Endpoint filling and waypoint editing through clicks."""

    def test_clicks_fill_start_then_end(self, route_session, rect):
        route_session.click(20, 20, rect)
        assert route_session.routes.selected.start_ref == "A-01"
        route_session.click(100, 50, rect)
        assert route_session.routes.selected.end_ref == "Gate"

        waypoint = route_session.click(150, 80, rect)
        assert waypoint == Position(150, 80)

        # Both set: clicking an anchor changes nothing
        route_session.click(20, 20, rect)
        route = route_session.routes.selected
        assert (route.start_ref, route.end_ref) == ("A-01", "Gate")
        assert len(route.waypoints) == 1

    def test_waypoint_rejected_without_endpoints(self, route_session, rect, record_events):
        received = record_events(route_session.events, EventType.WAYPOINT_REJECTED)
        assert route_session.click(150, 80, rect) is None
        assert route_session.routes.selected.waypoints == []
        assert len(received) == 1

    def test_unlabeled_anchor_is_reported(self, route_session, rect, record_events):
        received = record_events(route_session.events, EventType.VALIDATION_FEEDBACK)
        route_session.points.add(60, 80)
        route_session.click(60, 80, rect)
        assert route_session.routes.selected.start_ref == ""
        assert received[-1].data["issues"][0].issue_kind == IssueKind.MISSING_NAME

    def test_anchor_without_selected_route(self, route_session, rect, record_events):
        received = record_events(route_session.events, EventType.NO_ROUTE_SELECTED)
        route_session.routes.select(-1)
        route_session.click(20, 20, rect)
        assert len(received) == 1

    def test_waypoint_drag_requires_both_endpoints(self, route_session, rect, confirm_no):
        route_session.routes.set_start("A-01")
        route_session.routes.set_end("Gate")
        route_session.click(150, 80, rect)
        route_session.routes.set_end("", confirm=confirm_no)
        route_session.pointer_down(150, 80, rect)
        assert not route_session.drag.is_dragging

    def test_waypoint_drag(self, route_session, rect):
        route_session.routes.set_start("A-01")
        route_session.routes.set_end("Gate")
        route_session.click(150, 80, rect)
        route_session.pointer_down(150, 80, rect)
        route_session.pointer_move(170, 90, rect)
        route_session.pointer_up()
        assert route_session.routes.selected.waypoints[0] == Position(170, 90)

    def test_remove_waypoints_in_box(self, route_session, rect, confirm_yes, confirm_no):
        route_session.routes.set_start("A-01")
        route_session.routes.set_end("Gate")
        for x, y in [(140, 10), (150, 20), (190, 90)]:
            route_session.click(x, y, rect)
        assert route_session.remove_waypoints_in_box(160, 30, 130, 0, confirm_no) == 0
        assert route_session.remove_waypoints_in_box(160, 30, 130, 0, confirm_yes) == 2
        assert route_session.routes.selected.waypoints == [Position(190, 90)]

    def test_commit_route_endpoint(self, route_session):
        resolution = route_session.commit_route_endpoint("end", "gat")
        assert resolution.value == "Gate"
        assert route_session.routes.selected.end_ref == "Gate"

    def test_save_route(self, route_session, rect):
        route_session.persistence = Mock()
        issues = route_session.save_route()
        assert {i.issue_kind for i in issues} >= {IssueKind.MISSING_ENDPOINT}
        route_session.persistence.push_route.assert_not_called()

        route_session.routes.set_start("A-01")
        route_session.routes.set_end("Gate")
        route_session.click(150, 80, rect)
        assert route_session.routes.selected.is_modified
        assert route_session.save_route() == []
        route_session.persistence.push_route.assert_called_once_with(0)
        assert not route_session.routes.selected.is_modified

    def test_ambiguous_endpoint_blocks_save(self, route_session, rect):
        route_session.persistence = Mock()
        route_session.spots.add(10, 90, "North Gate")
        route_session.spots.add(190, 90, "South Gate")
        route_session.routes.set_start("gat")
        route_session.routes.set_end("A-01")
        route_session.click(150, 80, rect)

        issues = route_session.save_route()
        assert [i.issue_kind for i in issues] == [IssueKind.AMBIGUOUS_REFERENCE]
        route_session.persistence.push_route.assert_not_called()
        assert route_session.routes.selected.is_modified
        assert IssueKind.AMBIGUOUS_REFERENCE in [i.issue_kind for i in route_session.validate()]

    def test_delete_route_deletes_remote_copy(self, route_session):
        route_session.persistence = Mock()
        route_session.routes.selected.external_ref = "route-7"
        assert route_session.delete_route(0)
        route_session.persistence.delete_route.assert_called_once_with("route-7")


class TestAreaMode:
    def test_clicks_add_vertices(self, area_session):
        assert len(area_session.areas.selected.vertices) == 4
        assert area_session.areas.selected.is_closed

    def test_label_click_selects_area(self, area_session, rect):
        area_session.areas.select(-1)
        area = area_session.click(50, 50, rect)
        assert area.area_name == "Hall"
        assert area_session.areas.selected_index == 0
        assert len(area.vertices) == 4

    def test_vertex_drag_reorders_on_release(self, area_session, rect):
        area_session.pointer_down(20, 20, rect)
        area_session.pointer_move(90, 50, rect)
        # Order is kept stable while dragging
        assert area_session.areas.selected.vertices[0] == Position(90, 50)
        area_session.pointer_up()
        assert area_session.areas.selected.vertices[:2] == [Position(80, 20), Position(90, 50)]

    def test_save_area(self, area_session):
        area_session.persistence = Mock()
        assert area_session.save_area() == []
        area_session.persistence.push_area.assert_called_once_with(0)


class TestLabels:
    def test_duplicate_point_ids_are_reported(self, session, rect, record_events):
        received = record_events(session.events, EventType.DUPLICATE_DETECTED)
        session.click(10, 10, rect)
        session.commit_point_label(0, "a1")
        session.click(100, 50, rect)
        session.commit_point_label(1, "A01")
        assert [p.id for p in session.points] == ["A-01", "A-01"]
        conflict = received[-1].data["conflicts"][0]
        assert (conflict.existing_index, conflict.attempted_index) == (0, 1)

    def test_commit_pushes_and_blank_deletes(self, session, rect):
        session.persistence = Mock()
        session.click(10, 10, rect)
        session.edit_point_label(0, "a")
        session.commit_point_label(0, "a1")
        session.persistence.push_point.assert_called_once_with(0)
        session.persistence.delete_point.assert_not_called()

        # Erasing the field key by key, then leaving it
        session.edit_point_label(0, "A-0")
        session.edit_point_label(0, "")
        assert not session.commit_point_label(0, "")
        session.persistence.delete_point.assert_called_once_with("A-01")
        assert len(session.points) == 0

    def test_rename_deletes_old_remote_label(self, session, rect):
        session.persistence = Mock()
        session.click(10, 10, rect)
        session.commit_point_label(0, "a1")
        session.edit_point_label(0, "b")
        session.edit_point_label(0, "b7")
        session.commit_point_label(0, "b7")
        session.persistence.delete_point.assert_called_once_with("A-01")
        assert session.persistence.push_point.call_count == 2

    def test_rename_keeps_label_held_by_duplicate(self, session):
        session.persistence = Mock()
        session.points.add(10, 10, "A-01")
        session.points.add(50, 50, "A-01")
        session.edit_point_label(1, "B-02")
        session.commit_point_label(1, "B-02")
        session.persistence.delete_point.assert_not_called()

    def test_remove_uses_committed_label(self, session):
        session.persistence = Mock()
        session.spots.add(10, 10, "Gate")
        session.edit_spot_name(0, "Ga")
        assert session.remove_spot(0)
        session.persistence.delete_spot.assert_called_once_with("Gate")

    def test_spot_name_commit(self, session):
        session.persistence = Mock()
        session.spots.add(10, 10)
        session.edit_spot_name(0, " Gate ")
        assert session.commit_spot_name(0, " Gate ")
        assert session.spots.items[0].name == "Gate"
        session.persistence.push_spot.assert_called_once_with(0)


class TestViewport:
    def test_zoom_and_pan_emit(self, session, record_events):
        received = record_events(session.events, EventType.VIEWPORT_CHANGED)
        assert session.zoom_in()
        assert session.pan(1, 0)
        assert session.zoom_out()
        session.reset_view()
        assert len(received) == 4
        assert received[-1].data == {"scale": 1.0, "offset_x": 0.0, "offset_y": 0.0}

    def test_zoom_out_at_minimum(self, session, record_events):
        received = record_events(session.events, EventType.VIEWPORT_CHANGED)
        assert not session.zoom_out()
        assert received == []


class TestDocument:
    """Image-space export and import."""

    @pytest.fixture
    def scaled_session(self, cfg, test_image):
        session = EditorSession(cfg=cfg)
        session.load_image(test_image, "map.png", canvas_size=(100, 50))
        return session

    def test_to_dict_uses_image_space(self, scaled_session):
        scaled_session.points.add(10, 20, "A-01")
        scaled_session.spots.replace_all([Spot(30, 10, ""), Spot(40, 10, " Gate ")])
        scaled_session.routes.add_route(
            Route("R", "A-01", "Gate", waypoints=[Position(50, 25)])
        )
        doc = scaled_session.to_dict()
        assert doc["imageReference"] == "map.png"
        assert doc["imageInfo"] == {"width": 200, "height": 100}
        assert doc["points"] == [
            {"index": 1, "imageX": 20, "imageY": 40, "id": "A-01", "isMarker": False}
        ]
        assert doc["spots"] == [{"index": 1, "imageX": 80, "imageY": 20, "name": "Gate"}]
        assert doc["routes"][0]["startPoint"] == "A-01"
        assert doc["routes"][0]["waypoints"] == [
            {"index": 1, "imageX": 100, "imageY": 50, "type": "waypoint"}
        ]

    def test_from_dict_restores_canvas_positions(self, scaled_session, cfg):
        scaled_session.points.add(10, 20, "A-01")
        scaled_session.areas.add_area(
            Area("Hall", [Position(0, 0), Position(50, 0), Position(50, 40)])
        )
        doc = scaled_session.to_dict()

        restored = EditorSession(cfg=cfg)
        restored.from_dict(doc, canvas_size=(100, 50))
        assert (restored.points.items[0].x, restored.points.items[0].y) == (10, 20)
        assert restored.areas.areas[0].vertices[2] == Position(50, 40)

        full_size = EditorSession(cfg=cfg)
        full_size.from_dict(doc)
        assert (full_size.points.items[0].x, full_size.points.items[0].y) == (20, 40)

    def test_from_dict_rescales_to_loaded_image(self, scaled_session):
        doc = {
            "imageInfo": {"width": 400, "height": 200},
            "points": [{"index": 1, "imageX": 40, "imageY": 20, "id": "A-01"}],
            "routes": [
                {
                    "routeName": "R",
                    "startPoint": "A-01",
                    "endPoint": "Gate",
                    "waypoints": [{"index": 1, "imageX": 200, "imageY": 100}],
                }
            ],
            "areas": [
                {
                    "areaName": "Hall",
                    "vertices": [
                        {"index": 1, "imageX": 0, "imageY": 0},
                        {"index": 2, "imageX": 400, "imageY": 0},
                        {"index": 3, "imageX": 400, "imageY": 200},
                    ],
                }
            ],
        }
        scaled_session.from_dict(doc)
        # 400x200 document on a 200x100 image shown on a 100x50 canvas
        assert scaled_session.image_size == (200, 100)
        assert (scaled_session.points.items[0].x, scaled_session.points.items[0].y) == (10, 5)
        assert scaled_session.routes.routes[0].waypoints == [Position(50, 25)]
        assert scaled_session.areas.areas[0].vertices[2] == Position(100, 50)
        assert scaled_session.to_dict()["points"][0]["imageX"] == 20

    def test_from_dict_requires_dimensions(self, cfg):
        with pytest.raises(ValueError):
            EditorSession(cfg=cfg).from_dict({"points": []})

    def test_to_dict_requires_image(self, cfg):
        with pytest.raises(ValueError):
            EditorSession(cfg=cfg).to_dict()

    def test_snapshot(self, route_session):
        snapshot = route_session.snapshot()
        assert snapshot["mode"] == EditMode.ROUTE
        assert snapshot["selected_route_index"] == 0
        assert snapshot["route_waypoints"] == []
        assert len(snapshot["points"]) == 1

    def test_validate(self, session):
        session.points.add(1, 1, "A-01")
        session.points.add(2, 2, "A-01")
        session.areas.add_area(Area("Hall"))
        kinds = [i.issue_kind for i in session.validate()]
        assert kinds.count(IssueKind.DUPLICATE_LABEL) == 2
        assert IssueKind.TOO_FEW_VERTICES in kinds
