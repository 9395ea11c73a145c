"""
Tests for RouteModel: selection, endpoints and the waypoint precondition.
"""

import pytest

from pointmarker.core.annotation import EventType, Position, Route, RouteState


@pytest.fixture
def ready_route(routes):
    """A selected route with both endpoints and two waypoints."""
    routes.add_route(Route(start_ref="A-01", end_ref="B-02"))
    routes.select(0)
    routes.add_waypoint(10, 10)
    routes.add_waypoint(20, 20)
    return routes


class TestSelection:
    """Route collection and selection."""

    def test_default_names(self, routes):
        routes.add_route()
        routes.add_route()
        assert [r.route_name for r in routes.routes] == ["Route 1", "Route 2"]

    def test_select_in_empty_collection(self, routes, events, record_events):
        received = record_events(events, EventType.NO_ROUTE_AVAILABLE)
        assert not routes.select(0)
        assert routes.selected_index == -1
        assert len(received) == 1

    def test_out_of_range_selection_means_none(self, routes):
        routes.add_route()
        assert not routes.select(5)
        assert routes.selected is None

    def test_delete_keeps_selection_on_same_route(self, routes):
        for _ in range(3):
            routes.add_route()
        routes.select(2)
        selected = routes.selected
        routes.delete_route(0)
        assert routes.selected is selected
        assert routes.selected_index == 1

    def test_delete_selected_route_deselects(self, routes):
        routes.add_route()
        routes.select(0)
        routes.delete_route(0)
        assert routes.selected_index == -1
        assert not routes.delete_route(0)


class TestEndpoints:
    """Endpoint state machine."""

    def test_state_follows_refs(self, routes):
        routes.add_route()
        routes.select(0)
        assert routes.selected.state == RouteState.EMPTY
        routes.set_start("A-01")
        assert routes.selected.state == RouteState.START_SET
        routes.set_end("B-02")
        assert routes.selected.state == RouteState.BOTH_SET
        routes.set_start("C-03")
        assert routes.selected.state == RouteState.BOTH_SET
        assert routes.selected.start_ref == "C-03"

    def test_set_without_selection(self, routes, events, record_events):
        received = record_events(events, EventType.NO_ROUTE_SELECTED)
        routes.add_route()
        assert not routes.set_start("A-01")
        assert len(received) == 1

    def test_endpoint_change_clears_waypoints_when_confirmed(self, ready_route, confirm_yes):
        ready_route.set_end("C-03", confirm=confirm_yes)
        confirm_yes.assert_called_once()
        assert "B-02" in confirm_yes.call_args[0][0]
        assert ready_route.selected.waypoints == []

    def test_endpoint_change_keeps_waypoints_when_declined(self, ready_route, confirm_no):
        ready_route.set_start("Z-09", confirm=confirm_no)
        assert len(ready_route.selected.waypoints) == 2
        assert ready_route.selected.start_ref == "Z-09"

    def test_same_value_does_not_prompt(self, ready_route, confirm_yes):
        assert not ready_route.set_start("A-01", confirm=confirm_yes)
        confirm_yes.assert_not_called()

    def test_commit_endpoint_resolves_text(self, routes, spots, validation):
        spots.add(1, 1, "Main Gate")
        routes.add_route()
        routes.select(0)
        resolution = routes.commit_endpoint("start", "main", validation)
        assert resolution.value == "Main Gate"
        assert routes.selected.start_ref == "Main Gate"

    def test_commit_endpoint_rejects_unknown_field(self, routes, validation):
        with pytest.raises(ValueError):
            routes.commit_endpoint("middle", "A-01", validation)


class TestWaypoints:
    """Waypoints are editable only with both endpoints set."""

    @pytest.mark.parametrize("start,end", [("", ""), ("A-01", ""), ("", "B-02")])
    def test_add_rejected_without_both_refs(self, routes, events, record_events, start, end):
        received = record_events(events, EventType.WAYPOINT_REJECTED)
        routes.add_route(Route(start_ref=start, end_ref=end))
        routes.select(0)
        assert routes.add_waypoint(5, 5) is None
        assert routes.selected.waypoints == []
        assert len(received) == 1
        assert received[0].data["reason"]

    def test_add_update_remove(self, ready_route):
        assert ready_route.update_waypoint(0, 11.4, 12.6)
        assert ready_route.selected.waypoints[0] == Position(11, 13)
        assert ready_route.remove_waypoint(1)
        assert len(ready_route.selected.waypoints) == 1
        assert not ready_route.remove_waypoint(7)

    def test_update_rejected_after_endpoint_cleared(self, ready_route, confirm_no):
        ready_route.set_end("", confirm=confirm_no)
        assert not ready_route.update_waypoint(0, 50, 50)
        assert ready_route.selected.waypoints[0] == Position(10, 10)

    def test_clear_allowed_in_any_state(self, ready_route, confirm_no):
        ready_route.set_start("", confirm=confirm_no)
        assert ready_route.selected.state == RouteState.EMPTY
        assert ready_route.clear_waypoints() == 2
        assert ready_route.selected.waypoints == []

    def test_find_nearest(self, ready_route):
        index, waypoint = ready_route.find_nearest(19, 21)
        assert index == 1
        assert waypoint == Position(20, 20)
        assert ready_route.find_nearest(100, 100) is None

    def test_rectangle_is_symmetric_under_corner_swap(self, ready_route):
        ready_route.add_waypoint(40, 5)
        corners = [(0, 0, 25, 25), (25, 25, 0, 0), (0, 25, 25, 0), (25, 0, 0, 25)]
        results = [ready_route.find_within_rectangle(*c) for c in corners]
        assert all(r == results[0] for r in results)
        assert [i for i, _wp in results[0]] == [0, 1]


class TestModified:
    """Modified flag of the selected route."""

    def test_modified_after_first_waypoint(self, routes, events, record_events):
        received = record_events(events, EventType.ROUTE_MODIFIED_CHANGED)
        routes.add_route(Route(start_ref="A-01", end_ref="B-02"))
        routes.select(0)
        routes.add_waypoint(1, 1)
        assert routes.selected.is_modified
        routes.mark_saved()
        assert not routes.selected.is_modified
        assert [e.data["is_modified"] for e in received] == [True, False]

    def test_default_filename(self, ready_route):
        assert ready_route.default_filename("map") == "map_route_A-01_to_B-02.json"
