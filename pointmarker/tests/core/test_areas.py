"""
Tests for AreaModel.
"""

from pointmarker.core.annotation import Area, EventType, Position


def select_new_area(areas, name="Hall"):
    index = areas.add_area(Area(area_name=name))
    areas.select(index)
    return index


class TestAreaModel:
    """Area collection, vertices and ordering."""

    def test_add_vertex_requires_selection(self, areas, events, record_events):
        received = record_events(events, EventType.NO_AREA_SELECTED)
        areas.add_area()
        assert areas.add_vertex(10, 10) is None
        assert len(received) == 1

    def test_vertices_are_reordered_around_centroid(self, areas):
        select_new_area(areas)
        for x, y in [(0, 0), (10, 10), (10, 0), (0, 10)]:
            areas.add_vertex(x, y)
        vertices = areas.selected.vertices
        # No two consecutive edges cross: each edge is axis-aligned
        for a, b in zip(vertices, vertices[1:] + vertices[:1]):
            assert a.x == b.x or a.y == b.y

    def test_open_polyline_keeps_insertion_order(self, areas):
        select_new_area(areas)
        areas.add_vertex(10, 0)
        areas.add_vertex(0, 0)
        assert areas.selected.vertices == [Position(10, 0), Position(0, 0)]
        assert not areas.selected.is_closed

    def test_remove_vertices(self, areas):
        select_new_area(areas)
        for x, y in [(0, 0), (10, 0), (10, 10), (0, 10)]:
            areas.add_vertex(x, y)
        assert areas.remove_vertices([0, 1, 9]) == 2
        assert len(areas.selected.vertices) == 2

    def test_find_vertex_at(self, areas):
        select_new_area(areas)
        areas.add_vertex(30, 30)
        index, vertex = areas.find_vertex_at(33, 33)
        assert index == 0
        assert vertex == Position(30, 30)
        assert areas.find_vertex_at(60, 60) is None

    def test_find_label_at_scales_with_zoom(self, areas):
        select_new_area(areas)
        for x, y in [(0, 0), (40, 0), (40, 40), (0, 40)]:
            areas.add_vertex(x, y)
        assert areas.find_label_at(35, 20, scale=1.0) == 0
        assert areas.find_label_at(35, 20, scale=2.0) == -1

    def test_modified_once_closed_and_named(self, areas):
        select_new_area(areas, name="Hall")
        areas.add_vertex(0, 0)
        areas.add_vertex(10, 0)
        assert not areas.selected.is_modified
        areas.add_vertex(5, 10)
        assert areas.selected.is_modified
        areas.mark_saved()
        assert not areas.selected.is_modified

    def test_delete_area_adjusts_selection(self, areas):
        areas.add_area()
        select_new_area(areas)
        areas.delete_area(0)
        assert areas.selected_index == 0
        assert areas.selected.area_name == "Hall"

    def test_set_area_name(self, areas):
        select_new_area(areas)
        assert areas.set_area_name("Lobby")
        assert areas.selected.area_name == "Lobby"
