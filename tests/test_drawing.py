# tests/test_drawing.py
import pytest

from wallgraph.drawing import DrawingSession
from wallgraph.graph import FloorPlanGraph
from wallgraph.models import NodeKind, WallType


def test_stroke_lifecycle():
    session = DrawingSession(FloorPlanGraph())
    assert not session.is_drawing
    session.add_point((5, 5))
    assert session.points == []

    session.start((0, 0))
    session.add_point((3, 4))
    session.add_point((3, 10))
    assert session.is_drawing
    assert session.length() == pytest.approx(11)
    assert session.preview_line((20, 20)) == ((3, 10), (20, 20))

    session.cancel()
    assert not session.is_drawing
    assert session.preview_line((20, 20)) is None
    assert session.graph.summary().wall_count == 0


def test_complete_builds_wall_from_stroke():
    g = FloorPlanGraph()
    session = DrawingSession(g, wall_type="zone")
    session.start((0, 0))
    session.add_point((100, 0))
    session.add_point((100, 50))
    wall = session.complete()

    assert wall.type is WallType.ZONE
    assert wall.thickness == 250
    assert len(wall.segment_ids) == 2
    assert all(g.get_segment(s).wall_id == wall.id for s in wall.segment_ids)
    assert not session.is_drawing
    assert session.last_report.ok


def test_too_short_stroke_leaves_graph_untouched():
    g = FloorPlanGraph()
    session = DrawingSession(g)
    session.start((10, 10))
    assert session.complete() is None
    assert session.draw_wall([(5, 5), (5, 5)]) is None
    assert session.draw_wall([]) is None
    assert g.summary().node_count == 0


def test_repeated_points_are_collapsed():
    g = FloorPlanGraph()
    wall = DrawingSession(g).draw_wall([(0, 0), (0, 0), (10, 0), (10, 0)])
    assert len(wall.segment_ids) == 1
    assert len(g.get_all_nodes()) == 2


def test_stroke_reuses_existing_nodes():
    g = FloorPlanGraph()
    session = DrawingSession(g)
    first = session.draw_wall([(0, 0), (10, 0)])
    second = session.draw_wall([(10, 0), (10, 10)], wall_type=WallType.AREA)
    assert len(g.get_all_nodes()) == 3
    assert second.type is WallType.AREA
    shared = g.get_segments_for_wall(first.id)[0].end_node_id
    assert g.get_segments_for_wall(second.id)[0].start_node_id == shared


def test_stroke_starting_on_a_wall_splits_it():
    g = FloorPlanGraph()
    session = DrawingSession(g)
    base = session.draw_wall([(0, 0), (10, 0)])
    session.draw_wall([(4, 0), (4, 8)])
    assert len(base.segment_ids) == 2
    joint = g.find_node_near((4, 0))
    assert joint.kind is NodeKind.INTERSECTION
    assert len(joint.connected_segments) == 3


def test_closed_stroke_shares_first_node():
    g = FloorPlanGraph()
    wall = DrawingSession(g).draw_wall([(0, 0), (10, 0), (10, 10), (0, 10), (0, 0)])
    assert len(wall.segment_ids) == 4
    assert len(g.get_all_nodes()) == 4
    assert all(len(n.connected_segments) == 2 for n in g.get_all_nodes())


def test_resolver_failure_still_returns_the_wall(monkeypatch):
    g = FloorPlanGraph()
    session = DrawingSession(g)

    def explode(wall_id):
        raise KeyError(wall_id)

    monkeypatch.setattr(session.resolver, "resolve_wall", explode)
    wall = session.draw_wall([(0, 0), (10, 0)])
    assert wall is not None
    assert g.get_wall(wall.id) is wall
    assert session.last_report.errors == ["resolution failed"]
    assert not session.is_drawing
    assert session.points == []


def test_stroke_along_an_existing_wall_is_dropped():
    g = FloorPlanGraph()
    session = DrawingSession(g)
    session.draw_wall([(0, 0), (100, 0)])
    before = g.summary()
    assert session.draw_wall([(20, 0), (60, 0)]) is None
    assert g.summary() == before
    assert not session.is_drawing


def test_only_redundant_links_are_dropped():
    g = FloorPlanGraph()
    session = DrawingSession(g)
    session.draw_wall([(0, 0), (100, 0)])
    wall = session.draw_wall([(20, 0), (60, 0), (60, 40)], wall_type="zone")
    assert len(wall.segment_ids) == 1
    start, end = g.segment_coords(g.get_segment(wall.segment_ids[0]))
    assert (start, end) == ((60, 0), (60, 40))


def test_stroke_crossing_one_wall_of_same_type_joins_it():
    g = FloorPlanGraph()
    session = DrawingSession(g)
    base = session.draw_wall([(0, 5), (10, 5)])
    joined = session.draw_wall([(5, 0), (5, 10)])
    assert joined is base
    assert g.summary().wall_count == 1
    assert len(base.segment_ids) == 4
    assert all(g.get_segment(s).wall_id == base.id for s in base.segment_ids)
    assert session.last_report.wall_id == base.id


def test_stroke_is_not_joined_across_types_or_several_walls():
    g = FloorPlanGraph()
    session = DrawingSession(g)
    session.draw_wall([(0, 5), (10, 5)])
    zone = session.draw_wall([(5, 0), (5, 10)], wall_type="zone")
    assert g.summary().wall_count == 2

    session.set_wall_type("layout")
    session.draw_wall([(3, 0), (3, 10)])
    assert g.summary().wall_count == 2
    # Crosses both the layout wall group and the zone wall
    session.draw_wall([(0, 8), (10, 8)])
    assert g.summary().wall_count == 3
    assert g.get_wall(zone.id) is not None


def test_joining_can_be_turned_off():
    g = FloorPlanGraph()
    session = DrawingSession(g, join_touched_walls=False)
    session.draw_wall([(0, 5), (10, 5)])
    session.draw_wall([(5, 0), (5, 10)])
    assert g.summary().wall_count == 2
