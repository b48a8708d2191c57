# tests/test_selection.py
import pytest

from wallgraph.drawing import DrawingSession
from wallgraph.graph import FloorPlanGraph
from wallgraph.selection import SpatialQueryService


@pytest.fixture
def plan():
    g = FloorPlanGraph()
    session = DrawingSession(g)
    return g, session, SpatialQueryService(g)


def test_hit_test_within_tolerance(plan):
    g, session, queries = plan
    wall = session.draw_wall([(0, 0), (100, 0)])
    hit = queries.find_wall_at_point((50, 8))
    assert hit.wall_id == wall.id
    assert hit.distance == pytest.approx(8)
    assert queries.find_wall_at_point((50, 11)) is None


def test_hit_test_boundary_is_inclusive(plan):
    g, session, queries = plan
    wall = session.draw_wall([(0, 0), (100, 0)])
    assert queries.find_wall_at_point((50, 10)).wall_id == wall.id
    assert queries.find_wall_at_point((50, 3), tolerance=2) is None


def test_hit_test_picks_nearest_then_oldest(plan):
    g, session, queries = plan
    first = session.draw_wall([(0, 0), (100, 0)])
    second = session.draw_wall([(0, 6), (100, 6)])
    assert queries.find_wall_at_point((50, 4)).wall_id == second.id
    # Equidistant: creation order wins
    assert queries.find_wall_at_point((50, 3)).wall_id == first.id
    hits = queries.find_walls_near_point((50, 1), radius=20)
    assert [h.wall_id for h in hits] == [first.id, second.id]


def test_hidden_walls_are_not_selectable(plan):
    g, session, queries = plan
    wall = session.draw_wall([(0, 0), (100, 0)])
    g.update_wall(wall.id, visible=False)
    assert queries.find_wall_at_point((50, 0)) is None
    assert queries.find_walls_in_area((0, -5), (100, 5)) == []


def test_selection_tolerance_setter(plan):
    g, session, queries = plan
    session.draw_wall([(0, 0), (100, 0)])
    queries.set_selection_tolerance(20)
    assert queries.find_wall_at_point((50, 15)) is not None
    with pytest.raises(ValueError):
        queries.set_selection_tolerance(-1)


def test_area_selection_includes_crossing_walls(plan):
    g, session, queries = plan
    crossing = session.draw_wall([(0, 10), (100, 10)])
    outside = session.draw_wall([(50, 50), (60, 60)])
    assert queries.find_walls_in_area((0, 0), (40, 20)) == [crossing.id]
    assert queries.find_walls_in_area((40, 20), (0, 0)) == [crossing.id]
    assert set(queries.find_walls_in_area((0, 0), (100, 100))) == {crossing.id, outside.id}


def test_wall_info(plan):
    g, session, queries = plan
    wall = session.draw_wall([(0, 0), (30, 0), (30, 40)])
    info = queries.get_wall_info(wall.id)
    assert info.total_length == pytest.approx(70)
    assert len(info.segments) == 2
    assert len(info.nodes) == 3
    assert info.bounding_box.width == pytest.approx(30)
    assert info.bounding_box.height == pytest.approx(40)
    assert queries.get_wall_info("missing") is None


def test_connected_walls_are_symmetric(plan):
    g, session, queries = plan
    a = session.draw_wall([(0, 0), (100, 0)])
    b = session.draw_wall([(100, 0), (100, 100)])
    c = session.draw_wall([(50, -50), (50, 50)], wall_type="zone")
    far = session.draw_wall([(300, 300), (400, 300)])
    assert queries.find_connected_walls(a.id) == [b.id, c.id]
    assert queries.find_connected_walls(b.id) == [a.id]
    assert queries.find_connected_walls(c.id) == [a.id]
    assert queries.find_connected_walls(far.id) == []
    assert queries.find_connected_walls("missing") == []


def test_deletion_impact_reports_connections_and_orphans(plan):
    g, session, queries = plan
    a = session.draw_wall([(0, 0), (100, 0)])
    b = session.draw_wall([(100, 0), (100, 100)])
    impact = queries.analyze_deletion_impact(b.id)
    assert impact.can_delete
    assert impact.connected_walls == [a.id]
    assert len(impact.orphaned_nodes) == 1
    assert g.get_node(impact.orphaned_nodes[0]).as_tuple() == (100, 100)
    assert impact.warnings == [
        "Deletion will affect 1 connected wall(s)",
        "1 node(s) will be orphaned",
    ]


def test_deletion_impact_of_unknown_wall(plan):
    g, session, queries = plan
    impact = queries.analyze_deletion_impact("missing")
    assert not impact.can_delete
    assert impact.warnings == ["Wall not found"]


def test_delete_wall_with_cleanup_removes_only_private_nodes(plan):
    g, session, queries = plan
    a = session.draw_wall([(0, 0), (100, 0)])
    b = session.draw_wall([(100, 0), (100, 100)])
    queries.delete_wall_with_cleanup(b.id)
    assert g.get_wall(b.id) is None
    assert len(g.get_all_segments()) == 1
    assert sorted(n.as_tuple() for n in g.get_all_nodes()) == [(0, 0), (100, 0)]
    assert queries.find_connected_walls(a.id) == []
