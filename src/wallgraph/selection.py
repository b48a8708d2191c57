# src/wallgraph/selection.py
"""Hit-testing, area selection and connectivity queries over the wall graph."""
from __future__ import annotations

from typing import Optional, Sequence

from wallgraph import geometry
from wallgraph.graph import FloorPlanGraph
from wallgraph.models import BoundingBox, DeletionImpact, Point, Wall, WallHit, WallInfo


class SpatialQueryService:
    """Read-mostly queries; walls and nodes are looked up by id on every call."""

    def __init__(
        self, graph: FloorPlanGraph, selection_tolerance: Optional[float] = None
    ) -> None:
        self.graph = graph
        self.selection_tolerance = (
            graph.config.selection_tolerance if selection_tolerance is None else selection_tolerance
        )

    def set_selection_tolerance(self, tolerance: float) -> None:
        if tolerance < 0:
            raise ValueError("selection tolerance must be >= 0")
        self.selection_tolerance = tolerance

    def distance_to_wall(self, point: Sequence[float], wall: Wall) -> float:
        """Minimum centreline distance from point to any segment of the wall."""
        best = float("inf")
        for segment in self.graph.get_segments_for_wall(wall.id):
            a, b = self.graph.segment_coords(segment)
            best = min(best, geometry.point_segment_distance(point, a, b))
        return best

    def find_walls_near_point(
        self, point: Sequence[float], radius: Optional[float] = None
    ) -> list[WallHit]:
        """Visible walls within radius of point, nearest first (creation order on ties)."""
        radius = self.selection_tolerance if radius is None else radius
        hits = []
        for wall in self.graph.get_all_walls():
            if not wall.visible:
                continue
            d = self.distance_to_wall(point, wall)
            if d <= radius:
                hits.append(WallHit(wall_id=wall.id, distance=d))
        # sort is stable, so equal distances keep creation order
        hits.sort(key=lambda h: h.distance)
        return hits

    def find_wall_at_point(
        self, point: Sequence[float], tolerance: Optional[float] = None
    ) -> Optional[WallHit]:
        """Nearest visible wall whose distance is <= tolerance, else None."""
        hits = self.find_walls_near_point(point, tolerance)
        return hits[0] if hits else None

    def find_walls_in_area(
        self, top_left: Sequence[float], bottom_right: Sequence[float]
    ) -> list[str]:
        """Visible walls with at least one segment inside or crossing the rectangle."""
        selected = []
        for wall in self.graph.get_all_walls():
            if not wall.visible:
                continue
            for segment in self.graph.get_segments_for_wall(wall.id):
                a, b = self.graph.segment_coords(segment)
                if geometry.segment_intersects_rect(a, b, top_left, bottom_right):
                    selected.append(wall.id)
                    break
        return selected

    def get_wall_info(self, wall_id: str) -> Optional[WallInfo]:
        wall = self.graph.get_wall(wall_id)
        if wall is None:
            return None

        segments = self.graph.get_segments_for_wall(wall_id)
        nodes = [self.graph.get_node(n) for n in self.graph.get_wall_node_ids(wall_id)]
        nodes = [n for n in nodes if n is not None]

        bounds = geometry.bounding_box(n.as_tuple() for n in nodes)
        bbox = None
        if bounds is not None:
            (minx, miny), (maxx, maxy) = bounds
            bbox = BoundingBox(
                top_left=Point(x=minx, y=miny), bottom_right=Point(x=maxx, y=maxy)
            )
        return WallInfo(
            wall=wall,
            segments=segments,
            nodes=nodes,
            total_length=sum(s.length for s in segments),
            bounding_box=bbox,
        )

    def find_connected_walls(self, wall_id: str) -> list[str]:
        """Other walls sharing at least one node with this wall, in creation order."""
        wall = self.graph.get_wall(wall_id)
        if wall is None:
            return []
        return self.graph.find_walls_sharing_nodes(wall.segment_ids, exclude_wall_id=wall_id)

    def analyze_deletion_impact(self, wall_id: str) -> DeletionImpact:
        wall = self.graph.get_wall(wall_id)
        if wall is None:
            return DeletionImpact(can_delete=False, warnings=["Wall not found"])

        own_segments = set(wall.segment_ids)
        connected = self.find_connected_walls(wall_id)
        orphaned = []
        for node_id in self.graph.get_wall_node_ids(wall_id):
            node = self.graph.get_node(node_id)
            if node is None:
                continue
            if node.connected_segments <= own_segments:
                orphaned.append(node_id)

        warnings = []
        if connected:
            warnings.append(f"Deletion will affect {len(connected)} connected wall(s)")
        if orphaned:
            warnings.append(f"{len(orphaned)} node(s) will be orphaned")
        return DeletionImpact(
            can_delete=True,
            connected_walls=connected,
            orphaned_nodes=orphaned,
            warnings=warnings,
        )

    def delete_wall_with_cleanup(self, wall_id: str) -> DeletionImpact:
        """Delete a wall, its segments and the nodes only it used; returns the impact report."""
        impact = self.analyze_deletion_impact(wall_id)
        if not impact.can_delete:
            return impact
        self.graph.delete_wall(wall_id, delete_segments=True)
        for node_id in impact.orphaned_nodes:
            node = self.graph.get_node(node_id)
            if node is not None and node.is_orphaned:
                self.graph.delete_node(node_id)
        return impact
