# src/wallgraph/drawing.py
"""Turns a drawn polyline into nodes, segments and a wall, then resolves crossings."""
from __future__ import annotations

import logging
from typing import Optional, Sequence, Union

from wallgraph import geometry
from wallgraph.graph import FloorPlanGraph
from wallgraph.intersections import IntersectionResolver
from wallgraph.models import Point, ResolutionReport, Wall, WallType

logger = logging.getLogger(__name__)


class DrawingSession:
    """Collects the points of one stroke at a time and commits them to the graph."""

    def __init__(
        self,
        graph: FloorPlanGraph,
        resolver: Optional[IntersectionResolver] = None,
        wall_type: Union[WallType, str] = WallType.LAYOUT,
        join_touched_walls: bool = True,
    ) -> None:
        self.graph = graph
        self.join_touched_walls = join_touched_walls
        self.resolver = resolver or IntersectionResolver(graph)
        self.wall_type = WallType(wall_type)
        self.last_report: Optional[ResolutionReport] = None
        self._points: list[tuple[float, float]] = []
        self._drawing = False

    def set_wall_type(self, wall_type: Union[WallType, str]) -> None:
        self.wall_type = WallType(wall_type)

    @property
    def is_drawing(self) -> bool:
        return self._drawing

    @property
    def points(self) -> list[Point]:
        return [Point(x=x, y=y) for x, y in self._points]

    def start(self, point: Sequence[float]) -> None:
        self._drawing = True
        self._points = [(float(point[0]), float(point[1]))]

    def add_point(self, point: Sequence[float]) -> None:
        if not self._drawing:
            return
        self._points.append((float(point[0]), float(point[1])))

    def cancel(self) -> None:
        self._drawing = False
        self._points = []

    def length(self) -> float:
        return sum(
            geometry.distance(p, q) for p, q in zip(self._points, self._points[1:])
        )

    def preview_line(
        self, cursor: Sequence[float]
    ) -> Optional[tuple[tuple[float, float], tuple[float, float]]]:
        if not self._drawing or not self._points:
            return None
        return self._points[-1], (float(cursor[0]), float(cursor[1]))

    def complete(self) -> Optional[Wall]:
        """Commit the stroke and return the wall that now holds it.

        Stroke segments lying entirely on an existing wall are dropped. When
        the crossings of the stroke split exactly one existing wall of the same
        type, the new segments join that wall and it is returned instead.
        Returns None, with the graph untouched, when no segment remains.
        The session is reset in every case.
        """
        try:
            return self._commit()
        finally:
            self.cancel()

    def _commit(self) -> Optional[Wall]:
        points = self._snapped_points()
        pairs = [
            (p, q) for p, q in zip(points, points[1:]) if not self._on_existing_wall(p, q)
        ]
        if not pairs:
            return None

        node_ids: dict[tuple[float, float], str] = {}
        for pair in pairs:
            for point in pair:
                if point not in node_ids:
                    node_ids[point] = self._node_for(point)
        segment_ids = []
        for p, q in pairs:
            segment = self.graph.create_segment(node_ids[p], node_ids[q])
            if segment is not None:
                segment_ids.append(segment.id)
        if not segment_ids:
            return None

        wall = self.graph.create_wall(self.wall_type, segment_ids)
        try:
            self.last_report = self.resolver.resolve_wall(wall.id)
        except Exception:
            # Crossings stay unresolved but the wall is kept
            logger.exception("Intersection resolution failed for wall %s", wall.id)
            self.last_report = ResolutionReport(wall_id=wall.id, errors=["resolution failed"])
            return wall

        target = self._touched_wall(wall) if self.join_touched_walls else None
        if target is not None and self.graph.merge_walls(target.id, [wall.id]):
            logger.debug("Stroke joined existing wall %s", target.id)
            self.last_report = self.last_report.model_copy(update={"wall_id": target.id})
            return target
        return wall

    def draw_wall(
        self,
        points: Sequence[Sequence[float]],
        wall_type: Union[WallType, str, None] = None,
    ) -> Optional[Wall]:
        if wall_type is not None:
            self.set_wall_type(wall_type)
        if not points:
            return None
        self.start(points[0])
        for p in points[1:]:
            self.add_point(p)
        return self.complete()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _snapped_points(self) -> list[tuple[float, float]]:
        """Stroke points moved onto nearby nodes, with consecutive duplicates dropped."""
        tol = self.graph.config.snap_tolerance
        eps = self.graph.config.intersection_epsilon
        result: list[tuple[float, float]] = []
        for p in self._points:
            node = self.graph.find_node_near(p, tol)
            q = node.as_tuple() if node is not None else p
            if result and geometry.distance(result[-1], q) < max(eps, tol):
                continue
            result.append(q)
        return result

    def _on_existing_wall(self, p: tuple[float, float], q: tuple[float, float]) -> bool:
        """True when both ends lie on one segment already owned by a wall."""
        tol = self.graph.config.snap_tolerance
        for segment in self.graph.get_all_segments():
            if segment.wall_id is None:
                continue
            a, b = self.graph.segment_coords(segment)
            if geometry.point_on_segment(p, a, b, tol) and geometry.point_on_segment(q, a, b, tol):
                return True
        return False

    def _touched_wall(self, wall: Wall) -> Optional[Wall]:
        """The single other wall split by this stroke's crossings, if it has the same type."""
        touched = set()
        for record in self.last_report.splits:
            for segment_id in record.new_segment_ids:
                segment = self.graph.get_segment(segment_id)
                if segment is not None and segment.wall_id not in (None, wall.id):
                    touched.add(segment.wall_id)
        if len(touched) != 1:
            return None
        target = self.graph.get_wall(touched.pop())
        if target is None or target.type != wall.type:
            return None
        return target

    def _node_for(self, point: tuple[float, float]) -> str:
        """Reuse a node at point, split a segment passing through it, or create one."""
        tol = self.graph.config.snap_tolerance
        node = self.graph.find_node_near(point, tol)
        if node is not None:
            return node.id

        segment = self.graph.find_segment_containing(point, tol)
        if segment is not None:
            new_ids = self.graph.subdivide_segment(segment.id, point)
            if new_ids:
                return self.graph.get_segment(new_ids[0]).end_node_id
        return self.graph.create_node(point[0], point[1]).id
