# src/wallgraph/intersections.py
"""Split newly drawn segments and the segments they cross at shared nodes."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Optional

from wallgraph import geometry
from wallgraph.errors import GeometryError
from wallgraph.graph import FloorPlanGraph
from wallgraph.models import NodeKind, ResolutionReport, Segment, SplitRecord

logger = logging.getLogger(__name__)

# Upper bound on queue pops for one resolution run
MAX_ITERATIONS = 10_000


@dataclass
class Crossing:
    """A crossing of the segment being resolved with another segment."""

    other_id: str
    point: tuple[float, float]
    t: float  # parameter along the resolved segment
    at_own_end: bool
    at_other_end: bool


class IntersectionResolver:
    """Resolves crossings of a wall's segments against the rest of the graph."""

    def __init__(self, graph: FloorPlanGraph) -> None:
        self.graph = graph

    @property
    def epsilon(self) -> float:
        return self.graph.config.intersection_epsilon

    def resolve_wall(self, wall_id: str) -> ResolutionReport:
        """Resolve every crossing of the wall's segments, in drawing order."""
        report = ResolutionReport(wall_id=wall_id)
        wall = self.graph.get_wall(wall_id)
        if wall is None:
            report.errors.append(f"Wall not found: {wall_id}")
            return report
        self._resolve(list(wall.segment_ids), wall_id, report)
        if report.splits:
            logger.info(
                "Wall %s: %d split(s), %d intersection node(s)",
                wall_id, len(report.splits), len(report.intersection_node_ids),
            )
        return report

    def resolve_segment(self, segment_id: str) -> ResolutionReport:
        segment = self.graph.get_segment(segment_id)
        if segment is None:
            return ResolutionReport(errors=[f"Segment not found: {segment_id}"])
        report = ResolutionReport(wall_id=segment.wall_id)
        self._resolve([segment_id], segment.wall_id, report)
        return report

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _resolve(
        self, segment_ids: list[str], wall_id: Optional[str], report: ResolutionReport
    ) -> None:
        queue = deque(segment_ids)
        skipped: set[frozenset[str]] = set()
        iterations = 0

        while queue:
            iterations += 1
            if iterations > MAX_ITERATIONS:
                report.errors.append("Iteration limit reached; remaining crossings left unresolved")
                logger.warning("Intersection resolution for %s hit the iteration limit", wall_id)
                return

            segment = self.graph.get_segment(queue.popleft())
            if segment is None:
                continue

            crossing = self._first_crossing(segment, skipped, report)
            if crossing is None:
                continue

            pair = frozenset((segment.id, crossing.other_id))
            done = len(report.splits)
            try:
                pieces = self._apply(segment, crossing, report)
            except Exception as exc:
                skipped.add(pair)
                report.errors.append(f"{segment.id} x {crossing.other_id}: {exc}")
                logger.warning(
                    "Skipping crossing of %s and %s: %s", segment.id, crossing.other_id, exc,
                    exc_info=not isinstance(exc, GeometryError),
                )
                queue.appendleft(segment.id)
                continue

            # A queued segment of the same wall may have been split as the other side
            for record in report.splits[done:]:
                if record.original_segment_id != segment.id and record.original_segment_id in queue:
                    queue = self._replace_queued(queue, record.original_segment_id, record.new_segment_ids)
            # Pieces go back on the queue so later crossings along them are found
            queue.extendleft(reversed(pieces))

    @staticmethod
    def _replace_queued(queue: deque, old_id: str, new_ids: list[str]) -> deque:
        items = list(queue)
        index = items.index(old_id)
        return deque(items[:index] + list(new_ids) + items[index + 1:])

    def _first_crossing(
        self,
        segment: Segment,
        skipped: set[frozenset[str]],
        report: ResolutionReport,
    ) -> Optional[Crossing]:
        """Crossing closest to the start of segment, or None.

        Segments sharing a node with ``segment`` are never crossings, which
        covers adjacent links of the same stroke. Non-adjacent links of the
        same wall are tested like any other segment.
        """
        a1, a2 = self.graph.segment_coords(segment)
        eps = self.epsilon
        best: Optional[Crossing] = None

        for other in self.graph.get_all_segments():
            if other.id == segment.id or segment.touches(other):
                continue
            if frozenset((segment.id, other.id)) in skipped:
                continue

            b1, b2 = self.graph.segment_coords(other)
            try:
                hit = geometry.segment_intersection(a1, a2, b1, b2)
            except Exception as exc:
                skipped.add(frozenset((segment.id, other.id)))
                report.errors.append(f"{segment.id} x {other.id}: {exc}")
                logger.warning(
                    "Degenerate pair %s / %s: %s", segment.id, other.id, exc,
                    exc_info=not isinstance(exc, GeometryError),
                )
                continue
            if hit is None:
                continue

            point, t, _ = hit
            at_own_end = min(geometry.distance(point, a1), geometry.distance(point, a2)) < eps
            at_other_end = min(geometry.distance(point, b1), geometry.distance(point, b2)) < eps
            # Endpoints meeting endpoints are not crossings
            if at_own_end and at_other_end:
                continue
            if best is None or t < best.t:
                best = Crossing(other.id, point, t, at_own_end, at_other_end)
        return best

    def _apply(
        self, segment: Segment, crossing: Crossing, report: ResolutionReport
    ) -> list[str]:
        """Split both segments at the crossing; returns the pieces of ``segment``."""
        graph = self.graph
        other = graph.get_segment(crossing.other_id)
        point = crossing.point

        node = graph.find_node_near(point, self.epsilon)
        if node is None:
            if crossing.at_own_end or crossing.at_other_end:
                raise GeometryError(f"no node at endpoint crossing {point}")
            self._check_splittable(segment, point)
            self._check_splittable(other, point)
            node = graph.create_node(point[0], point[1], kind=NodeKind.INTERSECTION)
        else:
            if not crossing.at_own_end:
                self._check_splittable(segment, node.as_tuple())
            if not crossing.at_other_end:
                self._check_splittable(other, node.as_tuple())

        pieces = [segment.id]
        for target, at_end in ((other, crossing.at_other_end), (segment, crossing.at_own_end)):
            if at_end or node.id in (target.start_node_id, target.end_node_id):
                continue
            new_ids = graph.split_segment(target.id, node.id)
            if new_ids is None:
                raise GeometryError(f"could not split {target.id} at node {node.id}")
            report.splits.append(
                SplitRecord(original_segment_id=target.id, new_segment_ids=new_ids, node_id=node.id)
            )
            if target.id == segment.id:
                pieces = new_ids

        if node.id not in report.intersection_node_ids:
            report.intersection_node_ids.append(node.id)
        # A node produced by a crossing is an intersection even before a third segment arrives
        node.kind = NodeKind.INTERSECTION
        return pieces

    def _check_splittable(self, segment: Segment, point: tuple[float, float]) -> None:
        a, b = self.graph.segment_coords(segment)
        eps = self.epsilon
        if geometry.distance(a, point) < eps or geometry.distance(point, b) < eps:
            raise GeometryError(f"crossing {point} too close to an end of {segment.id}")
        if not geometry.point_on_segment(point, a, b, self.graph.config.snap_tolerance):
            raise GeometryError(f"crossing {point} is off segment {segment.id}")
