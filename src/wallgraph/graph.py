# src/wallgraph/graph.py
"""In-memory node/segment/wall graph.

Entities live in id-keyed dicts and refer to each other only by id. Every
public mutation either completes fully or leaves the graph untouched, and
publishes one event per structural change on ``self.events``.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Union

from wallgraph import geometry
from wallgraph.config import EngineConfig
from wallgraph.events import EventBus, EventKind
from wallgraph.models import (
    GraphSummary,
    Node,
    NodeCleanupAnalysis,
    NodeKind,
    Segment,
    Wall,
    WallType,
)

logger = logging.getLogger(__name__)

# A node becomes an intersection once this many segments are attached
INTERSECTION_DEGREE = 3


class FloorPlanGraph:
    """Single source of truth for nodes, segments and walls."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.events = events or EventBus(history_size=self.config.event_history_size)
        self._nodes: dict[str, Node] = {}
        self._segments: dict[str, Segment] = {}
        self._walls: dict[str, Wall] = {}
        self._next_id = 1

    def _generate_id(self) -> str:
        new_id = f"id_{self._next_id}"
        self._next_id += 1
        return new_id

    # ------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------ #

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def get_segment(self, segment_id: str) -> Optional[Segment]:
        return self._segments.get(segment_id)

    def get_wall(self, wall_id: str) -> Optional[Wall]:
        return self._walls.get(wall_id)

    def get_all_nodes(self) -> list[Node]:
        return list(self._nodes.values())

    def get_all_segments(self) -> list[Segment]:
        return list(self._segments.values())

    def get_all_walls(self) -> list[Wall]:
        """All walls in creation order."""
        return list(self._walls.values())

    def get_connected_segments(self, node_id: str) -> list[Segment]:
        node = self._nodes.get(node_id)
        if node is None:
            return []
        return [self._segments[s] for s in sorted(node.connected_segments) if s in self._segments]

    def get_segments_for_wall(self, wall_id: str) -> list[Segment]:
        wall = self._walls.get(wall_id)
        if wall is None:
            return []
        return [self._segments[s] for s in wall.segment_ids if s in self._segments]

    def get_wall_node_ids(self, wall_id: str) -> list[str]:
        """Unique node ids touched by a wall's segments, in traversal order."""
        node_ids: dict[str, None] = {}
        for seg in self.get_segments_for_wall(wall_id):
            node_ids[seg.start_node_id] = None
            node_ids[seg.end_node_id] = None
        return list(node_ids)

    def segment_coords(
        self, segment: Segment
    ) -> tuple[tuple[float, float], tuple[float, float]]:
        start = self._nodes[segment.start_node_id]
        end = self._nodes[segment.end_node_id]
        return start.as_tuple(), end.as_tuple()

    def order_walls(self, wall_ids: Iterable[str]) -> list[str]:
        """Sort wall ids by creation order, dropping unknown ids."""
        wanted = set(wall_ids)
        return [wid for wid in self._walls if wid in wanted]

    # ------------------------------------------------------------------ #
    # Nodes
    # ------------------------------------------------------------------ #

    def create_node(self, x: float, y: float, kind: NodeKind = NodeKind.ENDPOINT) -> Node:
        node = Node(id=self._generate_id(), x=x, y=y, kind=kind)
        self._nodes[node.id] = node
        self.events.publish(EventKind.NODE_CREATED, node.id, node)
        return node

    def update_node(self, node_id: str, x: float, y: float) -> bool:
        """Move a node and recompute its segments; refused if a segment would collapse."""
        node = self._nodes.get(node_id)
        if node is None:
            return False

        eps = self.config.intersection_epsilon
        for seg in self.get_connected_segments(node_id):
            other = self._nodes[seg.other_node(node_id)]
            if geometry.distance((x, y), other.as_tuple()) < eps:
                return False

        node.x = x
        node.y = y
        for seg in self.get_connected_segments(node_id):
            self._recalculate_segment(seg)
        self.events.publish(EventKind.NODE_UPDATED, node.id, node)
        return True

    def delete_node(self, node_id: str) -> bool:
        """Delete a node together with every segment attached to it."""
        node = self._nodes.get(node_id)
        if node is None:
            return False
        for segment_id in sorted(node.connected_segments):
            self.delete_segment(segment_id)
        del self._nodes[node_id]
        self.events.publish(EventKind.NODE_REMOVED, node_id, node)
        return True

    def find_node_near(
        self, point: Sequence[float], tolerance: Optional[float] = None
    ) -> Optional[Node]:
        """Nearest node within tolerance of point (defaults to the intersection epsilon)."""
        tol = self.config.intersection_epsilon if tolerance is None else tolerance
        best: Optional[Node] = None
        best_dist = float("inf")
        for node in self._nodes.values():
            d = geometry.distance(node.as_tuple(), point)
            if d <= tol and d < best_dist:
                best, best_dist = node, d
        return best

    def _attach(self, node: Node, segment_id: str) -> None:
        node.connected_segments.add(segment_id)
        if len(node.connected_segments) >= INTERSECTION_DEGREE:
            node.kind = NodeKind.INTERSECTION

    # ------------------------------------------------------------------ #
    # Segments
    # ------------------------------------------------------------------ #

    def create_segment(
        self, start_node_id: str, end_node_id: str, wall_id: Optional[str] = None
    ) -> Optional[Segment]:
        """Create a segment; None for unknown or identical nodes, or a zero length."""
        if start_node_id == end_node_id:
            return None
        start = self._nodes.get(start_node_id)
        end = self._nodes.get(end_node_id)
        if start is None or end is None:
            return None
        wall = None
        if wall_id is not None:
            wall = self._walls.get(wall_id)
            if wall is None:
                return None

        length = geometry.distance(start.as_tuple(), end.as_tuple())
        if length < self.config.intersection_epsilon:
            return None

        segment = Segment(
            id=self._generate_id(),
            start_node_id=start_node_id,
            end_node_id=end_node_id,
            length=length,
            angle=geometry.angle(start.as_tuple(), end.as_tuple()),
            wall_id=wall_id,
        )
        self._segments[segment.id] = segment
        self._attach(start, segment.id)
        self._attach(end, segment.id)
        if wall is not None:
            wall.segment_ids.append(segment.id)
            wall.touch()
        self.events.publish(EventKind.SEGMENT_CREATED, segment.id, segment)
        return segment

    def _recalculate_segment(self, segment: Segment) -> None:
        start, end = self.segment_coords(segment)
        segment.length = geometry.distance(start, end)
        segment.angle = geometry.angle(start, end)

    def delete_segment(self, segment_id: str) -> bool:
        """Remove a segment; its nodes stay, possibly orphaned."""
        segment = self._segments.get(segment_id)
        if segment is None:
            return False
        for node_id in (segment.start_node_id, segment.end_node_id):
            node = self._nodes.get(node_id)
            if node is not None:
                node.connected_segments.discard(segment_id)
        if segment.wall_id is not None:
            wall = self._walls.get(segment.wall_id)
            if wall is not None and segment_id in wall.segment_ids:
                wall.segment_ids.remove(segment_id)
                wall.touch()
        del self._segments[segment_id]
        self.events.publish(EventKind.SEGMENT_REMOVED, segment_id, segment)
        return True

    def find_segment_containing(
        self,
        point: Sequence[float],
        tolerance: Optional[float] = None,
        exclude: Iterable[str] = (),
    ) -> Optional[Segment]:
        """First segment whose interior passes within tolerance of point."""
        tol = self.config.snap_tolerance if tolerance is None else tolerance
        skip = set(exclude)
        for segment in self._segments.values():
            if segment.id in skip:
                continue
            a, b = self.segment_coords(segment)
            if geometry.distance(point, a) <= tol or geometry.distance(point, b) <= tol:
                continue
            if geometry.point_on_segment(point, a, b, tol):
                return segment
        return None

    def split_segment(self, segment_id: str, node_id: str) -> Optional[list[str]]:
        """Replace a segment by two pieces meeting at an existing node.

        The pieces inherit the owner wall and take the original's place in
        the wall's segment order. Returns the new ids (start side first), or
        None if the node is not strictly inside the segment.
        """
        segment = self._segments.get(segment_id)
        node = self._nodes.get(node_id)
        if segment is None or node is None:
            return None
        if node_id in (segment.start_node_id, segment.end_node_id):
            return None

        a, b = self.segment_coords(segment)
        p = node.as_tuple()
        eps = self.config.intersection_epsilon
        if not geometry.point_on_segment(p, a, b, self.config.snap_tolerance):
            return None
        if geometry.distance(a, p) < eps or geometry.distance(p, b) < eps:
            return None

        wall_id = segment.wall_id
        wall = self._walls.get(wall_id) if wall_id is not None else None
        position = wall.segment_ids.index(segment_id) if wall and segment_id in wall.segment_ids else None

        start_id, end_id = segment.start_node_id, segment.end_node_id
        self.delete_segment(segment_id)
        first = self.create_segment(start_id, node_id)
        second = self.create_segment(node_id, end_id)
        new_ids = [first.id, second.id]

        if wall is not None:
            first.wall_id = wall_id
            second.wall_id = wall_id
            if position is None:
                wall.segment_ids.extend(new_ids)
            else:
                wall.segment_ids[position:position] = new_ids
            wall.touch()
        logger.debug("Split segment %s at node %s into %s", segment_id, node_id, new_ids)
        return new_ids

    def subdivide_segment(
        self, segment_id: str, point: Sequence[float]
    ) -> Optional[list[str]]:
        """Insert a new intersection node at point and split the segment there."""
        segment = self._segments.get(segment_id)
        if segment is None:
            return None
        a, b = self.segment_coords(segment)
        eps = self.config.intersection_epsilon
        if not geometry.point_on_segment(point, a, b, self.config.snap_tolerance):
            return None
        if geometry.distance(a, point) < eps or geometry.distance(point, b) < eps:
            return None
        node = self.create_node(point[0], point[1], kind=NodeKind.INTERSECTION)
        return self.split_segment(segment_id, node.id)

    # ------------------------------------------------------------------ #
    # Collinear node cleanup
    # ------------------------------------------------------------------ #

    def node_cleanup_analysis(self, node_id: str) -> NodeCleanupAnalysis:
        node = self._nodes.get(node_id)
        if node is None:
            return NodeCleanupAnalysis(
                can_cleanup=False, reason="Node not found", connected_segments=0
            )

        count = len(node.connected_segments)
        if count != 2:
            if count > 2:
                reason = "Node connects to more than 2 segments"
            elif count == 1:
                reason = "Node is at the end of a segment"
            else:
                reason = "Node has no connected segments"
            return NodeCleanupAnalysis(
                can_cleanup=False, reason=reason, connected_segments=count
            )

        seg1, seg2 = self.get_connected_segments(node_id)
        collinear = self._segments_collinear(seg1, seg2)
        if not collinear:
            return NodeCleanupAnalysis(
                can_cleanup=False,
                reason="Segments are not collinear",
                connected_segments=count,
                segments_collinear=False,
            )
        if seg1.wall_id and seg2.wall_id and seg1.wall_id != seg2.wall_id:
            return NodeCleanupAnalysis(
                can_cleanup=False,
                reason="Segments belong to different walls",
                connected_segments=count,
                segments_collinear=True,
            )
        if self._folds_back(node_id, seg1, seg2):
            return NodeCleanupAnalysis(
                can_cleanup=False,
                reason="Segments fold back on each other",
                connected_segments=count,
                segments_collinear=True,
            )
        return NodeCleanupAnalysis(
            can_cleanup=True,
            reason="Node can be cleaned up - segments are collinear",
            connected_segments=count,
            segments_collinear=True,
        )

    def _folds_back(self, node_id: str, seg1: Segment, seg2: Segment) -> bool:
        n = self._nodes[node_id]
        a = self._nodes[seg1.other_node(node_id)]
        b = self._nodes[seg2.other_node(node_id)]
        dot = (a.x - n.x) * (b.x - n.x) + (a.y - n.y) * (b.y - n.y)
        return dot >= 0

    def _segments_collinear(self, seg1: Segment, seg2: Segment) -> bool:
        a1, a2 = self.segment_coords(seg1)
        b1, b2 = self.segment_coords(seg2)
        tol = self.config.collinear_tolerance
        return geometry.are_points_collinear(a1, a2, b1, tol) and geometry.are_points_collinear(
            a1, a2, b2, tol
        )

    def merge_segments_at_node(self, node_id: str) -> Optional[str]:
        """Merge the two collinear segments meeting at node_id and delete the node."""
        if not self.node_cleanup_analysis(node_id).can_cleanup:
            return None

        seg1, seg2 = self.get_connected_segments(node_id)
        # Keep the drawing direction of the segment that comes first in its wall
        wall_id = seg1.wall_id or seg2.wall_id
        wall = self._walls.get(wall_id) if wall_id else None
        if wall is not None and seg2.id in wall.segment_ids and seg1.id in wall.segment_ids:
            if wall.segment_ids.index(seg2.id) < wall.segment_ids.index(seg1.id):
                seg1, seg2 = seg2, seg1
        position = None
        if wall is not None:
            indices = [wall.segment_ids.index(s.id) for s in (seg1, seg2) if s.id in wall.segment_ids]
            position = min(indices) if indices else None

        start_id = seg1.other_node(node_id)
        end_id = seg2.other_node(node_id)
        self.delete_segment(seg1.id)
        self.delete_segment(seg2.id)
        node = self._nodes.pop(node_id)
        self.events.publish(EventKind.NODE_REMOVED, node_id, node)

        merged = self.create_segment(start_id, end_id)
        if wall is not None:
            merged.wall_id = wall.id
            if position is None:
                wall.segment_ids.append(merged.id)
            else:
                wall.segment_ids.insert(position, merged.id)
            wall.touch()
        logger.debug("Merged %s and %s at node %s into %s", seg1.id, seg2.id, node_id, merged.id)
        return merged.id

    def cleanup_node(self, node_id: str) -> Optional[str]:
        return self.merge_segments_at_node(node_id)

    def cleanup_all_nodes(self) -> dict[str, str]:
        """Run collinear cleanup over every node; maps removed node id -> merged segment id."""
        results: dict[str, str] = {}
        for node_id in list(self._nodes):
            if node_id not in self._nodes:
                continue
            merged = self.merge_segments_at_node(node_id)
            if merged is not None:
                results[node_id] = merged
        return results

    # ------------------------------------------------------------------ #
    # Walls
    # ------------------------------------------------------------------ #

    @staticmethod
    def _wall_type(value: Union[WallType, str]) -> Optional[WallType]:
        try:
            return WallType(value)
        except ValueError:
            return None

    def create_wall(
        self, wall_type: Union[WallType, str], segment_ids: Iterable[str] = ()
    ) -> Optional[Wall]:
        """Create a wall owning the given segments.

        Unknown segment ids are ignored. Returns None for an unknown wall type.
        """
        checked = self._wall_type(wall_type)
        if checked is None:
            return None
        wall = Wall(id=self._generate_id(), type=checked)
        self._walls[wall.id] = wall
        self._claim_segments(wall, segment_ids)
        logger.debug("Created %s wall %s with %d segments", wall.type.value, wall.id, len(wall.segment_ids))
        self.events.publish(EventKind.WALL_CREATED, wall.id, wall)
        return wall

    def _claim_segments(self, wall: Wall, segment_ids: Iterable[str]) -> None:
        for segment_id in segment_ids:
            segment = self._segments.get(segment_id)
            if segment is None or segment_id in wall.segment_ids:
                continue
            if segment.wall_id is not None and segment.wall_id != wall.id:
                previous = self._walls.get(segment.wall_id)
                if previous is not None and segment_id in previous.segment_ids:
                    previous.segment_ids.remove(segment_id)
                    previous.touch()
            segment.wall_id = wall.id
            wall.segment_ids.append(segment_id)

    def update_wall(
        self,
        wall_id: str,
        wall_type: Union[WallType, str, None] = None,
        visible: Optional[bool] = None,
    ) -> bool:
        wall = self._walls.get(wall_id)
        if wall is None:
            return False
        if wall_type is not None:
            checked = self._wall_type(wall_type)
            if checked is None:
                return False
            wall.type = checked
        if visible is not None:
            wall.visible = visible
        wall.touch()
        self.events.publish(EventKind.WALL_UPDATED, wall.id, wall)
        return True

    def add_segments_to_wall(self, wall_id: str, segment_ids: Iterable[str]) -> bool:
        wall = self._walls.get(wall_id)
        if wall is None:
            return False
        self._claim_segments(wall, segment_ids)
        wall.touch()
        self.events.publish(EventKind.WALL_UPDATED, wall.id, wall)
        return True

    def remove_segments_from_wall(self, wall_id: str, segment_ids: Iterable[str]) -> bool:
        wall = self._walls.get(wall_id)
        if wall is None:
            return False
        for segment_id in segment_ids:
            if segment_id in wall.segment_ids:
                wall.segment_ids.remove(segment_id)
            segment = self._segments.get(segment_id)
            if segment is not None and segment.wall_id == wall_id:
                segment.wall_id = None
        wall.touch()
        self.events.publish(EventKind.WALL_UPDATED, wall.id, wall)
        return True

    def delete_wall(self, wall_id: str, delete_segments: bool = False) -> bool:
        """Remove a wall record; its segments are released or deleted, nodes always stay."""
        wall = self._walls.get(wall_id)
        if wall is None:
            return False
        for segment_id in list(wall.segment_ids):
            if delete_segments:
                self.delete_segment(segment_id)
            else:
                segment = self._segments.get(segment_id)
                if segment is not None:
                    segment.wall_id = None
        del self._walls[wall_id]
        logger.debug("Deleted wall %s (segments deleted: %s)", wall_id, delete_segments)
        self.events.publish(EventKind.WALL_REMOVED, wall_id, wall)
        return True

    def find_walls_sharing_nodes(
        self, segment_ids: Iterable[str], exclude_wall_id: Optional[str] = None
    ) -> list[str]:
        node_ids: set[str] = set()
        for segment_id in segment_ids:
            segment = self._segments.get(segment_id)
            if segment is not None:
                node_ids.update((segment.start_node_id, segment.end_node_id))

        found: set[str] = set()
        for node_id in node_ids:
            for segment in self.get_connected_segments(node_id):
                if segment.wall_id and segment.wall_id != exclude_wall_id:
                    found.add(segment.wall_id)
        return self.order_walls(found)

    def merge_walls(self, target_wall_id: str, other_wall_ids: Iterable[str]) -> bool:
        """Move the segments of same-type walls into the target and delete them."""
        target = self._walls.get(target_wall_id)
        if target is None:
            return False
        changed = False
        for other_id in other_wall_ids:
            if other_id == target_wall_id:
                continue
            other = self._walls.get(other_id)
            if other is None or other.type != target.type:
                continue
            self._claim_segments(target, list(other.segment_ids))
            del self._walls[other_id]
            self.events.publish(EventKind.WALL_REMOVED, other_id, other)
            changed = True
        if changed:
            target.touch()
            self.events.publish(EventKind.WALL_UPDATED, target.id, target)
        return changed

    def unify_walls_of_type(self, wall_type: Union[WallType, str]) -> int:
        """Merge every node-connected group of walls of one type; returns walls removed."""
        wall_type = self._wall_type(wall_type)
        if wall_type is None:
            return 0
        parents: dict[str, str] = {
            w.id: w.id for w in self._walls.values() if w.type == wall_type
        }

        def find(x: str) -> str:
            while parents[x] != x:
                parents[x] = parents[parents[x]]
                x = parents[x]
            return x

        for node in self._nodes.values():
            touching = self.order_walls(
                s.wall_id for s in self.get_connected_segments(node.id)
                if s.wall_id in parents
            )
            for other in touching[1:]:
                ra, rb = find(touching[0]), find(other)
                if ra != rb:
                    parents[rb] = ra

        groups: dict[str, list[str]] = {}
        for wall_id in self.order_walls(parents):
            groups.setdefault(find(wall_id), []).append(wall_id)

        removed = 0
        for ids in groups.values():
            if len(ids) > 1 and self.merge_walls(ids[0], ids[1:]):
                removed += len(ids) - 1
        return removed

    # ------------------------------------------------------------------ #
    # Whole-graph operations
    # ------------------------------------------------------------------ #

    def summary(self) -> GraphSummary:
        return GraphSummary(
            node_count=len(self._nodes),
            segment_count=len(self._segments),
            wall_count=len(self._walls),
        )

    def clear(self) -> None:
        """Remove everything; one removal event per entity, walls first."""
        walls = list(self._walls.items())
        segments = list(self._segments.items())
        nodes = list(self._nodes.items())
        self._nodes.clear()
        self._segments.clear()
        self._walls.clear()
        self._next_id = 1
        for wall_id, wall in walls:
            self.events.publish(EventKind.WALL_REMOVED, wall_id, wall)
        for segment_id, segment in segments:
            self.events.publish(EventKind.SEGMENT_REMOVED, segment_id, segment)
        for node_id, node in nodes:
            self.events.publish(EventKind.NODE_REMOVED, node_id, node)
