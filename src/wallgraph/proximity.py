# src/wallgraph/proximity.py
"""Proximity merge detection between walls that nearly touch.

The detector owns no timer. A host calls ``tick(now)`` at its own cadence;
``tick`` runs ``scan`` once the configured interval has elapsed. Each scan
re-evaluates every visible wall pair (level-triggered):

* a pair is merged while its minimum segment-to-segment distance is strictly
  below the threshold and the walls share no node;
* a merged pair separates on the first scan where that no longer holds.

Merge types are taken from the closest segment pair:

============================  ===============================================
``parallel_overlap``          directions within ``parallel_angle_tolerance_deg``
                              and the projections overlap
``end_to_end``                near-parallel without overlap
``corner_touch``              within ``perpendicular_angle_tolerance_deg`` of 90°
``oblique``                   anything else
============================  ===============================================
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from wallgraph import geometry
from wallgraph.errors import ScanInProgressError
from wallgraph.events import EventKind
from wallgraph.graph import FloorPlanGraph
from wallgraph.models import (
    MergeStatistics,
    MergeType,
    Point,
    ProximityMerge,
    SegmentPairProximity,
    Wall,
)
from wallgraph.selection import SpatialQueryService

logger = logging.getLogger(__name__)


class MergeEventKind(str, Enum):
    CREATED = "created"
    SEPARATED = "separated"


@dataclass
class MergeEvent:
    kind: MergeEventKind
    merge: ProximityMerge
    at: Optional[float] = None


def merge_id(wall1_id: str, wall2_id: str) -> str:
    a, b = sorted((wall1_id, wall2_id))
    return f"merge_{a}_{b}"


class ProximityMergeDetector:
    def __init__(
        self,
        graph: FloorPlanGraph,
        queries: Optional[SpatialQueryService] = None,
        proximity_threshold: Optional[float] = None,
        scan_interval: Optional[float] = None,
    ) -> None:
        self.graph = graph
        self.queries = queries or SpatialQueryService(graph)
        cfg = graph.config
        self.proximity_threshold = (
            cfg.proximity_threshold if proximity_threshold is None else proximity_threshold
        )
        self.scan_interval = cfg.scan_interval if scan_interval is None else scan_interval
        self._active: dict[str, ProximityMerge] = {}
        self._enabled = False
        self._scanning = False
        self._next_due: Optional[float] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def scanning(self) -> bool:
        return self._scanning

    def set_proximity_threshold(self, threshold: float) -> None:
        if threshold <= 0:
            raise ValueError("proximity threshold must be positive")
        self.proximity_threshold = threshold

    def enable(self, interval: Optional[float] = None, now: Optional[float] = None) -> None:
        """Start periodic scanning; the first tick at or after ``now`` scans."""
        if interval is not None:
            if interval < 0:
                raise ValueError("scan interval must be >= 0")
            self.scan_interval = interval
        self._enabled = True
        self._next_due = now
        logger.debug("Proximity detection enabled (interval %.3fs)", self.scan_interval)

    def disable(self) -> list[MergeEvent]:
        """Stop scanning and drop every active merge at once."""
        self._enabled = False
        self._next_due = None
        return self.clear_all_merges()

    def clear_all_merges(self) -> list[MergeEvent]:
        cleared = list(self._active.values())
        self._active = {}
        events = [MergeEvent(MergeEventKind.SEPARATED, m) for m in cleared]
        for event in events:
            self._publish(event)
        return events

    def tick(self, now: Optional[float] = None) -> list[MergeEvent]:
        """Scan if enabled and due; otherwise do nothing."""
        if not self._enabled or self._scanning:
            return []
        now = time.monotonic() if now is None else now
        if self._next_due is not None and now < self._next_due:
            return []
        events = self.scan(now)
        if self._enabled:
            self._next_due = now + self.scan_interval
        return events

    # ------------------------------------------------------------------ #
    # Scanning
    # ------------------------------------------------------------------ #

    def scan(self, now: Optional[float] = None) -> list[MergeEvent]:
        """Re-evaluate all wall pairs and return separate/create transitions."""
        if self._scanning:
            raise ScanInProgressError("a proximity scan is already being applied")
        if not self._enabled:
            return []

        self._scanning = True
        try:
            current = self._measure_all()
            events: list[MergeEvent] = []
            for mid, merge in self._active.items():
                if mid not in current:
                    events.append(MergeEvent(MergeEventKind.SEPARATED, merge, now))
            for mid, merge in current.items():
                previous = self._active.get(mid)
                if previous is None:
                    events.append(MergeEvent(MergeEventKind.CREATED, merge, now))
                else:
                    # Ongoing merge: keep identity, refresh the measurements
                    self._active[mid] = previous.model_copy(
                        update={
                            "distance": merge.distance,
                            "merge_type": merge.merge_type,
                            "segment_pairs": merge.segment_pairs,
                        }
                    )

            # Records change as each event is delivered; a disable() from a
            # subscriber clears only merges whose creation was delivered
            delivered = []
            for event in events:
                if not self._enabled:
                    break
                if event.kind is MergeEventKind.SEPARATED:
                    self._active.pop(event.merge.id, None)
                else:
                    self._active[event.merge.id] = event.merge
                self._publish(event)
                delivered.append(event)
            return delivered
        finally:
            self._scanning = False

    def _measure_all(self) -> dict[str, ProximityMerge]:
        walls = [
            w for w in self.graph.get_all_walls()
            if w.visible and self.graph.get_segments_for_wall(w.id)
        ]
        connected = {w.id: set(self.queries.find_connected_walls(w.id)) for w in walls}

        found: dict[str, ProximityMerge] = {}
        for i, wall1 in enumerate(walls):
            for wall2 in walls[i + 1:]:
                # Shared nodes are a real connection, not a proximity artifact
                if wall2.id in connected[wall1.id]:
                    continue
                merge = self.check_wall_proximity(wall1, wall2)
                if merge is not None:
                    found[merge.id] = merge
        return found

    def check_wall_proximity(self, wall1: Wall, wall2: Wall) -> Optional[ProximityMerge]:
        """Merge record for the pair if any segments are closer than the threshold."""
        pairs: list[SegmentPairProximity] = []
        closest = None
        for seg1 in self.graph.get_segments_for_wall(wall1.id):
            a1, a2 = self.graph.segment_coords(seg1)
            for seg2 in self.graph.get_segments_for_wall(wall2.id):
                b1, b2 = self.graph.segment_coords(seg2)
                d = geometry.segment_distance(a1, a2, b1, b2)
                if d >= self.proximity_threshold:
                    continue
                pa, pb = geometry.closest_points(a1, a2, b1, b2)
                midpoint = Point(x=(pa[0] + pb[0]) / 2, y=(pa[1] + pb[1]) / 2)
                pairs.append(
                    SegmentPairProximity(
                        seg1_id=seg1.id, seg2_id=seg2.id, distance=d, merge_points=[midpoint]
                    )
                )
                if closest is None or d < closest[0]:
                    closest = (d, (a1, a2), (b1, b2))

        if closest is None:
            return None
        distance, seg_a, seg_b = closest
        return ProximityMerge(
            id=merge_id(wall1.id, wall2.id),
            wall1_id=wall1.id,
            wall2_id=wall2.id,
            distance=distance,
            merge_type=self.classify(seg_a, seg_b),
            segment_pairs=pairs,
        )

    def classify(self, seg_a, seg_b) -> MergeType:
        cfg = self.graph.config
        a1, a2 = seg_a
        b1, b2 = seg_b
        angle = geometry.acute_angle_between(a1, a2, b1, b2)
        if angle <= cfg.parallel_angle_tolerance_deg:
            overlap = max(
                geometry.projected_overlap(a1, a2, b1, b2),
                geometry.projected_overlap(b1, b2, a1, a2),
            )
            if overlap > cfg.intersection_epsilon:
                return MergeType.PARALLEL_OVERLAP
            return MergeType.END_TO_END
        if angle >= 90.0 - cfg.perpendicular_angle_tolerance_deg:
            return MergeType.CORNER_TOUCH
        return MergeType.OBLIQUE

    def _publish(self, event: MergeEvent) -> None:
        merge = event.merge
        if event.kind is MergeEventKind.CREATED:
            logger.info("Proximity merge created: %s (distance %.2f)", merge.id, merge.distance)
            self.graph.events.publish(EventKind.MERGE_CREATED, merge.id, event)
        else:
            logger.info("Proximity merge separated: %s", merge.id)
            self.graph.events.publish(EventKind.MERGE_SEPARATED, merge.id, event)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get_active_merges(self) -> list[ProximityMerge]:
        return list(self._active.values())

    def get_merge(self, wall1_id: str, wall2_id: str) -> Optional[ProximityMerge]:
        return self._active.get(merge_id(wall1_id, wall2_id))

    def are_walls_merged(self, wall1_id: str, wall2_id: str) -> bool:
        return self.get_merge(wall1_id, wall2_id) is not None

    def get_merged_walls(self, wall_id: str) -> list[str]:
        result = []
        for merge in self._active.values():
            if merge.wall1_id == wall_id:
                result.append(merge.wall2_id)
            elif merge.wall2_id == wall_id:
                result.append(merge.wall1_id)
        return result

    def statistics(self) -> MergeStatistics:
        merges = list(self._active.values())
        if not merges:
            return MergeStatistics()
        by_type: dict[str, int] = {}
        for merge in merges:
            by_type[merge.merge_type.value] = by_type.get(merge.merge_type.value, 0) + 1
        return MergeStatistics(
            total_merges=len(merges),
            average_distance=sum(m.distance for m in merges) / len(merges),
            merges_by_type=by_type,
        )
