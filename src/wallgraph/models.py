# src/wallgraph/models.py
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WallType(str, Enum):
    LAYOUT = "layout"
    ZONE = "zone"
    AREA = "area"


# Thickness per wall type, in drawing units
WALL_THICKNESS: dict[WallType, float] = {
    WallType.LAYOUT: 350,
    WallType.ZONE: 250,
    WallType.AREA: 150,
}


class NodeKind(str, Enum):
    ENDPOINT = "endpoint"
    INTERSECTION = "intersection"


class MergeType(str, Enum):
    PARALLEL_OVERLAP = "parallel_overlap"
    END_TO_END = "end_to_end"
    CORNER_TOUCH = "corner_touch"
    OBLIQUE = "oblique"


class Point(BaseModel):
    x: float
    y: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


class Node(BaseModel):
    id: str
    x: float
    y: float
    connected_segments: set[str] = Field(default_factory=set)
    kind: NodeKind = NodeKind.ENDPOINT

    @property
    def is_orphaned(self) -> bool:
        return not self.connected_segments

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


class Segment(BaseModel):
    id: str
    start_node_id: str
    end_node_id: str
    length: float = Field(gt=0)
    angle: float = Field(description="Direction from start to end, radians")
    wall_id: Optional[str] = None

    def other_node(self, node_id: str) -> Optional[str]:
        """Return the opposite endpoint, or None if node_id is not an endpoint."""
        if node_id == self.start_node_id:
            return self.end_node_id
        if node_id == self.end_node_id:
            return self.start_node_id
        return None

    def touches(self, other: Segment) -> bool:
        """True when the two segments share an endpoint node."""
        return bool(
            {self.start_node_id, self.end_node_id}
            & {other.start_node_id, other.end_node_id}
        )


class Wall(BaseModel):
    id: str
    type: WallType
    segment_ids: list[str] = Field(default_factory=list)
    visible: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def thickness(self) -> float:
        return WALL_THICKNESS[self.type]

    @field_validator("segment_ids")
    @classmethod
    def dedupe_segment_ids(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    def touch(self) -> None:
        self.updated_at = utcnow()


class BoundingBox(BaseModel):
    top_left: Point
    bottom_right: Point

    @property
    def width(self) -> float:
        return self.bottom_right.x - self.top_left.x

    @property
    def height(self) -> float:
        return self.bottom_right.y - self.top_left.y


class WallHit(BaseModel):
    wall_id: str
    distance: float = Field(ge=0)


class WallInfo(BaseModel):
    wall: Wall
    segments: list[Segment]
    nodes: list[Node]
    total_length: float
    bounding_box: Optional[BoundingBox] = None


class DeletionImpact(BaseModel):
    can_delete: bool
    connected_walls: list[str] = Field(default_factory=list)
    orphaned_nodes: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class SplitRecord(BaseModel):
    original_segment_id: str
    new_segment_ids: list[str]
    node_id: str


class SegmentPairProximity(BaseModel):
    seg1_id: str
    seg2_id: str
    distance: float
    merge_points: list[Point] = Field(default_factory=list)


class ProximityMerge(BaseModel):
    id: str
    wall1_id: str
    wall2_id: str
    distance: float = Field(ge=0)
    merge_type: MergeType
    segment_pairs: list[SegmentPairProximity] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    def involves(self, wall_id: str) -> bool:
        return wall_id in (self.wall1_id, self.wall2_id)


class MergeStatistics(BaseModel):
    total_merges: int = 0
    average_distance: float = 0.0
    merges_by_type: dict[str, int] = Field(default_factory=dict)


class GraphSummary(BaseModel):
    node_count: int
    segment_count: int
    wall_count: int


class NodeCleanupAnalysis(BaseModel):
    can_cleanup: bool
    reason: str
    connected_segments: int
    segments_collinear: Optional[bool] = None


class ResolutionReport(BaseModel):
    wall_id: Optional[str] = None
    splits: list[SplitRecord] = Field(default_factory=list)
    intersection_node_ids: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors
