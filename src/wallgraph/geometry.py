# src/wallgraph/geometry.py
from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

import numpy as np
from shapely.geometry import LineString, Point as ShapelyPoint, box as shapely_box
from shapely.ops import nearest_points

from wallgraph.errors import GeometryError

Coord = tuple[float, float]

# Denominator below which two segment directions are treated as parallel
PARALLEL_EPSILON = 1e-9


def _cross(a: np.ndarray, b: np.ndarray) -> float:
    return float(a[0] * b[1] - a[1] * b[0])


def distance(p1: Sequence[float], p2: Sequence[float]) -> float:
    """Euclidean distance between two points."""
    return math.hypot(p2[0] - p1[0], p2[1] - p1[1])


def angle(p1: Sequence[float], p2: Sequence[float]) -> float:
    """Direction from p1 to p2 in radians."""
    return math.atan2(p2[1] - p1[1], p2[0] - p1[0])


def point_segment_distance(
    p: Sequence[float], a: Sequence[float], b: Sequence[float]
) -> float:
    """Distance from p to the closed segment ab (clamped projection)."""
    if distance(a, b) == 0:
        return distance(p, a)
    return LineString([tuple(a), tuple(b)]).distance(ShapelyPoint(p[0], p[1]))


def segment_distance(
    a1: Sequence[float], a2: Sequence[float], b1: Sequence[float], b2: Sequence[float]
) -> float:
    """Minimum distance between two segments (0 when they cross or touch)."""
    return LineString([tuple(a1), tuple(a2)]).distance(LineString([tuple(b1), tuple(b2)]))


def closest_points(
    a1: Sequence[float], a2: Sequence[float], b1: Sequence[float], b2: Sequence[float]
) -> tuple[Coord, Coord]:
    """Closest pair of points, first on segment a, second on segment b."""
    pa, pb = nearest_points(
        LineString([tuple(a1), tuple(a2)]), LineString([tuple(b1), tuple(b2)])
    )
    return (pa.x, pa.y), (pb.x, pb.y)


def segment_intersection(
    a1: Sequence[float],
    a2: Sequence[float],
    b1: Sequence[float],
    b2: Sequence[float],
) -> Optional[tuple[Coord, float, float]]:
    """Intersect segments a1a2 and b1b2.

    Returns ``(point, t, u)`` where ``point = a1 + t*(a2-a1) = b1 + u*(b2-b1)``
    and both parameters lie in [0, 1], or None for parallel or disjoint
    segments. Raises GeometryError when the arithmetic is not finite.
    """
    p = np.asarray(a1, dtype=float)
    r = np.asarray(a2, dtype=float) - p
    q = np.asarray(b1, dtype=float)
    s = np.asarray(b2, dtype=float) - q

    denom = _cross(r, s)
    if abs(denom) < PARALLEL_EPSILON:
        return None

    qp = q - p
    t = _cross(qp, s) / denom
    u = _cross(qp, r) / denom
    if not (math.isfinite(t) and math.isfinite(u)):
        raise GeometryError(f"non-finite intersection parameters t={t}, u={u}")

    if 0.0 <= t <= 1.0 and 0.0 <= u <= 1.0:
        point = p + t * r
        return (float(point[0]), float(point[1])), t, u
    return None


def point_on_segment(
    p: Sequence[float], a: Sequence[float], b: Sequence[float], tolerance: float
) -> bool:
    """True when p lies on segment ab within tolerance."""
    return point_segment_distance(p, a, b) <= tolerance


def segment_param(p: Sequence[float], a: Sequence[float], b: Sequence[float]) -> float:
    """Parameter of the projection of p onto the line through ab (0 at a, 1 at b)."""
    ab = np.asarray(b, dtype=float) - np.asarray(a, dtype=float)
    len_sq = float(np.dot(ab, ab))
    if len_sq == 0:
        return 0.0
    return float(np.dot(np.asarray(p, dtype=float) - np.asarray(a, dtype=float), ab)) / len_sq


def are_points_collinear(
    p1: Sequence[float], p2: Sequence[float], p3: Sequence[float], tolerance: float
) -> bool:
    """Collinearity via the area of the triangle p1 p2 p3."""
    area = abs(
        p1[0] * (p2[1] - p3[1]) + p2[0] * (p3[1] - p1[1]) + p3[0] * (p1[1] - p2[1])
    ) / 2
    return area <= tolerance


def acute_angle_between(
    a1: Sequence[float], a2: Sequence[float], b1: Sequence[float], b2: Sequence[float]
) -> float:
    """Angle between the two segment directions folded into [0, 90] degrees."""
    d = abs(math.degrees(angle(a1, a2) - angle(b1, b2))) % 180.0
    if d > 90.0:
        d = 180.0 - d
    return d


def projected_overlap(
    a1: Sequence[float], a2: Sequence[float], b1: Sequence[float], b2: Sequence[float]
) -> float:
    """Length of overlap of segment b projected onto segment a's direction."""
    length = distance(a1, a2)
    if length == 0:
        return 0.0
    t1 = segment_param(b1, a1, a2)
    t2 = segment_param(b2, a1, a2)
    lo, hi = max(0.0, min(t1, t2)), min(1.0, max(t1, t2))
    return max(0.0, hi - lo) * length


def normalize_rect(corner1: Sequence[float], corner2: Sequence[float]) -> tuple[Coord, Coord]:
    """Return (min corner, max corner) for two opposite corners in any order."""
    return (
        (min(corner1[0], corner2[0]), min(corner1[1], corner2[1])),
        (max(corner1[0], corner2[0]), max(corner1[1], corner2[1])),
    )


def segment_intersects_rect(
    a: Sequence[float],
    b: Sequence[float],
    top_left: Sequence[float],
    bottom_right: Sequence[float],
) -> bool:
    """True if segment ab lies inside or crosses the axis-aligned rectangle."""
    (minx, miny), (maxx, maxy) = normalize_rect(top_left, bottom_right)
    rect = shapely_box(minx, miny, maxx, maxy)
    if distance(a, b) == 0:
        return rect.intersects(ShapelyPoint(a[0], a[1]))
    return rect.intersects(LineString([tuple(a), tuple(b)]))


def bounding_box(points: Iterable[Sequence[float]]) -> Optional[tuple[Coord, Coord]]:
    """Axis-aligned bounds of a point set, or None when empty."""
    arr = np.array([(p[0], p[1]) for p in points], dtype=float)
    if arr.size == 0:
        return None
    mins = arr.min(axis=0)
    maxs = arr.max(axis=0)
    return (float(mins[0]), float(mins[1])), (float(maxs[0]), float(maxs[1]))
