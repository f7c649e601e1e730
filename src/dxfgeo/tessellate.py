from __future__ import annotations

import math
from typing import Sequence

Point2D = tuple[float, float]

SEGMENTS_PER_ARC = 24

_BULGE_EPSILON = 1.0e-12
_ANGLE_EPSILON = 1.0e-9


def tessellate_bulge(
    p0: Sequence[float],
    p1: Sequence[float],
    bulge: float,
    segments: int = SEGMENTS_PER_ARC,
) -> list[Point2D]:
    """Points of the arc segment from ``p0`` (excluded) to ``p1`` (included).

    The bulge is the tangent of a quarter of the included angle, so the arc
    spans ``4 * atan(bulge)``. Positive bulges sweep counter-clockwise.
    """
    x0, y0 = float(p0[0]), float(p0[1])
    x1, y1 = float(p1[0]), float(p1[1])
    theta = 4.0 * math.atan(bulge)
    if abs(bulge) < _BULGE_EPSILON or abs(theta) < _ANGLE_EPSILON:
        return [(x1, y1)]

    dx = x1 - x0
    dy = y1 - y0
    chord = math.hypot(dx, dy)
    radius = chord / (2.0 * math.sin(theta / 2.0))
    mx = (x0 + x1) / 2.0
    my = (y0 + y1) / 2.0
    alpha = math.atan2(dy, dx)
    # Signed distance from the chord midpoint to the centre.
    h = radius * math.cos(theta / 2.0)
    sign = math.copysign(1.0, bulge)
    cx = mx - h * math.sin(alpha) * sign
    cy = my + h * math.cos(alpha) * sign

    a0 = math.atan2(y0 - cy, x0 - cx)
    a1 = math.atan2(y1 - cy, x1 - cx)
    sweep = a1 - a0
    if sign > 0 and sweep < 0:
        a1 += 2.0 * math.pi
    if sign < 0 and sweep > 0:
        a1 -= 2.0 * math.pi

    segments = max(1, int(segments))
    points: list[Point2D] = []
    for i in range(1, segments + 1):
        a = a0 + (a1 - a0) * i / segments
        points.append((cx + radius * math.cos(a), cy + radius * math.sin(a)))
    return points


def tessellate_arc(
    center: Sequence[float],
    radius: float,
    start_angle: float,
    end_angle: float,
    segments: int = SEGMENTS_PER_ARC,
) -> list[Point2D]:
    """Uniform samples of a circular arc, angles in radians, endpoints included."""
    cx, cy = float(center[0]), float(center[1])
    segments = max(1, int(segments))
    sweep = end_angle - start_angle
    points: list[Point2D] = []
    for i in range(segments + 1):
        a = start_angle + sweep * (i / segments)
        points.append((cx + radius * math.cos(a), cy + radius * math.sin(a)))
    return points


def tessellate_ellipse(
    center: Sequence[float],
    major_axis: Sequence[float],
    ratio: float,
    start_param: float = 0.0,
    end_param: float = 2.0 * math.pi,
    segments: int = SEGMENTS_PER_ARC,
) -> list[Point2D]:
    cx, cy = float(center[0]), float(center[1])
    mx, my = float(major_axis[0]), float(major_axis[1])
    # Minor axis is the major axis rotated by +90 degrees and scaled.
    nx = -my * ratio
    ny = mx * ratio
    segments = max(1, int(segments))
    points: list[Point2D] = []
    for i in range(segments + 1):
        t = start_param + (end_param - start_param) * (i / segments)
        cos_t = math.cos(t)
        sin_t = math.sin(t)
        points.append((cx + mx * cos_t + nx * sin_t, cy + my * cos_t + ny * sin_t))
    return points
