"""Closest approach between two trajectories in the transverse plane.

For helices the transverse points are found from the circle geometry (circle
intersections, or the points on the line joining the centres when the
circles do not cross); the z coordinates follow from each helix. When both
trajectories are straight the 3D line/line solution is used.
"""

from __future__ import annotations

import math

from .models import ClosestApproachResult, Track
from .physics import dot3, norm3, scale3, sub3
from .transient import Circle, TransientTrack


def closest_approach(a: TransientTrack, b: TransientTrack) -> ClosestApproachResult:
    """Distance and crossing point (midpoint) of two trajectories."""
    circle_a = a.circle()
    circle_b = b.circle()
    if circle_a is None and circle_b is None:
        return _line_line(a.track, b.track)
    if circle_a is None or circle_b is None:
        return ClosestApproachResult(valid=False)

    candidates = transverse_points(circle_a, circle_b)
    if not candidates:
        return ClosestApproachResult(valid=False)

    best: ClosestApproachResult | None = None
    for (xa, ya), (xb, yb) in candidates:
        state_a = a.state_at_transverse(xa, ya)
        state_b = b.state_at_transverse(xb, yb)
        distance = norm3(sub3(state_a.position, state_b.position))
        if best is None or distance < best.distance:
            crossing = scale3(
                (
                    state_a.position[0] + state_b.position[0],
                    state_a.position[1] + state_b.position[1],
                    state_a.position[2] + state_b.position[2],
                ),
                0.5,
            )
            best = ClosestApproachResult(valid=True, distance=distance, crossing_point=crossing)
    assert best is not None
    return best


def transverse_points(
    ca: Circle, cb: Circle
) -> list[tuple[tuple[float, float], tuple[float, float]]]:
    """Candidate transverse closest-approach points `(point_on_a, point_on_b)`.

    Returns two candidates when the circles intersect, one otherwise, and none
    for concentric circles.
    """
    dx = cb.cx - ca.cx
    dy = cb.cy - ca.cy
    d = math.hypot(dx, dy)
    if d == 0.0:
        return []
    ux, uy = dx / d, dy / d
    ra, rb = ca.radius, cb.radius

    if abs(ra - rb) <= d <= ra + rb:
        along = (ra * ra - rb * rb + d * d) / (2.0 * d)
        h = math.sqrt(max(ra * ra - along * along, 0.0))
        bx, by = ca.cx + along * ux, ca.cy + along * uy
        p1 = (bx - h * uy, by + h * ux)
        p2 = (bx + h * uy, by - h * ux)
        return [(p1, p1), (p2, p2)]

    if d > ra + rb:
        pa = (ca.cx + ra * ux, ca.cy + ra * uy)
        pb = (cb.cx - rb * ux, cb.cy - rb * uy)
    elif ra > rb:
        pa = (ca.cx + ra * ux, ca.cy + ra * uy)
        pb = (cb.cx + rb * ux, cb.cy + rb * uy)
    else:
        pa = (ca.cx - ra * ux, ca.cy - ra * uy)
        pb = (cb.cx - rb * ux, cb.cy - rb * uy)
    return [(pa, pb)]


def _line_line(t1: Track, t2: Track) -> ClosestApproachResult:
    """Closest approach of two straight 3D track lines."""
    p1 = t1.reference_point
    p2 = t2.reference_point
    u = t1.momentum
    v = t2.momentum
    w0 = sub3(p1, p2)

    a = dot3(u, u)
    b = dot3(u, v)
    c = dot3(v, v)
    d = dot3(u, w0)
    e = dot3(v, w0)
    if a == 0.0 or c == 0.0:
        return ClosestApproachResult(valid=False)
    den = a * c - b * b

    if abs(den) < 1e-12 * a * c:
        # Parallel lines: project the first reference point on the second line.
        s = 0.0
        t = e / c
    else:
        s = (b * e - c * d) / den
        t = (a * e - b * d) / den
    q1 = (p1[0] + s * u[0], p1[1] + s * u[1], p1[2] + s * u[2])
    q2 = (p2[0] + t * v[0], p2[1] + t * v[1], p2[2] + t * v[2])
    crossing = scale3((q1[0] + q2[0], q1[1] + q2[1], q1[2] + q2[2]), 0.5)
    return ClosestApproachResult(valid=True, distance=norm3(sub3(q1, q2)), crossing_point=crossing)
