"""Magnetic-field service and transient tracks.

A `TransientTrack` is a view bound to one `Track` that can evaluate the
trajectory state closest (in the transverse plane) to an arbitrary point.
In a non-zero solenoidal field the trajectory is a helix around the z axis;
otherwise a straight line.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Protocol

from .models import Track, TrajectoryState, Vector3

# Curvature constant: pT [GeV] = 0.0029979 * B [T] * R [cm].
C_CURVATURE = 0.0029979245800

ORIGIN: Vector3 = (0.0, 0.0, 0.0)


class MagneticField(Protocol):
    """Field service queried at a space point."""

    def bz(self, point: Vector3) -> float:
        """Longitudinal field component (T) at `point`."""
        ...


@dataclass(frozen=True)
class UniformMagneticField:
    """Uniform solenoidal field along z."""

    bz_tesla: float = 3.8

    def bz(self, point: Vector3) -> float:
        return self.bz_tesla


@dataclass(frozen=True)
class Circle:
    """Transverse projection of a helix."""

    cx: float
    cy: float
    radius: float


class TransientTrack:
    """Track bound to the magnetic field, able to evaluate its state anywhere."""

    def __init__(self, track: Track, magnetic_field: MagneticField) -> None:
        self.track = track
        self.magnetic_field = magnetic_field
        self._bz = float(magnetic_field.bz(track.reference_point))
        # Rotation sense of the momentum around z: +1 counter-clockwise.
        self._sense = -1 if track.charge * self._bz > 0 else 1

    def __repr__(self) -> str:
        return f"TransientTrack({self.track.track_id!r}, charge={self.track.charge})"

    @property
    def charge(self) -> int:
        return self.track.charge

    @property
    def is_straight(self) -> bool:
        return self._bz == 0.0 or self.track.charge == 0

    def circle(self) -> Circle | None:
        """Transverse circle of the helix, `None` for straight trajectories."""
        t = self.track
        pt = t.pt
        if self.is_straight or pt == 0.0:
            return None
        radius = pt / (C_CURVATURE * abs(t.charge * self._bz))
        # Centre lies on the left of the momentum for counter-clockwise motion.
        cx = t.vx - self._sense * radius * t.py / pt
        cy = t.vy + self._sense * radius * t.px / pt
        return Circle(cx, cy, radius)

    def impact_point_state(self) -> TrajectoryState:
        """State closest to the nominal interaction point `(0, 0, 0)`."""
        return self.state_closest_to(ORIGIN)

    def state_closest_to(self, point: Vector3) -> TrajectoryState:
        """State at the transverse point of closest approach to `point`."""
        t = self.track
        pt = t.pt
        if pt == 0.0:
            return TrajectoryState.invalid()
        if self.is_straight:
            s = ((point[0] - t.vx) * t.px + (point[1] - t.vy) * t.py) / (pt * pt)
            position = (t.vx + s * t.px, t.vy + s * t.py, t.vz + s * t.pz)
            return TrajectoryState(valid=True, position=position, momentum=t.momentum)

        circle = self.circle()
        assert circle is not None
        dx = point[0] - circle.cx
        dy = point[1] - circle.cy
        dist = math.hypot(dx, dy)
        if dist == 0.0:
            return TrajectoryState.invalid()
        return self.state_at_transverse(
            circle.cx + circle.radius * dx / dist,
            circle.cy + circle.radius * dy / dist,
        )

    def state_at_transverse(self, x: float, y: float) -> TrajectoryState:
        """State at a transverse point assumed to lie on the helix circle.

        The helix is followed along the shorter arc, forwards or backwards.
        """
        t = self.track
        circle = self.circle()
        if circle is None:
            return self.state_closest_to((x, y, 0.0))
        r0x, r0y = t.vx - circle.cx, t.vy - circle.cy
        r1x, r1y = x - circle.cx, y - circle.cy
        alpha = math.atan2(r0x * r1y - r0y * r1x, r0x * r1x + r0y * r1y)
        # Signed transverse path length along the direction of motion.
        path = self._sense * alpha * circle.radius
        pt = t.pt
        z = t.vz + path * t.pz / pt
        cos_a, sin_a = math.cos(alpha), math.sin(alpha)
        momentum = (cos_a * t.px - sin_a * t.py, sin_a * t.px + cos_a * t.py, t.pz)
        return TrajectoryState(valid=True, position=(x, y, z), momentum=momentum)

    def anchored_at(self, state: TrajectoryState) -> "TransientTrack":
        """Same trajectory with its reference point moved to `state`."""
        px, py, pz = state.momentum
        vx, vy, vz = state.position
        track = replace(self.track, px=px, py=py, pz=pz, vx=vx, vy=vy, vz=vz)
        return TransientTrack(track, self.magnetic_field)
