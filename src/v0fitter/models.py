"""Core data models used by the V0 candidate finder.

This module defines:
- immutable input objects (`Track`, `ReferencePosition`, `EventInput`)
- ephemeral per-pair objects (`TrajectoryState`, `ClosestApproachResult`,
  `TrackPair`, `FittedVertex`)
- kinematics (`LorentzVector`, `ParticleHypothesis`)
- candidate outputs (`Daughter`, `CompositeCandidate`, `V0Collections`).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .transient import TransientTrack

Vector3 = tuple[float, float, float]
Matrix3x3 = tuple[tuple[float, float, float], tuple[float, float, float], tuple[float, float, float]]

ZERO_COV3: Matrix3x3 = ((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), (0.0, 0.0, 0.0))


@dataclass(frozen=True)
class Track:
    """Reconstructed charged-particle trajectory, read-only to the finder.

    The momentum `(px, py, pz)` is defined at the reference point
    `(vx, vy, vz)`, normally the point of closest approach to the beam line.
    Impact parameters are evaluated in the linear approximation around it.
    """

    track_id: str
    charge: int
    px: float
    py: float
    pz: float
    vx: float
    vy: float
    vz: float
    chi2: float
    ndof: float
    n_valid_hits: int
    dxy_error: float
    dz_error: float

    @property
    def momentum(self) -> Vector3:
        return self.px, self.py, self.pz

    @property
    def reference_point(self) -> Vector3:
        return self.vx, self.vy, self.vz

    @property
    def pt(self) -> float:
        """Transverse momentum."""
        return math.hypot(self.px, self.py)

    @property
    def normalized_chi2(self) -> float:
        """Fit chi2 per degree of freedom (`chi2 * 1e6` when `ndof == 0`)."""
        return self.chi2 / self.ndof if self.ndof != 0 else self.chi2 * 1e6

    def dxy(self, point: Vector3) -> float:
        """Signed transverse impact parameter w.r.t. a point."""
        pt = self.pt
        if pt == 0.0:
            return math.nan
        return (-(self.vx - point[0]) * self.py + (self.vy - point[1]) * self.px) / pt

    def dz(self, point: Vector3) -> float:
        """Longitudinal impact parameter w.r.t. a point."""
        pt = self.pt
        if pt == 0.0:
            return math.nan
        return (self.vz - point[2]) - (
            (self.vx - point[0]) * self.px + (self.vy - point[1]) * self.py
        ) / pt * (self.pz / pt)


@dataclass(frozen=True)
class ReferencePosition:
    """Beam-spot estimate or selected primary vertex for one event.

    `dxdz`/`dydz` describe the beam-line tilt and are zero for a primary
    vertex, which is a plain point.
    """

    x: float
    y: float
    z: float
    cov3: Matrix3x3
    dxdz: float = 0.0
    dydz: float = 0.0
    label: str = "beamspot"

    @property
    def position(self) -> Vector3:
        return self.x, self.y, self.z

    def position_at(self, z: float) -> Vector3:
        """Beam-line position at a given z."""
        return self.x + self.dxdz * (z - self.z), self.y + self.dydz * (z - self.z), z


@dataclass(frozen=True)
class EventInput:
    """One event payload: tracks, beam spot, and optional primary vertices."""

    event_id: str
    tracks: tuple[Track, ...]
    beam_spot: ReferencePosition
    primary_vertices: tuple[ReferencePosition, ...] = ()


@dataclass(frozen=True)
class TrajectoryState:
    """Track state (position and momentum) evaluated at some point of its path."""

    valid: bool
    position: Vector3 = (0.0, 0.0, 0.0)
    momentum: Vector3 = (0.0, 0.0, 0.0)

    @classmethod
    def invalid(cls) -> "TrajectoryState":
        return cls(valid=False)


@dataclass(frozen=True)
class ClosestApproachResult:
    """Outcome of a closest-approach computation between two trajectories."""

    valid: bool
    distance: float = math.nan
    crossing_point: Vector3 = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class TrackPair:
    """Opposite-charge track pair with fixed positive/negative roles."""

    positive_index: int
    negative_index: int
    positive: "TransientTrack"
    negative: "TransientTrack"


@dataclass(frozen=True)
class FittedVertex:
    """Result of an external vertex fit on a track pair."""

    valid: bool
    position: Vector3 = (0.0, 0.0, 0.0)
    cov3: Matrix3x3 = ZERO_COV3
    chi2: float = 0.0
    ndof: float = 0.0
    refitted_tracks: tuple["TransientTrack", ...] = ()

    @property
    def normalized_chi2(self) -> float:
        """Vertex chi2 per degree of freedom (`chi2 * 1e6` when `ndof == 0`)."""
        return self.chi2 / self.ndof if self.ndof != 0 else self.chi2 * 1e6

    @property
    def has_refitted_tracks(self) -> bool:
        return bool(self.refitted_tracks)


@dataclass(frozen=True)
class ParticleHypothesis:
    """Named particle hypothesis used to derive mass-dependent observables."""

    name: str
    mass: float
    pdg_id: int | None = None


@dataclass(frozen=True)
class LorentzVector:
    """Simple 4-vector with convenience properties and addition."""

    px: float
    py: float
    pz: float
    e: float

    def __add__(self, other: "LorentzVector") -> "LorentzVector":
        """Component-wise 4-vector addition."""
        return LorentzVector(
            self.px + other.px,
            self.py + other.py,
            self.pz + other.pz,
            self.e + other.e,
        )

    @property
    def p2(self) -> float:
        """Squared 3-momentum magnitude."""
        return self.px * self.px + self.py * self.py + self.pz * self.pz

    @property
    def pt(self) -> float:
        return math.hypot(self.px, self.py)

    @property
    def mass2(self) -> float:
        """Invariant mass squared."""
        return self.e * self.e - self.p2

    @property
    def mass(self) -> float:
        """Invariant mass with signed handling for small negative mass2 values."""
        m2 = self.mass2
        return m2**0.5 if m2 >= 0.0 else -((-m2) ** 0.5)


@dataclass(frozen=True)
class Daughter:
    """Charged daughter of a V0 candidate under one mass assignment.

    `track_index` points into the event's input track sequence; the daughter
    never owns the track itself.
    """

    charge: int
    p4: LorentzVector
    vertex: Vector3
    hypothesis: str
    track_index: int
    track_id: str


@dataclass(frozen=True)
class CompositeCandidate:
    """One accepted V0 candidate with its fitted vertex and two daughters."""

    name: str
    pdg_id: int
    p4: LorentzVector
    vertex: Vector3
    vertex_cov3: Matrix3x3
    vertex_chi2: float
    vertex_ndof: float
    daughters: tuple[Daughter, Daughter]
    dca: float = math.nan
    decay_length_xy: float = math.nan
    decay_sig_xy: float = math.nan
    decay_length_xyz: float = math.nan
    decay_sig_xyz: float = math.nan
    cos_theta_xy: float = math.nan
    cos_theta_xyz: float = math.nan
    charge: int = 0
    event_id: str | None = None

    @property
    def mass(self) -> float:
        return self.p4.mass


@dataclass
class V0Collections:
    """Per-event output: one append-only candidate list per family."""

    kshorts: list[CompositeCandidate] = field(default_factory=list)
    lambdas: list[CompositeCandidate] = field(default_factory=list)
    d0s: list[CompositeCandidate] = field(default_factory=list)
    event_id: str | None = None

    def collection(self, family: str) -> list[CompositeCandidate]:
        """Return the output list holding candidates of a family."""
        if family == "kshort":
            return self.kshorts
        if family == "lambda":
            return self.lambdas
        if family == "d0":
            return self.d0s
        raise ValueError(f"Unknown V0 family '{family}'.")

    def __len__(self) -> int:
        return len(self.kshorts) + len(self.lambdas) + len(self.d0s)
