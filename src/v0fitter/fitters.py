"""Vertex-fitting services consumed by the V0 finder.

The finder only relies on the `VertexFitter` protocol. Two reference
strategies are provided so the package runs end to end:

- `KalmanVertexFitter`: iterated linear least-squares fit.
- `AdaptiveVertexFitter`: the same linearisation with soft track weights and
  deterministic annealing, robust against one badly measured track.

Both linearise each track as a straight line at its state closest to the
current vertex estimate and minimise the weighted perpendicular residuals.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol, Sequence

from .approach import closest_approach
from .config import V0FitterConfig
from .models import FittedVertex, Matrix3x3, Vector3
from .physics import invert_3x3, norm3, solve_3x3, sub3
from .transient import TransientTrack


class VertexFitter(Protocol):
    """External vertex-fitting service."""

    def vertex(self, tracks: Sequence[TransientTrack]) -> FittedVertex:
        """Fit a common vertex to an ordered list of transient tracks."""
        ...


@dataclass(frozen=True)
class _LinearizedTrack:
    """Straight-line approximation of a track around the vertex estimate."""

    point: Vector3
    projector: Matrix3x3
    weight: Matrix3x3


@dataclass
class KalmanVertexFitter:
    """Iterated linear vertex fit; optionally returns refitted tracks."""

    refit: bool = True
    max_iterations: int = 10
    tolerance: float = 1e-4

    def vertex(self, tracks: Sequence[TransientTrack]) -> FittedVertex:
        estimate = seed_position(tracks)
        if estimate is None:
            return FittedVertex(valid=False)
        solution = None
        for _ in range(self.max_iterations):
            lines = linearize(tracks, estimate)
            if lines is None:
                return FittedVertex(valid=False)
            solution = solve_weighted(lines, [1.0] * len(lines))
            if solution is None:
                return FittedVertex(valid=False)
            shift = norm3(sub3(solution[0], estimate))
            estimate = solution[0]
            if shift < self.tolerance:
                break
        assert solution is not None
        position, cov, chi2s = solution
        return _make_vertex(
            tracks,
            position=position,
            cov=cov,
            chi2=sum(chi2s),
            ndof=2.0 * len(tracks) - 3.0,
            refit=self.refit,
        )


@dataclass
class AdaptiveVertexFitter:
    """Vertex fit with annealed soft track weights.

    Each track gets `w = 1 / (1 + exp((chi2 - cutoff^2) / (2 T)))`, the
    temperature `T` decreasing geometrically from `t_initial` to 1.
    """

    cutoff: float = 3.0
    t_initial: float = 256.0
    ratio: float = 0.25
    iterations_per_step: int = 3

    def vertex(self, tracks: Sequence[TransientTrack]) -> FittedVertex:
        estimate = seed_position(tracks)
        if estimate is None:
            return FittedVertex(valid=False)
        weights = [1.0] * len(tracks)
        solution = None
        for temperature in self.temperatures():
            for _ in range(self.iterations_per_step):
                lines = linearize(tracks, estimate)
                if lines is None:
                    return FittedVertex(valid=False)
                solution = solve_weighted(lines, weights)
                if solution is None:
                    return FittedVertex(valid=False)
                estimate = solution[0]
                weights = [self.track_weight(c, temperature) for c in solution[2]]
        assert solution is not None
        position, cov, chi2s = solution
        return _make_vertex(
            tracks,
            position=position,
            cov=cov,
            chi2=sum(w * c for w, c in zip(weights, chi2s, strict=True)),
            ndof=2.0 * sum(weights) - 3.0,
            refit=False,
        )

    def temperatures(self) -> list[float]:
        out = []
        t = self.t_initial
        while t > 1.0:
            out.append(t)
            t *= self.ratio
        out.append(1.0)
        return out

    def track_weight(self, chi2: float, temperature: float) -> float:
        arg = (chi2 - self.cutoff * self.cutoff) / (2.0 * temperature)
        if arg > 700.0:
            return 0.0
        return 1.0 / (1.0 + math.exp(arg))


def make_vertex_fitter(config: V0FitterConfig) -> VertexFitter:
    """Select the fitting strategy once from the configuration."""
    if config.vertex_fitter:
        return KalmanVertexFitter(refit=config.use_ref_tracks)
    return AdaptiveVertexFitter()


def seed_position(tracks: Sequence[TransientTrack]) -> Vector3 | None:
    """Initial vertex estimate from the closest approach of the first two tracks."""
    if len(tracks) < 2:
        return None
    approach = closest_approach(tracks[0], tracks[1])
    if approach.valid:
        return approach.crossing_point
    n = len(tracks)
    return (
        sum(t.track.vx for t in tracks) / n,
        sum(t.track.vy for t in tracks) / n,
        sum(t.track.vz for t in tracks) / n,
    )


def linearize(tracks: Sequence[TransientTrack], estimate: Vector3) -> list[_LinearizedTrack] | None:
    """Straight-line approximations of all tracks around `estimate`."""
    out: list[_LinearizedTrack] = []
    for tt in tracks:
        state = tt.state_closest_to(estimate)
        if not state.valid:
            return None
        p = norm3(state.momentum)
        err_xy = tt.track.dxy_error
        err_z = tt.track.dz_error
        if p == 0.0 or not err_xy > 0.0 or not err_z > 0.0:
            return None
        u = tuple(c / p for c in state.momentum)
        projector = tuple(
            tuple((1.0 if i == j else 0.0) - u[i] * u[j] for j in range(3)) for i in range(3)
        )
        inv_var = (1.0 / (err_xy * err_xy), 1.0 / (err_xy * err_xy), 1.0 / (err_z * err_z))
        # P D P with D the diagonal inverse measurement variance.
        weight = tuple(
            tuple(sum(projector[i][k] * inv_var[k] * projector[k][j] for k in range(3)) for j in range(3))
            for i in range(3)
        )
        out.append(_LinearizedTrack(point=state.position, projector=projector, weight=weight))
    return out


def solve_weighted(
    lines: Sequence[_LinearizedTrack], weights: Sequence[float]
) -> tuple[Vector3, Matrix3x3, list[float]] | None:
    """Solve the normal equations; return `(position, covariance, per-track chi2)`."""
    ata = [[0.0, 0.0, 0.0], [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]]
    atb = [0.0, 0.0, 0.0]
    for line, w in zip(lines, weights, strict=True):
        for i in range(3):
            for j in range(3):
                ata[i][j] += w * line.weight[i][j]
                atb[i] += w * line.weight[i][j] * line.point[j]
    position = solve_3x3(ata, atb)
    cov = invert_3x3(ata)
    if position is None or cov is None:
        return None
    chi2s = []
    for line in lines:
        r = sub3(position, line.point)
        chi2s.append(sum(r[i] * line.weight[i][j] * r[j] for i in range(3) for j in range(3)))
    return position, cov, chi2s


def _make_vertex(
    tracks: Sequence[TransientTrack],
    position: Vector3,
    cov: Matrix3x3,
    chi2: float,
    ndof: float,
    refit: bool,
) -> FittedVertex:
    values = (*position, chi2, ndof, *(c for row in cov for c in row))
    if not all(math.isfinite(v) for v in values) or ndof <= 0.0:
        return FittedVertex(valid=False)
    refitted: tuple[TransientTrack, ...] = ()
    if refit:
        states = [tt.state_closest_to(position) for tt in tracks]
        if all(s.valid for s in states):
            refitted = tuple(tt.anchored_at(s) for tt, s in zip(tracks, states, strict=True))
    return FittedVertex(
        valid=True,
        position=position,
        cov3=cov,
        chi2=chi2,
        ndof=ndof,
        refitted_tracks=refitted,
    )
