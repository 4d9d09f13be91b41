"""Physics/math helpers for selecting tracks and validating V0 vertices."""

from __future__ import annotations

import math
from typing import Iterable

from .models import LorentzVector, Matrix3x3, ReferencePosition, Track, Vector3
from .pid import PION_MASS


def momentum_to_lorentz(momentum: Vector3, mass: float) -> LorentzVector:
    """Convert a 3-momentum plus mass hypothesis into a Lorentz 4-vector."""
    px, py, pz = momentum
    energy = math.sqrt(px * px + py * py + pz * pz + mass * mass)
    return LorentzVector(px=px, py=py, pz=pz, e=energy)


def sum_lorentz(vectors: Iterable[LorentzVector]) -> LorentzVector:
    """Sum an iterable of Lorentz vectors."""
    total = LorentzVector(0.0, 0.0, 0.0, 0.0)
    for vec in vectors:
        total = total + vec
    return total


def two_body_mass(p1: Vector3, p2: Vector3, m1: float = PION_MASS, m2: float = PION_MASS) -> float:
    """Invariant mass of two momenta under the given rest masses."""
    return (momentum_to_lorentz(p1, m1) + momentum_to_lorentz(p2, m2)).mass


def safe_ratio(num: float, den: float) -> float:
    """Return `num / den`, or NaN when the denominator vanishes.

    NaN fails every ordered comparison, so a cut written as `ratio > cut`
    rejects the degenerate case.
    """
    if den == 0.0 or not math.isfinite(den):
        return math.nan
    return num / den


def impact_parameter_significances(
    track: Track, reference: ReferencePosition, use_vertex: bool
) -> tuple[float, float]:
    """Return `(|dxy|/dxy_error, |dz|/dz_error)` of a track w.r.t. the reference.

    Without `use_vertex` the transverse impact parameter is computed w.r.t.
    the beam line at the track's z; otherwise w.r.t. the reference point.
    """
    if use_vertex:
        dxy = track.dxy(reference.position)
    else:
        dxy = track.dxy(reference.position_at(track.vz))
    dz = track.dz(reference.position)
    return safe_ratio(abs(dxy), track.dxy_error), safe_ratio(abs(dz), track.dz_error)


def decay_significance(displacement: Vector3, cov: Matrix3x3) -> tuple[float, float]:
    """Return `(length, length / sigma)` of a displacement under a covariance.

    `sigma = sqrt(v^T C v) / |v|`. Zero-length displacements and vanishing or
    negative projected variances give NaN significance.
    """
    length = norm3(displacement)
    if length == 0.0:
        return 0.0, math.nan
    similarity = similarity3(cov, displacement)
    if not similarity > 0.0:
        return length, math.nan
    sigma = math.sqrt(similarity) / length
    return length, safe_ratio(length, sigma)


def pointing_cosine(displacement: Vector3, momentum: Vector3) -> float:
    """Cosine of the angle between a displacement and a momentum (NaN if degenerate)."""
    return safe_ratio(dot3(displacement, momentum), norm3(displacement) * norm3(momentum))


def transverse(vec: Vector3) -> Vector3:
    """Copy of a vector with its z component zeroed."""
    return vec[0], vec[1], 0.0


def similarity3(cov: Matrix3x3, vec: Vector3) -> float:
    """Quadratic form `v^T C v`."""
    return sum(vec[i] * cov[i][j] * vec[j] for i in range(3) for j in range(3))


def sum_cov3(a: Matrix3x3, b: Matrix3x3) -> Matrix3x3:
    """Return element-wise sum of two 3x3 covariance matrices."""
    return (
        (a[0][0] + b[0][0], a[0][1] + b[0][1], a[0][2] + b[0][2]),
        (a[1][0] + b[1][0], a[1][1] + b[1][1], a[1][2] + b[1][2]),
        (a[2][0] + b[2][0], a[2][1] + b[2][1], a[2][2] + b[2][2]),
    )


def solve_3x3(a: list[list[float]], b: list[float]) -> Vector3 | None:
    """Solve 3x3 linear system by Gaussian elimination with pivoting."""
    m = [row[:] + [rhs] for row, rhs in zip(a, b, strict=True)]
    n = 3
    for col in range(n):
        pivot = max(range(col, n), key=lambda r: abs(m[r][col]))
        if abs(m[pivot][col]) < 1e-14:
            return None
        if pivot != col:
            m[col], m[pivot] = m[pivot], m[col]
        p = m[col][col]
        for j in range(col, n + 1):
            m[col][j] /= p
        for r in range(n):
            if r == col:
                continue
            factor = m[r][col]
            for j in range(col, n + 1):
                m[r][j] -= factor * m[col][j]
    return m[0][3], m[1][3], m[2][3]


def invert_3x3(a: list[list[float]]) -> Matrix3x3 | None:
    """Invert 3x3 matrix by Gaussian elimination."""
    m = [row[:] + [1.0 if i == j else 0.0 for j in range(3)] for i, row in enumerate(a)]
    n = 3
    for col in range(n):
        pivot = max(range(col, n), key=lambda r: abs(m[r][col]))
        if abs(m[pivot][col]) < 1e-14:
            return None
        if pivot != col:
            m[col], m[pivot] = m[pivot], m[col]
        p = m[col][col]
        for j in range(col, 2 * n):
            m[col][j] /= p
        for r in range(n):
            if r == col:
                continue
            factor = m[r][col]
            for j in range(col, 2 * n):
                m[r][j] -= factor * m[col][j]
    return (
        (m[0][3], m[0][4], m[0][5]),
        (m[1][3], m[1][4], m[1][5]),
        (m[2][3], m[2][4], m[2][5]),
    )


def dot3(a: Vector3, b: Vector3) -> float:
    """3D dot product."""
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def norm3(a: Vector3) -> float:
    """Euclidean norm of a 3D vector."""
    return math.sqrt(dot3(a, a))


def add3(a: Vector3, b: Vector3) -> Vector3:
    return a[0] + b[0], a[1] + b[1], a[2] + b[2]


def sub3(a: Vector3, b: Vector3) -> Vector3:
    return a[0] - b[0], a[1] - b[1], a[2] - b[2]


def scale3(a: Vector3, s: float) -> Vector3:
    return a[0] * s, a[1] * s, a[2] * s
