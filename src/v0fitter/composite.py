"""Mass-hypothesis builder: daughter records and V0 candidate assembly.

The same fitted geometry and daughter momenta are interpreted under each
hypothesis of `V0_HYPOTHESES`. Every candidate's 4-momentum is the sum of its
two daughters' 4-momenta, so the invariant holds by construction.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from .config import V0FitterConfig
from .models import CompositeCandidate, Daughter, FittedVertex, TrackPair, Vector3
from .physics import momentum_to_lorentz, sum_lorentz
from .pid import V0_HYPOTHESES, V0Hypothesis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VertexQuality:
    """Geometric quality metrics of a validated pair, attached to candidates."""

    dca: float
    decay_length_xy: float
    decay_sig_xy: float
    decay_length_xyz: float
    decay_sig_xyz: float
    cos_theta_xy: float
    cos_theta_xyz: float


def lambda_baryon(p_plus: Vector3, p_minus: Vector3) -> str:
    """Which daughter is taken as the (anti)proton.

    The harder daughter is assumed to be the baryon; equal momenta select the
    anti-Lambda hypothesis.
    """
    p2_plus = p_plus[0] ** 2 + p_plus[1] ** 2 + p_plus[2] ** 2
    p2_minus = p_minus[0] ** 2 + p_minus[1] ** 2 + p_minus[2] ** 2
    return "positive" if p2_plus > p2_minus else "negative"


def active_hypotheses(
    config: V0FitterConfig, p_plus: Vector3, p_minus: Vector3
) -> list[V0Hypothesis]:
    """Hypotheses to evaluate for one pair, in emission order."""
    baryon = lambda_baryon(p_plus, p_minus)
    return [
        h
        for h in V0_HYPOTHESES
        if h.family in config.families and (h.baryon is None or h.baryon == baryon)
    ]


def make_daughters(
    hypothesis: V0Hypothesis,
    pair: TrackPair,
    vertex: Vector3,
    p_plus: Vector3,
    p_minus: Vector3,
) -> tuple[Daughter, Daughter]:
    """Daughter records at the hypothesis masses, in the hypothesis order."""
    positive = Daughter(
        charge=1,
        p4=momentum_to_lorentz(p_plus, hypothesis.positive.mass),
        vertex=vertex,
        hypothesis=hypothesis.positive.name,
        track_index=pair.positive_index,
        track_id=pair.positive.track.track_id,
    )
    negative = Daughter(
        charge=-1,
        p4=momentum_to_lorentz(p_minus, hypothesis.negative.mass),
        vertex=vertex,
        hypothesis=hypothesis.negative.name,
        track_index=pair.negative_index,
        track_id=pair.negative.track.track_id,
    )
    if hypothesis.positive_first:
        return positive, negative
    return negative, positive


def in_mass_window(mass: float, nominal: float, half_width: float) -> bool:
    """Open-interval mass window around a nominal mass."""
    return nominal - half_width < mass < nominal + half_width


def build_candidates(
    config: V0FitterConfig,
    pair: TrackPair,
    vertex: FittedVertex,
    p_plus: Vector3,
    p_minus: Vector3,
    quality: VertexQuality | None = None,
    event_id: str | None = None,
) -> list[tuple[str, CompositeCandidate]]:
    """Build every enabled hypothesis and keep those inside their mass window.

    Returns `(family, candidate)` tuples in emission order.
    """
    out: list[tuple[str, CompositeCandidate]] = []
    metrics = asdict(quality) if quality is not None else {}
    for hypothesis in active_hypotheses(config, p_plus, p_minus):
        daughters = make_daughters(hypothesis, pair, vertex.position, p_plus, p_minus)
        candidate = CompositeCandidate(
            name=hypothesis.name,
            pdg_id=hypothesis.pdg_id,
            p4=sum_lorentz(d.p4 for d in daughters),
            vertex=vertex.position,
            vertex_cov3=vertex.cov3,
            vertex_chi2=vertex.chi2,
            vertex_ndof=vertex.ndof,
            daughters=daughters,
            event_id=event_id,
            **metrics,
        )
        mass = candidate.mass
        if not in_mass_window(mass, hypothesis.nominal_mass, config.mass_cut(hypothesis.family)):
            logger.debug("%s rejected: mass %.5f outside window", hypothesis.name, mass)
            continue
        out.append((hypothesis.family, candidate))
    return out
