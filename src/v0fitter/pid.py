"""Particle-hypothesis helpers used in mass-assignment workflows.

Daughter hypotheses (pion, kaon, proton) give the rest mass assigned to a
track, and `V0_HYPOTHESES` lists the composite hypotheses built from one
positive/negative pair, in emission order.
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import ParticleHypothesis

_PION = ParticleHypothesis(name="pi", mass=0.13957018, pdg_id=211)
_KAON = ParticleHypothesis(name="K", mass=0.493667, pdg_id=321)
_PROTON = ParticleHypothesis(name="p", mass=0.938272046, pdg_id=2212)

PION_MASS = _PION.mass

KSHORT_MASS = 0.497614
LAMBDA_MASS = 1.115683
D0_MASS = 1.86484

KSHORT = "kshort"
LAMBDA = "lambda"
D0 = "d0"
FAMILIES: tuple[str, ...] = (KSHORT, LAMBDA, D0)


@dataclass(frozen=True)
class V0Hypothesis:
    """One composite hypothesis built from a positive/negative track pair.

    `positive_first` gives the daughter order of the candidate; `baryon` marks
    the Lambda-like hypotheses that compete through the momentum tie-break
    (`"positive"` means the positive track carries the baryon).
    """

    name: str
    pdg_id: int
    family: str
    nominal_mass: float
    positive: ParticleHypothesis
    negative: ParticleHypothesis
    positive_first: bool = True
    baryon: str | None = None


V0_HYPOTHESES: tuple[V0Hypothesis, ...] = (
    V0Hypothesis("KS0", 310, KSHORT, KSHORT_MASS, positive=_PION, negative=_PION),
    V0Hypothesis(
        "Lambda0", 3122, LAMBDA, LAMBDA_MASS, positive=_PROTON, negative=_PION, baryon="positive"
    ),
    V0Hypothesis(
        "Lambda0~",
        -3122,
        LAMBDA,
        LAMBDA_MASS,
        positive=_PION,
        negative=_PROTON,
        positive_first=False,
        baryon="negative",
    ),
    V0Hypothesis("D0", 421, D0, D0_MASS, positive=_PION, negative=_KAON),
    V0Hypothesis("D0~", -421, D0, D0_MASS, positive=_KAON, negative=_PION),
)
