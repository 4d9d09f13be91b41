"""Public package exports for the V0 candidate finder."""

from .approach import closest_approach
from .composite import build_candidates
from .config import V0FitterConfig
from .finder import V0Fitter
from .fitters import AdaptiveVertexFitter, KalmanVertexFitter, VertexFitter, make_vertex_fitter
from .models import (
    ClosestApproachResult,
    CompositeCandidate,
    Daughter,
    EventInput,
    FittedVertex,
    LorentzVector,
    ParticleHypothesis,
    ReferencePosition,
    Track,
    TrackPair,
    TrajectoryState,
    V0Collections,
)
from .pid import (
    D0,
    D0_MASS,
    KSHORT,
    KSHORT_MASS,
    LAMBDA,
    LAMBDA_MASS,
    V0_HYPOTHESES,
)
from .transient import MagneticField, TransientTrack, UniformMagneticField

__all__ = [
    "V0Fitter",
    "V0FitterConfig",
    "Track",
    "ReferencePosition",
    "EventInput",
    "TrajectoryState",
    "ClosestApproachResult",
    "TrackPair",
    "FittedVertex",
    "LorentzVector",
    "ParticleHypothesis",
    "Daughter",
    "CompositeCandidate",
    "V0Collections",
    "MagneticField",
    "UniformMagneticField",
    "TransientTrack",
    "VertexFitter",
    "KalmanVertexFitter",
    "AdaptiveVertexFitter",
    "make_vertex_fitter",
    "closest_approach",
    "build_candidates",
    "KSHORT",
    "LAMBDA",
    "D0",
    "KSHORT_MASS",
    "LAMBDA_MASS",
    "D0_MASS",
    "V0_HYPOTHESES",
]
