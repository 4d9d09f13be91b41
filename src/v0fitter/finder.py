"""V0 candidate finder: track selection, pair screening, vertex validation."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from .approach import closest_approach
from .composite import VertexQuality, build_candidates
from .config import FIDUCIAL_HALF_LENGTH, FIDUCIAL_RADIUS, V0FitterConfig
from .fitters import VertexFitter, make_vertex_fitter
from .models import (
    ClosestApproachResult,
    EventInput,
    FittedVertex,
    ReferencePosition,
    Track,
    TrackPair,
    V0Collections,
    Vector3,
)
from .physics import (
    add3,
    decay_significance,
    dot3,
    impact_parameter_significances,
    pointing_cosine,
    sub3,
    sum_cov3,
    transverse,
    two_body_mass,
)
from .transient import MagneticField, TransientTrack, UniformMagneticField

logger = logging.getLogger(__name__)


@dataclass
class V0Fitter:
    """Reconstruct K0S, Lambda and D0 candidates from opposite-charge track pairs.

    Configuration, field service and vertex-fitting strategy are fixed at
    construction; nothing is mutated while events are processed.
    """

    config: V0FitterConfig = field(default_factory=V0FitterConfig)
    magnetic_field: MagneticField = field(default_factory=UniformMagneticField)
    vertex_fitter: VertexFitter | None = None

    def __post_init__(self) -> None:
        if self.vertex_fitter is None:
            self.vertex_fitter = make_vertex_fitter(self.config)

    def reference_position(self, event: EventInput) -> ReferencePosition:
        """Beam spot, or the first primary vertex when `use_vertex` is set."""
        if not self.config.use_vertex:
            return event.beam_spot
        if not event.primary_vertices:
            raise ValueError(
                f"Event '{event.event_id}' has no primary vertex but use_vertex is enabled."
            )
        return event.primary_vertices[0]

    def preselect_tracks(
        self,
        tracks: Sequence[Track],
        reference: ReferencePosition,
        magnetic_field: MagneticField | None = None,
    ) -> tuple[list[int], list[TransientTrack]]:
        """Apply track-level quality and impact-parameter cuts.

        Returns the indices of the kept tracks in `tracks` and their
        transient tracks, both in input order.
        """
        cfg = self.config
        field_service = self.magnetic_field if magnetic_field is None else magnetic_field
        indices: list[int] = []
        transient: list[TransientTrack] = []
        for idx, t in enumerate(tracks):
            ipsig_xy, ipsig_z = impact_parameter_significances(t, reference, cfg.use_vertex)
            if (
                t.normalized_chi2 < cfg.tk_chi2_cut
                and t.n_valid_hits >= cfg.tk_nhits_cut
                and t.pt > cfg.tk_pt_cut
                and ipsig_xy > cfg.tk_ip_sig_xy_cut
                and ipsig_z > cfg.tk_ip_sig_z_cut
            ):
                indices.append(idx)
                transient.append(TransientTrack(t, field_service))
        return indices, transient

    @staticmethod
    def iter_track_pairs(
        indices: Sequence[int], transient: Sequence[TransientTrack]
    ) -> Iterator[TrackPair]:
        """Yield opposite-charge pairs in canonical (i < j) order."""
        for i in range(len(transient)):
            for j in range(i + 1, len(transient)):
                a, b = transient[i], transient[j]
                if a.charge > 0 and b.charge < 0:
                    yield TrackPair(indices[i], indices[j], a, b)
                elif a.charge < 0 and b.charge > 0:
                    yield TrackPair(indices[j], indices[i], b, a)

    def screen_pair(self, pair: TrackPair) -> ClosestApproachResult | None:
        """Closest-approach, fiducial-volume and loose mass preselection of a pair."""
        pos_state = pair.positive.impact_point_state()
        neg_state = pair.negative.impact_point_state()
        if not pos_state.valid or not neg_state.valid:
            logger.debug("pair %s rejected: invalid impact-point state", _pair_label(pair))
            return None

        approach = closest_approach(
            pair.positive.anchored_at(pos_state), pair.negative.anchored_at(neg_state)
        )
        if not approach.valid:
            logger.debug("pair %s rejected: closest approach failed", _pair_label(pair))
            return None
        dca = abs(approach.distance)
        if dca > self.config.tk_dca_cut:
            logger.debug("pair %s rejected: dca = %g", _pair_label(pair), dca)
            return None

        cx, cy, cz = approach.crossing_point
        if math.hypot(cx, cy) > FIDUCIAL_RADIUS or abs(cz) > FIDUCIAL_HALF_LENGTH:
            logger.debug("pair %s rejected: crossing point outside volume", _pair_label(pair))
            return None

        pos_cx = pair.positive.state_closest_to(approach.crossing_point)
        neg_cx = pair.negative.state_closest_to(approach.crossing_point)
        if not pos_cx.valid or not neg_cx.valid:
            logger.debug("pair %s rejected: invalid state at crossing point", _pair_label(pair))
            return None
        if dot3(pos_cx.momentum, neg_cx.momentum) < 0.0:
            # Informational only: back-to-back daughters are still kept.
            logger.debug("pair %s: momenta in opposite hemispheres", _pair_label(pair))

        mass = two_body_mass(pos_cx.momentum, neg_cx.momentum)
        if mass > self.config.m_pipi_cut:
            logger.debug("pair %s rejected: mPiPi = %g", _pair_label(pair), mass)
            return None
        return approach

    def fit_pair(self, pair: TrackPair) -> FittedVertex | None:
        """Vertex the pair with the configured strategy (positive track first)."""
        assert self.vertex_fitter is not None
        vertex = self.vertex_fitter.vertex([pair.positive, pair.negative])
        if not vertex.valid:
            logger.debug("pair %s rejected: invalid vertex", _pair_label(pair))
            return None
        return vertex

    def validate_vertex(
        self,
        pair: TrackPair,
        vertex: FittedVertex,
        reference: ReferencePosition,
        dca: float = math.nan,
    ) -> tuple[Vector3, Vector3, VertexQuality] | None:
        """Fit-quality, decay-significance and pointing-angle cuts.

        Returns the positive/negative daughter momenta at the vertex and the
        quality metrics, or `None` when the pair is rejected.
        """
        cfg = self.config
        label = _pair_label(pair)
        if not vertex.normalized_chi2 <= cfg.vtx_chi2_cut:
            logger.debug("pair %s rejected: vertex chi2/ndof = %g", label, vertex.normalized_chi2)
            return None

        total_cov = sum_cov3(reference.cov3, vertex.cov3)
        displacement = sub3(vertex.position, reference.position)
        length_xy, sig_xy = decay_significance(transverse(displacement), total_cov)
        if not sig_xy >= cfg.vtx_decay_sig_xy_cut:
            logger.debug("pair %s rejected: decay significance xy = %g", label, sig_xy)
            return None
        length_xyz, sig_xyz = decay_significance(displacement, total_cov)
        if not sig_xyz >= cfg.vtx_decay_sig_xyz_cut:
            logger.debug("pair %s rejected: decay significance xyz = %g", label, sig_xyz)
            return None

        daughters = self._daughter_tracks(pair, vertex)
        if daughters is None:
            logger.debug("pair %s rejected: refitted track missing", label)
            return None
        plus_state = daughters[0].state_closest_to(vertex.position)
        minus_state = daughters[1].state_closest_to(vertex.position)
        if not plus_state.valid or not minus_state.valid:
            logger.debug("pair %s rejected: invalid state at vertex", label)
            return None
        p_plus, p_minus = plus_state.momentum, minus_state.momentum
        total_p = add3(p_plus, p_minus)

        cos_xy = pointing_cosine(transverse(displacement), transverse(total_p))
        if not cos_xy >= cfg.cos_theta_xy_cut:
            logger.debug("pair %s rejected: cos theta xy = %g", label, cos_xy)
            return None
        cos_xyz = pointing_cosine(displacement, total_p)
        if not cos_xyz >= cfg.cos_theta_xyz_cut:
            logger.debug("pair %s rejected: cos theta xyz = %g", label, cos_xyz)
            return None

        quality = VertexQuality(
            dca=dca,
            decay_length_xy=length_xy,
            decay_sig_xy=sig_xy,
            decay_length_xyz=length_xyz,
            decay_sig_xyz=sig_xyz,
            cos_theta_xy=cos_xy,
            cos_theta_xyz=cos_xyz,
        )
        return p_plus, p_minus, quality

    def _daughter_tracks(
        self, pair: TrackPair, vertex: FittedVertex
    ) -> tuple[TransientTrack, TransientTrack] | None:
        """Refitted daughters when enabled and available, else the originals."""
        if not (self.config.effective_use_ref_tracks and len(vertex.refitted_tracks) > 1):
            return pair.positive, pair.negative
        positive = negative = None
        for tt in vertex.refitted_tracks:
            if tt.charge > 0:
                positive = tt
            elif tt.charge < 0:
                negative = tt
        if positive is None or negative is None:
            return None
        return positive, negative

    def fit_all(
        self, event: EventInput, magnetic_field: MagneticField | None = None
    ) -> V0Collections:
        """Run the full V0 reconstruction on one event."""
        out = V0Collections(event_id=event.event_id)
        if not event.tracks:
            return out
        reference = self.reference_position(event)
        indices, transient = self.preselect_tracks(event.tracks, reference, magnetic_field)
        logger.debug(
            "event %s: %d tracks, %d preselected",
            event.event_id,
            len(event.tracks),
            len(indices),
        )

        for pair in self.iter_track_pairs(indices, transient):
            approach = self.screen_pair(pair)
            if approach is None:
                continue
            vertex = self.fit_pair(pair)
            if vertex is None:
                continue
            validated = self.validate_vertex(pair, vertex, reference, dca=abs(approach.distance))
            if validated is None:
                continue
            p_plus, p_minus, quality = validated
            for family, candidate in build_candidates(
                self.config, pair, vertex, p_plus, p_minus, quality, event_id=event.event_id
            ):
                out.collection(family).append(candidate)

        logger.debug(
            "event %s: %d K0S, %d Lambda, %d D0 candidates",
            event.event_id,
            len(out.kshorts),
            len(out.lambdas),
            len(out.d0s),
        )
        return out

    def fit_events(
        self, events: Sequence[EventInput], magnetic_field: MagneticField | None = None
    ) -> list[V0Collections]:
        """Run `fit_all` on a list of events sharing one field service."""
        return [self.fit_all(event, magnetic_field) for event in events]


def _pair_label(pair: TrackPair) -> str:
    return f"({pair.positive.track.track_id}, {pair.negative.track.track_id})"
