"""Unit tests for track preselection and opposite-charge pair generation."""

from __future__ import annotations

import math
import unittest
from dataclasses import replace

from v0fitter import ReferencePosition, Track, TransientTrack, UniformMagneticField, V0Fitter, V0FitterConfig
from v0fitter.physics import impact_parameter_significances

NO_FIELD = UniformMagneticField(0.0)


def _cov3(scale: float = 0.01):
    """Build a diagonal 3x3 covariance."""
    return ((scale, 0.0, 0.0), (0.0, scale, 0.0), (0.0, 0.0, scale))


def _origin() -> ReferencePosition:
    """Untilted beam spot at the origin."""
    return ReferencePosition(x=0.0, y=0.0, z=0.0, cov3=_cov3())


def _good_track(track_id: str = "t", charge: int = 1) -> Track:
    """Track passing every default preselection cut.

    Transverse impact parameter ~0.196 cm with 0.01 cm error.
    """
    return Track(
        track_id=track_id,
        charge=charge,
        px=1.0,
        py=0.2,
        pz=0.0,
        vx=1.0,
        vy=0.0,
        vz=0.0,
        chi2=5.0,
        ndof=10.0,
        n_valid_hits=10,
        dxy_error=0.01,
        dz_error=0.01,
    )


class TestTrackPreselection(unittest.TestCase):
    """Validate each preselection cut and the returned index bookkeeping."""

    def _preselect(self, tracks, config=None, reference=None):
        finder = V0Fitter(config=config or V0FitterConfig(), magnetic_field=NO_FIELD)
        return finder.preselect_tracks(tracks, reference or _origin())

    def test_good_track_is_kept_as_transient(self) -> None:
        """A good track is returned with its index and a transient view."""
        indices, transient = self._preselect([_good_track()])

        self.assertEqual(indices, [0])
        self.assertIsInstance(transient[0], TransientTrack)
        self.assertEqual(transient[0].track.track_id, "t")

    def test_each_cut_rejects_independently(self) -> None:
        """Failing any single threshold drops the track."""
        good = _good_track()
        failing = {
            "chi2": replace(good, chi2=200.0),
            "hits": replace(good, n_valid_hits=6),
            "pt": replace(good, px=0.3, py=0.06),
            "ipxy": replace(good, vx=0.0),
        }
        for name, track in failing.items():
            with self.subTest(cut=name):
                indices, transient = self._preselect([track])
                self.assertEqual(indices, [])
                self.assertEqual(transient, [])

    def test_longitudinal_significance_cut(self) -> None:
        """A positive `tk_ip_sig_z_cut` rejects tracks at the reference z."""
        indices, _ = self._preselect([_good_track()], config=V0FitterConfig(tk_ip_sig_z_cut=1.0))
        self.assertEqual(indices, [])

        displaced = replace(_good_track(), vz=1.0)
        indices, _ = self._preselect([displaced], config=V0FitterConfig(tk_ip_sig_z_cut=1.0))
        self.assertEqual(indices, [0])

    def test_hit_cut_is_inclusive(self) -> None:
        """Exactly `tk_nhits_cut` valid hits is enough."""
        indices, _ = self._preselect([replace(_good_track(), n_valid_hits=7)])
        self.assertEqual(indices, [0])

    def test_order_and_indices_follow_input(self) -> None:
        """Kept tracks keep input order and original indices."""
        good = _good_track()
        tracks = [
            replace(good, track_id="a"),
            replace(good, track_id="bad", n_valid_hits=1),
            replace(good, track_id="c", charge=-1),
        ]
        indices, transient = self._preselect(tracks)

        self.assertEqual(indices, [0, 2])
        self.assertEqual([t.track.track_id for t in transient], ["a", "c"])

    def test_zero_uncertainty_is_rejected_without_error(self) -> None:
        """Zero impact-parameter errors give undefined significances, not a crash."""
        tracks = [replace(_good_track(), dxy_error=0.0), replace(_good_track(), dz_error=0.0)]
        indices, _ = self._preselect(tracks)
        self.assertEqual(indices, [])

    def test_zero_ndof_uses_scaled_chi2(self) -> None:
        """Tracks with no degrees of freedom only pass with zero chi2."""
        self.assertEqual(replace(_good_track(), chi2=2.0, ndof=0.0).normalized_chi2, 2e6)

    def test_beam_spot_tilt_only_applies_without_vertex(self) -> None:
        """The beam-line formula uses the tilt; the vertex formula does not."""
        track = replace(_good_track(), px=0.0, py=1.0, pz=0.0, vx=1.0, vy=0.0, vz=10.0)
        tilted = ReferencePosition(x=0.0, y=0.0, z=0.0, cov3=_cov3(), dxdz=0.1)

        sig_beam, _ = impact_parameter_significances(track, tilted, use_vertex=False)
        sig_point, sig_z = impact_parameter_significances(track, tilted, use_vertex=True)

        self.assertAlmostEqual(sig_beam, 0.0, places=9)
        self.assertAlmostEqual(sig_point, 100.0, places=9)
        self.assertAlmostEqual(sig_z, 1000.0, places=9)
        self.assertEqual(self._preselect([track], reference=tilted)[0], [])
        self.assertEqual(
            self._preselect([track], config=V0FitterConfig(use_vertex=True), reference=tilted)[0],
            [0],
        )

    def test_nan_significance_fails_comparison(self) -> None:
        """NaN significances come back from zero errors."""
        sig_xy, sig_z = impact_parameter_significances(
            replace(_good_track(), dxy_error=0.0, dz_error=0.0), _origin(), use_vertex=False
        )
        self.assertTrue(math.isnan(sig_xy))
        self.assertTrue(math.isnan(sig_z))


class TestPairGeneration(unittest.TestCase):
    """Validate canonical pair order and charge roles."""

    def test_pairs_are_opposite_charge_in_canonical_order(self) -> None:
        """Outer index ascending, inner index greater; same-charge skipped."""
        charges = [1, -1, 1, -1]
        transient = [
            TransientTrack(replace(_good_track(f"t{i}", q)), NO_FIELD) for i, q in enumerate(charges)
        ]
        indices = [10, 11, 12, 13]

        pairs = list(V0Fitter.iter_track_pairs(indices, transient))

        self.assertEqual(
            [(p.positive_index, p.negative_index) for p in pairs],
            [(10, 11), (10, 13), (12, 11), (12, 13)],
        )
        for pair in pairs:
            self.assertGreater(pair.positive.charge, 0)
            self.assertLess(pair.negative.charge, 0)

    def test_same_charge_tracks_give_no_pairs(self) -> None:
        """Only same-sign tracks produce nothing."""
        transient = [TransientTrack(_good_track(f"t{i}", -1), NO_FIELD) for i in range(3)]
        self.assertEqual(list(V0Fitter.iter_track_pairs([0, 1, 2], transient)), [])


if __name__ == "__main__":
    unittest.main()
