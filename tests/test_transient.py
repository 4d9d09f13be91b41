"""Unit tests for helix/straight-line trajectory states."""

from __future__ import annotations

import math
import unittest

from v0fitter import Track, TransientTrack, UniformMagneticField
from v0fitter.transient import C_CURVATURE

FIELD = UniformMagneticField(3.8)


def _track(charge: int, momentum, reference=(0.0, 0.0, 0.0)) -> Track:
    return Track(
        track_id="t",
        charge=charge,
        px=momentum[0],
        py=momentum[1],
        pz=momentum[2],
        vx=reference[0],
        vy=reference[1],
        vz=reference[2],
        chi2=1.0,
        ndof=1.0,
        n_valid_hits=10,
        dxy_error=0.01,
        dz_error=0.01,
    )


class TestHelixStates(unittest.TestCase):
    """Validate circle geometry and propagation in a solenoidal field."""

    radius = 1.0 / (C_CURVATURE * 3.8)

    def test_positive_track_turns_clockwise(self) -> None:
        """q * Bz > 0 bends a +x track towards -y."""
        circle = TransientTrack(_track(1, (1.0, 0.0, 0.5)), FIELD).circle()
        assert circle is not None

        self.assertAlmostEqual(circle.cx, 0.0, places=9)
        self.assertAlmostEqual(circle.cy, -self.radius, places=9)
        self.assertAlmostEqual(circle.radius, self.radius, places=9)

    def test_negative_track_turns_counter_clockwise(self) -> None:
        circle = TransientTrack(_track(-1, (1.0, 0.0, 0.5)), FIELD).circle()
        assert circle is not None
        self.assertAlmostEqual(circle.cy, self.radius, places=9)

    def test_quarter_turn_state(self) -> None:
        """After a quarter turn the momentum is rotated and z advanced along the arc."""
        tt = TransientTrack(_track(1, (1.0, 0.0, 0.5)), FIELD)
        r = self.radius

        state = tt.state_closest_to((2.0 * r, -r, 0.0))

        self.assertTrue(state.valid)
        self.assertAlmostEqual(state.position[0], r, places=6)
        self.assertAlmostEqual(state.position[1], -r, places=6)
        self.assertAlmostEqual(state.position[2], 0.5 * r * math.pi / 2.0, places=6)
        self.assertAlmostEqual(state.momentum[0], 0.0, places=9)
        self.assertAlmostEqual(state.momentum[1], -1.0, places=9)
        self.assertAlmostEqual(state.momentum[2], 0.5, places=12)

    def test_backwards_propagation_along_shorter_arc(self) -> None:
        """Points behind the reference point give a negative path length."""
        tt = TransientTrack(_track(1, (1.0, 0.0, 0.5)), FIELD)
        r = self.radius

        state = tt.state_closest_to((-2.0 * r, -r, 0.0))

        self.assertAlmostEqual(state.position[0], -r, places=6)
        self.assertLess(state.position[2], 0.0)
        self.assertAlmostEqual(state.momentum[1], 1.0, places=9)

    def test_state_at_reference_point_is_unchanged(self) -> None:
        tt = TransientTrack(_track(-1, (0.3, 0.4, 1.0), reference=(1.0, 2.0, 3.0)), FIELD)

        state = tt.state_closest_to((1.0, 2.0, 3.0))

        for got, expected in zip(state.position, (1.0, 2.0, 3.0)):
            self.assertAlmostEqual(got, expected, places=9)
        for got, expected in zip(state.momentum, (0.3, 0.4, 1.0)):
            self.assertAlmostEqual(got, expected, places=12)

    def test_point_at_circle_centre_is_invalid(self) -> None:
        tt = TransientTrack(_track(1, (1.0, 0.0, 0.0)), FIELD)
        self.assertFalse(tt.state_closest_to((0.0, -self.radius, 0.0)).valid)

    def test_anchored_track_follows_same_helix(self) -> None:
        """Moving the reference point along the helix keeps the circle."""
        tt = TransientTrack(_track(1, (1.0, 0.2, 0.5)), FIELD)
        state = tt.state_closest_to((30.0, -20.0, 0.0))

        moved = tt.anchored_at(state)
        before = tt.circle()
        after = moved.circle()
        assert before is not None and after is not None

        self.assertEqual(moved.track.reference_point, state.position)
        self.assertAlmostEqual(before.cx, after.cx, places=6)
        self.assertAlmostEqual(before.cy, after.cy, places=6)
        self.assertAlmostEqual(before.radius, after.radius, places=9)


class TestStraightStates(unittest.TestCase):
    """Validate straight-line behaviour without field or without charge."""

    def test_zero_field_gives_straight_line(self) -> None:
        tt = TransientTrack(_track(1, (1.0, 1.0, 2.0)), UniformMagneticField(0.0))

        state = tt.state_closest_to((2.0, 0.0, 0.0))

        self.assertTrue(tt.is_straight)
        self.assertIsNone(tt.circle())
        for got, expected in zip(state.position, (1.0, 1.0, 2.0)):
            self.assertAlmostEqual(got, expected, places=12)
        self.assertEqual(state.momentum, (1.0, 1.0, 2.0))

    def test_neutral_track_is_straight_in_field(self) -> None:
        self.assertTrue(TransientTrack(_track(0, (1.0, 0.0, 0.0)), FIELD).is_straight)

    def test_zero_pt_has_no_state(self) -> None:
        for field in (FIELD, UniformMagneticField(0.0)):
            with self.subTest(bz=field.bz_tesla):
                tt = TransientTrack(_track(1, (0.0, 0.0, 3.0)), field)
                self.assertFalse(tt.impact_point_state().valid)


if __name__ == "__main__":
    unittest.main()
