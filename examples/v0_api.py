"""Programmatic API example on a synthetic K0S -> pi+ pi- event.

Run from repository root without installation:
    PYTHONPATH=src python examples/v0_api.py
"""

from __future__ import annotations

import math
from pathlib import Path

from v0fitter import (
    KSHORT_MASS,
    EventInput,
    ReferencePosition,
    Track,
    UniformMagneticField,
    V0Fitter,
    V0FitterConfig,
)
from v0fitter.io import write_candidates_table
from v0fitter.physics import PION_MASS

DECAY_VERTEX = (3.0, 0.0, 1.0)


def synthetic_event(kshort_p: float = 2.0) -> EventInput:
    """K0S flying along x, decaying symmetrically at `DECAY_VERTEX`."""
    e_star = KSHORT_MASS / 2.0
    p_star = math.sqrt(e_star * e_star - PION_MASS * PION_MASS)
    px = kshort_p / KSHORT_MASS * e_star
    tracks = tuple(
        Track(
            track_id=f"pi{'+' if charge > 0 else '-'}",
            charge=charge,
            px=px,
            py=charge * p_star,
            pz=0.1,
            vx=DECAY_VERTEX[0],
            vy=DECAY_VERTEX[1],
            vz=DECAY_VERTEX[2],
            chi2=12.0,
            ndof=15.0,
            n_valid_hits=14,
            dxy_error=0.005,
            dz_error=0.01,
        )
        for charge in (1, -1)
    )
    beam_spot = ReferencePosition(
        x=0.0,
        y=0.0,
        z=0.0,
        cov3=((1e-6, 0.0, 0.0), (0.0, 1e-6, 0.0), (0.0, 0.0, 16.0)),
    )
    return EventInput(event_id="synthetic", tracks=tracks, beam_spot=beam_spot)


def main() -> int:
    """Reconstruct the synthetic event and write a parquet table."""
    finder = V0Fitter(
        config=V0FitterConfig(families=frozenset({"kshort", "lambda"})),
        magnetic_field=UniformMagneticField(3.8),
    )
    collections = finder.fit_events([synthetic_event()])
    for coll in collections:
        for cand in coll.kshorts + coll.lambdas:
            print(
                f"{coll.event_id}: {cand.name} mass={cand.mass:.4f} "
                f"Lxy={cand.decay_length_xy:.3f} cm sig={cand.decay_sig_xy:.1f}"
            )
    out_path = Path("examples/v0_output.parquet")
    write_candidates_table(out_path, collections)
    print(f"Wrote {sum(len(c) for c in collections)} candidates to {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
