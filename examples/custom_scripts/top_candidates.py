"""Example custom callback: rank K0S candidates and persist a top-N summary."""

from __future__ import annotations

import json
from pathlib import Path


def process(collections, context):
    """Sort K0S candidates by transverse decay significance and save the best three."""
    kshorts = [cand for coll in collections for cand in coll.kshorts]
    ranked = sorted(kshorts, key=lambda c: c.decay_sig_xy, reverse=True)
    payload = {
        "n_events": len(collections),
        "n_kshorts": len(kshorts),
        "top_candidates": [
            {
                "event_id": c.event_id,
                "track_ids": [d.track_id for d in c.daughters],
                "mass": c.mass,
                "pt": c.p4.pt,
                "decay_length_xy": c.decay_length_xy,
                "decay_sig_xy": c.decay_sig_xy,
                "vertex_chi2": c.vertex_chi2,
            }
            for c in ranked[:3]
        ],
    }
    out = Path(context["output_path"]).with_name("top_candidates.json")
    out.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(f"Wrote {out}")
