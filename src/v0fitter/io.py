"""Input/output helpers for JSON inputs and tabular candidate export."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from .config import V0FitterConfig
from .models import EventInput, ReferencePosition, Track, V0Collections

_FAMILY_ATTRS = (("kshort", "kshorts"), ("lambda", "lambdas"), ("d0", "d0s"))


def load_events_json(path: str | Path) -> list[EventInput]:
    """Load multi-event input JSON into `EventInput` objects.

    Expected shape:
    {
      "events": [
        {"event_id": "...", "tracks": [...], "beam_spot": {...},
         "primary_vertices": [...]},
        ...
      ]
    }
    """
    data = _load_json(path)
    events_data = data.get("events")
    if not isinstance(events_data, list):
        raise ValueError("Events JSON must contain a list under key 'events'.")
    out: list[EventInput] = []
    for idx, event in enumerate(events_data):
        if not isinstance(event, dict):
            raise ValueError(f"Event entry at index {idx} must be an object.")
        event_id = str(event.get("event_id", f"evt{idx}"))
        tracks_data = event.get("tracks")
        if not isinstance(tracks_data, list):
            raise ValueError(f"Event '{event_id}' must contain a list under key 'tracks'.")
        beam_spot_data = event.get("beam_spot")
        if not isinstance(beam_spot_data, dict):
            raise ValueError(f"Event '{event_id}' must contain a 'beam_spot' object.")
        pvs_data = event.get("primary_vertices", event.get("pvs", []))
        if not isinstance(pvs_data, list):
            raise ValueError(f"Event '{event_id}' key 'primary_vertices' must be a list.")
        tracks = tuple(
            _parse_track_item(item=track_item, idx=tidx, context=f"event '{event_id}'")
            for tidx, track_item in enumerate(tracks_data)
        )
        beam_spot = _parse_reference_item(
            beam_spot_data, context=f"beam spot of event '{event_id}'", label="beamspot"
        )
        pvs = tuple(
            _parse_reference_item(
                pv_item,
                context=f"primary vertex {pidx} of event '{event_id}'",
                label=str(pv_item.get("pv_id", f"pv{pidx}")) if isinstance(pv_item, dict) else "",
                allow_tilt=False,
            )
            for pidx, pv_item in enumerate(pvs_data)
        )
        out.append(
            EventInput(event_id=event_id, tracks=tracks, beam_spot=beam_spot, primary_vertices=pvs)
        )
    return out


def load_config_json(path: str | Path, base: V0FitterConfig | None = None) -> V0FitterConfig:
    """Load finder options (framework-style names) from a JSON object.

    The options may sit at the top level or under key `"options"`.
    """
    data = _load_json(path)
    options = data.get("options", data)
    if not isinstance(options, dict):
        raise ValueError(f"Config JSON at {path} key 'options' must be an object.")
    return V0FitterConfig.from_options(options, base=base)


def write_candidates_table(path: str | Path, collections: Iterable[V0Collections]) -> None:
    """Write V0 candidates of all events into a Parquet/CSV/Pickle table."""
    pd = _require_pandas()
    df = pd.DataFrame(_candidate_rows(collections))
    out = Path(path)
    suffix = out.suffix.lower()
    if suffix == ".parquet":
        df.to_parquet(out, index=False)
    elif suffix in (".pkl", ".pickle"):
        df.to_pickle(out)
    elif suffix == ".csv":
        df.to_csv(out, index=False)
    else:
        raise ValueError(
            f"Unsupported output format '{suffix}'. Use .parquet, .csv, or .pkl"
        )


def _candidate_rows(collections: Iterable[V0Collections]) -> list[dict[str, Any]]:
    """Flatten candidates into DataFrame-ready row dictionaries."""
    rows: list[dict[str, Any]] = []
    for coll in collections:
        for family, attr in _FAMILY_ATTRS:
            for cand in getattr(coll, attr):
                row: dict[str, Any] = {
                    "event_id": cand.event_id if cand.event_id is not None else coll.event_id,
                    "family": family,
                    "name": cand.name,
                    "pdg_id": cand.pdg_id,
                    "mass": cand.mass,
                    "px": cand.p4.px,
                    "py": cand.p4.py,
                    "pz": cand.p4.pz,
                    "energy": cand.p4.e,
                    "pt": cand.p4.pt,
                    "vertex_x": cand.vertex[0],
                    "vertex_y": cand.vertex[1],
                    "vertex_z": cand.vertex[2],
                    "vertex_cov_xx": cand.vertex_cov3[0][0],
                    "vertex_cov_xy": cand.vertex_cov3[0][1],
                    "vertex_cov_xz": cand.vertex_cov3[0][2],
                    "vertex_cov_yy": cand.vertex_cov3[1][1],
                    "vertex_cov_yz": cand.vertex_cov3[1][2],
                    "vertex_cov_zz": cand.vertex_cov3[2][2],
                    "vertex_chi2": cand.vertex_chi2,
                    "vertex_ndof": cand.vertex_ndof,
                    "dca": cand.dca,
                    "decay_length_xy": cand.decay_length_xy,
                    "decay_sig_xy": cand.decay_sig_xy,
                    "decay_length_xyz": cand.decay_length_xyz,
                    "decay_sig_xyz": cand.decay_sig_xyz,
                    "cos_theta_xy": cand.cos_theta_xy,
                    "cos_theta_xyz": cand.cos_theta_xyz,
                }
                for idx, d in enumerate(cand.daughters, start=1):
                    row[f"dau{idx}_track_id"] = d.track_id
                    row[f"dau{idx}_track_index"] = d.track_index
                    row[f"dau{idx}_charge"] = d.charge
                    row[f"dau{idx}_hypothesis"] = d.hypothesis
                    row[f"dau{idx}_px"] = d.p4.px
                    row[f"dau{idx}_py"] = d.p4.py
                    row[f"dau{idx}_pz"] = d.p4.pz
                    row[f"dau{idx}_energy"] = d.p4.e
                rows.append(row)
    return rows


def _require_pandas():
    """Import pandas lazily and provide a clear installation hint on failure."""
    try:
        import pandas as pd  # type: ignore
    except ModuleNotFoundError as exc:
        raise ModuleNotFoundError(
            "pandas is required to write output tables. Install pandas and pyarrow."
        ) from exc
    return pd


def _parse_track_item(item: Any, idx: int, context: str) -> Track:
    """Parse one track dictionary into a `Track`."""
    if not isinstance(item, dict):
        raise ValueError(f"Track entry at index {idx} in {context} must be an object.")
    try:
        px, py, pz = _parse_vec3(item["momentum"], "momentum")
        vx, vy, vz = _parse_vec3(item.get("reference_point", [0.0, 0.0, 0.0]), "reference_point")
        return Track(
            track_id=str(item.get("track_id", f"trk{idx}")),
            charge=int(item["charge"]),
            px=px,
            py=py,
            pz=pz,
            vx=vx,
            vy=vy,
            vz=vz,
            chi2=float(item["chi2"]),
            ndof=float(item["ndof"]),
            n_valid_hits=int(item["n_valid_hits"]),
            dxy_error=float(item["dxy_error"]),
            dz_error=float(item["dz_error"]),
        )
    except KeyError as exc:
        raise ValueError(f"Track at index {idx} in {context} is missing field {exc}.") from exc


def _parse_reference_item(
    item: Any, context: str, label: str, allow_tilt: bool = True
) -> ReferencePosition:
    """Parse a beam-spot or primary-vertex dictionary into a `ReferencePosition`."""
    if not isinstance(item, dict):
        raise ValueError(f"Entry for {context} must be an object.")
    try:
        return ReferencePosition(
            x=float(item["x"]),
            y=float(item["y"]),
            z=float(item["z"]),
            cov3=_parse_cov3(item["cov3"]),
            dxdz=float(item.get("dxdz", 0.0)) if allow_tilt else 0.0,
            dydz=float(item.get("dydz", 0.0)) if allow_tilt else 0.0,
            label=label,
        )
    except KeyError as exc:
        raise ValueError(f"Entry for {context} is missing field {exc}.") from exc


def _parse_vec3(value: Any, name: str) -> tuple[float, float, float]:
    """Validate and convert a 3-element list."""
    if not isinstance(value, list) or len(value) != 3:
        raise ValueError(f"Track field '{name}' must be a list of 3 numbers.")
    return float(value[0]), float(value[1]), float(value[2])


def _parse_cov3(value: Any):
    """Validate and convert a nested list into a 3x3 covariance tuple."""
    if not isinstance(value, list) or len(value) != 3:
        raise ValueError("Covariance cov3 must be a 3x3 list.")
    rows: list[tuple[float, float, float]] = []
    for row in value:
        if not isinstance(row, list) or len(row) != 3:
            raise ValueError("Covariance cov3 must be a 3x3 list.")
        rows.append((float(row[0]), float(row[1]), float(row[2])))
    return (rows[0], rows[1], rows[2])


def _load_json(path: str | Path) -> dict[str, Any]:
    """Read and validate a JSON object document from disk."""
    raw = Path(path).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"JSON document at {path} must be an object.")
    return data
