"""Command-line interface for running the V0 finder on event inputs."""

from __future__ import annotations

import argparse
import importlib.util
import logging
from pathlib import Path
from typing import Any

from .config import V0FitterConfig
from .finder import V0Fitter
from .io import load_config_json, load_events_json, write_candidates_table
from .models import V0Collections
from .transient import UniformMagneticField

logger = logging.getLogger(__name__)

_CUT_OPTIONS: tuple[tuple[str, type, str], ...] = (
    ("tk_chi2_cut", float, "Track preselection: maximum normalized chi2."),
    ("tk_nhits_cut", int, "Track preselection: minimum number of valid hits."),
    ("tk_pt_cut", float, "Track preselection: minimum pT."),
    ("tk_ip_sig_xy_cut", float, "Track preselection: minimum transverse IP significance."),
    ("tk_ip_sig_z_cut", float, "Track preselection: minimum longitudinal IP significance."),
    ("tk_dca_cut", float, "Maximum distance of closest approach between the two tracks."),
    ("m_pipi_cut", float, "Maximum two-pion mass at the crossing point."),
    ("vtx_chi2_cut", float, "Maximum vertex chi2/ndof."),
    ("vtx_decay_sig_xy_cut", float, "Minimum transverse decay-length significance."),
    ("vtx_decay_sig_xyz_cut", float, "Minimum 3D decay-length significance."),
    ("cos_theta_xy_cut", float, "Minimum transverse pointing-angle cosine."),
    ("cos_theta_xyz_cut", float, "Minimum 3D pointing-angle cosine."),
    ("kshort_mass_cut", float, "K0S mass-window half-width."),
    ("lambda_mass_cut", float, "Lambda mass-window half-width."),
    ("d0_mass_cut", float, "D0 mass-window half-width."),
)

_SWITCH_OPTIONS: tuple[tuple[str, str], ...] = (
    ("use_vertex", "Use the first primary vertex instead of the beam spot as reference."),
    ("vertex_fitter", "Kalman-type vertex fit (default) or, when disabled, adaptive fit."),
    ("use_ref_tracks", "Use refitted track momenta when the fit provides them."),
)


def build_parser() -> argparse.ArgumentParser:
    """Define and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="v0-fitter",
        description="Reconstruct K0S, Lambda and D0 candidates from opposite-charge track pairs.",
    )
    parser.add_argument("--events", required=True, help="Input JSON with key 'events'.")
    parser.add_argument(
        "--out",
        required=True,
        help="Output table file for candidates (.parquet, .csv, .pkl).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional JSON with finder options (tkChi2Cut, doLambdas, ...).",
    )
    parser.add_argument(
        "--bfield",
        type=float,
        default=3.8,
        help="Uniform solenoid field in Tesla (0 for straight-line tracks).",
    )
    parser.add_argument(
        "--families",
        type=str,
        default=None,
        help="Comma-separated enabled families among kshort,lambda,d0.",
    )
    for name, help_text in _SWITCH_OPTIONS:
        parser.add_argument(
            f"--{name.replace('_', '-')}",
            dest=name,
            action=argparse.BooleanOptionalAction,
            default=None,
            help=help_text,
        )
    for name, kind, help_text in _CUT_OPTIONS:
        parser.add_argument(f"--{name.replace('_', '-')}", dest=name, type=kind, default=None, help=help_text)
    parser.add_argument(
        "--custom-script",
        default=None,
        help="Path to Python file with process(collections, context) function.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Trace rejections at debug level.")
    return parser


def config_from_args(args: argparse.Namespace) -> V0FitterConfig:
    """Resolve the config file (if any) and command-line overrides."""
    config = load_config_json(args.config) if args.config else V0FitterConfig()
    overrides: dict[str, Any] = {}
    for name, _ in _SWITCH_OPTIONS:
        if getattr(args, name) is not None:
            overrides[name] = getattr(args, name)
    for name, _, _ in _CUT_OPTIONS:
        if getattr(args, name) is not None:
            overrides[name] = getattr(args, name)
    if args.families is not None:
        overrides["families"] = [x.strip() for x in args.families.split(",") if x.strip()]
    return V0FitterConfig.from_options(overrides, base=config)


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint: load inputs, run finder, write table, optional custom hook."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = config_from_args(args)
    logger.info("Configuration: %s", config)
    events = load_events_json(args.events)

    finder = V0Fitter(config=config, magnetic_field=UniformMagneticField(args.bfield))
    collections = finder.fit_events(events)
    logger.info(
        "Processed %d events: %d K0S, %d Lambda, %d D0 candidates",
        len(collections),
        sum(len(c.kshorts) for c in collections),
        sum(len(c.lambdas) for c in collections),
        sum(len(c.d0s) for c in collections),
    )
    write_candidates_table(args.out, collections)
    logger.info("Wrote %s", args.out)

    if args.custom_script:
        run_custom_script(
            script_path=args.custom_script,
            collections=collections,
            context={
                "events_path": args.events,
                "config": config,
                "bfield": args.bfield,
                "output_path": args.out,
            },
        )
    return 0


def run_custom_script(
    script_path: str, collections: list[V0Collections], context: dict[str, Any]
) -> None:
    """Execute user-supplied post-processing callback `process(collections, context)`."""
    module = _load_module(script_path)
    process = getattr(module, "process", None)
    if process is None or not callable(process):
        raise ValueError(
            f"Custom script {script_path} must define callable process(collections, context)."
        )
    process(collections, context)


def _load_module(script_path: str):
    """Import a Python module from an arbitrary file path."""
    path = Path(script_path)
    spec = importlib.util.spec_from_file_location(path.stem, path)
    if spec is None or spec.loader is None:
        raise ValueError(f"Cannot import custom script: {script_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


if __name__ == "__main__":
    raise SystemExit(main())
