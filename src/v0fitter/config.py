"""Immutable configuration snapshot for the V0 finder."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

from .pid import D0, FAMILIES, KSHORT, LAMBDA

# Detector volume containing the closest-approach point (cm).
FIDUCIAL_RADIUS = 120.0
FIDUCIAL_HALF_LENGTH = 300.0

# Option names as written in framework configuration files.
_OPTION_NAMES: dict[str, str] = {
    "useVertex": "use_vertex",
    "vertexFitter": "vertex_fitter",
    "useRefTracks": "use_ref_tracks",
    "tkChi2Cut": "tk_chi2_cut",
    "tkNHitsCut": "tk_nhits_cut",
    "tkPtCut": "tk_pt_cut",
    "tkIPSigXYCut": "tk_ip_sig_xy_cut",
    "tkIPSigZCut": "tk_ip_sig_z_cut",
    "tkDCACut": "tk_dca_cut",
    "mPiPiCut": "m_pipi_cut",
    "vtxChi2Cut": "vtx_chi2_cut",
    "vtxDecaySigXYCut": "vtx_decay_sig_xy_cut",
    "vtxDecaySigXYZCut": "vtx_decay_sig_xyz_cut",
    "cosThetaXYCut": "cos_theta_xy_cut",
    "cosThetaXYZCut": "cos_theta_xyz_cut",
    "kShortMassCut": "kshort_mass_cut",
    "lambdaMassCut": "lambda_mass_cut",
    "D0MassCut": "d0_mass_cut",
    "innerHitPosCut": "inner_hit_pos_cut",
}

_FAMILY_SWITCHES: dict[str, str] = {
    "doKShorts": KSHORT,
    "doLambdas": LAMBDA,
    "doD0s": D0,
}


@dataclass(frozen=True)
class V0FitterConfig:
    """Options resolved once when the finder is constructed.

    `families` is the set of enabled hypothesis families. `inner_hit_pos_cut`
    is carried for configuration compatibility and is not applied.
    """

    use_vertex: bool = False
    vertex_fitter: bool = True
    use_ref_tracks: bool = True
    families: frozenset[str] = frozenset(FAMILIES)

    tk_chi2_cut: float = 10.0
    tk_nhits_cut: int = 7
    tk_pt_cut: float = 0.35
    tk_ip_sig_xy_cut: float = 2.0
    tk_ip_sig_z_cut: float = -1.0

    tk_dca_cut: float = 1.0
    m_pipi_cut: float = 0.6

    vtx_chi2_cut: float = 7.0
    vtx_decay_sig_xy_cut: float = 10.0
    vtx_decay_sig_xyz_cut: float = -1.0

    cos_theta_xy_cut: float = -2.0
    cos_theta_xyz_cut: float = -2.0

    kshort_mass_cut: float = 0.07
    lambda_mass_cut: float = 0.05
    d0_mass_cut: float = 0.2

    inner_hit_pos_cut: float = 4.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "families", frozenset(self.families))
        unknown = sorted(f for f in self.families if f not in FAMILIES)
        if unknown:
            raise ValueError(
                f"Unknown V0 families {unknown}. Supported families: {', '.join(FAMILIES)}"
            )
        for name in ("kshort_mass_cut", "lambda_mass_cut", "d0_mass_cut"):
            if getattr(self, name) < 0.0:
                raise ValueError(f"Mass window '{name}' must be non-negative.")

    @property
    def effective_use_ref_tracks(self) -> bool:
        """Refitted tracks are only used with the Kalman-type fitter."""
        return self.use_ref_tracks and self.vertex_fitter

    def mass_cut(self, family: str) -> float:
        """Half-width of the mass window for a hypothesis family."""
        if family == KSHORT:
            return self.kshort_mass_cut
        if family == LAMBDA:
            return self.lambda_mass_cut
        if family == D0:
            return self.d0_mass_cut
        raise ValueError(f"Unknown V0 family '{family}'.")

    @classmethod
    def from_options(cls, options: Mapping[str, Any], base: "V0FitterConfig | None" = None) -> "V0FitterConfig":
        """Build a config from framework-style option names.

        Accepts the camelCase names (`tkChi2Cut`, `doLambdas`, ...) as well as
        the field names of this class. Options absent from the mapping keep
        the value from `base` (or the defaults).
        """
        base = base or cls()
        values: dict[str, Any] = {f.name: getattr(base, f.name) for f in fields(cls)}
        families = set(values["families"])
        field_names = set(values)
        for key, raw in options.items():
            if key in _FAMILY_SWITCHES:
                family = _FAMILY_SWITCHES[key]
                if _as_bool(raw, key):
                    families.add(family)
                else:
                    families.discard(family)
                continue
            name = _OPTION_NAMES.get(key, key)
            if name not in field_names:
                raise ValueError(f"Unknown V0 fitter option '{key}'.")
            if name == "families":
                families = _as_families(raw, key)
            elif name in ("use_vertex", "vertex_fitter", "use_ref_tracks"):
                values[name] = _as_bool(raw, key)
            elif name == "tk_nhits_cut":
                values[name] = int(raw)
            else:
                values[name] = float(raw)
        values["families"] = frozenset(families)
        return cls(**values)


def _as_families(value: Any, key: str) -> set[str]:
    """Coerce a family list or a comma-separated string into a set of names."""
    if isinstance(value, str):
        return {x.strip() for x in value.split(",") if x.strip()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return {str(x).strip() for x in value}
    raise ValueError(
        f"Option '{key}' must be a list or a comma-separated string, got {value!r}."
    )


def _as_bool(value: Any, key: str) -> bool:
    """Coerce a JSON/CLI option value into a bool."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
    raise ValueError(f"Option '{key}' must be a boolean, got {value!r}.")
