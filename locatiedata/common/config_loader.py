"""Dataset registry loading and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from locatiedata.common.constants import HEALTH, LIVABILITY, SAFETY, SOURCES
from locatiedata.common.errors import ConfigError
from locatiedata.common.fs import read_yaml
from locatiedata.common.schema import validate_demographics_config, validate_source_descriptor
from locatiedata.registry import DatasetConfig, DatasetRegistry, SourceAvailability


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Registry config not found: {path}")
    base = read_yaml(path) or {}
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if not overlay:
        return base
    return _deep_merge(base, overlay)


def _descriptor(source: str, cfg: dict) -> SourceAvailability:
    year_range = None
    years: tuple[int, ...] = ()
    if cfg.get("year_range") is not None:
        year_range = (int(cfg["year_range"]["start"]), int(cfg["year_range"]["end"]))
    else:
        years = tuple(int(year) for year in cfg["years"])
    return SourceAvailability(
        source=source,
        dataset_id=cfg["dataset_id"],
        base_url=cfg["base_url"],
        years=years,
        year_range=year_range,
        notes=cfg.get("notes") or "",
        warning=cfg.get("warning"),
    )


def build_registry(cfg: dict, *, allow_unknown: bool = False) -> DatasetRegistry:
    if not isinstance(cfg, dict):
        raise ConfigError("Registry config must be a mapping")
    missing = set(SOURCES) - set(cfg)
    if missing:
        raise ConfigError(f"Missing sources in registry config: {', '.join(sorted(missing))}")
    unknown = set(cfg) - set(SOURCES)
    if unknown and not allow_unknown:
        raise ConfigError(f"Unknown sources in registry config: {', '.join(sorted(unknown))}")

    demographics_cfg = validate_demographics_config(cfg["demographics"], allow_unknown=allow_unknown)
    demographics = {}
    for raw_year, entry in demographics_cfg["datasets"].items():
        year = int(raw_year)
        demographics[year] = DatasetConfig.for_year(year, entry["id"], entry["base_url"], entry.get("notes"))

    return DatasetRegistry(
        demographics=demographics,
        demographics_notes=demographics_cfg.get("notes") or "",
        health=_descriptor(HEALTH, validate_source_descriptor(cfg[HEALTH], HEALTH, allow_unknown=allow_unknown)),
        safety=_descriptor(SAFETY, validate_source_descriptor(cfg[SAFETY], SAFETY, allow_unknown=allow_unknown)),
        livability=_descriptor(
            LIVABILITY,
            validate_source_descriptor(cfg[LIVABILITY], LIVABILITY, allow_unknown=allow_unknown),
        ),
    )


def load_registry(
    path: Path,
    *,
    overlay_path: Path | None = None,
    allow_unknown: bool = False,
) -> DatasetRegistry:
    return build_registry(_load_yaml_with_overlay(path, overlay_path), allow_unknown=allow_unknown)
