"""Minimal strict schemas for dataset registry YAML validation."""

from __future__ import annotations

from locatiedata.common.errors import ConfigError

_DESCRIPTOR_REQUIRED = {"dataset_id", "base_url"}
_DESCRIPTOR_KNOWN = _DESCRIPTOR_REQUIRED | {"years", "year_range", "notes", "warning"}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_year(value: object, ctx: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{ctx} must be an integer year, got {value!r}")
    try:
        year = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{ctx} must be an integer year, got {value!r}") from exc
    if year < 1900 or year > 2100:
        raise ConfigError(f"{ctx} is out of range: {year}")
    return year


def validate_demographics_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, {"datasets"}, "demographics")
    _assert_no_unknown_keys(cfg, {"datasets", "notes"}, "demographics", allow_unknown)
    datasets = cfg["datasets"]
    if not isinstance(datasets, dict) or not datasets:
        raise ConfigError("demographics.datasets must be a non-empty mapping")

    ids: list[str] = []
    for raw_year, entry in datasets.items():
        ctx = f"demographics.datasets[{raw_year}]"
        year = _assert_year(raw_year, ctx)
        _assert_required_keys(entry, {"id", "base_url"}, ctx)
        _assert_no_unknown_keys(entry, {"id", "base_url", "period", "notes"}, ctx, allow_unknown)
        period = entry.get("period")
        if period is not None and period != f"{year}JJ00":
            raise ConfigError(f"{ctx}.period must be {year}JJ00, got {period}")
        ids.append(entry["id"])

    dupes = {dataset_id for dataset_id in ids if ids.count(dataset_id) > 1}
    if dupes:
        raise ConfigError(f"Duplicate demographics dataset ids: {', '.join(sorted(dupes))}")
    return cfg


def validate_source_descriptor(cfg: dict, source: str, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, _DESCRIPTOR_REQUIRED, source)
    _assert_no_unknown_keys(cfg, _DESCRIPTOR_KNOWN, source, allow_unknown)

    has_years = cfg.get("years") is not None
    has_range = cfg.get("year_range") is not None
    if has_years == has_range:
        raise ConfigError(f"{source} must define exactly one of years or year_range")

    if has_years:
        years = cfg["years"]
        if not isinstance(years, list) or not years:
            raise ConfigError(f"{source}.years must be a non-empty list")
        for idx, value in enumerate(years):
            _assert_year(value, f"{source}.years[{idx}]")
    else:
        _assert_required_keys(cfg["year_range"], {"start", "end"}, f"{source}.year_range")
        start = _assert_year(cfg["year_range"]["start"], f"{source}.year_range.start")
        end = _assert_year(cfg["year_range"]["end"], f"{source}.year_range.end")
        if start > end:
            raise ConfigError(f"{source}.year_range start {start} is after end {end}")
    return cfg
