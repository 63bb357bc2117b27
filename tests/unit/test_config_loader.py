from pathlib import Path

import pytest

from locatiedata.common.config_loader import build_registry, load_registry
from locatiedata.common.constants import DEMOGRAPHICS, SAFETY
from locatiedata.common.errors import ConfigError
from locatiedata.registry import DEFAULT_REGISTRY

MINIMAL_REGISTRY = """demographics:
  datasets:
    2024:
      id: 85984NED
      base_url: https://example.test/85984NED/UntypedDataSet
health:
  dataset_id: 50120NED
  base_url: https://example.test/50120NED/UntypedDataSet
  years: [2022, 2020]
safety:
  dataset_id: 47018NED
  base_url: https://example.test/47018NED/UntypedDataSet
  year_range:
    start: 2012
    end: 2024
livability:
  dataset_id: 85146NED
  base_url: https://example.test/85146NED/UntypedDataSet
  years: [2023]
"""


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def _minimal_cfg() -> dict:
    return {
        "demographics": {"datasets": {2024: {"id": "A", "base_url": "https://example.test/A/UntypedDataSet"}}},
        "health": {"dataset_id": "H", "base_url": "https://example.test/H", "years": [2022]},
        "safety": {"dataset_id": "S", "base_url": "https://example.test/S", "year_range": {"start": 2012, "end": 2024}},
        "livability": {"dataset_id": "L", "base_url": "https://example.test/L", "years": [2023]},
    }


def test_load_registry_from_repo_config_matches_builtin():
    registry = load_registry(Path("config") / "datasets.yml")
    assert registry.to_dict() == DEFAULT_REGISTRY.to_dict()


def test_load_registry_derives_period_codes(tmp_path: Path):
    registry = load_registry(_write(tmp_path / "datasets.yml", MINIMAL_REGISTRY))
    assert registry.dataset_config(2024).period == "2024JJ00"
    assert registry.available_years(DEMOGRAPHICS) == [2024]


def test_overlay_extends_safety_range(tmp_path: Path):
    base = _write(tmp_path / "datasets.yml", MINIMAL_REGISTRY)
    overlay = _write(tmp_path / "overlay.yml", "safety:\n  year_range:\n    end: 2025\n")

    registry = load_registry(base, overlay_path=overlay)

    assert registry.is_year_available(SAFETY, 2025) is True
    assert len(registry.available_years(SAFETY)) == 14
    assert registry.safety.dataset_id == "47018NED"


def test_empty_overlay_is_ignored(tmp_path: Path):
    base = _write(tmp_path / "datasets.yml", MINIMAL_REGISTRY)
    overlay = _write(tmp_path / "overlay.yml", "")

    registry = load_registry(base, overlay_path=overlay)

    assert registry.available_years(SAFETY)[0] == 2024


def test_missing_config_file_raises(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_registry(tmp_path / "nope.yml")


def test_missing_source_raises():
    cfg = _minimal_cfg()
    del cfg["livability"]
    with pytest.raises(ConfigError, match="livability"):
        build_registry(cfg)


def test_unknown_source_rejected_unless_allowed():
    cfg = _minimal_cfg()
    cfg["weather"] = {}
    with pytest.raises(ConfigError):
        build_registry(cfg)
    assert build_registry(cfg, allow_unknown=True).available_years("weather") == []


def test_mismatched_period_rejected():
    cfg = _minimal_cfg()
    cfg["demographics"]["datasets"][2024]["period"] = "2023JJ00"
    with pytest.raises(ConfigError, match="2024JJ00"):
        build_registry(cfg)


def test_years_and_range_are_exclusive():
    cfg = _minimal_cfg()
    cfg["health"]["year_range"] = {"start": 2012, "end": 2022}
    with pytest.raises(ConfigError, match="exactly one"):
        build_registry(cfg)


def test_inverted_range_rejected():
    cfg = _minimal_cfg()
    cfg["safety"]["year_range"] = {"start": 2024, "end": 2012}
    with pytest.raises(ConfigError):
        build_registry(cfg)


def test_duplicate_demographics_ids_rejected():
    cfg = _minimal_cfg()
    cfg["demographics"]["datasets"][2023] = {"id": "A", "base_url": "https://example.test/A/UntypedDataSet"}
    with pytest.raises(ConfigError, match="Duplicate"):
        build_registry(cfg)


def test_unknown_descriptor_key_rejected():
    cfg = _minimal_cfg()
    cfg["health"]["cadence"] = "quadrennial"
    with pytest.raises(ConfigError, match="cadence"):
        build_registry(cfg)


def test_malformed_yaml_raises_config_error(tmp_path: Path):
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_registry(_write(tmp_path / "datasets.yml", "health: [unclosed\n"))
