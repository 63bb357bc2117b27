"""Filesystem helpers for registry YAML and JSON artifacts."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml

from locatiedata.common.errors import ConfigError


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_yaml(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc


def write_json(path: Path, payload: Any) -> None:
    """Write sorted, indented JSON; readers never see a half-written artifact."""
    ensure_dir(path.parent)
    tmp_path = path.with_name(f".{path.name}.tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True, default=str)
        f.write("\n")
    os.replace(tmp_path, path)


def read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)
