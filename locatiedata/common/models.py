"""Data models shared by the registry, fetch clients and orchestrator."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any

from locatiedata.common.geo_codes import is_valid_code, normalise_code

FETCH_OK = "ok"
FETCH_EMPTY = "empty"
FETCH_ERROR = "error"


@dataclass(frozen=True)
class GeographicLevel:
    code: str
    type: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class LeveledResponse:
    level: GeographicLevel
    data: dict[str, Any]
    fetched_at: datetime
    year: int | None = None
    dataset_id: str | None = None

    def with_year(self, year: int, dataset_id: str | None = None) -> "LeveledResponse":
        if dataset_id is None:
            return replace(self, year=year)
        return replace(self, year=year, dataset_id=dataset_id)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "level": self.level.to_dict(),
            "data": dict(self.data),
            "fetched_at": self.fetched_at.isoformat(),
        }
        if self.year is not None:
            out["year"] = self.year
        if self.dataset_id is not None:
            out["dataset_id"] = self.dataset_id
        return out


@dataclass(frozen=True)
class MultiLevelResponse:
    national: LeveledResponse | None = None
    municipality: LeveledResponse | None = None
    district: LeveledResponse | None = None
    neighborhood: LeveledResponse | None = None

    def levels(self) -> dict[str, LeveledResponse | None]:
        return {
            "national": self.national,
            "municipality": self.municipality,
            "district": self.district,
            "neighborhood": self.neighborhood,
        }

    def populated_levels(self) -> list[str]:
        return [name for name, response in self.levels().items() if response is not None]

    def with_year(self, year: int, dataset_id: str | None = None) -> "MultiLevelResponse":
        enriched = {
            name: response.with_year(year, dataset_id) if response is not None else None
            for name, response in self.levels().items()
        }
        return MultiLevelResponse(**enriched)

    def to_dict(self) -> dict[str, Any]:
        return {
            name: response.to_dict() if response is not None else None
            for name, response in self.levels().items()
        }


@dataclass(frozen=True)
class GeographicCodes:
    municipality: str
    district: str | None = None
    neighborhood: str | None = None

    @classmethod
    def from_values(
        cls,
        municipality: str,
        district: str | None = None,
        neighborhood: str | None = None,
    ) -> "GeographicCodes":
        cleaned = normalise_code(municipality)
        if cleaned is None:
            raise ValueError("A municipality code is required")
        codes = cls(
            municipality=cleaned,
            district=normalise_code(district),
            neighborhood=normalise_code(neighborhood),
        )
        for level_type in ("municipality", "district", "neighborhood"):
            code = getattr(codes, level_type)
            if code is not None and not is_valid_code(code, level_type):
                raise ValueError(f"{code!r} is not a {level_type} code")
        return codes

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HistoricResponse:
    year: int
    period: str
    data: MultiLevelResponse
    dataset_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "year": self.year,
            "period": self.period,
            "data": self.data.to_dict(),
        }
        if self.dataset_id is not None:
            out["dataset_id"] = self.dataset_id
        return out


@dataclass(frozen=True)
class FetchOutcome:
    """Result of a single level query.

    `status` separates a confirmed empty result from a failed request; callers
    of `fetch_by_code` only ever see `record`, which is empty in both cases.
    """

    code: str
    status: str
    record: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def has_data(self) -> bool:
        return self.status == FETCH_OK and bool(self.record)
