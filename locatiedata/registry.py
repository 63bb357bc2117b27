"""Dataset registry: which dataset and period code serve a (source, year) pair.

Four sources, three availability models:

* demographics (CBS Kerncijfers wijken en buurten) publishes a separate
  dataset per year, so availability is the sparse set of registered years.
* health (RIVM 50120NED) and livability (CBS Veiligheidsmonitor 85146NED)
  are single datasets holding an enumerated set of survey years.
* safety (Politie 47018NED) is a single dataset covering a contiguous range.

All lookups are pure. A miss is reported as `None`, `False` or `[]`, never as
an exception.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from locatiedata.common.constants import (
    DEMOGRAPHICS,
    EARLIEST_COVERED_YEAR,
    HEALTH,
    LIVABILITY,
    SAFETY,
    SOURCES,
)
from locatiedata.common.time_utils import current_year

CBS_ODATA_ROOT = "https://opendata.cbs.nl/ODataApi/odata"
CBS_DERDEN_ODATA_ROOT = "https://dataderden.cbs.nl/ODataApi/odata"


def period_for_year(year: int) -> str:
    return f"{year}JJ00"


def untyped_dataset_url(root: str, dataset_id: str) -> str:
    return f"{root.rstrip('/')}/{dataset_id}/UntypedDataSet"


def dataset_root_url(base_url: str) -> str:
    """Strip the trailing table segment so metadata endpoints can be addressed."""
    return base_url.rstrip("/").rsplit("/", 1)[0]


@dataclass(frozen=True)
class DatasetConfig:
    id: str
    year: int
    base_url: str
    period: str
    notes: str | None = None

    @classmethod
    def for_year(cls, year: int, dataset_id: str, base_url: str, notes: str | None = None) -> "DatasetConfig":
        return cls(id=dataset_id, year=year, base_url=base_url, period=period_for_year(year), notes=notes)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SourceAvailability:
    source: str
    dataset_id: str
    base_url: str
    years: tuple[int, ...] = ()
    year_range: tuple[int, int] | None = None
    notes: str = ""
    warning: str | None = None

    def available_years(self) -> list[int]:
        if self.year_range is not None:
            start, end = self.year_range
            return list(range(end, start - 1, -1))
        return sorted(set(self.years), reverse=True)

    def is_year_available(self, year: int) -> bool:
        if self.year_range is not None:
            start, end = self.year_range
            return start <= year <= end
        return year in self.years

    def period_code(self, year: int) -> str | None:
        if not self.is_year_available(year):
            return None
        return period_for_year(year)


@dataclass(frozen=True)
class AvailabilityMatrix:
    years: list[int]
    sources: dict[str, list[bool]]

    def to_dict(self) -> dict[str, Any]:
        return {"years": list(self.years), "sources": {k: list(v) for k, v in self.sources.items()}}


@dataclass(frozen=True)
class DatasetRegistry:
    demographics: Mapping[int, DatasetConfig]
    health: SourceAvailability
    safety: SourceAvailability
    livability: SourceAvailability
    demographics_notes: str = field(default="")

    def __post_init__(self) -> None:
        object.__setattr__(self, "demographics", MappingProxyType(dict(self.demographics)))

    def _descriptor(self, source: str) -> SourceAvailability | None:
        if source == HEALTH:
            return self.health
        if source == SAFETY:
            return self.safety
        if source == LIVABILITY:
            return self.livability
        return None

    def available_years(self, source: str) -> list[int]:
        if source == DEMOGRAPHICS:
            return sorted(self.demographics, reverse=True)
        descriptor = self._descriptor(source)
        if descriptor is None:
            return []
        return descriptor.available_years()

    def is_year_available(self, source: str, year: int) -> bool:
        if source == DEMOGRAPHICS:
            return year in self.demographics
        descriptor = self._descriptor(source)
        if descriptor is None:
            return False
        return descriptor.is_year_available(year)

    def period_code(self, source: str, year: int) -> str | None:
        if source == DEMOGRAPHICS:
            config = self.dataset_config(year)
            return config.period if config is not None else None
        descriptor = self._descriptor(source)
        if descriptor is None:
            return None
        return descriptor.period_code(year)

    def dataset_config(self, year: int) -> DatasetConfig | None:
        return self.demographics.get(year)

    def dataset_id(self, source: str, year: int) -> str | None:
        if not self.is_year_available(source, year):
            return None
        if source == DEMOGRAPHICS:
            return self.demographics[year].id
        return self._descriptor(source).dataset_id

    def base_url(self, source: str, year: int) -> str | None:
        if not self.is_year_available(source, year):
            return None
        if source == DEMOGRAPHICS:
            return self.demographics[year].base_url
        return self._descriptor(source).base_url

    def latest_year(self, source: str) -> int | None:
        years = self.available_years(source)
        return years[0] if years else None

    def common_available_years(self) -> list[int]:
        common: set[int] | None = None
        for source in SOURCES:
            years = set(self.available_years(source))
            common = years if common is None else common & years
        return sorted(common or set(), reverse=True)

    def data_availability_matrix(self, start_year: int, end_year: int) -> AvailabilityMatrix:
        years = list(range(end_year, start_year - 1, -1))
        return AvailabilityMatrix(
            years=years,
            sources={source: [self.is_year_available(source, year) for year in years] for source in SOURCES},
        )

    def to_dict(self) -> dict[str, Any]:
        def descriptor_dict(descriptor: SourceAvailability) -> dict[str, Any]:
            out: dict[str, Any] = {
                "dataset_id": descriptor.dataset_id,
                "base_url": descriptor.base_url,
                "notes": descriptor.notes,
            }
            if descriptor.year_range is not None:
                out["year_range"] = {"start": descriptor.year_range[0], "end": descriptor.year_range[1]}
            else:
                out["years"] = sorted(descriptor.years)
            if descriptor.warning:
                out["warning"] = descriptor.warning
            return out

        return {
            DEMOGRAPHICS: {
                "notes": self.demographics_notes,
                "datasets": {
                    str(year): {"id": cfg.id, "base_url": cfg.base_url, "notes": cfg.notes}
                    for year, cfg in sorted(self.demographics.items(), reverse=True)
                },
            },
            HEALTH: descriptor_dict(self.health),
            SAFETY: descriptor_dict(self.safety),
            LIVABILITY: descriptor_dict(self.livability),
        }


def _demographics(year: int, dataset_id: str, notes: str | None = None) -> tuple[int, DatasetConfig]:
    return year, DatasetConfig.for_year(year, dataset_id, untyped_dataset_url(CBS_ODATA_ROOT, dataset_id), notes)


# 2015 and 2013 are published only inside multi-year tables and are not registered.
_DEFAULT_DEMOGRAPHICS = dict(
    [
        _demographics(2024, "85984NED", "Most recent dataset"),
        _demographics(2023, "85618NED"),
        _demographics(2022, "85318NED"),
        _demographics(2021, "85039NED"),
        _demographics(2020, "84799NED", "COVID-19 pandemic year"),
        _demographics(2019, "84583NED"),
        _demographics(2018, "84286NED"),
        _demographics(2017, "83765NED"),
        _demographics(2016, "83487NED"),
        _demographics(2014, "82931NED"),
    ]
)

DEFAULT_REGISTRY = DatasetRegistry(
    demographics=_DEFAULT_DEMOGRAPHICS,
    demographics_notes="Kerncijfers wijken en buurten; one StatLine table per year",
    health=SourceAvailability(
        source=HEALTH,
        dataset_id="50120NED",
        base_url=untyped_dataset_url(CBS_DERDEN_ODATA_ROOT, "50120NED"),
        years=(2012, 2016, 2020, 2022),
        notes="Gezondheidsmonitor Volwassenen en Ouderen (2012, 2016, 2020) and Corona Gezondheidsmonitor 2022",
    ),
    safety=SourceAvailability(
        source=SAFETY,
        dataset_id="47018NED",
        base_url=untyped_dataset_url(CBS_DERDEN_ODATA_ROOT, "47018NED"),
        year_range=(2012, 2024),
        notes="Annual registered crime, normalised to 2025 boundaries",
    ),
    livability=SourceAvailability(
        source=LIVABILITY,
        dataset_id="85146NED",
        base_url=untyped_dataset_url(CBS_ODATA_ROOT, "85146NED"),
        years=(2021, 2023),
        notes="Veiligheidsmonitor: livability perception, safety and victimisation",
        warning="2021 results cannot be compared with earlier editions due to questionnaire changes",
    ),
)

PRESET_YEAR_SPANS = {
    "last_3_years": 3,
    "last_5_years": 5,
    "last_10_years": 10,
}
ALL_AVAILABLE_PRESET = "all_available"


def preset_year_range(name: str, reference_year: int | None = None) -> tuple[int, int]:
    end = reference_year if reference_year is not None else current_year()
    if name == ALL_AVAILABLE_PRESET:
        return EARLIEST_COVERED_YEAR, end
    span = PRESET_YEAR_SPANS.get(name)
    if span is None:
        raise ValueError(f"Unknown year preset: {name}")
    return end - span, end


def years_in_range(start_year: int, end_year: int) -> list[int]:
    return list(range(end_year, start_year - 1, -1))


# Per-source lookups on the default registry.


def get_demographics_available_years() -> list[int]:
    return DEFAULT_REGISTRY.available_years(DEMOGRAPHICS)


def get_demographics_dataset_config(year: int) -> DatasetConfig | None:
    return DEFAULT_REGISTRY.dataset_config(year)


def is_demographics_year_available(year: int) -> bool:
    return DEFAULT_REGISTRY.is_year_available(DEMOGRAPHICS, year)


def get_demographics_period_code(year: int) -> str | None:
    return DEFAULT_REGISTRY.period_code(DEMOGRAPHICS, year)


def get_health_available_years() -> list[int]:
    return DEFAULT_REGISTRY.available_years(HEALTH)


def is_health_year_available(year: int) -> bool:
    return DEFAULT_REGISTRY.is_year_available(HEALTH, year)


def get_health_period_code(year: int) -> str | None:
    return DEFAULT_REGISTRY.period_code(HEALTH, year)


def get_safety_available_years() -> list[int]:
    return DEFAULT_REGISTRY.available_years(SAFETY)


def is_safety_year_available(year: int) -> bool:
    return DEFAULT_REGISTRY.is_year_available(SAFETY, year)


def get_safety_period_code(year: int) -> str | None:
    return DEFAULT_REGISTRY.period_code(SAFETY, year)


def get_livability_available_years() -> list[int]:
    return DEFAULT_REGISTRY.available_years(LIVABILITY)


def is_livability_year_available(year: int) -> bool:
    return DEFAULT_REGISTRY.is_year_available(LIVABILITY, year)


def get_livability_period_code(year: int) -> str | None:
    return DEFAULT_REGISTRY.period_code(LIVABILITY, year)


# Source-agnostic lookups.


def get_available_years(source: str) -> list[int]:
    return DEFAULT_REGISTRY.available_years(source)


def is_year_available(source: str, year: int) -> bool:
    return DEFAULT_REGISTRY.is_year_available(source, year)


def get_period_code(source: str, year: int) -> str | None:
    return DEFAULT_REGISTRY.period_code(source, year)


def get_common_available_years() -> list[int]:
    return DEFAULT_REGISTRY.common_available_years()


def get_data_availability_matrix(start_year: int, end_year: int) -> AvailabilityMatrix:
    return DEFAULT_REGISTRY.data_availability_matrix(start_year, end_year)
