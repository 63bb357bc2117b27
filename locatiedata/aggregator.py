"""Cross-source aggregation with fail-soft semantics."""

from __future__ import annotations

import logging
from threading import Event
from types import TracebackType
from typing import Callable, Iterable

from locatiedata.common.constants import DEFAULT_RATE_LIMIT_DELAY_MS, SOURCES
from locatiedata.common.errors import ConfigError
from locatiedata.common.http import HttpClient
from locatiedata.common.logging import get_logger, log_event
from locatiedata.common.models import GeographicCodes, HistoricResponse, MultiLevelResponse
from locatiedata.historic.orchestrator import HistoricOrchestrator
from locatiedata.registry import DEFAULT_REGISTRY, DatasetRegistry
from locatiedata.sources.factory import build_client
from locatiedata.sources.odata import ODataSourceClient

logger = get_logger(__name__)

SourceProgressCallback = Callable[[str, int, int, int], None]


class LocationDataAggregator:
    def __init__(
        self,
        *,
        registry: DatasetRegistry | None = None,
        http_client: HttpClient | None = None,
        sources: Iterable[str] = SOURCES,
    ) -> None:
        self.registry = registry or DEFAULT_REGISTRY
        self.sources = tuple(sources)
        unknown = [source for source in self.sources if source not in SOURCES]
        if unknown:
            raise ConfigError(f"Unknown data sources: {', '.join(unknown)}")
        self.owns_client = http_client is None
        self.http_client = http_client or HttpClient()
        self._clients: dict[str, ODataSourceClient] = {}

    def close(self) -> None:
        if self.owns_client:
            self.http_client.close()

    def __enter__(self) -> "LocationDataAggregator":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def client(self, source: str) -> ODataSourceClient:
        client = self._clients.get(source)
        if client is None:
            client = build_client(source, registry=self.registry, http_client=self.http_client)
            self._clients[source] = client
        return client

    def fetch_current(
        self,
        codes: GeographicCodes,
        years: dict[str, int] | None = None,
    ) -> dict[str, MultiLevelResponse]:
        """Fetch every source at its latest year, or at the year given per source."""
        results: dict[str, MultiLevelResponse] = {}
        for source in self.sources:
            year = (years or {}).get(source) or self.registry.latest_year(source)
            period = self.registry.period_code(source, year) if year is not None else None
            if period is None:
                log_event(
                    logger,
                    f"{source} has no data for {year}",
                    level=logging.WARNING,
                    source=source,
                    event="SOURCE_SKIPPED",
                    status="unavailable",
                    year=year,
                )
                results[source] = MultiLevelResponse()
                continue

            try:
                client = self.client(source).for_year(year)
                results[source] = client.fetch_multi_level(
                    codes.municipality,
                    codes.district,
                    codes.neighborhood,
                    period,
                )
            except Exception as exc:
                log_event(
                    logger,
                    f"{source} fetch failed: {exc}",
                    level=logging.ERROR,
                    source=source,
                    event="SOURCE_FETCH",
                    status="error",
                    year=year,
                    error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
                )
                results[source] = MultiLevelResponse()
        return results

    def fetch_historic(
        self,
        codes: GeographicCodes,
        years: list[int] | None = None,
        *,
        on_progress: SourceProgressCallback | None = None,
        rate_limit_delay_ms: float = DEFAULT_RATE_LIMIT_DELAY_MS,
        cancel_event: Event | None = None,
    ) -> dict[str, dict[int, HistoricResponse]]:
        results: dict[str, dict[int, HistoricResponse]] = {}
        for source in self.sources:
            if cancel_event is not None and cancel_event.is_set():
                break

            progress = None
            if on_progress is not None:
                def progress(current: int, total: int, year: int, _source: str = source) -> None:
                    on_progress(_source, current, total, year)

            results[source] = HistoricOrchestrator(self.client(source)).fetch_historic_data(
                codes,
                years,
                on_progress=progress,
                rate_limit_delay_ms=rate_limit_delay_ms,
                cancel_event=cancel_event,
            )
        return results


def summarise_current(results: dict[str, MultiLevelResponse]) -> dict[str, dict]:
    return {
        source: {"populated_levels": response.populated_levels()}
        for source, response in results.items()
    }


def summarise_historic(
    results: dict[str, dict[int, HistoricResponse]],
    requested_years: list[int] | None = None,
    registry: DatasetRegistry | None = None,
) -> dict[str, dict]:
    """Per source: which valid years were expected, which arrived, and which levels they cover."""
    registry = registry or DEFAULT_REGISTRY
    summary: dict[str, dict] = {}
    for source, by_year in results.items():
        if requested_years is None:
            expected = registry.available_years(source)
        else:
            expected = [year for year in requested_years if registry.is_year_available(source, year)]
        summary[source] = {
            "expected_years": expected,
            "fetched_years": list(by_year),
            "missing_years": [year for year in expected if year not in by_year],
            "levels_by_year": {year: response.data.populated_levels() for year, response in by_year.items()},
        }
    return summary
