"""Historic multi-year fetches with validation, pacing and fail-soft semantics."""

from __future__ import annotations

import logging
from threading import Event
from typing import TYPE_CHECKING, Callable, Iterable

from locatiedata.common.constants import DEFAULT_RATE_LIMIT_DELAY_MS
from locatiedata.common.errors import ConfigError
from locatiedata.common.logging import get_logger, log_event
from locatiedata.common.models import GeographicCodes, HistoricResponse
from locatiedata.historic.pacing import FixedIntervalPacer, Pacer

if TYPE_CHECKING:
    from locatiedata.sources.odata import ODataSourceClient

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int, int], None]


class HistoricOrchestrator:
    """Drives one source client across a list of years.

    Years are fetched one at a time in the order given, with the pacer waiting
    between consecutive years. Unavailable years are dropped up front and a
    year whose fetch raises is left out of the result; neither stops the
    remaining years.
    """

    def __init__(self, client: "ODataSourceClient") -> None:
        self.client = client
        self.source = client.source
        self.registry = client.registry

    def validate_years(self, years: Iterable[int]) -> list[int]:
        valid: list[int] = []
        seen: set[int] = set()
        available = self.registry.available_years(self.source)
        for year in years:
            if year in seen:
                continue
            seen.add(year)
            if not self.registry.is_year_available(self.source, year):
                log_event(
                    logger,
                    f"{self.source} data not available for {year}; available: {available}",
                    level=logging.WARNING,
                    source=self.source,
                    event="YEAR_SKIPPED",
                    status="unavailable",
                    year=year,
                )
                continue
            valid.append(year)
        return valid

    def _fetch_year(self, codes: GeographicCodes, year: int) -> HistoricResponse:
        period = self.registry.period_code(self.source, year)
        if period is None:
            raise ConfigError(f"No period code for {self.source} {year}")

        year_client = self.client.for_year(year)
        data = year_client.fetch_multi_level(codes.municipality, codes.district, codes.neighborhood, period)
        dataset_id = year_client.dataset_id if year_client.year_scoped_datasets else None
        return HistoricResponse(
            year=year,
            period=period,
            data=data.with_year(year, dataset_id),
            dataset_id=dataset_id,
        )

    def fetch_historic_data(
        self,
        codes: GeographicCodes,
        years: Iterable[int] | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        rate_limit_delay_ms: float = DEFAULT_RATE_LIMIT_DELAY_MS,
        cancel_event: Event | None = None,
        pacer: Pacer | None = None,
    ) -> dict[int, HistoricResponse]:
        results: dict[int, HistoricResponse] = {}
        target_years = list(years) if years is not None else self.registry.available_years(self.source)
        valid_years = self.validate_years(target_years)
        if not valid_years:
            log_event(
                logger,
                f"{self.source} historic fetch has no valid years among {target_years}",
                level=logging.WARNING,
                source=self.source,
                event="HISTORIC_EMPTY",
                status="empty",
            )
            return results

        pacer = pacer or FixedIntervalPacer(rate_limit_delay_ms)
        total = len(valid_years)
        log_event(
            logger,
            f"{self.source} historic fetch of {total} years: {valid_years}",
            source=self.source,
            event="HISTORIC_START",
            status="ok",
        )

        for index, year in enumerate(valid_years):
            if cancel_event is not None and cancel_event.is_set():
                log_event(
                    logger,
                    f"{self.source} historic fetch cancelled before {year}",
                    level=logging.WARNING,
                    source=self.source,
                    event="HISTORIC_CANCELLED",
                    status="cancelled",
                    year=year,
                )
                break

            try:
                results[year] = self._fetch_year(codes, year)
                log_event(
                    logger,
                    f"{self.source} fetched {year} ({index + 1}/{total})",
                    source=self.source,
                    event="YEAR_FETCH",
                    status="ok",
                    year=year,
                )
            except Exception as exc:
                log_event(
                    logger,
                    f"{self.source} failed to fetch {year}: {exc}",
                    level=logging.ERROR,
                    source=self.source,
                    event="YEAR_FETCH",
                    status="error",
                    year=year,
                    error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
                )

            if on_progress is not None:
                on_progress(index + 1, total, year)

            if index < total - 1:
                pacer.wait(cancel_event)

        log_event(
            logger,
            f"{self.source} historic fetch completed: {len(results)}/{total} years",
            source=self.source,
            event="HISTORIC_END",
            status="ok" if len(results) == total else "partial",
            rows=len(results),
        )
        return results

    def fetch_historic_year(self, codes: GeographicCodes, year: int) -> HistoricResponse | None:
        return self.fetch_historic_data(codes, [year]).get(year)
