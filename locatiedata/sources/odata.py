"""Shared OData client for the CBS-hosted location data sources."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from threading import Event
from types import TracebackType
from typing import Any, Callable

import requests

from locatiedata.common.constants import DEFAULT_RATE_LIMIT_DELAY_MS, NATIONAL_NAME
from locatiedata.common.errors import FetchError, LocationDataError
from locatiedata.common.http import HttpClient
from locatiedata.common.logging import get_logger, log_event
from locatiedata.common.models import (
    FETCH_EMPTY,
    FETCH_ERROR,
    FETCH_OK,
    FetchOutcome,
    GeographicCodes,
    GeographicLevel,
    HistoricResponse,
    LeveledResponse,
    MultiLevelResponse,
)
from locatiedata.common.time_utils import utc_now
from locatiedata.historic.orchestrator import HistoricOrchestrator
from locatiedata.historic.pacing import Pacer
from locatiedata.registry import DEFAULT_REGISTRY, DatasetRegistry, dataset_root_url

logger = get_logger(__name__)

GEOGRAPHY_COLUMN = "WijkenEnBuurten"
PERIOD_COLUMN = "Perioden"


def _quote(value: str) -> str:
    return value.replace("'", "''")


def _odata_rows(payload: dict[str, Any], url: str) -> list[dict[str, Any]]:
    rows = payload.get("value")
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise FetchError(f"Expected a list under 'value' from {url}, got {type(rows).__name__}")
    for row in rows:
        if not isinstance(row, dict):
            raise FetchError(f"Expected object rows from {url}, got {type(row).__name__}")
    return rows


class ODataSourceClient:
    source: str = ""
    national_codes: tuple[str, ...] = ("NL00",)
    # True when every year lives in its own dataset and historic fetches need a year-bound client.
    year_scoped_datasets: bool = False

    def __init__(
        self,
        *,
        registry: DatasetRegistry | None = None,
        http_client: HttpClient | None = None,
        base_url: str | None = None,
        dataset_id: str | None = None,
        default_period: str | None = None,
    ) -> None:
        self.registry = registry or DEFAULT_REGISTRY
        latest = self.registry.latest_year(self.source)
        self.base_url = base_url or (self.registry.base_url(self.source, latest) if latest else None)
        if not self.base_url:
            raise LocationDataError(f"No dataset registered for source {self.source!r}")
        self.dataset_id = dataset_id or (self.registry.dataset_id(self.source, latest) if latest else None)
        self.default_period = default_period or (self.registry.period_code(self.source, latest) if latest else None)
        self.owns_client = http_client is None
        self.http_client = http_client or HttpClient()

    def close(self) -> None:
        if self.owns_client:
            self.http_client.close()

    def __enter__(self) -> "ODataSourceClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def extra_filters(self) -> dict[str, str]:
        return {}

    def build_filter(self, code: str, period: str) -> str:
        clauses = [
            f"startswith({GEOGRAPHY_COLUMN},'{_quote(code)}')",
            f"{PERIOD_COLUMN} eq '{_quote(period)}'",
        ]
        clauses.extend(f"{column} eq '{_quote(value)}'" for column, value in self.extra_filters().items())
        return " and ".join(clauses)

    def parse_rows(self, rows: list[dict[str, Any]]) -> dict[str, Any]:
        return dict(rows[0]) if rows else {}

    def fetch_outcome(self, code: str, period: str | None = None) -> FetchOutcome:
        period = period or self.default_period
        started = time.monotonic()
        try:
            payload = self.http_client.get_json(self.base_url, params={"$filter": self.build_filter(code, period)})
            rows = _odata_rows(payload, self.base_url)
        except (LocationDataError, requests.RequestException) as exc:
            log_event(
                logger,
                f"{self.source} fetch failed for {code}: {exc}",
                level=logging.WARNING,
                source=self.source,
                event="LEVEL_FETCH",
                status="error",
                code=code,
                duration_ms=int((time.monotonic() - started) * 1000),
                error_code=getattr(exc, "error_code", "HTTP_ERROR"),
            )
            return FetchOutcome(code=code, status=FETCH_ERROR, error=str(exc))

        record = self.parse_rows(rows)
        status = FETCH_OK if record else FETCH_EMPTY
        log_event(
            logger,
            f"{self.source} fetched {len(rows)} rows for {code}",
            level=logging.DEBUG,
            source=self.source,
            event="LEVEL_FETCH",
            status=status,
            code=code,
            rows=len(rows),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return FetchOutcome(code=code, status=status, record=record)

    def fetch_by_code(self, code: str, period: str | None = None) -> dict[str, Any]:
        return self.fetch_outcome(code, period).record

    def _leveled(
        self,
        outcome: FetchOutcome | None,
        level_type: str,
        name: str | None,
        fetched_at: datetime,
    ) -> LeveledResponse | None:
        if outcome is None or not outcome.has_data:
            return None
        return LeveledResponse(
            level=GeographicLevel(code=outcome.code, type=level_type, name=name or outcome.code),
            data=outcome.record,
            fetched_at=fetched_at,
        )

    def fetch_multi_level(
        self,
        municipality_code: str,
        district_code: str | None = None,
        neighborhood_code: str | None = None,
        period: str | None = None,
    ) -> MultiLevelResponse:
        period = period or self.default_period
        slots: list[tuple[str, str]] = [("national", code) for code in self.national_codes]
        slots.append(("municipality", municipality_code))
        if district_code:
            slots.append(("district", district_code))
        if neighborhood_code:
            slots.append(("neighborhood", neighborhood_code))

        with ThreadPoolExecutor(max_workers=len(slots), thread_name_prefix=f"{self.source}-levels") as pool:
            futures = [pool.submit(self.fetch_outcome, code, period) for _slot, code in slots]
            outcomes = [future.result() for future in futures]

        fetched_at = utc_now()
        national: FetchOutcome | None = None
        by_level: dict[str, FetchOutcome] = {}
        for (slot, _code), outcome in zip(slots, outcomes):
            if slot == "national":
                if national is None and outcome.has_data:
                    national = outcome
            else:
                by_level[slot] = outcome

        return MultiLevelResponse(
            national=self._leveled(national, "national", NATIONAL_NAME, fetched_at),
            municipality=self._leveled(by_level.get("municipality"), "municipality", None, fetched_at),
            district=self._leveled(by_level.get("district"), "district", None, fetched_at),
            neighborhood=self._leveled(by_level.get("neighborhood"), "neighborhood", None, fetched_at),
        )

    def fetch_metadata_keys(self, endpoint: str, key_field: str = "Key") -> list[dict[str, Any]]:
        url = f"{dataset_root_url(self.base_url)}/{endpoint}"
        try:
            payload = self.http_client.get_json(url)
        except (LocationDataError, requests.RequestException) as exc:
            log_event(
                logger,
                f"{self.source} metadata request failed for {endpoint}: {exc}",
                level=logging.WARNING,
                source=self.source,
                event="METADATA_FETCH",
                status="error",
                error_code=getattr(exc, "error_code", "HTTP_ERROR"),
            )
            return []
        return [item for item in payload.get("value") or [] if isinstance(item, dict) and key_field in item]

    def get_available_metrics(self) -> list[str]:
        return [prop["Key"] for prop in self.fetch_metadata_keys("DataProperties")]

    def for_year(self, year: int) -> "ODataSourceClient":
        return self

    def fetch_historic_data(
        self,
        codes: GeographicCodes,
        years: list[int] | None = None,
        *,
        on_progress: Callable[[int, int, int], None] | None = None,
        rate_limit_delay_ms: float = DEFAULT_RATE_LIMIT_DELAY_MS,
        cancel_event: Event | None = None,
        pacer: Pacer | None = None,
    ) -> dict[int, HistoricResponse]:
        return HistoricOrchestrator(self).fetch_historic_data(
            codes,
            years,
            on_progress=on_progress,
            rate_limit_delay_ms=rate_limit_delay_ms,
            cancel_event=cancel_event,
            pacer=pacer,
        )

    def fetch_historic_year(self, codes: GeographicCodes, year: int) -> HistoricResponse | None:
        return HistoricOrchestrator(self).fetch_historic_year(codes, year)

    def available_years(self) -> list[int]:
        return self.registry.available_years(self.source)

    def is_year_available(self, year: int) -> bool:
        return self.registry.is_year_available(self.source, year)

    def period_code(self, year: int) -> str | None:
        return self.registry.period_code(self.source, year)
