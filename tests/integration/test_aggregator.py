from __future__ import annotations

import re
import threading

import pytest

from locatiedata.aggregator import LocationDataAggregator, summarise_current, summarise_historic
from locatiedata.common.errors import ConfigError, FetchError
from locatiedata.common.models import GeographicCodes

_CODE_RE = re.compile(r"startswith\(WijkenEnBuurten,'([^']*)'\)")
_PERIOD_RE = re.compile(r"Perioden eq '([^']*)'")

CODES = GeographicCodes(municipality="GM0363", district="WK036300", neighborhood="BU03630000")


class MultiSourceHttp:
    def __init__(self, down_datasets=()):
        self.down_datasets = set(down_datasets)
        self.calls: list[tuple[str, str, str]] = []
        self.lock = threading.Lock()

    def get_json(self, url: str, **kwargs):
        flt = kwargs["params"]["$filter"]
        code = _CODE_RE.search(flt).group(1)
        period = _PERIOD_RE.search(flt).group(1)
        dataset_id = url.rstrip("/").split("/")[-2]
        with self.lock:
            self.calls.append((dataset_id, code, period))
        if dataset_id in self.down_datasets:
            raise FetchError(f"HTTP status 503 from {url}")
        if dataset_id == "47018NED":
            return {"value": [{"SoortMisdrijf": "0.0.0", "GeregistreerdeMisdrijven_1": "10"}]}
        return {"value": [{"Dataset": dataset_id, "Code": code}]}

    def close(self):
        return None


@pytest.mark.integration
def test_fetch_current_uses_latest_year_per_source():
    http = MultiSourceHttp()
    with LocationDataAggregator(http_client=http) as aggregator:
        results = aggregator.fetch_current(CODES)

    assert set(results) == {"demographics", "health", "safety", "livability"}
    periods = {(dataset_id, period) for dataset_id, _code, period in http.calls}
    assert ("85984NED", "2024JJ00") in periods
    assert ("50120NED", "2022JJ00") in periods
    assert ("47018NED", "2024JJ00") in periods
    assert ("85146NED", "2023JJ00") in periods
    assert results["safety"].district.data == {"0.0.0": 10}
    assert results["demographics"].neighborhood.level.code == "BU03630000"


@pytest.mark.integration
def test_fetch_current_year_override_switches_demographics_dataset():
    http = MultiSourceHttp()
    aggregator = LocationDataAggregator(http_client=http, sources=["demographics"])

    results = aggregator.fetch_current(CODES, {"demographics": 2020})

    assert {dataset_id for dataset_id, _code, _period in http.calls} == {"84799NED"}
    assert results["demographics"].municipality.data["Dataset"] == "84799NED"


@pytest.mark.integration
def test_fetch_current_unavailable_year_yields_empty_response():
    http = MultiSourceHttp()
    aggregator = LocationDataAggregator(http_client=http, sources=["health", "safety"])

    results = aggregator.fetch_current(CODES, {"health": 2021, "safety": 2021})

    assert results["health"].populated_levels() == []
    assert results["safety"].populated_levels() == ["national", "municipality", "district", "neighborhood"]
    assert all(dataset_id == "47018NED" for dataset_id, _code, _period in http.calls)


@pytest.mark.integration
def test_fetch_current_isolates_failing_source():
    http = MultiSourceHttp(down_datasets={"50120NED"})
    aggregator = LocationDataAggregator(http_client=http)

    results = aggregator.fetch_current(CODES)
    summary = summarise_current(results)

    assert summary["health"]["populated_levels"] == []
    assert summary["livability"]["populated_levels"] == ["national", "municipality", "district", "neighborhood"]


@pytest.mark.integration
def test_fetch_historic_validates_years_per_source():
    http = MultiSourceHttp()
    aggregator = LocationDataAggregator(http_client=http, sources=["health", "livability", "demographics"])
    progress: list[tuple[str, int, int, int]] = []

    results = aggregator.fetch_historic(
        CODES,
        [2023, 2022, 2021, 2020],
        on_progress=lambda source, current, total, year: progress.append((source, current, total, year)),
        rate_limit_delay_ms=0,
    )

    assert list(results["health"]) == [2022, 2020]
    assert list(results["livability"]) == [2023, 2021]
    assert list(results["demographics"]) == [2023, 2022, 2021, 2020]
    assert ("health", 2, 2, 2020) in progress
    assert ("demographics", 4, 4, 2020) in progress

    summary = summarise_historic(results, [2023, 2022, 2021, 2020])
    assert summary["health"]["expected_years"] == [2022, 2020]
    assert summary["health"]["missing_years"] == []
    assert summary["demographics"]["levels_by_year"][2021] == [
        "national",
        "municipality",
        "district",
        "neighborhood",
    ]


@pytest.mark.integration
def test_summarise_historic_reports_missing_years():
    http = MultiSourceHttp()
    aggregator = LocationDataAggregator(http_client=http, sources=["safety"])
    cancel = threading.Event()

    def stop_after_first(_source, current, _total, _year):
        if current == 1:
            cancel.set()

    results = aggregator.fetch_historic(
        CODES,
        [2024, 2023],
        on_progress=stop_after_first,
        rate_limit_delay_ms=0,
        cancel_event=cancel,
    )

    summary = summarise_historic(results, [2024, 2023])
    assert summary["safety"]["fetched_years"] == [2024]
    assert summary["safety"]["missing_years"] == [2023]


def test_unknown_source_rejected():
    with pytest.raises(ConfigError):
        LocationDataAggregator(http_client=MultiSourceHttp(), sources=["weather"])


@pytest.mark.integration
def test_fetch_current_isolates_unexpected_source_crash():
    class CrashingHttp(MultiSourceHttp):
        def get_json(self, url: str, **kwargs):
            if "/85146NED/" in url:
                raise RuntimeError("connection pool exploded")
            return super().get_json(url, **kwargs)

    aggregator = LocationDataAggregator(http_client=CrashingHttp(), sources=["livability", "safety"])

    results = aggregator.fetch_current(CODES)

    assert results["livability"].populated_levels() == []
    assert results["safety"].populated_levels() == ["national", "municipality", "district", "neighborhood"]
