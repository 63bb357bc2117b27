import pytest

from locatiedata.common.constants import DEMOGRAPHICS, HEALTH, LIVABILITY, SAFETY, SOURCES
from locatiedata.registry import (
    DEFAULT_REGISTRY,
    DatasetConfig,
    DatasetRegistry,
    SourceAvailability,
    dataset_root_url,
    get_available_years,
    get_common_available_years,
    get_data_availability_matrix,
    get_demographics_available_years,
    get_demographics_dataset_config,
    get_health_available_years,
    get_health_period_code,
    get_livability_period_code,
    get_period_code,
    get_safety_available_years,
    get_safety_period_code,
    is_demographics_year_available,
    is_year_available,
    preset_year_range,
    years_in_range,
)


@pytest.mark.parametrize("source", SOURCES)
def test_is_year_available_matches_available_years(source):
    available = set(get_available_years(source))
    for year in range(2000, 2031):
        assert is_year_available(source, year) == (year in available)


@pytest.mark.parametrize("source", SOURCES)
def test_available_years_strictly_descending(source):
    years = get_available_years(source)
    assert years
    assert all(a > b for a, b in zip(years, years[1:]))


@pytest.mark.parametrize("source", SOURCES)
def test_period_code_derivation(source):
    for year in range(2000, 2031):
        if is_year_available(source, year):
            assert get_period_code(source, year) == f"{year}JJ00"
        else:
            assert get_period_code(source, year) is None


def test_demographics_2024_scenario():
    config = get_demographics_dataset_config(2024)
    assert config.id == "85984NED"
    assert config.period == "2024JJ00"
    assert config.base_url.endswith("/85984NED/UntypedDataSet")


def test_demographics_registry_is_sparse():
    years = get_demographics_available_years()
    assert len(years) == 10
    assert 2015 not in years
    assert 2013 not in years
    assert is_demographics_year_available(2014) is True
    assert is_demographics_year_available(2015) is False
    assert get_demographics_dataset_config(2015) is None
    assert get_period_code(DEMOGRAPHICS, 2013) is None


def test_demographics_configs_carry_matching_period():
    for year, config in DEFAULT_REGISTRY.demographics.items():
        assert config.year == year
        assert config.period == f"{year}JJ00"


def test_safety_boundaries():
    assert is_year_available(SAFETY, 2012) is True
    assert is_year_available(SAFETY, 2024) is True
    assert is_year_available(SAFETY, 2011) is False
    assert is_year_available(SAFETY, 2025) is False
    assert len(get_safety_available_years()) == 13
    assert get_safety_period_code(2024) == "2024JJ00"


def test_health_and_livability_enumerated_years():
    assert get_health_available_years() == [2022, 2020, 2016, 2012]
    assert get_health_period_code(2021) is None
    assert get_livability_period_code(2023) == "2023JJ00"
    assert get_available_years(LIVABILITY) == [2023, 2021]
    assert DEFAULT_REGISTRY.livability.warning


def test_unknown_source_returns_safe_defaults():
    assert get_available_years("weather") == []
    assert is_year_available("weather", 2022) is False
    assert get_period_code("weather", 2022) is None
    assert DEFAULT_REGISTRY.base_url("weather", 2022) is None


def _registry_with(livability_years: tuple[int, ...]) -> DatasetRegistry:
    return DatasetRegistry(
        demographics={
            year: DatasetConfig.for_year(year, f"{year}NED", f"https://example.test/{year}NED/UntypedDataSet")
            for year in (2024, 2023, 2022)
        },
        health=SourceAvailability(HEALTH, "H", "https://example.test/H/UntypedDataSet", years=(2022, 2020)),
        safety=SourceAvailability(SAFETY, "S", "https://example.test/S/UntypedDataSet", year_range=(2012, 2024)),
        livability=SourceAvailability(LIVABILITY, "L", "https://example.test/L/UntypedDataSet", years=livability_years),
    )


def test_common_years_is_exact_intersection():
    assert _registry_with((2021, 2022, 2023)).common_available_years() == [2022]


def test_common_years_empty_when_one_source_misses_every_shared_year():
    assert _registry_with((2021, 2023)).common_available_years() == []


def test_default_common_years_empty_without_shared_survey_year():
    # Health and livability surveys never share a year.
    assert get_common_available_years() == []


def test_availability_matrix_shape():
    matrix = get_data_availability_matrix(2020, 2024)
    assert matrix.years == [2024, 2023, 2022, 2021, 2020]
    assert set(matrix.sources) == set(SOURCES)
    for flags in matrix.sources.values():
        assert len(flags) == 5
    assert matrix.sources[HEALTH] == [False, False, True, False, True]
    assert matrix.sources[LIVABILITY] == [False, True, False, True, False]
    assert matrix.sources[SAFETY] == [True] * 5


def test_availability_matrix_marks_out_of_range_years_false():
    matrix = get_data_availability_matrix(2010, 2026)
    assert len(matrix.years) == 17
    assert matrix.sources[SAFETY][0] is False
    assert matrix.sources[SAFETY][-1] is False
    assert matrix.to_dict()["years"][0] == 2026


def test_availability_matrix_reversed_range_is_empty():
    matrix = get_data_availability_matrix(2024, 2020)
    assert matrix.years == []
    assert all(flags == [] for flags in matrix.sources.values())


def test_dataset_id_and_base_url_lookups():
    assert DEFAULT_REGISTRY.dataset_id(DEMOGRAPHICS, 2019) == "84583NED"
    assert DEFAULT_REGISTRY.dataset_id(HEALTH, 2020) == "50120NED"
    assert DEFAULT_REGISTRY.dataset_id(HEALTH, 2021) is None
    assert DEFAULT_REGISTRY.base_url(SAFETY, 2030) is None
    assert DEFAULT_REGISTRY.latest_year(SAFETY) == 2024


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        DEFAULT_REGISTRY.demographics[2015] = DatasetConfig.for_year(2015, "X", "https://example.test")


def test_dataset_root_url_strips_table_segment():
    assert (
        dataset_root_url("https://dataderden.cbs.nl/ODataApi/odata/47018NED/UntypedDataSet")
        == "https://dataderden.cbs.nl/ODataApi/odata/47018NED"
    )


def test_preset_year_ranges():
    assert preset_year_range("last_3_years", reference_year=2026) == (2023, 2026)
    assert preset_year_range("last_10_years", reference_year=2026) == (2016, 2026)
    assert preset_year_range("all_available", reference_year=2026) == (2012, 2026)
    with pytest.raises(ValueError):
        preset_year_range("forever", reference_year=2026)


def test_years_in_range_descending():
    assert years_in_range(2020, 2022) == [2022, 2021, 2020]
