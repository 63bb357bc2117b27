"""CBS Kerncijfers wijken en buurten client."""

from __future__ import annotations

from locatiedata.common.constants import DEMOGRAPHICS
from locatiedata.common.errors import ConfigError
from locatiedata.common.http import HttpClient
from locatiedata.registry import DEFAULT_REGISTRY, DatasetConfig, DatasetRegistry
from locatiedata.sources.odata import ODataSourceClient


class DemographicsClient(ODataSourceClient):
    source = DEMOGRAPHICS
    year_scoped_datasets = True

    def __init__(
        self,
        *,
        dataset: DatasetConfig | None = None,
        registry: DatasetRegistry | None = None,
        http_client: HttpClient | None = None,
    ) -> None:
        registry = registry or DEFAULT_REGISTRY
        if dataset is None:
            latest = registry.latest_year(DEMOGRAPHICS)
            dataset = registry.dataset_config(latest) if latest is not None else None
        if dataset is None:
            raise ConfigError("No demographics dataset registered")
        super().__init__(
            registry=registry,
            http_client=http_client,
            base_url=dataset.base_url,
            dataset_id=dataset.id,
            default_period=dataset.period,
        )
        self.dataset = dataset

    def for_year(self, year: int) -> "DemographicsClient":
        if year == self.dataset.year:
            return self
        dataset = self.registry.dataset_config(year)
        if dataset is None:
            raise ConfigError(f"No demographics dataset registered for {year}")
        return DemographicsClient(dataset=dataset, registry=self.registry, http_client=self.http_client)
