"""Source name to client resolution."""

from __future__ import annotations

from locatiedata.common.constants import DEMOGRAPHICS, HEALTH, LIVABILITY, SAFETY
from locatiedata.common.errors import ConfigError
from locatiedata.common.http import HttpClient
from locatiedata.registry import DatasetRegistry
from locatiedata.sources.demographics import DemographicsClient
from locatiedata.sources.health import HealthClient
from locatiedata.sources.livability import LivabilityClient
from locatiedata.sources.odata import ODataSourceClient
from locatiedata.sources.safety import SafetyClient

CLIENT_CLASSES: dict[str, type[ODataSourceClient]] = {
    DEMOGRAPHICS: DemographicsClient,
    HEALTH: HealthClient,
    SAFETY: SafetyClient,
    LIVABILITY: LivabilityClient,
}


def build_client(
    source: str,
    *,
    registry: DatasetRegistry | None = None,
    http_client: HttpClient | None = None,
) -> ODataSourceClient:
    client_cls = CLIENT_CLASSES.get(source)
    if client_cls is None:
        raise ConfigError(f"Unknown data source: {source}")
    return client_cls(registry=registry, http_client=http_client)
