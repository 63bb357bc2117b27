"""RIVM Gezondheid per wijk en buurt client (50120NED)."""

from __future__ import annotations

from locatiedata.common.constants import HEALTH
from locatiedata.common.http import HttpClient
from locatiedata.registry import DatasetRegistry
from locatiedata.sources.odata import ODataSourceClient

ALL_AGES = "20300"
NO_MARGIN = "MW00000"


class HealthClient(ODataSourceClient):
    source = HEALTH
    # The national aggregate has been published under both codes.
    national_codes = ("NL00", "NL01")

    def __init__(
        self,
        *,
        registry: DatasetRegistry | None = None,
        http_client: HttpClient | None = None,
        age_group: str = ALL_AGES,
        margins: str = NO_MARGIN,
    ) -> None:
        super().__init__(registry=registry, http_client=http_client)
        self.age_group = age_group
        self.margins = margins

    def extra_filters(self) -> dict[str, str]:
        return {"Leeftijd": self.age_group, "Marges": self.margins}
