"""CBS Veiligheidsmonitor livability client (85146NED)."""

from __future__ import annotations

from locatiedata.common.constants import LIVABILITY
from locatiedata.sources.odata import ODataSourceClient


class LivabilityClient(ODataSourceClient):
    source = LIVABILITY

    @property
    def comparability_warning(self) -> str | None:
        return self.registry.livability.warning
