"""Politie geregistreerde criminaliteit client (47018NED)."""

from __future__ import annotations

from typing import Any

from locatiedata.common.constants import SAFETY
from locatiedata.sources.odata import ODataSourceClient

CRIME_TYPE_COLUMN = "SoortMisdrijf"
CRIME_COUNT_COLUMN = "GeregistreerdeMisdrijven_1"


def parse_crime_count(value: object) -> int:
    # Suppressed cells come back as "." and count as zero.
    text = str(value).strip() if value is not None else ""
    try:
        return int(text)
    except ValueError:
        try:
            return int(float(text))
        except (ValueError, OverflowError):
            return 0


class SafetyClient(ODataSourceClient):
    """One row per crime type, remapped to `{crime type code: registered crimes}`."""

    source = SAFETY
    national_codes = ("NL00", "NL01")

    def parse_rows(self, rows: list[dict[str, Any]]) -> dict[str, Any]:
        counts: dict[str, int] = {}
        for row in rows:
            crime_type = str(row.get(CRIME_TYPE_COLUMN) or "").strip()
            if not crime_type:
                continue
            counts[crime_type] = parse_crime_count(row.get(CRIME_COUNT_COLUMN))
        return counts

    def get_available_crime_types(self) -> list[dict[str, str]]:
        return [
            {"code": str(item["Key"]).strip(), "title": str(item.get("Title") or "").strip()}
            for item in self.fetch_metadata_keys(CRIME_TYPE_COLUMN)
        ]
