"""UTC-focused helpers for fetch timestamps and run metadata."""

from __future__ import annotations

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_timestamp_iso() -> str:
    return utc_now().isoformat(timespec="milliseconds")


def current_year() -> int:
    return date.today().year
