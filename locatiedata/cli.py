"""CLI entrypoint for location data availability and fetches."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from locatiedata.aggregator import LocationDataAggregator, summarise_current, summarise_historic
from locatiedata.common.config_loader import load_registry
from locatiedata.common.constants import (
    DEFAULT_RATE_LIMIT_DELAY_MS,
    EARLIEST_COVERED_YEAR,
    EXIT_HARD_FAIL,
    EXIT_PARTIAL,
    EXIT_SUCCESS,
    LIVABILITY,
    MAX_YEARS_PER_REQUEST,
    SOURCES,
)
from locatiedata.common.errors import ConfigError, LocationDataError
from locatiedata.common.fs import write_json
from locatiedata.common.http import HttpClient
from locatiedata.common.ids import generate_run_id
from locatiedata.common.logging import build_logger, log_event
from locatiedata.common.models import GeographicCodes
from locatiedata.common.time_utils import current_year
from locatiedata.registry import (
    ALL_AVAILABLE_PRESET,
    DEFAULT_REGISTRY,
    PRESET_YEAR_SPANS,
    DatasetRegistry,
    preset_year_range,
    years_in_range,
)

COMMANDS = ("years", "matrix", "fetch", "historic")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--source", default="all", choices=[*SOURCES, "all"])
    parser.add_argument("--municipality", default=None)
    parser.add_argument("--district", default=None)
    parser.add_argument("--neighborhood", default=None)
    parser.add_argument("--year", type=int, default=None)
    parser.add_argument("--years", default=None, help="Comma separated years, e.g. 2020,2021,2022")
    parser.add_argument("--preset", default=None, choices=[*PRESET_YEAR_SPANS, ALL_AVAILABLE_PRESET])
    parser.add_argument("--start", type=int, default=None)
    parser.add_argument("--end", type=int, default=None)
    parser.add_argument("--config", default=None)
    parser.add_argument("--overlay-config", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--rate-limit-delay-ms", type=float, default=DEFAULT_RATE_LIMIT_DELAY_MS)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    return parser.parse_args(argv)


def resolve_sources(target: str) -> list[str]:
    if target == "all":
        return list(SOURCES)
    return [target]


def parse_years(value: str | None) -> list[int] | None:
    if not value:
        return None
    years: list[int] = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            years.append(int(part))
        except ValueError as exc:
            raise ConfigError(f"Invalid year in --years: {part!r}") from exc
    return years or None


def resolve_requested_years(args: argparse.Namespace) -> list[int] | None:
    years = parse_years(args.years)
    if years is not None:
        return years
    if args.preset:
        start, end = preset_year_range(args.preset)
        return years_in_range(start, end)
    if args.start is not None or args.end is not None:
        return years_in_range(args.start or EARLIEST_COVERED_YEAR, args.end or current_year())
    return None


def _load_registry(args: argparse.Namespace) -> DatasetRegistry:
    if args.config is None:
        if args.overlay_config is not None:
            raise ConfigError("--overlay-config requires --config")
        return DEFAULT_REGISTRY
    overlay = Path(args.overlay_config) if args.overlay_config else None
    return load_registry(Path(args.config), overlay_path=overlay)


def _codes(args: argparse.Namespace) -> GeographicCodes:
    if not args.municipality:
        raise ConfigError(f"--municipality is required for {args.command}")
    return GeographicCodes.from_values(args.municipality, args.district, args.neighborhood)


def run_years(registry: DatasetRegistry, args: argparse.Namespace, out_dir: Path) -> int:
    payload = {
        "sources": {source: registry.available_years(source) for source in resolve_sources(args.source)},
        "common": registry.common_available_years(),
    }
    write_json(out_dir / "available_years.json", payload)
    return EXIT_SUCCESS


def run_matrix(registry: DatasetRegistry, args: argparse.Namespace, out_dir: Path) -> int:
    start = args.start if args.start is not None else EARLIEST_COVERED_YEAR
    end = args.end if args.end is not None else current_year()
    matrix = registry.data_availability_matrix(start, end)
    write_json(out_dir / "availability_matrix.json", matrix.to_dict())
    return EXIT_SUCCESS


def run_fetch(
    registry: DatasetRegistry,
    args: argparse.Namespace,
    out_dir: Path,
    http_client: HttpClient,
) -> int:
    codes = _codes(args)
    sources = resolve_sources(args.source)
    years = {source: args.year for source in sources} if args.year is not None else None
    aggregator = LocationDataAggregator(registry=registry, http_client=http_client, sources=sources)
    results = aggregator.fetch_current(codes, years)

    summary = summarise_current(results)
    write_json(
        out_dir / f"current_{codes.municipality.lower()}.json",
        {
            "codes": codes.to_dict(),
            "summary": summary,
            "results": {source: response.to_dict() for source, response in results.items()},
        },
    )
    if any(not item["populated_levels"] for item in summary.values()):
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def run_historic(
    registry: DatasetRegistry,
    args: argparse.Namespace,
    out_dir: Path,
    http_client: HttpClient,
    logger,
) -> int:
    codes = _codes(args)
    requested = resolve_requested_years(args)
    if requested is not None and len(requested) > MAX_YEARS_PER_REQUEST:
        log_event(
            logger,
            f"{len(requested)} years requested; more than {MAX_YEARS_PER_REQUEST} per request is slow upstream",
            event="HISTORIC_LARGE_REQUEST",
            status="warning",
        )

    def report(source: str, current: int, total: int, year: int) -> None:
        log_event(
            logger,
            f"{source} progress {current}/{total}",
            source=source,
            event="HISTORIC_PROGRESS",
            status="ok",
            year=year,
        )

    aggregator = LocationDataAggregator(
        registry=registry,
        http_client=http_client,
        sources=resolve_sources(args.source),
    )
    results = aggregator.fetch_historic(
        codes,
        requested,
        on_progress=report,
        rate_limit_delay_ms=args.rate_limit_delay_ms,
    )

    summary = summarise_historic(results, requested, registry)
    if LIVABILITY in summary:
        warning = aggregator.client(LIVABILITY).comparability_warning
        if warning:
            summary[LIVABILITY]["warning"] = warning
            log_event(
                logger,
                warning,
                level=logging.WARNING,
                source=LIVABILITY,
                event="COMPARABILITY_WARNING",
                status="warning",
            )
    write_json(
        out_dir / f"historic_{codes.municipality.lower()}.json",
        {
            "codes": codes.to_dict(),
            "requested_years": requested,
            "summary": summary,
            "results": {
                source: {year: response.to_dict() for year, response in by_year.items()}
                for source, by_year in results.items()
            },
        },
    )
    if any(item["missing_years"] for item in summary.values()):
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def run_command(args: argparse.Namespace, http_client: HttpClient | None = None) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    out_dir = data_dir / "out"
    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)

    log_event(logger, "command start", event="COMMAND_START", status="ok", source=args.source)
    try:
        registry = _load_registry(args)
        if args.command == "years":
            exit_code = run_years(registry, args, out_dir)
        elif args.command == "matrix":
            exit_code = run_matrix(registry, args, out_dir)
        else:
            owns_client = http_client is None
            client = http_client or HttpClient()
            try:
                if args.command == "fetch":
                    exit_code = run_fetch(registry, args, out_dir, client)
                else:
                    exit_code = run_historic(registry, args, out_dir, client, logger)
            finally:
                if owns_client:
                    client.close()
    except LocationDataError as exc:
        log_event(
            logger,
            f"command failed: {exc}",
            event="COMMAND_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL
    except ValueError as exc:
        log_event(
            logger,
            f"command failed: {exc}",
            event="COMMAND_FAIL",
            status="error",
            error_code="INVALID_ARGUMENT",
        )
        return EXIT_HARD_FAIL

    log_event(
        logger,
        "command end",
        event="COMMAND_END",
        status="ok" if exit_code == EXIT_SUCCESS else "partial",
    )
    return exit_code


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
