"""Application constants."""

USER_AGENT = "locatiedata/0.4 (+open-data research; contact: configured-email)"

DEMOGRAPHICS = "demographics"
HEALTH = "health"
SAFETY = "safety"
LIVABILITY = "livability"
SOURCES = (DEMOGRAPHICS, HEALTH, SAFETY, LIVABILITY)

LEVEL_TYPES = ("national", "municipality", "district", "neighborhood")
NATIONAL_NAME = "Nederland"

DEFAULT_RATE_LIMIT_DELAY_MS = 200
MAX_YEARS_PER_REQUEST = 10
# Historic releases are not revised; application-level caches may keep them a week.
HISTORIC_DATA_CACHE_TTL_SECONDS = 7 * 24 * 60 * 60
EARLIEST_COVERED_YEAR = 2012

EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20

JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "source",
    "event",
    "status",
    "year",
    "geo_level",
    "code",
    "attempt",
    "duration_ms",
    "rows",
    "error_code",
    "message",
)
