"""Domain errors and failure typing."""


class LocationDataError(Exception):
    """Base class for location data failures."""

    error_code = "LOCATION_DATA_ERROR"


class ConfigError(LocationDataError):
    """Raised for invalid or missing dataset configuration."""

    error_code = "CONFIG_ERROR"


class FetchError(LocationDataError):
    """Raised when an upstream OData request fails."""

    error_code = "FETCH_ERROR"


class RetryableFetchError(FetchError):
    error_code = "FETCH_RETRYABLE"
