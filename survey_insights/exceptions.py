"""Project-wide custom exception types."""


class DataSourceError(RuntimeError):
    """Raised when the remote data source fails or returns an unusable payload."""

    def __init__(self, message: str) -> None:  # noqa: D401 – simple constructor
        super().__init__(message)


class UnknownTrackError(ValueError):
    """Raised when a paged detail track name is not recognised."""
