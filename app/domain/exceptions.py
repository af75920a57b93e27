"""FarmWatch exception hierarchy.

Every error the services raise derives from :class:`FarmWatchError`, whose
``http_status`` is what ``app.utils.http.safe_route`` answers with::

    FarmWatchError              500
    ├── ValidationError         400  rejected input or update
    ├── NotFoundError           404  unknown alert / threshold
    ├── ConflictError           409  duplicate sensor_type
    ├── ServiceError            500
    │   └── RepositoryError     500  storage write failed
    └── ConfigurationError      500  bad FARMWATCH_* setting
"""

from __future__ import annotations


class FarmWatchError(Exception):
    """Root of the FarmWatch errors.

    ``detail`` carries structured context (field names, sensor type) that is
    logged and, for 4xx errors, echoed back to the client.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


class ValidationError(FarmWatchError):
    http_status: int = 400


class NotFoundError(FarmWatchError):
    http_status: int = 404


class ConflictError(FarmWatchError):
    http_status: int = 409


class ServiceError(FarmWatchError):
    http_status: int = 500


class RepositoryError(ServiceError):
    """A write the caller depends on did not reach the database."""


class ConfigurationError(FarmWatchError):
    http_status: int = 500
