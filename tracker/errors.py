"""Error kinds raised by the repositories and mapped to HTTP responses."""

from __future__ import annotations


class TrackerError(Exception):
    """Base error. ``status_code`` is the HTTP status the API reports."""

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigError(TrackerError):
    status_code = 500


class ValidationError(TrackerError):
    status_code = 400


class InvalidIdError(TrackerError):
    status_code = 400

    def __init__(self, message: str = "invalid id", status_code: int | None = None) -> None:
        super().__init__(message, status_code)


class NotFoundError(TrackerError):
    status_code = 404

    def __init__(self, message: str = "not found", status_code: int | None = None) -> None:
        super().__init__(message, status_code)


class MissingParameterError(TrackerError):
    status_code = 400


class SessionClosedError(TrackerError):
    status_code = 409


class StoreError(TrackerError):
    status_code = 400
