from __future__ import annotations


class AppError(Exception):
    """Base error carrying the HTTP status the API layer should answer with."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """A required field is missing or a value is malformed."""

    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class GenerationError(AppError):
    """The text-generation provider failed or replied with unusable output."""


class StorageError(AppError):
    """The record file could not be read/written or holds corrupt data."""


class ConfigError(AppError):
    pass


__all__ = [
    "AppError",
    "ValidationError",
    "NotFoundError",
    "GenerationError",
    "StorageError",
    "ConfigError",
]
