"""Custom exception hierarchy for dreadmarch."""

from __future__ import annotations


class DreadmarchError(Exception):
    """Base exception for all dreadmarch errors."""


class DreadmarchConfigError(DreadmarchError):
    """Invalid or missing configuration."""


class InvalidDatasetError(DreadmarchError):
    """Raw dataset is not a mapping.

    Never raised out of :func:`dreadmarch.ingestion.normalize.normalize`;
    it is handed to the diagnostics sink alongside the empty fallback.
    """


class SystemNormalizationError(DreadmarchError):
    """A single system record could not be merged."""

    def __init__(self, message: str, *, system_id: str = "") -> None:
        self.system_id = system_id
        super().__init__(message)


class CacheKeyError(DreadmarchError):
    """Cache key derivation failed (cyclic or unserializable input)."""


class WorkerError(DreadmarchError):
    """Base class for background normalization failures."""


class WorkerUnavailableError(WorkerError):
    """The background context could not be constructed."""


class WorkerFaultError(WorkerError):
    """Context-level failure; every pending request is rejected."""


class WorkerRequestError(WorkerError):
    """The background context reported an error for one request."""

    def __init__(self, message: str, *, request_id: int | None = None) -> None:
        self.request_id = request_id
        super().__init__(message)


class InvalidModeError(DreadmarchError):
    """Mode value outside the supported set.

    Passed to the diagnostics sink; ``set_mode`` itself never raises.
    """
