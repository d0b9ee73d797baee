"""Error taxonomy for the raid sync pipeline."""

from __future__ import annotations

from typing import Any


class RaidSyncError(Exception):
    """Base class for all raid sync errors."""


class ConfigurationError(RaidSyncError):
    """Required configuration is missing. Fatal before a run starts."""


class ValidationError(RaidSyncError):
    """A single source row failed validation. The row is skipped."""

    reason = "invalid row"

    def __init__(self, value: Any, row_number: int | None = None) -> None:
        self.value = value
        self.row_number = row_number
        location = f" (row {row_number})" if row_number is not None else ""
        super().__init__(f"{self.reason}: {value!r}{location}")


class InvalidRiderId(ValidationError):
    reason = "invalid rider id"


class InvalidDate(ValidationError):
    reason = "invalid date"


class InvalidCount(ValidationError):
    reason = "invalid delivery count"


class StoreReadError(RaidSyncError):
    """A read from the store failed. Aborts the current raid."""


class StoreWriteError(RaidSyncError):
    """A single upsert/update failed."""


class SourceFetchError(RaidSyncError):
    """The external delivery-log source could not be read."""


class SyncAlreadyRunningError(RaidSyncError):
    """Another sync run holds the run lock."""
