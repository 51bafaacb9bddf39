"""
Module containing the exception hierarchy for sync operations.
"""
from typing import Optional


class SyncError(Exception):
    """Base class for all sync errors."""


class ConfigInvalid(SyncError):
    """Raised when a sync target or config file is invalid."""


class DirectoryNotFound(SyncError):
    """Raised when the local directory of a target does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Local directory does not exist: {path}")


class CyclicSymlink(SyncError):
    """Raised when following symlinks leads back into an ancestor directory."""

    def __init__(self, link, target):
        self.link = link
        self.target = target
        super().__init__(f"Symlink {link} points back to ancestor directory {target}")


class EnumerationFailed(SyncError):
    """Raised when a directory or file in the local tree cannot be read."""

    def __init__(self, path, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Cannot read {path}: {cause}")


class RemoteListFailed(SyncError):
    """Raised when listing the objects under a bucket prefix fails."""

    def __init__(self, bucket: str, prefix: str, cause: Exception):
        self.bucket = bucket
        self.prefix = prefix
        self.cause = cause
        super().__init__(f"Cannot list s3://{bucket}/{prefix}: {cause}")


class TransferFailed(SyncError):
    """Raised (or recorded) when a single upload or delete fails."""

    def __init__(self, key: str, cause: Optional[Exception] = None):
        self.key = key
        self.cause = cause
        super().__init__(f"Transfer of {key} failed: {cause}")


class PartialFailure(SyncError):
    """Raised when some, but not all, transfer units of an operation failed."""

    def __init__(self, succeeded: int, failed: int,
                 first_error: Optional[TransferFailed] = None, summary=None):
        self.succeeded = succeeded
        self.failed = failed
        self.first_error = first_error
        self.summary = summary
        super().__init__(
            f"{failed} of {succeeded + failed} transfers failed"
            + (f" (first error: {first_error})" if first_error else "")
        )


class OperationInProgress(SyncError):
    """Raised when an operation is started for a target that is already busy."""

    def __init__(self, target_id: str):
        self.target_id = target_id
        super().__init__(f"Another operation is already running for {target_id}")
