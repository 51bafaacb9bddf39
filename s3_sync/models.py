"""
Module containing data models for the sync service.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Dict, Any, Tuple, Union

from .errors import ConfigInvalid, TransferFailed

CANNED_ACLS = frozenset({
    'private',
    'public-read',
    'public-read-write',
    'authenticated-read',
    'aws-exec-read',
    'bucket-owner-read',
    'bucket-owner-full-control',
    'log-delivery-write',
})


def normalize_prefix(prefix: str) -> str:
    """Return the prefix with leading slashes removed and a trailing slash added.

    An empty prefix stays empty so the whole bucket is addressed.
    """
    prefix = (prefix or "").lstrip("/")
    if prefix and not prefix.endswith("/"):
        prefix += "/"
    return prefix


@dataclass(frozen=True)
class ParamRule:
    """A glob pattern and the upload parameters applied to matching files."""
    glob: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SyncTarget:
    """Represents one local directory mirrored to a bucket prefix."""
    local_directory: Path
    bucket_name: str
    bucket_prefix: str = ""
    acl: str = "private"
    follow_symlinks: bool = False
    delete_removed: bool = True
    artifact: bool = False
    param_rules: Tuple[ParamRule, ...] = ()

    def __post_init__(self):
        """Validate the sync target."""
        if not self.local_directory or not str(self.local_directory).strip():
            raise ConfigInvalid("local_directory cannot be empty")
        if not self.bucket_name:
            raise ConfigInvalid("bucket_name cannot be empty")
        if self.acl not in CANNED_ACLS:
            raise ConfigInvalid(f"Unknown ACL {self.acl!r} for bucket {self.bucket_name}")
        self.local_directory = Path(self.local_directory)
        self.bucket_prefix = normalize_prefix(self.bucket_prefix)
        self.param_rules = tuple(self.param_rules)

    @property
    def target_id(self) -> str:
        """Identifier used to serialize operations on the same prefix."""
        return f"s3://{self.bucket_name}/{self.bucket_prefix}"


@dataclass(frozen=True)
class FileDescriptor:
    """A regular file found while enumerating a local directory."""
    relative_path: str
    absolute_path: Path
    size_bytes: int
    mod_time: float
    is_symlink: bool = False


@dataclass(frozen=True)
class RemoteObjectMeta:
    """An object found while listing a bucket prefix."""
    key: str
    size_bytes: int
    etag: Optional[str] = None


@dataclass(frozen=True)
class UploadAction:
    descriptor: FileDescriptor
    key: str
    params: Dict[str, Any] = field(default_factory=dict, hash=False)
    kind = "upload"

    @property
    def size_bytes(self) -> int:
        return self.descriptor.size_bytes


@dataclass(frozen=True)
class DeleteAction:
    key: str
    size_bytes: int = 0
    kind = "delete"


@dataclass(frozen=True)
class SkipAction:
    relative_path: str
    key: str
    kind = "skip"


SyncAction = Union[UploadAction, DeleteAction, SkipAction]


@dataclass
class ProgressState:
    """Aggregate progress of one transfer run."""
    amount_transferred: int = 0
    total_expected: int = 0
    completed_count: int = 0
    failed_count: int = 0
    total_count: int = 0

    @property
    def fraction(self) -> float:
        """Fraction of work done, by bytes when any are expected, else by items."""
        if self.total_expected > 0:
            return self.amount_transferred / self.total_expected
        if self.total_count > 0:
            return (self.completed_count + self.failed_count) / self.total_count
        return 1.0


@dataclass
class TransferResult:
    """Represents the result of a single upload or delete."""
    action: SyncAction
    success: bool
    error: Optional[TransferFailed] = None
    bytes_transferred: int = 0
    cancelled: bool = False

    @property
    def key(self) -> str:
        return self.action.key


@dataclass
class TransferSummary:
    """Represents a summary of a transfer run."""
    succeeded_count: int
    failed_count: int
    cancelled_count: int = 0
    bytes_transferred: int = 0
    first_error: Optional[TransferFailed] = None
    results: List[TransferResult] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return self.succeeded_count + self.failed_count + self.cancelled_count


class OperationState(str, Enum):
    """States of a sync or clear operation on one target."""
    IDLE = "idle"
    ENUMERATING = "enumerating"
    LISTING = "listing"
    PLANNING = "planning"
    TRANSFERRING = "transferring"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationState.COMPLETED, OperationState.FAILED)


@dataclass
class SyncSummary:
    """Represents a summary of a sync_directory operation."""
    target: SyncTarget
    uploaded: int
    deleted: int
    skipped: int
    transfer: TransferSummary


@dataclass
class ClearSummary:
    """Represents a summary of a clear_prefix operation."""
    target: SyncTarget
    deleted: int
    transfer: TransferSummary
