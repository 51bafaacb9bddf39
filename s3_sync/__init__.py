from .config import SyncConfig, load_config
from .errors import (
    ConfigInvalid,
    CyclicSymlink,
    DirectoryNotFound,
    EnumerationFailed,
    OperationInProgress,
    PartialFailure,
    RemoteListFailed,
    SyncError,
    TransferFailed,
)
from .lister import RemoteLister
from .models import (
    ClearSummary,
    DeleteAction,
    FileDescriptor,
    ParamRule,
    ProgressState,
    RemoteObjectMeta,
    SkipAction,
    SyncSummary,
    SyncTarget,
    TransferResult,
    TransferSummary,
    UploadAction,
)
from .orchestrator import SyncOrchestrator
from .params import ParamResolver, glob_match
from .planner import DiffPlanner
from .scanner import FileScanner
from .tracker import SyncTracker
from .transfer import S3Transfer, TransferScheduler

__version__ = "0.1.0"

__all__ = [
    "SyncOrchestrator",
    "SyncConfig",
    "load_config",
    "SyncTarget",
    "ParamRule",
    "FileDescriptor",
    "RemoteObjectMeta",
    "UploadAction",
    "DeleteAction",
    "SkipAction",
    "ProgressState",
    "TransferResult",
    "TransferSummary",
    "SyncSummary",
    "ClearSummary",
    "FileScanner",
    "RemoteLister",
    "DiffPlanner",
    "ParamResolver",
    "glob_match",
    "S3Transfer",
    "TransferScheduler",
    "SyncTracker",
    "SyncError",
    "ConfigInvalid",
    "DirectoryNotFound",
    "CyclicSymlink",
    "EnumerationFailed",
    "RemoteListFailed",
    "TransferFailed",
    "PartialFailure",
    "OperationInProgress",
]
