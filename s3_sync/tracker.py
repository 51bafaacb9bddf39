"""
Module for tracking the state of sync operations and logging their summaries.
"""
import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

from .errors import OperationInProgress
from .models import ClearSummary, OperationState, SyncSummary, SyncTarget, TransferSummary

logger = logging.getLogger(__name__)


class SyncTracker:
    """Tracks the state of running operations and persists run logs."""

    def __init__(self, log_dir: Optional[Path] = None):
        """Initialize the sync tracker.

        Args:
            log_dir: Directory to store JSON run logs. If None, logs to memory only.
        """
        self.log_dir = Path(log_dir) if log_dir else None
        if self.log_dir:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self._states: Dict[str, OperationState] = {}
        self._lock = threading.Lock()

    def get_state(self, target: SyncTarget) -> OperationState:
        """Get the current state of a target.

        Args:
            target: Sync target

        Returns:
            Last recorded state, IDLE if the target was never used
        """
        with self._lock:
            return self._states.get(target.target_id, OperationState.IDLE)

    def begin(self, target: SyncTarget, state: OperationState) -> None:
        """Start an operation on a target.

        Args:
            target: Sync target
            state: First non-idle state of the operation

        Raises:
            OperationInProgress: If an operation on the same prefix is still running
        """
        with self._lock:
            current = self._states.get(target.target_id, OperationState.IDLE)
            if current is not OperationState.IDLE and not current.is_terminal:
                raise OperationInProgress(target.target_id)
            self._states[target.target_id] = state
        logger.debug(f"{target.target_id}: {current.value} -> {state.value}")

    def advance(self, target: SyncTarget, state: OperationState) -> None:
        """Move a running operation to its next state.

        Args:
            target: Sync target
            state: New state
        """
        with self._lock:
            previous = self._states.get(target.target_id, OperationState.IDLE)
            self._states[target.target_id] = state
        logger.debug(f"{target.target_id}: {previous.value} -> {state.value}")

    def _get_log_path(self, target: SyncTarget, operation: str) -> Optional[Path]:
        """Get the path for the log file of an operation.

        Args:
            target: Sync target
            operation: Operation name

        Returns:
            Path to the log file, or None if logging to memory
        """
        if not self.log_dir:
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        safe_name = f"{target.bucket_name}_{target.bucket_prefix}".strip("_").replace("/", "_")
        return self.log_dir / f"{operation}_{safe_name}_{timestamp}.json"

    def log_summary(self, summary: Union[SyncSummary, ClearSummary]) -> None:
        """Log the summary of a finished operation.

        Args:
            summary: SyncSummary or ClearSummary object
        """
        target = summary.target
        transfer: TransferSummary = summary.transfer
        operation = "sync" if isinstance(summary, SyncSummary) else "clear"
        log_data = {
            "timestamp": datetime.now().isoformat(),
            "operation": operation,
            "local_directory": str(target.local_directory),
            "bucket": target.bucket_name,
            "prefix": target.bucket_prefix,
            "succeeded": transfer.succeeded_count,
            "failed": transfer.failed_count,
            "cancelled": transfer.cancelled_count,
            "bytes_transferred": transfer.bytes_transferred,
            "first_error": str(transfer.first_error) if transfer.first_error else None,
            "results": [
                {
                    "action": r.action.kind,
                    "key": r.key,
                    "success": r.success,
                    "cancelled": r.cancelled,
                    "error": str(r.error) if r.error else None,
                    "bytes": r.bytes_transferred
                }
                for r in transfer.results
            ]
        }
        if isinstance(summary, SyncSummary):
            log_data.update(uploaded=summary.uploaded, deleted=summary.deleted,
                            skipped=summary.skipped)
        else:
            log_data.update(deleted=summary.deleted)

        if log_path := self._get_log_path(target, operation):
            try:
                with open(log_path, 'w') as f:
                    json.dump(log_data, f, indent=2)
            except OSError as e:
                logger.error(f"Error writing run log {log_path}: {e}")

        logger.info(
            f"Completed {operation} of {target.target_id}: "
            f"{transfer.succeeded_count}/{transfer.total_count} transfers succeeded"
        )
