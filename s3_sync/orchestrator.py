"""
Module for orchestrating sync and clear operations across sync targets.
"""
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from .errors import PartialFailure, SyncError
from .lister import RemoteLister
from .models import (
    ClearSummary,
    DeleteAction,
    OperationState,
    SyncAction,
    SyncSummary,
    SyncTarget,
    TransferSummary,
)
from .params import ParamResolver
from .planner import DiffPlanner
from .scanner import FileScanner
from .tracker import SyncTracker
from .transfer import CompleteCallback, ProgressCallback, S3Transfer, TransferScheduler

logger = logging.getLogger(__name__)

MESSAGE_PREFIX = "S3 Sync: "


class Console:
    """Human-readable progress output: banner lines and progress dots."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    def log(self, message: str) -> None:
        self.stream.write(f"{message}\n")
        self.stream.flush()

    def dot(self) -> None:
        self.stream.write(".")
        self.stream.flush()


class SyncOrchestrator:
    """Runs sync and clear operations for sync targets."""

    def __init__(self, s3_client, service_path: Optional[Path] = None,
                 max_concurrency: int = 5, tracker: Optional[SyncTracker] = None,
                 console: Optional[Console] = None, stop_on_failure: bool = False,
                 chunk_size: int = 8 * 1024 * 1024):
        """Initialize the orchestrator.

        Args:
            s3_client: boto3 S3 client used for listing and transfers
            service_path: Base directory for relative local directories
            max_concurrency: Maximum concurrent transfer units per target
            tracker: Tracker for operation state and run logs
            console: Console receiving banners and progress dots
            stop_on_failure: Whether queued units are skipped after a failure
            chunk_size: Multipart threshold and part size for uploads
        """
        self.s3_client = s3_client
        self.service_path = Path(service_path) if service_path else Path.cwd()
        self.max_concurrency = max_concurrency
        self.tracker = tracker or SyncTracker()
        self.console = console or Console()
        self.stop_on_failure = stop_on_failure
        self.chunk_size = chunk_size
        self.scanner = FileScanner()
        self.lister = RemoteLister(s3_client)

    def resolve_local_directory(self, target: SyncTarget) -> Path:
        """Resolve the target's directory against the service path."""
        local_dir = Path(target.local_directory)
        if local_dir.is_absolute():
            return local_dir
        return self.service_path / local_dir

    def _scheduler(self, target: SyncTarget) -> TransferScheduler:
        transfer = S3Transfer(self.s3_client, target.bucket_name, chunk_size=self.chunk_size)
        return TransferScheduler(transfer, max_concurrency=self.max_concurrency,
                                 stop_on_failure=self.stop_on_failure)

    def _plan(self, target: SyncTarget) -> List[SyncAction]:
        local_dir = self.resolve_local_directory(target)
        descriptors = list(self.scanner.enumerate(local_dir, target.follow_symlinks))
        logger.debug(f"Found {len(descriptors)} local files in {local_dir}")

        self.tracker.advance(target, OperationState.LISTING)
        remote = self.lister.list_objects(target.bucket_name, target.bucket_prefix)

        self.tracker.advance(target, OperationState.PLANNING)
        planner = DiffPlanner(ParamResolver(target.param_rules), acl=target.acl)
        return planner.plan(descriptors, remote, target.delete_removed, target.bucket_prefix)

    def _finish(self, target: SyncTarget, transfer: TransferSummary) -> None:
        """Record the terminal state and raise if any unit did not succeed."""
        unfinished = transfer.failed_count + transfer.cancelled_count
        if unfinished == 0:
            self.tracker.advance(target, OperationState.COMPLETED)
            return

        self.tracker.advance(target, OperationState.FAILED)
        if transfer.succeeded_count == 0 and transfer.first_error is not None \
                and transfer.cancelled_count == 0:
            raise transfer.first_error
        raise PartialFailure(transfer.succeeded_count, unfinished,
                             transfer.first_error, summary=transfer)

    def plan_directory(self, target: SyncTarget) -> List[SyncAction]:
        """Compute the actions a sync would take without transferring anything.

        Args:
            target: Sync target

        Returns:
            Ordered list of planned actions
        """
        self.tracker.begin(target, OperationState.ENUMERATING)
        try:
            actions = self._plan(target)
        except Exception:
            self.tracker.advance(target, OperationState.FAILED)
            raise
        self.tracker.advance(target, OperationState.COMPLETED)
        return actions

    def sync_directory(self, target: SyncTarget,
                       progress_callback: Optional[ProgressCallback] = None,
                       complete_callback: Optional[CompleteCallback] = None) -> SyncSummary:
        """Mirror a local directory to its bucket prefix.

        Args:
            target: Sync target
            progress_callback: Called at every 10% of transfer progress
            complete_callback: Called once when all transfer units settle

        Returns:
            SyncSummary object

        Raises:
            SyncError: If enumeration or listing fails, or any transfer fails
        """
        self.tracker.begin(target, OperationState.ENUMERATING)
        try:
            actions = self._plan(target)
            self.tracker.advance(target, OperationState.TRANSFERRING)
            transfer = self._scheduler(target).run(actions, progress_callback, complete_callback)
        except Exception:
            self.tracker.advance(target, OperationState.FAILED)
            raise

        summary = SyncSummary(
            target=target,
            uploaded=sum(1 for r in transfer.results if r.success and r.action.kind == "upload"),
            deleted=sum(1 for r in transfer.results if r.success and r.action.kind == "delete"),
            skipped=sum(1 for a in actions if a.kind == "skip"),
            transfer=transfer
        )
        try:
            self.tracker.log_summary(summary)
        finally:
            self._finish(target, transfer)
        return summary

    def clear_prefix(self, target: SyncTarget,
                     progress_callback: Optional[ProgressCallback] = None,
                     complete_callback: Optional[CompleteCallback] = None) -> ClearSummary:
        """Delete every object under a target's bucket prefix.

        Args:
            target: Sync target
            progress_callback: Called at every 10% of transfer progress
            complete_callback: Called once when all deletes settle

        Returns:
            ClearSummary object

        Raises:
            SyncError: If listing fails or any delete fails
        """
        self.tracker.begin(target, OperationState.LISTING)
        try:
            remote = self.lister.list_objects(target.bucket_name, target.bucket_prefix)
            actions = [DeleteAction(key=meta.key, size_bytes=meta.size_bytes)
                       for meta in remote.values()]
            self.tracker.advance(target, OperationState.TRANSFERRING)
            transfer = self._scheduler(target).run(actions, progress_callback, complete_callback)
        except Exception:
            self.tracker.advance(target, OperationState.FAILED)
            raise

        summary = ClearSummary(target=target, deleted=transfer.succeeded_count, transfer=transfer)
        try:
            self.tracker.log_summary(summary)
        finally:
            self._finish(target, transfer)
        return summary

    def _run_targets(self, targets: Sequence[SyncTarget], operation) -> list:
        """Run an operation on every target concurrently, raising the first error."""
        if not targets:
            return []

        def run(target: SyncTarget):
            return operation(target, progress_callback=lambda progress: self.console.dot())

        summaries = []
        errors: List[SyncError] = []
        with ThreadPoolExecutor(max_workers=len(targets)) as executor:
            futures = [executor.submit(run, target) for target in targets]
            for target, future in zip(targets, futures):
                try:
                    summaries.append(future.result())
                except SyncError as e:
                    logger.error(f"{target.target_id}: {e}")
                    errors.append(e)

        if errors:
            raise errors[0]
        return summaries

    def sync_all(self, targets: Sequence[SyncTarget], artifact: bool) -> List[SyncSummary]:
        """Sync the targets belonging to one deploy phase.

        Args:
            targets: All configured targets
            artifact: True for the artifact-upload phase, False for post-deploy

        Returns:
            List of SyncSummary objects for the selected targets
        """
        selected = [t for t in targets if t.artifact == artifact]
        self.console.log(f"{MESSAGE_PREFIX}Syncing directories and S3 prefixes... artifact:{str(artifact).lower()}")
        for target in selected:
            self.console.log(f"{MESSAGE_PREFIX}{target.local_directory} -> {target.bucket_name}/{target.bucket_prefix}")

        summaries = self._run_targets(selected, self.sync_directory)
        self.console.dot()
        self.console.log("")
        self.console.log(f"{MESSAGE_PREFIX}Synced.")
        return summaries

    def clear_all(self, targets: Sequence[SyncTarget]) -> List[ClearSummary]:
        """Delete the objects of every target, regardless of phase.

        Args:
            targets: All configured targets

        Returns:
            List of ClearSummary objects
        """
        self.console.log(f"{MESSAGE_PREFIX}Removing S3 objects...")
        summaries = self._run_targets(list(targets), self.clear_prefix)
        self.console.dot()
        self.console.log("")
        self.console.log(f"{MESSAGE_PREFIX}Removed.")
        return summaries

    def deploy(self, targets: Sequence[SyncTarget]) -> List[SyncSummary]:
        """Run the artifact phase followed by the post-deploy phase."""
        return self.sync_all(targets, artifact=True) + self.sync_all(targets, artifact=False)
