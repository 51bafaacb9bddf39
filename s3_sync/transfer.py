"""
Module for executing sync actions against S3 with bounded concurrency.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Callable, List, Optional, Sequence

from boto3.s3.transfer import TransferConfig
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    before_log,
    after_log
)

from .errors import TransferFailed
from .models import (
    DeleteAction,
    ProgressState,
    SyncAction,
    TransferResult,
    TransferSummary,
    UploadAction,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressState], None]
CompleteCallback = Callable[[TransferSummary], None]

RETRYABLE_CODES = {
    'RequestTimeout',
    'RequestTimeoutException',
    'PriorRequestNotComplete',
    'ConnectionError',
    'ThrottlingException',
    'ThrottledException',
    'ServiceUnavailable',
    'SlowDown',
    'Throttling',
    'InternalError',
    '5XX'
}


def is_retryable_error(exception: BaseException) -> bool:
    """Check if an exception should trigger a retry.

    boto3's managed upload wraps client errors in S3UploadFailedError, so the
    chained cause is inspected as well.

    Args:
        exception: The exception to check

    Returns:
        True if the error is retryable, False otherwise
    """
    if isinstance(exception, ClientError):
        return exception.response.get('Error', {}).get('Code') in RETRYABLE_CODES
    if isinstance(exception, (EndpointConnectionError, ConnectionClosedError,
                              ConnectTimeoutError, ReadTimeoutError)):
        return True
    cause = exception.__cause__ or exception.__context__
    return cause is not None and cause is not exception and is_retryable_error(cause)


class S3Transfer:
    """Performs single-object uploads and deletes with retry logic."""

    def __init__(self, s3_client, bucket: str, chunk_size: int = 8 * 1024 * 1024):
        """Initialize the transfer.

        Args:
            s3_client: boto3 S3 client
            bucket: S3 bucket name
            chunk_size: Threshold and part size for managed multipart uploads
        """
        self.s3_client = s3_client
        self.bucket = bucket
        self.transfer_config = TransferConfig(
            multipart_threshold=chunk_size,
            multipart_chunksize=chunk_size,
            use_threads=False
        )

    @retry(
        retry=retry_if_exception(is_retryable_error),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        before=before_log(logger, logging.DEBUG),
        after=after_log(logger, logging.DEBUG),
        reraise=True
    )
    def upload(self, action: UploadAction) -> None:
        """Upload one file to its key.

        Args:
            action: Upload action carrying the file and its parameters
        """
        self.s3_client.upload_file(
            str(action.descriptor.absolute_path),
            self.bucket,
            action.key,
            ExtraArgs=dict(action.params),
            Config=self.transfer_config
        )

    @retry(
        retry=retry_if_exception(is_retryable_error),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        before=before_log(logger, logging.DEBUG),
        after=after_log(logger, logging.DEBUG),
        reraise=True
    )
    def delete(self, action: DeleteAction) -> None:
        """Delete one object.

        Args:
            action: Delete action carrying the key
        """
        self.s3_client.delete_object(Bucket=self.bucket, Key=action.key)

    def execute(self, action: SyncAction) -> TransferResult:
        """Run one transfer unit and report its outcome as a value.

        Args:
            action: Upload or delete action

        Returns:
            TransferResult, never raises for transfer errors
        """
        try:
            if isinstance(action, UploadAction):
                self.upload(action)
                logger.debug(f"Uploaded {action.descriptor.absolute_path} to s3://{self.bucket}/{action.key}")
                return TransferResult(action=action, success=True,
                                      bytes_transferred=action.size_bytes)
            if isinstance(action, DeleteAction):
                self.delete(action)
                logger.debug(f"Deleted s3://{self.bucket}/{action.key}")
                return TransferResult(action=action, success=True)
            raise ValueError(f"Not a transfer action: {action!r}")
        except Exception as e:
            logger.error(f"Error transferring s3://{self.bucket}/{action.key}: {e}")
            error = TransferFailed(action.key, e)
            error.__cause__ = e
            return TransferResult(action=action, success=False, error=error)


class _Run:
    """Mutable state of one scheduler run, guarded by its lock."""

    def __init__(self, progress: ProgressState):
        self.lock = threading.Lock()
        self.progress = progress
        self.reported_percent = 0
        self.first_error: Optional[TransferFailed] = None
        self.in_flight = 0
        self.max_in_flight = 0


class TransferScheduler:
    """Executes sync actions on a fixed-size worker pool."""

    def __init__(self, transfer: S3Transfer, max_concurrency: int = 5,
                 stop_on_failure: bool = False):
        """Initialize the scheduler.

        Args:
            transfer: Object performing single transfer units
            max_concurrency: Maximum number of units in flight
            stop_on_failure: Whether queued units are skipped after a failure
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.transfer = transfer
        self.max_concurrency = max_concurrency
        self.stop_on_failure = stop_on_failure
        self._cancelled = threading.Event()
        self.last_max_in_flight = 0

    def cancel(self) -> None:
        """Stop dispatching queued units; units already running complete."""
        self._cancelled.set()

    def _should_stop(self, run: _Run) -> bool:
        if self._cancelled.is_set():
            return True
        return self.stop_on_failure and run.first_error is not None

    def _run_unit(self, run: _Run, action: SyncAction,
                  progress_callback: Optional[ProgressCallback]) -> TransferResult:
        with run.lock:
            if self._should_stop(run):
                return TransferResult(action=action, success=False, cancelled=True)
            run.in_flight += 1
            run.max_in_flight = max(run.max_in_flight, run.in_flight)

        try:
            result = self.transfer.execute(action)
        except Exception as e:
            logger.error(f"Unexpected error transferring {action.key}: {e}")
            result = TransferResult(action=action, success=False,
                                    error=TransferFailed(action.key, e))

        with run.lock:
            run.in_flight -= 1
            progress = run.progress
            if result.success:
                progress.completed_count += 1
                progress.amount_transferred += result.bytes_transferred
            else:
                progress.failed_count += 1
                if run.first_error is None:
                    run.first_error = result.error
            current = int(progress.fraction * 10 + 0.5) * 10
            if current > run.reported_percent:
                run.reported_percent = current
                if progress_callback:
                    # delivered under the lock so reports arrive in order
                    self._notify_progress(progress_callback, replace(progress))
        return result

    @staticmethod
    def _notify_progress(progress_callback: ProgressCallback, snapshot: ProgressState) -> None:
        try:
            progress_callback(snapshot)
        except Exception as e:
            logger.error(f"Error in progress callback: {e}")

    def run(self, actions: Sequence[SyncAction],
            progress_callback: Optional[ProgressCallback] = None,
            complete_callback: Optional[CompleteCallback] = None) -> TransferSummary:
        """Execute every upload and delete action.

        Skip actions are ignored. Failed units do not stop their siblings.

        Args:
            actions: Planned actions
            progress_callback: Called each time another 10% of the work is done
            complete_callback: Called once with the summary when all units settle

        Returns:
            TransferSummary object
        """
        units = [a for a in actions if a.kind != "skip"]
        self._cancelled.clear()
        run = _Run(ProgressState(
            total_expected=sum(a.size_bytes for a in units if a.kind == "upload"),
            total_count=len(units)
        ))
        results: List[TransferResult] = []

        if units:
            with ThreadPoolExecutor(max_workers=self.max_concurrency) as executor:
                futures = [
                    executor.submit(self._run_unit, run, action, progress_callback)
                    for action in units
                ]
                for future in as_completed(futures):
                    results.append(future.result())

        self.last_max_in_flight = run.max_in_flight
        summary = TransferSummary(
            succeeded_count=sum(1 for r in results if r.success),
            failed_count=sum(1 for r in results if not r.success and not r.cancelled),
            cancelled_count=sum(1 for r in results if r.cancelled),
            bytes_transferred=sum(r.bytes_transferred for r in results),
            first_error=run.first_error,
            results=results
        )
        logger.info(
            f"Transfer finished: {summary.succeeded_count} succeeded, "
            f"{summary.failed_count} failed, {summary.cancelled_count} cancelled"
        )
        if complete_callback:
            complete_callback(summary)
        return summary
