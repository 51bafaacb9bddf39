"""
Test fixtures for the sync service.
"""
import io
from pathlib import Path
import pytest
from unittest.mock import patch
import boto3
from moto import mock_aws as moto_mock_aws
from tenacity import wait_none

from s3_sync.models import SyncTarget
from s3_sync.orchestrator import Console, SyncOrchestrator
from s3_sync.tracker import SyncTracker
from s3_sync.transfer import S3Transfer


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake credentials so no real account is ever reached."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture(autouse=True)
def no_wait():
    """Remove wait time between retries for testing."""
    with patch.object(S3Transfer.upload.retry, 'wait', wait_none()), \
            patch.object(S3Transfer.delete.retry, 'wait', wait_none()):
        yield


@pytest.fixture
def tmp_sync_dir(tmp_path):
    """Create a temporary directory to sync."""
    sync_dir = tmp_path / "dist"
    sync_dir.mkdir()
    return sync_dir


@pytest.fixture
def tmp_log_dir(tmp_path):
    """Create a temporary directory for logs."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    return log_dir


def write_files(root: Path, files: dict) -> None:
    for rel_path, content in files.items():
        file_path = root / rel_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)


@pytest.fixture
def sync_target(tmp_sync_dir):
    """Create a test sync target."""
    return SyncTarget(
        local_directory=tmp_sync_dir,
        bucket_name="test-bucket",
        bucket_prefix="app/",
        delete_removed=True
    )


@pytest.fixture
def mock_aws():
    """Mock S3 client using moto."""
    with moto_mock_aws():
        s3 = boto3.client('s3', region_name='us-east-1')
        # Create test bucket
        s3.create_bucket(Bucket='test-bucket')
        yield s3


@pytest.fixture
def console_output():
    return io.StringIO()


@pytest.fixture
def orchestrator(mock_aws, tmp_log_dir, console_output):
    """Create a test orchestrator bound to the mocked S3."""
    return SyncOrchestrator(
        mock_aws,
        tracker=SyncTracker(log_dir=tmp_log_dir),
        console=Console(console_output)
    )


def remote_keys(s3, bucket="test-bucket", prefix=""):
    response = s3.list_objects_v2(Bucket=bucket, Prefix=prefix)
    return sorted(obj['Key'] for obj in response.get('Contents', []))
