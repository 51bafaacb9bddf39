"""
Integration tests for the sync orchestrator against a mocked S3.
"""
import json
import shutil
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import EndpointConnectionError

from s3_sync.errors import (
    ConfigInvalid,
    DirectoryNotFound,
    OperationInProgress,
    PartialFailure,
    TransferFailed,
)
from s3_sync.models import OperationState, ParamRule, SyncTarget

from conftest import remote_keys, write_files


def test_sync_uploads_skips_and_deletes(orchestrator, mock_aws, sync_target, tmp_sync_dir):
    """Test the plan of identical, new and remote-only files end to end."""
    write_files(tmp_sync_dir, {"a.txt": "alpha", "b.txt": "beta"})
    mock_aws.put_object(Bucket="test-bucket", Key="app/a.txt", Body=b"alpha")
    mock_aws.put_object(Bucket="test-bucket", Key="app/c.txt", Body=b"gone")

    actions = orchestrator.plan_directory(sync_target)
    assert [(a.kind, a.key) for a in actions] == [
        ("skip", "app/a.txt"),
        ("upload", "app/b.txt"),
        ("delete", "app/c.txt"),
    ]

    summary = orchestrator.sync_directory(sync_target)

    assert (summary.uploaded, summary.deleted, summary.skipped) == (1, 1, 1)
    assert summary.transfer.failed_count == 0
    assert remote_keys(mock_aws, prefix="app/") == ["app/a.txt", "app/b.txt"]
    assert orchestrator.tracker.get_state(sync_target) is OperationState.COMPLETED


def test_second_sync_is_idempotent(orchestrator, sync_target, tmp_sync_dir):
    """Test that a repeated sync without local changes only skips."""
    write_files(tmp_sync_dir, {"index.html": "<html/>", "js/app.js": "console.log(1)"})

    first = orchestrator.sync_directory(sync_target)
    actions = orchestrator.plan_directory(sync_target)
    second = orchestrator.sync_directory(sync_target)

    assert first.uploaded == 2
    assert [a.kind for a in actions] == ["skip", "skip"]
    assert second.uploaded == 0 and second.skipped == 2


def test_changed_file_is_reuploaded(orchestrator, mock_aws, sync_target, tmp_sync_dir):
    write_files(tmp_sync_dir, {"a.txt": "alpha"})
    orchestrator.sync_directory(sync_target)
    write_files(tmp_sync_dir, {"a.txt": "omega"})

    summary = orchestrator.sync_directory(sync_target)

    assert summary.uploaded == 1
    body = mock_aws.get_object(Bucket="test-bucket", Key="app/a.txt")["Body"].read()
    assert body == b"omega"


def test_sync_keeps_remote_only_files_without_delete_removed(orchestrator, mock_aws, tmp_sync_dir):
    write_files(tmp_sync_dir, {"a.txt": "alpha"})
    mock_aws.put_object(Bucket="test-bucket", Key="keep.txt", Body=b"x")
    target = SyncTarget(local_directory=tmp_sync_dir, bucket_name="test-bucket",
                        delete_removed=False)

    summary = orchestrator.sync_directory(target)

    assert summary.deleted == 0
    assert remote_keys(mock_aws) == ["a.txt", "keep.txt"]


def test_sync_applies_param_rules(orchestrator, mock_aws, tmp_sync_dir):
    """Test that ACL, content type and rule params reach the uploaded object."""
    write_files(tmp_sync_dir, {"index.html": "<html/>"})
    target = SyncTarget(
        local_directory=tmp_sync_dir,
        bucket_name="test-bucket",
        acl="public-read",
        param_rules=(ParamRule("*.html", {"CacheControl": "no-cache"}),)
    )

    orchestrator.sync_directory(target)

    head = mock_aws.head_object(Bucket="test-bucket", Key="index.html")
    assert head["ContentType"] == "text/html"
    assert head["CacheControl"] == "no-cache"


def test_sync_relative_directory_uses_service_path(orchestrator, mock_aws, tmp_path):
    write_files(tmp_path / "site", {"a.txt": "a"})
    orchestrator.service_path = tmp_path
    target = SyncTarget(local_directory="site", bucket_name="test-bucket")

    orchestrator.sync_directory(target)

    assert remote_keys(mock_aws) == ["a.txt"]


def test_sync_missing_directory_fails_before_transfer(orchestrator, sync_target, tmp_sync_dir):
    tmp_sync_dir.rmdir()

    with pytest.raises(DirectoryNotFound):
        orchestrator.sync_directory(sync_target)

    assert orchestrator.tracker.get_state(sync_target) is OperationState.FAILED


def test_clear_prefix_deletes_every_key(orchestrator, mock_aws, sync_target):
    """Test that clearing three keys yields three successful deletes."""
    for name in ("a", "b", "c"):
        mock_aws.put_object(Bucket="test-bucket", Key=f"app/{name}.txt", Body=b"x")
    mock_aws.put_object(Bucket="test-bucket", Key="other/keep.txt", Body=b"x")
    complete = MagicMock()

    summary = orchestrator.clear_prefix(sync_target, complete_callback=complete)

    assert summary.deleted == 3
    assert summary.transfer.succeeded_count == 3
    assert summary.transfer.failed_count == 0
    assert all(r.action.kind == "delete" for r in summary.transfer.results)
    assert remote_keys(mock_aws) == ["other/keep.txt"]
    complete.assert_called_once_with(summary.transfer)


def test_partial_failure_when_one_upload_fails(orchestrator, mock_aws, sync_target, tmp_sync_dir):
    """Test that one network failure among five uploads is reported, not raised."""
    write_files(tmp_sync_dir, {f"f{i}.txt": f"content {i}" for i in range(5)})
    real_upload = mock_aws.upload_file

    def flaky_upload(filename, bucket, key, **kwargs):
        if key == "app/f3.txt":
            raise EndpointConnectionError(endpoint_url="https://s3.amazonaws.com")
        return real_upload(filename, bucket, key, **kwargs)

    complete = MagicMock()
    with patch.object(mock_aws, "upload_file", side_effect=flaky_upload):
        with pytest.raises(PartialFailure) as excinfo:
            orchestrator.sync_directory(sync_target, complete_callback=complete)

    error = excinfo.value
    assert (error.succeeded, error.failed) == (4, 1)
    assert error.first_error.key == "app/f3.txt"
    assert remote_keys(mock_aws, prefix="app/") == [
        "app/f0.txt", "app/f1.txt", "app/f2.txt", "app/f4.txt"
    ]
    complete.assert_called_once()
    assert orchestrator.tracker.get_state(sync_target) is OperationState.FAILED


def test_total_failure_raises_transfer_failed(orchestrator, mock_aws, sync_target, tmp_sync_dir):
    write_files(tmp_sync_dir, {"a.txt": "a"})

    with patch.object(mock_aws, "upload_file",
                      side_effect=EndpointConnectionError(endpoint_url="https://s3")):
        with pytest.raises(TransferFailed) as excinfo:
            orchestrator.sync_directory(sync_target)

    assert excinfo.value.key == "app/a.txt"


def test_failed_operation_can_be_retried(orchestrator, mock_aws, sync_target, tmp_sync_dir):
    write_files(tmp_sync_dir, {"a.txt": "a"})
    with patch.object(mock_aws, "upload_file",
                      side_effect=EndpointConnectionError(endpoint_url="https://s3")):
        with pytest.raises(TransferFailed):
            orchestrator.sync_directory(sync_target)

    summary = orchestrator.sync_directory(sync_target)

    assert summary.uploaded == 1


def test_concurrent_operation_on_same_target_rejected(orchestrator, sync_target):
    """Test that a busy prefix cannot be synced or cleared again."""
    orchestrator.tracker.begin(sync_target, OperationState.TRANSFERRING)

    with pytest.raises(OperationInProgress):
        orchestrator.sync_directory(sync_target)
    with pytest.raises(OperationInProgress):
        orchestrator.clear_prefix(sync_target)


def test_sync_writes_run_log(orchestrator, sync_target, tmp_sync_dir, tmp_log_dir):
    write_files(tmp_sync_dir, {"a.txt": "a"})

    orchestrator.sync_directory(sync_target)

    logs = list(tmp_log_dir.glob("sync_*.json"))
    assert len(logs) == 1
    data = json.loads(logs[0].read_text())
    assert data["uploaded"] == 1
    assert data["results"][0]["key"] == "app/a.txt"


def test_sync_all_selects_targets_by_phase(orchestrator, mock_aws, tmp_path, console_output):
    """Test that artifact and deploy phases only sync their own targets."""
    write_files(tmp_path / "artifacts", {"bundle.zip": "zip"})
    write_files(tmp_path / "site", {"index.html": "<html/>"})
    targets = [
        SyncTarget(local_directory=tmp_path / "artifacts", bucket_name="test-bucket",
                   bucket_prefix="artifacts", artifact=True),
        SyncTarget(local_directory=tmp_path / "site", bucket_name="test-bucket",
                   bucket_prefix="site"),
    ]

    artifact_summaries = orchestrator.sync_all(targets, artifact=True)

    assert [s.target for s in artifact_summaries] == [targets[0]]
    assert remote_keys(mock_aws) == ["artifacts/bundle.zip"]

    orchestrator.sync_all(targets, artifact=False)

    assert remote_keys(mock_aws) == ["artifacts/bundle.zip", "site/index.html"]
    output = console_output.getvalue()
    assert "S3 Sync: Syncing directories and S3 prefixes... artifact:true" in output
    assert "S3 Sync: Synced." in output
    assert "." in output


def test_deploy_runs_both_phases(orchestrator, mock_aws, tmp_path):
    write_files(tmp_path / "a", {"one.txt": "1"})
    write_files(tmp_path / "b", {"two.txt": "2"})
    targets = [
        SyncTarget(local_directory=tmp_path / "a", bucket_name="test-bucket",
                   bucket_prefix="a", artifact=True),
        SyncTarget(local_directory=tmp_path / "b", bucket_name="test-bucket",
                   bucket_prefix="b"),
    ]

    summaries = orchestrator.deploy(targets)

    assert len(summaries) == 2
    assert remote_keys(mock_aws) == ["a/one.txt", "b/two.txt"]


def test_clear_all_ignores_phase(orchestrator, mock_aws, tmp_path, console_output):
    mock_aws.put_object(Bucket="test-bucket", Key="a/one.txt", Body=b"1")
    mock_aws.put_object(Bucket="test-bucket", Key="b/two.txt", Body=b"2")
    targets = [
        SyncTarget(local_directory=tmp_path, bucket_name="test-bucket",
                   bucket_prefix="a", artifact=True),
        SyncTarget(local_directory=tmp_path, bucket_name="test-bucket", bucket_prefix="b"),
    ]

    summaries = orchestrator.clear_all(targets)

    assert [s.deleted for s in summaries] == [1, 1]
    assert remote_keys(mock_aws) == []
    assert "S3 Sync: Removed." in console_output.getvalue()


def test_sync_all_raises_after_all_targets_settle(orchestrator, mock_aws, tmp_path):
    write_files(tmp_path / "ok", {"a.txt": "a"})
    targets = [
        SyncTarget(local_directory=tmp_path / "missing", bucket_name="test-bucket",
                   bucket_prefix="missing"),
        SyncTarget(local_directory=tmp_path / "ok", bucket_name="test-bucket",
                   bucket_prefix="ok"),
    ]

    with pytest.raises(DirectoryNotFound):
        orchestrator.sync_all(targets, artifact=False)

    assert remote_keys(mock_aws) == ["ok/a.txt"]


def test_target_validation():
    """Test sync target validation."""
    with pytest.raises(ConfigInvalid):
        SyncTarget(local_directory="", bucket_name="b")
    with pytest.raises(ConfigInvalid):
        SyncTarget(local_directory="dist", bucket_name="")
    with pytest.raises(ConfigInvalid):
        SyncTarget(local_directory="dist", bucket_name="b", acl="everyone")

    target = SyncTarget(local_directory="dist", bucket_name="b", bucket_prefix="/app")
    assert target.bucket_prefix == "app/"
    assert target.target_id == "s3://b/app/"


def test_sync_completes_when_run_log_cannot_be_written(orchestrator, sync_target, tmp_sync_dir,
                                                       tmp_log_dir):
    """Test that a run log failure still releases the target."""
    write_files(tmp_sync_dir, {"a.txt": "a"})
    shutil.rmtree(tmp_log_dir)

    summary = orchestrator.sync_directory(sync_target)

    assert summary.uploaded == 1
    assert orchestrator.tracker.get_state(sync_target) is OperationState.COMPLETED
    assert orchestrator.sync_directory(sync_target).skipped == 1


def test_target_released_when_run_log_raises(orchestrator, sync_target, tmp_sync_dir):
    write_files(tmp_sync_dir, {"a.txt": "a"})

    with patch.object(orchestrator.tracker, "log_summary", side_effect=RuntimeError("disk full")):
        with pytest.raises(RuntimeError):
            orchestrator.sync_directory(sync_target)

    assert orchestrator.tracker.get_state(sync_target) is OperationState.COMPLETED
    assert orchestrator.clear_prefix(sync_target).deleted == 1
