# tests/test_backup.py
from clipgen.jobs.backup import OperationBackupWriter, backup_path
from clipgen.jobs.models import ClipAction, ClipJob, JobStatus

from conftest import ASSET_URL, read_json


def write(writer, job_id="job_1", operation_id="operations/op-1"):
    writer.write(
        operation_id=operation_id,
        job_id=job_id,
        entity_id="fish-1",
        action="bite",
        reference_asset_url=ASSET_URL,
    )


def test_backup_written_under_operations_prefix(storage):
    write(OperationBackupWriter(storage))

    record = read_json(storage, "operations/job_1.json")

    assert backup_path("job_1") == "operations/job_1.json"
    assert record["operationId"] == "operations/op-1"
    assert record["jobId"] == "job_1"
    assert record["entityId"] == "fish-1"
    assert record["action"] == "bite"
    assert record["referenceAssetUrl"] == ASSET_URL
    assert record["recovered"] is False
    assert record["timestamp"]


def test_backup_alone_rebuilds_processing_job(storage):
    writer = OperationBackupWriter(storage)
    write(writer)

    job = ClipJob.from_backup(writer.read("job_1"))

    assert job.id == "job_1"
    assert job.status == JobStatus.PROCESSING
    assert job.operation_id == "operations/op-1"
    assert job.input.action == ClipAction.BITE
    assert job.input.reference_asset_url == ASSET_URL


def test_write_never_raises():
    class FailingStorage:
        def put_json(self, path, payload):
            raise OSError("read-only filesystem")

    write(OperationBackupWriter(FailingStorage()))


def test_list_backups_reports_unreadable_entries(storage):
    writer = OperationBackupWriter(storage)
    write(writer, job_id="job_1", operation_id="operations/op-1")
    write(writer, job_id="job_2", operation_id="operations/op-2")
    storage.upload("operations/job_3.json", b"{not json", "application/json")

    entries = writer.list_backups()

    assert len(entries) == 3
    readable = [e for e in entries if "error" not in e]
    assert [e["jobId"] for e in readable] == ["job_2", "job_1"]
    broken = [e for e in entries if "error" in e]
    assert broken[0]["path"] == "operations/job_3.json"


def test_read_missing_backup_returns_none(storage):
    assert OperationBackupWriter(storage).read("job_nope") is None
