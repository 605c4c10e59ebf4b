from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore

from concept_engine.jobs.models import JobRecord, new_pending_job
from concept_engine.storage.firestore_jobs_repo import FirestoreJobsRepository
from concept_engine.storage.jobs_repo import JobAlreadyExistsError


def _repo() -> tuple[FirestoreJobsRepository, MagicMock, MagicMock]:
  client = MagicMock()
  doc = client.collection.return_value.document.return_value
  return FirestoreJobsRepository(client, "conceptJobs"), client, doc


@pytest.mark.anyio
async def test_create_uses_create_only_write() -> None:
  repo, client, doc = _repo()

  await repo.create_job(new_pending_job("job-1"))

  client.collection.assert_called_with("conceptJobs")
  client.collection.return_value.document.assert_called_with("job-1")
  assert doc.create.call_args.args[0]["status"] == "pending"

  doc.create.side_effect = gcp_exceptions.Conflict("exists")
  with pytest.raises(JobAlreadyExistsError):
    await repo.create_job(new_pending_job("job-1"))


@pytest.mark.anyio
async def test_update_time_is_the_version() -> None:
  repo, _, doc = _repo()
  update_time = datetime(2026, 5, 1, tzinfo=UTC)
  doc.get.return_value = SimpleNamespace(exists=True, update_time=update_time, to_dict=lambda: {"status": "processing", "createdAt": "t", "concepts": []})

  versioned = await repo.get_versioned("job-1")

  assert versioned.version == update_time
  assert versioned.record.status == "processing"

  doc.get.return_value = SimpleNamespace(exists=False)
  assert await repo.get_job("job-1") is None


@pytest.mark.anyio
async def test_conditional_update_reports_stale_versions() -> None:
  repo, client, doc = _repo()
  record = JobRecord(job_id="job-1", status="completed", created_at="t")
  version = datetime(2026, 5, 1, tzinfo=UTC)

  assert await repo.replace_if_unchanged("job-1", record, version) is True
  client.write_option.assert_called_with(last_update_time=version)
  fields = doc.update.call_args.args[0]
  assert "createdAt" not in fields
  assert fields["error"] is firestore.DELETE_FIELD
  assert doc.update.call_args.kwargs["option"] is client.write_option.return_value

  doc.update.side_effect = gcp_exceptions.FailedPrecondition("stale")
  assert await repo.replace_if_unchanged("job-1", record, version) is False


def test_subscribe_decodes_snapshots_and_returns_unsubscribe() -> None:
  repo, _, doc = _repo()
  received: list[JobRecord] = []

  unsubscribe = repo.subscribe("job-1", received.append)

  callback = doc.on_snapshot.call_args.args[0]
  callback([SimpleNamespace(exists=True, to_dict=lambda: {"status": "failed", "createdAt": "t", "error": "boom"}), SimpleNamespace(exists=True, to_dict=lambda: {"status": "archived"})], None, None)
  assert [record.status for record in received] == ["failed"]
  assert unsubscribe is doc.on_snapshot.return_value.unsubscribe
