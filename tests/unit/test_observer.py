from __future__ import annotations

import threading

import pytest

from concept_engine.jobs.models import ConceptRecord, JobRecord, new_pending_job
from concept_engine.jobs.observer import JobObserver, is_resolved
from concept_engine.jobs.updates import ImageOutcome, mark_completed, mark_failed, persist_drafts, resolve_concept_image
from concept_engine.storage.memory_jobs_repo import InMemoryJobsRepository


def _concept(concept_id: str, **overrides) -> ConceptRecord:
  fields = {"concept_id": concept_id, "name": concept_id, "description": "d", "materials": ["Vidrio"], "image_prompt": "p"}
  fields.update(overrides)
  return ConceptRecord(**fields)


def _job(status: str, concepts: list[ConceptRecord]) -> JobRecord:
  return JobRecord(job_id="job-1", status=status, created_at="2026-01-01T00:00:00+00:00", concepts=concepts)


def test_completed_is_not_resolved_while_an_image_is_pending() -> None:
  job = _job("completed", [_concept("a", image_url="https://img/a", is_generating_image=False), _concept("b")])
  assert is_resolved(job) is False


def test_completed_with_urls_errors_or_empty_searches_is_resolved() -> None:
  concepts = [_concept("a", image_url="https://img/a", is_generating_image=False), _concept("b", error="boom", is_generating_image=False), _concept("c", is_generating_image=False)]
  assert is_resolved(_job("completed", concepts)) is True


def test_failed_is_resolved_regardless_of_concepts() -> None:
  assert is_resolved(_job("failed", [_concept("a")])) is True
  assert is_resolved(_job("processing", [_concept("a", image_url="u", is_generating_image=False)])) is False


@pytest.mark.anyio
async def test_late_observer_unsubscribes_on_first_snapshot(repo: InMemoryJobsRepository) -> None:
  await repo.create_job(new_pending_job("job-1"))
  await persist_drafts(repo, "job-1", [_concept("a"), _concept("b")])
  await resolve_concept_image(repo, "job-1", "a", ImageOutcome("https://img/a"))
  await resolve_concept_image(repo, "job-1", "b", ImageOutcome(None, error="no image"))
  await mark_completed(repo, "job-1")

  forwarded: list[list[ConceptRecord]] = []
  observer = JobObserver(repo, "job-1", on_concepts=forwarded.append)
  observer.start()

  assert observer.resolved is True
  assert observer.subscribed is False
  assert observer.snapshots_seen == 1
  assert len(forwarded) == 1 and len(forwarded[0]) == 2
  assert await observer.wait(timeout=1) is observer.latest

  # Later writes are not delivered to an observer that already stopped.
  await mark_failed(repo, "job-1", "ignored")
  assert observer.snapshots_seen == 1


@pytest.mark.anyio
async def test_observer_waits_for_last_image_after_completed(repo: InMemoryJobsRepository) -> None:
  await repo.create_job(new_pending_job("job-1"))
  observer = JobObserver(repo, "job-1")
  observer.start()

  await persist_drafts(repo, "job-1", [_concept("a"), _concept("b")])
  await resolve_concept_image(repo, "job-1", "a", ImageOutcome("https://img/a"))
  await mark_completed(repo, "job-1")
  assert observer.resolved is False
  assert observer.subscribed is True

  await resolve_concept_image(repo, "job-1", "b", ImageOutcome("https://img/b"))
  final = await observer.wait(timeout=1)

  assert final.status == "completed"
  assert [concept.image_url for concept in final.concepts] == ["https://img/a", "https://img/b"]
  assert observer.subscribed is False

  statuses = []
  async for record in observer.snapshots():
    statuses.append(record.status)
  assert statuses == ["pending", "processing", "processing", "completed", "completed"]


@pytest.mark.anyio
async def test_observer_stops_on_failed(repo: InMemoryJobsRepository) -> None:
  await repo.create_job(new_pending_job("job-1"))
  observer = JobObserver(repo, "job-1")
  observer.start()

  await mark_failed(repo, "job-1", "generation failed")

  final = await observer.wait(timeout=1)
  assert final.status == "failed"
  assert final.error == "generation failed"
  assert observer.subscribed is False


class ThreadedSnapshotRepo(InMemoryJobsRepository):
  """Delivers snapshots from a foreign thread, like a Firestore watch."""

  def subscribe(self, job_id, on_snapshot):
    def _from_thread(record):
      thread = threading.Thread(target=on_snapshot, args=(record,))
      thread.start()
      thread.join()

    return super().subscribe(job_id, _from_thread)


@pytest.mark.anyio
async def test_snapshots_from_other_threads_are_handled_on_the_loop() -> None:
  repo = ThreadedSnapshotRepo()
  await repo.create_job(new_pending_job("job-1"))
  seen_threads: set[int] = set()
  observer = JobObserver(repo, "job-1", on_concepts=lambda _concepts: seen_threads.add(threading.get_ident()))
  observer.start()

  await mark_failed(repo, "job-1", "boom")
  final = await observer.wait(timeout=1)

  assert final.status == "failed"
  assert seen_threads == {threading.get_ident()}
