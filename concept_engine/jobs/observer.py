"""Subscription consumer that decides when a job is fully resolved.

A `completed` status only says the worker finished orchestrating. The last image writes can land
around the same time, so an observer checks every concept itself before it stops listening.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Callable

from concept_engine.jobs.models import ConceptRecord, JobRecord
from concept_engine.storage.jobs_repo import JobsRepository, Unsubscribe

logger = logging.getLogger(__name__)

ConceptsCallback = Callable[[list[ConceptRecord]], None]


def is_concept_resolved(concept: ConceptRecord) -> bool:
  """A concept is settled once it has an image, an error, or its image task has finished."""
  return concept.image_url is not None or concept.error is not None or not concept.is_generating_image


def is_resolved(job: JobRecord) -> bool:
  """Return True when an observer can stop listening to `job`."""
  if job.status == "failed":
    return True
  if job.status != "completed":
    return False
  return all(is_concept_resolved(concept) for concept in job.concepts)


class JobObserver:
  """Follows one job's snapshots, forwarding concepts until the job resolves.

  Snapshot callbacks from the store may arrive on a foreign thread (Firestore watch); those are
  handed to the event loop that started the observer before any state is touched.
  """

  def __init__(self, repo: JobsRepository, job_id: str, on_concepts: ConceptsCallback | None = None) -> None:
    self._repo = repo
    self._job_id = job_id
    self._on_concepts = on_concepts
    self._unsubscribe: Unsubscribe | None = None
    self._resolved = False
    self._latest: JobRecord | None = None
    self._loop: asyncio.AbstractEventLoop | None = None
    self._loop_thread: int | None = None
    self._queue: asyncio.Queue[JobRecord] = asyncio.Queue()
    self._done = asyncio.Event()
    self.snapshots_seen = 0

  @property
  def job_id(self) -> str:
    return self._job_id

  @property
  def resolved(self) -> bool:
    return self._resolved

  @property
  def subscribed(self) -> bool:
    return self._unsubscribe is not None

  @property
  def latest(self) -> JobRecord | None:
    return self._latest

  def start(self) -> None:
    """Subscribe to the job. Must be called from inside the running event loop."""
    self._loop = asyncio.get_running_loop()
    self._loop_thread = threading.get_ident()
    unsubscribe = self._repo.subscribe(self._job_id, self._on_snapshot)
    # The store may deliver a resolved snapshot before subscribe() returns.
    if self._resolved:
      unsubscribe()
      logger.debug("Observer for job %s resolved on first snapshot", self._job_id)
      return
    self._unsubscribe = unsubscribe

  def stop(self) -> None:
    unsubscribe, self._unsubscribe = self._unsubscribe, None
    if unsubscribe is not None:
      unsubscribe()

  async def wait(self, timeout: float | None = None) -> JobRecord | None:
    """Block until the job resolves and return the resolving snapshot."""
    await asyncio.wait_for(self._done.wait(), timeout)
    return self._latest

  async def snapshots(self) -> AsyncIterator[JobRecord]:
    """Yield each snapshot in arrival order, ending after the resolving one."""
    while True:
      record = await self._queue.get()
      yield record
      if is_resolved(record):
        return

  def _on_snapshot(self, record: JobRecord) -> None:
    if self._loop is None or threading.get_ident() == self._loop_thread:
      self._handle(record)
      return
    self._loop.call_soon_threadsafe(self._handle, record)

  def _handle(self, record: JobRecord) -> None:
    if self._resolved:
      return
    self.snapshots_seen += 1
    self._latest = record
    if self._on_concepts is not None:
      try:
        self._on_concepts(list(record.concepts))
      except Exception:  # noqa: BLE001
        logger.error("Concept callback failed for job %s", self._job_id, exc_info=True)
    self._queue.put_nowait(record)

    if is_resolved(record):
      self._resolved = True
      self.stop()
      self._done.set()
