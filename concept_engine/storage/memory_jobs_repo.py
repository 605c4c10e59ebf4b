"""In-process job store used for local development and tests."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Hashable

from concept_engine.jobs.models import JobRecord
from concept_engine.storage.jobs_repo import JobAlreadyExistsError, SnapshotCallback, Unsubscribe, VersionedJob

logger = logging.getLogger(__name__)


class InMemoryJobsRepository:
  """Dictionary-backed store with integer versions and synchronous snapshot delivery."""

  def __init__(self) -> None:
    self._jobs: dict[str, tuple[JobRecord, int]] = {}
    self._subscribers: dict[str, list[SnapshotCallback]] = {}
    self._lock = asyncio.Lock()

  async def create_job(self, record: JobRecord) -> None:
    async with self._lock:
      if record.job_id in self._jobs:
        raise JobAlreadyExistsError(f"Job {record.job_id} already exists.")
      self._jobs[record.job_id] = (copy.deepcopy(record), 1)
    self._notify(record.job_id)

  async def get_job(self, job_id: str) -> JobRecord | None:
    versioned = await self.get_versioned(job_id)
    return versioned.record if versioned else None

  async def get_versioned(self, job_id: str) -> VersionedJob | None:
    entry = self._jobs.get(job_id)
    if entry is None:
      return None
    record, version = entry
    # Hand out copies so callers cannot mutate stored state without a versioned write.
    return VersionedJob(record=copy.deepcopy(record), version=version)

  async def replace_if_unchanged(self, job_id: str, record: JobRecord, expected_version: Hashable) -> bool:
    async with self._lock:
      entry = self._jobs.get(job_id)
      if entry is None:
        return False
      _, version = entry
      if version != expected_version:
        logger.debug("Version conflict for job %s expected=%s actual=%s", job_id, expected_version, version)
        return False
      self._jobs[job_id] = (copy.deepcopy(record), version + 1)
    self._notify(job_id)
    return True

  def subscribe(self, job_id: str, on_snapshot: SnapshotCallback) -> Unsubscribe:
    callbacks = self._subscribers.setdefault(job_id, [])
    callbacks.append(on_snapshot)

    def _unsubscribe() -> None:
      if on_snapshot in callbacks:
        callbacks.remove(on_snapshot)

    entry = self._jobs.get(job_id)
    if entry is not None:
      on_snapshot(copy.deepcopy(entry[0]))
    return _unsubscribe

  def _notify(self, job_id: str) -> None:
    entry = self._jobs.get(job_id)
    if entry is None:
      return
    # Iterate over a copy; callbacks may unsubscribe themselves.
    for callback in list(self._subscribers.get(job_id, [])):
      callback(copy.deepcopy(entry[0]))
