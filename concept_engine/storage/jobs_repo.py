"""Storage interfaces for concept generation jobs."""

from __future__ import annotations

from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Protocol

from concept_engine.jobs.models import JobRecord

SnapshotCallback = Callable[[JobRecord], None]
Unsubscribe = Callable[[], None]


class JobAlreadyExistsError(RuntimeError):
  """Raised when a job id is created twice."""


@dataclass(frozen=True)
class VersionedJob:
  """A job snapshot paired with the opaque version token it was read at."""

  record: JobRecord
  version: Hashable


class JobsRepository(Protocol):
  """Repository contract for job persistence.

  Every write after creation goes through `replace_if_unchanged`, so concurrent writers to the
  same document detect each other instead of overwriting each other's changes.
  """

  async def create_job(self, record: JobRecord) -> None:
    """Persist an initial job record; raises JobAlreadyExistsError on a duplicate id."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def get_versioned(self, job_id: str) -> VersionedJob | None:
    """Fetch a job together with its current version token."""

  async def replace_if_unchanged(self, job_id: str, record: JobRecord, expected_version: Hashable) -> bool:
    """Write `record` only if the stored version still equals `expected_version`."""

  def subscribe(self, job_id: str, on_snapshot: SnapshotCallback) -> Unsubscribe:
    """Deliver the current snapshot and every later one until the returned callable is invoked."""
