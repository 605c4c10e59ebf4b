"""Compare-and-retry writes for job documents.

Every write to a job after creation goes through `mutate_job`: read the document with its
version, apply a pure mutation to a private copy, and write it back only if nobody else wrote
in between. Concurrent image tasks therefore never overwrite each other's concept updates.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass

from concept_engine.jobs.models import ConceptRecord, InvalidJobTransitionError, JobRecord, JobStatus, can_transition, utc_now_iso
from concept_engine.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)

# Mutations edit the record in place and return True when they changed something.
JobMutation = Callable[[JobRecord], bool]

_BASE_RETRY_DELAY_SECONDS = 0.01
_MAX_RETRY_DELAY_SECONDS = 0.25


class JobNotFoundError(LookupError):
  """Raised when a write targets a job that does not exist."""


class JobUpdateConflictError(RuntimeError):
  """Raised when a write keeps losing version races after every allowed attempt."""


@dataclass(frozen=True)
class ImageOutcome:
  """Terminal result of one concept's image task."""

  image_url: str | None
  error: str | None = None


async def mutate_job(repo: JobsRepository, job_id: str, mutation: JobMutation, *, max_attempts: int = 10) -> JobRecord:
  """Apply `mutation` to the stored job with a version check, retrying on conflict."""
  for attempt in range(1, max_attempts + 1):
    versioned = await repo.get_versioned(job_id)
    if versioned is None:
      raise JobNotFoundError(f"Job {job_id} not found.")

    record = versioned.record
    if not mutation(record):
      return record

    record.updated_at = utc_now_iso()
    if await repo.replace_if_unchanged(job_id, record, versioned.version):
      return record

    # Another writer landed first; back off briefly and re-read.
    delay = min(_MAX_RETRY_DELAY_SECONDS, _BASE_RETRY_DELAY_SECONDS * (2 ** (attempt - 1)))
    logger.debug("Write conflict on job %s attempt=%s/%s", job_id, attempt, max_attempts)
    await asyncio.sleep(random.uniform(0, delay))

  raise JobUpdateConflictError(f"Job {job_id} update lost {max_attempts} consecutive version races.")


def _transition(record: JobRecord, requested: JobStatus) -> None:
  if not can_transition(record.status, requested):
    raise InvalidJobTransitionError(record.job_id, record.status, requested)
  record.status = requested


async def claim_job(repo: JobsRepository, job_id: str, claim: str, *, max_attempts: int = 10) -> bool:
  """Take ownership of a pending job for one task delivery; False when another delivery holds it."""

  def _apply(record: JobRecord) -> bool:
    if record.status != "pending" or record.claimed_by is not None:
      return False
    record.claimed_by = claim
    return True

  record = await mutate_job(repo, job_id, _apply, max_attempts=max_attempts)
  return record.status == "pending" and record.claimed_by == claim


async def persist_drafts(repo: JobsRepository, job_id: str, concepts: list[ConceptRecord], *, claim: str | None = None, max_attempts: int = 10) -> JobRecord:
  """Move a pending job to processing with its full, fixed concept list.

  With `claim`, the write only lands while that delivery still owns the job.
  """

  def _apply(record: JobRecord) -> bool:
    if record.concepts or (claim is not None and record.claimed_by != claim):
      raise InvalidJobTransitionError(record.job_id, record.status, "processing")
    _transition(record, "processing")
    record.concepts = list(concepts)
    return True

  return await mutate_job(repo, job_id, _apply, max_attempts=max_attempts)


async def resolve_concept_image(repo: JobsRepository, job_id: str, concept_id: str, outcome: ImageOutcome, *, max_attempts: int = 10) -> JobRecord:
  """Record the terminal image result for one concept; repeated calls are no-ops."""

  def _apply(record: JobRecord) -> bool:
    concept = record.find_concept(concept_id)
    if concept is None:
      raise KeyError(f"Concept {concept_id} not found on job {job_id}.")
    if not concept.is_generating_image:
      return False
    concept.image_url = outcome.image_url
    concept.error = outcome.error
    concept.is_generating_image = False
    return True

  return await mutate_job(repo, job_id, _apply, max_attempts=max_attempts)


async def mark_completed(repo: JobsRepository, job_id: str, *, max_attempts: int = 10) -> JobRecord:
  def _apply(record: JobRecord) -> bool:
    _transition(record, "completed")
    return True

  return await mutate_job(repo, job_id, _apply, max_attempts=max_attempts)


async def mark_failed(repo: JobsRepository, job_id: str, error: str, *, only_from: JobStatus | None = None, claim: str | None = None, max_attempts: int = 10) -> JobRecord:
  """Fail a job with a message.

  A terminal job is left untouched. With `only_from`, the job is only failed while it still has
  that status. A pending job is additionally only failed by the delivery that claimed it, or,
  with `claim=None`, while nobody has claimed it yet.
  """

  def _apply(record: JobRecord) -> bool:
    stale = only_from is not None and (record.status != only_from or (only_from == "pending" and record.claimed_by != claim))
    if record.is_terminal or stale:
      logger.warning("Job %s is %s; not marking failed (%s)", job_id, record.status, error)
      return False
    _transition(record, "failed")
    record.error = error
    return True

  return await mutate_job(repo, job_id, _apply, max_attempts=max_attempts)
