"""Firestore-backed job store."""

from __future__ import annotations

import logging
from collections.abc import Hashable
from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore import Client as FirestoreClient
from starlette.concurrency import run_in_threadpool

from concept_engine.jobs.models import JobRecord
from concept_engine.storage.jobs_repo import JobAlreadyExistsError, SnapshotCallback, Unsubscribe, VersionedJob

logger = logging.getLogger(__name__)


class FirestoreJobsRepository:
  """Stores one document per job in a Firestore collection.

  The document's `update_time` is the version token; conditional writes use it as a
  `last_update_time` precondition so Firestore rejects writes based on a stale read.
  """

  def __init__(self, client: FirestoreClient, collection: str) -> None:
    self._client = client
    self._collection = collection

  def _doc(self, job_id: str) -> firestore.DocumentReference:
    return self._client.collection(self._collection).document(job_id)

  async def create_job(self, record: JobRecord) -> None:
    try:
      await run_in_threadpool(self._doc(record.job_id).create, record.to_document())
    except gcp_exceptions.Conflict as exc:
      raise JobAlreadyExistsError(f"Job {record.job_id} already exists.") from exc

  async def get_job(self, job_id: str) -> JobRecord | None:
    versioned = await self.get_versioned(job_id)
    return versioned.record if versioned else None

  async def get_versioned(self, job_id: str) -> VersionedJob | None:
    snapshot = await run_in_threadpool(self._doc(job_id).get)
    if not snapshot.exists:
      return None
    return VersionedJob(record=JobRecord.from_document(job_id, snapshot.to_dict() or {}), version=snapshot.update_time)

  async def replace_if_unchanged(self, job_id: str, record: JobRecord, expected_version: Hashable) -> bool:
    option = self._client.write_option(last_update_time=expected_version)
    try:
      await run_in_threadpool(self._doc(job_id).update, _update_fields(record), option=option)
    except gcp_exceptions.FailedPrecondition:
      logger.debug("Firestore precondition failed for job %s", job_id)
      return False
    except gcp_exceptions.NotFound:
      logger.warning("Conditional write targeted missing job %s", job_id)
      return False
    return True

  def subscribe(self, job_id: str, on_snapshot: SnapshotCallback) -> Unsubscribe:
    def _on_snapshot(documents: list[Any], _changes: Any, _read_time: Any) -> None:
      # Watch callbacks run on a background thread owned by the Firestore SDK.
      for document in documents:
        if not document.exists:
          continue
        try:
          record = JobRecord.from_document(job_id, document.to_dict() or {})
        except (KeyError, ValueError):
          logger.error("Skipping unreadable snapshot for job %s", job_id, exc_info=True)
          continue
        on_snapshot(record)

    watch = self._doc(job_id).on_snapshot(_on_snapshot)
    return watch.unsubscribe


def _update_fields(record: JobRecord) -> dict[str, Any]:
  document = record.to_document()
  # Created-at is immutable; drop stale errors explicitly since update() merges fields.
  document.pop("createdAt", None)
  if record.error is None:
    document["error"] = firestore.DELETE_FIELD
  return document
