from __future__ import annotations

import logging

from concept_engine.config import Settings
from concept_engine.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)

_REPOSITORIES: dict[tuple[str, str], JobsRepository] = {}


def get_jobs_repo(settings: Settings) -> JobsRepository:
  """Return the configured job store, one instance per backend and collection."""
  key = (settings.jobs_backend, settings.jobs_collection)
  repo = _REPOSITORIES.get(key)
  if repo is not None:
    return repo

  if settings.jobs_backend == "memory":
    from concept_engine.storage.memory_jobs_repo import InMemoryJobsRepository

    repo = InMemoryJobsRepository()
  else:
    from concept_engine.core.firebase import get_firestore_client
    from concept_engine.storage.firestore_jobs_repo import FirestoreJobsRepository

    repo = FirestoreJobsRepository(get_firestore_client(settings), settings.jobs_collection)

  logger.info("Using %s job store (collection=%s)", settings.jobs_backend, settings.jobs_collection)
  _REPOSITORIES[key] = repo
  return repo


def reset_jobs_repos() -> None:
  """Drop cached stores so the next lookup builds a fresh one."""
  _REPOSITORIES.clear()
