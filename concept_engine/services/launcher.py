"""Synchronous entry point that creates a concept job and dispatches its worker."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from concept_engine.ai.factory import check_text_model_config
from concept_engine.api.models import ConceptJobRequest, ConceptTaskPayload, JobCreateResponse, TenantConfig
from concept_engine.config import ConfigurationError, Settings
from concept_engine.images.factory import check_image_provider_config, resolve_image_provider_name
from concept_engine.jobs.models import new_pending_job
from concept_engine.jobs.updates import mark_failed
from concept_engine.services.tasks.factory import check_task_config, get_task_enqueuer
from concept_engine.services.tasks.interface import TaskEnqueuer
from concept_engine.storage.factory import get_jobs_repo
from concept_engine.storage.jobs_repo import JobsRepository
from concept_engine.utils.ids import generate_job_id

logger = logging.getLogger(__name__)


def check_launch_config(settings: Settings, tenant_config: TenantConfig | None) -> None:
  """Verify every credential the job will need before any record is written."""
  check_task_config(settings)
  check_text_model_config(settings)
  requested = tenant_config.image_provider if tenant_config else None
  check_image_provider_config(settings, resolve_image_provider_name(settings, requested))


async def start_concept_job(request: ConceptJobRequest, settings: Settings, *, repo: JobsRepository | None = None, enqueuer: TaskEnqueuer | None = None) -> JobCreateResponse:
  """Create a pending job, hand it to a worker and return its id without waiting for the work."""
  user_idea = (request.user_idea or "").strip()
  if not user_idea:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing 'userIdea' in request body.")

  try:
    check_launch_config(settings, request.tenant_config)
  except ConfigurationError as exc:
    logger.error("Refusing to start concept job: %s", exc)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

  repo = repo or get_jobs_repo(settings)
  job_id = generate_job_id()
  await repo.create_job(new_pending_job(job_id))
  logger.info("Created concept job %s", job_id)

  payload = ConceptTaskPayload(job_id=job_id, user_idea=user_idea, base_concept=request.base_concept, tenant_config=request.tenant_config)
  enqueuer = enqueuer or get_task_enqueuer(settings)
  try:
    await enqueuer.enqueue_concept_job(payload)
  except Exception as exc:  # noqa: BLE001
    logger.error("Dispatch failed for job %s: %s", job_id, exc, exc_info=True)
    try:
      record = await mark_failed(repo, job_id, f"Failed to start the generation process: {exc}", only_from="pending", max_attempts=settings.job_update_max_attempts)
    except Exception:  # noqa: BLE001
      logger.critical("Job %s: could not record dispatch failure; the job may stay pending", job_id, exc_info=True)
      raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to start concept generation.") from exc
    # A worker that already picked the job up despite the dispatch error owns it now.
    if record.status != "failed":
      logger.warning("Job %s is %s despite the dispatch error; treating it as accepted", job_id, record.status)
      return JobCreateResponse(job_id=job_id)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to start concept generation.") from exc

  return JobCreateResponse(job_id=job_id)
