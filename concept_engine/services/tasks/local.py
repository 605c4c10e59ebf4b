from __future__ import annotations

import logging

import httpx

from concept_engine.api.models import ConceptTaskPayload
from concept_engine.config import Settings
from concept_engine.services.tasks.interface import CONCEPT_TASK_PATH, TASK_SECRET_HEADER, TaskDispatchError, TaskEnqueuer

logger = logging.getLogger(__name__)


class LocalHttpEnqueuer(TaskEnqueuer):
  """Dispatches workers by POSTing to this service's own internal task endpoint."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings

  def _task_headers(self) -> dict[str, str]:
    # Enforce shared-secret auth for internal endpoints (deny-by-default).
    if not self.settings.task_secret:
      raise TaskDispatchError("Task secret not configured.")
    return {TASK_SECRET_HEADER: self.settings.task_secret}

  async def enqueue_concept_job(self, payload: ConceptTaskPayload) -> None:
    if not self.settings.base_url:
      raise TaskDispatchError("Base URL not configured, strictly required for LocalHttpEnqueuer.")

    url = f"{self.settings.base_url.rstrip('/')}{CONCEPT_TASK_PATH}"
    headers = self._task_headers()

    try:
      # Never trust environment proxy variables for internal task dispatch.
      async with httpx.AsyncClient(trust_env=False) as client:
        logger.info("Dispatching concept task for job %s to %s", payload.job_id, url)
        # The endpoint only acknowledges; the work runs after the response.
        response = await client.post(url, json=payload.to_body(), headers=headers, timeout=self.settings.task_dispatch_timeout_seconds)
        response.raise_for_status()

    except httpx.HTTPStatusError as e:
      logger.error("Local task dispatch returned %s for job %s", e.response.status_code, payload.job_id)
      raise TaskDispatchError(f"worker endpoint returned {e.response.status_code}") from e
    except httpx.RequestError as e:
      logger.error("Failed to dispatch local task for job %s: %s", payload.job_id, e)
      raise TaskDispatchError(f"worker endpoint unreachable: {e}") from e
