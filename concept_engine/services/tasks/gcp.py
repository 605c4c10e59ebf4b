from __future__ import annotations

import json
import logging
from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import tasks_v2
from starlette.concurrency import run_in_threadpool

from concept_engine.api.models import ConceptTaskPayload
from concept_engine.config import Settings
from concept_engine.services.tasks.interface import CONCEPT_TASK_PATH, TASK_SECRET_HEADER, TaskDispatchError, TaskEnqueuer

logger = logging.getLogger(__name__)


class CloudTasksEnqueuer(TaskEnqueuer):
  """Enqueues concept workers to Google Cloud Tasks."""

  def __init__(self, settings: Settings, client: tasks_v2.CloudTasksClient | None = None) -> None:
    self.settings = settings
    self.client = client or tasks_v2.CloudTasksClient()

  def build_task(self, payload: ConceptTaskPayload) -> dict[str, Any]:
    if not self.settings.cloud_tasks_queue_path:
      raise TaskDispatchError("Cloud Tasks queue path not configured.")
    if not self.settings.base_url:
      raise TaskDispatchError("Base URL not configured.")
    if not self.settings.task_secret:
      raise TaskDispatchError("Task secret not configured.")

    http_request: dict[str, Any] = {
      "http_method": tasks_v2.HttpMethod.POST,
      "url": f"{self.settings.base_url.rstrip('/')}{CONCEPT_TASK_PATH}",
      "headers": {"Content-Type": "application/json", TASK_SECRET_HEADER: self.settings.task_secret},
      "body": json.dumps(payload.to_body()).encode(),
    }
    # Cloud Run invoker auth uses the Authorization header, so the shared secret travels separately.
    if self.settings.cloud_run_invoker_service_account:
      http_request["oidc_token"] = {"service_account_email": self.settings.cloud_run_invoker_service_account}
    return {"http_request": http_request}

  async def enqueue_concept_job(self, payload: ConceptTaskPayload) -> None:
    task = self.build_task(payload)
    parent = self.settings.cloud_tasks_queue_path

    try:
      response = await run_in_threadpool(self.client.create_task, request={"parent": parent, "task": task})
    except gcp_exceptions.GoogleAPICallError as e:
      logger.error("Failed to enqueue task for job %s: %s", payload.job_id, e, exc_info=True)
      raise TaskDispatchError(f"Cloud Tasks rejected the task: {e}") from e
    logger.info("Enqueued task %s for job %s", response.name, payload.job_id)
