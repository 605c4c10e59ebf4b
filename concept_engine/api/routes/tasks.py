from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, status

from concept_engine.api.models import ConceptTaskPayload
from concept_engine.config import Settings, get_settings
from concept_engine.core.security import require_task_secret
from concept_engine.jobs.worker import process_concept_task

router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(require_task_secret)])
logger = logging.getLogger(__name__)


@router.post("/generate-concepts", status_code=status.HTTP_202_ACCEPTED)
async def generate_concepts_task(payload: ConceptTaskPayload, background_tasks: BackgroundTasks, settings: Annotated[Settings, Depends(get_settings)]) -> dict[str, str]:
  """
  Handler for Cloud Tasks (and local dispatch).
  Acknowledges quickly and runs the worker after the response so dispatchers are never held open.
  """
  logger.info("Received concept task for job %s", payload.job_id)
  background_tasks.add_task(process_concept_task, payload, settings)
  return {"status": "accepted"}
