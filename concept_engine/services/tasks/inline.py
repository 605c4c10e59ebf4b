from __future__ import annotations

import asyncio
import logging

from concept_engine.api.models import ConceptTaskPayload
from concept_engine.config import Settings
from concept_engine.services.tasks.interface import TaskEnqueuer

logger = logging.getLogger(__name__)

# Strong references; the event loop only keeps weak ones to running tasks.
_RUNNING: set[asyncio.Task[None]] = set()


class InlineEnqueuer(TaskEnqueuer):
  """Runs the worker as a task on the current event loop. For development and tests."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings

  async def enqueue_concept_job(self, payload: ConceptTaskPayload) -> None:
    from concept_engine.jobs.worker import process_concept_task

    task = asyncio.create_task(process_concept_task(payload, self.settings), name=f"concept-job-{payload.job_id}")
    _RUNNING.add(task)
    task.add_done_callback(_RUNNING.discard)
    logger.info("Scheduled inline worker for job %s", payload.job_id)


async def drain_inline_tasks() -> None:
  """Wait for every inline worker scheduled so far."""
  while _RUNNING:
    await asyncio.gather(*list(_RUNNING), return_exceptions=True)
