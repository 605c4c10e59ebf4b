from __future__ import annotations

from typing import Protocol

from concept_engine.api.models import ConceptTaskPayload

CONCEPT_TASK_PATH = "/internal/tasks/generate-concepts"
TASK_SECRET_HEADER = "x-concept-task-secret"


class TaskDispatchError(RuntimeError):
  """Raised when a worker invocation could not be handed to its channel."""


class TaskEnqueuer(Protocol):
  """Interface for dispatching concept workers."""

  async def enqueue_concept_job(self, payload: ConceptTaskPayload) -> None:
    """Hand the job to a worker; return once the channel accepted it."""
    ...
