from __future__ import annotations

from concept_engine.config import ConfigurationError, Settings
from concept_engine.services.tasks.interface import TaskEnqueuer


def check_task_config(settings: Settings) -> None:
  """Raise ConfigurationError when the configured channel cannot reach a worker."""
  provider = settings.task_service_provider
  if provider == "inline":
    return
  if not settings.task_secret:
    raise ConfigurationError("CONCEPTS_TASK_SECRET must be set to dispatch workers.")
  if not settings.base_url:
    raise ConfigurationError("CONCEPTS_BASE_URL must be set to dispatch workers.")
  if provider == "gcp" and not settings.cloud_tasks_queue_path:
    raise ConfigurationError("CONCEPTS_CLOUD_TASKS_QUEUE_PATH must be set for the gcp task provider.")


def get_task_enqueuer(settings: Settings) -> TaskEnqueuer:
  """Factory to get the configured task enqueuer."""
  if settings.task_service_provider == "gcp":
    from concept_engine.services.tasks.gcp import CloudTasksEnqueuer

    return CloudTasksEnqueuer(settings)
  if settings.task_service_provider == "inline":
    from concept_engine.services.tasks.inline import InlineEnqueuer

    return InlineEnqueuer(settings)

  from concept_engine.services.tasks.local import LocalHttpEnqueuer

  return LocalHttpEnqueuer(settings)
