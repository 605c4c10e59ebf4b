import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from concept_engine.config import get_settings
from concept_engine.core.firebase import initialize_firebase
from concept_engine.core.logging import initialize_logging
from concept_engine.services.tasks.inline import drain_inline_tasks


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and cloud clients before serving requests."""
  settings = get_settings()
  logger = logging.getLogger("concept_engine.core.lifespan")

  initialize_logging(settings)
  logger.info("Starting concept engine env=%s jobs_backend=%s tasks=%s image_provider=%s", settings.environment, settings.jobs_backend, settings.task_service_provider, settings.image_provider)

  if settings.jobs_backend == "firestore":
    # Fail fast: without Firestore there is nowhere to put jobs.
    initialize_firebase(settings)

  # Emulator-backed storage needs its bucket created before the first Imagen upload.
  if settings.gcs_storage_host and settings.generated_image_bucket:
    from concept_engine.services.storage_client import build_storage_client

    try:
      storage_client = build_storage_client(settings)
      await storage_client.ensure_bucket()
      logger.info("Image bucket ensured: %s", storage_client.bucket_name)
    except Exception as exc:  # noqa: BLE001
      logger.warning("Failed to ensure image bucket at startup: %s", exc)

  yield

  # Let in-process workers reach a terminal state before shutdown.
  if settings.task_service_provider == "inline":
    await drain_inline_tasks()
