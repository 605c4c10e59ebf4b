"""Shared fixtures for the concept engine tests."""

from __future__ import annotations

import os

# Settings are read at import time; pin a hermetic configuration before importing the app.
os.environ["CONCEPTS_ALLOWED_ORIGINS"] = "http://localhost"
os.environ["CONCEPTS_JOBS_BACKEND"] = "memory"
os.environ["CONCEPTS_TASK_SERVICE_PROVIDER"] = "inline"
os.environ["CONCEPTS_TASK_SECRET"] = "test-task-secret"
os.environ["CONCEPTS_IMAGE_PROVIDER"] = "PEXELS"
os.environ["GEMINI_API_KEY"] = "test-gemini-key"
os.environ["PEXELS_API_KEY"] = "test-pexels-key"
for _name in ("GCP_PROJECT_ID", "GCS_BUCKET_NAME", "GCS_STORAGE_HOST", "CONCEPTS_BASE_URL", "FIREBASE_PROJECT_ID"):
  os.environ.pop(_name, None)

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from concept_engine.config import get_settings  # noqa: E402
from concept_engine.main import app  # noqa: E402
from concept_engine.services.tasks.inline import drain_inline_tasks  # noqa: E402
from concept_engine.storage import factory  # noqa: E402
from concept_engine.storage.factory import reset_jobs_repos  # noqa: E402
from concept_engine.storage.memory_jobs_repo import InMemoryJobsRepository  # noqa: E402


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def settings():
  get_settings.cache_clear()
  yield get_settings()
  get_settings.cache_clear()


@pytest.fixture
def repo() -> InMemoryJobsRepository:
  return InMemoryJobsRepository()


@pytest.fixture
def shared_repo(settings, repo, monkeypatch: pytest.MonkeyPatch) -> InMemoryJobsRepository:
  """Make the API, launcher and inline workers all resolve to the `repo` fixture."""
  reset_jobs_repos()
  monkeypatch.setitem(factory._REPOSITORIES, (settings.jobs_backend, settings.jobs_collection), repo)
  yield repo
  reset_jobs_repos()


@pytest.fixture
async def async_client(shared_repo):
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  await drain_inline_tasks()
