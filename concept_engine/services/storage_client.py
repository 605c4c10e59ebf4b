"""Object storage helper for generated concept images."""

from __future__ import annotations

import logging
import os
from urllib.parse import urlparse, urlunparse

from google.api_core import exceptions as gcp_exceptions
from google.auth.credentials import AnonymousCredentials
from google.cloud import storage
from starlette.concurrency import run_in_threadpool

from concept_engine.config import ConfigurationError, Settings

logger = logging.getLogger(__name__)

LONG_CACHE_CONTROL = "public, max-age=31536000"


class StorageUploadError(RuntimeError):
  """Raised when an object cannot be uploaded or published."""


class StorageClient:
  """Thin wrapper over GCS and emulator access for public image uploads."""

  def __init__(self, settings: Settings) -> None:
    if not settings.generated_image_bucket:
      raise ConfigurationError("GCS_BUCKET_NAME must be set to store generated images.")
    self._bucket_name = settings.generated_image_bucket
    self._storage_host = settings.gcs_storage_host
    # Ensure emulator endpoint is visible to the SDK in local development.
    if self._storage_host:
      emulator_endpoint = _normalize_emulator_endpoint(self._storage_host)
      os.environ["GCS_STORAGE_EMULATOR_HOST"] = emulator_endpoint
      self._client = storage.Client(project=settings.gcp_project_id or "local-dev", credentials=AnonymousCredentials(), client_options={"api_endpoint": emulator_endpoint})
    else:
      self._client = storage.Client(project=settings.gcp_project_id)

  @property
  def bucket_name(self) -> str:
    return self._bucket_name

  async def ensure_bucket(self) -> None:
    """Create the bucket when missing, only against the emulator."""
    if not self._storage_host:
      return
    bucket = self._client.bucket(self._bucket_name)

    def _create_if_missing() -> None:
      if not bucket.exists(client=self._client):
        self._client.create_bucket(bucket)

    await run_in_threadpool(_create_if_missing)

  async def upload_public(self, data: bytes, object_name: str, *, content_type: str, cache_control: str = LONG_CACHE_CONTROL) -> str:
    """Upload bytes as a publicly readable object and return its public URL."""
    bucket = self._client.bucket(self._bucket_name)
    blob = bucket.blob(object_name)
    blob.cache_control = cache_control
    blob.content_type = content_type

    def _upload_and_publish() -> None:
      blob.upload_from_string(data, content_type=content_type)
      # The emulator has no ACL support; objects are already world-readable there.
      if not self._storage_host:
        blob.make_public()

    try:
      await run_in_threadpool(_upload_and_publish)
    except gcp_exceptions.GoogleAPICallError as exc:
      raise StorageUploadError(f"Upload of {object_name} failed: {exc}") from exc

    logger.info("Uploaded %s (%s bytes) to bucket %s", object_name, len(data), self._bucket_name)
    return blob.public_url


def build_storage_client(settings: Settings) -> StorageClient:
  """Create a storage client instance with environment-aware credentials."""
  return StorageClient(settings)


def _normalize_emulator_endpoint(raw_endpoint: str) -> str:
  """Normalize emulator endpoint so the SDK receives scheme+host+port only."""
  parsed = urlparse(raw_endpoint)
  if not parsed.scheme or not parsed.netloc:
    return raw_endpoint.rstrip("/")
  return urlunparse((parsed.scheme, parsed.netloc, "", "", "", "")).rstrip("/")
