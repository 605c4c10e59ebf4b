from __future__ import annotations

from concept_engine.config import ConfigurationError, ImageProviderName, Settings
from concept_engine.images.base import ImageProvider


def resolve_image_provider_name(settings: Settings, requested: str | None) -> ImageProviderName:
  """Tenant choice wins over the service default."""
  name = (requested or settings.image_provider).strip().upper()
  if name not in {"PEXELS", "GOOGLE_IMAGEN"}:
    raise ConfigurationError(f"Unknown image provider '{name}'.")
  return name  # type: ignore[return-value]


def check_image_provider_config(settings: Settings, name: ImageProviderName) -> None:
  """Raise ConfigurationError when credentials for `name` are missing."""
  if name == "PEXELS":
    if not settings.pexels_api_key:
      raise ConfigurationError("PEXELS_API_KEY must be set to use the PEXELS image provider.")
    return

  missing = [label for label, value in (("GCP_PROJECT_ID", settings.gcp_project_id), ("GCS_BUCKET_NAME", settings.generated_image_bucket)) if not value]
  if missing:
    raise ConfigurationError(f"{', '.join(missing)} must be set to use the GOOGLE_IMAGEN image provider.")


def build_image_provider(settings: Settings, name: ImageProviderName) -> ImageProvider:
  """Build the provider for one job."""
  check_image_provider_config(settings, name)

  if name == "PEXELS":
    from concept_engine.images.stock import PexelsImageProvider

    return PexelsImageProvider(settings.pexels_api_key or "", base_url=settings.pexels_base_url)

  from google import genai

  from concept_engine.images.imagen import ImagenImageProvider
  from concept_engine.services.storage_client import build_storage_client

  client = genai.Client(vertexai=True, project=settings.gcp_project_id, location=settings.gcp_location)
  return ImagenImageProvider(client, build_storage_client(settings), model=settings.imagen_model, object_prefix=settings.generated_image_prefix, size=settings.image_size, timeout_seconds=settings.image_timeout_seconds)
