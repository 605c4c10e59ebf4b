"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from concept_engine.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

ImageProviderName = Literal["PEXELS", "GOOGLE_IMAGEN"]

_IMAGE_PROVIDERS: frozenset[str] = frozenset({"PEXELS", "GOOGLE_IMAGEN"})
_JOBS_BACKENDS: frozenset[str] = frozenset({"firestore", "memory"})
_TASK_PROVIDERS: frozenset[str] = frozenset({"local-http", "gcp", "inline"})


class ConfigurationError(RuntimeError):
  """Raised when a required credential or setting is missing for the requested work."""


@dataclass(frozen=True)
class Settings:
  """Typed settings for the concept generation service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_dir: str | None
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  jobs_backend: str
  jobs_collection: str
  job_update_max_attempts: int
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  gcp_project_id: str | None
  gcp_location: str
  gemini_api_key: str | None
  concept_text_model: str
  image_provider: ImageProviderName
  pexels_api_key: str | None
  pexels_base_url: str
  imagen_model: str
  image_timeout_seconds: float
  image_size: int
  generated_image_bucket: str | None
  generated_image_prefix: str
  gcs_storage_host: str | None
  task_service_provider: str
  cloud_tasks_queue_path: str | None
  base_url: str | None
  task_secret: str | None
  cloud_run_invoker_service_account: str | None
  task_dispatch_timeout_seconds: float
  default_company_name: str


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("CONCEPTS_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("CONCEPTS_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("CONCEPTS_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  return value or None


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _choice(name: str, raw: str | None, default: str, allowed: frozenset[str], *, upper: bool = False) -> str:
  value = (raw or default).strip()
  value = value.upper() if upper else value.lower()
  if value not in allowed:
    raise ValueError(f"{name} must be one of: {', '.join(sorted(allowed))}.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("CONCEPTS_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("CONCEPTS_DEBUG"))
  allowed_origins = _parse_origins(os.getenv("CONCEPTS_ALLOWED_ORIGINS", "http://localhost:5173"))

  log_max_bytes = _positive_int("CONCEPTS_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("CONCEPTS_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("CONCEPTS_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx HTTPExceptions for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("CONCEPTS_LOG_HTTP_4XX"))

  jobs_backend = _choice("CONCEPTS_JOBS_BACKEND", os.getenv("CONCEPTS_JOBS_BACKEND"), "firestore", _JOBS_BACKENDS)
  job_update_max_attempts = _positive_int("CONCEPTS_JOB_UPDATE_MAX_ATTEMPTS", "10")

  image_provider = _choice("CONCEPTS_IMAGE_PROVIDER", os.getenv("CONCEPTS_IMAGE_PROVIDER"), "PEXELS", _IMAGE_PROVIDERS, upper=True)
  image_timeout_seconds = _positive_float("CONCEPTS_IMAGE_TIMEOUT_SECONDS", "120")
  image_size = _positive_int("CONCEPTS_IMAGE_SIZE", "512")

  task_service_provider = _choice("CONCEPTS_TASK_SERVICE_PROVIDER", os.getenv("CONCEPTS_TASK_SERVICE_PROVIDER"), "local-http", _TASK_PROVIDERS)
  task_dispatch_timeout_seconds = _positive_float("CONCEPTS_TASK_DISPATCH_TIMEOUT_SECONDS", "30")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=allowed_origins,
    log_dir=_optional_str(os.getenv("CONCEPTS_LOG_DIR")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    jobs_backend=jobs_backend,
    jobs_collection=(os.getenv("CONCEPTS_JOBS_COLLECTION") or "conceptJobs").strip(),
    job_update_max_attempts=job_update_max_attempts,
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    gcp_project_id=_optional_str(os.getenv("GCP_PROJECT_ID")),
    gcp_location=(os.getenv("GCP_LOCATION") or "us-central1").strip(),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    concept_text_model=(os.getenv("CONCEPTS_TEXT_MODEL") or "gemini-2.0-flash").strip(),
    image_provider=image_provider,  # type: ignore[arg-type]
    pexels_api_key=_optional_str(os.getenv("PEXELS_API_KEY")),
    pexels_base_url=(os.getenv("CONCEPTS_PEXELS_BASE_URL") or "https://api.pexels.com/v1").strip().rstrip("/"),
    imagen_model=(os.getenv("CONCEPTS_IMAGEN_MODEL") or "imagen-4.0-fast-generate-001").strip(),
    image_timeout_seconds=image_timeout_seconds,
    image_size=image_size,
    generated_image_bucket=_optional_str(os.getenv("GCS_BUCKET_NAME")),
    generated_image_prefix=(os.getenv("CONCEPTS_IMAGE_OBJECT_PREFIX") or "generated-images").strip().strip("/"),
    gcs_storage_host=_optional_str(os.getenv("GCS_STORAGE_HOST")),
    task_service_provider=task_service_provider,
    cloud_tasks_queue_path=_optional_str(os.getenv("CONCEPTS_CLOUD_TASKS_QUEUE_PATH")),
    base_url=_optional_str(os.getenv("CONCEPTS_BASE_URL")),
    task_secret=_optional_str(os.getenv("CONCEPTS_TASK_SECRET")),
    cloud_run_invoker_service_account=_optional_str(os.getenv("CONCEPTS_CLOUD_RUN_INVOKER_SERVICE_ACCOUNT")),
    task_dispatch_timeout_seconds=task_dispatch_timeout_seconds,
    default_company_name=(os.getenv("CONCEPTS_COMPANY_NAME") or "Recuerdos Artesanales").strip(),
  )
