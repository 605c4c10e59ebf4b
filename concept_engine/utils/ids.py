"""Identifier utilities."""

from __future__ import annotations

import uuid


def generate_job_id() -> str:
  """Return a new job identifier."""
  return str(uuid.uuid4())


def generate_concept_id() -> str:
  """Return a new concept identifier."""
  return str(uuid.uuid4())


def generated_image_object_name(prefix: str, extension: str = "jpeg") -> str:
  """Return a fresh object key for a generated image upload."""
  key = f"{uuid.uuid4()}.{extension}"
  return f"{prefix}/{key}" if prefix else key
