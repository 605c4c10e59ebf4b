"""Text concept generation behind a strict output check."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from concept_engine.ai.prompts import CONCEPT_COUNT
from concept_engine.ai.providers.base import AIModel

logger = logging.getLogger(__name__)

# OpenAPI-style schema understood by Gemini's `response_schema`.
CONCEPTS_RESPONSE_SCHEMA: dict[str, Any] = {
  "type": "OBJECT",
  "properties": {
    "concepts": {
      "type": "ARRAY",
      "items": {
        "type": "OBJECT",
        "properties": {"name": {"type": "STRING"}, "description": {"type": "STRING"}, "materials": {"type": "ARRAY", "items": {"type": "STRING"}}, "imagePrompt": {"type": "STRING"}},
        "required": ["name", "description", "materials", "imagePrompt"],
      },
    }
  },
  "required": ["concepts"],
}


class ConceptGenerationError(RuntimeError):
  """Raised when the text model fails or its output does not match the concept shape."""


class ConceptDraft(BaseModel):
  """One generated concept before any image work."""

  model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

  name: str = Field(min_length=1)
  description: str = Field(min_length=1)
  materials: list[str] = Field(min_length=1)
  image_prompt: str = Field(alias="imagePrompt", min_length=1)

  @field_validator("materials")
  @classmethod
  def _materials_not_blank(cls, value: list[str]) -> list[str]:
    cleaned = [item.strip() for item in value if item and item.strip()]
    if not cleaned:
      raise ValueError("materials must contain at least one non-empty entry")
    return cleaned


class ConceptBatch(BaseModel):
  concepts: list[ConceptDraft] = Field(min_length=CONCEPT_COUNT, max_length=CONCEPT_COUNT)


def parse_concept_batch(payload: dict[str, Any]) -> list[ConceptDraft]:
  """Validate a raw model payload; raises ConceptGenerationError on any mismatch."""
  try:
    return ConceptBatch.model_validate(payload).concepts
  except ValidationError as exc:
    raise ConceptGenerationError(f"Generated concepts did not match the expected shape: {exc.error_count()} validation error(s).") from exc


class ConceptGenerator:
  """Single structured call that yields exactly three validated drafts."""

  def __init__(self, model: AIModel, schema: dict[str, Any] | None = None) -> None:
    self._model = model
    self._schema = schema or CONCEPTS_RESPONSE_SCHEMA

  async def generate(self, prompt: str) -> list[ConceptDraft]:
    try:
      response = await self._model.generate_structured(prompt, self._schema)
    except Exception as exc:
      raise ConceptGenerationError(f"Concept generation failed: {exc}") from exc

    drafts = parse_concept_batch(response.content)
    logger.info("Model %s produced %s concepts (usage=%s)", self._model.name, len(drafts), response.usage)
    return drafts
