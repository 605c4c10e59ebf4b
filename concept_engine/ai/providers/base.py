"""Base interfaces for AI providers and models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class StructuredModelResponse:
  """Structured model response structure."""

  content: dict[str, Any]
  usage: dict[str, int] | None = None


class AIModel(ABC):
  """Abstract base class for text models that return JSON."""

  name: str

  @abstractmethod
  async def generate_structured(self, prompt: str, schema: dict[str, Any]) -> StructuredModelResponse:
    """Generate structured output that conforms to the provided JSON schema."""

  @staticmethod
  def strip_json_fences(text: str) -> str:
    """Remove a surrounding ```json fence that some models add in JSON mode."""
    stripped = text.strip()
    if not stripped.startswith("```"):
      return stripped
    stripped = stripped[3:]
    if stripped.lower().startswith("json"):
      stripped = stripped[4:]
    if stripped.endswith("```"):
      stripped = stripped[:-3]
    return stripped.strip()
