from __future__ import annotations

from concept_engine.ai.providers.base import AIModel
from concept_engine.config import ConfigurationError, Settings


def check_text_model_config(settings: Settings) -> None:
  if not settings.gemini_api_key:
    raise ConfigurationError("GEMINI_API_KEY must be set to generate concepts.")


def build_text_model(settings: Settings) -> AIModel:
  """Return the Gemini model used for concept drafts."""
  check_text_model_config(settings)

  from concept_engine.ai.providers.gemini import GeminiModel

  return GeminiModel(settings.concept_text_model, api_key=settings.gemini_api_key)
