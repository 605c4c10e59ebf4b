"""Provider implementations."""

from concept_engine.ai.providers.base import AIModel, StructuredModelResponse
from concept_engine.ai.providers.gemini import GeminiModel

__all__ = ["AIModel", "StructuredModelResponse", "GeminiModel"]
