"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import asyncio
import json
import logging
import random
from typing import Any

from google import genai

from concept_engine.ai.providers.base import AIModel, StructuredModelResponse

logger = logging.getLogger(__name__)


class GeminiModel(AIModel):
  """Gemini model client with JSON-mode structured output."""

  def __init__(self, name: str, api_key: str | None) -> None:
    self.name: str = name
    if not api_key:
      raise ValueError("GEMINI_API_KEY is required")
    self._client = genai.Client(api_key=api_key)

  async def generate_structured(self, prompt: str, schema: dict[str, Any]) -> StructuredModelResponse:
    """Generate structured JSON output using Gemini's JSON mode."""
    # Use a plain dict for config so the OpenAPI-style schema is passed through unchanged.
    response = await _with_backoff(self._client.aio.models.generate_content, model=self.name, contents=prompt, config={"response_mime_type": "application/json", "response_schema": schema})
    logger.debug("Gemini structured response (raw):\n%s", response.text)

    usage = None
    if response.usage_metadata:
      usage = {"prompt_tokens": response.usage_metadata.prompt_token_count, "completion_tokens": response.usage_metadata.candidates_token_count, "total_tokens": response.usage_metadata.total_token_count}

    if not response.text:
      raise RuntimeError("Gemini returned an empty response.")

    try:
      parsed = json.loads(self.strip_json_fences(response.text))
    except json.JSONDecodeError as e:
      raise RuntimeError(f"Gemini returned invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
      raise RuntimeError("Gemini returned JSON that is not an object.")
    return StructuredModelResponse(content=parsed, usage=usage)


async def _with_backoff(func, *args, **kwargs):
  retries = 3
  base_delay = 1
  for i in range(retries):
    try:
      return await func(*args, **kwargs)
    except Exception as e:
      # Only rate limiting is retried; everything else surfaces immediately.
      if "429" in str(e) or "Too Many Requests" in str(e) or "RESOURCE_EXHAUSTED" in str(e):
        if i == retries - 1:
          raise
        delay = base_delay * (2**i) + random.uniform(0, 1)
        logger.warning("Gemini rate limited; retrying in %.1fs (attempt %s/%s)", delay, i + 1, retries)
        await asyncio.sleep(delay)
      else:
        raise
  return await func(*args, **kwargs)
