"""Pexels stock photo search."""

from __future__ import annotations

import logging

import httpx

from concept_engine.images.base import ImageProviderError, ImageResult

logger = logging.getLogger(__name__)


class PexelsImageProvider:
  """Returns the first Pexels search hit for a prompt."""

  name = "PEXELS"

  def __init__(self, api_key: str, *, base_url: str = "https://api.pexels.com/v1", timeout_seconds: float = 15.0) -> None:
    self._api_key = api_key
    self._base_url = base_url.rstrip("/")
    self._timeout_seconds = timeout_seconds

  async def fetch_or_generate(self, prompt: str) -> ImageResult:
    if not prompt or not prompt.strip():
      raise ImageProviderError("Concept is missing an imagePrompt.")

    try:
      async with httpx.AsyncClient(trust_env=False, timeout=self._timeout_seconds) as client:
        response = await client.get(f"{self._base_url}/search", params={"query": prompt, "per_page": 1}, headers={"Authorization": self._api_key})
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
      raise ImageProviderError(f"Pexels search returned {e.response.status_code}.") from e
    except httpx.RequestError as e:
      raise ImageProviderError(f"Pexels search failed: {e}") from e

    photos = response.json().get("photos") or []
    if not photos:
      logger.info("No Pexels result for prompt %r", prompt[:80])
      return ImageResult(url=None)

    url = (photos[0].get("src") or {}).get("large")
    return ImageResult(url=url or None)
