"""Image provider contract shared by the stock and generative backends."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class ImageProviderError(RuntimeError):
  """Raised when a provider cannot produce an image for a prompt."""


@dataclass(frozen=True)
class ImageResult:
  """Image lookup outcome; `url` is None when a search had no match."""

  url: str | None


class ImageProvider(Protocol):
  name: str

  async def fetch_or_generate(self, prompt: str) -> ImageResult:
    """Return an image for `prompt`, raising ImageProviderError on failure."""
    ...
