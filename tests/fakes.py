"""In-process stand-ins for the text model and image providers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from concept_engine.ai.providers.base import AIModel, StructuredModelResponse
from concept_engine.images.base import ImageProviderError, ImageResult


def concept_payload(name: str, prompt: str | None = None) -> dict[str, Any]:
  return {"name": name, "description": f"{name} description", "materials": ["Madera"], "imagePrompt": prompt or f"Photorealistic product shot of {name}"}


def three_concepts(*names: str) -> dict[str, Any]:
  chosen = names or ("C1", "C2", "C3")
  return {"concepts": [concept_payload(name) for name in chosen]}


class FakeTextModel(AIModel):
  """Returns a canned payload or raises, and records prompts it was given."""

  def __init__(self, content: dict[str, Any] | None = None, error: Exception | None = None, *, delay: float = 0.0, usage: dict[str, int] | None = None) -> None:
    self.name = "fake-text-model"
    self._content = content if content is not None else three_concepts()
    self._error = error
    self._delay = delay
    self._usage = usage
    self.prompts: list[str] = []

  async def generate_structured(self, prompt: str, schema: dict[str, Any]) -> StructuredModelResponse:
    self.prompts.append(prompt)
    if self._delay:
      await asyncio.sleep(self._delay)
    if self._error is not None:
      raise self._error
    return StructuredModelResponse(content=self._content, usage=self._usage)


class FakeImageProvider:
  """Maps prompts to URLs; a prompt mapped to an exception raises it."""

  name = "FAKE"

  def __init__(self, results: dict[str, str | None | Exception] | None = None, *, delay: Callable[[str], float] | None = None) -> None:
    self._results = results or {}
    self._delay = delay
    self.calls: list[str] = []

  async def fetch_or_generate(self, prompt: str) -> ImageResult:
    self.calls.append(prompt)
    if self._delay is not None:
      await asyncio.sleep(self._delay(prompt))
    if prompt not in self._results:
      raise ImageProviderError(f"no fake result for {prompt!r}")
    outcome = self._results[prompt]
    if isinstance(outcome, Exception):
      raise outcome
    return ImageResult(url=outcome)
