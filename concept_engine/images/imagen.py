"""Generative images through Vertex AI Imagen, stored in Cloud Storage."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Protocol

from google import genai
from google.genai import types
from PIL import Image, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

from concept_engine.images.base import ImageProviderError, ImageResult
from concept_engine.utils.ids import generated_image_object_name

logger = logging.getLogger(__name__)

JPEG_QUALITY = 80


class PublicUploader(Protocol):
  async def upload_public(self, data: bytes, object_name: str, *, content_type: str) -> str: ...


def convert_to_jpeg(image_bytes: bytes, size: int) -> bytes:
  """Convert provider image bytes into a square JPEG payload."""
  try:
    image = Image.open(io.BytesIO(image_bytes))
    image.load()
  except (UnidentifiedImageError, OSError) as exc:
    raise ImageProviderError(f"Generated image could not be decoded: {exc}") from exc
  # JPEG has no alpha channel; flatten everything to RGB before encoding.
  converted = image.convert("RGB") if image.mode != "RGB" else image
  if converted.size != (size, size):
    converted = converted.resize((size, size), Image.Resampling.LANCZOS)
  output = io.BytesIO()
  converted.save(output, format="JPEG", quality=JPEG_QUALITY)
  return output.getvalue()


class ImagenImageProvider:
  """Generates one square image per prompt and returns its public storage URL."""

  name = "GOOGLE_IMAGEN"

  def __init__(self, client: genai.Client, uploader: PublicUploader, *, model: str, object_prefix: str, size: int = 512, timeout_seconds: float = 120.0) -> None:
    self._client = client
    self._uploader = uploader
    self._model = model
    self._object_prefix = object_prefix
    self._size = size
    self._timeout_seconds = timeout_seconds

  async def fetch_or_generate(self, prompt: str) -> ImageResult:
    if not prompt or not prompt.strip():
      raise ImageProviderError("Concept is missing an imagePrompt.")

    image_bytes = await self._generate(prompt)
    jpeg_bytes = await run_in_threadpool(convert_to_jpeg, image_bytes, self._size)
    object_name = generated_image_object_name(self._object_prefix, "jpeg")
    url = await self._uploader.upload_public(jpeg_bytes, object_name, content_type="image/jpeg")
    return ImageResult(url=url)

  async def _generate(self, prompt: str) -> bytes:
    config = types.GenerateImagesConfig(number_of_images=1, aspect_ratio="1:1")
    try:
      response = await asyncio.wait_for(self._client.aio.models.generate_images(model=self._model, prompt=prompt, config=config), timeout=self._timeout_seconds)
    except TimeoutError as exc:
      raise ImageProviderError(f"Image generation timed out after {self._timeout_seconds:.0f}s.") from exc
    except Exception as exc:
      raise ImageProviderError(f"Image generation failed: {exc}") from exc

    generated = response.generated_images or []
    if not generated or generated[0].image is None or not generated[0].image.image_bytes:
      raise ImageProviderError("Image model returned no image data.")
    return generated[0].image.image_bytes
