from __future__ import annotations

import asyncio
import io
import threading
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from PIL import Image

from concept_engine.config import ConfigurationError
from concept_engine.images.base import ImageProviderError
from concept_engine.images.factory import check_image_provider_config, resolve_image_provider_name
from concept_engine.images.imagen import ImagenImageProvider, convert_to_jpeg
from concept_engine.images.stock import PexelsImageProvider


def _png_bytes(size=(640, 480), mode="RGBA") -> bytes:
  buffer = io.BytesIO()
  Image.new(mode, size, (200, 120, 40, 255) if mode == "RGBA" else (200, 120, 40)).save(buffer, format="PNG")
  return buffer.getvalue()


def _pexels_client(response: httpx.Response) -> tuple[MagicMock, MagicMock]:
  client = MagicMock()
  client.get = AsyncMock(return_value=response)
  client_cls = MagicMock()
  client_cls.return_value.__aenter__ = AsyncMock(return_value=client)
  client_cls.return_value.__aexit__ = AsyncMock(return_value=None)
  return client_cls, client


def _response(status: int, payload: dict) -> httpx.Response:
  return httpx.Response(status, json=payload, request=httpx.Request("GET", "https://api.pexels.com/v1/search"))


@pytest.mark.anyio
async def test_pexels_returns_first_large_photo() -> None:
  client_cls, client = _pexels_client(_response(200, {"photos": [{"src": {"large": "https://images.pexels.com/a.jpeg"}}, {"src": {"large": "https://images.pexels.com/b.jpeg"}}]}))

  with patch("concept_engine.images.stock.httpx.AsyncClient", client_cls):
    result = await PexelsImageProvider("pexels-key", base_url="https://api.pexels.com/v1/").fetch_or_generate("wooden coaster")

  assert result.url == "https://images.pexels.com/a.jpeg"
  args, kwargs = client.get.await_args
  assert args[0] == "https://api.pexels.com/v1/search"
  assert kwargs["params"] == {"query": "wooden coaster", "per_page": 1}
  assert kwargs["headers"] == {"Authorization": "pexels-key"}


@pytest.mark.anyio
async def test_pexels_without_hits_returns_no_url() -> None:
  client_cls, _ = _pexels_client(_response(200, {"photos": []}))

  with patch("concept_engine.images.stock.httpx.AsyncClient", client_cls):
    result = await PexelsImageProvider("pexels-key").fetch_or_generate("nothing matches")

  assert result.url is None


@pytest.mark.anyio
async def test_pexels_http_error_is_a_provider_error() -> None:
  client_cls, _ = _pexels_client(_response(401, {"error": "unauthorized"}))

  with patch("concept_engine.images.stock.httpx.AsyncClient", client_cls), pytest.raises(ImageProviderError, match="401"):
    await PexelsImageProvider("bad-key").fetch_or_generate("coaster")


@pytest.mark.anyio
async def test_blank_prompt_is_rejected_before_any_call() -> None:
  with patch("concept_engine.images.stock.httpx.AsyncClient") as client_cls, pytest.raises(ImageProviderError):
    await PexelsImageProvider("k").fetch_or_generate("  ")
  client_cls.assert_not_called()


def test_convert_to_jpeg_flattens_and_resizes() -> None:
  jpeg = convert_to_jpeg(_png_bytes(), 512)

  image = Image.open(io.BytesIO(jpeg))
  assert image.format == "JPEG"
  assert image.mode == "RGB"
  assert image.size == (512, 512)


def test_convert_to_jpeg_rejects_garbage() -> None:
  with pytest.raises(ImageProviderError, match="could not be decoded"):
    convert_to_jpeg(b"not an image", 512)


class FakeUploader:
  def __init__(self) -> None:
    self.uploads: list[tuple[bytes, str, str]] = []

  async def upload_public(self, data: bytes, object_name: str, *, content_type: str) -> str:
    self.uploads.append((data, object_name, content_type))
    return f"https://storage.googleapis.com/concepts-bucket/{object_name}"


def _imagen_client(generate_images) -> SimpleNamespace:
  return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_images=generate_images)))


@pytest.mark.anyio
async def test_imagen_generates_converts_and_uploads() -> None:
  response = SimpleNamespace(generated_images=[SimpleNamespace(image=SimpleNamespace(image_bytes=_png_bytes()))])
  generate = AsyncMock(return_value=response)
  uploader = FakeUploader()
  provider = ImagenImageProvider(_imagen_client(generate), uploader, model="imagen-3.0-generate-002", object_prefix="generated-images")

  result = await provider.fetch_or_generate("Photorealistic product shot of a mug")

  data, object_name, content_type = uploader.uploads[0]
  assert result.url == f"https://storage.googleapis.com/concepts-bucket/{object_name}"
  assert object_name.startswith("generated-images/") and object_name.endswith(".jpeg")
  assert content_type == "image/jpeg"
  assert Image.open(io.BytesIO(data)).size == (512, 512)
  kwargs = generate.await_args.kwargs
  assert kwargs["model"] == "imagen-3.0-generate-002"
  assert kwargs["config"].number_of_images == 1
  assert kwargs["config"].aspect_ratio == "1:1"


@pytest.mark.anyio
async def test_imagen_converts_off_the_event_loop_thread() -> None:
  response = SimpleNamespace(generated_images=[SimpleNamespace(image=SimpleNamespace(image_bytes=_png_bytes()))])
  provider = ImagenImageProvider(_imagen_client(AsyncMock(return_value=response)), FakeUploader(), model="m", object_prefix="p")
  threads: list[int] = []

  def _convert(image_bytes: bytes, size: int) -> bytes:
    threads.append(threading.get_ident())
    return convert_to_jpeg(image_bytes, size)

  with patch("concept_engine.images.imagen.convert_to_jpeg", side_effect=_convert):
    await provider.fetch_or_generate("prompt")

  assert threads and threads[0] != threading.get_ident()


@pytest.mark.anyio
async def test_imagen_timeout_message() -> None:
  async def _hang(**_kwargs):
    await asyncio.sleep(10)

  uploader = FakeUploader()
  provider = ImagenImageProvider(_imagen_client(_hang), uploader, model="m", object_prefix="p", timeout_seconds=0.01)

  with pytest.raises(ImageProviderError, match="timed out"):
    await provider.fetch_or_generate("prompt")
  assert uploader.uploads == []


@pytest.mark.anyio
async def test_imagen_empty_response_is_an_error() -> None:
  provider = ImagenImageProvider(_imagen_client(AsyncMock(return_value=SimpleNamespace(generated_images=[]))), FakeUploader(), model="m", object_prefix="p")

  with pytest.raises(ImageProviderError, match="no image data"):
    await provider.fetch_or_generate("prompt")


def test_tenant_choice_overrides_default(settings) -> None:
  assert resolve_image_provider_name(settings, None) == "PEXELS"
  assert resolve_image_provider_name(settings, "google_imagen") == "GOOGLE_IMAGEN"
  with pytest.raises(ConfigurationError):
    resolve_image_provider_name(settings, "DALL_E")


def test_imagen_requires_project_and_bucket(settings) -> None:
  with pytest.raises(ConfigurationError, match="GCP_PROJECT_ID, GCS_BUCKET_NAME"):
    check_image_provider_config(settings, "GOOGLE_IMAGEN")
  check_image_provider_config(settings, "PEXELS")
