"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel

from concept_engine.core.exceptions import _sanitize_validation_errors, global_exception_handler, http_exception_handler, request_validation_exception_handler


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and redact raw request payloads."""
  errors = [{"type": "value_error", "loc": ("body", "userIdea"), "msg": "Value error, idea too long.", "input": {"userIdea": "x" * 10}, "ctx": {"error": ValueError("idea too long."), "input": {"userIdea": "x"}}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["loc"] == ["body", "userIdea"]
  assert sanitized[0]["ctx"]["error"] == "ValueError: idea too long."
  assert "input" not in sanitized[0]["ctx"]


class _Body(BaseModel):
  jobId: str


def _app() -> FastAPI:
  app = FastAPI()
  app.add_exception_handler(Exception, global_exception_handler)
  app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
  app.add_exception_handler(HTTPException, http_exception_handler)

  @app.get("/boom")
  async def boom():
    raise HTTPException(status_code=503, detail="firestore credentials at /secrets/key.json rejected")

  @app.get("/missing")
  async def missing():
    raise HTTPException(status_code=404, detail="Job not found.")

  @app.post("/body")
  async def body(payload: _Body):
    return {"ok": payload.jobId}

  return app


@pytest.mark.anyio
async def test_server_error_details_are_masked() -> None:
  async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as client:
    response = await client.get("/boom")

  assert response.status_code == 503
  assert response.json() == {"detail": "Internal Server Error"}


@pytest.mark.anyio
async def test_client_errors_keep_their_detail() -> None:
  async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as client:
    response = await client.get("/missing")

  assert response.status_code == 404
  assert response.json() == {"detail": "Job not found."}


@pytest.mark.anyio
async def test_validation_errors_do_not_echo_the_body() -> None:
  async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as client:
    response = await client.post("/body", json={"userIdea": "secret idea"})

  assert response.status_code == 422
  assert "secret idea" not in response.text
  assert response.json()["detail"][0]["loc"] == ["body", "jobId"]
