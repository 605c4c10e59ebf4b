import logging
import re
import time
import uuid
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("concept_engine.core.middleware")

# Inbound ids are echoed into logs and headers; accept only short opaque tokens.
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")
_CLOUD_TASKS_HEADERS = ("x-cloudtasks-taskname", "x-cloudtasks-taskretrycount")


def _request_id_for(headers: Headers) -> str:
  inbound = headers.get("x-request-id")
  if inbound and _REQUEST_ID_PATTERN.match(inbound):
    return inbound
  return str(uuid.uuid4())


def _task_context(headers: Headers) -> str:
  """Cloud Tasks delivery metadata, so redeliveries of one job can be matched up in logs."""
  parts = [f"{name.removeprefix('x-cloudtasks-')}={headers[name]}" for name in _CLOUD_TASKS_HEADERS if name in headers]
  return " ".join(parts)


class RequestLoggingMiddleware:
  """Log one line per request and response, tagging both with a request id."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    headers = Headers(scope=scope)
    request_id = _request_id_for(headers)
    scope.setdefault("state", {})["request_id"] = request_id

    started = time.perf_counter()
    task_context = _task_context(headers)
    logger.info("Incoming request request_id=%s %s %s%s", request_id, scope.get("method", "UNKNOWN"), scope.get("path", ""), f" {task_context}" if task_context else "")

    status_code: int | None = None

    async def send_wrapper(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message["type"] == "http.response.start":
        status_code = message.get("status")
        MutableHeaders(scope=message)["x-request-id"] = request_id
      await send(message)

    try:
      await self.app(scope, receive, send_wrapper)
    finally:
      # For event streams this covers the whole stream, not only the first byte.
      elapsed_ms = (time.perf_counter() - started) * 1000
      logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, status_code or 0, elapsed_ms)


class SecurityHeadersMiddleware:
  """Drop server fingerprint headers and forbid MIME sniffing."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    async def send_wrapper(message: dict[str, Any]) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        for header in ("x-powered-by", "server"):
          if header in headers:
            del headers[header]
        headers.setdefault("x-content-type-options", "nosniff")
      await send(message)

    await self.app(scope, receive, send_wrapper)
