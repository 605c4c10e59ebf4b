from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from concept_engine.config import Settings, get_settings

logger = logging.getLogger(__name__)


def task_secret_matches(expected: str, *, shared_secret: str | None, authorization: str | None) -> bool:
  """Accept the dedicated secret header, or a bearer token carrying the same secret."""
  shared_secret_valid = secrets.compare_digest((shared_secret or "").encode(), expected.encode())
  bearer_valid = secrets.compare_digest((authorization or "").encode(), f"Bearer {expected}".encode())
  return shared_secret_valid or bearer_valid


async def require_task_secret(request: Request, settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None), x_concept_task_secret: str | None = Header(default=None)) -> None:
  """Guard internal task endpoints; deny everything when no secret is configured."""
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  # Cloud Tasks OIDC uses Authorization for Cloud Run invoker auth, so check the dedicated header first.
  if not task_secret_matches(settings.task_secret, shared_secret=x_concept_task_secret, authorization=authorization):
    logger.warning("Unauthorized access attempt to %s", request.url.path)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")
