import logging
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from concept_engine.api.models import ConceptJobRequest, JobCreateResponse, JobStatusResponse
from concept_engine.config import Settings, get_settings
from concept_engine.jobs.models import JobRecord
from concept_engine.jobs.observer import JobObserver, is_resolved
from concept_engine.services.launcher import start_concept_job
from concept_engine.storage.factory import get_jobs_repo
from concept_engine.storage.jobs_repo import JobsRepository

router = APIRouter()
logger = logging.getLogger("concept_engine.api.routes.concepts")


def jobs_repo_dependency(settings: Annotated[Settings, Depends(get_settings)]) -> JobsRepository:
  return get_jobs_repo(settings)


def _status_response(record: JobRecord) -> JobStatusResponse:
  return JobStatusResponse.from_record(record, resolved=is_resolved(record))


@router.post("", response_model=JobCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_concept_job(request: ConceptJobRequest, settings: Annotated[Settings, Depends(get_settings)], repo: Annotated[JobsRepository, Depends(jobs_repo_dependency)]) -> JobCreateResponse:
  """Start concept generation and return the job id immediately."""
  return await start_concept_job(request, settings, repo=repo)


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_concept_job(job_id: str, repo: Annotated[JobsRepository, Depends(jobs_repo_dependency)]) -> JobStatusResponse:
  """Return the current job snapshot and whether every concept has settled."""
  record = await repo.get_job(job_id)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found.")
  return _status_response(record)


@router.get("/{job_id}/events")
async def stream_concept_job(job_id: str, repo: Annotated[JobsRepository, Depends(jobs_repo_dependency)]) -> StreamingResponse:
  """Stream job snapshots as server-sent events until the job resolves."""
  if await repo.get_job(job_id) is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found.")

  observer = JobObserver(repo, job_id)
  observer.start()

  async def _events() -> AsyncIterator[str]:
    try:
      async for record in observer.snapshots():
        yield f"event: snapshot\ndata: {_status_response(record).model_dump_json(by_alias=True)}\n\n"
      yield "event: resolved\ndata: {}\n\n"
    finally:
      # Client disconnects end the generator early; release the store subscription either way.
      observer.stop()
      logger.debug("Event stream for job %s closed after %s snapshots", job_id, observer.snapshots_seen)

  return StreamingResponse(_events(), media_type="text/event-stream", headers={"Cache-Control": "no-cache"})
