"""Background worker that drives one concept job to a terminal state.

Flow: build the prompt, generate three drafts, persist them as `processing`, run one image task
per concept concurrently, wait for all of them, then mark the job `completed`. Generation errors
fail the job with no concepts; image errors stay on their own concept.
"""

from __future__ import annotations

import asyncio
import logging

from starlette.concurrency import run_in_threadpool

from concept_engine.ai.concepts import ConceptDraft, ConceptGenerationError, ConceptGenerator
from concept_engine.ai.factory import build_text_model
from concept_engine.ai.prompts import build_concept_prompt
from concept_engine.ai.providers.base import AIModel
from concept_engine.api.models import ConceptTaskPayload
from concept_engine.config import ConfigurationError, Settings
from concept_engine.images.base import ImageProvider
from concept_engine.images.factory import build_image_provider, resolve_image_provider_name
from concept_engine.jobs.models import ConceptRecord, InvalidJobTransitionError, JobRecord, JobStatus
from concept_engine.jobs.updates import ImageOutcome, claim_job, mark_completed, mark_failed, persist_drafts, resolve_concept_image
from concept_engine.storage.factory import get_jobs_repo
from concept_engine.storage.jobs_repo import JobsRepository
from concept_engine.utils.ids import generate_concept_id, generate_job_id

logger = logging.getLogger(__name__)

_UNFINISHED_IMAGE_ERROR = "Image task stopped before producing a result."


def drafts_to_concepts(drafts: list[ConceptDraft]) -> list[ConceptRecord]:
  """Give each draft its permanent id and the initial image-task state."""
  return [ConceptRecord(concept_id=generate_concept_id(), name=draft.name, description=draft.description, materials=list(draft.materials), image_prompt=draft.image_prompt) for draft in drafts]


class ConceptWorker:
  """Runs the generation pipeline for jobs that are still pending."""

  def __init__(self, repo: JobsRepository, generator: ConceptGenerator, image_provider: ImageProvider, *, company_name: str, max_update_attempts: int = 10) -> None:
    self._repo = repo
    self._generator = generator
    self._image_provider = image_provider
    self._company_name = company_name
    self._max_update_attempts = max_update_attempts

  async def run(self, payload: ConceptTaskPayload, *, claim: str | None = None) -> JobRecord | None:
    """Run the job under `claim`; without one, the worker claims the pending job itself."""
    job_id = payload.job_id
    if claim is None:
      claim = generate_job_id()
      if not await claim_job(self._repo, job_id, claim, max_attempts=self._max_update_attempts):
        logger.warning("Job %s: already claimed by another delivery; stopping", job_id)
        return await self._repo.get_job(job_id)

    tenant = payload.tenant_config
    prompt = build_concept_prompt(payload.user_idea, company_name=(tenant.name if tenant and tenant.name else self._company_name), base_concept=payload.base_concept, custom_template=tenant.ai_prompt if tenant else None)
    logger.info("Job %s: generating concepts (variation=%s, custom_prompt=%s)", job_id, bool(payload.base_concept), bool(tenant and tenant.ai_prompt))

    try:
      drafts = await self._generator.generate(prompt)
    except ConceptGenerationError as exc:
      logger.error("Job %s: concept generation failed: %s", job_id, exc)
      return await self._fail(job_id, str(exc), only_from="pending", claim=claim)

    concepts = drafts_to_concepts(drafts)
    try:
      await persist_drafts(self._repo, job_id, concepts, claim=claim, max_attempts=self._max_update_attempts)
    except InvalidJobTransitionError:
      logger.warning("Job %s: claimed by another delivery before drafts were saved; stopping", job_id)
      return await self._repo.get_job(job_id)
    except Exception as exc:  # noqa: BLE001
      logger.error("Job %s: saving drafts failed", job_id, exc_info=True)
      return await self._fail(job_id, str(exc) or type(exc).__name__, only_from="pending", claim=claim)

    try:
      logger.info("Job %s: persisted %s drafts, starting image tasks with %s", job_id, len(concepts), self._image_provider.name)

      results = await asyncio.gather(*(self._resolve_image(job_id, concept) for concept in concepts), return_exceptions=True)
      # Image errors are recorded on their concept; anything surfacing here is a lost terminal write.
      lost_writes = [result for result in results if isinstance(result, BaseException)]
      if lost_writes:
        raise RuntimeError(f"{len(lost_writes)} image result(s) could not be saved: {lost_writes[0]}")

      record = await mark_completed(self._repo, job_id, max_attempts=self._max_update_attempts)
      logger.info("Job %s: completed", job_id)
      return record
    except Exception as exc:  # noqa: BLE001
      logger.error("Job %s: orchestration failed", job_id, exc_info=True)
      return await self._fail(job_id, str(exc) or type(exc).__name__)

  async def _resolve_image(self, job_id: str, concept: ConceptRecord) -> None:
    outcome = ImageOutcome(image_url=None, error=_UNFINISHED_IMAGE_ERROR)
    try:
      result = await self._image_provider.fetch_or_generate(concept.image_prompt)
      outcome = ImageOutcome(image_url=result.url)
      logger.info("Job %s, concept %s: image %s", job_id, concept.concept_id, "found" if result.url else "not found")
    except Exception as exc:  # noqa: BLE001
      logger.warning("Job %s, concept %s: image task failed: %s", job_id, concept.concept_id, exc)
      outcome = ImageOutcome(image_url=None, error=str(exc) or type(exc).__name__)
    finally:
      await resolve_concept_image(self._repo, job_id, concept.concept_id, outcome, max_attempts=self._max_update_attempts)

  async def _fail(self, job_id: str, message: str, *, only_from: JobStatus | None = None, claim: str | None = None) -> JobRecord | None:
    try:
      return await mark_failed(self._repo, job_id, message, only_from=only_from, claim=claim, max_attempts=self._max_update_attempts)
    except Exception:  # noqa: BLE001
      logger.critical("Job %s: could not record failure (%s); the job may stay in its current state", job_id, message, exc_info=True)
      return None


def _build_providers(settings: Settings, requested_image_provider: str | None, text_model: AIModel | None, image_provider: ImageProvider | None) -> tuple[AIModel, ImageProvider]:
  # SDK clients resolve credentials and may touch the network while they are built.
  if image_provider is None:
    image_provider = build_image_provider(settings, resolve_image_provider_name(settings, requested_image_provider))
  if text_model is None:
    text_model = build_text_model(settings)
  return text_model, image_provider


async def process_concept_task(payload: ConceptTaskPayload, settings: Settings, *, repo: JobsRepository | None = None, text_model: AIModel | None = None, image_provider: ImageProvider | None = None) -> JobRecord | None:
  """Entry point for task deliveries; only the delivery that claims a pending job runs it."""
  repo = repo or get_jobs_repo(settings)
  job = await repo.get_job(payload.job_id)
  if job is None:
    logger.error("Job %s not found; dropping task", payload.job_id)
    return None
  if job.status != "pending":
    logger.warning("Job %s is %s; ignoring duplicate task delivery", payload.job_id, job.status)
    return job

  claim = generate_job_id()
  if not await claim_job(repo, payload.job_id, claim, max_attempts=settings.job_update_max_attempts):
    logger.warning("Job %s is already claimed by another delivery; ignoring this one", payload.job_id)
    return await repo.get_job(payload.job_id)

  requested = payload.tenant_config.image_provider if payload.tenant_config else None
  try:
    text_model, image_provider = await run_in_threadpool(_build_providers, settings, requested, text_model, image_provider)
  except ConfigurationError as exc:
    logger.error("Job %s: configuration error: %s", payload.job_id, exc)
    return await mark_failed(repo, payload.job_id, f"Server configuration error: {exc}", only_from="pending", claim=claim, max_attempts=settings.job_update_max_attempts)

  worker = ConceptWorker(repo, ConceptGenerator(text_model), image_provider, company_name=settings.default_company_name, max_update_attempts=settings.job_update_max_attempts)
  return await worker.run(payload, claim=claim)
