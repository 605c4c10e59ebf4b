"""Request and response models for the concept job API."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from concept_engine.jobs.models import ConceptRecord, JobRecord, JobStatus


class TenantConfig(BaseModel):
  """Per-tenant overrides for prompt wording and image backend."""

  model_config = ConfigDict(populate_by_name=True, extra="ignore")

  ai_prompt: str | None = Field(default=None, alias="aiPrompt", validation_alias=AliasChoices("aiPrompt", "ai_prompt"))
  name: str | None = None
  # Unknown names are rejected by the image provider factory.
  image_provider: str | None = Field(default=None, alias="imageProvider", validation_alias=AliasChoices("imageProvider", "image_provider"))

  @field_validator("image_provider", mode="before")
  @classmethod
  def _normalize_image_provider(cls, value: Any) -> Any:
    if isinstance(value, str):
      return value.strip().upper() or None
    return value


class ConceptJobRequest(BaseModel):
  """Launcher input. `userInput` and `companySettings` are accepted for older clients."""

  model_config = ConfigDict(populate_by_name=True, extra="ignore")

  # Optional at the schema level so a missing idea is reported as a 400 by the launcher.
  user_idea: str | None = Field(default=None, alias="userIdea", validation_alias=AliasChoices("userIdea", "userInput"))
  base_concept: dict[str, Any] | None = Field(default=None, alias="baseConcept")
  tenant_config: TenantConfig | None = Field(default=None, alias="tenantConfig", validation_alias=AliasChoices("tenantConfig", "companySettings"))


class ConceptTaskPayload(BaseModel):
  """Body posted to the internal worker endpoint."""

  model_config = ConfigDict(populate_by_name=True, extra="ignore")

  job_id: str = Field(alias="jobId", min_length=1, validation_alias=AliasChoices("jobId", "job_id"))
  user_idea: str = Field(alias="userIdea", validation_alias=AliasChoices("userIdea", "userInput"))
  base_concept: dict[str, Any] | None = Field(default=None, alias="baseConcept")
  tenant_config: TenantConfig | None = Field(default=None, alias="tenantConfig", validation_alias=AliasChoices("tenantConfig", "companySettings"))

  def to_body(self) -> dict[str, Any]:
    return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class JobCreateResponse(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  job_id: str = Field(alias="jobId")


class ConceptResponse(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  id: str
  name: str
  description: str
  materials: list[str]
  image_prompt: str = Field(alias="imagePrompt")
  image_url: str | None = Field(default=None, alias="imageUrl")
  is_generating_image: bool = Field(alias="isGeneratingImage")
  error: str | None = None

  @classmethod
  def from_record(cls, concept: ConceptRecord) -> ConceptResponse:
    return cls(id=concept.concept_id, name=concept.name, description=concept.description, materials=list(concept.materials), image_prompt=concept.image_prompt, image_url=concept.image_url, is_generating_image=concept.is_generating_image, error=concept.error)


class JobStatusResponse(BaseModel):
  """Snapshot of a job plus the observer's resolution verdict."""

  model_config = ConfigDict(populate_by_name=True)

  job_id: str = Field(alias="jobId")
  status: JobStatus
  concepts: list[ConceptResponse]
  error: str | None = None
  created_at: str = Field(alias="createdAt")
  resolved: bool

  @classmethod
  def from_record(cls, record: JobRecord, *, resolved: bool) -> JobStatusResponse:
    return cls(job_id=record.job_id, status=record.status, concepts=[ConceptResponse.from_record(concept) for concept in record.concepts], error=record.error, created_at=record.created_at, resolved=resolved)
