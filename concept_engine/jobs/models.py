"""Domain models for asynchronous concept generation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

JobStatus = Literal["pending", "processing", "completed", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

# Status only moves forward; terminal states have no outgoing edges.
_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
  "pending": frozenset({"processing", "failed"}),
  "processing": frozenset({"completed", "failed"}),
  "completed": frozenset(),
  "failed": frozenset(),
}


class InvalidJobTransitionError(RuntimeError):
  """Raised when a status change would move a job backwards or out of a terminal state."""

  def __init__(self, job_id: str, current: str, requested: str) -> None:
    super().__init__(f"Job {job_id} cannot move from '{current}' to '{requested}'.")
    self.job_id = job_id
    self.current = current
    self.requested = requested


def can_transition(current: JobStatus, requested: JobStatus) -> bool:
  """Return True when `requested` is a legal next status for `current`."""
  return requested in _ALLOWED_TRANSITIONS[current]


def utc_now_iso() -> str:
  """Return the current UTC time as an ISO-8601 string."""
  return datetime.now(UTC).isoformat()


@dataclass
class ConceptRecord:
  """One generated souvenir idea and the state of its image task."""

  concept_id: str
  name: str
  description: str
  materials: list[str]
  image_prompt: str
  image_url: str | None = None
  is_generating_image: bool = True
  error: str | None = None

  def to_document(self) -> dict[str, Any]:
    """Serialize using the camelCase field names clients read."""
    return {
      "id": self.concept_id,
      "name": self.name,
      "description": self.description,
      "materials": list(self.materials),
      "imagePrompt": self.image_prompt,
      "imageUrl": self.image_url,
      "isGeneratingImage": self.is_generating_image,
      "error": self.error,
    }

  @classmethod
  def from_document(cls, data: dict[str, Any]) -> ConceptRecord:
    return cls(
      concept_id=str(data["id"]),
      name=str(data.get("name") or ""),
      description=str(data.get("description") or ""),
      materials=[str(item) for item in data.get("materials") or []],
      image_prompt=str(data.get("imagePrompt") or ""),
      image_url=data.get("imageUrl"),
      is_generating_image=bool(data.get("isGeneratingImage", False)),
      error=data.get("error"),
    )


@dataclass
class JobRecord:
  """Represents a background concept generation job."""

  job_id: str
  status: JobStatus
  created_at: str
  concepts: list[ConceptRecord] = field(default_factory=list)
  error: str | None = None
  updated_at: str | None = None
  # Delivery token of the worker that owns this job; set once while the job is pending.
  claimed_by: str | None = None

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES

  def find_concept(self, concept_id: str) -> ConceptRecord | None:
    for concept in self.concepts:
      if concept.concept_id == concept_id:
        return concept
    return None

  def to_document(self) -> dict[str, Any]:
    """Serialize the job for the document store, without its id."""
    document: dict[str, Any] = {"status": self.status, "createdAt": self.created_at, "concepts": [concept.to_document() for concept in self.concepts]}
    if self.error is not None:
      document["error"] = self.error
    if self.updated_at is not None:
      document["updatedAt"] = self.updated_at
    if self.claimed_by is not None:
      document["claimedBy"] = self.claimed_by
    return document

  @classmethod
  def from_document(cls, job_id: str, data: dict[str, Any]) -> JobRecord:
    status = data.get("status", "pending")
    if status not in _ALLOWED_TRANSITIONS:
      raise ValueError(f"Job {job_id} has unknown status '{status}'.")
    created_at = data.get("createdAt")
    # Firestore returns server timestamps as datetimes; keep the wire shape as strings.
    if isinstance(created_at, datetime):
      created_at = created_at.isoformat()
    return cls(
      job_id=job_id,
      status=status,
      created_at=str(created_at or ""),
      concepts=[ConceptRecord.from_document(item) for item in data.get("concepts") or []],
      error=data.get("error"),
      updated_at=data.get("updatedAt"),
      claimed_by=data.get("claimedBy"),
    )


def new_pending_job(job_id: str) -> JobRecord:
  """Build the initial record a launcher writes before dispatching work."""
  return JobRecord(job_id=job_id, status="pending", created_at=utc_now_iso(), concepts=[])
