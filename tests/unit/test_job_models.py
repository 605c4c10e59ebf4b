from __future__ import annotations

from datetime import UTC, datetime

import pytest

from concept_engine.jobs.models import ConceptRecord, JobRecord, can_transition, new_pending_job


@pytest.mark.parametrize(
  ("current", "requested", "allowed"),
  [
    ("pending", "processing", True),
    ("pending", "failed", True),
    ("pending", "completed", False),
    ("processing", "completed", True),
    ("processing", "failed", True),
    ("processing", "pending", False),
    ("completed", "failed", False),
    ("completed", "processing", False),
    ("failed", "completed", False),
  ],
)
def test_status_only_moves_forward(current, requested, allowed) -> None:
  assert can_transition(current, requested) is allowed


def test_new_pending_job_has_no_concepts() -> None:
  job = new_pending_job("job-1")

  assert job.status == "pending"
  assert job.concepts == []
  assert job.is_terminal is False
  assert datetime.fromisoformat(job.created_at).tzinfo is not None


def test_document_uses_client_field_names() -> None:
  concept = ConceptRecord(concept_id="c1", name="Taza", description="d", materials=["Cerámica"], image_prompt="Photorealistic mug")
  job = JobRecord(job_id="job-1", status="processing", created_at="2026-01-01T00:00:00+00:00", concepts=[concept])

  document = job.to_document()

  assert document == {
    "status": "processing",
    "createdAt": "2026-01-01T00:00:00+00:00",
    "concepts": [{"id": "c1", "name": "Taza", "description": "d", "materials": ["Cerámica"], "imagePrompt": "Photorealistic mug", "imageUrl": None, "isGeneratingImage": True, "error": None}],
  }
  assert "error" not in document


def test_from_document_accepts_store_timestamps() -> None:
  created = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

  job = JobRecord.from_document("job-9", {"status": "completed", "createdAt": created, "concepts": [{"id": "c1", "name": "Llavero", "imageUrl": "https://img/1", "isGeneratingImage": False}]})

  assert job.created_at == created.isoformat()
  assert job.find_concept("c1").image_url == "https://img/1"
  assert job.find_concept("missing") is None
  assert job.is_terminal is True


def test_from_document_rejects_unknown_status() -> None:
  with pytest.raises(ValueError, match="unknown status"):
    JobRecord.from_document("job-1", {"status": "archived"})
