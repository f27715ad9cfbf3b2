# tests/test_document_models.py
import pytest
from pydantic import ValidationError

from models.document_models import (
    DEFAULT_DOCUMENT_SETS,
    DocumentResult,
    DocumentType,
    GenerationJob,
)
from models.project_models import Methodology, ProjectData


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("charter", DocumentType.CHARTER),
        ("Project Charter", DocumentType.CHARTER),
        ("  risk   REGISTER ", DocumentType.RISK_REGISTER),
        ("Project Initiation Document", DocumentType.PID),
        (DocumentType.BACKLOG, DocumentType.BACKLOG),
    ],
)
def test_resolve_accepts_values_and_titles(name, expected):
    assert DocumentType.resolve(name) is expected


def test_resolve_rejects_unknown_names():
    with pytest.raises(ValueError):
        DocumentType.resolve("Gantt Chart")


def test_result_needs_content_or_error():
    with pytest.raises(ValidationError):
        DocumentResult(type=DocumentType.CHARTER, title="Project Charter")
    failed = DocumentResult.failed(DocumentType.CHARTER, "", attempts=3)
    assert not failed.succeeded
    assert failed.error == "Unknown error"
    assert failed.attempts == 3


def test_job_tracks_remaining_attempts():
    job = GenerationJob(document_type=DocumentType.PID, index=0, max_attempts=3)
    job.attempt = 1
    assert job.attempts_left == 2
    assert job.title == "Project Initiation Document (PID)"


def test_every_methodology_has_a_default_set():
    assert set(DEFAULT_DOCUMENT_SETS) == set(Methodology)
    assert DEFAULT_DOCUMENT_SETS[Methodology.AGILE][0] is DocumentType.CHARTER


def test_project_accepts_camel_case_keys():
    project = ProjectData.model_validate(
        {
            "name": "Acme",
            "methodology": "prince2",
            "businessCase": "Cut costs",
            "prince2Stakeholders": {"seniorUser": {"name": "Tom Green"}},
        }
    )
    assert project.business_case == "Cut costs"
    assert project.prince2_stakeholders.senior_user.name == "Tom Green"
