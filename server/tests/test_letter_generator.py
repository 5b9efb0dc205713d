import io
from datetime import datetime, timezone

import pytest
from bson import ObjectId
from pypdf import PdfReader

from event_approval.core.roles import RoleSentinel
from event_approval.models.event_request import ApprovalRecord, EventRequest
from event_approval.services.letter_generator import LetterGenerator
from event_approval.services.workflow_errors import LetterNotAvailable

from conftest import make_pdf


def completed_request(**overrides) -> EventRequest:
    decided = datetime(2024, 3, 2, 10, 30, tzinfo=timezone.utc)
    data = dict(
        _id=ObjectId(),
        staff_id=ObjectId(),
        staff_name="Priya",
        department="CSE",
        event_name="AI Workshop <Advanced & Applied>",
        event_date="2024-04-10",
        purpose="Hands-on session",
        current_role=RoleSentinel.COMPLETED,
        overall_status="Completed",
        reference_no="AB12CD34",
        workflow_roles=["PRINCIPAL"],
        approvals=[
            ApprovalRecord(role="HOD", status="Approved", comments="ok", decided_at=decided),
            ApprovalRecord(role="IQAC", status="Approved", comments="", decided_at=decided),
            ApprovalRecord(role="PRINCIPAL", status="Approved", comments="go ahead", decided_at=decided),
        ],
        is_completed=True,
    )
    data.update(overrides)
    return EventRequest(**data)


def page_count(pdf: bytes) -> int:
    return len(PdfReader(io.BytesIO(pdf)).pages)


@pytest.fixture
def generator() -> LetterGenerator:
    return LetterGenerator(institution_name="Test Institute", institution_address="Test City")


def test_letter_requires_completed_request(generator):
    pending = completed_request(current_role="PRINCIPAL", is_completed=False, overall_status="Waiting approval for PRINCIPAL")
    with pytest.raises(LetterNotAvailable):
        generator.render(pending)


def test_letter_is_a_pdf(generator):
    pdf = generator.render(completed_request())
    assert pdf.startswith(b"%PDF")
    assert page_count(pdf) == 1


def test_letter_lists_every_decision(generator):
    pdf = generator.render(completed_request())
    text = PdfReader(io.BytesIO(pdf)).pages[0].extract_text()
    assert "AB12CD34" in text
    assert "Test Institute" in text
    assert "PRINCIPAL" in text
    assert "go ahead" in text


def test_report_pages_follow_the_letter(generator):
    pdf = generator.render(completed_request(), report_bytes=make_pdf(pages=2))
    assert page_count(pdf) == 3


def test_unreadable_report_falls_back_to_letter(generator):
    pdf = generator.render(completed_request(), report_bytes=b"corrupted bytes")
    assert page_count(pdf) == 1


def test_letter_includes_recreation_history(generator):
    decided = datetime(2024, 3, 1, 9, 0)
    history = [
        ApprovalRecord(role="HOD", status="Approved", comments="ok", decided_at=decided),
        ApprovalRecord(role="IQAC", status="Recreated", comments="fix budget", decided_at=decided, recreated_by="IQAC"),
    ] + completed_request().approvals
    pdf = generator.render(completed_request(approvals=history))
    text = PdfReader(io.BytesIO(pdf)).pages[0].extract_text()
    assert "fix budget" in text
