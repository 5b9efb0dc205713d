from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from event_approval.core.config import settings
from event_approval.core.security import verify_report_token
from event_approval.services.report_storage import (
    LocalReportStorage,
    ReportStorageError,
    S3ReportStorage,
    build_report_key,
    validate_report,
)
from event_approval.services.workflow_errors import InvalidReport

from conftest import make_pdf


def test_validate_report_counts_pages():
    assert validate_report(make_pdf(pages=3), "report.pdf") == 3


@pytest.mark.parametrize("content, filename", [
    (b"%PDF-1.4 whatever", "report.docx"),
    (b"%PDF-1.4 whatever", None),
    (b"", "report.pdf"),
    (b"plain text, not a pdf", "report.pdf"),
])
def test_validate_report_rejects(content, filename):
    with pytest.raises(InvalidReport):
        validate_report(content, filename)


def test_validate_report_enforces_size_limit(monkeypatch, pdf_bytes):
    monkeypatch.setattr(settings, "MAX_REPORT_SIZE_MB", 0)
    with pytest.raises(InvalidReport):
        validate_report(pdf_bytes, "report.pdf")


def test_build_report_key_sanitizes_name():
    key = build_report_key("Event Report (final)!.PDF")
    assert key.startswith(f"{settings.REPORT_SUBDIR}/")
    assert key.endswith("_Event_Report__final__.pdf")
    assert " " not in key


@pytest.mark.asyncio
async def test_local_store_and_read(report_storage, pdf_bytes):
    path_ref = await report_storage.store(pdf_bytes, "summary.pdf")

    assert path_ref.startswith("reports/")
    assert report_storage.local_path(path_ref).is_file()
    assert await report_storage.read(path_ref) == pdf_bytes


@pytest.mark.asyncio
async def test_local_store_rejects_invalid_upload(report_storage):
    with pytest.raises(InvalidReport):
        await report_storage.store(b"not a pdf", "summary.pdf")


@pytest.mark.asyncio
async def test_local_read_missing_and_escaping_paths(report_storage):
    with pytest.raises(ReportStorageError):
        await report_storage.read("reports/missing.pdf")
    with pytest.raises(ReportStorageError):
        await report_storage.read("../../etc/passwd")


@pytest.mark.asyncio
async def test_local_fresh_url_carries_report_token(report_storage, pdf_bytes):
    path_ref = await report_storage.store(pdf_bytes, "summary.pdf")
    url = await report_storage.fresh_url(path_ref)

    parsed = urlparse(url)
    assert parsed.path == f"{settings.API_V1_STR}/reports/{path_ref}"
    token = parse_qs(parsed.query)["token"][0]
    assert verify_report_token(token, path_ref)
    assert not verify_report_token(token, "reports/other.pdf")


@pytest.mark.asyncio
async def test_s3_store_and_presign(pdf_bytes):
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://bucket.s3.amazonaws.com/reports/x.pdf?sig=1"
    storage = S3ReportStorage(client=client, bucket="event-reports")

    key = await storage.store(pdf_bytes, "summary.pdf")
    client.put_object.assert_called_once()
    kwargs = client.put_object.call_args.kwargs
    assert kwargs["Bucket"] == "event-reports"
    assert kwargs["Key"] == key
    assert kwargs["ContentType"] == "application/pdf"

    url = await storage.fresh_url(key)
    assert url.startswith("https://")
    client.generate_presigned_url.assert_called_once_with(
        "get_object",
        Params={"Bucket": "event-reports", "Key": key},
        ExpiresIn=settings.REPORT_URL_EXPIRE_SECONDS,
    )


@pytest.mark.asyncio
async def test_s3_accepts_legacy_full_urls():
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://signed"
    storage = S3ReportStorage(client=client, bucket="event-reports")

    await storage.fresh_url("https://event-reports.s3.ap-south-1.amazonaws.com/reports/abc_report.pdf")
    assert client.generate_presigned_url.call_args.kwargs["Params"]["Key"] == "reports/abc_report.pdf"


def test_s3_requires_bucket(monkeypatch):
    monkeypatch.setattr(settings, "AWS_BUCKET", None)
    with pytest.raises(ValueError):
        S3ReportStorage(client=MagicMock())


@pytest.mark.asyncio
async def test_local_delete(report_storage, pdf_bytes):
    path_ref = await report_storage.store(pdf_bytes, "summary.pdf")
    assert report_storage.local_path(path_ref).exists()

    await report_storage.delete(path_ref)
    assert not report_storage.local_path(path_ref).exists()

    # Already gone
    await report_storage.delete(path_ref)

    with pytest.raises(ReportStorageError):
        await report_storage.delete("../../etc/passwd")


@pytest.mark.asyncio
async def test_s3_delete():
    client = MagicMock()
    storage = S3ReportStorage(client=client, bucket="event-reports")

    await storage.delete("reports/abc_report.pdf")
    client.delete_object.assert_called_once_with(Bucket="event-reports", Key="reports/abc_report.pdf")
