# event_approval/services/report_storage.py

import asyncio
import io
import logging
import re
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from event_approval.core.config import settings
from event_approval.core.security import create_report_token
from event_approval.services.workflow_errors import InvalidReport, StoreUnavailable

logger = logging.getLogger(__name__)

ALLOWED_REPORT_EXTENSIONS = {".pdf"}


class ReportStorageError(Exception):
    """Raised when a stored report cannot be read back."""
    pass


def validate_report(content: bytes, filename: Optional[str]) -> int:
    """
    Checks an uploaded event report: PDF extension, size limit, and that
    pypdf can open it. Returns the page count.
    """
    extension = Path(filename or "").suffix.lower()
    if extension not in ALLOWED_REPORT_EXTENSIONS:
        raise InvalidReport("Only PDF files are allowed.")
    max_bytes = settings.MAX_REPORT_SIZE_MB * 1024 * 1024
    if len(content) > max_bytes:
        raise InvalidReport(f"Report exceeds the {settings.MAX_REPORT_SIZE_MB} MB limit.")
    if not content:
        raise InvalidReport("Report file is empty.")
    try:
        reader = PdfReader(io.BytesIO(content))
        return len(reader.pages)
    except (PdfReadError, ValueError) as e:
        logger.warning(f"Uploaded report '{filename}' is not a readable PDF: {e}")
        raise InvalidReport("Uploaded file is not a valid PDF.")


def build_report_key(filename: Optional[str]) -> str:
    stem = re.sub(r"[^A-Za-z0-9._-]", "_", Path(filename or "report.pdf").stem)[:60] or "report"
    return f"{settings.REPORT_SUBDIR}/{uuid.uuid4().hex}_{stem}.pdf"


class LocalReportStorage:
    """Keeps reports under UPLOAD_DIR; URLs are signed with a short-lived JWT."""

    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = Path(base_dir or settings.UPLOAD_DIR)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path_ref: str) -> Path:
        target = (self.base_dir / path_ref).resolve()
        if self.base_dir.resolve() not in target.parents:
            raise ReportStorageError(f"Report path escapes storage directory: {path_ref}")
        return target

    async def store(self, content: bytes, filename: Optional[str]) -> str:
        validate_report(content, filename)
        path_ref = build_report_key(filename)
        target = self._resolve(path_ref)
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(target, "wb") as buffer:
                await buffer.write(content)
        except OSError as e:
            logger.error(f"Failed to save report to {target}: {e}", exc_info=True)
            raise StoreUnavailable("Could not save the uploaded report.")
        logger.info(f"Stored report {path_ref} ({len(content)} bytes)")
        return path_ref

    async def read(self, path_ref: str) -> bytes:
        target = self._resolve(path_ref)
        if not await aiofiles.os.path.exists(target):
            raise ReportStorageError(f"Report not found: {path_ref}")
        async with aiofiles.open(target, "rb") as f:
            return await f.read()

    async def delete(self, path_ref: str):
        target = self._resolve(path_ref)
        try:
            await aiofiles.os.remove(target)
        except FileNotFoundError:
            return
        except OSError as e:
            raise ReportStorageError(f"Could not delete report {path_ref}: {e}")
        logger.info(f"Deleted report {path_ref}")

    def local_path(self, path_ref: str) -> Path:
        return self._resolve(path_ref)

    async def fresh_url(self, path_ref: str) -> str:
        token = create_report_token(path_ref, settings.REPORT_URL_EXPIRE_SECONDS)
        return f"{settings.API_V1_STR}/reports/{path_ref}?token={token}"


class S3ReportStorage:
    """Keeps reports in an S3 bucket; URLs are S3 presigned GETs."""

    def __init__(self, client=None, bucket: Optional[str] = None):
        self.bucket = bucket or settings.AWS_BUCKET
        if not self.bucket:
            raise ValueError("AWS_BUCKET must be set when REPORT_STORAGE_BACKEND is 's3'.")
        if client is not None:
            self.client = client
        elif settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
            self.client = boto3.client(
                "s3",
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=settings.AWS_REGION,
            )
        else:
            # IAM role credentials
            self.client = boto3.client("s3", region_name=settings.AWS_REGION)

    async def store(self, content: bytes, filename: Optional[str]) -> str:
        validate_report(content, filename)
        key = build_report_key(filename)
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType="application/pdf",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"[S3-Upload] Failed to upload report {key}: {e}", exc_info=True)
            raise StoreUnavailable("Could not save the uploaded report.")
        logger.info(f"[S3-Upload] Uploaded: {key} ({len(content)} bytes)")
        return key

    async def read(self, path_ref: str) -> bytes:
        try:
            response = await asyncio.to_thread(self.client.get_object, Bucket=self.bucket, Key=self._key(path_ref))
            return await asyncio.to_thread(response["Body"].read)
        except (ClientError, BotoCoreError) as e:
            raise ReportStorageError(f"Could not read report {path_ref}: {e}")

    async def delete(self, path_ref: str):
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=self._key(path_ref))
        except (ClientError, BotoCoreError) as e:
            raise ReportStorageError(f"Could not delete report {path_ref}: {e}")
        logger.info(f"[S3-Delete] Deleted: {path_ref}")

    async def fresh_url(self, path_ref: str) -> str:
        return await asyncio.to_thread(
            self.client.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket, "Key": self._key(path_ref)},
            ExpiresIn=settings.REPORT_URL_EXPIRE_SECONDS,
        )

    @staticmethod
    def _key(path_ref: str) -> str:
        # Older records may hold the full object URL rather than the key
        if ".amazonaws.com/" in path_ref:
            return path_ref.split(".amazonaws.com/", 1)[1]
        return path_ref


_report_storage = None


def get_report_storage():
    """FastAPI dependency returning the configured report backend."""
    global _report_storage
    if _report_storage is None:
        if settings.REPORT_STORAGE_BACKEND == "s3":
            _report_storage = S3ReportStorage()
        else:
            _report_storage = LocalReportStorage()
        logger.info(f"Report storage backend initialised: {settings.REPORT_STORAGE_BACKEND}")
    return _report_storage
