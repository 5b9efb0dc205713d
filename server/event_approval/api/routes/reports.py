# event_approval/api/routes/reports.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse

from event_approval.core.security import verify_report_token
from event_approval.services.report_storage import LocalReportStorage, ReportStorageError, get_report_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/{path_ref:path}")
async def download_report(
    path_ref: str,
    token: str = Query(...),
    storage=Depends(get_report_storage),
):
    """
    Serves a locally stored report to whoever holds a valid signed URL.
    Only used by the local storage backend; S3 URLs go straight to the bucket.
    """
    if not isinstance(storage, LocalReportStorage):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reports are not served by this API.")
    if not verify_report_token(token, path_ref):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Report link is invalid or has expired.")
    try:
        file_path = storage.local_path(path_ref)
    except ReportStorageError as e:
        logger.warning(f"Rejected report path '{path_ref}': {e}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found.")
    if not file_path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found.")
    return FileResponse(file_path, media_type="application/pdf", filename=file_path.name)
