# event_approval/api/routes/admin.py

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from event_approval.api.routes.requests import (
    get_workflow_engine,
    raise_workflow_error,
    signed_report_url,
    to_request_out,
)
from event_approval.core.roles import DEPARTMENTS
from event_approval.core.security import verify_admin_user
from event_approval.models.user import Actor
from event_approval.schemas.event_request import EventRequestOut
from event_approval.services.report_storage import get_report_storage
from event_approval.services.workflow_engine import WorkflowEngine
from event_approval.services.workflow_errors import WorkflowError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin", tags=["Admin"], dependencies=[Depends(verify_admin_user)]
)


@router.get("/requests", response_model=List[EventRequestOut])
async def get_all_requests(
    admin: Actor = Depends(verify_admin_user),
    engine: WorkflowEngine = Depends(get_workflow_engine),
    storage=Depends(get_report_storage),
):
    logger.info(f"Admin {admin.user_id} requested all event requests.")
    try:
        requests = await engine.list_all()
    except WorkflowError as e:
        raise_workflow_error(e)
    return [to_request_out(r, await signed_report_url(storage, r)) for r in requests]


@router.get("/departments", response_model=Dict[str, List[str]])
async def get_departments():
    return {"departments": DEPARTMENTS}


@router.delete("/requests/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: str,
    admin: Actor = Depends(verify_admin_user),
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    """Administrative removal of a request. Not part of the approval workflow."""
    logger.warning(f"Admin {admin.user_id} deleting request {request_id}")
    try:
        deleted = await engine.store.delete(request_id)
    except WorkflowError as e:
        raise_workflow_error(e)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Request {request_id} not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
