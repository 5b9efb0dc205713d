# event_approval/api/routes/requests.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status

from event_approval.core.roles import Role, RoleSentinel
from event_approval.core.security import CurrentActor, CurrentDB, require_approver, require_staff
from event_approval.models.event_request import EventRequest
from event_approval.models.user import Actor
from event_approval.schemas.event_request import (
    ApproveRequest,
    EventRequestOut,
    RecreateRequest,
    ReferenceCheckOut,
    ReportUrlOut,
    WorkflowStatusOut,
)
from event_approval.services.letter_generator import letter_generator
from event_approval.services.report_storage import ReportStorageError, get_report_storage
from event_approval.services.request_store import RequestStore
from event_approval.services.workflow_engine import WorkflowEngine
from event_approval.services.workflow_errors import WorkflowError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/requests", tags=["Event Requests"])


# --- Dependencies & Helpers ---

def get_workflow_engine(db: CurrentDB) -> WorkflowEngine:
    return WorkflowEngine(RequestStore(db))


def raise_workflow_error(e: WorkflowError):
    raise HTTPException(status_code=e.status_code, detail=e.message)


async def signed_report_url(storage, request: EventRequest) -> Optional[str]:
    if not request.report_path:
        return None
    try:
        return await storage.fresh_url(request.report_path)
    except Exception as e:
        logger.error(f"Could not sign report URL for request {request.id}: {e}", exc_info=True)
        return None


def to_request_out(
    request: EventRequest,
    report_url: Optional[str] = None,
    viewer: Optional[Actor] = None,
) -> EventRequestOut:
    data = request.model_dump()
    data["status"] = WorkflowStatusOut.from_status(WorkflowEngine.status(request))
    data["report_url"] = report_url
    if viewer is not None:
        data["previously_reviewed"] = WorkflowEngine.role_has_reviewed_before(request, viewer.role)
    return EventRequestOut.model_validate(data)


async def _read_upload(report: Optional[UploadFile]) -> Optional[tuple]:
    if report is None or not report.filename:
        return None
    content = await report.read()
    return content, report.filename


def _required_text(value: str, field: str) -> str:
    value = value.strip()
    if not value:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{field} must not be blank.")
    return value


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


async def _discard_upload(storage, path_ref: Optional[str]):
    """Removes a report stored for an operation that was then rejected."""
    if not path_ref:
        return
    try:
        await storage.delete(path_ref)
        logger.info(f"Discarded orphaned report {path_ref}")
    except ReportStorageError as e:
        logger.error(f"Orphaned report {path_ref} could not be removed: {e}")


# --- Staff Endpoints ---

@router.post("", response_model=EventRequestOut, status_code=status.HTTP_201_CREATED)
async def create_request(
    event_name: str = Form(..., min_length=1),
    event_date: str = Form(..., min_length=1),
    purpose: str = Form(..., min_length=1),
    event_report: Optional[UploadFile] = File(None),
    actor: Actor = Depends(require_staff),
    engine: WorkflowEngine = Depends(get_workflow_engine),
    storage=Depends(get_report_storage),
):
    """Staff submits a new event request; it starts waiting on their HOD."""
    event_name = _required_text(event_name, "event_name")
    event_date = _required_text(event_date, "event_date")
    purpose = _required_text(purpose, "purpose")
    logger.info(f"Staff {actor.user_id} submitting event '{event_name}'")

    report_path = None
    try:
        upload = await _read_upload(event_report)
        report_path = await storage.store(*upload) if upload else None
        created = await engine.create(actor, event_name, event_date, purpose, report_path)
    except WorkflowError as e:
        await _discard_upload(storage, report_path)
        raise_workflow_error(e)
    except Exception as e:
        logger.error(f"Error creating request for staff {actor.user_id}: {e}", exc_info=True)
        await _discard_upload(storage, report_path)
        raise HTTPException(status_code=500, detail="An unexpected error occurred while creating the request.")
    return to_request_out(created, await signed_report_url(storage, created), actor)


@router.put("/{request_id}/resubmit", response_model=EventRequestOut)
async def resubmit_request(
    request_id: str,
    event_name: Optional[str] = Form(None),
    event_date: Optional[str] = Form(None),
    purpose: Optional[str] = Form(None),
    event_report: Optional[UploadFile] = File(None),
    actor: Actor = Depends(require_staff),
    engine: WorkflowEngine = Depends(get_workflow_engine),
    storage=Depends(get_report_storage),
):
    """Staff edits a request sent back for recreation and restarts it at HOD."""
    logger.info(f"Staff {actor.user_id} resubmitting request {request_id}")
    fields = {
        "event_name": _optional_text(event_name),
        "event_date": _optional_text(event_date),
        "purpose": _optional_text(purpose),
    }
    new_report_path = None
    try:
        # Ownership and state are checked before anything is uploaded.
        current = await engine.get(request_id)
        if str(current.staff_id) == actor.user_id and current.current_role == RoleSentinel.AWAITING_STAFF:
            upload = await _read_upload(event_report)
            new_report_path = await storage.store(*upload) if upload else None
        updated = await engine.resubmit(request_id, actor.user_id, fields, new_report_path)
    except WorkflowError as e:
        await _discard_upload(storage, new_report_path)
        raise_workflow_error(e)
    except Exception as e:
        logger.error(f"Error resubmitting request {request_id}: {e}", exc_info=True)
        await _discard_upload(storage, new_report_path)
        raise HTTPException(status_code=500, detail="An unexpected error occurred while resubmitting the request.")
    return to_request_out(updated, await signed_report_url(storage, updated), actor)


# --- Shared Read Endpoints ---

@router.get("", response_model=List[EventRequestOut])
async def list_requests(
    actor: CurrentActor,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    storage=Depends(get_report_storage),
):
    """
    Staff get their own requests, approvers the ones currently waiting on
    their role (HODs only for their department), admins everything.
    """
    try:
        requests = await engine.list_for_actor(actor)
    except WorkflowError as e:
        raise_workflow_error(e)
    logger.info(f"{actor.role} {actor.user_id} listed {len(requests)} requests")
    return [to_request_out(r, await signed_report_url(storage, r), actor) for r in requests]


@router.get("/check-reference/{reference_no}", response_model=ReferenceCheckOut)
async def check_reference(
    reference_no: str,
    actor: Actor = Depends(require_approver),
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    """Lets IQAC see whether a reference number is already taken before approving."""
    try:
        existing = await engine.find_by_reference(reference_no)
    except WorkflowError as e:
        raise_workflow_error(e)
    if existing is None:
        return ReferenceCheckOut(exists=False)
    return ReferenceCheckOut(exists=True, event_name=existing.event_name, staff_name=existing.staff_name)


def _check_can_view(actor: Actor, request: EventRequest):
    if actor.role == Role.STAFF and str(request.staff_id) != actor.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own requests.")
    if actor.role == Role.HOD and request.department != actor.department:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view requests from your department.")


@router.get("/{request_id}", response_model=EventRequestOut)
async def get_request(
    request_id: str,
    actor: CurrentActor,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    storage=Depends(get_report_storage),
):
    try:
        request = await engine.get(request_id)
    except WorkflowError as e:
        raise_workflow_error(e)
    _check_can_view(actor, request)
    return to_request_out(request, await signed_report_url(storage, request), actor)


@router.get("/{request_id}/report-url", response_model=ReportUrlOut)
async def get_report_url(
    request_id: str,
    actor: CurrentActor,
    engine: WorkflowEngine = Depends(get_workflow_engine),
    storage=Depends(get_report_storage),
):
    """Issues a fresh time-limited URL for the request's report."""
    try:
        request = await engine.get(request_id)
    except WorkflowError as e:
        raise_workflow_error(e)
    _check_can_view(actor, request)
    if not request.report_path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No report uploaded for this request.")
    url = await signed_report_url(storage, request)
    if url is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Could not generate a report URL.")
    return ReportUrlOut(url=url)


# --- Approver Endpoints ---

@router.post("/{request_id}/approve", response_model=EventRequestOut)
async def approve_request(
    request_id: str,
    payload: ApproveRequest,
    actor: Actor = Depends(require_approver),
    engine: WorkflowEngine = Depends(get_workflow_engine),
    storage=Depends(get_report_storage),
):
    logger.info(f"{actor.role} {actor.user_id} approving request {request_id}")
    try:
        updated = await engine.approve(
            request_id,
            actor,
            comments=payload.comments,
            reference_no=payload.reference_no,
            chosen_roles=payload.chosen_roles,
        )
    except WorkflowError as e:
        raise_workflow_error(e)
    except Exception as e:
        logger.error(f"Error approving request {request_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred while approving the request.")
    return to_request_out(updated, await signed_report_url(storage, updated), actor)


@router.post("/{request_id}/recreate", response_model=EventRequestOut)
async def recreate_request(
    request_id: str,
    payload: RecreateRequest,
    actor: Actor = Depends(require_approver),
    engine: WorkflowEngine = Depends(get_workflow_engine),
    storage=Depends(get_report_storage),
):
    logger.info(f"{actor.role} {actor.user_id} requesting recreation of {request_id}")
    try:
        updated = await engine.recreate(request_id, actor, payload.comments)
    except WorkflowError as e:
        raise_workflow_error(e)
    except Exception as e:
        logger.error(f"Error recreating request {request_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred while requesting recreation.")
    return to_request_out(updated, await signed_report_url(storage, updated), actor)


# --- Approval Letter ---

@router.get("/{request_id}/approval-letter")
async def get_approval_letter(
    request_id: str,
    actor: CurrentActor,
    download: bool = Query(False),
    engine: WorkflowEngine = Depends(get_workflow_engine),
    storage=Depends(get_report_storage),
):
    """Renders the approval letter PDF, with the event report appended."""
    try:
        request = await engine.get(request_id)
    except WorkflowError as e:
        raise_workflow_error(e)
    _check_can_view(actor, request)

    report_bytes = None
    if request.is_completed and request.report_path:
        try:
            report_bytes = await storage.read(request.report_path)
        except ReportStorageError as e:
            logger.warning(f"Report for {request_id} unavailable; rendering letter only: {e}")

    try:
        pdf = letter_generator.render(request, report_bytes)
    except WorkflowError as e:
        raise_workflow_error(e)

    disposition = "attachment" if download else "inline"
    filename = f"Approval-Report-{request.reference_no or request.id}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'{disposition}; filename="{filename}"'},
    )
