# event_approval/services/workflow_engine.py

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Mapping, Optional

from event_approval.core.roles import Role, RoleSentinel
from event_approval.models.event_request import (
    ApprovalRecord,
    EventRequest,
    WorkflowStatus,
    utcnow,
)
from event_approval.models.user import Actor
from event_approval.services import role_sequencer
from event_approval.services.request_store import RequestStore, to_object_id
from event_approval.services.similarity import are_similar
from event_approval.services.workflow_errors import (
    AlreadyCompleted,
    CommentsRequired,
    DuplicateReference,
    InvalidReferenceFormat,
    NotInRecreationState,
    SimilarEventExists,
    Unauthorized,
)

logger = logging.getLogger(__name__)

REFERENCE_NO_PATTERN = re.compile(r"^[A-Za-z0-9]{8}$")

# Fields a staff member may change when resubmitting after a recreation.
EDITABLE_FIELDS = ("event_name", "event_date", "purpose")

# Duplicate-event thresholds for new submissions
OWN_EVENT_NAME_THRESHOLD = 0.7
DEPARTMENT_NAME_STRONG_THRESHOLD = 0.9
DEPARTMENT_NAME_THRESHOLD = 0.7
DEPARTMENT_PURPOSE_THRESHOLD = 0.6


def _as_utc(value: datetime) -> datetime:
    # MongoDB hands datetimes back naive (UTC)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def validate_reference_no(reference_no: Optional[str]) -> str:
    value = (reference_no or "").strip()
    if not REFERENCE_NO_PATTERN.match(value):
        raise InvalidReferenceFormat("Reference number must be exactly 8 letters or digits.")
    return value


class WorkflowEngine:
    """
    The approval state machine for event requests.

    A request waits on one role at a time, walking the chain
    HOD -> IQAC -> the roles IQAC assigned. Any approver can send it back to
    the staff member (recreate); the staff member's resubmission restarts the
    chain at HOD with the assigned roles and reference number kept.
    Completed requests are never changed again.

    All writes go through `RequestStore.compare_and_swap`, so of two callers
    acting on the same state only one gets through.
    """

    def __init__(self, store: RequestStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    # --- Queries ---

    @staticmethod
    def status(request: EventRequest) -> WorkflowStatus:
        """
        Where the request stands. `overall_status` is always this status's
        label, so every consumer reads the same derivation.
        """
        if request.current_role == RoleSentinel.COMPLETED:
            return WorkflowStatus(state="COMPLETED")
        if request.current_role == RoleSentinel.AWAITING_STAFF:
            last = request.approvals[-1] if request.approvals else None
            recreated_by = (last.recreated_by or last.role) if last and last.status == "Recreated" else None
            return WorkflowStatus(state="AWAITING_STAFF", recreated_by=recreated_by)
        return WorkflowStatus(
            state="AWAITING_ROLE",
            role=Role(request.current_role),
            resubmitted=request.is_resubmitted,
        )

    @staticmethod
    def role_has_reviewed_before(request: EventRequest, role: str) -> bool:
        return any(a.role == role for a in request.approvals)

    @staticmethod
    def effective_chain(request: EventRequest) -> List[Role]:
        return role_sequencer.effective_chain(request.workflow_roles)

    async def get(self, request_id) -> EventRequest:
        return await self.store.get(request_id)

    async def list_for_role(self, actor: Actor) -> List[EventRequest]:
        """Requests currently waiting on the actor's role (HODs: own department only)."""
        department = actor.department if actor.role == Role.HOD else None
        return await self.store.find_by_role(actor.role, department=department)

    async def list_for_staff(self, staff_id) -> List[EventRequest]:
        return await self.store.find_by_staff(staff_id)

    async def list_all(self) -> List[EventRequest]:
        return await self.store.find_all()

    async def list_for_actor(self, actor: Actor) -> List[EventRequest]:
        """Staff see their own requests; approvers see the ones waiting on them."""
        if actor.role == Role.STAFF:
            return await self.list_for_staff(actor.user_id)
        if actor.role == Role.ADMIN:
            return await self.list_all()
        return await self.list_for_role(actor)

    async def reference_exists(self, reference_no: str) -> bool:
        return await self.store.exists_reference_no(reference_no.strip())

    async def find_by_reference(self, reference_no: str) -> Optional[EventRequest]:
        """The request holding a reference number, if any."""
        return await self.store.find_by_reference_no(reference_no.strip())

    # --- Operations ---

    async def create(
        self,
        actor: Actor,
        event_name: str,
        event_date: str,
        purpose: str,
        report_path: Optional[str] = None,
    ) -> EventRequest:
        if actor.role != Role.STAFF:
            raise Unauthorized("Only staff members can submit event requests.")
        if not actor.department:
            raise Unauthorized("Staff account has no department assigned.")

        await self._check_similar_events(actor, event_name, purpose)

        now = self.clock()
        request = EventRequest(
            staff_id=to_object_id(actor.user_id),
            staff_name=actor.name,
            department=actor.department,
            event_name=event_name,
            event_date=event_date,
            purpose=purpose,
            report_path=report_path,
            current_role=Role.HOD,
            created_at=now,
            updated_at=now,
        )
        request.overall_status = self.status(request).label
        created = await self.store.insert(request)
        logger.info(f"Request {created.id} created by staff {actor.user_id} ({actor.department}); waiting on HOD.")
        return created

    async def approve(
        self,
        request_id,
        actor: Actor,
        comments: str = "",
        reference_no: Optional[str] = None,
        chosen_roles: Optional[Iterable[str]] = None,
    ) -> EventRequest:
        request = await self.store.get(request_id)
        self._authorize(request, actor)

        updated = request.model_copy(deep=True)
        chain = self.effective_chain(request)

        if actor.role == Role.IQAC:
            if not request.workflow_roles:
                ref = validate_reference_no(reference_no)
                roles = role_sequencer.canonicalize(chosen_roles)
                if await self.reference_exists(ref):
                    logger.warning(f"IQAC approval of {request.id} rejected: reference {ref} already in use.")
                    raise DuplicateReference(f"Reference number {ref} is already assigned to another event.")
                updated.reference_no = ref
                updated.workflow_roles = roles
                chain = role_sequencer.effective_chain(roles)
                logger.info(f"Request {request.id}: IQAC assigned reference {ref} and workflow {[r.value for r in roles]}.")
            elif reference_no or chosen_roles:
                logger.info(
                    f"Request {request.id}: IQAC re-approval keeps locked reference {request.reference_no} "
                    f"and workflow {request.workflow_roles}; supplied values ignored."
                )

        updated.approvals.append(ApprovalRecord(
            role=actor.role,
            status="Approved",
            comments=comments or "",
            decided_at=self._decision_time(request),
        ))

        following = role_sequencer.next_role(chain, actor.role)
        if following is None:
            updated.current_role = RoleSentinel.COMPLETED
            updated.is_completed = True
        else:
            updated.current_role = following
            updated.is_completed = False
        updated.overall_status = self.status(updated).label

        saved = await self._commit(request, updated)
        logger.info(f"Request {request.id}: {actor.role} approved; {request.current_role} -> {saved.current_role}.")
        return saved

    async def recreate(self, request_id, actor: Actor, comments: str) -> EventRequest:
        request = await self.store.get(request_id)
        self._authorize(request, actor)
        if not comments or not comments.strip():
            raise CommentsRequired("Comments are required when requesting recreation.")

        updated = request.model_copy(deep=True)
        if request.is_resubmitted:
            # A new recreation cycle starts from the purpose the approvers just saw.
            updated.original_purpose = request.purpose
        updated.approvals.append(ApprovalRecord(
            role=actor.role,
            status="Recreated",
            comments=comments,
            decided_at=self._decision_time(request),
            recreated_by=actor.role,
        ))
        updated.current_role = RoleSentinel.AWAITING_STAFF
        updated.is_completed = False
        updated.overall_status = self.status(updated).label

        saved = await self._commit(request, updated)
        logger.info(f"Request {request.id}: {actor.role} requested recreation; returned to staff.")
        return saved

    async def resubmit(
        self,
        request_id,
        staff_id,
        updated_fields: Mapping[str, Optional[str]],
        new_report_path: Optional[str] = None,
    ) -> EventRequest:
        request = await self.store.get(request_id)
        if str(request.staff_id) != str(staff_id):
            logger.warning(f"Resubmit of {request.id} denied: staff {staff_id} is not the owner.")
            raise Unauthorized("Only the staff member who created this request can resubmit it.")
        if request.is_completed or request.current_role == RoleSentinel.COMPLETED:
            raise AlreadyCompleted("This request has already completed its approval workflow.")
        if request.current_role != RoleSentinel.AWAITING_STAFF:
            raise NotInRecreationState("This request is not awaiting resubmission.")

        updated = request.model_copy(deep=True)
        if updated.original_purpose is None:
            updated.original_purpose = request.purpose
        for field in EDITABLE_FIELDS:
            value = updated_fields.get(field)
            if value is not None:
                setattr(updated, field, value)
        if new_report_path:
            updated.report_path = new_report_path

        updated.current_role = Role.HOD
        updated.is_resubmitted = True
        updated.is_completed = False
        updated.overall_status = self.status(updated).label

        saved = await self._commit(request, updated)
        logger.info(
            f"Request {request.id} resubmitted by staff {staff_id}; restarting at HOD "
            f"with reference {saved.reference_no} and workflow {saved.workflow_roles}."
        )
        return saved

    # --- Internals ---

    def _authorize(self, request: EventRequest, actor: Actor):
        if request.is_completed or request.current_role == RoleSentinel.COMPLETED:
            logger.warning(f"{actor.role} attempted to act on completed request {request.id}.")
            raise AlreadyCompleted("This request has already completed its approval workflow.")
        if request.current_role != actor.role:
            logger.warning(
                f"{actor.role} attempted to act on request {request.id} currently waiting on {request.current_role}."
            )
            raise Unauthorized(f"This request is not awaiting action from {actor.role}.")
        if actor.role == Role.HOD and actor.department != request.department:
            logger.warning(f"HOD of {actor.department} attempted to act on {request.department} request {request.id}.")
            raise Unauthorized("HODs can only act on requests from their own department.")

    def _decision_time(self, request: EventRequest) -> datetime:
        now = _as_utc(self.clock())
        if request.approvals:
            last = _as_utc(request.approvals[-1].decided_at)
            if last > now:
                return last
        return now

    async def _commit(self, original: EventRequest, updated: EventRequest) -> EventRequest:
        updated.updated_at = self.clock()
        return await self.store.compare_and_swap(original.id, original.version, updated)

    async def _check_similar_events(self, actor: Actor, event_name: str, purpose: str):
        for existing in await self.store.find_by_staff(actor.user_id):
            if are_similar(existing.event_name, event_name, OWN_EVENT_NAME_THRESHOLD):
                raise SimilarEventExists(
                    f'You have already created a similar event: "{existing.event_name}". '
                    "Please use a different event name."
                )
        for existing in await self.store.find_by_department(actor.department, exclude_staff_id=actor.user_id):
            names_very_similar = are_similar(existing.event_name, event_name, DEPARTMENT_NAME_STRONG_THRESHOLD)
            names_similar = are_similar(existing.event_name, event_name, DEPARTMENT_NAME_THRESHOLD)
            purposes_similar = are_similar(existing.purpose, purpose, DEPARTMENT_PURPOSE_THRESHOLD)
            if names_very_similar or (names_similar and purposes_similar):
                raise SimilarEventExists(
                    f"A similar event request has already been created by {existing.staff_name} "
                    f'in your department: "{existing.event_name}".'
                )
