# event_approval/models/event_request.py

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Literal, List, Union, Dict, Any
from datetime import datetime, timezone
from bson import ObjectId

from event_approval.core.roles import Role, RoleSentinel

ApprovalStatus = Literal["Approved", "Recreated"]

# Value domain of EventRequest.current_role
CurrentRole = Union[Role, RoleSentinel]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalRecord(BaseModel):
    """One decision in a request's audit trail. Never edited once appended."""
    model_config = ConfigDict(use_enum_values=True, frozen=True)

    role: Role
    status: ApprovalStatus
    comments: str = ""
    decided_at: datetime = Field(default_factory=utcnow)
    recreated_by: Optional[Role] = None


class EventRequest(BaseModel):
    """
    Pydantic model representing an event request document in MongoDB.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True,
        validate_assignment=True,
    )

    id: Optional[ObjectId] = Field(default=None, alias="_id", description="The document's MongoDB ObjectId")

    staff_id: ObjectId
    staff_name: str
    department: str

    event_name: str
    event_date: str
    purpose: str
    original_purpose: Optional[str] = None
    report_path: Optional[str] = None

    current_role: CurrentRole = Field(default=Role.HOD, validate_default=True)
    overall_status: str = "Waiting approval for HOD"
    reference_no: Optional[str] = None
    workflow_roles: List[Role] = Field(default_factory=list)
    approvals: List[ApprovalRecord] = Field(default_factory=list)

    is_completed: bool = False
    is_resubmitted: bool = False

    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_document(self) -> Dict[str, Any]:
        """
        Serializes to the shape stored in MongoDB. `reference_no` is left out
        while unset so the sparse unique index ignores the document.
        """
        doc = self.model_dump(by_alias=True, exclude={"id"})
        if self.id is not None:
            doc["_id"] = self.id
        if doc.get("reference_no") is None:
            doc.pop("reference_no", None)
        return doc


class WorkflowStatus(BaseModel):
    """
    The single derived view of where a request stands. `role` is set only
    for AWAITING_ROLE, `recreated_by` only for AWAITING_STAFF.
    """
    model_config = ConfigDict(use_enum_values=True, frozen=True)

    state: Literal["AWAITING_ROLE", "AWAITING_STAFF", "COMPLETED"]
    role: Optional[Role] = None
    resubmitted: bool = False
    recreated_by: Optional[Role] = None

    @property
    def label(self) -> str:
        """Human-readable status, stored as the request's `overall_status`."""
        if self.state == "AWAITING_ROLE":
            if self.resubmitted and self.role == Role.HOD:
                return "Waiting approval for HOD (Resubmitted)"
            return f"Waiting approval for {self.role}"
        if self.state == "AWAITING_STAFF":
            if self.recreated_by:
                return f"{self.recreated_by} requested recreation"
            return "Awaiting staff resubmission"
        return "Completed"
