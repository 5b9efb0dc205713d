# event_approval/schemas/event_request.py

from pydantic import AliasChoices, BaseModel, Field, ConfigDict, field_validator
from typing import Any, Optional, List
from datetime import datetime

from event_approval.core.roles import Role
from event_approval.models.event_request import ApprovalStatus, CurrentRole, WorkflowStatus
from event_approval.schemas.user import PyObjectIdStr

COMMENTS_MAX_LENGTH = 400


# --- Action Payloads ---

def _truncate_comments(value: Any) -> Any:
    # Cut to the limit rather than rejected
    if isinstance(value, str):
        return value[:COMMENTS_MAX_LENGTH]
    return value


class ApproveRequest(BaseModel):
    comments: str = Field("", description=f"Optional; truncated to {COMMENTS_MAX_LENGTH} characters")
    reference_no: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("reference_no", "referenceNo", "refNumber"),
        description="Required on IQAC's first approval: 8 letters or digits",
    )
    chosen_roles: Optional[List[str]] = Field(
        None,
        validation_alias=AliasChoices("chosen_roles", "flow"),
        description="Required on IQAC's first approval: any of PRINCIPAL, DIRECTOR, AO, CEO",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"comments": "Looks good", "reference_no": "AB12CD34", "chosen_roles": ["AO", "PRINCIPAL"]}
        }
    )

    @field_validator('comments', mode='before')
    @classmethod
    def truncate_comments(cls, value: Any) -> Any:
        return _truncate_comments(value)


class RecreateRequest(BaseModel):
    comments: str = Field(..., description=f"Required; truncated to {COMMENTS_MAX_LENGTH} characters")

    @field_validator('comments', mode='before')
    @classmethod
    def truncate_comments(cls, value: Any) -> Any:
        return _truncate_comments(value)


# --- Responses ---

class ApprovalRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    role: Role
    status: ApprovalStatus
    comments: str
    decided_at: datetime
    recreated_by: Optional[Role] = None


class WorkflowStatusOut(BaseModel):
    state: str
    role: Optional[str] = None
    label: str

    @classmethod
    def from_status(cls, status: WorkflowStatus) -> "WorkflowStatusOut":
        return cls(state=status.state, role=status.role, label=status.label)


class EventRequestOut(BaseModel):
    """
    Schema for an event request in API responses, with the derived status
    and, when asked for, a fresh signed report URL.
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True,
    )

    id: PyObjectIdStr
    staff_id: PyObjectIdStr
    staff_name: str
    department: str
    event_name: str
    event_date: str
    purpose: str
    original_purpose: Optional[str] = None
    report_path: Optional[str] = None
    report_url: Optional[str] = None

    current_role: CurrentRole
    overall_status: str
    reference_no: Optional[str] = None
    workflow_roles: List[Role]
    approvals: List[ApprovalRecordOut]
    is_completed: bool
    is_resubmitted: bool
    status: WorkflowStatusOut
    previously_reviewed: bool = Field(
        False, description="Whether the viewing role already decided on this request in an earlier cycle"
    )

    created_at: datetime
    updated_at: datetime


class ReferenceCheckOut(BaseModel):
    exists: bool
    event_name: Optional[str] = None
    staff_name: Optional[str] = None


class ReportUrlOut(BaseModel):
    url: str
