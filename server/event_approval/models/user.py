# event_approval/models/user.py

from pydantic import BaseModel, Field, EmailStr, ConfigDict
from typing import Optional
from datetime import datetime, timezone
from bson import ObjectId

from event_approval.core.roles import Role


class User(BaseModel):
    """
    Represents an account document in the `users` collection.

    STAFF and HOD accounts carry a department; the remaining roles are
    single shared accounts identified by role alone.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True,
    )

    id: Optional[ObjectId] = Field(default=None, alias="_id", description="MongoDB document ObjectID")
    name: str = Field(..., min_length=1, max_length=100)
    role: Role
    hashed_password: str = Field(...)
    department: Optional[str] = Field(default=None, description="Department for STAFF and HOD accounts")
    email: Optional[EmailStr] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Actor(BaseModel):
    """
    The authenticated identity of the caller for one HTTP request.
    Resolved from the bearer token and passed explicitly into every
    workflow operation.
    """
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    user_id: str
    role: Role
    name: str
    department: Optional[str] = None
