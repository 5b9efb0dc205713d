# event_approval/schemas/user.py

from pydantic import BaseModel, Field, EmailStr, field_validator, ConfigDict
from typing import Optional, Any
from bson import ObjectId

from event_approval.core.roles import Role, DEPARTMENTS, parse_role


# --- Custom ObjectId Handling ---
# Reusable type for handling ObjectId validation and serialization
class PyObjectIdStr(str):

    @classmethod
    def validate(cls, v: Any, _info) -> str:
        if isinstance(v, ObjectId):
            return str(v)
        if isinstance(v, str) and ObjectId.is_valid(v):
            return v
        raise ValueError(f"Not a valid ObjectId string: {v}")

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> Any:
        from pydantic_core import core_schema
        return core_schema.with_info_plain_validator_function(
            cls.validate,
            serialization=core_schema.to_string_ser_schema(),
        )


# --- Login Schemas ---
class LoginRequest(BaseModel):
    """
    Role login. STAFF log in by name, HOD by department, every other role
    by role name alone (one shared account per role).
    """
    role: Role
    password: str = Field(..., min_length=1)
    name: Optional[str] = None
    department: Optional[str] = None

    @field_validator('role', mode='before')
    @classmethod
    def check_role(cls, value: Any) -> Role:
        return parse_role(value)

    @field_validator('department', mode='before')
    @classmethod
    def check_department(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        value = str(value).strip().upper()
        if value not in DEPARTMENTS:
            raise ValueError(f"Invalid department '{value}'. Must be one of: {', '.join(DEPARTMENTS)}")
        return value


class UserOut(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )

    id: PyObjectIdStr = Field(..., alias="_id", serialization_alias="id")
    name: str
    role: Role
    department: Optional[str] = None
    email: Optional[EmailStr] = None


# --- Token Schemas ---
class Token(BaseModel):
    access_token: str
    token_type: str
    user: UserOut
