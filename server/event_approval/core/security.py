# event_approval/core/security.py

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from bson import ObjectId
from bson.errors import InvalidId

from event_approval.core.config import settings
from event_approval.core.roles import Role, APPROVER_ROLES
from event_approval.db.mongodb import mongodb
from event_approval.models.user import Actor, User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")

REPORT_TOKEN_PURPOSE = "report"


# --- Database Dependency ---
async def get_db() -> AsyncIOMotorDatabase:
    """Dependency that returns the database handle from the mongodb manager."""
    try:
        return mongodb.get_db()
    except RuntimeError as e:
        logger.error(f"Database connection error in get_db dependency: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection not available."
        )


CurrentDB = Annotated[AsyncIOMotorDatabase, Depends(get_db)]
Token = Annotated[str, Depends(oauth2_scheme)]


# --- Password Utilities ---
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifies a plain password against a hashed password."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Not a recognised hash
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# --- JWT Token Utilities ---
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Creates a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_report_token(path_ref: str, expires_seconds: int) -> str:
    """Short-lived token that grants download of one stored report."""
    return create_access_token(
        {"sub": path_ref, "purpose": REPORT_TOKEN_PURPOSE},
        expires_delta=timedelta(seconds=expires_seconds),
    )


def verify_report_token(token: str, path_ref: str) -> bool:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected report token for '{path_ref}': {e}")
        return False
    return payload.get("purpose") == REPORT_TOKEN_PURPOSE and payload.get("sub") == path_ref


# --- Core Identity Dependency ---
async def get_current_actor(token: Token, db: CurrentDB) -> Actor:
    """
    Decodes the bearer token and loads the account it names.
    The returned Actor is what every workflow call receives.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT Error decoding token: {e}")
        raise credentials_exception

    user_id = payload.get("sub")
    if user_id is None or payload.get("purpose") == REPORT_TOKEN_PURPOSE:
        logger.warning("Token payload missing 'sub' or not an access token.")
        raise credentials_exception

    try:
        user_doc = await db[settings.MONGODB_COLLECTION_USERS].find_one({"_id": ObjectId(user_id)})
    except InvalidId:
        raise credentials_exception
    except Exception as e:
        logger.error(f"Unexpected error fetching user '{user_id}' from DB: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred while validating the user.",
        )

    if user_doc is None:
        logger.warning(f"Token names unknown user id: {user_id}")
        raise credentials_exception

    try:
        user = User.model_validate(user_doc)
    except ValidationError as e:
        logger.error(f"Stored user {user_id} failed validation: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred while validating the user.",
        )

    return Actor(user_id=str(user.id), role=user.role, name=user.name, department=user.department)


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


# --- Role Verification Dependencies ---
async def verify_admin_user(actor: CurrentActor) -> Actor:
    if actor.role != Role.ADMIN:
        logger.warning(f"Admin access denied for user {actor.user_id} (Role: {actor.role})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation requires administrator privileges."
        )
    return actor


async def require_staff(actor: CurrentActor) -> Actor:
    if actor.role != Role.STAFF:
        logger.warning(f"Staff access denied for user {actor.user_id} (Role: {actor.role})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation requires a staff account."
        )
    return actor


async def require_approver(actor: CurrentActor) -> Actor:
    if actor.role not in APPROVER_ROLES:
        logger.warning(f"Approver access denied for user {actor.user_id} (Role: {actor.role})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation requires an approver role."
        )
    return actor
