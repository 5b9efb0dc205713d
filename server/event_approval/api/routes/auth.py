# event_approval/api/routes/auth.py

import logging
from datetime import timedelta

from fastapi import APIRouter, HTTPException, status

from event_approval.core.config import settings
from event_approval.core.roles import Role
from event_approval.core.security import (
    CurrentActor,
    CurrentDB,
    create_access_token,
    verify_password,
)
from event_approval.schemas.user import LoginRequest, Token, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _login_query(credentials: LoginRequest) -> dict:
    """Which account a login names: staff by name, HOD by department, others by role."""
    if credentials.role == Role.STAFF:
        if not credentials.name or not credentials.name.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Staff login requires a name.")
        return {"role": Role.STAFF.value, "name": credentials.name.strip()}
    if credentials.role == Role.HOD:
        if not credentials.department:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="HOD login requires a department.")
        return {"role": Role.HOD.value, "department": credentials.department}
    return {"role": credentials.role.value}


@router.post("/login", response_model=Token)
async def login(credentials: LoginRequest, db: CurrentDB):
    """Logs in by role and returns a bearer token for the matching account."""
    query = _login_query(credentials)
    logger.info(f"Login attempt for role {credentials.role.value}")

    try:
        user_doc = await db[settings.MONGODB_COLLECTION_USERS].find_one(query)
    except Exception as e:
        logger.error(f"Error during login lookup for {query}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred during login."
        )

    if not user_doc or not verify_password(credentials.password.strip(), user_doc.get("hashed_password", "")):
        logger.warning(f"Login failed for role {credentials.role.value} ({'account not found' if not user_doc else 'bad password'})")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect login credentials.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(
        data={"sub": str(user_doc["_id"]), "role": user_doc.get("role")},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    logger.info(f"Successful login for {user_doc.get('role')} account {user_doc['_id']}")
    return Token(access_token=access_token, token_type="bearer", user=UserOut.model_validate(user_doc))


@router.get("/me")
async def read_current_actor(actor: CurrentActor):
    """Returns the identity resolved from the bearer token."""
    return actor.model_dump()
