import pytest

from event_approval.core.config import settings
from event_approval.core.roles import SINGLE_ACCOUNT_ROLES
from event_approval.core.security import verify_password
from event_approval.db.seed_data import _seed_role_accounts_internal


@pytest.mark.asyncio
async def test_seeding_creates_one_account_per_role_once(db):
    assert await _seed_role_accounts_internal(db) == len(SINGLE_ACCOUNT_ROLES)
    assert await _seed_role_accounts_internal(db) == 0

    users = db[settings.MONGODB_COLLECTION_USERS]
    assert await users.count_documents({}) == len(SINGLE_ACCOUNT_ROLES)

    admin = await users.find_one({"role": "ADMIN"})
    assert verify_password(settings.DEFAULT_ADMIN_PASSWORD, admin["hashed_password"])
    principal = await users.find_one({"role": "PRINCIPAL"})
    assert verify_password(settings.DEFAULT_ROLE_PASSWORD, principal["hashed_password"])
    assert principal["department"] is None
