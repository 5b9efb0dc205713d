# event_approval/db/seed_data.py

import logging
from datetime import datetime, timezone

from motor.motor_asyncio import AsyncIOMotorDatabase

from event_approval.core.config import settings
from event_approval.core.roles import Role, SINGLE_ACCOUNT_ROLES
from event_approval.core.security import get_password_hash
from event_approval.db.mongodb import mongodb
from event_approval.services.request_store import RequestStore

logger = logging.getLogger(__name__)

DEFAULT_ROLE_NAMES = {
    Role.ADMIN: "Admin User",
    Role.IQAC: "IQAC User",
    Role.PRINCIPAL: "Principal User",
    Role.DIRECTOR: "Director User",
    Role.AO: "AO User",
    Role.CEO: "CEO User",
}


async def _seed_role_accounts_internal(db: AsyncIOMotorDatabase) -> int:
    """Creates the shared account for each single-account role if missing (idempotent)."""
    logger.info("Attempting to seed default role accounts...")
    users_collection = db[settings.MONGODB_COLLECTION_USERS]
    created = 0
    now = datetime.now(timezone.utc)

    for role in SINGLE_ACCOUNT_ROLES:
        password = settings.DEFAULT_ADMIN_PASSWORD if role == Role.ADMIN else settings.DEFAULT_ROLE_PASSWORD
        if not password:
            logger.warning(f"No default password configured for {role.value}; skipping.")
            continue
        existing = await users_collection.find_one({"role": role.value})
        if existing:
            continue
        await users_collection.insert_one({
            "name": DEFAULT_ROLE_NAMES[role],
            "role": role.value,
            "hashed_password": get_password_hash(password),
            "department": None,
            "email": None,
            "created_at": now,
            "updated_at": now,
        })
        created += 1
        logger.info(f"Created default account for role: {role.value}")

    logger.info(f"Default role account seeding finished ({created} created).")
    return created


async def seed_all_data():
    """Runs all seeding steps during application startup."""
    logger.info("Starting database seeding process...")
    db = mongodb.get_db()
    await RequestStore(db).ensure_indexes()
    await _seed_role_accounts_internal(db)
    logger.info("Database seeding process finished.")
