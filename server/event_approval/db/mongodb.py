# event_approval/db/mongodb.py

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from event_approval.core.config import settings

logger = logging.getLogger(__name__)


class MongoDB:
    """
    Owns the single Motor client of the process. Opened by the app lifespan,
    handed to request handlers through `get_db`, closed on shutdown.
    """
    client: Optional[AsyncIOMotorClient]
    db: Optional[AsyncIOMotorDatabase]

    def __init__(self, url: Optional[str] = None, db_name: Optional[str] = None):
        self.client = None
        self.db = None
        self.url = url or settings.MONGODB_URL
        self.db_name = db_name or settings.MONGODB_DB

    @property
    def is_connected(self) -> bool:
        return self.db is not None

    def _client_options(self) -> dict:
        return {
            "appname": settings.APP_NAME,
            "tz_aware": True,
            "maxPoolSize": settings.MONGODB_MAX_POOL_SIZE,
            "serverSelectionTimeoutMS": settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
            "connectTimeoutMS": settings.MONGODB_CONNECT_TIMEOUT_MS,
        }

    async def connect(self):
        """
        Opens the client and pings the server, so a misconfigured database
        stops the app at startup instead of on the first request.
        """
        if self.is_connected:
            logger.warning(f"Event store '{self.db_name}' already connected; ignoring connect().")
            return

        client = AsyncIOMotorClient(self.url, **self._client_options())
        try:
            await client.admin.command('ping')
        except PyMongoError as e:
            client.close()
            logger.error(f"Event store unreachable at {self.url}: {e}", exc_info=True)
            raise
        self.client = client
        self.db = client[self.db_name]
        logger.info(f"Event store ready: database '{self.db_name}' (pool size {settings.MONGODB_MAX_POOL_SIZE}).")

    async def close(self):
        if self.client is None:
            return
        self.client.close()
        self.client = None
        self.db = None
        logger.info(f"Event store '{self.db_name}' disconnected.")

    def get_db(self) -> AsyncIOMotorDatabase:
        """
        Raises:
            RuntimeError: connect() has not run, or failed.
        """
        if not self.is_connected:
            raise RuntimeError(f"Event store '{self.db_name}' is not connected.")
        return self.db


mongodb = MongoDB()
