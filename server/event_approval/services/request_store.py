# event_approval/services/request_store.py

import logging
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from event_approval.core.config import settings
from event_approval.models.event_request import EventRequest
from event_approval.services.workflow_errors import (
    RequestNotFound,
    DuplicateReference,
    StaleState,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)


def to_object_id(value) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise RequestNotFound(f"Invalid request ID: {value}")


class RequestStore:
    """
    Persistence for event requests in MongoDB.

    Every write after insert goes through `compare_and_swap`, which only
    replaces the stored document when its `version` still matches what the
    caller read.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = self.db[settings.MONGODB_COLLECTION_REQUESTS]

    async def ensure_indexes(self):
        """Creates the query indexes and the unique reference number index."""
        try:
            await self.collection.create_index([("reference_no", ASCENDING)], unique=True, sparse=True)
            await self.collection.create_index([("current_role", ASCENDING), ("department", ASCENDING)])
            await self.collection.create_index([("staff_id", ASCENDING)])
            await self.collection.create_index([("department", ASCENDING), ("staff_id", ASCENDING)])
            await self.collection.create_index([("created_at", DESCENDING)])
            logger.info(f"Indexes ensured on collection '{settings.MONGODB_COLLECTION_REQUESTS}'.")
        except PyMongoError as e:
            logger.error(f"Failed to create request indexes: {e}", exc_info=True)
            raise StoreUnavailable("Could not create request indexes.")

    async def get(self, request_id) -> EventRequest:
        oid = to_object_id(request_id)
        try:
            doc = await self.collection.find_one({"_id": oid})
        except PyMongoError as e:
            logger.error(f"Error reading request {oid}: {e}", exc_info=True)
            raise StoreUnavailable("Request store is unavailable.")
        if doc is None:
            raise RequestNotFound(f"Request {request_id} not found.")
        return EventRequest.model_validate(doc)

    async def _find(self, query: dict) -> List[EventRequest]:
        try:
            docs = await self.collection.find(query).sort("created_at", DESCENDING).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Error querying requests with {query}: {e}", exc_info=True)
            raise StoreUnavailable("Request store is unavailable.")
        return [EventRequest.model_validate(d) for d in docs]

    async def find_by_role(self, role: str, department: Optional[str] = None) -> List[EventRequest]:
        query = {"current_role": getattr(role, "value", role)}
        if department:
            query["department"] = department
        return await self._find(query)

    async def find_by_staff(self, staff_id) -> List[EventRequest]:
        return await self._find({"staff_id": to_object_id(staff_id)})

    async def find_by_department(self, department: str, exclude_staff_id=None) -> List[EventRequest]:
        query = {"department": department}
        if exclude_staff_id is not None:
            query["staff_id"] = {"$ne": to_object_id(exclude_staff_id)}
        return await self._find(query)

    async def find_all(self) -> List[EventRequest]:
        return await self._find({})

    async def exists_reference_no(self, reference_no: str) -> bool:
        try:
            doc = await self.collection.find_one({"reference_no": reference_no}, {"_id": 1})
        except PyMongoError as e:
            logger.error(f"Error checking reference number '{reference_no}': {e}", exc_info=True)
            raise StoreUnavailable("Request store is unavailable.")
        return doc is not None

    async def find_by_reference_no(self, reference_no: str) -> Optional[EventRequest]:
        try:
            doc = await self.collection.find_one({"reference_no": reference_no})
        except PyMongoError as e:
            logger.error(f"Error reading reference number '{reference_no}': {e}", exc_info=True)
            raise StoreUnavailable("Request store is unavailable.")
        return EventRequest.model_validate(doc) if doc else None

    async def insert(self, request: EventRequest) -> EventRequest:
        doc = request.to_document()
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateReference(f"Reference number {request.reference_no} is already in use.")
        except PyMongoError as e:
            logger.error(f"Error inserting request: {e}", exc_info=True)
            raise StoreUnavailable("Request store is unavailable.")
        return await self.get(result.inserted_id)

    async def compare_and_swap(self, request_id, expected_version: int, updated: EventRequest) -> EventRequest:
        """
        Replaces the stored request only if its version is still
        `expected_version`; the stored copy gets `expected_version + 1`.

        Raises:
            StaleState: the document changed (or vanished) since it was read.
            DuplicateReference: the write collides with another request's
                reference number.
        """
        oid = to_object_id(request_id)
        doc = updated.to_document()
        doc.pop("_id", None)
        doc["version"] = expected_version + 1
        try:
            result = await self.collection.find_one_and_replace(
                {"_id": oid, "version": expected_version},
                doc,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            logger.warning(f"Reference number collision while writing request {oid}: {updated.reference_no}")
            raise DuplicateReference(f"Reference number {updated.reference_no} is already in use.")
        except PyMongoError as e:
            logger.error(f"Error writing request {oid}: {e}", exc_info=True)
            raise StoreUnavailable("Request store is unavailable.")

        if result is None:
            logger.warning(f"Version conflict writing request {oid} (expected version {expected_version}).")
            raise StaleState("The request was changed by someone else. Reload and try again.")
        return EventRequest.model_validate(result)

    async def delete(self, request_id) -> bool:
        oid = to_object_id(request_id)
        try:
            result = await self.collection.delete_one({"_id": oid})
        except PyMongoError as e:
            logger.error(f"Error deleting request {oid}: {e}", exc_info=True)
            raise StoreUnavailable("Request store is unavailable.")
        return result.deleted_count == 1
