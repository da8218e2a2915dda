import logging
from datetime import datetime
from typing import Any, Dict, Optional

from pymongo import ReturnDocument
from pymongo.errors import OperationFailure, PyMongoError

from ..database.connection import require_database
from .user_exam_status import UserExamStatus

logger = logging.getLogger(__name__)

# MongoDB server error code for "not authorized"
PERMISSION_DENIED = 13

# Fields callers may set through update(); tabSwitchCount only moves through
# increment_tab_switch_count so it never decreases.
UPDATABLE_FIELDS = {"hasSubmitted", "submissionDate", "isTestCancelled"}


class ExamStatusError(Exception):
    """A status store operation failed for a reason other than a missing record"""


class UserExamStatusModel:
    """One status document per participant in `userTestStatus`, keyed by user id.

    Every write is an upsert: `$set` carries the caller's fields and
    `$setOnInsert` fills in the remaining defaults, so a missing record and an
    existing one converge to the same state in a single round trip.
    """

    collection_name = "userTestStatus"

    def __init__(self, database=None):
        self._database = database

    def _collection(self):
        database = self._database if self._database is not None else require_database()
        return database[self.collection_name]

    @staticmethod
    def _defaults(user_id: str, now: datetime) -> Dict[str, Any]:
        return {
            "userId": user_id,
            "hasSubmitted": False,
            "tabSwitchCount": 0,
            "isTestCancelled": False,
            "lastActivity": now,
        }

    def _insert_only(self, user_id: str, now: datetime, set_fields: Dict[str, Any]) -> Dict[str, Any]:
        # $set and $setOnInsert may not name the same path
        return {
            key: value
            for key, value in self._defaults(user_id, now).items()
            if key not in set_fields
        }

    async def _create_default(self, collection, user_id: str) -> UserExamStatus:
        now = datetime.utcnow()
        doc = await collection.find_one_and_update(
            {"_id": user_id},
            {"$setOnInsert": self._defaults(user_id, now)},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        # a concurrent reader may have inserted first; its lastActivity differs
        if doc.get("lastActivity") == now:
            logger.info(f"📝 Created test status for {user_id}")
        return UserExamStatus.from_document(user_id, doc)

    async def get(self, user_id: str) -> UserExamStatus:
        """Read the participant's status, creating the default record if absent"""
        collection = self._collection()
        try:
            try:
                doc = await collection.find_one({"_id": user_id})
            except OperationFailure as e:
                if e.code != PERMISSION_DENIED:
                    raise
                logger.warning(f"⚠️ Could not read test status for {user_id}, recreating it: {e}")
                doc = None

            if doc is not None:
                return UserExamStatus.from_document(user_id, doc)
            return await self._create_default(collection, user_id)
        except PyMongoError as e:
            logger.error(f"❌ Error in get_user_test_status: {e}")
            raise ExamStatusError(f"Failed to get user test status: {e}") from e

    async def _upsert(self, user_id: str, fields: Dict[str, Any], action: str):
        now = datetime.utcnow()
        set_fields = {**fields, "lastActivity": now}
        try:
            await self._collection().update_one(
                {"_id": user_id},
                {
                    "$set": set_fields,
                    "$setOnInsert": self._insert_only(user_id, now, set_fields),
                },
                upsert=True,
            )
        except PyMongoError as e:
            logger.error(f"❌ Failed to {action} for {user_id}: {e}")
            raise ExamStatusError(f"Failed to {action}: {e}") from e

    async def update(self, user_id: str, fields: Optional[Dict[str, Any]] = None):
        """Merge fields into the status record and refresh lastActivity"""
        fields = dict(fields or {})
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update test status fields: {', '.join(sorted(unknown))}")
        await self._upsert(user_id, fields, "update user test status")

    async def mark_submitted(self, user_id: str):
        await self._upsert(
            user_id,
            {"hasSubmitted": True, "submissionDate": datetime.utcnow()},
            "mark test as submitted",
        )

    async def mark_started(self, user_id: str, started_at: Optional[datetime] = None):
        """Record when the participant first entered the test"""
        await self._upsert(
            user_id,
            {"startedAt": started_at or datetime.utcnow()},
            "record test start",
        )

    async def cancel(self, user_id: str):
        await self._upsert(user_id, {"isTestCancelled": True}, "cancel test")

    async def increment_tab_switch_count(self, user_id: str) -> int:
        """Atomically add one violation and return the new count"""
        now = datetime.utcnow()
        set_fields = {"lastActivity": now}
        insert_only = self._insert_only(user_id, now, set_fields)
        del insert_only["tabSwitchCount"]
        try:
            doc = await self._collection().find_one_and_update(
                {"_id": user_id},
                {
                    "$inc": {"tabSwitchCount": 1},
                    "$set": set_fields,
                    "$setOnInsert": insert_only,
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"❌ Failed to increment tab switch count for {user_id}: {e}")
            raise ExamStatusError(f"Failed to increment tab switch count: {e}") from e
        return doc["tabSwitchCount"]
