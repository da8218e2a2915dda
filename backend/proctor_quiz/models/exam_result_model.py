from typing import Any, Dict, List

from pymongo import ASCENDING, DESCENDING

from ..database.connection import require_database


def _with_string_id(doc: dict) -> dict:
    doc["id"] = str(doc["_id"])
    del doc["_id"]
    return doc


class ExamResultModel:
    collection_name = "testResults"

    def __init__(self, database=None):
        self._database = database

    def _collection(self):
        database = self._database if self._database is not None else require_database()
        return database[self.collection_name]

    async def create(self, data: Dict[str, Any]) -> str:
        """Insert a result document and return its new id"""
        result = await self._collection().insert_one(dict(data))
        return str(result.inserted_id)

    async def find_by_user(self, user_id: str) -> List[dict]:
        """All results for one participant, in no particular order"""
        results = []
        async for doc in self._collection().find({"userId": user_id}):
            results.append(_with_string_id(doc))
        return results

    async def find_all(self) -> List[dict]:
        """All results, newest first"""
        results = []
        async for doc in self._collection().find().sort("completedAt", DESCENDING):
            results.append(_with_string_id(doc))
        return results

    async def ensure_indexes(self):
        collection = self._collection()
        await collection.create_index([("userId", ASCENDING)])
        await collection.create_index([("completedAt", DESCENDING)])
