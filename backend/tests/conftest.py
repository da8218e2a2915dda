"""
Shared fixtures: an in-memory stand-in for the motor database and ready-made
exam configurations.

The fake yields to the event loop once per call (like a network round trip)
and applies each operation atomically after that, so concurrent callers
interleave the way they would against a real server.
"""

import asyncio
import copy
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import OperationFailure

from proctor_quiz.config import ExamConfig
from proctor_quiz.database.seed import DEFAULT_QUESTIONS
from proctor_quiz.models.exam_result_model import ExamResultModel
from proctor_quiz.models.user_exam_status_model import UserExamStatusModel
from proctor_quiz.services.exam_service import ExamService


def _matches(doc: dict, query: dict) -> bool:
    return all(doc.get(key) == value for key, value in query.items())


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=1):
        self._docs = sorted(self._docs, key=lambda d: d[key], reverse=direction < 0)
        return self

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self):
        self.docs = {}
        self.indexes = []

    def _find(self, query):
        return [d for d in self.docs.values() if _matches(d, query)]

    @staticmethod
    def _apply(doc, update, inserting):
        set_fields = update.get("$set", {})
        on_insert = update.get("$setOnInsert", {})
        conflicts = set(set_fields) & set(on_insert)
        if conflicts:
            raise OperationFailure(
                f"Updating the path '{conflicts.pop()}' would create a conflict", code=40
            )
        if inserting:
            doc.update(on_insert)
        doc.update(set_fields)
        for key, amount in update.get("$inc", {}).items():
            doc[key] = doc.get(key, 0) + amount

    def _upsert(self, query, update, upsert):
        found = self._find(query)
        if found:
            doc = found[0]
            self._apply(doc, update, inserting=False)
            return doc, False
        if not upsert:
            return None, False
        doc = dict(query)
        doc.setdefault("_id", ObjectId())
        self._apply(doc, update, inserting=True)
        self.docs[doc["_id"]] = doc
        return doc, True

    async def find_one(self, query):
        await asyncio.sleep(0)
        found = self._find(query)
        return copy.deepcopy(found[0]) if found else None

    def find(self, query=None):
        return FakeCursor([copy.deepcopy(d) for d in self._find(query or {})])

    async def insert_one(self, doc):
        await asyncio.sleep(0)
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self.docs[doc["_id"]] = doc
        return SimpleNamespace(inserted_id=doc["_id"])

    async def update_one(self, query, update, upsert=False):
        await asyncio.sleep(0)
        doc, inserted = self._upsert(query, update, upsert)
        return SimpleNamespace(
            matched_count=0 if inserted or doc is None else 1,
            upserted_id=doc["_id"] if inserted else None,
        )

    async def find_one_and_update(self, query, update, upsert=False,
                                  return_document=ReturnDocument.BEFORE):
        await asyncio.sleep(0)
        before = self._find(query)
        before = copy.deepcopy(before[0]) if before else None
        doc, _ = self._upsert(query, update, upsert)
        if return_document == ReturnDocument.AFTER:
            return copy.deepcopy(doc)
        return before

    async def create_index(self, keys):
        self.indexes.append(keys)


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())

    async def command(self, name):
        return {"ok": 1}


def make_config(start=None, **overrides) -> ExamConfig:
    values = {
        "testStartTime": start or datetime.utcnow() - timedelta(minutes=5),
        "testDuration": 15,
        "maxTabSwitches": 5,
        "isTestActive": True,
        "questions": DEFAULT_QUESTIONS,
    }
    values.update(overrides)
    return ExamConfig(**values)


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def status_store(fake_db):
    return UserExamStatusModel(fake_db)


@pytest.fixture
def result_store(fake_db):
    return ExamResultModel(fake_db)


@pytest.fixture
def exam_config():
    return make_config()


@pytest.fixture
def service(status_store, result_store, exam_config):
    return ExamService(status_store, result_store, exam_config)


@pytest.fixture
def config_factory():
    return make_config
