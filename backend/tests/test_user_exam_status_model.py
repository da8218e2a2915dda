"""
Tests for the per-participant status store.

Covers read-or-create, upsert convergence, the permission-denied fallback,
error wrapping and violation counting under concurrency.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from proctor_quiz.database.connection import DatabaseNotConnected
from proctor_quiz.models.user_exam_status_model import ExamStatusError, UserExamStatusModel

USER = "p1"


def stored(fake_db, user_id=USER):
    return fake_db[UserExamStatusModel.collection_name].docs.get(user_id)


class TestGet:
    def test_creates_default_record(self, status_store, fake_db):
        status = asyncio.run(status_store.get(USER))

        assert status.userId == USER
        assert status.hasSubmitted is False
        assert status.tabSwitchCount == 0
        assert status.isTestCancelled is False
        assert status.submissionDate is None
        doc = stored(fake_db)
        assert doc["userId"] == USER
        assert doc["tabSwitchCount"] == 0

    def test_returns_existing_record(self, status_store, fake_db):
        asyncio.run(status_store.update(USER, {"isTestCancelled": True}))

        status = asyncio.run(status_store.get(USER))

        assert status.isTestCancelled is True
        assert len(fake_db[UserExamStatusModel.collection_name].docs) == 1

    def test_missing_fields_fall_back_to_defaults(self, status_store, fake_db):
        fake_db[UserExamStatusModel.collection_name].docs[USER] = {"_id": USER}

        status = asyncio.run(status_store.get(USER))

        assert status.hasSubmitted is False
        assert status.tabSwitchCount == 0
        assert isinstance(status.lastActivity, datetime)

    def test_permission_denied_falls_back_to_create(self, status_store, fake_db):
        collection = fake_db[UserExamStatusModel.collection_name]
        denied = OperationFailure("not authorized on exam", code=13)

        with patch.object(collection, "find_one", new=AsyncMock(side_effect=denied)):
            status = asyncio.run(status_store.get(USER))

        assert status.tabSwitchCount == 0
        assert stored(fake_db) is not None

    def test_creation_is_logged_once(self, status_store, caplog):
        with caplog.at_level(logging.INFO):
            asyncio.run(status_store.get(USER))
            asyncio.run(status_store.get(USER))

        created = [r for r in caplog.records if "Created test status" in r.getMessage()]
        assert len(created) == 1

    def test_record_inserted_by_another_reader_is_kept(self, status_store, fake_db, caplog):
        earlier = datetime.utcnow() - timedelta(minutes=3)
        collection = fake_db[UserExamStatusModel.collection_name]
        collection.docs[USER] = {
            "_id": USER, "userId": USER, "hasSubmitted": False,
            "tabSwitchCount": 2, "isTestCancelled": False, "lastActivity": earlier,
        }

        # the read misses, the record appears before the create upsert runs
        with patch.object(collection, "find_one", new=AsyncMock(return_value=None)):
            with caplog.at_level(logging.INFO):
                status = asyncio.run(status_store.get(USER))

        assert status.tabSwitchCount == 2
        assert status.lastActivity == earlier
        assert not [r for r in caplog.records if "Created test status" in r.getMessage()]

    def test_other_failures_are_wrapped(self, status_store, fake_db):
        collection = fake_db[UserExamStatusModel.collection_name]
        failure = OperationFailure("interrupted", code=11601)

        with patch.object(collection, "find_one", new=AsyncMock(side_effect=failure)):
            with pytest.raises(ExamStatusError, match="Failed to get user test status") as exc:
                asyncio.run(status_store.get(USER))

        assert exc.value.__cause__ is failure
        assert stored(fake_db) is None

    def test_network_failure_is_wrapped(self, status_store, fake_db):
        collection = fake_db[UserExamStatusModel.collection_name]
        failure = ServerSelectionTimeoutError("no servers")

        with patch.object(collection, "find_one", new=AsyncMock(side_effect=failure)):
            with pytest.raises(ExamStatusError):
                asyncio.run(status_store.get(USER))

    def test_requires_connected_database(self):
        with pytest.raises(DatabaseNotConnected):
            asyncio.run(UserExamStatusModel().get(USER))


class TestUpdate:
    def test_update_creates_missing_record(self, status_store, fake_db):
        asyncio.run(status_store.update(USER, {"hasSubmitted": True}))

        doc = stored(fake_db)
        assert doc["hasSubmitted"] is True
        assert doc["tabSwitchCount"] == 0
        assert doc["isTestCancelled"] is False
        assert doc["userId"] == USER

    def test_update_and_create_converge(self, fake_db):
        fresh = UserExamStatusModel(fake_db)
        asyncio.run(fresh.update("new", {"isTestCancelled": True}))

        asyncio.run(fresh.get("existing"))
        asyncio.run(fresh.update("existing", {"isTestCancelled": True}))

        new_doc = stored(fake_db, "new")
        existing_doc = stored(fake_db, "existing")
        for key in ["hasSubmitted", "tabSwitchCount", "isTestCancelled"]:
            assert new_doc[key] == existing_doc[key]
        assert new_doc["isTestCancelled"] is True
        assert new_doc["lastActivity"] and existing_doc["lastActivity"]

    def test_update_refreshes_last_activity(self, status_store, fake_db):
        asyncio.run(status_store.get(USER))
        stale = datetime.utcnow() - timedelta(hours=1)
        stored(fake_db)["lastActivity"] = stale

        asyncio.run(status_store.update(USER, {}))

        assert stored(fake_db)["lastActivity"] > stale

    def test_update_keeps_other_fields(self, status_store, fake_db):
        asyncio.run(status_store.increment_tab_switch_count(USER))
        asyncio.run(status_store.update(USER, {"hasSubmitted": True}))

        doc = stored(fake_db)
        assert doc["tabSwitchCount"] == 1
        assert doc["hasSubmitted"] is True

    def test_violation_count_cannot_be_set_directly(self, status_store):
        with pytest.raises(ValueError, match="tabSwitchCount"):
            asyncio.run(status_store.update(USER, {"tabSwitchCount": 0}))

    def test_write_failure_is_wrapped(self, status_store, fake_db):
        collection = fake_db[UserExamStatusModel.collection_name]
        failure = OperationFailure("write conflict", code=112)

        with patch.object(collection, "update_one", new=AsyncMock(side_effect=failure)):
            with pytest.raises(ExamStatusError, match="Failed to update user test status"):
                asyncio.run(status_store.update(USER, {"hasSubmitted": True}))


class TestMarkers:
    def test_mark_submitted(self, status_store, fake_db):
        asyncio.run(status_store.mark_submitted(USER))

        doc = stored(fake_db)
        assert doc["hasSubmitted"] is True
        assert isinstance(doc["submissionDate"], datetime)

    def test_mark_started(self, status_store, fake_db):
        started = datetime(2025, 8, 30, 11, 50)
        asyncio.run(status_store.mark_started(USER, started))

        assert stored(fake_db)["startedAt"] == started
        assert asyncio.run(status_store.get(USER)).startedAt == started

    def test_fresh_record_has_no_start(self, status_store):
        assert asyncio.run(status_store.get(USER)).startedAt is None

    def test_cancel_keeps_violation_count(self, status_store, fake_db):
        for _ in range(3):
            asyncio.run(status_store.increment_tab_switch_count(USER))
        asyncio.run(status_store.cancel(USER))

        doc = stored(fake_db)
        assert doc["isTestCancelled"] is True
        assert doc["tabSwitchCount"] == 3

    def test_cancel_failure_is_wrapped(self, status_store, fake_db):
        collection = fake_db[UserExamStatusModel.collection_name]
        failure = OperationFailure("not primary", code=10107)

        with patch.object(collection, "update_one", new=AsyncMock(side_effect=failure)):
            with pytest.raises(ExamStatusError, match="Failed to cancel test"):
                asyncio.run(status_store.cancel(USER))


class TestIncrementTabSwitchCount:
    def test_first_increment_creates_record(self, status_store, fake_db):
        assert asyncio.run(status_store.increment_tab_switch_count(USER)) == 1

        doc = stored(fake_db)
        assert doc["tabSwitchCount"] == 1
        assert doc["hasSubmitted"] is False

    def test_counts_up(self, status_store):
        counts = [asyncio.run(status_store.increment_tab_switch_count(USER)) for _ in range(4)]
        assert counts == [1, 2, 3, 4]

    def test_concurrent_increments_are_not_lost(self, status_store, fake_db):
        async def two_tabs():
            return await asyncio.gather(
                status_store.increment_tab_switch_count(USER),
                status_store.increment_tab_switch_count(USER),
            )

        counts = asyncio.run(two_tabs())

        assert sorted(counts) == [1, 2]
        assert stored(fake_db)["tabSwitchCount"] == 2

    def test_read_then_write_loses_an_increment(self, fake_db):
        """Why the counter is a single $inc: the two-step version drops a count."""
        collection = fake_db[UserExamStatusModel.collection_name]

        async def read_then_write():
            doc = await collection.find_one({"_id": USER})
            count = (doc or {}).get("tabSwitchCount", 0) + 1
            await collection.update_one(
                {"_id": USER}, {"$set": {"tabSwitchCount": count}}, upsert=True
            )

        async def two_tabs():
            await asyncio.gather(read_then_write(), read_then_write())

        asyncio.run(two_tabs())

        assert stored(fake_db)["tabSwitchCount"] == 1

    def test_failure_is_wrapped(self, status_store, fake_db):
        collection = fake_db[UserExamStatusModel.collection_name]
        failure = OperationFailure("not authorized", code=13)

        with patch.object(collection, "find_one_and_update", new=AsyncMock(side_effect=failure)):
            with pytest.raises(ExamStatusError, match="Failed to increment tab switch count"):
                asyncio.run(status_store.increment_tab_switch_count(USER))
