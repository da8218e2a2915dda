"""
Exam window configuration and question catalog.

Values come from the environment (a local .env is loaded by
database.connection.load_environment) and are validated once at load time.
"""

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ValidationError, field_validator

from .models.question import Question

logger = logging.getLogger(__name__)

DEFAULT_START_TIME = "2025-08-30T11:36:00"
DEFAULT_DURATION_MINUTES = 15
DEFAULT_ENTRY_WINDOW_MINUTES = 30
DEFAULT_MAX_TAB_SWITCHES = 5


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ExamConfig(BaseModel):
    testStartTime: datetime
    testDuration: int = DEFAULT_DURATION_MINUTES  # in minutes
    entryWindow: int = DEFAULT_ENTRY_WINDOW_MINUTES  # in minutes
    maxTabSwitches: int = DEFAULT_MAX_TAB_SWITCHES
    isTestActive: bool = True
    questions: List[Question]

    @field_validator("testStartTime")
    @classmethod
    def normalise_start(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @field_validator("testDuration", "entryWindow")
    @classmethod
    def positive_minutes(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be greater than 0 minutes")
        return value

    @field_validator("maxTabSwitches")
    @classmethod
    def non_negative_threshold(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be 0 or greater")
        return value

    @field_validator("questions")
    @classmethod
    def unique_question_ids(cls, value: List[Question]) -> List[Question]:
        if not value:
            raise ValueError("question catalog is empty")
        ids = [q.id for q in value]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate question ids: {', '.join(duplicates)}")
        return value

    def end_time(self) -> datetime:
        """Last instant (exclusive) at which the test can be entered"""
        return self.testStartTime + timedelta(minutes=self.entryWindow)

    def is_available(self, now: Optional[datetime] = None) -> bool:
        """True iff now lies in [start, start + entry window)"""
        if not self.isTestActive:
            return False
        now = to_naive_utc(now) if now else datetime.utcnow()
        return self.testStartTime <= now < self.end_time()

    def attempt_deadline(self) -> datetime:
        """Last instant (exclusive) at which an attempt entered in time can still be worked on"""
        return self.end_time() + timedelta(minutes=self.testDuration)

    def can_continue(self, now: Optional[datetime] = None) -> bool:
        """True iff now lies in [start, attempt deadline)"""
        if not self.isTestActive:
            return False
        now = to_naive_utc(now) if now else datetime.utcnow()
        return self.testStartTime <= now < self.attempt_deadline()

    def window_state(self, now: Optional[datetime] = None) -> str:
        now = to_naive_utc(now) if now else datetime.utcnow()
        if now < self.testStartTime:
            return "upcoming"
        if self.is_available(now):
            return "open"
        return "closed"

    def time_remaining(self, now: Optional[datetime] = None) -> int:
        """Seconds left before the entry window closes"""
        now = to_naive_utc(now) if now else datetime.utcnow()
        remaining = (self.end_time() - now).total_seconds()
        return max(0, int(remaining))

    def get_test_questions(self) -> List[Question]:
        return list(self.questions)

    def find_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def load_questions(catalog_path: Optional[Path] = None) -> List[dict]:
    """
    Load the question catalog.

    Args:
        catalog_path: JSON file holding a list of questions. When None the
                      built-in catalog is used.

    Raises:
        ValueError: If the file is missing or not valid JSON
    """
    if catalog_path is None:
        from .database.seed import DEFAULT_QUESTIONS
        return [dict(q) for q in DEFAULT_QUESTIONS]

    if not catalog_path.exists():
        raise ValueError(f"Question catalog '{catalog_path}' not found")

    try:
        with open(catalog_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in question catalog: {e}")

    if not isinstance(data, list):
        raise ValueError("Question catalog must be a JSON list")
    return data


def load_exam_config() -> ExamConfig:
    """Build the exam configuration from environment variables"""
    catalog = os.getenv("QUESTION_CATALOG_PATH")
    raw_start = os.getenv("TEST_START_TIME") or DEFAULT_START_TIME
    try:
        start = datetime.fromisoformat(raw_start)
    except ValueError:
        raise ValueError(f"TEST_START_TIME is not an ISO-8601 timestamp: {raw_start!r}")

    try:
        config = ExamConfig(
            testStartTime=start,
            testDuration=_env_int("TEST_DURATION_MINUTES", DEFAULT_DURATION_MINUTES),
            entryWindow=_env_int("TEST_ENTRY_WINDOW_MINUTES", DEFAULT_ENTRY_WINDOW_MINUTES),
            maxTabSwitches=_env_int("MAX_TAB_SWITCHES", DEFAULT_MAX_TAB_SWITCHES),
            isTestActive=_env_bool("TEST_ACTIVE", True),
            questions=load_questions(Path(catalog) if catalog else None),
        )
    except ValidationError as e:
        raise ValueError(f"Invalid exam configuration: {e}")

    logger.info(
        f"✅ Exam window {config.testStartTime.isoformat()} → {config.end_time().isoformat()} "
        f"({len(config.questions)} questions, max {config.maxTabSwitches} tab switches)"
    )
    return config


_exam_config: Optional[ExamConfig] = None


def get_exam_config() -> ExamConfig:
    global _exam_config
    if _exam_config is None:
        _exam_config = load_exam_config()
    return _exam_config


def reset_exam_config():
    global _exam_config
    _exam_config = None
