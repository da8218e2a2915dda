import logging
import math
from datetime import datetime
from typing import Dict, Iterable, List, NamedTuple, Optional

from pymongo.errors import PyMongoError

from ..config import ExamConfig, get_exam_config, to_naive_utc
from ..models.question import Question
from ..models.exam_result import ExamAnswer, ExamResult, ResultStatus
from ..models.exam_result_model import ExamResultModel
from ..models.user_exam_status import UserExamStatus
from ..models.user_exam_status_model import UserExamStatusModel
from .shuffle import shuffle_questions

logger = logging.getLogger(__name__)


class ExamResultError(Exception):
    """Storing or fetching exam results failed"""


class ExamClosedError(Exception):
    """The participant may not enter or continue the test right now"""


class Score(NamedTuple):
    score: int
    percentage: int


class Grade(NamedTuple):
    grade: str
    color: str
    message: str


# inclusive lower bounds, highest first
GRADE_TABLE = [
    (90, Grade("A+", "text-green-400", "Outstanding Performance!")),
    (80, Grade("A", "text-green-400", "Excellent Work!")),
    (70, Grade("B+", "text-blue-400", "Good Performance!")),
    (60, Grade("B", "text-blue-400", "Satisfactory!")),
    (50, Grade("C", "text-yellow-400", "Needs Improvement!")),
]
FAIL_GRADE = Grade("F", "text-red-400", "Better Luck Next Time!")


class ExamService:
    """Exam session lifecycle: window gating, question order, proctoring and results.

    The status store is injected so submit_test_result() can mark the session
    submitted without relying on how the service instance is referenced.
    """

    def __init__(
        self,
        status_store: UserExamStatusModel,
        result_store: ExamResultModel,
        config: Optional[ExamConfig] = None,
    ):
        self.status_store = status_store
        self.result_store = result_store
        self._config = config

    @property
    def config(self) -> ExamConfig:
        if self._config is None:
            self._config = get_exam_config()
        return self._config

    # ---------------- Window & questions ----------------

    def get_randomized_test_questions(self, user_id: str) -> List[Question]:
        return shuffle_questions(self.config.get_test_questions(), user_id)

    def can_submit(self, now: Optional[datetime] = None) -> bool:
        return self.config.can_continue(now)

    # ---------------- Session status ----------------

    async def get_user_test_status(self, user_id: str) -> UserExamStatus:
        return await self.status_store.get(user_id)

    async def enter_test(self, user_id: str, now: Optional[datetime] = None) -> UserExamStatus:
        """
        Admit the participant to the questions.

        The first entry must fall inside the entry window and is recorded as
        startedAt. Later fetches by a participant who already entered are allowed
        until the attempt deadline.

        Raises:
            ExamClosedError: If entry or continuation is no longer allowed
        """
        now = to_naive_utc(now) if now else datetime.utcnow()
        status = await self.status_store.get(user_id)
        if status.startedAt is None:
            if not self.config.is_available(now):
                raise ExamClosedError("The test is not open")
            await self.status_store.mark_started(user_id, now)
            logger.info(f"🚀 {user_id} started the test")
            return status.model_copy(update={"startedAt": now})
        if not self.config.can_continue(now):
            raise ExamClosedError("The time for this test is over")
        return status

    async def record_tab_switch(self, user_id: str) -> Dict:
        """Count one violation and cancel the test once the limit is exceeded"""
        count = await self.status_store.increment_tab_switch_count(user_id)
        limit = self.config.maxTabSwitches
        cancelled = count > limit
        if cancelled:
            await self.status_store.cancel(user_id)
            logger.warning(f"⚠️ Test cancelled for {user_id}: {count} tab switches (limit {limit})")
        else:
            logger.info(f"👀 Tab switch {count}/{limit} for {user_id}")
        return {
            "tabSwitchCount": count,
            "maxTabSwitches": limit,
            "isTestCancelled": cancelled,
        }

    # ---------------- Scoring ----------------

    @staticmethod
    def calculate_score(answers: Iterable[ExamAnswer]) -> Score:
        answers = list(answers)
        correct = sum(1 for answer in answers if answer.isCorrect)
        total = len(answers)
        if total == 0:
            return Score(score=0, percentage=0)
        # half rounds up, matching the percentages already stored
        percentage = math.floor(correct / total * 100 + 0.5)
        return Score(score=correct, percentage=percentage)

    @staticmethod
    def grade(percentage: float) -> Grade:
        for threshold, grade in GRADE_TABLE:
            if percentage >= threshold:
                return grade
        return FAIL_GRADE

    def check_answers(self, selections: Iterable[Dict]) -> List[ExamAnswer]:
        """Mark raw {questionId, selectedAnswer} selections against the catalog"""
        answers = []
        seen = set()
        for selection in selections:
            question = self.config.find_question(str(selection["questionId"]))
            if question is None:
                raise ValueError(f"Unknown question id: {selection['questionId']}")
            if question.id in seen:
                raise ValueError(f"Duplicate answer for question {question.id}")
            seen.add(question.id)
            selected = int(selection["selectedAnswer"])
            answers.append(ExamAnswer(
                questionId=question.id,
                selectedAnswer=selected,
                isCorrect=selected == question.correctAnswer,
            ))
        return answers

    def build_result(
        self,
        user: Dict,
        selections: Iterable[Dict],
        time_spent: int,
        status: ResultStatus = ResultStatus.COMPLETED,
    ) -> ExamResult:
        answers = self.check_answers(selections)
        score = self.calculate_score(answers)
        return ExamResult(
            userId=user["id"],
            userName=user.get("name") or "",
            userEmail=user.get("email") or "",
            admissionNumber=user.get("admissionNumber") or "",
            branch=user.get("branch") or "",
            score=score.score,
            totalQuestions=len(answers),
            percentage=score.percentage,
            timeSpent=time_spent,
            answers=answers,
            status=status,
        )

    # ---------------- Results ----------------

    async def submit_test_result(self, result: ExamResult) -> str:
        """Mark the session submitted, then store the result and return its id"""
        await self.status_store.mark_submitted(result.userId)

        data = result.model_dump(exclude={"id"})
        data["completedAt"] = datetime.utcnow()
        try:
            result_id = await self.result_store.create(data)
        except PyMongoError as e:
            logger.error(f"❌ Failed to store result for {result.userId}: {e}")
            raise ExamResultError(f"Failed to submit test result: {e}") from e

        logger.info(f"✅ Result {result_id} stored for {result.userId} ({result.percentage}%)")
        return result_id

    async def get_user_test_results(self, user_id: str) -> List[ExamResult]:
        """Participant's results, newest first; ties keep store order"""
        try:
            docs = await self.result_store.find_by_user(user_id)
        except PyMongoError as e:
            raise ExamResultError(f"Failed to get test results: {e}") from e

        results = [ExamResult(**doc) for doc in docs]
        return sorted(results, key=lambda r: r.completedAt or datetime.min, reverse=True)

    async def get_all_test_results(self) -> List[ExamResult]:
        try:
            docs = await self.result_store.find_all()
        except PyMongoError as e:
            raise ExamResultError(f"Failed to get all test results: {e}") from e
        return [ExamResult(**doc) for doc in docs]
