import logging
from datetime import timezone
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..database.connection import DatabaseNotConnected
from ..middleware.auth import get_current_user, require_admin
from ..models.exam_result import ExamResult, ResultStatus
from ..models.exam_result_model import ExamResultModel
from ..models.user_exam_status import UserExamStatus
from ..models.user_exam_status_model import ExamStatusError, UserExamStatusModel
from ..services.exam_service import ExamClosedError, ExamResultError, ExamService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/test", tags=["test"])
exam_service = ExamService(UserExamStatusModel(), ExamResultModel())

STORE_ERRORS = (ExamStatusError, ExamResultError, DatabaseNotConnected)


def get_exam_service() -> ExamService:
    return exam_service


class SelectedAnswer(BaseModel):
    questionId: str
    selectedAnswer: int = Field(ge=0)


class SubmitTestRequest(BaseModel):
    answers: List[SelectedAnswer]
    timeSpent: int = Field(ge=0)  # in seconds
    status: ResultStatus = ResultStatus.COMPLETED


class SubmitTestResponse(BaseModel):
    id: str
    score: int
    totalQuestions: int
    percentage: int
    grade: str
    message: str


class TabSwitchResponse(BaseModel):
    tabSwitchCount: int
    maxTabSwitches: int
    isTestCancelled: bool


def _store_failure(e: Exception) -> HTTPException:
    logger.error(f"❌ {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(e)
    )


def _closed(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


@router.get("/availability")
async def get_availability(service: ExamService = Depends(get_exam_service)):
    """Exam window state; no login needed"""
    config = service.config
    return {
        "isAvailable": config.is_available(),
        "state": config.window_state(),
        "startTime": config.testStartTime.replace(tzinfo=timezone.utc),
        "endTime": config.end_time().replace(tzinfo=timezone.utc),
        "attemptDeadline": config.attempt_deadline().replace(tzinfo=timezone.utc),
        "durationMinutes": config.testDuration,
        "maxTabSwitches": config.maxTabSwitches,
        "timeRemaining": config.time_remaining(),
    }


@router.get("/status", response_model=UserExamStatus)
async def get_status(
    user: dict = Depends(get_current_user),
    service: ExamService = Depends(get_exam_service),
):
    try:
        return await service.get_user_test_status(user["id"])
    except STORE_ERRORS as e:
        raise _store_failure(e)


@router.get("/questions")
async def get_questions(
    user: dict = Depends(get_current_user),
    service: ExamService = Depends(get_exam_service),
):
    """Participant's shuffled questions, without answer keys"""
    try:
        await service.enter_test(user["id"])
    except ExamClosedError as e:
        raise _closed(str(e))
    except STORE_ERRORS as e:
        raise _store_failure(e)
    questions = service.get_randomized_test_questions(user["id"])
    return {"questions": [q.public_dict() for q in questions]}


@router.post("/tab-switch", response_model=TabSwitchResponse)
async def record_tab_switch(
    user: dict = Depends(get_current_user),
    service: ExamService = Depends(get_exam_service),
):
    try:
        return await service.record_tab_switch(user["id"])
    except STORE_ERRORS as e:
        raise _store_failure(e)


@router.post("/submit", response_model=SubmitTestResponse)
async def submit_test(
    request_data: SubmitTestRequest,
    user: dict = Depends(get_current_user),
    service: ExamService = Depends(get_exam_service),
):
    if not service.can_submit():
        raise _closed("The test is not open")
    try:
        result = service.build_result(
            user,
            [answer.model_dump() for answer in request_data.answers],
            request_data.timeSpent,
            request_data.status,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        result_id = await service.submit_test_result(result)
    except STORE_ERRORS as e:
        raise _store_failure(e)

    grade = service.grade(result.percentage)
    return SubmitTestResponse(
        id=result_id,
        score=result.score,
        totalQuestions=result.totalQuestions,
        percentage=result.percentage,
        grade=grade.grade,
        message=grade.message,
    )


@router.get("/results/me", response_model=List[ExamResult])
async def get_my_results(
    user: dict = Depends(get_current_user),
    service: ExamService = Depends(get_exam_service),
):
    try:
        return await service.get_user_test_results(user["id"])
    except STORE_ERRORS as e:
        raise _store_failure(e)


@router.get("/results", response_model=List[ExamResult])
async def get_all_results(
    user: dict = Depends(require_admin),
    service: ExamService = Depends(get_exam_service),
):
    try:
        return await service.get_all_test_results()
    except STORE_ERRORS as e:
        raise _store_failure(e)
