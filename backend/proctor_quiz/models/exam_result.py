from enum import Enum
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class ResultStatus(str, Enum):
    COMPLETED = "completed"
    IN_PROGRESS = "in-progress"
    ABANDONED = "abandoned"


class ExamAnswer(BaseModel):
    questionId: str
    selectedAnswer: int
    isCorrect: bool


class ExamResult(BaseModel):
    id: Optional[str] = None
    userId: str
    userName: str = ""
    userEmail: str = ""
    admissionNumber: str = ""
    branch: str = ""
    score: int = Field(ge=0)
    totalQuestions: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100)
    timeSpent: int = Field(ge=0)  # in seconds
    answers: List[ExamAnswer] = []
    completedAt: Optional[datetime] = None  # always overwritten on persistence
    status: ResultStatus = ResultStatus.COMPLETED

    class Config:
        use_enum_values = True
        validate_default = True
        json_schema_extra = {
            "example": {
                "userId": "uid-123",
                "userName": "Asha Rao",
                "userEmail": "asha@example.com",
                "admissionNumber": "21CS042",
                "branch": "CSE",
                "score": 14,
                "totalQuestions": 20,
                "percentage": 70,
                "timeSpent": 640,
                "answers": [
                    {"questionId": "3", "selectedAnswer": 2, "isCorrect": True}
                ],
                "status": "completed"
            }
        }
