from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class UserExamStatus(BaseModel):
    userId: str
    hasSubmitted: bool = False
    submissionDate: Optional[datetime] = None
    tabSwitchCount: int = Field(default=0, ge=0)
    isTestCancelled: bool = False
    startedAt: Optional[datetime] = None
    lastActivity: datetime

    @classmethod
    def from_document(cls, user_id: str, doc: dict) -> "UserExamStatus":
        """Build a status from a stored document, tolerating missing fields"""
        return cls(
            userId=user_id,
            hasSubmitted=doc.get("hasSubmitted") or False,
            submissionDate=doc.get("submissionDate"),
            tabSwitchCount=doc.get("tabSwitchCount") or 0,
            isTestCancelled=doc.get("isTestCancelled") or False,
            startedAt=doc.get("startedAt"),
            lastActivity=doc.get("lastActivity") or datetime.utcnow(),
        )
