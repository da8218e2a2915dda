from typing import List
from pydantic import BaseModel, field_validator, model_validator


class Question(BaseModel):
    id: str
    question: str
    options: List[str]
    correctAnswer: int  # index into options
    category: str

    @field_validator("options")
    @classmethod
    def at_least_two_options(cls, value: List[str]) -> List[str]:
        if len(value) < 2:
            raise ValueError("a question needs at least two options")
        return value

    @model_validator(mode="after")
    def correct_answer_in_range(self) -> "Question":
        if not 0 <= self.correctAnswer < len(self.options):
            raise ValueError(
                f"correctAnswer {self.correctAnswer} out of range for question {self.id}"
            )
        return self

    def public_dict(self) -> dict:
        """Question as shown to a participant, without the answer key"""
        return self.model_dump(exclude={"correctAnswer"})

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "1",
                "question": "Which CSS property is used to create rounded corners?",
                "options": ["border-width", "border style", "border-radius", "border-round"],
                "correctAnswer": 2,
                "category": "Technical"
            }
        }
