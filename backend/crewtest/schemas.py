"""
Request schemas.

Test creation takes one of two tagged shapes, discriminated by ``mode``:
a fixed test carries its question list, a random test carries its sample
size. Neither shape accepts the other's fields.
"""

from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from crewtest.config import MAX_RANDOM_QUESTIONS
from crewtest.models.question import DIFFICULTIES, MULTIPLE_CHOICE, QUESTION_TYPES
from crewtest.models.user import ROLES, ROLE_SEAFARER

# Matches the four option columns of the question workbook
MAX_ANSWERS = 4


# ── Reference data ───────────────────────────────────────────

class ReferenceCreate(BaseModel):
    """Schema for creating a position, ship type or category."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name cannot be blank")
        return value


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    role: str = ROLE_SEAFARER
    position_id: Optional[str] = None
    ship_type_id: Optional[str] = None

    @field_validator("role")
    @classmethod
    def known_role(cls, value: str) -> str:
        if value not in ROLES:
            raise ValueError("role must be one of: {}".format(", ".join(ROLES)))
        return value


# ── Questions ────────────────────────────────────────────────

class AnswerIn(BaseModel):
    content: str = Field(..., min_length=1)
    is_correct: bool = False
    explanation: Optional[str] = None


class QuestionIn(BaseModel):
    """Schema for creating or updating a question."""
    content: str = Field(..., min_length=1)
    type: str
    difficulty: str
    category_id: str
    position_id: Optional[str] = None
    ship_type_id: Optional[str] = None
    explanation: Optional[str] = None
    answers: List[AnswerIn] = Field(default_factory=list)

    @field_validator("type")
    @classmethod
    def known_type(cls, value: str) -> str:
        if value not in QUESTION_TYPES:
            raise ValueError("type must be one of: {}".format(", ".join(QUESTION_TYPES)))
        return value

    @field_validator("difficulty")
    @classmethod
    def known_difficulty(cls, value: str) -> str:
        if value not in DIFFICULTIES:
            raise ValueError("difficulty must be one of: {}".format(", ".join(DIFFICULTIES)))
        return value

    @model_validator(mode="after")
    def check_answers(self):
        if self.type == MULTIPLE_CHOICE:
            if len(self.answers) < 2:
                raise ValueError("multiple-choice questions need at least 2 answers")
            if len(self.answers) > MAX_ANSWERS:
                raise ValueError("multiple-choice questions take at most {} answers".format(MAX_ANSWERS))
            correct = sum(1 for a in self.answers if a.is_correct)
            if correct != 1:
                raise ValueError("multiple-choice questions need exactly one correct answer")
        elif self.answers:
            raise ValueError("only multiple-choice questions take answer options")
        return self


class QuestionFilter(BaseModel):
    """Random-mode selection filter, also used to preview eligible counts."""
    position_id: Optional[str] = None
    ship_type_id: Optional[str] = None
    difficulty: Optional[str] = None
    category: Optional[str] = None


# ── Tests ────────────────────────────────────────────────────

class DeliverySettingsIn(BaseModel):
    shuffle_questions: bool = False
    shuffle_answers: bool = False
    allow_back: bool = True
    show_result_immediately: bool = True
    max_attempts: Optional[int] = Field(None, ge=0)


class DefinitionBase(BaseModel):
    """Fields shared by both test modes."""
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    duration: int = Field(..., ge=5, le=180)
    passing_score: int = Field(..., ge=0, le=100)
    position_id: Optional[str] = None
    ship_type_id: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=50)
    difficulty: Optional[str] = None
    type: str = Field(..., min_length=1)
    is_active: bool = True
    settings: DeliverySettingsIn = Field(default_factory=DeliverySettingsIn)

    @field_validator("difficulty")
    @classmethod
    def known_difficulty(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in DIFFICULTIES:
            raise ValueError("difficulty must be one of: {}".format(", ".join(DIFFICULTIES)))
        return value


class FixedTestRequest(DefinitionBase):
    mode: Literal["fixed"]
    question_ids: List[str] = Field(..., min_length=1)

    @field_validator("question_ids")
    @classmethod
    def no_repeats(cls, value: List[str]) -> List[str]:
        if len(set(value)) != len(value):
            raise ValueError("question_ids must not repeat")
        return value


class RandomTestRequest(DefinitionBase):
    mode: Literal["random"]
    random_questions_count: int = Field(..., ge=1, le=MAX_RANDOM_QUESTIONS)


# Routes bind this with Body(discriminator="mode")
TestRequest = Union[FixedTestRequest, RandomTestRequest]


# ── Attempts ─────────────────────────────────────────────────

class ResponseIn(BaseModel):
    answer_id: Optional[str] = None
    text_response: Optional[str] = None


class SubmissionRequest(BaseModel):
    """Map of question_id -> response for one attempt."""
    responses: Dict[str, ResponseIn] = Field(default_factory=dict)


class GradeRequest(BaseModel):
    score: float = Field(..., ge=0, le=1)
