from crewtest.models.reference import Position, ShipType, Category
from crewtest.models.user import User
from crewtest.models.question import Question, Answer
from crewtest.models.test import Test, TestSettings
from crewtest.models.test_question import TestQuestion
from crewtest.models.attempt import TestAttempt
from crewtest.models.user_response import UserResponse

__all__ = [
    "Position", "ShipType", "Category", "User", "Question", "Answer",
    "Test", "TestSettings", "TestQuestion", "TestAttempt", "UserResponse",
]
