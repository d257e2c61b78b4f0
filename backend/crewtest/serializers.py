"""ORM object -> dict conversion for API responses."""

from crewtest.models.question import Question
from crewtest.models.test import Test
from crewtest.models.attempt import TestAttempt


def _iso(value):
    return value.isoformat() if value else None


def serialize_reference(record) -> dict:
    return {
        "id": str(record.id),
        "name": record.name,
        "description": record.description,
        "created_at": _iso(record.created_at),
    }


def serialize_user(user) -> dict:
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "position_id": user.position_id,
        "ship_type_id": user.ship_type_id,
    }


def serialize_question(question: Question) -> dict:
    """Admin view; includes which answer is correct."""
    return {
        "id": str(question.id),
        "content": question.content,
        "type": question.type,
        "difficulty": question.difficulty,
        "position_id": question.position_id,
        "ship_type_id": question.ship_type_id,
        "category_id": question.category_id,
        "category": question.category,
        "explanation": question.explanation,
        "created_at": _iso(question.created_at),
        "answers": [
            {
                "id": str(a.id),
                "content": a.content,
                "is_correct": a.is_correct,
                "explanation": a.explanation,
            }
            for a in question.answers
        ],
    }


def serialize_test(test: Test, question_count: int = None) -> dict:
    result = {
        "id": str(test.id),
        "title": test.title,
        "description": test.description,
        "duration": test.duration,
        "passing_score": test.passing_score,
        "position_id": test.position_id,
        "ship_type_id": test.ship_type_id,
        "category": test.category,
        "difficulty": test.difficulty,
        "type": test.type,
        "is_active": test.is_active,
        "mode": "random" if test.is_random else "fixed",
        "random_questions_count": test.random_questions_count,
        "settings": test.settings.as_dict() if test.settings else None,
        "created_at": _iso(test.created_at),
    }
    if question_count is not None:
        result["question_count"] = question_count
    return result


def serialize_attempt(attempt: TestAttempt) -> dict:
    return {
        "id": str(attempt.id),
        "test_id": str(attempt.test_id),
        "user_id": str(attempt.user_id),
        "status": attempt.status,
        "is_completed": attempt.is_completed,
        "start_time": _iso(attempt.start_time),
        "deadline_at": _iso(attempt.deadline_at),
        "end_time": _iso(attempt.end_time),
        "score": attempt.score,
    }
