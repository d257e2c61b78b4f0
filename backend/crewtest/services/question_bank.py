"""
Question bank operations - create, update, delete and filter questions.

Questions that appear in response history are never removed: deletion marks
them with deleted_at so past attempts keep their references.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from crewtest.database import utcnow
from crewtest.exceptions import BusinessRuleViolation, NotFound
from crewtest.logging_config import get_logger, log_with_context
from crewtest.models.attempt import TestAttempt
from crewtest.models.question import Answer, Question
from crewtest.models.reference import Category, Position, ShipType
from crewtest.models.test_question import TestQuestion
from crewtest.models.user_response import UserResponse
from crewtest.schemas import QuestionFilter, QuestionIn
from crewtest.services.assembler import build_question_filter, count_eligible

db_logger = get_logger("db")


def get_or_404(db: Session, model, record_id: Optional[str], label: str):
    """Load a record by id or raise NotFound naming what was missing."""
    record = db.query(model).filter(model.id == record_id).first()
    if not record:
        raise NotFound("{} not found".format(label), id=record_id)
    return record


def get_question(db: Session, question_id: str) -> Question:
    question = db.query(Question).options(joinedload(Question.answers)).filter(
        Question.id == question_id,
        Question.deleted_at.is_(None)
    ).first()
    if not question:
        raise NotFound("Question not found", id=question_id)
    return question


def _resolve_references(db: Session, payload: QuestionIn) -> Category:
    if payload.position_id:
        get_or_404(db, Position, payload.position_id, "Position")
    if payload.ship_type_id:
        get_or_404(db, ShipType, payload.ship_type_id, "Ship type")
    return get_or_404(db, Category, payload.category_id, "Category")


def _build_answers(payload: QuestionIn) -> list:
    return [
        Answer(content=a.content, is_correct=a.is_correct,
               explanation=a.explanation, sort_order=index)
        for index, a in enumerate(payload.answers)
    ]


def has_history(db: Session, question_id: str) -> bool:
    """True when any attempt has answered or sampled this question."""
    if db.query(UserResponse.id).filter(UserResponse.question_id == question_id).first():
        return True
    return db.query(TestQuestion.id).filter(
        TestQuestion.question_id == question_id,
        TestQuestion.test_attempt_id.isnot(None)
    ).first() is not None


def create_question(db: Session, payload: QuestionIn, created_by: Optional[str] = None) -> Question:
    category = _resolve_references(db, payload)

    question = Question(
        content=payload.content.strip(),
        type=payload.type,
        difficulty=payload.difficulty,
        position_id=payload.position_id,
        ship_type_id=payload.ship_type_id,
        category_id=category.id,
        category=category.name,
        explanation=payload.explanation,
        created_by=created_by,
        answers=_build_answers(payload),
    )
    db.add(question)
    try:
        db.commit()
    except Exception:
        db.rollback()
        log_with_context(db_logger, "ERROR", "Failed to create question", exc_info=True)
        raise
    db.refresh(question)

    log_with_context(db_logger, "INFO", "Created question",
                     context={"question_id": str(question.id)},
                     extra_data={"type": question.type, "answers": len(question.answers)})
    return question


def update_question(db: Session, question_id: str, payload: QuestionIn) -> Question:
    """
    Replace a question's fields and answer options.

    Answer options of a question with response history cannot be replaced,
    since past responses point at them.
    """
    question = get_question(db, question_id)
    category = _resolve_references(db, payload)

    old_answers = [(a.content, a.is_correct, a.explanation) for a in question.answers]
    new_answers = [(a.content, a.is_correct, a.explanation) for a in payload.answers]
    if old_answers != new_answers and has_history(db, question.id):
        raise BusinessRuleViolation(
            "Answer options cannot be changed once the question has been answered.",
            question_id=question_id)

    try:
        question.content = payload.content.strip()
        question.type = payload.type
        question.difficulty = payload.difficulty
        question.position_id = payload.position_id
        question.ship_type_id = payload.ship_type_id
        question.category_id = category.id
        question.category = category.name
        question.explanation = payload.explanation
        if old_answers != new_answers:
            question.answers = _build_answers(payload)
        db.commit()
    except Exception:
        db.rollback()
        log_with_context(db_logger, "ERROR", "Failed to update question",
                         context={"question_id": str(question_id)}, exc_info=True)
        raise
    db.refresh(question)
    return question


def delete_question(db: Session, question_id: str) -> str:
    """
    Remove a question from the bank and from the fixed test lists that can
    still change.

    Fixed tests that already have attempts keep their rows, and the question
    is then soft-deleted like one with response history.

    Returns "soft" when history forced a soft delete, "hard" otherwise.
    """
    question = get_question(db, question_id)
    attempted_tests = select(TestAttempt.test_id).distinct()

    try:
        db.query(TestQuestion).filter(
            TestQuestion.question_id == question.id,
            TestQuestion.test_attempt_id.is_(None),
            TestQuestion.test_id.notin_(attempted_tests)
        ).delete(synchronize_session=False)

        kept = db.query(TestQuestion.id).filter(
            TestQuestion.question_id == question.id,
            TestQuestion.test_attempt_id.is_(None)
        ).first() is not None

        if kept or has_history(db, question.id):
            question.deleted_at = utcnow()
            mode = "soft"
        else:
            db.delete(question)
            mode = "hard"
        db.commit()
    except Exception:
        db.rollback()
        log_with_context(db_logger, "ERROR", "Failed to delete question",
                         context={"question_id": str(question_id)}, exc_info=True)
        raise

    log_with_context(db_logger, "INFO", "Deleted question ({})".format(mode),
                     context={"question_id": str(question_id)})
    return mode


def list_questions(db: Session, position_id: Optional[str] = None,
                   ship_type_id: Optional[str] = None, category_id: Optional[str] = None,
                   question_type: Optional[str] = None, search: Optional[str] = None) -> list:
    query = db.query(Question).options(joinedload(Question.answers)).filter(
        Question.deleted_at.is_(None)
    )
    if position_id:
        query = query.filter(Question.position_id == position_id)
    if ship_type_id:
        query = query.filter(Question.ship_type_id == ship_type_id)
    if category_id:
        query = query.filter(Question.category_id == category_id)
    if question_type:
        query = query.filter(Question.type == question_type)
    if search:
        query = query.filter(Question.content.ilike("%{}%".format(search)))
    return query.order_by(Question.created_at.desc()).all()


def count_matching(db: Session, filters: QuestionFilter) -> int:
    """Questions a random test with these filters could draw from."""
    criteria = build_question_filter(
        position_id=filters.position_id,
        ship_type_id=filters.ship_type_id,
        difficulty=filters.difficulty,
        category=filters.category,
    )
    return count_eligible(db, criteria)
