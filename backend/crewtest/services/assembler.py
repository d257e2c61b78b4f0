"""
Test Assembler - resolves a test definition into the ordered question list
for exactly one attempt.

Two modes:
1. Fixed: the test's stored TestQuestion rows (test_attempt_id NULL), in
   stored order, or a per-attempt permutation when shuffle_questions is on.
   The stored order is never touched.
2. Random: a fresh sample of min(requested, eligible) distinct questions
   drawn uniformly without replacement from the questions matching the
   test's filter. The sample is persisted as TestQuestion rows tagged with
   the attempt id, so concurrent attempts never see each other's sets.

Filter rules for random mode:
- position: the test's position OR no position (only when the test has one)
- ship type: the test's ship type OR no ship type (only when the test has one)
- difficulty: exact match (when set)
- category: substring match on the question's category name or its
  Category record (when set)
"""

import json
import random
import time
import uuid
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from crewtest.config import DEFAULT_RANDOM_QUESTIONS
from crewtest.database import utcnow
from crewtest.exceptions import AttemptLimitReached, NoEligibleQuestions, NotFound, TestInactive
from crewtest.logging_config import get_logger, log_with_context
from crewtest.models.attempt import TestAttempt, STATUS_IN_PROGRESS
from crewtest.models.question import Question
from crewtest.models.reference import Category
from crewtest.models.test import Test
from crewtest.models.test_question import TestQuestion

# Channel logger for assembly operations
logger = get_logger("assembly")


def build_question_filter(position_id: Optional[str] = None,
                          ship_type_id: Optional[str] = None,
                          difficulty: Optional[str] = None,
                          category: Optional[str] = None) -> list:
    """Build the SQLAlchemy criteria selecting questions eligible for sampling."""
    criteria = [Question.deleted_at.is_(None)]

    if position_id:
        criteria.append(or_(Question.position_id == position_id,
                            Question.position_id.is_(None)))

    if ship_type_id:
        criteria.append(or_(Question.ship_type_id == ship_type_id,
                            Question.ship_type_id.is_(None)))

    if difficulty:
        criteria.append(Question.difficulty == difficulty)

    if category and category.strip():
        pattern = "%{}%".format(category.strip())
        criteria.append(or_(Question.category.ilike(pattern),
                            Question.category_ref.has(Category.name.ilike(pattern))))

    return criteria


def filter_for_test(test) -> list:
    """Criteria for a Test row or any object carrying the same filter fields."""
    return build_question_filter(
        position_id=getattr(test, "position_id", None),
        ship_type_id=getattr(test, "ship_type_id", None),
        difficulty=getattr(test, "difficulty", None),
        category=getattr(test, "category", None),
    )


def count_eligible(db: Session, criteria: list) -> int:
    return db.query(Question).filter(*criteria).count()


def sample_question_ids(db: Session, criteria: list, requested: int,
                        rng: Optional[random.Random] = None) -> List[str]:
    """
    Draw min(requested, eligible) distinct question ids uniformly at random.

    Raises NoEligibleQuestions when nothing matches the criteria.
    """
    rng = rng or random
    # Stable base order so a seeded rng gives a reproducible sample
    eligible_ids = [row[0] for row in
                    db.query(Question.id).filter(*criteria).order_by(Question.id).all()]

    if not eligible_ids:
        raise NoEligibleQuestions(
            "No questions match the selection criteria of this test."
        )

    return rng.sample(eligible_ids, min(requested, len(eligible_ids)))


def static_question_rows(db: Session, test_id: str) -> List[TestQuestion]:
    """The stored, ordered question list of a fixed test."""
    return db.query(TestQuestion).filter(
        TestQuestion.test_id == test_id,
        TestQuestion.test_attempt_id.is_(None)
    ).order_by(TestQuestion.order).all()


def assemble(db: Session, test: Test, attempt: TestAttempt,
             rng: Optional[random.Random] = None) -> List[str]:
    """
    Produce the ordered question ids presented to one attempt.

    Random mode writes ephemeral TestQuestion rows and flushes them; the
    caller owns the transaction.
    """
    rng = rng or random
    start_time = time.time()

    if test.is_random:
        requested = test.random_questions_count or DEFAULT_RANDOM_QUESTIONS
        criteria = filter_for_test(test)
        eligible = count_eligible(db, criteria)

        log_with_context(logger, "DEBUG",
            "Random assembly: {} eligible, {} requested".format(eligible, requested),
            context={"test_id": str(test.id), "attempt_id": str(attempt.id)},
            extra_data={
                "position_id": test.position_id,
                "ship_type_id": test.ship_type_id,
                "difficulty": test.difficulty,
                "category": test.category,
            })

        question_ids = sample_question_ids(db, criteria, requested, rng)

        for order, question_id in enumerate(question_ids, 1):
            db.add(TestQuestion(
                id=str(uuid.uuid4()),
                test_id=test.id,
                question_id=question_id,
                order=order,
                points=1.0,
                test_attempt_id=attempt.id,
            ))
        db.flush()
        mode = "random"
    else:
        question_ids = [row.question_id for row in static_question_rows(db, test.id)]
        if not question_ids:
            raise NoEligibleQuestions("This test has no questions assigned.")

        if test.shuffle_questions:
            question_ids = list(question_ids)
            rng.shuffle(question_ids)
        mode = "fixed"

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Assembled {} questions ({} mode)".format(len(question_ids), mode),
        context={"test_id": str(test.id), "attempt_id": str(attempt.id)},
        extra_data={"duration_ms": round(duration_ms, 2), "count": len(question_ids)})

    return question_ids


def start_attempt(db: Session, test_id: str, user, rng: Optional[random.Random] = None,
                  now=None) -> TestAttempt:
    """
    Create an attempt for user and assemble its questions in one transaction.

    If assembly fails nothing is committed, so no playable attempt exists.
    """
    test = db.query(Test).options(joinedload(Test.settings)).filter(Test.id == test_id).first()
    if not test:
        raise NotFound("Test not found", test_id=test_id)

    if not test.is_active:
        raise TestInactive("This test is not currently available.", test_id=test_id)

    max_attempts = test.settings.max_attempts if test.settings else None
    if max_attempts:
        used = db.query(TestAttempt).filter(
            TestAttempt.test_id == test.id,
            TestAttempt.user_id == user.id
        ).count()
        if used >= max_attempts:
            raise AttemptLimitReached(
                "Maximum number of attempts ({}) reached for this test.".format(max_attempts),
                test_id=test_id)

    now = now or utcnow()
    attempt = TestAttempt(
        id=str(uuid.uuid4()),
        user_id=user.id,
        test_id=test.id,
        start_time=now,
        deadline_at=now + timedelta(minutes=test.duration),
        is_completed=False,
        status=STATUS_IN_PROGRESS,
        created_at=now,
    )
    db.add(attempt)

    try:
        db.flush()
        question_ids = assemble(db, test, attempt, rng)
        attempt.question_order = json.dumps(question_ids)
        db.commit()
    except NoEligibleQuestions:
        db.rollback()
        log_with_context(logger, "WARNING", "Attempt not created: no eligible questions",
                         context={"test_id": str(test_id), "user_id": str(user.id)})
        raise
    except Exception:
        db.rollback()
        log_with_context(logger, "ERROR", "Failed to start attempt",
                         context={"test_id": str(test_id), "user_id": str(user.id)},
                         exc_info=True)
        raise

    db.refresh(attempt)

    log_with_context(logger, "INFO", "Attempt started",
        context={"attempt_id": str(attempt.id), "test_id": str(test.id), "user_id": str(user.id)},
        extra_data={"deadline_at": attempt.deadline_at.isoformat()})

    return attempt


def attempt_question_ids(db: Session, attempt: TestAttempt) -> List[str]:
    """The attempt's assembled list, in the order it was presented."""
    if attempt.question_ids:
        return attempt.question_ids

    rows = db.query(TestQuestion).filter(
        TestQuestion.test_attempt_id == attempt.id
    ).order_by(TestQuestion.order).all()
    if not rows:
        rows = static_question_rows(db, attempt.test_id)
    return [row.question_id for row in rows]


def load_questions(db: Session, question_ids: List[str]) -> dict:
    """Fetch questions with their answers, keyed by id."""
    if not question_ids:
        return {}
    questions = db.query(Question).options(
        joinedload(Question.answers)
    ).filter(Question.id.in_(question_ids)).all()
    return {q.id: q for q in questions}


def presented_questions(db: Session, attempt: TestAttempt, shuffle_answers: bool = False,
                        rng: Optional[random.Random] = None) -> List[dict]:
    """
    Questions as delivered to the seafarer: ordered, answer options optionally
    shuffled, correctness flags withheld.
    """
    rng = rng or random
    question_ids = attempt_question_ids(db, attempt)
    questions = load_questions(db, question_ids)

    presented = []
    for number, question_id in enumerate(question_ids, 1):
        question = questions.get(question_id)
        if question is None:
            continue
        options = [{"id": a.id, "content": a.content} for a in question.answers]
        if shuffle_answers:
            rng.shuffle(options)
        presented.append({
            "number": number,
            "id": question.id,
            "content": question.content,
            "type": question.type,
            "difficulty": question.difficulty,
            "answers": options,
        })
    return presented
