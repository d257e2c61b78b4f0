"""
Scoring Service - grades a submitted attempt and records its responses.

Implements the scoring formula:
1. One response row per assembled question (GRADED, PENDING_REVIEW or SKIPPED)
2. Multiple-choice: 1 if the selected answer is flagged correct, else 0
3. Other types: stored with a NULL score until graded by a person
4. score = round(100 * correct / total_questions, 2)

The denominator is every question in the attempt's assembled list, including
the ones still pending manual review. Mixed-type tests therefore show a
partial automatic score until an admin grades the remaining responses.
"""

import time
import uuid
from datetime import timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session, joinedload

from crewtest.config import SUBMISSION_GRACE_SECONDS
from crewtest.database import utcnow
from crewtest.exceptions import (
    BusinessRuleViolation, DeadlineExceeded, Forbidden, NotFound, RequestValidationFailed
)
from crewtest.logging_config import get_logger, log_with_context
from crewtest.models.attempt import (
    TestAttempt, STATUS_COMPLETED, STATUS_EXPIRED
)
from crewtest.models.test import Test
from crewtest.models.user_response import (
    UserResponse, RESPONSE_GRADED, RESPONSE_PENDING_REVIEW, RESPONSE_SKIPPED
)
from crewtest.services.assembler import attempt_question_ids, load_questions

# Channel logger for scoring operations
logger = get_logger("scoring")


def compute_percentage(correct: float, total: int) -> float:
    """Percentage of total, rounded to 2 decimals. 0.0 for an empty attempt."""
    if total <= 0:
        return 0.0
    return round(100 * correct / total, 2)


def _get_attempt(db: Session, attempt_id: str) -> TestAttempt:
    attempt = db.query(TestAttempt).options(
        joinedload(TestAttempt.test).joinedload(Test.settings)
    ).filter(TestAttempt.id == attempt_id).first()
    if not attempt:
        raise NotFound("Attempt not found", attempt_id=attempt_id)
    return attempt


def _check_owner(attempt: TestAttempt, user, action: str):
    if attempt.user_id != user.id:
        log_with_context(logger, "WARNING",
            "Rejected {} of an attempt owned by another user".format(action),
            context={"attempt_id": str(attempt.id), "user_id": str(user.id)})
        raise Forbidden("You are not allowed to {} this attempt.".format(action))


def _field(response, name):
    if response is None:
        return None
    if isinstance(response, dict):
        return response.get(name)
    return getattr(response, name, None)


def _validate_responses(attempt_id: str, question_ids: list, questions: dict,
                        responses: Dict[str, object]):
    """Reject responses outside the attempt and answers that belong elsewhere."""
    unknown = sorted(set(responses) - set(question_ids))
    if unknown:
        raise RequestValidationFailed(
            "Responses reference questions that are not part of this attempt: {}".format(
                ", ".join(unknown)),
            attempt_id=attempt_id)

    for question_id, response in responses.items():
        answer_id = _field(response, "answer_id")
        question = questions.get(question_id)
        if not answer_id or question is None or not question.is_auto_gradable:
            continue
        if answer_id not in {a.id for a in question.answers}:
            raise RequestValidationFailed(
                "Answer {} does not belong to question {}".format(answer_id, question_id),
                attempt_id=attempt_id)


def submit_attempt(db: Session, attempt_id: str, user, responses: Dict[str, object],
                   now=None) -> TestAttempt:
    """
    Grade and close an attempt.

    Args:
        db: Database session for persistence
        attempt_id: The attempt being submitted
        user: The acting user; must own the attempt
        responses: question_id -> {answer_id | text_response}
        now: Submission time, defaults to the current UTC time

    Returns:
        The completed TestAttempt. Submitting an already completed attempt
        returns it untouched.
    """
    start_time = time.time()
    attempt = _get_attempt(db, attempt_id)
    _check_owner(attempt, user, "submit")

    if attempt.is_completed:
        log_with_context(logger, "INFO", "Attempt already completed, returning stored result",
                         context={"attempt_id": str(attempt.id), "user_id": str(user.id)})
        return attempt

    now = now or utcnow()
    if now > attempt.deadline_at + timedelta(seconds=SUBMISSION_GRACE_SECONDS):
        attempt.end_time = now
        attempt.is_completed = True
        attempt.status = STATUS_EXPIRED
        attempt.score = 0.0
        db.commit()
        log_with_context(logger, "WARNING", "Late submission refused, attempt expired",
            context={"attempt_id": str(attempt.id), "user_id": str(user.id)},
            extra_data={
                "deadline_at": attempt.deadline_at.isoformat(),
                "submitted_at": now.isoformat()
            })
        raise DeadlineExceeded("The time limit for this attempt has passed.",
                               attempt_id=attempt_id)

    responses = responses or {}
    question_ids = attempt_question_ids(db, attempt)
    questions = load_questions(db, question_ids)
    _validate_responses(attempt.id, question_ids, questions, responses)

    correct = 0.0
    counts = {RESPONSE_GRADED: 0, RESPONSE_PENDING_REVIEW: 0, RESPONSE_SKIPPED: 0}

    try:
        for question_id in question_ids:
            question = questions.get(question_id)
            if question is None:
                # Removed from the bank after the attempt started; counts as unanswered
                continue

            response = responses.get(question_id)
            answer_id = _field(response, "answer_id")
            text = (_field(response, "text_response") or "").strip()

            record = UserResponse(
                id=str(uuid.uuid4()),
                test_attempt_id=attempt.id,
                question_id=question_id,
                is_marked=False,
                created_at=now,
            )

            if question.is_auto_gradable:
                if answer_id:
                    answer = next(a for a in question.answers if a.id == answer_id)
                    record.answer_id = answer_id
                    record.score = 1.0 if answer.is_correct else 0.0
                    record.status = RESPONSE_GRADED
                    correct += record.score
                else:
                    record.score = 0.0
                    record.status = RESPONSE_SKIPPED
            elif text:
                record.text_response = text
                record.score = None
                record.status = RESPONSE_PENDING_REVIEW
            else:
                record.score = None
                record.status = RESPONSE_SKIPPED

            counts[record.status] += 1
            db.add(record)

        # Responses are written before the aggregate is computed
        db.flush()

        attempt.score = compute_percentage(correct, len(question_ids))
        attempt.end_time = now
        attempt.is_completed = True
        attempt.status = STATUS_COMPLETED

        db.commit()
    except Exception:
        db.rollback()
        log_with_context(logger, "ERROR", "Submission failed, all writes rolled back",
                         context={"attempt_id": str(attempt_id), "user_id": str(user.id)},
                         exc_info=True)
        raise

    db.refresh(attempt)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Attempt scored: {} (correct={}, total={}, pending={}, skipped={})".format(
            attempt.score, correct, len(question_ids),
            counts[RESPONSE_PENDING_REVIEW], counts[RESPONSE_SKIPPED]),
        context={
            "attempt_id": str(attempt.id),
            "user_id": str(attempt.user_id),
            "test_id": str(attempt.test_id)
        },
        extra_data={"duration_ms": round(duration_ms, 2), "score": attempt.score})

    return attempt


def grade_response(db: Session, response_id: str, score: float) -> UserResponse:
    """
    Record a manual grade for a response pending review and refresh the
    attempt's aggregate using the same formula and denominator.
    """
    response = db.query(UserResponse).options(
        joinedload(UserResponse.attempt)
    ).filter(UserResponse.id == response_id).first()
    if not response:
        raise NotFound("Response not found", response_id=response_id)

    if response.status != RESPONSE_PENDING_REVIEW:
        raise BusinessRuleViolation("Only responses pending review can be graded.",
                                    response_id=response_id)

    attempt = response.attempt
    try:
        response.score = score
        response.status = RESPONSE_GRADED
        db.flush()

        earned = sum(r.score for r in attempt.responses if r.score is not None)
        total = len(attempt_question_ids(db, attempt))
        attempt.score = compute_percentage(earned, total)
        db.commit()
    except Exception:
        db.rollback()
        log_with_context(logger, "ERROR", "Manual grading failed",
                         context={"response_id": str(response_id)}, exc_info=True)
        raise

    db.refresh(response)
    log_with_context(logger, "INFO",
        "Response graded manually: {}; attempt score now {}".format(score, attempt.score),
        context={"response_id": str(response.id), "attempt_id": str(attempt.id)})
    return response


def is_passed(attempt: TestAttempt, test: Test) -> bool:
    return attempt.score is not None and attempt.score >= test.passing_score


def attempt_result(db: Session, attempt_id: str, user) -> dict:
    """
    Result view of an attempt for its owner: aggregate score, pass/fail and,
    when the test shows results immediately, the per-question breakdown in
    presented order.
    """
    attempt = _get_attempt(db, attempt_id)
    _check_owner(attempt, user, "view")

    test = attempt.test
    show_details = test.settings is None or test.settings.show_result_immediately

    result = {
        "attempt_id": str(attempt.id),
        "test_id": str(test.id),
        "test_title": test.title,
        "status": attempt.status,
        "is_completed": attempt.is_completed,
        "start_time": attempt.start_time.isoformat() if attempt.start_time else None,
        "end_time": attempt.end_time.isoformat() if attempt.end_time else None,
        "score": attempt.score,
        "passing_score": test.passing_score,
        "passed": is_passed(attempt, test) if attempt.is_completed else None,
        "pending_review": sum(1 for r in attempt.responses if r.status == RESPONSE_PENDING_REVIEW),
        "details": None,
    }

    if not show_details or not attempt.is_completed:
        return result

    question_ids = attempt_question_ids(db, attempt)
    questions = load_questions(db, question_ids)
    by_question = {r.question_id: r for r in attempt.responses}

    details = []
    for number, question_id in enumerate(question_ids, 1):
        question = questions.get(question_id)
        if question is None:
            continue
        response = by_question.get(question_id)
        correct_answer = next((a for a in question.answers if a.is_correct), None)
        details.append({
            "number": number,
            "question_id": question.id,
            "content": question.content,
            "type": question.type,
            "status": response.status if response else RESPONSE_SKIPPED,
            "answer_id": response.answer_id if response else None,
            "text_response": response.text_response if response else None,
            "score": response.score if response else None,
            "correct_answer_id": correct_answer.id if correct_answer else None,
            "is_correct": (response.score == 1.0) if response and question.is_auto_gradable else None,
            "explanation": question.explanation,
        })
    result["details"] = details
    return result
