"""
Statistics Service - per-test score analytics for administrators.

Computed over completed attempts (COMPLETED and EXPIRED); attempts still in
progress are ignored. Scores are bucketed into ten bands of width 10, with
100 falling into the last band.
"""

from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from crewtest.database import utcnow
from crewtest.logging_config import get_logger, log_with_context
from crewtest.models.attempt import TestAttempt
from crewtest.services.scoring import is_passed
from crewtest.services.test_definitions import get_test

logger = get_logger("stats")

TIMELINE_DAYS = 30
SCORE_LABELS = ["0-10"] + ["{}-{}".format(low + 1, low + 10) for low in range(10, 100, 10)]


def score_bucket(score: float) -> int:
    return min(int(score // 10), 9)


def completed_attempts(db: Session, test_id: str) -> list:
    return db.query(TestAttempt).options(
        joinedload(TestAttempt.user)
    ).filter(
        TestAttempt.test_id == test_id,
        TestAttempt.is_completed.is_(True)
    ).order_by(TestAttempt.end_time.desc()).all()


def compute_statistics(db: Session, test_id: str, today: Optional[date] = None) -> dict:
    test = get_test(db, test_id)
    attempts = completed_attempts(db, test.id)
    today = today or utcnow().date()

    scores = [a.score or 0.0 for a in attempts]
    total = len(scores)
    pass_count = sum(1 for a in attempts if is_passed(a, test))

    distribution = [0] * len(SCORE_LABELS)
    for score in scores:
        distribution[score_bucket(score)] += 1

    days = [today - timedelta(days=offset) for offset in range(TIMELINE_DAYS - 1, -1, -1)]
    per_day = {day: 0 for day in days}
    for attempt in attempts:
        finished = attempt.end_time or attempt.start_time
        if finished and finished.date() in per_day:
            per_day[finished.date()] += 1

    stats = {
        "test_id": test.id,
        "title": test.title,
        "passing_score": test.passing_score,
        "total_attempts": total,
        "avg_score": round(sum(scores) / total, 2) if total else 0.0,
        "highest_score": max(scores) if total else 0.0,
        "lowest_score": min(scores) if total else 0.0,
        "pass_count": pass_count,
        "fail_count": total - pass_count,
        "pass_rate": round(100 * pass_count / total, 2) if total else 0.0,
        "score_labels": SCORE_LABELS,
        "score_distribution": distribution if total else [],
        "date_labels": [day.strftime("%d/%m") for day in days] if total else [],
        "time_data": [per_day[day] for day in days] if total else [],
    }

    log_with_context(logger, "INFO",
        "Statistics computed: {} completed attempts".format(total),
        context={"test_id": str(test.id)},
        extra_data={"avg_score": stats["avg_score"], "pass_rate": stats["pass_rate"]})
    return stats


def list_results(db: Session, test_id: str) -> list:
    """Completed attempts of a test, newest first, with pass/fail."""
    test = get_test(db, test_id)
    return [
        {
            "attempt_id": a.id,
            "user_id": a.user_id,
            "user_name": a.user.name if a.user else None,
            "status": a.status,
            "score": a.score,
            "passed": is_passed(a, test),
            "start_time": a.start_time.isoformat() if a.start_time else None,
            "end_time": a.end_time.isoformat() if a.end_time else None,
        }
        for a in completed_attempts(db, test.id)
    ]
