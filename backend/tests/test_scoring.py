"""
Scoring: submission grading, deadlines, manual grading and result views.
"""
from datetime import timedelta

import pytest

from crewtest.config import SUBMISSION_GRACE_SECONDS
from crewtest.exceptions import (
    BusinessRuleViolation, DeadlineExceeded, Forbidden, RequestValidationFailed
)
from crewtest.models import TestAttempt, UserResponse
from crewtest.models.question import FREE_TEXT, SCENARIO
from crewtest.services.assembler import start_attempt
from crewtest.services.question_bank import delete_question
from crewtest.services.scoring import (
    attempt_result, compute_percentage, grade_response, submit_attempt
)


def correct_answer(question):
    return next(a for a in question.answers if a.is_correct)


def wrong_answer(question):
    return next(a for a in question.answers if not a.is_correct)


@pytest.fixture
def mc_test(db, seafarer, make_question, make_test):
    """Three multiple-choice questions and a started attempt."""
    questions = [make_question() for _ in range(3)]
    test = make_test(question_ids=[q.id for q in questions], passing_score=60)
    attempt = start_attempt(db, test.id, seafarer)
    return test, attempt, questions


class TestComputePercentage:

    def test_rounds_to_two_decimals(self):
        assert compute_percentage(2, 3) == 66.67
        assert compute_percentage(1, 3) == 33.33

    def test_full_and_empty(self):
        assert compute_percentage(4, 4) == 100.0
        assert compute_percentage(0, 4) == 0.0

    def test_empty_attempt_scores_zero(self):
        assert compute_percentage(0, 0) == 0.0


class TestSubmit:

    def test_all_correct(self, db, seafarer, mc_test):
        test, attempt, questions = mc_test
        responses = {q.id: {"answer_id": correct_answer(q).id} for q in questions}

        result = submit_attempt(db, attempt.id, seafarer, responses)

        assert result.score == 100.0
        assert result.is_completed is True
        assert result.status == "COMPLETED"
        assert result.end_time is not None

    def test_partial_with_unanswered(self, db, seafarer, mc_test):
        test, attempt, questions = mc_test
        responses = {
            questions[0].id: {"answer_id": correct_answer(questions[0]).id},
            questions[1].id: {"answer_id": wrong_answer(questions[1]).id},
        }

        result = submit_attempt(db, attempt.id, seafarer, responses)

        assert result.score == 33.33
        rows = {r.question_id: r for r in db.query(UserResponse).all()}
        assert len(rows) == 3
        assert rows[questions[0].id].score == 1.0
        assert rows[questions[0].id].status == "GRADED"
        assert rows[questions[1].id].score == 0.0
        assert rows[questions[2].id].status == "SKIPPED"
        assert rows[questions[2].id].answer_id is None

    def test_empty_submission_scores_zero(self, db, seafarer, mc_test):
        test, attempt, questions = mc_test

        result = submit_attempt(db, attempt.id, seafarer, {})

        assert result.score == 0.0
        assert result.status == "COMPLETED"

    def test_free_text_stays_in_denominator(self, db, seafarer, make_question, make_test):
        mc = make_question()
        essay = make_question(type=FREE_TEXT)
        test = make_test(question_ids=[mc.id, essay.id])
        attempt = start_attempt(db, test.id, seafarer)

        result = submit_attempt(db, attempt.id, seafarer, {
            mc.id: {"answer_id": correct_answer(mc).id},
            essay.id: {"text_response": "Sound the general alarm and muster."},
        })

        assert result.score == 50.0
        pending = db.query(UserResponse).filter(UserResponse.question_id == essay.id).one()
        assert pending.status == "PENDING_REVIEW"
        assert pending.score is None
        assert pending.text_response == "Sound the general alarm and muster."

    def test_other_owner_is_rejected(self, db, other_seafarer, mc_test):
        test, attempt, questions = mc_test
        with pytest.raises(Forbidden):
            submit_attempt(db, attempt.id, other_seafarer, {})

    def test_answer_from_another_question(self, db, seafarer, mc_test):
        test, attempt, questions = mc_test
        responses = {questions[0].id: {"answer_id": correct_answer(questions[1]).id}}

        with pytest.raises(RequestValidationFailed):
            submit_attempt(db, attempt.id, seafarer, responses)

        db.refresh(attempt)
        assert attempt.status == "IN_PROGRESS"
        assert db.query(UserResponse).count() == 0

    def test_question_outside_attempt(self, db, seafarer, make_question, mc_test):
        test, attempt, questions = mc_test
        stranger = make_question()

        with pytest.raises(RequestValidationFailed):
            submit_attempt(db, attempt.id, seafarer,
                           {stranger.id: {"answer_id": correct_answer(stranger).id}})

    def test_resubmission_returns_stored_result(self, db, seafarer, mc_test):
        test, attempt, questions = mc_test
        first = submit_attempt(db, attempt.id, seafarer,
                               {questions[0].id: {"answer_id": correct_answer(questions[0]).id}})
        first_score = first.score

        again = submit_attempt(db, attempt.id, seafarer,
                               {q.id: {"answer_id": correct_answer(q).id} for q in questions})

        assert again.score == first_score
        assert db.query(UserResponse).count() == 3

    def test_within_grace_is_accepted(self, db, seafarer, mc_test):
        test, attempt, questions = mc_test
        now = attempt.deadline_at + timedelta(seconds=max(SUBMISSION_GRACE_SECONDS - 1, 0))

        result = submit_attempt(db, attempt.id, seafarer, {}, now=now)
        assert result.status == "COMPLETED"

    def test_late_submission_expires_attempt(self, db, seafarer, mc_test):
        test, attempt, questions = mc_test
        now = attempt.deadline_at + timedelta(seconds=SUBMISSION_GRACE_SECONDS + 1)
        responses = {q.id: {"answer_id": correct_answer(q).id} for q in questions}

        with pytest.raises(DeadlineExceeded):
            submit_attempt(db, attempt.id, seafarer, responses, now=now)

        expired = db.get(TestAttempt, attempt.id)
        db.refresh(expired)
        assert expired.status == "EXPIRED"
        assert expired.is_completed is True
        assert expired.score == 0.0
        assert db.query(UserResponse).count() == 0

    def test_removed_question_still_counts(self, db, seafarer, mc_test):
        # Deleted after the attempt started: still scored, unanswered counts as 0
        test, attempt, questions = mc_test
        delete_question(db, questions[2].id)

        result = submit_attempt(db, attempt.id, seafarer,
                                {q.id: {"answer_id": correct_answer(q).id} for q in questions[:2]})
        assert result.score == 66.67


class TestManualGrading:

    @pytest.fixture
    def pending(self, db, seafarer, make_question, make_test):
        mc = make_question()
        scenario = make_question(type=SCENARIO)
        test = make_test(question_ids=[mc.id, scenario.id])
        attempt = start_attempt(db, test.id, seafarer)
        submit_attempt(db, attempt.id, seafarer, {
            mc.id: {"answer_id": correct_answer(mc).id},
            scenario.id: {"text_response": "Reduce speed and call the master."},
        })
        response = db.query(UserResponse).filter(UserResponse.question_id == scenario.id).one()
        return attempt, response, mc

    def test_grade_recomputes_attempt_score(self, db, pending):
        attempt, response, mc = pending

        graded = grade_response(db, response.id, 1.0)

        assert graded.status == "GRADED"
        assert graded.score == 1.0
        db.refresh(attempt)
        assert attempt.score == 100.0

    def test_partial_credit(self, db, pending):
        attempt, response, mc = pending
        grade_response(db, response.id, 0.5)
        db.refresh(attempt)
        assert attempt.score == 75.0

    def test_only_pending_responses_can_be_graded(self, db, pending):
        attempt, response, mc = pending
        auto = db.query(UserResponse).filter(UserResponse.question_id == mc.id).one()

        with pytest.raises(BusinessRuleViolation):
            grade_response(db, auto.id, 0.0)


class TestResultView:

    def test_details_follow_presented_order(self, db, seafarer, mc_test):
        test, attempt, questions = mc_test
        submit_attempt(db, attempt.id, seafarer,
                       {questions[1].id: {"answer_id": wrong_answer(questions[1]).id}})

        result = attempt_result(db, attempt.id, seafarer)

        assert result["passed"] is False
        assert [d["question_id"] for d in result["details"]] == attempt.question_ids
        detail = result["details"][1]
        assert detail["is_correct"] is False
        assert detail["correct_answer_id"] == correct_answer(questions[1]).id
        assert result["details"][0]["status"] == "SKIPPED"

    def test_passed_flag(self, db, seafarer, mc_test):
        test, attempt, questions = mc_test
        submit_attempt(db, attempt.id, seafarer,
                       {q.id: {"answer_id": correct_answer(q).id} for q in questions[:2]})

        result = attempt_result(db, attempt.id, seafarer)
        assert result["score"] == 66.67
        assert result["passed"] is True

    def test_hidden_results(self, db, seafarer, make_question, make_test):
        question = make_question()
        test = make_test(question_ids=[question.id], show_result_immediately=False)
        attempt = start_attempt(db, test.id, seafarer)
        submit_attempt(db, attempt.id, seafarer, {})

        assert attempt_result(db, attempt.id, seafarer)["details"] is None

    def test_admin_is_not_the_owner(self, db, seafarer, admin, mc_test):
        test, attempt, questions = mc_test
        submit_attempt(db, attempt.id, seafarer, {})

        with pytest.raises(Forbidden):
            attempt_result(db, attempt.id, admin)

    def test_in_progress_has_no_details(self, db, seafarer, mc_test):
        test, attempt, questions = mc_test
        result = attempt_result(db, attempt.id, seafarer)
        assert result["details"] is None
        assert result["passed"] is None

    def test_other_seafarer_cannot_view(self, db, other_seafarer, mc_test):
        test, attempt, questions = mc_test
        with pytest.raises(Forbidden):
            attempt_result(db, attempt.id, other_seafarer)
