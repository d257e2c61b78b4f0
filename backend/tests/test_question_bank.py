"""
Question bank CRUD and deletion rules.
"""
import pytest
from pydantic import ValidationError

from crewtest.exceptions import BusinessRuleViolation, NotFound
from crewtest.models import Answer, Question, TestQuestion
from crewtest.schemas import AnswerIn, QuestionFilter, QuestionIn
from crewtest.services.assembler import start_attempt
from crewtest.services.question_bank import (
    count_matching, create_question, delete_question, has_history, list_questions,
    update_question
)
from crewtest.services.scoring import submit_attempt


def question_payload(refs, **overrides):
    data = {
        "content": "Which signal means abandon ship?",
        "type": "multiple_choice",
        "difficulty": "easy",
        "category_id": refs.safety.id,
        "answers": [
            {"content": "Seven short blasts and one long blast", "is_correct": True},
            {"content": "One prolonged blast", "is_correct": False},
        ],
    }
    data.update(overrides)
    return QuestionIn(**data)


class TestQuestionSchema:

    def test_multiple_choice_needs_one_correct_answer(self, refs):
        with pytest.raises(ValidationError):
            question_payload(refs, answers=[
                {"content": "A", "is_correct": True},
                {"content": "B", "is_correct": True},
            ])

    def test_multiple_choice_needs_two_answers(self, refs):
        with pytest.raises(ValidationError):
            question_payload(refs, answers=[{"content": "A", "is_correct": True}])

    def test_multiple_choice_takes_at_most_four_answers(self, refs):
        answers = [{"content": "Option {}".format(i), "is_correct": i == 5} for i in range(1, 6)]
        with pytest.raises(ValidationError):
            question_payload(refs, answers=answers)
        assert len(question_payload(refs, answers=answers[1:]).answers) == 4

    def test_other_types_take_no_answers(self, refs):
        with pytest.raises(ValidationError):
            question_payload(refs, type="free_text")
        assert question_payload(refs, type="free_text", answers=[]).answers == []

    def test_unknown_type_and_difficulty(self, refs):
        with pytest.raises(ValidationError):
            question_payload(refs, type="crossword")
        with pytest.raises(ValidationError):
            question_payload(refs, difficulty="extreme")


class TestCreateAndUpdate:

    def test_create_copies_category_name(self, db, refs, admin):
        question = create_question(db, question_payload(refs), created_by=admin.id)

        assert question.category == "Maritime Safety"
        assert [a.is_correct for a in question.answers] == [True, False]
        assert [a.sort_order for a in question.answers] == [0, 1]

    def test_unknown_references(self, db, refs):
        with pytest.raises(NotFound):
            create_question(db, question_payload(refs, category_id="missing"))
        with pytest.raises(NotFound):
            create_question(db, question_payload(refs, position_id="missing"))

    def test_update_replaces_answers_without_history(self, db, refs):
        question = create_question(db, question_payload(refs))

        updated = update_question(db, question.id, question_payload(
            refs, content="Updated", category_id=refs.navigation.id, answers=[
                {"content": "X", "is_correct": False},
                {"content": "Y", "is_correct": False},
                {"content": "Z", "is_correct": True},
            ]))

        assert updated.content == "Updated"
        assert updated.category == "Navigation"
        assert [a.content for a in updated.answers] == ["X", "Y", "Z"]
        assert db.query(Answer).count() == 3

    def test_answers_are_frozen_once_answered(self, db, refs, seafarer, make_test):
        question = create_question(db, question_payload(refs))
        test = make_test(question_ids=[question.id])
        attempt = start_attempt(db, test.id, seafarer)
        submit_attempt(db, attempt.id, seafarer, {})

        with pytest.raises(BusinessRuleViolation):
            update_question(db, question.id, question_payload(refs, answers=[
                {"content": "New A", "is_correct": True},
                {"content": "New B", "is_correct": False},
            ]))

        # text edits that keep the answers are still allowed
        updated = update_question(db, question.id, question_payload(refs, content="Reworded"))
        assert updated.content == "Reworded"


class TestDelete:

    def test_hard_delete_without_history(self, db, refs, make_question, make_test):
        question = make_question()
        test = make_test(question_ids=[question.id])

        assert delete_question(db, question.id) == "hard"

        assert db.get(Question, question.id) is None
        assert db.query(Answer).count() == 0
        assert db.query(TestQuestion).filter(TestQuestion.test_id == test.id).count() == 0

    def test_soft_delete_with_responses(self, db, refs, seafarer, make_question, make_test):
        question = make_question()
        test = make_test(question_ids=[question.id])
        attempt = start_attempt(db, test.id, seafarer)
        submit_attempt(db, attempt.id, seafarer, {})

        assert delete_question(db, question.id) == "soft"

        kept = db.get(Question, question.id)
        db.refresh(kept)
        assert kept.deleted_at is not None
        assert len(kept.answers) == 4
        assert list_questions(db) == []
        # the attempted test keeps its question list
        assert [r.question_id for r in db.query(TestQuestion).filter(
            TestQuestion.test_id == test.id)] == [question.id]

    def test_attempted_tests_keep_their_rows(self, db, refs, seafarer, make_question, make_test):
        question = make_question()
        taken = make_test(question_ids=[question.id], title="Taken")
        untouched = make_test(question_ids=[question.id], title="Untouched")
        start_attempt(db, taken.id, seafarer)

        assert delete_question(db, question.id) == "soft"

        assert db.query(TestQuestion).filter(TestQuestion.test_id == taken.id).count() == 1
        assert db.query(TestQuestion).filter(TestQuestion.test_id == untouched.id).count() == 0

    def test_soft_delete_with_random_assignment(self, db, refs, seafarer, make_question,
                                                make_test):
        question = make_question()
        test = make_test(random_count=1)
        start_attempt(db, test.id, seafarer)

        assert has_history(db, question.id) is True
        assert delete_question(db, question.id) == "soft"

    def test_deleted_question_is_not_found(self, db, refs, make_question):
        question = make_question()
        delete_question(db, question.id)
        with pytest.raises(NotFound):
            delete_question(db, question.id)


class TestListing:

    def test_filters(self, db, refs, make_question):
        make_question(content="Lifeboat launching", position=refs.master)
        make_question(content="Radar plotting", category=refs.navigation)
        make_question(content="Oil spill response", type="free_text", ship_type=refs.tanker)

        assert len(list_questions(db)) == 3
        assert [q.content for q in list_questions(db, position_id=refs.master.id)] == \
            ["Lifeboat launching"]
        assert [q.content for q in list_questions(db, category_id=refs.navigation.id)] == \
            ["Radar plotting"]
        assert [q.content for q in list_questions(db, question_type="free_text")] == \
            ["Oil spill response"]
        assert [q.content for q in list_questions(db, search="radar")] == ["Radar plotting"]

    def test_count_matching_uses_random_filter_rules(self, db, refs, make_question):
        make_question(position=refs.master)
        make_question(position=refs.chief_officer)
        make_question()

        assert count_matching(db, QuestionFilter(position_id=refs.master.id)) == 2
        assert count_matching(db, QuestionFilter(category="safety")) == 3
        assert count_matching(db, QuestionFilter(difficulty="hard")) == 0


def test_answer_schema_requires_content():
    with pytest.raises(ValidationError):
        AnswerIn(content="")
