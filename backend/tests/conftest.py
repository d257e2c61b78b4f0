"""
Pytest configuration and shared fixtures.

Each test gets its own SQLite database file with foreign keys enforced, a
session bound to it, and an API client whose requests use the same database.
"""
import os

# Point the app at a throwaway database before anything imports it
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import uuid
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from crewtest.database import Base, get_db, set_sqlite_pragma
from crewtest.main import app
from crewtest.models import (
    Answer, Category, Position, Question, ShipType, Test, TestQuestion, TestSettings, User
)
from crewtest.models.question import MULTIPLE_CHOICE
from crewtest.models.user import ROLE_ADMIN, ROLE_SEAFARER


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        "sqlite:///{}".format(tmp_path / "crew_testing.db"),
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", set_sqlite_pragma)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ==================== Seed data ====================

@pytest.fixture
def refs(db):
    """Two positions, two ship types and two categories."""
    data = SimpleNamespace(
        master=Position(name="Master"),
        chief_officer=Position(name="Chief Officer"),
        bulk=ShipType(name="Bulk Carrier"),
        tanker=ShipType(name="Oil Tanker"),
        safety=Category(name="Maritime Safety"),
        navigation=Category(name="Navigation"),
    )
    db.add_all(vars(data).values())
    db.commit()
    return data


@pytest.fixture
def admin(db):
    user = User(name="Port Captain", email="admin@example.com", role=ROLE_ADMIN)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def seafarer(db, refs):
    user = User(name="Nguyen Van A", role=ROLE_SEAFARER,
                position_id=refs.master.id, ship_type_id=refs.bulk.id)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def other_seafarer(db, refs):
    user = User(name="Tran Van B", role=ROLE_SEAFARER,
                position_id=refs.master.id, ship_type_id=refs.bulk.id)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def make_question(db, refs):
    """Factory for questions; multiple-choice ones get 4 options, the first correct."""
    def _make(content=None, type=MULTIPLE_CHOICE, difficulty="medium", position=None,
              ship_type=None, category=None, correct_index=0):
        category = category or refs.safety
        answers = []
        if type == MULTIPLE_CHOICE:
            answers = [
                Answer(content="Option {}".format(i + 1), is_correct=(i == correct_index),
                       sort_order=i)
                for i in range(4)
            ]
        question = Question(
            content=content or "Question {}".format(uuid.uuid4().hex[:8]),
            type=type,
            difficulty=difficulty,
            position_id=position.id if position else None,
            ship_type_id=ship_type.id if ship_type else None,
            category_id=category.id,
            category=category.name,
            answers=answers,
        )
        db.add(question)
        db.commit()
        return question
    return _make


@pytest.fixture
def make_test(db):
    """Factory for tests written straight to the database."""
    def _make(question_ids=None, random_count=None, title="Safety drill", duration=30,
              passing_score=60, is_active=True, position=None, ship_type=None,
              difficulty=None, category="", **settings):
        test = Test(
            title=title,
            description="Test description",
            duration=duration,
            passing_score=passing_score,
            position_id=position.id if position else None,
            ship_type_id=ship_type.id if ship_type else None,
            category=category,
            difficulty=difficulty,
            type="certification",
            is_active=is_active,
            is_random=random_count is not None,
            random_questions_count=random_count,
            settings=TestSettings(**settings),
        )
        for order, question_id in enumerate(question_ids or [], 1):
            test.questions.append(TestQuestion(question_id=question_id, order=order))
        db.add(test)
        db.commit()
        return test
    return _make
