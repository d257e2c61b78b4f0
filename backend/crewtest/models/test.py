"""
Test model - a named, timed assessment definition.

A test is either fixed (an ordered list of TestQuestion rows with no attempt
id) or random (a sampling rule: count plus the position, ship type,
difficulty and category filters, resolved afresh for every attempt).
"""

import uuid
from sqlalchemy import Column, Text, Integer, DateTime, String, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship
from crewtest.database import Base, utcnow


class Test(Base):
    """
    SQLAlchemy model for the tests table.

    Deleting a test cascades to its settings and question rows; the service
    layer refuses deletion while attempts exist.
    """
    __tablename__ = "tests"
    # keep pytest from collecting the model
    __test__ = False

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique test identifier")
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    duration = Column(Integer, nullable=False, doc="Time limit in minutes")
    passing_score = Column(Integer, nullable=False, doc="Pass mark, 0-100")
    position_id = Column(String(36), ForeignKey("positions.id"), nullable=True)
    ship_type_id = Column(String(36), ForeignKey("ship_types.id"), nullable=True)
    category = Column(Text, nullable=False, default="")
    difficulty = Column(String(20), nullable=True)
    type = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    is_random = Column(Boolean, nullable=False, default=False)
    random_questions_count = Column(Integer, nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    position = relationship("Position")
    ship_type = relationship("ShipType")
    settings = relationship("TestSettings", back_populates="test", uselist=False,
                            cascade="all, delete-orphan")
    questions = relationship("TestQuestion", back_populates="test",
                             cascade="all, delete-orphan")
    attempts = relationship("TestAttempt", back_populates="test")

    __table_args__ = (
        Index("ix_tests_is_active", "is_active"),
        Index("ix_tests_position_id", "position_id"),
        Index("ix_tests_ship_type_id", "ship_type_id"),
    )

    @property
    def shuffle_questions(self) -> bool:
        return bool(self.settings and self.settings.shuffle_questions)

    @property
    def shuffle_answers(self) -> bool:
        return bool(self.settings and self.settings.shuffle_answers)

    def __repr__(self):
        mode = "random" if self.is_random else "fixed"
        return f"<Test(id={self.id}, title='{self.title}', mode={mode})>"


class TestSettings(Base):
    """Per-test delivery options, one row per test."""
    __tablename__ = "test_settings"
    __test__ = False

    test_id = Column(String(36), ForeignKey("tests.id", ondelete="CASCADE"), primary_key=True)
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    shuffle_answers = Column(Boolean, nullable=False, default=False)
    allow_back = Column(Boolean, nullable=False, default=True)
    show_result_immediately = Column(Boolean, nullable=False, default=True)
    max_attempts = Column(Integer, nullable=True, doc="NULL or 0 means unlimited")

    test = relationship("Test", back_populates="settings")

    def as_dict(self) -> dict:
        return {
            "shuffle_questions": self.shuffle_questions,
            "shuffle_answers": self.shuffle_answers,
            "allow_back": self.allow_back,
            "show_result_immediately": self.show_result_immediately,
            "max_attempts": self.max_attempts,
        }
