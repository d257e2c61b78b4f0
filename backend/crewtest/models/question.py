"""
Question bank models - questions and their answer options.

A multiple-choice question owns two or more Answer rows; the rows flagged
is_correct form its correct set. Every other question type is graded by a
person and has no Answer rows.
"""

import uuid
from sqlalchemy import Column, Text, DateTime, ForeignKey, Index, String, Boolean, Integer
from sqlalchemy.orm import relationship
from crewtest.database import Base, utcnow

MULTIPLE_CHOICE = "multiple_choice"
FREE_TEXT = "free_text"
SCENARIO = "scenario"
SIMULATION = "simulation"
PRACTICAL = "practical"

QUESTION_TYPES = (MULTIPLE_CHOICE, FREE_TEXT, SCENARIO, SIMULATION, PRACTICAL)
AUTO_GRADABLE_TYPES = (MULTIPLE_CHOICE,)

DIFFICULTIES = ("easy", "medium", "hard")


class Question(Base):
    """
    SQLAlchemy model for the questions table.

    Questions referenced by response history are never removed; they get a
    deleted_at timestamp instead and drop out of every bank query.
    """
    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique question identifier")
    content = Column(Text, nullable=False, doc="Question text shown to the seafarer")
    type = Column(String(30), nullable=False, default=MULTIPLE_CHOICE,
                  doc="multiple_choice | free_text | scenario | simulation | practical")
    difficulty = Column(String(20), nullable=False, default="medium",
                        doc="easy | medium | hard")
    position_id = Column(String(36), ForeignKey("positions.id"), nullable=True)
    ship_type_id = Column(String(36), ForeignKey("ship_types.id"), nullable=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    category = Column(Text, nullable=True,
                      doc="Category name copied at write time, used by substring filters")
    explanation = Column(Text, nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    deleted_at = Column(DateTime, nullable=True,
                        doc="Soft-delete marker for questions with response history")

    position = relationship("Position")
    ship_type = relationship("ShipType")
    category_ref = relationship("Category")
    answers = relationship("Answer", back_populates="question",
                           cascade="all, delete-orphan", order_by="Answer.sort_order")

    __table_args__ = (
        Index("ix_questions_position_id", "position_id"),
        Index("ix_questions_ship_type_id", "ship_type_id"),
        Index("ix_questions_category_id", "category_id"),
        Index("ix_questions_difficulty", "difficulty"),
    )

    @property
    def is_auto_gradable(self) -> bool:
        return self.type in AUTO_GRADABLE_TYPES

    def __repr__(self):
        return f"<Question(id={self.id}, type='{self.type}', difficulty='{self.difficulty}')>"


class Answer(Base):
    """One option of a multiple-choice question."""
    __tablename__ = "answers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique answer identifier")
    question_id = Column(String(36), ForeignKey("questions.id", ondelete="CASCADE"),
                         nullable=False)
    content = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    explanation = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0,
                      doc="Authoring order of the option within its question")

    question = relationship("Question", back_populates="answers")

    __table_args__ = (
        Index("ix_answers_question_id", "question_id"),
    )

    def __repr__(self):
        return f"<Answer(id={self.id}, question={self.question_id}, correct={self.is_correct})>"
