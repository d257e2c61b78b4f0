"""
TestAttempt model - one seafarer's timed run through an assembled test.

Tracks the attempt through statuses:
- IN_PROGRESS: created at start, questions assembled
- COMPLETED: submitted and scored (exactly once)
- EXPIRED: submission arrived after the deadline and was refused
"""

import uuid
import json
from sqlalchemy import Column, Text, DateTime, ForeignKey, Index, String, Boolean, Float
from sqlalchemy.orm import relationship
from crewtest.database import Base, utcnow

STATUS_IN_PROGRESS = "IN_PROGRESS"
STATUS_COMPLETED = "COMPLETED"
STATUS_EXPIRED = "EXPIRED"


class TestAttempt(Base):
    __tablename__ = "test_attempts"
    __test__ = False

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique attempt identifier")
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    test_id = Column(String(36), ForeignKey("tests.id"), nullable=False)
    start_time = Column(DateTime, nullable=False, default=utcnow)
    deadline_at = Column(DateTime, nullable=False,
                         doc="start_time + test duration; checked at submission")
    end_time = Column(DateTime, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=STATUS_IN_PROGRESS,
                    doc="IN_PROGRESS | COMPLETED | EXPIRED")
    score = Column(Float, nullable=True, doc="Percentage, 2 decimals")
    question_order = Column(Text, nullable=False, default="[]",
                            doc="Question ids as JSON, in the order presented to this attempt")
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="attempts")
    test = relationship("Test", back_populates="attempts")
    responses = relationship("UserResponse", back_populates="attempt",
                             cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_test_attempts_user_id", "user_id"),
        Index("ix_test_attempts_test_id", "test_id"),
        Index("ix_test_attempts_created_at", "created_at"),
    )

    @property
    def question_ids(self) -> list:
        """Parse question_order JSON string to a list."""
        if isinstance(self.question_order, list):
            return self.question_order
        try:
            return json.loads(self.question_order) if self.question_order else []
        except (json.JSONDecodeError, TypeError):
            return []

    def __repr__(self):
        return f"<TestAttempt(id={self.id}, user={self.user_id}, test={self.test_id}, status='{self.status}')>"
