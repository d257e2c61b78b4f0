"""
UserResponse model - one answer to one question within one attempt.

Rows are written once at submission. The status tag separates the three
cases a bare score cannot: GRADED (score set), PENDING_REVIEW (manual type,
score NULL until a person grades it) and SKIPPED (nothing submitted).
"""

import uuid
from sqlalchemy import Column, Text, DateTime, ForeignKey, Index, String, Boolean, Float
from sqlalchemy.orm import relationship
from crewtest.database import Base, utcnow

RESPONSE_GRADED = "GRADED"
RESPONSE_PENDING_REVIEW = "PENDING_REVIEW"
RESPONSE_SKIPPED = "SKIPPED"


class UserResponse(Base):
    __tablename__ = "user_responses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    test_attempt_id = Column(String(36), ForeignKey("test_attempts.id", ondelete="CASCADE"),
                             nullable=False)
    question_id = Column(String(36), ForeignKey("questions.id"), nullable=False)
    answer_id = Column(String(36), ForeignKey("answers.id"), nullable=True,
                       doc="Selected option; NULL for text responses and skips")
    text_response = Column(Text, nullable=True)
    score = Column(Float, nullable=True, doc="NULL until manually graded for non-auto types")
    status = Column(String(20), nullable=False, default=RESPONSE_GRADED,
                    doc="GRADED | PENDING_REVIEW | SKIPPED")
    is_marked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)

    attempt = relationship("TestAttempt", back_populates="responses")
    question = relationship("Question")
    answer = relationship("Answer")

    __table_args__ = (
        Index("ix_user_responses_test_attempt_id", "test_attempt_id"),
        Index("ix_user_responses_question_id", "question_id"),
    )

    def __repr__(self):
        return (f"<UserResponse(attempt={self.test_attempt_id}, question={self.question_id}, "
                f"status='{self.status}', score={self.score})>")
