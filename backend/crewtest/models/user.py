"""
User model - administrators and seafarers.

Authentication lives outside this service; a User row only carries the
profile needed here: the role, and for seafarers the position and ship type
that scope which tests they can see.
"""

import uuid
from sqlalchemy import Column, Text, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from crewtest.database import Base, utcnow

ROLE_ADMIN = "admin"
ROLE_SEAFARER = "seafarer"
ROLES = (ROLE_ADMIN, ROLE_SEAFARER)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique user identifier")
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    role = Column(String(20), nullable=False, default=ROLE_SEAFARER,
                  doc="admin | seafarer")
    position_id = Column(String(36), ForeignKey("positions.id"), nullable=True,
                         doc="Seafarer's current position, used to scope visible tests")
    ship_type_id = Column(String(36), ForeignKey("ship_types.id"), nullable=True,
                          doc="Seafarer's current ship type, used to scope visible tests")
    created_at = Column(DateTime, default=utcnow)

    position = relationship("Position")
    ship_type = relationship("ShipType")
    attempts = relationship("TestAttempt", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self):
        return f"<User(id={self.id}, name='{self.name}', role='{self.role}')>"
