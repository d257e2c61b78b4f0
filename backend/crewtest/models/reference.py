"""
Reference data models - positions, ship types and question categories.

These are the human-named lookup tables that questions and tests are scoped
by. Spreadsheet imports resolve free-text names against them.
"""

import uuid
from sqlalchemy import Column, Text, DateTime, String
from crewtest.database import Base, utcnow


class Position(Base):
    """A crew rank/position, e.g. "Chief Officer"."""
    __tablename__ = "positions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique position identifier")
    name = Column(Text, nullable=False, doc="Display name as entered by admins")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<Position(id={self.id}, name='{self.name}')>"


class ShipType(Base):
    """A vessel type, e.g. "Bulk Carrier"."""
    __tablename__ = "ship_types"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique ship type identifier")
    name = Column(Text, nullable=False, doc="Display name as entered by admins")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<ShipType(id={self.id}, name='{self.name}')>"


class Category(Base):
    """A question category, e.g. "Maritime Safety"."""
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique category identifier")
    name = Column(Text, nullable=False, doc="Display name as entered by admins")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"
