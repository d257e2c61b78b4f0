"""
Name Resolution Service - maps human-typed reference names to records.

Used by the spreadsheet import to turn position, ship type and category
names into ids. Resolution order:
1. Exact match, case-insensitive, surrounding whitespace ignored
2. Closest candidate by edit distance, accepted only when
   distance <= min(FUZZY_MAX_DISTANCE, len(candidate) / 3)
3. Create a new record from the raw name, if the caller allows it
4. Otherwise unresolved (the association stays NULL)

Edit distance is a plain Levenshtein computation over the lowercased names.
Short names get a proportionally tighter bound so that "AB" never matches "XY".
"""

from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from crewtest.config import FUZZY_MAX_DISTANCE
from crewtest.logging_config import get_logger, log_with_context

logger = get_logger("import")

EXACT = "exact"
FUZZY = "fuzzy"
CREATED = "created"
UNRESOLVED = "unresolved"
BLANK = "blank"


class Resolution(NamedTuple):
    record: Optional[object]
    method: str
    distance: int = 0


def normalize_name(name) -> str:
    if name is None:
        return ""
    return str(name).strip().lower()


def levenshtein(a: str, b: str) -> int:
    """
    Number of single-character insertions, deletions and substitutions
    needed to turn a into b.
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    # Keep the shorter string as the row to bound memory
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,                        # deletion
                current[j - 1] + 1,                     # insertion
                previous[j - 1] + (char_a != char_b),   # substitution
            ))
        previous = current
    return previous[-1]


def fuzzy_threshold(candidate: str, max_distance: int = FUZZY_MAX_DISTANCE) -> float:
    return min(max_distance, len(candidate) / 3)


class NameResolver:
    """
    Resolves names against one reference table.

    Candidates are loaded once; records created during a batch are added to
    the candidate list so later rows resolve to them exactly.
    """

    def __init__(self, db: Session, model, create_missing: bool = False,
                 max_distance: int = FUZZY_MAX_DISTANCE):
        self.db = db
        self.model = model
        self.create_missing = create_missing
        self.max_distance = max_distance
        self.candidates = db.query(model).all()

    def resolve(self, raw_name) -> Resolution:
        name = str(raw_name).strip() if raw_name is not None else ""
        if not name:
            return Resolution(None, BLANK)

        key = normalize_name(name)

        for candidate in self.candidates:
            if normalize_name(candidate.name) == key:
                return Resolution(candidate, EXACT)

        best, best_distance = None, None
        for candidate in self.candidates:
            distance = levenshtein(key, normalize_name(candidate.name))
            if best is None or distance < best_distance:
                best, best_distance = candidate, distance

        # Only the closest candidate is considered, and only within its own limit
        if best is not None and \
                best_distance <= fuzzy_threshold(normalize_name(best.name), self.max_distance):
            log_with_context(logger, "DEBUG",
                "Fuzzy matched '{}' to '{}' (distance {})".format(name, best.name, best_distance),
                context={"table": self.model.__tablename__})
            return Resolution(best, FUZZY, best_distance)

        if self.create_missing:
            record = self.model(name=name, description="Created by spreadsheet import")
            self.db.add(record)
            self.db.flush()
            self.candidates.append(record)
            log_with_context(logger, "INFO", "Created {} '{}' during import".format(
                self.model.__tablename__, name), context={"id": str(record.id)})
            return Resolution(record, CREATED)

        return Resolution(None, UNRESOLVED)
