"""
Spreadsheet import/export of the question bank.

Workbook layout (first sheet, header on row 1, 11 columns):
    A Question text      B Type          C Difficulty
    D Position           E Ship type     F Category
    G-J Options 1-4      K Correct option (1-4)

Import runs as a single transaction: rows with bad data are counted as
errors and skipped, but an unexpected exception rolls back every row.
Exports add reference sheets listing the valid position, ship type and
category names.
"""

import time
import zipfile
from dataclasses import dataclass
from io import BytesIO
from typing import Iterable, List, Optional, Tuple

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.datavalidation import DataValidation
from sqlalchemy.orm import Session, joinedload

from crewtest.config import (
    IMPORT_CREATE_CATEGORIES, IMPORT_CREATE_POSITIONS, IMPORT_CREATE_SHIP_TYPES
)
from crewtest.exceptions import ImportFailed, RequestValidationFailed
from crewtest.logging_config import get_logger, log_with_context
from crewtest.models.question import (
    Answer, Question, DIFFICULTIES, MULTIPLE_CHOICE, FREE_TEXT, SCENARIO, SIMULATION,
    PRACTICAL, QUESTION_TYPES
)
from crewtest.models.reference import Category, Position, ShipType
from crewtest.services.name_resolution import (
    NameResolver, FUZZY, CREATED, UNRESOLVED
)

logger = get_logger("import")

COLUMNS = [
    ("Question", 50),
    ("Type", 18),
    ("Difficulty", 15),
    ("Position", 20),
    ("Ship Type", 20),
    ("Category", 20),
    ("Option 1", 30),
    ("Option 2", 30),
    ("Option 3", 30),
    ("Option 4", 30),
    ("Correct Option (1-4)", 20),
]
OPTION_COLUMNS = range(6, 10)
CORRECT_COLUMN = 10

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(fill_type="solid", start_color="4472C4", end_color="4472C4")

# Spreadsheet labels admins actually type, normalised to lowercase
TYPE_ALIASES = {
    "multiple_choice": MULTIPLE_CHOICE, "multiple choice": MULTIPLE_CHOICE,
    "mcq": MULTIPLE_CHOICE, "single choice": MULTIPLE_CHOICE, "trắc nghiệm": MULTIPLE_CHOICE,
    "free_text": FREE_TEXT, "free text": FREE_TEXT, "essay": FREE_TEXT, "tự luận": FREE_TEXT,
    "scenario": SCENARIO, "situation": SCENARIO, "tình huống": SCENARIO,
    "simulation": SIMULATION, "mô phỏng": SIMULATION,
    "practical": PRACTICAL, "practice": PRACTICAL, "thực hành": PRACTICAL,
}
DIFFICULTY_ALIASES = {
    "easy": "easy", "dễ": "easy",
    "medium": "medium", "normal": "medium", "trung bình": "medium",
    "hard": "hard", "difficult": "hard", "khó": "hard",
}

SAMPLE_ROW = [
    "A person has fallen overboard. What is the first action to take?",
    MULTIPLE_CHOICE, "medium", "Master", "Bulk Carrier", "Maritime Safety",
    "Raise the man-overboard alarm", "Throw a lifebuoy",
    "Inform the master", "Stop the engine", 1,
]


@dataclass
class ImportOptions:
    skip_duplicates: bool = True
    create_categories: bool = IMPORT_CREATE_CATEGORIES
    create_positions: bool = IMPORT_CREATE_POSITIONS
    create_ship_types: bool = IMPORT_CREATE_SHIP_TYPES


def _empty_summary() -> dict:
    return {
        "imported_count": 0,
        "skipped_count": 0,
        "error_count": 0,
        "errors": [],
        "warnings": [],
    }


def cell_text(values: tuple, index: int) -> str:
    """Cell value as trimmed text; whole floats lose their '.0'."""
    value = values[index] if index < len(values) else None
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def normalize_type(label: str) -> Optional[str]:
    if not label:
        return MULTIPLE_CHOICE
    return TYPE_ALIASES.get(" ".join(label.lower().split()))


def normalize_difficulty(label: str) -> Optional[str]:
    if not label:
        return "medium"
    return DIFFICULTY_ALIASES.get(" ".join(label.lower().split()))


def parse_workbook(data: bytes) -> List[Tuple[int, tuple]]:
    """Read the first sheet, skipping the header, as (row_number, values)."""
    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
        raise RequestValidationFailed("Could not read the uploaded workbook: {}".format(e))

    try:
        sheet = workbook.active
        return [
            (row_number, tuple(values))
            for row_number, values in enumerate(sheet.iter_rows(min_row=2, values_only=True), 2)
        ]
    finally:
        workbook.close()


def _note_resolution(resolution, raw_name: str, label: str, row_number: int, warnings: list):
    if resolution.method == FUZZY:
        warnings.append("Row {}: {} '{}' matched to existing '{}'".format(
            row_number, label, raw_name, resolution.record.name))
    elif resolution.method == CREATED:
        warnings.append("Row {}: {} '{}' created".format(row_number, label, raw_name))
    elif resolution.method == UNRESOLVED:
        warnings.append("Row {}: {} '{}' not found, left empty".format(row_number, label, raw_name))


def _parse_options(values: tuple, row_number: int):
    """Answer rows for a multiple-choice line, or an error message."""
    options = [cell_text(values, i) for i in OPTION_COLUMNS]
    if not options[0] or not options[1]:
        return None, "Row {}: multiple-choice questions need at least 2 options".format(row_number)

    raw_correct = cell_text(values, CORRECT_COLUMN)
    try:
        correct = int(raw_correct)
    except ValueError:
        correct = 0
    if correct < 1 or correct > len(options) or not options[correct - 1]:
        return None, "Row {}: correct option must be 1-4 and point to a filled option".format(
            row_number)

    answers = [
        Answer(content=text, is_correct=(index + 1) == correct, sort_order=index)
        for index, text in enumerate(options) if text
    ]
    return answers, None


def import_questions(db: Session, rows: Iterable[Tuple[int, tuple]],
                     options: Optional[ImportOptions] = None,
                     created_by: Optional[str] = None) -> dict:
    """
    Import parsed spreadsheet rows into the question bank.

    Returns:
        Summary dict: imported_count, skipped_count, error_count, errors, warnings

    Raises:
        ImportFailed: an unexpected error aborted the batch; nothing was kept
    """
    options = options or ImportOptions()
    start_time = time.time()
    summary = _empty_summary()
    errors, warnings = summary["errors"], summary["warnings"]
    row_number = None

    try:
        positions = NameResolver(db, Position, options.create_positions)
        ship_types = NameResolver(db, ShipType, options.create_ship_types)
        categories = NameResolver(db, Category, options.create_categories)

        for row_number, values in rows:
            content = cell_text(values, 0)
            if not content:
                continue

            if options.skip_duplicates:
                exists = db.query(Question.id).filter(
                    Question.content == content,
                    Question.deleted_at.is_(None)
                ).first()
                if exists:
                    summary["skipped_count"] += 1
                    continue

            question_type = normalize_type(cell_text(values, 1))
            if question_type is None:
                errors.append("Row {}: unknown question type '{}' (expected one of: {})".format(
                    row_number, cell_text(values, 1), ", ".join(QUESTION_TYPES)))
                continue

            difficulty = normalize_difficulty(cell_text(values, 2))
            if difficulty is None:
                errors.append("Row {}: unknown difficulty '{}' (expected one of: {})".format(
                    row_number, cell_text(values, 2), ", ".join(DIFFICULTIES)))
                continue

            answers = []
            if question_type == MULTIPLE_CHOICE:
                answers, error = _parse_options(values, row_number)
                if error:
                    errors.append(error)
                    continue

            category_name = cell_text(values, 5)
            category = categories.resolve(category_name)
            if category.record is None:
                errors.append("Row {}: category is required{}".format(
                    row_number, " ('{}' not found)".format(category_name) if category_name else ""))
                continue
            _note_resolution(category, category_name, "category", row_number, warnings)

            position_name = cell_text(values, 3)
            position = positions.resolve(position_name)
            _note_resolution(position, position_name, "position", row_number, warnings)

            ship_type_name = cell_text(values, 4)
            ship_type = ship_types.resolve(ship_type_name)
            _note_resolution(ship_type, ship_type_name, "ship type", row_number, warnings)

            db.add(Question(
                content=content,
                type=question_type,
                difficulty=difficulty,
                position_id=position.record.id if position.record else None,
                ship_type_id=ship_type.record.id if ship_type.record else None,
                category_id=category.record.id,
                category=category.record.name,
                created_by=created_by,
                answers=answers,
            ))
            # Flush so later duplicate checks in this batch see the row
            db.flush()
            summary["imported_count"] += 1

        db.commit()
    except Exception as e:
        db.rollback()
        log_with_context(logger, "ERROR", "Import aborted, batch rolled back",
                         context={"row": row_number, "user_id": created_by},
                         extra_data={"error_type": type(e).__name__},
                         exc_info=True)
        failed = _empty_summary()
        failed["error_count"] = len(errors) + 1
        failed["errors"] = errors + ["Row {}: unexpected error, nothing was imported".format(row_number)]
        failed["warnings"] = warnings
        raise ImportFailed("Import aborted at row {}".format(row_number), failed)

    summary["error_count"] = len(errors)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Import complete: {} imported, {} skipped, {} errors, {} warnings".format(
            summary["imported_count"], summary["skipped_count"],
            summary["error_count"], len(warnings)),
        context={"user_id": created_by},
        extra_data={"duration_ms": round(duration_ms, 2)})

    return summary


# ── Export ────────────────────────────────────────────────────

def _write_header(sheet, columns):
    sheet.append([title for title, _ in columns])
    for index, (_, width) in enumerate(columns, 1):
        cell = sheet.cell(row=1, column=index)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        sheet.column_dimensions[cell.column_letter].width = width


def _list_validation(values, error: str, allow_blank: bool = False) -> DataValidation:
    validation = DataValidation(
        type="list",
        formula1='"{}"'.format(",".join(str(v) for v in values)),
        allow_blank=allow_blank,
        showErrorMessage=True,
        errorTitle="Invalid value",
        error=error,
    )
    return validation


def _add_validations(sheet):
    for column, values, allow_blank in (
        ("B", QUESTION_TYPES, False),
        ("C", DIFFICULTIES, False),
        ("K", range(1, 5), True),
    ):
        validation = _list_validation(values, "Please pick a value from the list", allow_blank)
        sheet.add_data_validation(validation)
        validation.add("{0}2:{0}1000".format(column))


def _add_reference_sheets(workbook, db: Session):
    for model, title in ((Position, "Positions"), (ShipType, "Ship Types"), (Category, "Categories")):
        sheet = workbook.create_sheet(title)
        _write_header(sheet, [("Name", 30), ("Description", 50)])
        for record in db.query(model).order_by(model.name).all():
            sheet.append([record.name, record.description or ""])


def _to_bytes(workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _new_question_workbook():
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Questions"
    _write_header(sheet, COLUMNS)
    _add_validations(sheet)
    return workbook, sheet


def build_template(db: Session) -> bytes:
    """Empty import template with one sample row and the reference sheets."""
    workbook, sheet = _new_question_workbook()
    sheet.append(SAMPLE_ROW)
    _add_reference_sheets(workbook, db)
    return _to_bytes(workbook)


def export_questions(db: Session) -> bytes:
    """The live question bank in import layout, re-importable as is."""
    workbook, sheet = _new_question_workbook()

    questions = db.query(Question).options(
        joinedload(Question.answers),
        joinedload(Question.position),
        joinedload(Question.ship_type),
    ).filter(Question.deleted_at.is_(None)).order_by(Question.created_at).all()

    for question in questions:
        options = [a.content for a in question.answers[:4]]
        correct = next((index for index, a in enumerate(question.answers[:4], 1) if a.is_correct), None)
        sheet.append([
            question.content,
            question.type,
            question.difficulty,
            question.position.name if question.position else "",
            question.ship_type.name if question.ship_type else "",
            question.category or "",
            *(options + [""] * (4 - len(options))),
            correct if question.type == MULTIPLE_CHOICE else None,
        ])

    _add_reference_sheets(workbook, db)

    log_with_context(logger, "INFO", "Exported {} questions".format(len(questions)))
    return _to_bytes(workbook)
