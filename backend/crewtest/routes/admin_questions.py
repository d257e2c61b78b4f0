"""
Admin question bank routes.

Provides endpoints for:
- Question CRUD with answer options
- Counting questions a random test filter would draw from
- Spreadsheet import, blank template and full export
"""

import time
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from sqlalchemy.orm import Session

from crewtest.auth import require_admin
from crewtest.database import get_db
from crewtest.logging_config import get_logger, log_with_context
from crewtest.models.user import User
from crewtest.schemas import QuestionFilter, QuestionIn
from crewtest.serializers import serialize_question
from crewtest.services import question_bank
from crewtest.services.question_import import (
    ImportOptions, build_template, export_questions, import_questions, parse_workbook
)

router = APIRouter(prefix="/api/admin/questions")
logger = get_logger("http")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx_response(data: bytes, filename: str) -> Response:
    return Response(
        content=data,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="{}"'.format(filename)},
    )


@router.get("")
def list_questions(
    position_id: Optional[str] = Query(None, description="Filter by position"),
    ship_type_id: Optional[str] = Query(None, description="Filter by ship type"),
    category_id: Optional[str] = Query(None, description="Filter by category"),
    question_type: Optional[str] = Query(None, alias="type", description="Filter by question type"),
    search: Optional[str] = Query(None, description="Search question text"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin)
):
    start_time = time.time()
    questions = question_bank.list_questions(
        db, position_id=position_id, ship_type_id=ship_type_id,
        category_id=category_id, question_type=question_type, search=search)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO", "Listed {} questions".format(len(questions)),
                     extra_data={"duration_ms": round(duration_ms, 2)})
    return [serialize_question(q) for q in questions]


@router.get("/count")
def count_questions(
    position_id: Optional[str] = Query(None),
    ship_type_id: Optional[str] = Query(None),
    difficulty: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin)
):
    """Number of questions a random test with these filters could draw from."""
    filters = QuestionFilter(position_id=position_id, ship_type_id=ship_type_id,
                             difficulty=difficulty, category=category)
    return {"count": question_bank.count_matching(db, filters)}


@router.get("/template")
def download_template(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return _xlsx_response(build_template(db), "question_import_template.xlsx")


@router.get("/export")
def download_export(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return _xlsx_response(export_questions(db), "questions_export.xlsx")


@router.post("/import")
async def upload_import(
    file: UploadFile = File(..., description="Question workbook (.xlsx)"),
    skip_duplicates: bool = Form(True),
    create_categories: Optional[bool] = Form(None),
    create_positions: Optional[bool] = Form(None),
    create_ship_types: Optional[bool] = Form(None),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin)
):
    """
    Import questions from a workbook.

    Row-level problems are reported in the summary; an unexpected failure
    rolls back the whole batch and is reported with a 500.
    """
    data = await file.read()
    log_with_context(logger, "INFO", "Import upload received: {}".format(file.filename),
                     context={"user_id": str(admin.id)},
                     extra_data={"bytes": len(data)})

    options = ImportOptions(skip_duplicates=skip_duplicates)
    if create_categories is not None:
        options.create_categories = create_categories
    if create_positions is not None:
        options.create_positions = create_positions
    if create_ship_types is not None:
        options.create_ship_types = create_ship_types

    rows = parse_workbook(data)
    return import_questions(db, rows, options, created_by=admin.id)


@router.get("/{question_id}")
def get_question(question_id: str, db: Session = Depends(get_db),
                 admin: User = Depends(require_admin)):
    return serialize_question(question_bank.get_question(db, question_id))


@router.post("", status_code=201)
def create_question(payload: QuestionIn, db: Session = Depends(get_db),
                    admin: User = Depends(require_admin)):
    question = question_bank.create_question(db, payload, created_by=admin.id)
    return serialize_question(question)


@router.put("/{question_id}")
def update_question(question_id: str, payload: QuestionIn, db: Session = Depends(get_db),
                    admin: User = Depends(require_admin)):
    return serialize_question(question_bank.update_question(db, question_id, payload))


@router.delete("/{question_id}")
def delete_question(question_id: str, db: Session = Depends(get_db),
                    admin: User = Depends(require_admin)):
    mode = question_bank.delete_question(db, question_id)
    return {"id": question_id, "deleted": mode}
