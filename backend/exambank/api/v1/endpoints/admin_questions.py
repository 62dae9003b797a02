"""Admin endpoints for test sets and manually authored questions."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from exambank.core.app_exceptions import raise_app_error
from exambank.core.dependencies import get_test_set
from exambank.db.session import get_db
from exambank.models.question import Question, TestSet
from exambank.observability.logging import audit_log
from exambank.schemas.question import QuestionDraft, QuestionOut, TestSetCreate, TestSetOut
from exambank.services.importer.writer import QuestionWriter
from exambank.services.question_editor import QuestionDraftEditor

router = APIRouter(prefix="/admin", tags=["Admin - Questions"])


@router.post("/sets", response_model=TestSetOut, status_code=status.HTTP_201_CREATED)
async def create_test_set(payload: TestSetCreate, db: Session = Depends(get_db)) -> TestSetOut:
    """Create a test set with its sections."""
    section_ids = [section.section_id for section in payload.sections]
    if len(section_ids) != len(set(section_ids)):
        raise_app_error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "DUPLICATE_SECTION",
            "Section ids must be unique within a test set",
        )

    test_set = TestSet(
        name=payload.name,
        sections=[section.model_dump() for section in payload.sections],
    )
    db.add(test_set)
    db.commit()
    db.refresh(test_set)

    audit_log("test_set.create", action="create", target_id=str(test_set.id))
    return TestSetOut.model_validate(test_set)


@router.get("/sets/{set_id}", response_model=TestSetOut)
async def get_test_set_detail(test_set: TestSet = Depends(get_test_set)) -> TestSetOut:
    return TestSetOut.model_validate(test_set)


@router.post(
    "/sets/{set_id}/questions",
    response_model=QuestionOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_question(
    draft: QuestionDraft,
    test_set: TestSet = Depends(get_test_set),
    db: Session = Depends(get_db),
) -> QuestionOut:
    """Create one question through the same checks as bulk import (422 / 409)."""
    submitted = QuestionDraftEditor(draft).submit()
    question = QuestionWriter(db, test_set).insert_question(submitted)
    return QuestionOut.model_validate(question)


@router.get("/sets/{set_id}/questions", response_model=list[QuestionOut])
async def list_questions(
    test_set: TestSet = Depends(get_test_set),
    db: Session = Depends(get_db),
) -> list[QuestionOut]:
    """Questions of a test set in question order."""
    stmt = (
        select(Question)
        .where(Question.test_set_id == test_set.id)
        .order_by(Question.question_order)
    )
    return [QuestionOut.model_validate(q) for q in db.execute(stmt).scalars()]


@router.get("/questions/{question_id}", response_model=QuestionOut)
async def get_question(question_id: UUID, db: Session = Depends(get_db)) -> QuestionOut:
    question = db.get(Question, question_id)
    if question is None:
        raise_app_error(status.HTTP_404_NOT_FOUND, "QUESTION_NOT_FOUND", "Question not found")
    return QuestionOut.model_validate(question)
