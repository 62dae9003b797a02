"""Persist question drafts into a test set."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exambank.models.question import Question, QuestionSource, TestSet
from exambank.observability.logging import audit_log
from exambank.schemas.import_schema import CommitResult, CommitRow, RowFailure
from exambank.schemas.question import QuestionDraft
from exambank.services.importer.errors import DraftValidationError, DuplicateQuestionOrder
from exambank.services.importer.rules import draft_issues

logger = logging.getLogger(__name__)


class QuestionWriter:
    """Write validated drafts to the database."""

    def __init__(self, db: Session, test_set: TestSet):
        """
        Initialize writer.

        Args:
            db: Database session
            test_set: Test set the questions belong to
        """
        self.db = db
        self.test_set = test_set

    def _existing_orders(self) -> set[int]:
        stmt = select(Question.question_order).where(Question.test_set_id == self.test_set.id)
        return set(self.db.execute(stmt).scalars())

    def _section_problem(self, draft: QuestionDraft) -> str | None:
        sections = self.test_set.section_table()
        if not draft.section_id or not sections:
            return None
        if any(str(section["section_id"]) == draft.section_id for section in sections):
            return None
        return f"section '{draft.section_id}' not found in this test set"

    def _build(self, draft: QuestionDraft, source: str, row_number: int | None = None) -> Question:
        payload = draft.model_dump(mode="json")
        return Question(
            test_set_id=self.test_set.id,
            section_id=draft.section_id,
            languages=payload["languages"],
            correct_option_id=draft.correct_option_id,
            marks=draft.marks,
            average_time_seconds=draft.average_time_seconds,
            question_order=draft.question_order,
            tags=payload["tags"],
            is_active=draft.is_active,
            source=source,
            import_row_number=row_number,
        )

    def insert_question(self, draft: QuestionDraft) -> Question:
        """
        Insert one manually authored question and commit.

        Raises:
            DraftValidationError: draft breaks a structural rule
            DuplicateQuestionOrder: the set already has this questionOrder
        """
        errors = [issue.message for issue in draft_issues(draft)]
        section_problem = self._section_problem(draft)
        if section_problem:
            errors.append(section_problem)
        if errors:
            raise DraftValidationError(errors)

        if draft.question_order in self._existing_orders():
            raise DuplicateQuestionOrder(draft.question_order)

        question = self._build(draft, QuestionSource.MANUAL)
        self.db.add(question)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateQuestionOrder(draft.question_order)
        self.db.refresh(question)

        audit_log(
            "question.create",
            action="create",
            target_id=str(question.id),
            test_set_id=str(self.test_set.id),
        )
        return question

    def write_batch(self, rows: list[CommitRow]) -> CommitResult:
        """
        Insert selected import rows, one SAVEPOINT per row.

        A rejected row never rolls back rows already accepted; rejections
        come back keyed by spreadsheet row number.
        """
        failures: list[RowFailure] = []
        imported = 0
        taken = self._existing_orders()

        for row in rows:
            draft = row.draft
            errors = [issue.message for issue in draft_issues(draft)]
            section_problem = self._section_problem(draft)
            if section_problem:
                errors.append(section_problem)
            if errors:
                failures.append(
                    RowFailure(row_number=row.row_number, code="QUESTION_INVALID", reason="; ".join(errors))
                )
                continue

            if draft.question_order in taken:
                failures.append(
                    RowFailure(
                        row_number=row.row_number,
                        code=DuplicateQuestionOrder.code,
                        reason=str(DuplicateQuestionOrder(draft.question_order)),
                    )
                )
                continue

            try:
                with self.db.begin_nested():
                    self.db.add(self._build(draft, QuestionSource.IMPORT, row.row_number))
                    self.db.flush()
            except IntegrityError as e:
                logger.warning(
                    "Import row rejected by database",
                    extra={"row_number": row.row_number, "error": str(e.orig)},
                )
                failures.append(
                    RowFailure(row_number=row.row_number, code="INTEGRITY_ERROR", reason=str(e.orig))
                )
                continue

            taken.add(draft.question_order)
            imported += 1

        self.db.commit()

        result = CommitResult(requested=len(rows), imported=imported, failures=failures)
        audit_log(
            "question_import.commit",
            action="import",
            target_id=str(self.test_set.id),
            requested=result.requested,
            imported=result.imported,
            failed=len(result.failures),
        )
        return result
