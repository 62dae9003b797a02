"""Tests for persisting drafts into a test set."""

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from exambank.models.question import Question, QuestionSource
from exambank.schemas.import_schema import CommitRow
from exambank.schemas.question import QuestionDraft
from exambank.services.importer.column_mapper import auto_map
from exambank.services.importer.errors import DraftValidationError, DuplicateQuestionOrder
from exambank.services.importer.row_validator import RowValidator
from exambank.services.importer.writer import QuestionWriter
from exambank.services.question_editor import QuestionDraftEditor
from tests.helpers.rows import DEFAULT_HEADERS, SECTIONS, english_row


def draft_for(**overrides) -> QuestionDraft:
    result = RowValidator(auto_map(DEFAULT_HEADERS), sections=SECTIONS).validate_row(2, english_row(**overrides))
    assert result.errors == []
    return result.draft


def stored(db: Session, exam_set) -> list[Question]:
    stmt = select(Question).where(Question.test_set_id == exam_set.id).order_by(Question.question_order)
    return list(db.execute(stmt).scalars())


class TestWriteBatch:
    def test_inserts_rows(self, db, exam_set):
        rows = [
            CommitRow(row_number=2, draft=draft_for(QSNo="1")),
            CommitRow(row_number=3, draft=draft_for(QSNo="2", section="Reasoning")),
        ]

        result = QuestionWriter(db, exam_set).write_batch(rows)

        assert (result.requested, result.imported, result.failures) == (2, 2, [])
        assert result.partial is False
        questions = stored(db, exam_set)
        assert [q.question_order for q in questions] == [1, 2]
        assert questions[0].source == QuestionSource.IMPORT
        assert questions[0].import_row_number == 2
        assert questions[1].section_id == "reasoning"
        assert questions[0].correct_option_id == "B"
        assert questions[0].languages["en"]["options"][1] == {"option_id": "B", "text": "4", "image_ref": None}

    def test_duplicate_order_fails_only_that_row(self, db, exam_set):
        QuestionWriter(db, exam_set).write_batch([CommitRow(row_number=2, draft=draft_for(QSNo="1"))])

        result = QuestionWriter(db, exam_set).write_batch(
            [
                CommitRow(row_number=5, draft=draft_for(QSNo="1")),
                CommitRow(row_number=6, draft=draft_for(QSNo="2")),
            ]
        )

        assert result.imported == 1
        assert result.partial is True
        assert [(f.row_number, f.code) for f in result.failures] == [(5, "DUPLICATE_QUESTION_ORDER")]
        assert [q.question_order for q in stored(db, exam_set)] == [1, 2]

    def test_duplicate_within_batch(self, db, exam_set):
        result = QuestionWriter(db, exam_set).write_batch(
            [
                CommitRow(row_number=2, draft=draft_for(QSNo="4")),
                CommitRow(row_number=3, draft=draft_for(QSNo="4")),
            ]
        )
        assert result.imported == 1
        assert result.failures[0].row_number == 3

    def test_invalid_draft_rechecked(self, db, exam_set):
        broken = draft_for(QSNo="1")
        broken.correct_option_id = "Z"

        result = QuestionWriter(db, exam_set).write_batch([CommitRow(row_number=2, draft=broken)])

        assert result.imported == 0
        assert result.failures[0].code == "QUESTION_INVALID"
        assert "correctOption 'Z'" in result.failures[0].reason
        assert stored(db, exam_set) == []

    def test_unknown_section_rejected(self, db, exam_set):
        draft = draft_for(QSNo="1")
        draft.section_id = "history"

        result = QuestionWriter(db, exam_set).write_batch([CommitRow(row_number=2, draft=draft)])

        assert result.failures[0].code == "QUESTION_INVALID"
        assert "section 'history'" in result.failures[0].reason

    def test_database_rejection_rolls_back_only_that_row(self, db, exam_set, monkeypatch):
        QuestionWriter(db, exam_set).write_batch([CommitRow(row_number=2, draft=draft_for(QSNo="1"))])
        # Simulate a concurrent import that took questionOrder 1 after our check
        monkeypatch.setattr(QuestionWriter, "_existing_orders", lambda self: set())

        result = QuestionWriter(db, exam_set).write_batch(
            [
                CommitRow(row_number=7, draft=draft_for(QSNo="2")),
                CommitRow(row_number=8, draft=draft_for(QSNo="1")),
                CommitRow(row_number=9, draft=draft_for(QSNo="3")),
            ]
        )

        assert result.imported == 2
        assert [(f.row_number, f.code) for f in result.failures] == [(8, "INTEGRITY_ERROR")]
        assert [q.question_order for q in stored(db, exam_set)] == [1, 2, 3]


class TestInsertQuestion:
    def _draft(self, order: int = 1) -> QuestionDraft:
        editor = QuestionDraftEditor()
        editor.remove_option(3)
        editor.remove_option(2)
        editor.set_question_text("en", "Capital of France?")
        editor.set_option_text("en", 0, "Paris")
        editor.set_option_text("en", 1, "Rome")
        editor.set_correct_option("A")
        editor.set_details(question_order=order, section_id="quant", tags=["gk"])
        return editor.submit()

    def test_insert(self, db, exam_set):
        question = QuestionWriter(db, exam_set).insert_question(self._draft())

        assert question.id is not None
        assert question.source == QuestionSource.MANUAL
        assert question.tags == ["gk"]
        assert question.import_row_number is None

    def test_duplicate_order(self, db, exam_set):
        writer = QuestionWriter(db, exam_set)
        writer.insert_question(self._draft(1))
        with pytest.raises(DuplicateQuestionOrder):
            writer.insert_question(self._draft(1))

    def test_invalid_draft(self, db, exam_set):
        draft = self._draft()
        draft.question_order = None
        with pytest.raises(DraftValidationError) as exc_info:
            QuestionWriter(db, exam_set).insert_question(draft)
        assert exc_info.value.errors == ["questionOrder is required"]
