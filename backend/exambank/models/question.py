"""Test set and multilingual question models."""

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from exambank.db.base import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class QuestionSource:
    """How a question entered the bank."""

    MANUAL = "MANUAL"
    IMPORT = "IMPORT"


class TestSet(Base):
    """A mock test (question set) with ordered sections."""

    __tablename__ = "test_sets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    sections = Column(JSONType, nullable=False, default=list)  # [{section_id, name, order}]
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    questions = relationship("Question", back_populates="test_set", cascade="all, delete-orphan")

    def section_table(self) -> list[dict]:
        return list(self.sections or [])


class Question(Base):
    """A committed question; ``languages`` holds per-language content keyed by code."""

    __tablename__ = "questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    test_set_id = Column(Uuid, ForeignKey("test_sets.id", ondelete="CASCADE"), nullable=False)
    section_id = Column(String(100), nullable=True)
    languages = Column(JSONType, nullable=False)
    correct_option_id = Column(String(2), nullable=False)
    marks = Column(Float, nullable=False, default=1)
    average_time_seconds = Column(Integer, nullable=False, default=0)
    question_order = Column(Integer, nullable=False)
    tags = Column(JSONType, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    source = Column(String(20), nullable=False, default=QuestionSource.MANUAL)
    import_row_number = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    test_set = relationship("TestSet", back_populates="questions")

    __table_args__ = (
        UniqueConstraint("test_set_id", "question_order", name="uq_question_set_order"),
        CheckConstraint("question_order >= 1", name="ck_question_order_positive"),
        CheckConstraint("marks >= 1", name="ck_question_marks_min"),
        CheckConstraint("average_time_seconds >= 0", name="ck_question_avg_time_nonneg"),
        Index("ix_questions_set_section", "test_set_id", "section_id"),
    )
