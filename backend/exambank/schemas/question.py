"""Schemas for multilingual questions."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from exambank.services.importer.fields import PRIMARY_LANGUAGE
from exambank.services.importer.richtext import html_to_text

# Validation caps (input hardening)
QUESTION_MAX_LENGTH = 8000
EXPLANATION_MAX_LENGTH = 16000
OPTION_MAX_LENGTH = 1000
TAGS_MAX_ITEMS = 50
MAX_OPTIONS = 10

# (plain field, rich companion) pairs on LanguageContent
RICH_PAIRS: tuple[tuple[str, str], ...] = (
    ("direction", "direction_rich"),
    ("question_text", "question_rich"),
    ("conclusion", "conclusion_rich"),
    ("explanation_text", "explanation_rich"),
)


class Option(BaseModel):
    """One answer option; ``option_id`` is the positional letter."""

    option_id: str = Field(..., min_length=1, max_length=2, description="Canonical letter")
    text: str = Field(default="", max_length=OPTION_MAX_LENGTH)
    image_ref: str | None = Field(default=None, description="Opaque image reference")


class LanguageContent(BaseModel):
    """Question content in one language.

    Each ``*_rich`` field is an optional formatted companion of the plain
    field before it; when supplied, the plain text is derived from it.
    """

    direction: str = Field(default="", max_length=QUESTION_MAX_LENGTH)
    direction_rich: str = Field(default="", max_length=QUESTION_MAX_LENGTH)
    direction_image: str | None = None
    question_text: str = Field(default="", max_length=QUESTION_MAX_LENGTH)
    question_rich: str = Field(default="", max_length=QUESTION_MAX_LENGTH)
    question_image: str | None = None
    conclusion: str = Field(default="", max_length=QUESTION_MAX_LENGTH)
    conclusion_rich: str = Field(default="", max_length=QUESTION_MAX_LENGTH)
    conclusion_image: str | None = None
    options: list[Option] = Field(default_factory=list)
    explanation_text: str = Field(default="", max_length=EXPLANATION_MAX_LENGTH)
    explanation_rich: str = Field(default="", max_length=EXPLANATION_MAX_LENGTH)
    explanation_images: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def derive_plain_from_rich(self) -> "LanguageContent":
        for plain, rich in RICH_PAIRS:
            markup = getattr(self, rich)
            if markup:
                setattr(self, plain, html_to_text(markup))
        return self

    def set_text(self, plain_field: str, value: str, rich: str | None = None) -> None:
        """Set a plain field, or a rich field and the plain text derived from it."""
        rich_field = dict(RICH_PAIRS)[plain_field]
        if rich:
            setattr(self, rich_field, rich)
            setattr(self, plain_field, html_to_text(rich))
        else:
            setattr(self, rich_field, "")
            setattr(self, plain_field, value)

    def option_ids(self) -> list[str]:
        return [opt.option_id for opt in self.options]

    def filled_options(self) -> list[Option]:
        """Options with non-empty text."""
        return [opt for opt in self.options if opt.text.strip()]


class QuestionDraft(BaseModel):
    """An in-memory, not-yet-persisted question.

    Structural rules (option alignment across languages, correct option) are
    checked by ``draft_issues`` rather than here, so drafts with problems can
    still be previewed and edited.
    """

    section_id: str | None = None
    languages: dict[str, LanguageContent] = Field(default_factory=dict)
    correct_option_id: str | None = None
    marks: float = 1
    average_time_seconds: int = 0
    tags: list[str] = Field(default_factory=list, max_length=TAGS_MAX_ITEMS)
    question_order: int | None = None
    is_active: bool = True

    @property
    def english(self) -> LanguageContent | None:
        return self.languages.get(PRIMARY_LANGUAGE)

    def secondary_languages(self) -> dict[str, LanguageContent]:
        return {code: content for code, content in self.languages.items() if code != PRIMARY_LANGUAGE}


class QuestionOut(BaseModel):
    """Persisted question response."""

    id: UUID
    test_set_id: UUID
    section_id: str | None
    languages: dict[str, LanguageContent]
    correct_option_id: str
    marks: float
    average_time_seconds: int
    question_order: int
    tags: list[str]
    is_active: bool
    source: str
    import_row_number: int | None
    created_at: datetime
    updated_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class SectionIn(BaseModel):
    """Section of a test set."""

    section_id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    order: int = Field(default=1, ge=1)


class TestSetCreate(BaseModel):
    """Schema for creating a test set."""

    name: str = Field(..., min_length=1, max_length=200)
    sections: list[SectionIn] = Field(default_factory=list, max_length=50)


class TestSetOut(BaseModel):
    """Test set response."""

    id: UUID
    name: str
    sections: list[SectionIn]
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
