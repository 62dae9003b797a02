"""Structural rules shared by bulk import and manual authoring.

``draft_issues`` is the single place that decides whether a draft may be
persisted. RowValidator, QuestionDraftEditor and QuestionWriter all call it,
so the two entry points report the same problems with the same messages.
"""

from typing import Any

from pydantic import ValidationError

from exambank.schemas.question import QuestionDraft
from exambank.services.importer.fields import (
    CORRECT_OPTION,
    LANGUAGES_BY_CODE,
    PRIMARY_LANGUAGE,
    QUESTION_ORDER,
    canonical_letter,
)
from exambank.services.importer.options import option_shape_mismatches

MIN_OPTIONS = 2

ERROR = "error"
WARNING = "warning"


class RowIssue:
    """A validation problem for a specific field."""

    # Error codes (stable)
    MISSING_REQUIRED = "MISSING_REQUIRED"
    INVALID_NUMBER = "INVALID_NUMBER"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    TOO_FEW_OPTIONS = "TOO_FEW_OPTIONS"
    INVALID_CORRECT = "INVALID_CORRECT"
    OPTION_MISMATCH = "OPTION_MISMATCH"
    TEXT_TOO_LONG = "TEXT_TOO_LONG"
    INVALID_VALUE = "INVALID_VALUE"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Warning codes
    DEFAULTED_MARKS = "DEFAULTED_MARKS"
    DEFAULTED_TIME = "DEFAULTED_TIME"
    OPTION_TEXT_MISSING = "OPTION_TEXT_MISSING"
    INVALID_TAGS = "INVALID_TAGS"
    UNKNOWN_SECTION = "UNKNOWN_SECTION"
    DUPLICATE_ORDER = "DUPLICATE_ORDER"
    TOO_MANY_TAGS = "TOO_MANY_TAGS"
    OPTIONS_AFTER_GAP = "OPTIONS_AFTER_GAP"

    def __init__(self, code: str, message: str, field: str | None = None, severity: str = ERROR):
        self.code = code
        self.message = message
        self.field = field
        self.severity = severity

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "field": self.field,
            "severity": self.severity,
        }

    def __repr__(self) -> str:
        return f"RowIssue({self.code!r}, {self.message!r}, field={self.field!r})"


def _describe_location(loc: tuple[Any, ...]) -> tuple[str, str]:
    """Human name and field key for a pydantic error location on a draft."""
    if len(loc) >= 3 and loc[0] == "languages":
        code = str(loc[1])
        spec = LANGUAGES_BY_CODE.get(code)
        label = spec.label if spec else code
        if loc[2] == "options" and len(loc) >= 5 and isinstance(loc[3], int):
            letter = canonical_letter(loc[3])
            return f"{label} option {letter} {loc[4]}", f"{code}-{letter}"
        return f"{label} {loc[2]}", f"{code}-{loc[2]}"
    return ".".join(str(part) for part in loc), str(loc[0]) if loc else ""


def schema_issues(draft: QuestionDraft) -> list[RowIssue]:
    """Length and type limits of the draft schema, reported as row errors.

    Drafts are assembled field by field, so the limits declared on the
    schema have to be checked explicitly before the draft is offered for
    commit.
    """
    try:
        QuestionDraft.model_validate(draft.model_dump())
    except ValidationError as e:
        issues: list[RowIssue] = []
        for error in e.errors():
            name, field = _describe_location(tuple(error["loc"]))
            if error["type"] == "string_too_long":
                limit = error.get("ctx", {}).get("max_length")
                issues.append(
                    RowIssue(RowIssue.TEXT_TOO_LONG, f"{name} is longer than {limit} characters", field)
                )
            else:
                issues.append(RowIssue(RowIssue.INVALID_VALUE, f"{name}: {error['msg']}", field))
        return issues
    return []


def draft_issues(draft: QuestionDraft, skip: frozenset[str] = frozenset()) -> list[RowIssue]:
    """Every structural error in a draft (empty list means committable).

    ``skip`` names fields whose problems the caller already reported in more
    specific terms (e.g. a non-numeric questionOrder cell).
    """
    issues: list[RowIssue] = []

    english = draft.english
    if english is None:
        return [RowIssue(RowIssue.MISSING_REQUIRED, "English content is required", PRIMARY_LANGUAGE)]

    if not english.question_text.strip():
        issues.append(
            RowIssue(RowIssue.MISSING_REQUIRED, "English question text is required", "en-question")
        )

    filled = english.filled_options()
    if len(filled) < MIN_OPTIONS or len(filled) != len(english.options):
        if len(filled) < MIN_OPTIONS:
            issues.append(RowIssue(RowIssue.TOO_FEW_OPTIONS, "fewer than 2 options", "en-options"))
        else:
            issues.append(
                RowIssue(
                    RowIssue.TOO_FEW_OPTIONS,
                    "every English option needs text",
                    "en-options",
                )
            )
    elif CORRECT_OPTION not in skip:
        # Only meaningful once the English option set itself is sound
        letters = english.option_ids()
        if not draft.correct_option_id:
            issues.append(
                RowIssue(RowIssue.MISSING_REQUIRED, "correctOption is required", CORRECT_OPTION)
            )
        elif draft.correct_option_id not in letters:
            issues.append(
                RowIssue(
                    RowIssue.INVALID_CORRECT,
                    f"correctOption '{draft.correct_option_id}' is not one of the options "
                    f"{', '.join(letters)}",
                    CORRECT_OPTION,
                )
            )

    for problem in option_shape_mismatches(draft.languages):
        issues.append(RowIssue(RowIssue.OPTION_MISMATCH, problem, "options"))

    if QUESTION_ORDER not in skip:
        if draft.question_order is None:
            issues.append(
                RowIssue(RowIssue.MISSING_REQUIRED, "questionOrder is required", QUESTION_ORDER)
            )
        elif draft.question_order < 1:
            issues.append(
                RowIssue(RowIssue.OUT_OF_RANGE, "questionOrder must be at least 1", QUESTION_ORDER)
            )

    if draft.marks < 1:
        issues.append(RowIssue(RowIssue.OUT_OF_RANGE, "marks must be at least 1", "marks"))
    if draft.average_time_seconds < 0:
        issues.append(
            RowIssue(RowIssue.OUT_OF_RANGE, "averageTime cannot be negative", "averageTime")
        )

    issues.extend(schema_issues(draft))
    return issues
