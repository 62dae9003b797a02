"""Turn one raw spreadsheet row into a validated question draft."""

import logging
import re
from typing import Any

from exambank.core.config import settings
from exambank.schemas.import_schema import FieldMapping, ValidatedRow
from exambank.schemas.question import TAGS_MAX_ITEMS, LanguageContent, Option, QuestionDraft
from exambank.services.importer.fields import (
    AVERAGE_TIME,
    CONCLUSION,
    CORRECT_OPTION,
    DIRECTION,
    IMPORT_OPTION_LETTERS,
    LANGUAGES,
    MARKS,
    PRIMARY_LANGUAGE,
    QUESTION,
    QUESTION_ORDER,
    SECTION,
    SOLUTION,
    TAGS,
    language_key,
)
from exambank.services.importer.options import synchronize
from exambank.services.importer.richtext import looks_like_markup, split_rich
from exambank.services.importer.rules import ERROR, WARNING, RowIssue, draft_issues

logger = logging.getLogger(__name__)

_CORRECT_OPTION_RE = re.compile(r"^\(?\s*([A-Za-z]{1,2})\s*[\).]?$")
_TAG_TOKEN_RE = re.compile(r"^[^\[\]{}<>\"]+$")

# LanguageContent attribute pairs filled from each text column
_TEXT_TARGETS: dict[str, tuple[str, str]] = {
    DIRECTION: ("direction", "direction_rich"),
    QUESTION: ("question_text", "question_rich"),
    CONCLUSION: ("conclusion", "conclusion_rich"),
    SOLUTION: ("explanation_text", "explanation_rich"),
}


def cell_to_str(value: Any) -> str:
    """Normalize a decoded cell to a stripped string ("" for empty)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_number(value: str) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class RowValidator:
    """Validate rows of one import against a confirmed field mapping.

    Row problems are returned as data on the ``ValidatedRow``; validating a
    row never raises.
    """

    def __init__(self, mapping: FieldMapping, sections: list[dict[str, Any]] | None = None):
        """
        Initialize validator.

        Args:
            mapping: Confirmed field mapping for this import
            sections: Target test set sections ({section_id, name}) used to
                resolve the section column; None keeps the raw cell value
        """
        self.mapping = mapping
        self.sections = sections
        self.tag_delimiters = settings.IMPORT_TAG_DELIMITERS

    def validate_row(self, row_number: int, raw_row: dict[str, Any]) -> ValidatedRow:
        try:
            return self._validate(row_number, raw_row)
        except Exception as e:
            logger.exception("Unexpected error validating row", extra={"row_number": row_number})
            issue = RowIssue(RowIssue.INTERNAL_ERROR, f"Row could not be validated: {e}")
            return ValidatedRow(
                row_number=row_number,
                draft=QuestionDraft(),
                errors=[issue.message],
                error_codes=[issue.code],
            )

    # ------------------------------------------------------------------

    def _raw(self, raw_row: dict[str, Any], key: str) -> Any:
        header = self.mapping.header_for(key)
        if not header:
            return None
        return raw_row.get(header)

    def _cell(self, raw_row: dict[str, Any], key: str) -> str:
        return cell_to_str(self._raw(raw_row, key))

    def _build_language(self, raw_row: dict[str, Any], code: str) -> tuple[LanguageContent, list[str]]:
        """Build one language's content.

        Returns the content and the option cell texts in letter order (empty
        string for blank cells, trailing blanks dropped).
        """
        content = LanguageContent()
        for name, (plain_attr, rich_attr) in _TEXT_TARGETS.items():
            plain, rich = split_rich(self._cell(raw_row, language_key(code, name)))
            setattr(content, plain_attr, plain)
            setattr(content, rich_attr, rich)

        texts = [
            split_rich(self._cell(raw_row, language_key(code, letter)))[0]
            for letter in IMPORT_OPTION_LETTERS
        ]
        while texts and not texts[-1]:
            texts.pop()

        if code == PRIMARY_LANGUAGE:
            # English options end at the first empty slot
            count = texts.index("") if "" in texts else len(texts)
        else:
            # Secondary cells keep their position; blanks stay as empty text
            count = len(texts)
        # Length limits are reported for the whole draft by draft_issues
        content.options = [
            Option.model_construct(option_id=IMPORT_OPTION_LETTERS[i], text=texts[i], image_ref=None)
            for i in range(count)
        ]
        return content, texts

    def _validate(self, row_number: int, raw_row: dict[str, Any]) -> ValidatedRow:
        issues: list[RowIssue] = []
        skip: set[str] = set()
        draft = QuestionDraft()

        # Languages: English always, others only when their question is present
        english, english_texts = self._build_language(raw_row, PRIMARY_LANGUAGE)
        draft.languages[PRIMARY_LANGUAGE] = english
        ignored = [
            IMPORT_OPTION_LETTERS[i]
            for i in range(len(english.options), len(english_texts))
            if english_texts[i]
        ]
        if ignored:
            issues.append(
                RowIssue(
                    RowIssue.OPTIONS_AFTER_GAP,
                    f"English option {IMPORT_OPTION_LETTERS[len(english.options)]} is empty; "
                    f"options {', '.join(ignored)} after it ignored",
                    "en-options",
                    WARNING,
                )
            )

        supplied_counts: dict[str, int] = {}
        for lang in LANGUAGES:
            if lang.code == PRIMARY_LANGUAGE:
                continue
            if not self._cell(raw_row, language_key(lang.code, QUESTION)):
                continue
            content, texts = self._build_language(raw_row, lang.code)
            draft.languages[lang.code] = content
            supplied_counts[lang.code] = sum(1 for text in texts if text)

        synchronize(draft.languages, len(english.options))

        for lang in LANGUAGES:
            if lang.code not in supplied_counts:
                continue
            supplied = supplied_counts[lang.code]
            if supplied != len(english.options):
                issues.append(
                    RowIssue(
                        RowIssue.OPTION_TEXT_MISSING,
                        f"{lang.label}: {supplied} option texts supplied for "
                        f"{len(english.options)} English options",
                        f"{lang.code}-options",
                        WARNING,
                    )
                )

        # questionOrder
        order_cell = self._cell(raw_row, QUESTION_ORDER)
        if order_cell:
            number = parse_number(order_cell)
            if number is None:
                issues.append(
                    RowIssue(
                        RowIssue.INVALID_NUMBER,
                        f"questionOrder '{order_cell}' is not a number",
                        QUESTION_ORDER,
                    )
                )
                skip.add(QUESTION_ORDER)
            elif not number.is_integer():
                issues.append(
                    RowIssue(
                        RowIssue.INVALID_NUMBER,
                        f"questionOrder '{order_cell}' is not a whole number",
                        QUESTION_ORDER,
                    )
                )
                skip.add(QUESTION_ORDER)
            else:
                draft.question_order = int(number)

        # correctOption
        correct_cell = self._cell(raw_row, CORRECT_OPTION)
        if correct_cell:
            match = _CORRECT_OPTION_RE.match(correct_cell)
            # Unparseable values are kept as-is so the error names them
            draft.correct_option_id = match.group(1).upper() if match else correct_cell

        draft.marks = self._parse_marks(raw_row, issues)
        draft.average_time_seconds = self._parse_average_time(raw_row, issues)
        draft.tags = self._parse_tags(raw_row, issues)
        draft.section_id = self._resolve_section(raw_row, issues)

        issues.extend(draft_issues(draft, skip=frozenset(skip)))

        errors = [issue for issue in issues if issue.severity == ERROR]
        warnings = [issue for issue in issues if issue.severity == WARNING]
        return ValidatedRow(
            row_number=row_number,
            draft=draft,
            errors=[issue.message for issue in errors],
            warnings=[issue.message for issue in warnings],
            error_codes=[issue.code for issue in errors],
        )

    def _parse_marks(self, raw_row: dict[str, Any], issues: list[RowIssue]) -> float:
        cell = self._cell(raw_row, MARKS)
        number = parse_number(cell) if cell else None
        if number is None or number <= 0:
            reason = "missing" if not cell else f"'{cell}' is not a positive number"
            issues.append(
                RowIssue(
                    RowIssue.DEFAULTED_MARKS,
                    f"marks {reason}; defaulted to 1",
                    MARKS,
                    WARNING,
                )
            )
            return 1
        if number < 1:
            issues.append(
                RowIssue(RowIssue.DEFAULTED_MARKS, f"marks '{cell}' below 1; defaulted to 1", MARKS, WARNING)
            )
            return 1
        return number

    def _parse_average_time(self, raw_row: dict[str, Any], issues: list[RowIssue]) -> int:
        cell = self._cell(raw_row, AVERAGE_TIME)
        if not cell:
            return 0
        number = parse_number(cell)
        if number is None or number < 0:
            issues.append(
                RowIssue(
                    RowIssue.DEFAULTED_TIME,
                    f"averageTime '{cell}' is not a non-negative number; defaulted to 0",
                    AVERAGE_TIME,
                    WARNING,
                )
            )
            return 0
        return int(round(number))

    def _parse_tags(self, raw_row: dict[str, Any], issues: list[RowIssue]) -> list[str]:
        raw = self._raw(raw_row, TAGS)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return []

        tokens: list[str] = []
        if isinstance(raw, str) and not looks_like_markup(raw):
            pattern = "[" + re.escape(self.tag_delimiters) + "]"
            tokens = [token.strip() for token in re.split(pattern, raw) if token.strip()]
        if not tokens or not all(_TAG_TOKEN_RE.match(token) for token in tokens):
            issues.append(
                RowIssue(
                    RowIssue.INVALID_TAGS,
                    f"tags '{cell_to_str(raw)}' is not a delimiter-separated list; ignored",
                    TAGS,
                    WARNING,
                )
            )
            return []

        # De-duplicate while keeping order
        tags = list(dict.fromkeys(tokens))
        if len(tags) > TAGS_MAX_ITEMS:
            issues.append(
                RowIssue(
                    RowIssue.TOO_MANY_TAGS,
                    f"{len(tags)} tags given; only the first {TAGS_MAX_ITEMS} kept",
                    TAGS,
                    WARNING,
                )
            )
            del tags[TAGS_MAX_ITEMS:]
        return tags

    def _resolve_section(self, raw_row: dict[str, Any], issues: list[RowIssue]) -> str | None:
        cell = self._cell(raw_row, SECTION)
        if not cell:
            return None
        if self.sections is None:
            return cell

        wanted = cell.lower()
        for section in self.sections:
            if wanted in (str(section["section_id"]).lower(), str(section["name"]).lower()):
                return str(section["section_id"])

        issues.append(
            RowIssue(
                RowIssue.UNKNOWN_SECTION,
                f"section '{cell}' not found in this test set; question left unassigned",
                SECTION,
                WARNING,
            )
        )
        return None
