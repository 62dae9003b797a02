"""Manual single-question authoring.

The editor owns one ``QuestionDraft``. English drives the option list: every
add/remove on English options is followed by ``synchronize`` so Hindi and
Gujarati keep the same count and letters. ``submit`` runs the same
``draft_issues`` checks as bulk import.
"""

import logging
from typing import Any

from exambank.schemas.question import MAX_OPTIONS, LanguageContent, Option, QuestionDraft
from exambank.services.importer.errors import DraftValidationError
from exambank.services.importer.fields import LANGUAGES_BY_CODE, PRIMARY_LANGUAGE, canonical_letter
from exambank.services.importer.options import reletter, synchronize
from exambank.services.importer.rules import MIN_OPTIONS, draft_issues

logger = logging.getLogger(__name__)

DEFAULT_OPTION_COUNT = 4

# Draft attributes set_details may change
DETAIL_FIELDS = frozenset(
    {"section_id", "marks", "average_time_seconds", "question_order", "tags", "is_active"}
)


def new_draft() -> QuestionDraft:
    """Empty draft: English with options A-D, marks 1."""
    english = LanguageContent(
        options=[Option(option_id=canonical_letter(i), text="") for i in range(DEFAULT_OPTION_COUNT)]
    )
    return QuestionDraft(languages={PRIMARY_LANGUAGE: english}, marks=1)


class QuestionDraftEditor:
    """Authoring state for one question."""

    def __init__(self, draft: QuestionDraft | None = None):
        self.draft = draft.model_copy(deep=True) if draft is not None else new_draft()
        if self.draft.english is None:
            self.draft.languages[PRIMARY_LANGUAGE] = LanguageContent()
        self._sync()

    @property
    def english(self) -> LanguageContent:
        return self.draft.languages[PRIMARY_LANGUAGE]

    def _sync(self) -> None:
        synchronize(self.draft.languages, len(self.english.options))

    def _language(self, code: str) -> LanguageContent:
        if code not in self.draft.languages:
            raise ValueError(f"Language '{code}' is not part of this question")
        return self.draft.languages[code]

    # ------------------------------------------------------------------
    # options

    def add_option(self) -> bool:
        """Append an empty English option; False once the cap is reached."""
        options = self.english.options
        if len(options) >= MAX_OPTIONS:
            return False
        options.append(Option(option_id=canonical_letter(len(options)), text=""))
        self._sync()
        return True

    def remove_option(self, index: int) -> bool:
        """Remove an English option by position.

        Refused (returns False) when it would leave fewer than two options.
        The correct answer follows its option to the new letter; if the
        removed option was the correct one, it is cleared.
        """
        options = self.english.options
        if not 0 <= index < len(options):
            return False
        if len(options) - 1 < MIN_OPTIONS:
            return False

        correct_index = None
        if self.draft.correct_option_id in self.english.option_ids():
            correct_index = self.english.option_ids().index(self.draft.correct_option_id)

        del options[index]
        reletter(options)
        self._sync()

        if correct_index is None or correct_index == index:
            self.draft.correct_option_id = None
        elif correct_index > index:
            self.draft.correct_option_id = canonical_letter(correct_index - 1)
        return True

    def set_correct_option(self, letter: str) -> bool:
        if letter not in self.english.option_ids():
            return False
        self.draft.correct_option_id = letter
        return True

    def set_option_text(self, code: str, index: int, text: str) -> None:
        self._language(code).options[index].text = text

    def set_option_image(self, code: str, index: int, image_ref: str | None) -> None:
        self._language(code).options[index].image_ref = image_ref

    # ------------------------------------------------------------------
    # languages

    def add_language(self, code: str) -> LanguageContent:
        """Add a secondary language with options mirroring English."""
        if code not in LANGUAGES_BY_CODE:
            raise ValueError(f"Unsupported language '{code}'")
        content = self.draft.languages.setdefault(code, LanguageContent())
        self._sync()
        return content

    def remove_language(self, code: str) -> None:
        if code == PRIMARY_LANGUAGE:
            raise ValueError("English content cannot be removed")
        if code not in LANGUAGES_BY_CODE:
            raise ValueError(f"Unsupported language '{code}'")
        self.draft.languages.pop(code, None)

    # ------------------------------------------------------------------
    # text

    def set_text(self, code: str, field: str, value: str = "", rich: str | None = None) -> None:
        """Set direction / question_text / conclusion / explanation_text, plain or rich."""
        self._language(code).set_text(field, value, rich=rich)

    def set_question_text(self, code: str, value: str = "", rich: str | None = None) -> None:
        self.set_text(code, "question_text", value, rich=rich)

    def set_explanation(
        self,
        code: str,
        value: str = "",
        rich: str | None = None,
        images: list[str] | None = None,
    ) -> None:
        self.set_text(code, "explanation_text", value, rich=rich)
        if images is not None:
            self._language(code).explanation_images = list(images)

    def set_details(self, **fields: Any) -> None:
        """Update language-independent fields (marks, order, section, ...)."""
        unknown = sorted(set(fields) - DETAIL_FIELDS)
        if unknown:
            raise ValueError(f"Unknown question fields: {', '.join(unknown)}")
        for name, value in fields.items():
            setattr(self.draft, name, value)

    # ------------------------------------------------------------------
    # submit

    def errors(self) -> list[str]:
        return [issue.message for issue in draft_issues(self.draft)]

    def submit(self) -> QuestionDraft:
        """Return a copy of the draft ready for persistence.

        Raises:
            DraftValidationError: with the same messages bulk import reports
        """
        errors = self.errors()
        if errors:
            logger.info("Question draft rejected", extra={"errors": errors})
            raise DraftValidationError(errors)
        return self.draft.model_copy(deep=True)
