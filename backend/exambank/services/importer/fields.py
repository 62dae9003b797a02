"""Canonical question fields understood by the importer.

Languages and per-language fields are data: a new language is one more
``LanguageSpec`` in ``LANGUAGES`` and every mapping rule, template column and
validation step picks it up.
"""

from dataclasses import dataclass

# Common (language-independent) fields
SECTION = "section"
QUESTION_ORDER = "questionOrder"
CORRECT_OPTION = "correctOption"
MARKS = "marks"
AVERAGE_TIME = "averageTime"
TAGS = "tags"

COMMON_FIELDS: tuple[str, ...] = (SECTION, QUESTION_ORDER, CORRECT_OPTION, MARKS, AVERAGE_TIME, TAGS)

COMMON_DEFAULT_HEADERS: dict[str, str] = {
    SECTION: "section",
    QUESTION_ORDER: "QSNo",
    CORRECT_OPTION: "correctOption",
    MARKS: "marks",
    AVERAGE_TIME: "avg answer time",
    TAGS: "tags",
}

COMMON_LABELS: dict[str, str] = {
    SECTION: "Section",
    QUESTION_ORDER: "Question Order",
    CORRECT_OPTION: "Correct Option",
    MARKS: "Marks",
    AVERAGE_TIME: "Average Time (seconds)",
    TAGS: "Tags",
}

# Per-language text fields
DIRECTION = "direction"
QUESTION = "question"
CONCLUSION = "conclusion"
SOLUTION = "solutionText"

TEXT_FIELDS: tuple[str, ...] = (DIRECTION, QUESTION, CONCLUSION, SOLUTION)

TEXT_FIELD_LABELS: dict[str, str] = {
    DIRECTION: "Direction (formatted)",
    QUESTION: "Question Text (formatted)",
    CONCLUSION: "Conclusion (formatted)",
    SOLUTION: "Explanation (formatted)",
}

# Option columns a spreadsheet may carry per language
IMPORT_OPTION_LETTERS: tuple[str, ...] = tuple("ABCDEFGHIJ")


@dataclass(frozen=True)
class LanguageSpec:
    """A supported content language."""

    code: str
    header_prefix: str
    label: str

    @property
    def prefixes(self) -> tuple[str, ...]:
        """Prefixes a header may use for this language (lowercase)."""
        if self.header_prefix == self.code:
            return (self.code,)
        return (self.header_prefix, self.code)


LANGUAGES: tuple[LanguageSpec, ...] = (
    LanguageSpec(code="en", header_prefix="eng", label="English"),
    LanguageSpec(code="hi", header_prefix="hn", label="Hindi"),
    LanguageSpec(code="gu", header_prefix="guj", label="Gujarati"),
)

PRIMARY_LANGUAGE = "en"

LANGUAGES_BY_CODE: dict[str, LanguageSpec] = {lang.code: lang for lang in LANGUAGES}


def language_field_names() -> tuple[str, ...]:
    """Field names every language carries, in template order."""
    return (DIRECTION, QUESTION, CONCLUSION, *IMPORT_OPTION_LETTERS, SOLUTION)


def language_key(code: str, name: str) -> str:
    """Canonical key for a per-language field, e.g. ``en-question``."""
    return f"{code}-{name}"


def option_key(code: str, letter: str) -> str:
    return language_key(code, letter)


@dataclass(frozen=True)
class FieldSpec:
    """One canonical field: key, documented default header and UI label."""

    key: str
    default_header: str
    label: str
    required: bool = False


REQUIRED_FIELDS: frozenset[str] = frozenset(
    {
        QUESTION_ORDER,
        CORRECT_OPTION,
        language_key(PRIMARY_LANGUAGE, QUESTION),
        option_key(PRIMARY_LANGUAGE, "A"),
        option_key(PRIMARY_LANGUAGE, "B"),
    }
)


def _build_registry() -> dict[str, FieldSpec]:
    registry: dict[str, FieldSpec] = {}
    for key in COMMON_FIELDS:
        registry[key] = FieldSpec(
            key=key,
            default_header=COMMON_DEFAULT_HEADERS[key],
            label=COMMON_LABELS[key],
            required=key in REQUIRED_FIELDS,
        )
    for lang in LANGUAGES:
        for name in language_field_names():
            key = language_key(lang.code, name)
            if name in TEXT_FIELD_LABELS:
                label = f"{lang.label} {TEXT_FIELD_LABELS[name]}"
            else:
                label = f"{lang.label} Option {name}"
            registry[key] = FieldSpec(
                key=key,
                default_header=f"{lang.header_prefix}-{name}",
                label=label,
                required=key in REQUIRED_FIELDS,
            )
    return registry


FIELD_REGISTRY: dict[str, FieldSpec] = _build_registry()

# Registry order: common fields, then each language's fields
CANONICAL_FIELD_KEYS: tuple[str, ...] = tuple(FIELD_REGISTRY)


def canonical_letter(index: int) -> str:
    """Positional option identifier: A..Z, then AA, AB, ... like spreadsheet columns."""
    if index < 0:
        raise ValueError(f"Option index must be non-negative, got {index}")
    letters = ""
    n = index
    while True:
        n, rem = divmod(n, 26)
        letters = chr(ord("A") + rem) + letters
        if n == 0:
            return letters
        n -= 1


def template_headers() -> list[str]:
    """Default headers of every field, in registry order (the import template)."""
    return [FIELD_REGISTRY[key].default_header for key in CANONICAL_FIELD_KEYS]
