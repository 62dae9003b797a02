"""Map raw spreadsheet headers onto canonical question fields.

Two passes over the header list:

1. exact match against each field's documented default header;
2. for fields still unbound, the field's heuristic rules from
   ``HEURISTIC_RULES``. The first header (in file order) that satisfies any
   rule wins.

Rules are plain predicates over a normalized header, so new fields or
languages only add table entries.
"""

from collections.abc import Callable, Iterable

from exambank.schemas.import_schema import FieldMapping
from exambank.services.importer.fields import (
    AVERAGE_TIME,
    CANONICAL_FIELD_KEYS,
    CORRECT_OPTION,
    FIELD_REGISTRY,
    IMPORT_OPTION_LETTERS,
    LANGUAGES,
    MARKS,
    QUESTION_ORDER,
    SECTION,
    SOLUTION,
    TAGS,
    TEXT_FIELDS,
    language_key,
)

HeaderRule = Callable[[str], bool]

# Separators allowed between a language prefix and a field name
LANGUAGE_SEPARATORS: tuple[str, ...] = ("-", " ", "_")


def normalize_header(header: str) -> str:
    return str(header).strip().lower()


def equals(*names: str) -> HeaderRule:
    wanted = frozenset(name.lower() for name in names)
    return lambda header: header in wanted


def contains_all(*words: str) -> HeaderRule:
    return lambda header: all(word in header for word in words)


def contains_any(*words: str) -> HeaderRule:
    return lambda header: any(word in header for word in words)


def all_of(*rules: HeaderRule) -> HeaderRule:
    return lambda header: all(rule(header) for rule in rules)


def prefixed(prefixes: Iterable[str], names: Iterable[str]) -> HeaderRule:
    """Header is exactly ``<prefix><sep><name>`` for one of the given parts."""
    candidates = frozenset(
        f"{prefix}{sep}{name.lower()}"
        for prefix in prefixes
        for sep in LANGUAGE_SEPARATORS
        for name in names
    )
    return lambda header: header in candidates


# Extra spellings accepted for per-language text fields
LANGUAGE_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    SOLUTION: ("solutiontext", "solution"),
}


def _language_rules() -> dict[str, tuple[HeaderRule, ...]]:
    rules: dict[str, tuple[HeaderRule, ...]] = {}
    for lang in LANGUAGES:
        for name in TEXT_FIELDS:
            names = LANGUAGE_FIELD_ALIASES.get(name, (name,))
            rules[language_key(lang.code, name)] = (prefixed(lang.prefixes, names),)
        for letter in IMPORT_OPTION_LETTERS:
            # Exact letter only: "eng-d" must never be taken for "eng-direction"
            rules[language_key(lang.code, letter)] = (prefixed(lang.prefixes, (letter,)),)
    return rules


HEURISTIC_RULES: dict[str, tuple[HeaderRule, ...]] = {
    SECTION: (equals("section", "section name"),),
    QUESTION_ORDER: (equals("qsno", "question order", "qno"),),
    CORRECT_OPTION: (all_of(contains_all("correct"), contains_any("option", "answer")),),
    MARKS: (equals("marks", "mark"),),
    AVERAGE_TIME: (all_of(contains_any("avg"), contains_any("answer", "time")),),
    TAGS: (equals("tags", "tag"),),
    **_language_rules(),
}


def auto_map(headers: list[str], rules: dict[str, tuple[HeaderRule, ...]] | None = None) -> FieldMapping:
    """Resolve raw headers to canonical field keys.

    Pure and deterministic; fields nothing matches stay unmapped.
    """
    rules = HEURISTIC_RULES if rules is None else rules
    normalized = [(header, normalize_header(header)) for header in headers]
    bindings: dict[str, str | None] = {}

    # Pass 1: documented default headers
    for key in CANONICAL_FIELD_KEYS:
        default = normalize_header(FIELD_REGISTRY[key].default_header)
        bindings[key] = next((raw for raw, norm in normalized if norm == default), None)

    # Pass 2: heuristics, first matching header wins
    for key in CANONICAL_FIELD_KEYS:
        if bindings[key] is not None:
            continue
        field_rules = rules.get(key, ())
        bindings[key] = next(
            (raw for raw, norm in normalized if any(rule(norm) for rule in field_rules)),
            None,
        )

    return FieldMapping(bindings=bindings)


def is_self_describing(headers: list[str], mapping: FieldMapping) -> bool:
    """True when every header is some field's default header and nothing required is missing."""
    if not headers or mapping.missing_required():
        return False
    defaults = {normalize_header(spec.default_header) for spec in FIELD_REGISTRY.values()}
    return all(normalize_header(header) in defaults for header in headers)
