"""Keep every language's option list aligned with English.

English is the source of truth for option cardinality. Secondary languages are
padded, truncated and re-lettered so that position ``i`` carries the same
canonical letter in every language. Both the bulk importer and the manual
editor go through ``synchronize``.
"""

from exambank.schemas.question import LanguageContent, Option
from exambank.services.importer.fields import PRIMARY_LANGUAGE, canonical_letter


def reletter(options: list[Option]) -> list[Option]:
    """Force positional letters on one option list, in place."""
    for index, option in enumerate(options):
        option.option_id = canonical_letter(index)
    return options


def synchronize(languages: dict[str, LanguageContent], target_count: int) -> dict[str, LanguageContent]:
    """Resize and re-letter every non-English option list to ``target_count``.

    Mutates and returns ``languages``. The count is mirrored as given; keeping
    English at two or more options is the caller's job.
    """
    if target_count < 0:
        raise ValueError(f"target_count must be non-negative, got {target_count}")

    for code, content in languages.items():
        if code == PRIMARY_LANGUAGE:
            continue
        options = content.options
        if len(options) < target_count:
            options.extend(
                Option(option_id=canonical_letter(index), text="")
                for index in range(len(options), target_count)
            )
        elif len(options) > target_count:
            del options[target_count:]
        reletter(options)
    return languages


def option_shape_mismatches(languages: dict[str, LanguageContent]) -> list[str]:
    """Describe every language whose option list is not congruent with English."""
    english = languages.get(PRIMARY_LANGUAGE)
    if english is None:
        return []

    expected = [canonical_letter(i) for i in range(len(english.options))]
    problems: list[str] = []
    if english.option_ids() != expected:
        problems.append(f"{PRIMARY_LANGUAGE}: option ids {english.option_ids()} are not {expected}")
    for code, content in languages.items():
        if code == PRIMARY_LANGUAGE:
            continue
        if len(content.options) != len(english.options):
            problems.append(
                f"{code}: {len(content.options)} options, English has {len(english.options)}"
            )
        elif content.option_ids() != expected:
            problems.append(f"{code}: option ids {content.option_ids()} are not {expected}")
    return problems
