"""Tests for per-row validation of spreadsheet rows."""

import pytest

from exambank.services.importer.column_mapper import auto_map
from exambank.services.importer.row_validator import RowValidator, cell_to_str
from exambank.services.importer.rules import RowIssue
from tests.helpers.rows import DEFAULT_HEADERS, SECTIONS, english_row

FULL_HEADERS = DEFAULT_HEADERS + [
    "avg answer time",
    "tags",
    "eng-C",
    "eng-direction",
    "eng-solutionText",
    "hn-question",
    "hn-A",
    "hn-B",
    "hn-C",
]


def validate(row: dict, headers: list[str] | None = None, sections=None):
    mapping = auto_map(headers or FULL_HEADERS)
    return RowValidator(mapping, sections=sections).validate_row(2, row)


class TestValidRows:
    def test_minimal_valid_row(self):
        result = validate(english_row(), DEFAULT_HEADERS)

        assert result.errors == []
        assert result.warnings == []
        assert result.is_valid
        assert result.row_number == 2
        draft = result.draft
        assert draft.correct_option_id == "B"
        assert draft.question_order == 1
        assert draft.marks == 1
        assert draft.average_time_seconds == 0
        assert draft.section_id == "quant"
        assert [o.text for o in draft.english.options] == ["3", "4"]
        assert draft.english.option_ids() == ["A", "B"]
        assert set(draft.languages) == {"en"}

    @pytest.mark.parametrize("cell", ["B", "b", "(B)", "B)", "B.", " b "])
    def test_correct_option_forms(self, cell):
        result = validate(english_row(correctOption=cell))
        assert result.errors == []
        assert result.draft.correct_option_id == "B"

    def test_xlsx_float_cells(self):
        result = validate(english_row(QSNo=3.0, marks=2.0, **{"eng-A": 3, "eng-B": 4.0}))
        assert result.errors == []
        assert result.draft.question_order == 3
        assert result.draft.marks == 2
        assert [o.text for o in result.draft.english.options] == ["3", "4"]

    def test_options_stop_at_first_empty_slot(self):
        row = english_row(**{"eng-C": "5"})
        row["eng-B"] = ""
        result = validate(row)
        assert result.errors == ["fewer than 2 options"]
        assert len(result.draft.english.options) == 1

    def test_rich_question_text(self):
        result = validate(english_row(**{"eng-question": "<p>What is <b>2+2</b>?</p>"}))
        english = result.draft.english
        assert english.question_rich == "<p>What is <b>2+2</b>?</p>"
        assert english.question_text == "What is 2+2?"
        assert result.errors == []

    def test_direction_and_solution(self):
        row = english_row(**{"eng-direction": "Answer carefully", "eng-solutionText": "2+2 is 4"})
        english = validate(row).draft.english
        assert english.direction == "Answer carefully"
        assert english.explanation_text == "2+2 is 4"


class TestErrors:
    def test_single_english_option(self):
        row = english_row()
        del row["eng-B"]
        result = validate(row)
        assert result.errors == ["fewer than 2 options"]
        assert result.error_codes == [RowIssue.TOO_FEW_OPTIONS]
        assert not result.is_valid

    def test_missing_question_order(self):
        result = validate(english_row(QSNo=""))
        assert result.errors == ["questionOrder is required"]
        assert result.error_codes == [RowIssue.MISSING_REQUIRED]

    def test_non_numeric_question_order(self):
        result = validate(english_row(QSNo="first"))
        assert result.error_codes == [RowIssue.INVALID_NUMBER]
        assert "not a number" in result.errors[0]

    def test_fractional_question_order(self):
        result = validate(english_row(QSNo="2.5"))
        assert result.error_codes == [RowIssue.INVALID_NUMBER]

    def test_question_order_below_one(self):
        result = validate(english_row(QSNo="0"))
        assert result.errors == ["questionOrder must be at least 1"]

    def test_missing_correct_option(self):
        result = validate(english_row(correctOption=""))
        assert result.errors == ["correctOption is required"]

    def test_correct_option_not_an_option(self):
        result = validate(english_row(correctOption="E"))
        assert result.error_codes == [RowIssue.INVALID_CORRECT]
        assert "A, B" in result.errors[0]

    def test_garbage_correct_option(self):
        result = validate(english_row(correctOption="option two"))
        assert result.error_codes == [RowIssue.INVALID_CORRECT]

    def test_missing_question_text(self):
        result = validate(english_row(**{"eng-question": ""}))
        assert result.errors == ["English question text is required"]

    def test_unmapped_fields_read_as_empty(self):
        result = validate({"QSNo": "1"}, ["QSNo"])
        assert "English question text is required" in result.errors
        assert "fewer than 2 options" in result.errors

    def test_unexpected_exception_becomes_row_error(self, monkeypatch):
        def boom(self, raw_row, issues):
            raise RuntimeError("boom")

        monkeypatch.setattr(RowValidator, "_parse_marks", boom)
        result = validate(english_row())
        assert result.error_codes == [RowIssue.INTERNAL_ERROR]
        assert not result.is_valid


class TestWarningsAndDefaults:
    @pytest.mark.parametrize("marks", ["", "0", "-2", "lots"])
    def test_marks_defaulted(self, marks):
        result = validate(english_row(marks=marks))
        assert result.errors == []
        assert result.draft.marks == 1
        assert len(result.warnings) == 1
        assert "marks" in result.warnings[0]

    def test_average_time_missing_is_silent(self):
        result = validate(english_row())
        assert result.draft.average_time_seconds == 0
        assert result.warnings == []

    def test_average_time_parsed(self):
        result = validate(english_row(**{"avg answer time": "45"}))
        assert result.draft.average_time_seconds == 45
        assert result.warnings == []

    @pytest.mark.parametrize("value", ["soon", "-5"])
    def test_bad_average_time_defaulted(self, value):
        result = validate(english_row(**{"avg answer time": value}))
        assert result.draft.average_time_seconds == 0
        assert len(result.warnings) == 1
        assert result.is_valid

    def test_tags_split_on_delimiters(self):
        result = validate(english_row(tags="algebra, easy|speed;algebra"))
        assert result.draft.tags == ["algebra", "easy", "speed"]
        assert result.warnings == []

    @pytest.mark.parametrize("value", ['["algebra", "easy"]', "<b>algebra</b>", 2024])
    def test_unrecognized_tags_ignored(self, value):
        result = validate(english_row(tags=value))
        assert result.draft.tags == []
        assert len(result.warnings) == 1
        assert result.is_valid


class TestSecondaryLanguages:
    def test_absent_without_question_text(self):
        result = validate(english_row(**{"hn-A": "तीन"}))
        assert set(result.draft.languages) == {"en"}

    def test_padded_to_english_count_with_warning(self):
        row = english_row(**{"eng-C": "5", "hn-question": "2+2=?", "hn-A": "तीन"})
        result = validate(row)

        hindi = result.draft.languages["hi"]
        assert hindi.option_ids() == ["A", "B", "C"]
        assert [o.text for o in hindi.options] == ["तीन", "", ""]
        assert result.errors == []
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Hindi")

    def test_extra_secondary_options_truncated(self):
        row = english_row(**{"hn-question": "2+2=?", "hn-A": "तीन", "hn-B": "चार", "hn-C": "पाँच"})
        result = validate(row)
        assert result.draft.languages["hi"].option_ids() == ["A", "B"]
        assert len(result.warnings) == 1

    def test_matching_counts_no_warning(self):
        row = english_row(**{"hn-question": "2+2=?", "hn-A": "तीन", "hn-B": "चार"})
        result = validate(row)
        assert result.warnings == []
        assert result.errors == []


class TestSections:
    def test_resolved_by_name_case_insensitive(self):
        result = validate(english_row(section="REASONING"), sections=SECTIONS)
        assert result.draft.section_id == "reasoning"
        assert result.warnings == []

    def test_resolved_by_id(self):
        result = validate(english_row(section="quant"), sections=SECTIONS)
        assert result.draft.section_id == "quant"

    def test_unknown_section_warns(self):
        result = validate(english_row(section="History"), sections=SECTIONS)
        assert result.draft.section_id is None
        assert len(result.warnings) == 1
        assert result.is_valid


@pytest.mark.parametrize(
    "value,expected",
    [(None, ""), (1.0, "1"), (1.5, "1.5"), ("  x ", "x"), (7, "7"), (True, "TRUE")],
)
def test_cell_to_str(value, expected):
    assert cell_to_str(value) == expected


class TestSchemaLimits:
    def test_too_many_tags_truncated_with_warning(self):
        tags = ",".join(f"t{i}" for i in range(60))

        result = validate(english_row(tags=tags))

        assert result.is_valid
        assert len(result.draft.tags) == 50
        assert result.draft.tags[-1] == "t49"
        assert result.warnings == ["60 tags given; only the first 50 kept"]

    def test_overlong_option_is_a_row_error(self):
        result = validate(english_row(**{"eng-B": "x" * 1001}))

        assert result.errors == ["English option B text is longer than 1000 characters"]
        assert result.error_codes == [RowIssue.TEXT_TOO_LONG]
        # The rest of the row is still shown
        assert result.draft.english.question_text == "2+2=?"
        assert result.draft.correct_option_id == "B"

    def test_overlong_secondary_question_text(self):
        row = english_row(**{"hn-question": "क" * 8001, "hn-A": "तीन", "hn-B": "चार"})

        result = validate(row)

        assert result.errors == ["Hindi question_text is longer than 8000 characters"]


class TestOptionGaps:
    def test_secondary_blank_keeps_later_text_in_place(self):
        row = english_row(**{"hn-question": "2+2=?", "hn-A": "", "hn-B": "चार"})

        result = validate(row)

        hindi = result.draft.languages["hi"]
        assert hindi.option_ids() == ["A", "B"]
        assert [o.text for o in hindi.options] == ["", "चार"]
        assert result.warnings == ["Hindi: 1 option texts supplied for 2 English options"]

    def test_secondary_hole_in_the_middle(self):
        row = english_row(
            **{"eng-C": "5", "hn-question": "2+2=?", "hn-A": "तीन", "hn-B": "", "hn-C": "पाँच"}
        )

        result = validate(row)

        assert [o.text for o in result.draft.languages["hi"].options] == ["तीन", "", "पाँच"]
        assert result.errors == []

    def test_english_options_after_gap_warned(self):
        headers = FULL_HEADERS + ["eng-D"]
        row = english_row(**{"eng-C": "", "eng-D": "6"})

        result = validate(row, headers)

        assert result.draft.english.option_ids() == ["A", "B"]
        assert result.is_valid
        assert result.warnings == ["English option C is empty; options D after it ignored"]
