"""Pydantic schemas for the bulk question import workflow."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from exambank.schemas.question import QuestionDraft
from exambank.services.importer.errors import ImportStateError, MappingError
from exambank.services.importer.fields import CANONICAL_FIELD_KEYS, FIELD_REGISTRY, REQUIRED_FIELDS

# Validation caps (input hardening)
MAPPING_JSON_MAX_KEYS = len(CANONICAL_FIELD_KEYS)
COMMIT_MAX_QUESTIONS = 5000

# ============================================================================
# Field mapping
# ============================================================================


class FieldMapping(BaseModel):
    """Canonical field key -> spreadsheet header chosen for it (None = unmapped).

    Created once per import session; frozen once built. Operator overrides
    produce a new mapping via ``with_overrides``.
    """

    model_config = ConfigDict(frozen=True)

    bindings: dict[str, str | None] = Field(default_factory=dict)

    def header_for(self, key: str) -> str | None:
        return self.bindings.get(key)

    def unmapped(self) -> list[str]:
        """Canonical keys without a bound header, in registry order."""
        return [key for key in CANONICAL_FIELD_KEYS if not self.bindings.get(key)]

    def missing_required(self) -> list[str]:
        """Required keys the operator still has to map before preview."""
        return [key for key in self.unmapped() if key in REQUIRED_FIELDS]

    def with_overrides(self, overrides: dict[str, str | None]) -> "FieldMapping":
        unknown = sorted(set(overrides) - set(FIELD_REGISTRY))
        if unknown:
            raise MappingError(f"Unknown field keys: {', '.join(unknown)}")
        bindings = dict(self.bindings)
        for key, header in overrides.items():
            bindings[key] = header or None
        return FieldMapping(bindings=bindings)

    def to_json(self) -> dict[str, str]:
        """Bound keys only, as the field-key -> header object clients send back."""
        return {key: header for key, header in self.bindings.items() if header}

    @classmethod
    def from_json(cls, data: Any, headers: list[str] | None = None) -> "FieldMapping":
        """Parse a client-supplied mapping, checking keys and (optionally) headers."""
        if not isinstance(data, dict):
            raise MappingError("Mapping must be an object of field key -> column header")
        if len(data) > MAPPING_JSON_MAX_KEYS:
            raise MappingError(f"Mapping must have at most {MAPPING_JSON_MAX_KEYS} keys")

        unknown = sorted(key for key in data if key not in FIELD_REGISTRY)
        if unknown:
            raise MappingError(f"Unknown field keys: {', '.join(unknown)}")

        bindings: dict[str, str | None] = {}
        for key, header in data.items():
            if header in (None, ""):
                bindings[key] = None
                continue
            if not isinstance(header, str):
                raise MappingError(f"Column for '{key}' must be a string")
            if headers is not None and header not in headers:
                raise MappingError(f"Column '{header}' mapped to '{key}' is not in the file")
            bindings[key] = header
        return cls(bindings=bindings)


class FieldInfoOut(BaseModel):
    """A canonical field as shown in the mapping UI."""

    key: str
    label: str
    default_header: str
    required: bool


# ============================================================================
# Validated rows and batches
# ============================================================================


class ValidatedRow(BaseModel):
    """One spreadsheet row after validation. Rows with errors are never importable."""

    row_number: int
    draft: QuestionDraft
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    error_codes: list[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class ImportBatch(BaseModel):
    """All validated rows of one uploaded spreadsheet plus the operator's selection."""

    rows: list[ValidatedRow] = Field(default_factory=list)
    selected: set[int] = Field(default_factory=set)

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @property
    def valid_rows(self) -> int:
        return sum(1 for row in self.rows if row.is_valid)

    @property
    def invalid_rows(self) -> int:
        return self.total_rows - self.valid_rows

    @property
    def error_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for row in self.rows:
            for code in row.error_codes:
                counts[code] = counts.get(code, 0) + 1
        return counts

    def valid_row_numbers(self) -> list[int]:
        return [row.row_number for row in self.rows if row.is_valid]

    def select_all_valid(self) -> None:
        self.selected = set(self.valid_row_numbers())

    def toggle(self, row_number: int) -> bool:
        """Flip one row's selection; returns the new state."""
        if row_number not in {row.row_number for row in self.rows}:
            raise ImportStateError(f"Row {row_number} is not part of this import")
        if row_number in self.selected:
            self.selected.discard(row_number)
            return False
        self.selected.add(row_number)
        return True

    def toggle_all_valid(self) -> None:
        """Deselect every valid row if all are selected, otherwise select them all."""
        valid = set(self.valid_row_numbers())
        if valid and valid <= self.selected:
            self.selected -= valid
        else:
            self.selected |= valid

    def commit_rows(self) -> list[ValidatedRow]:
        """Selected rows that are still error-free, in row order."""
        return sorted(
            (row for row in self.rows if row.row_number in self.selected and row.is_valid),
            key=lambda row: row.row_number,
        )

    @property
    def selected_count(self) -> int:
        return len(self.commit_rows())


class ImportPreviewOut(BaseModel):
    """Preview response: every row with its status."""

    preview: list[ValidatedRow]
    total_rows: int
    valid_rows: int
    invalid_rows: int
    error_counts: dict[str, int]

    @classmethod
    def from_batch(cls, batch: ImportBatch) -> "ImportPreviewOut":
        return cls(
            preview=batch.rows,
            total_rows=batch.total_rows,
            valid_rows=batch.valid_rows,
            invalid_rows=batch.invalid_rows,
            error_counts=batch.error_counts,
        )


class ColumnDiscovery(BaseModel):
    """Result of reading the header row.

    Either the operator must confirm a mapping (``needs_mapping``), or the
    headers were self-describing and ``preview`` is already filled in.
    """

    needs_mapping: bool
    columns: list[str]
    suggested_mapping: FieldMapping
    unmapped_required: list[str] = Field(default_factory=list)
    preview: ImportBatch | None = None


class ColumnDiscoveryOut(BaseModel):
    """Column discovery response."""

    needs_mapping: bool
    columns: list[str]
    suggested_mapping: dict[str, str]
    unmapped_required: list[str]
    preview: ImportPreviewOut | None = None

    @classmethod
    def from_discovery(cls, discovery: ColumnDiscovery) -> "ColumnDiscoveryOut":
        return cls(
            needs_mapping=discovery.needs_mapping,
            columns=discovery.columns,
            suggested_mapping=discovery.suggested_mapping.to_json(),
            unmapped_required=discovery.unmapped_required,
            preview=(
                ImportPreviewOut.from_batch(discovery.preview) if discovery.preview else None
            ),
        )


# ============================================================================
# Commit
# ============================================================================


class CommitRow(BaseModel):
    """A selected draft, annotated with its spreadsheet row for error correlation."""

    row_number: int = Field(..., ge=1)
    draft: QuestionDraft


class CommitRequest(BaseModel):
    """Commit request body."""

    questions: list[CommitRow] = Field(..., min_length=1, max_length=COMMIT_MAX_QUESTIONS)


class RowFailure(BaseModel):
    """A row the persistence layer rejected."""

    row_number: int
    code: str
    reason: str


class CommitResult(BaseModel):
    """Outcome of one commit; accepted rows stay committed even when others fail."""

    requested: int
    imported: int
    failures: list[RowFailure] = Field(default_factory=list)

    @computed_field
    @property
    def partial(self) -> bool:
        return bool(self.failures) and self.imported > 0
