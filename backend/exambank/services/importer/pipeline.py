"""Column discovery and preview over a decoded spreadsheet."""

import logging
from typing import Any

from exambank.core.config import settings
from exambank.schemas.import_schema import ColumnDiscovery, FieldMapping, ImportBatch, ValidatedRow
from exambank.services.importer.column_mapper import auto_map, is_self_describing
from exambank.services.importer.decoder import TabularData
from exambank.services.importer.errors import ImportLimitError
from exambank.services.importer.row_validator import RowValidator
from exambank.services.importer.rules import WARNING, RowIssue

logger = logging.getLogger(__name__)


def discover_columns(
    table: TabularData,
    sections: list[dict[str, Any]] | None = None,
    max_rows: int | None = None,
) -> ColumnDiscovery:
    """Suggest a mapping for the file's headers.

    Self-describing files (every header is a documented default header) skip
    the manual mapping step and come back with the preview already built.
    """
    mapping = auto_map(table.headers)
    if is_self_describing(table.headers, mapping):
        return ColumnDiscovery(
            needs_mapping=False,
            columns=table.headers,
            suggested_mapping=mapping,
            preview=build_preview(table, mapping, sections=sections, max_rows=max_rows),
        )

    return ColumnDiscovery(
        needs_mapping=True,
        columns=table.headers,
        suggested_mapping=mapping,
        unmapped_required=mapping.missing_required(),
    )


def _flag_duplicate_orders(rows: list[ValidatedRow]) -> None:
    first_seen: dict[int, int] = {}
    for row in rows:
        order = row.draft.question_order
        if order is None or row.errors:
            continue
        if order in first_seen:
            issue = RowIssue(
                RowIssue.DUPLICATE_ORDER,
                f"questionOrder {order} also used by row {first_seen[order]}",
                "questionOrder",
                WARNING,
            )
            row.warnings.append(issue.message)
        else:
            first_seen[order] = row.row_number


def build_preview(
    table: TabularData,
    mapping: FieldMapping,
    sections: list[dict[str, Any]] | None = None,
    max_rows: int | None = None,
) -> ImportBatch:
    """Validate every row and default-select the error-free ones.

    Raises:
        ImportLimitError: the file has more rows than one import may contain
    """
    limit = max_rows if max_rows is not None else settings.IMPORT_MAX_ROWS
    if table.row_count > limit:
        raise ImportLimitError(limit)

    validator = RowValidator(mapping, sections=sections)
    rows = [validator.validate_row(row_number, raw_row) for row_number, raw_row in table.rows]
    _flag_duplicate_orders(rows)

    batch = ImportBatch(rows=rows)
    batch.select_all_valid()

    logger.info(
        "Import preview built",
        extra={
            "total_rows": batch.total_rows,
            "valid_rows": batch.valid_rows,
            "invalid_rows": batch.invalid_rows,
        },
    )
    return batch
