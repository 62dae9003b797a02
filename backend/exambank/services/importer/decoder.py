"""Decode uploaded spreadsheets (CSV / XLSX) into header + row dictionaries."""

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Any

from openpyxl import load_workbook

from exambank.core.config import settings
from exambank.services.importer.errors import TabularDecodeError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv", ".xlsx")


@dataclass
class TabularData:
    """Decoded sheet: header list plus (row_number, {header: value}) rows.

    Row numbers are as the spreadsheet shows them; the header is row 1.
    """

    headers: list[str]
    rows: list[tuple[int, dict[str, Any]]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _dedupe_headers(raw_headers: list[Any]) -> list[tuple[int, str]]:
    """(column index, header) for non-blank headers; repeats get a " (n)" suffix."""
    seen: dict[str, int] = {}
    columns: list[tuple[int, str]] = []
    for index, raw in enumerate(raw_headers):
        if _is_blank(raw):
            continue
        header = str(raw).strip()
        seen[header] = seen.get(header, 0) + 1
        if seen[header] > 1:
            header = f"{header} ({seen[header]})"
        columns.append((index, header))
    return columns


def _build_table(raw_rows: list[tuple[int, list[Any]]]) -> TabularData:
    if not raw_rows:
        raise TabularDecodeError("File has no header row")

    _, header_cells = raw_rows[0]
    columns = _dedupe_headers(header_cells)
    if not columns:
        raise TabularDecodeError("File has no header row")

    table = TabularData(headers=[header for _, header in columns])
    for row_number, cells in raw_rows[1:]:
        if all(_is_blank(cell) for cell in cells):
            continue
        row = {header: (cells[index] if index < len(cells) else None) for index, header in columns}
        table.rows.append((row_number, row))
    return table


class CSVDecoder:
    """Parse CSV bytes with the stdlib csv module."""

    def __init__(self, encoding: str | None = None, delimiter: str | None = None, quote_char: str = '"'):
        self.encoding = encoding or settings.IMPORT_CSV_ENCODING
        self.delimiter = delimiter or settings.IMPORT_CSV_DELIMITER
        self.quote_char = quote_char

    def decode(self, content: bytes) -> TabularData:
        try:
            text_content = content.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise TabularDecodeError(f"Failed to decode file with encoding {self.encoding}: {e}")

        try:
            reader = csv.reader(
                io.StringIO(text_content),
                delimiter=self.delimiter,
                quotechar=self.quote_char,
            )
            # One record per spreadsheet row, even when a quoted cell spans lines
            raw_rows = [(row_number, row) for row_number, row in enumerate(reader, start=1)]
        except csv.Error as e:
            raise TabularDecodeError(f"CSV parsing error: {e}")

        return _build_table(raw_rows)


class XLSXDecoder:
    """Read the first worksheet of an .xlsx workbook with openpyxl."""

    def decode(self, content: bytes) -> TabularData:
        try:
            workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except Exception as e:
            raise TabularDecodeError(f"Failed to open workbook: {e}")

        try:
            sheet = workbook.worksheets[0]
            raw_rows = [
                (row_number, list(values))
                for row_number, values in enumerate(sheet.iter_rows(values_only=True), start=1)
            ]
        finally:
            workbook.close()

        return _build_table(raw_rows)


def decode_table(
    filename: str,
    content: bytes,
    encoding: str | None = None,
    delimiter: str | None = None,
) -> TabularData:
    """Pick a decoder by file extension and decode the upload.

    Raises:
        TabularDecodeError: unsupported extension, undecodable bytes or no header row
    """
    name = (filename or "").lower()
    if name.endswith(".csv"):
        decoder: CSVDecoder | XLSXDecoder = CSVDecoder(encoding=encoding, delimiter=delimiter)
    elif name.endswith(".xlsx"):
        decoder = XLSXDecoder()
    else:
        raise TabularDecodeError(
            f"Unsupported file type '{filename}'; expected one of {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    table = decoder.decode(content)
    logger.info(
        "Decoded import file",
        extra={"import_filename": filename, "columns": len(table.headers), "rows": table.row_count},
    )
    return table
