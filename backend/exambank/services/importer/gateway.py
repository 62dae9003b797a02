"""In-process ImportGateway: decoder, pipeline and writer behind one interface."""

import logging

import anyio
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exambank.models.question import TestSet
from exambank.schemas.import_schema import (
    ColumnDiscovery,
    CommitResult,
    CommitRow,
    FieldMapping,
    ImportBatch,
)
from exambank.services.importer.batch_controller import ImportFile
from exambank.services.importer.decoder import decode_table
from exambank.services.importer.errors import TransportError
from exambank.services.importer.pipeline import build_preview, discover_columns
from exambank.services.importer.writer import QuestionWriter

logger = logging.getLogger(__name__)


class LocalImportGateway:
    """Run every import step in this process against one test set.

    Blocking work (decoding, validation, database writes) runs in a worker
    thread so the event loop stays free.
    """

    def __init__(
        self,
        db: Session,
        test_set: TestSet,
        encoding: str | None = None,
        delimiter: str | None = None,
        max_rows: int | None = None,
    ):
        self.db = db
        self.test_set = test_set
        self.encoding = encoding
        self.delimiter = delimiter
        self.max_rows = max_rows

    def _discover_sync(self, file: ImportFile) -> ColumnDiscovery:
        table = decode_table(file.filename, file.content, self.encoding, self.delimiter)
        return discover_columns(table, sections=self.test_set.section_table(), max_rows=self.max_rows)

    def _preview_sync(self, file: ImportFile, mapping: FieldMapping) -> ImportBatch:
        table = decode_table(file.filename, file.content, self.encoding, self.delimiter)
        # Headers may have changed since discovery; re-check the mapping against this file
        FieldMapping.from_json(mapping.to_json(), headers=table.headers)
        return build_preview(table, mapping, sections=self.test_set.section_table(), max_rows=self.max_rows)

    def _commit_sync(self, rows: list[CommitRow]) -> CommitResult:
        try:
            return QuestionWriter(self.db, self.test_set).write_batch(rows)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Import commit failed", extra={"error": str(e)})
            raise TransportError(f"Database unavailable during commit: {e}") from e

    async def discover_columns(self, file: ImportFile) -> ColumnDiscovery:
        return await anyio.to_thread.run_sync(self._discover_sync, file)

    async def preview(self, file: ImportFile, mapping: FieldMapping) -> ImportBatch:
        return await anyio.to_thread.run_sync(self._preview_sync, file, mapping)

    async def commit(self, rows: list[CommitRow]) -> CommitResult:
        return await anyio.to_thread.run_sync(self._commit_sync, rows)
