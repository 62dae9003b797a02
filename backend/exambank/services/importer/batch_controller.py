"""Two-phase bulk import workflow: preview, select, commit.

One controller owns one import session. Outbound calls (column discovery,
preview, commit) go through an ``ImportGateway`` and are the only awaits;
selection changes are synchronous and local. Calls are strictly sequential:
starting a second outbound call while one is outstanding is an error.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from exambank.schemas.import_schema import (
    ColumnDiscovery,
    CommitResult,
    CommitRow,
    FieldMapping,
    ImportBatch,
)
from exambank.services.importer.errors import ImportStateError

logger = logging.getLogger(__name__)


class ImportState(str, Enum):
    """Import session states."""

    IDLE = "IDLE"
    COLUMNS_PENDING = "COLUMNS_PENDING"
    MAPPING_CONFIRMED = "MAPPING_CONFIRMED"
    PREVIEWED = "PREVIEWED"
    COMMITTING = "COMMITTING"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class ImportFile:
    """An uploaded spreadsheet."""

    filename: str
    content: bytes


class ImportGateway(Protocol):
    """Outbound collaborator: decoding, validation and persistence."""

    async def discover_columns(self, file: ImportFile) -> ColumnDiscovery: ...

    async def preview(self, file: ImportFile, mapping: FieldMapping) -> ImportBatch: ...

    async def commit(self, rows: list[CommitRow]) -> CommitResult: ...


class ImportBatchController:
    """State machine for one import session."""

    _START_STATES = frozenset({ImportState.IDLE, ImportState.CANCELLED, ImportState.DONE})
    _MAPPING_STATES = frozenset({ImportState.COLUMNS_PENDING, ImportState.PREVIEWED})

    def __init__(self, gateway: ImportGateway):
        self.gateway = gateway
        self.state = ImportState.IDLE
        self.file: ImportFile | None = None
        self.discovery: ColumnDiscovery | None = None
        self.mapping: FieldMapping | None = None
        self.batch: ImportBatch | None = None
        self.result: CommitResult | None = None
        self._busy = False
        self._generation = 0

    # ------------------------------------------------------------------
    # helpers

    def _transition(self, new_state: ImportState) -> None:
        logger.info(
            "Import state change",
            extra={"from_state": self.state.value, "to_state": new_state.value},
        )
        self.state = new_state

    def _require(self, allowed: frozenset[ImportState] | set[ImportState], action: str) -> None:
        if self.state not in allowed:
            raise ImportStateError(f"Cannot {action} while import is {self.state.value}")

    def _begin_call(self, action: str) -> int:
        if self._busy:
            raise ImportStateError(f"Cannot {action}: another import step is still running")
        self._busy = True
        return self._generation

    def _end_call(self) -> None:
        self._busy = False

    def _require_batch(self, action: str) -> ImportBatch:
        self._require({ImportState.PREVIEWED}, action)
        if self.batch is None:
            raise ImportStateError(f"Cannot {action}: no preview has been built")
        return self.batch

    def _reset(self) -> None:
        self.file = None
        self.discovery = None
        self.mapping = None
        self.batch = None
        self.result = None

    @property
    def busy(self) -> bool:
        return self._busy

    # ------------------------------------------------------------------
    # outbound steps

    async def request_columns(self, file: ImportFile) -> ColumnDiscovery | None:
        """Discover columns; self-describing files go straight to PREVIEWED.

        Returns None when the session was cancelled while the call was out.
        """
        self._require(self._START_STATES, "request columns")
        generation = self._begin_call("request columns")
        try:
            discovery = await self.gateway.discover_columns(file)
        finally:
            self._end_call()
        if generation != self._generation:
            logger.info("Discarding column discovery result of a cancelled import")
            return None

        self._reset()
        self.file = file
        self.discovery = discovery
        self.mapping = discovery.suggested_mapping
        if discovery.needs_mapping or discovery.preview is None:
            self._transition(ImportState.COLUMNS_PENDING)
        else:
            self.batch = discovery.preview
            self._transition(ImportState.PREVIEWED)
        return discovery

    async def confirm_mapping(self, mapping: FieldMapping) -> ImportBatch | None:
        """Freeze the mapping and immediately preview every row."""
        self._require(self._MAPPING_STATES, "confirm mapping")
        previous = (self.state, self.mapping)
        generation = self._generation
        self.mapping = mapping
        self._transition(ImportState.MAPPING_CONFIRMED)
        try:
            return await self.preview()
        except Exception:
            if generation == self._generation:
                self.state, self.mapping = previous
            raise

    async def preview(self) -> ImportBatch | None:
        self._require({ImportState.MAPPING_CONFIRMED}, "preview")
        if self.file is None or self.mapping is None:
            raise ImportStateError("Cannot preview without a file and a mapping")

        generation = self._begin_call("preview")
        try:
            batch = await self.gateway.preview(self.file, self.mapping)
        finally:
            self._end_call()
        if generation != self._generation:
            logger.info("Discarding preview result of a cancelled import")
            return None

        self.batch = batch
        self._transition(ImportState.PREVIEWED)
        return batch

    async def commit(self) -> CommitResult | None:
        """Send the selected, error-free rows to persistence.

        Per-row failures are reported on the result and the session ends in
        DONE; a failed call (e.g. TransportError) puts it back in PREVIEWED so it
        can be retried.
        """
        batch = self._require_batch("commit")
        rows = [
            CommitRow(row_number=row.row_number, draft=row.draft)
            for row in batch.commit_rows()
        ]
        if not rows:
            raise ImportStateError("No valid rows selected for import")

        generation = self._begin_call("commit")
        self._transition(ImportState.COMMITTING)
        try:
            result = await self.gateway.commit(rows)
        except Exception:
            self._transition(ImportState.PREVIEWED)
            raise
        finally:
            self._end_call()
        if generation != self._generation:
            return None

        self.result = result
        self._transition(ImportState.DONE)
        logger.info(
            "Import committed",
            extra={
                "requested": result.requested,
                "imported": result.imported,
                "failed": len(result.failures),
            },
        )
        return result

    # ------------------------------------------------------------------
    # local selection

    def toggle_selection(self, row_number: int) -> bool:
        return self._require_batch("change selection").toggle(row_number)

    def toggle_all_valid(self) -> None:
        self._require_batch("change selection").toggle_all_valid()

    def cancel(self) -> None:
        """Discard the session; an outstanding call's result is dropped when it arrives."""
        if self.state in (ImportState.COMMITTING, ImportState.DONE):
            raise ImportStateError(f"Cannot cancel while import is {self.state.value}")
        self._generation += 1
        self._reset()
        self._transition(ImportState.CANCELLED)
