"""Tests for the import session state machine."""

import asyncio

import pytest

from exambank.schemas.import_schema import (
    ColumnDiscovery,
    CommitResult,
    CommitRow,
    FieldMapping,
    ImportBatch,
    RowFailure,
)
from exambank.services.importer.batch_controller import ImportBatchController, ImportFile, ImportState
from exambank.services.importer.column_mapper import auto_map
from exambank.services.importer.decoder import TabularData
from exambank.services.importer.errors import ImportStateError, TabularDecodeError, TransportError
from exambank.services.importer.pipeline import build_preview, discover_columns
from tests.helpers.rows import DEFAULT_HEADERS, english_row

FILE = ImportFile(filename="questions.csv", content=b"ignored")


def _rows() -> list[dict]:
    invalid = english_row(QSNo="2")
    del invalid["eng-B"]
    return [english_row(QSNo="1"), invalid, english_row(QSNo="3")]


class FakeGateway:
    """In-memory gateway; ``gate`` lets a test hold a call open."""

    def __init__(self, headers: list[str] | None = None):
        self.table = TabularData(
            headers=headers or DEFAULT_HEADERS,
            rows=[(i + 2, row) for i, row in enumerate(_rows())],
        )
        self.committed: list[list[CommitRow]] = []
        self.previews: list[FieldMapping] = []
        self.gate: asyncio.Event | None = None
        self.fail_with: Exception | None = None
        self.commit_failures: list[RowFailure] = []

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

    async def discover_columns(self, file: ImportFile) -> ColumnDiscovery:
        await self._wait()
        return discover_columns(self.table)

    async def preview(self, file: ImportFile, mapping: FieldMapping) -> ImportBatch:
        await self._wait()
        self.previews.append(mapping)
        return build_preview(self.table, mapping)

    async def commit(self, rows: list[CommitRow]) -> CommitResult:
        await self._wait()
        self.committed.append(rows)
        return CommitResult(
            requested=len(rows),
            imported=len(rows) - len(self.commit_failures),
            failures=self.commit_failures,
        )


# Headers that are not self-describing: an extra column forces manual mapping
MAPPING_HEADERS = DEFAULT_HEADERS + ["Remarks"]


@pytest.mark.asyncio
async def test_self_describing_file_goes_straight_to_preview():
    controller = ImportBatchController(FakeGateway())

    discovery = await controller.request_columns(FILE)

    assert discovery is not None and discovery.needs_mapping is False
    assert controller.state == ImportState.PREVIEWED
    assert controller.batch.selected == {2, 4}


@pytest.mark.asyncio
async def test_full_workflow_commits_only_selected_valid_rows():
    gateway = FakeGateway(MAPPING_HEADERS)
    controller = ImportBatchController(gateway)

    discovery = await controller.request_columns(FILE)
    assert discovery.needs_mapping is True
    assert controller.state == ImportState.COLUMNS_PENDING

    batch = await controller.confirm_mapping(auto_map(MAPPING_HEADERS))
    assert controller.state == ImportState.PREVIEWED
    assert (batch.total_rows, batch.valid_rows, batch.invalid_rows) == (3, 2, 1)

    assert controller.toggle_selection(4) is False
    assert controller.toggle_selection(3) is True  # invalid row, selectable but never sent

    result = await controller.commit()

    assert controller.state == ImportState.DONE
    assert result.imported == 1
    assert [row.row_number for row in gateway.committed[0]] == [2]


@pytest.mark.asyncio
async def test_remap_from_preview():
    gateway = FakeGateway(MAPPING_HEADERS)
    controller = ImportBatchController(gateway)
    await controller.request_columns(FILE)
    await controller.confirm_mapping(auto_map(MAPPING_HEADERS))

    remapped = auto_map(MAPPING_HEADERS).with_overrides({"marks": None})
    await controller.confirm_mapping(remapped)

    assert controller.state == ImportState.PREVIEWED
    assert controller.mapping == remapped
    assert len(gateway.previews) == 2


@pytest.mark.asyncio
async def test_toggle_all_valid():
    controller = ImportBatchController(FakeGateway())
    await controller.request_columns(FILE)

    controller.toggle_all_valid()
    assert controller.batch.selected == set()
    controller.toggle_all_valid()
    assert controller.batch.selected == {2, 4}


@pytest.mark.asyncio
async def test_commit_with_nothing_selected_rejected():
    controller = ImportBatchController(FakeGateway())
    await controller.request_columns(FILE)
    controller.toggle_all_valid()

    with pytest.raises(ImportStateError, match="No valid rows"):
        await controller.commit()
    assert controller.state == ImportState.PREVIEWED


@pytest.mark.asyncio
async def test_partial_commit_reported_and_done():
    gateway = FakeGateway()
    gateway.commit_failures = [RowFailure(row_number=4, code="DUPLICATE_QUESTION_ORDER", reason="taken")]
    controller = ImportBatchController(gateway)
    await controller.request_columns(FILE)

    result = await controller.commit()

    assert result.partial is True
    assert result.imported == 1
    assert controller.state == ImportState.DONE


class TestIllegalTransitions:
    def test_selection_before_preview(self):
        controller = ImportBatchController(FakeGateway())
        with pytest.raises(ImportStateError):
            controller.toggle_selection(2)
        with pytest.raises(ImportStateError):
            controller.toggle_all_valid()

    @pytest.mark.asyncio
    async def test_commit_before_preview(self):
        controller = ImportBatchController(FakeGateway())
        with pytest.raises(ImportStateError):
            await controller.commit()

    @pytest.mark.asyncio
    async def test_confirm_mapping_from_idle(self):
        controller = ImportBatchController(FakeGateway())
        with pytest.raises(ImportStateError):
            await controller.confirm_mapping(auto_map(DEFAULT_HEADERS))

    @pytest.mark.asyncio
    async def test_cancel_after_done(self):
        controller = ImportBatchController(FakeGateway())
        await controller.request_columns(FILE)
        await controller.commit()
        with pytest.raises(ImportStateError):
            controller.cancel()

    @pytest.mark.asyncio
    async def test_new_import_after_done(self):
        controller = ImportBatchController(FakeGateway())
        await controller.request_columns(FILE)
        await controller.commit()

        await controller.request_columns(FILE)
        assert controller.state == ImportState.PREVIEWED
        assert controller.result is None


@pytest.mark.asyncio
async def test_second_outbound_call_rejected_while_outstanding():
    gateway = FakeGateway()
    gateway.gate = asyncio.Event()
    controller = ImportBatchController(gateway)

    first = asyncio.create_task(controller.request_columns(FILE))
    await asyncio.sleep(0)
    assert controller.busy

    with pytest.raises(ImportStateError, match="still running"):
        await controller.request_columns(FILE)

    gateway.gate.set()
    await first
    assert controller.state == ImportState.PREVIEWED
    assert not controller.busy


@pytest.mark.asyncio
async def test_cancel_discards_late_result():
    gateway = FakeGateway()
    gateway.gate = asyncio.Event()
    controller = ImportBatchController(gateway)

    pending = asyncio.create_task(controller.request_columns(FILE))
    await asyncio.sleep(0)
    controller.cancel()
    gateway.gate.set()

    assert await pending is None
    assert controller.state == ImportState.CANCELLED
    assert controller.batch is None


@pytest.mark.asyncio
async def test_cancel_during_preview_discards_batch():
    gateway = FakeGateway(MAPPING_HEADERS)
    controller = ImportBatchController(gateway)
    await controller.request_columns(FILE)
    gateway.gate = asyncio.Event()

    pending = asyncio.create_task(controller.confirm_mapping(auto_map(MAPPING_HEADERS)))
    await asyncio.sleep(0)
    controller.cancel()
    gateway.gate.set()

    assert await pending is None
    assert controller.state == ImportState.CANCELLED


@pytest.mark.asyncio
async def test_failed_discovery_keeps_state():
    gateway = FakeGateway()
    gateway.fail_with = TabularDecodeError("File has no header row")
    controller = ImportBatchController(gateway)

    with pytest.raises(TabularDecodeError):
        await controller.request_columns(FILE)
    assert controller.state == ImportState.IDLE
    assert not controller.busy


@pytest.mark.asyncio
async def test_failed_preview_restores_mapping_state():
    gateway = FakeGateway(MAPPING_HEADERS)
    controller = ImportBatchController(gateway)
    await controller.request_columns(FILE)
    suggested = controller.mapping
    gateway.fail_with = TransportError("decoder unavailable")

    with pytest.raises(TransportError):
        await controller.confirm_mapping(auto_map(MAPPING_HEADERS).with_overrides({"marks": None}))

    assert controller.state == ImportState.COLUMNS_PENDING
    assert controller.mapping == suggested


@pytest.mark.asyncio
async def test_transport_error_on_commit_returns_to_preview():
    gateway = FakeGateway()
    controller = ImportBatchController(gateway)
    await controller.request_columns(FILE)
    gateway.fail_with = TransportError("database unavailable")

    with pytest.raises(TransportError):
        await controller.commit()
    assert controller.state == ImportState.PREVIEWED

    gateway.fail_with = None
    result = await controller.commit()
    assert result.imported == 2
    assert controller.state == ImportState.DONE


@pytest.mark.asyncio
async def test_cancel_from_preview_discards_state():
    controller = ImportBatchController(FakeGateway())
    await controller.request_columns(FILE)

    controller.cancel()

    assert controller.state == ImportState.CANCELLED
    assert controller.batch is None
    assert controller.mapping is None


@pytest.mark.asyncio
async def test_selection_needs_a_built_preview():
    controller = ImportBatchController(FakeGateway())
    controller.state = ImportState.PREVIEWED

    with pytest.raises(ImportStateError, match="no preview has been built"):
        controller.toggle_selection(2)
    with pytest.raises(ImportStateError, match="no preview has been built"):
        await controller.commit()
