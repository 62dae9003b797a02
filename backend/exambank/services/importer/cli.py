"""CLI entry point for importing a question spreadsheet into a test set."""

import asyncio
import json
import sys
from pathlib import Path
from uuid import UUID

import click

from exambank.core.logging import get_logger, setup_logging
from exambank.db.base import create_tables
from exambank.db.engine import engine
from exambank.db.session import SessionLocal
from exambank.models.question import TestSet
from exambank.schemas.import_schema import CommitResult, FieldMapping, ImportBatch
from exambank.services.importer.batch_controller import ImportBatchController, ImportFile
from exambank.services.importer.errors import ImportPipelineError, ImportStateError, MappingError
from exambank.services.importer.gateway import LocalImportGateway

logger = get_logger(__name__)


def _echo_preview(batch: ImportBatch) -> None:
    click.echo(
        f"Rows: {batch.total_rows} total, {batch.valid_rows} valid, {batch.invalid_rows} invalid"
    )
    for row in batch.rows:
        for message in row.errors:
            click.echo(f"  row {row.row_number}: ERROR {message}")
        for message in row.warnings:
            click.echo(f"  row {row.row_number}: warning {message}")


def _echo_result(result: CommitResult) -> None:
    click.echo(f"Imported {result.imported} of {result.requested} selected rows")
    for failure in result.failures:
        click.echo(f"  row {failure.row_number}: {failure.code} {failure.reason}")


async def run_import(
    controller: ImportBatchController,
    file: ImportFile,
    overrides: dict[str, str | None] | None,
    exclude: tuple[int, ...],
    dry_run: bool,
) -> CommitResult | None:
    """Drive one import session end to end; returns None for dry runs."""
    discovery = await controller.request_columns(file)
    if discovery is None:
        return None

    if discovery.needs_mapping or overrides:
        mapping = discovery.suggested_mapping.with_overrides(overrides or {})
        missing = mapping.missing_required()
        if missing:
            raise MappingError(f"Required fields are not mapped: {', '.join(missing)}")
        await controller.confirm_mapping(mapping)

    batch = controller.batch
    if batch is None:
        raise ImportStateError("Import was cancelled before rows were previewed")
    _echo_preview(batch)

    for row_number in exclude:
        if row_number in batch.selected:
            controller.toggle_selection(row_number)

    if dry_run:
        click.echo(f"Dry run: {batch.selected_count} rows would be imported")
        controller.cancel()
        return None

    result = await controller.commit()
    if result is not None:
        _echo_result(result)
    return result


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--set-id", required=True, help="Target test set ID")
@click.option("--mapping", "mapping_json", help='Field overrides as JSON, e.g. {"questionOrder": "No."}')
@click.option("--exclude", type=int, multiple=True, help="Row number to leave out (repeatable)")
@click.option("--dry-run", is_flag=True, help="Validate and report without writing")
@click.option("--verbose", is_flag=True, help="Log at DEBUG level")
def main(
    file: Path,
    set_id: str,
    mapping_json: str | None,
    exclude: tuple[int, ...],
    dry_run: bool,
    verbose: bool,
):
    """
    Import questions from a CSV or XLSX file.

    Example:
        python -m exambank.services.importer.cli questions.xlsx \\
            --set-id 3f1c... \\
            --exclude 7 --dry-run
    """
    setup_logging("DEBUG" if verbose else None)

    try:
        set_uuid = UUID(set_id)
    except ValueError as e:
        click.echo(f"Invalid set id: {e}", err=True)
        sys.exit(1)

    overrides = None
    if mapping_json:
        try:
            overrides = FieldMapping.from_json(json.loads(mapping_json)).bindings
        except (json.JSONDecodeError, MappingError) as e:
            click.echo(f"Invalid mapping: {e}", err=True)
            sys.exit(1)

    create_tables(engine)
    db = SessionLocal()
    try:
        test_set = db.get(TestSet, set_uuid)
        if test_set is None:
            click.echo(f"Test set {set_id} not found", err=True)
            sys.exit(1)

        controller = ImportBatchController(LocalImportGateway(db, test_set))
        upload = ImportFile(filename=file.name, content=file.read_bytes())
        try:
            result = asyncio.run(run_import(controller, upload, overrides, exclude, dry_run))
        except ImportPipelineError as e:
            logger.error("Import failed", extra={"code": e.code, "error": str(e)})
            click.echo(f"Import failed ({e.code}): {e}", err=True)
            sys.exit(1)
    finally:
        db.close()

    if result is not None and result.failures:
        sys.exit(2)


if __name__ == "__main__":
    main()
