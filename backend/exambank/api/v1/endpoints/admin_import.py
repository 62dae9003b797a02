"""Admin import endpoints for bulk question imports."""

import csv
import io
import json
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from sqlalchemy.orm import Session

from exambank.core.app_exceptions import raise_app_error
from exambank.core.config import settings
from exambank.core.dependencies import get_test_set
from exambank.core.etag import cached_download
from exambank.db.session import get_db
from exambank.models.question import TestSet
from exambank.schemas.import_schema import (
    ColumnDiscoveryOut,
    CommitRequest,
    CommitResult,
    FieldInfoOut,
    FieldMapping,
    ImportPreviewOut,
)
from exambank.services.importer.batch_controller import ImportFile
from exambank.services.importer.errors import MappingError
from exambank.services.importer.fields import CANONICAL_FIELD_KEYS, FIELD_REGISTRY, template_headers
from exambank.services.importer.gateway import LocalImportGateway

router = APIRouter(prefix="/admin/import", tags=["Admin - Import"])


async def _read_upload(file: UploadFile) -> ImportFile:
    """Read an upload, enforcing the import size cap (413)."""
    max_bytes = settings.MAX_BODY_BYTES_IMPORT
    file.file.seek(0, 2)
    file_size = file.file.tell()
    file.file.seek(0)
    if file_size > max_bytes:
        raise_app_error(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            "PAYLOAD_TOO_LARGE",
            f"File size exceeds maximum of {max_bytes // (1024 * 1024)}MB",
            {"max_bytes": max_bytes},
        )
    content = await file.read()
    return ImportFile(filename=file.filename or "", content=content)


def _parse_mapping(raw: str) -> FieldMapping:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MappingError(f"Mapping is not valid JSON: {e.msg}")
    # Columns are checked against the file by the gateway
    return FieldMapping.from_json(data)


# ============================================================================
# Field catalogue
# ============================================================================


@router.get("/fields", response_model=list[FieldInfoOut])
async def list_fields() -> list[FieldInfoOut]:
    """Canonical fields with labels and documented default headers."""
    return [
        FieldInfoOut(
            key=key,
            label=FIELD_REGISTRY[key].label,
            default_header=FIELD_REGISTRY[key].default_header,
            required=FIELD_REGISTRY[key].required,
        )
        for key in CANONICAL_FIELD_KEYS
    ]


@router.get("/template")
async def download_template(request: Request) -> Response:
    """Download the CSV header template. Supports ETag/If-None-Match for caching."""
    buffer = io.StringIO()
    csv.writer(buffer, delimiter=settings.IMPORT_CSV_DELIMITER, lineterminator="\n").writerow(
        template_headers()
    )
    return cached_download(request, buffer.getvalue(), "text/csv", "question_import_template.csv")


# ============================================================================
# Import workflow
# ============================================================================


@router.post("/sets/{set_id}/columns", response_model=ColumnDiscoveryOut)
async def discover_columns(
    file: UploadFile = File(...),
    test_set: TestSet = Depends(get_test_set),
    db: Session = Depends(get_db),
) -> ColumnDiscoveryOut:
    """Read the header row and suggest a field mapping.

    Self-describing files come back with the preview already built.
    """
    upload = await _read_upload(file)
    discovery = await LocalImportGateway(db, test_set).discover_columns(upload)
    return ColumnDiscoveryOut.from_discovery(discovery)


@router.post("/sets/{set_id}/preview", response_model=ImportPreviewOut)
async def preview_import(
    file: UploadFile = File(...),
    mapping: Annotated[str | None, Form()] = None,
    test_set: TestSet = Depends(get_test_set),
    db: Session = Depends(get_db),
) -> ImportPreviewOut:
    """Validate every row. Without ``mapping`` the suggested mapping is used."""
    upload = await _read_upload(file)
    gateway = LocalImportGateway(db, test_set)
    if mapping:
        batch = await gateway.preview(upload, _parse_mapping(mapping))
    else:
        discovery = await gateway.discover_columns(upload)
        # Self-describing files come back already previewed
        batch = discovery.preview
        if batch is None:
            batch = await gateway.preview(upload, discovery.suggested_mapping)
    return ImportPreviewOut.from_batch(batch)


@router.post("/sets/{set_id}/commit", response_model=CommitResult)
async def commit_import(
    payload: CommitRequest,
    test_set: TestSet = Depends(get_test_set),
    db: Session = Depends(get_db),
) -> CommitResult:
    """Insert the selected rows; rejected rows come back keyed by row number."""
    return await LocalImportGateway(db, test_set).commit(payload.questions)
