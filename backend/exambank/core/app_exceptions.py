"""Application-specific exceptions for consistent error handling."""

from typing import Any

from fastapi import HTTPException, status

from exambank.services.importer.errors import (
    DraftValidationError,
    DuplicateQuestionOrder,
    ImportLimitError,
    ImportPipelineError,
    MappingError,
    TabularDecodeError,
)


class AppError(HTTPException):
    """Application error with standardized error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
    ):
        """Initialize application error."""
        super().__init__(
            status_code=status_code,
            detail={
                "code": code,
                "message": message,
                "details": details,
            },
        )
        self.code = code
        self.message = message
        self.details = details


def raise_app_error(
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | list[Any] | None = None,
) -> None:
    """Raise an application error with standardized format."""
    raise AppError(status_code=status_code, code=code, message=message, details=details)


def app_error_from_pipeline(exc: ImportPipelineError) -> AppError:
    """Translate an import pipeline failure into an HTTP error."""
    if isinstance(exc, DraftValidationError):
        return AppError(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "QUESTION_INVALID",
            "Question failed validation",
            {"errors": exc.errors},
        )
    if isinstance(exc, DuplicateQuestionOrder):
        return AppError(
            status.HTTP_409_CONFLICT,
            "DUPLICATE_QUESTION_ORDER",
            str(exc),
            {"question_order": exc.question_order},
        )
    if isinstance(exc, ImportLimitError):
        return AppError(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_LIMIT_EXCEEDED",
            "Import row count exceeds maximum allowed",
            {"limit": exc.limit},
        )
    if isinstance(exc, (TabularDecodeError, MappingError)):
        return AppError(status.HTTP_400_BAD_REQUEST, exc.code, str(exc))
    return AppError(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.code, str(exc))
