"""Exceptions raised by the import pipeline and the draft editor.

Row-level problems are never raised; they are collected on ``ValidatedRow``.
These exceptions cover the fail-fast cases: a whole step could not run.
"""


class ImportPipelineError(Exception):
    """Base class for import pipeline failures."""

    code = "IMPORT_FAILED"


class TransportError(ImportPipelineError):
    """A decode or commit call to a collaborator failed entirely."""

    code = "TRANSPORT_ERROR"


class TabularDecodeError(ImportPipelineError):
    """The uploaded file could not be decoded into header + rows."""

    code = "INVALID_FILE"


class ImportLimitError(ImportPipelineError):
    """The uploaded file has more rows than an import may contain."""

    code = "VALIDATION_LIMIT_EXCEEDED"

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Import row count exceeds maximum of {limit}")


class ImportStateError(ImportPipelineError):
    """An operation is not allowed in the controller's current state."""

    code = "INVALID_IMPORT_STATE"


class MappingError(ImportPipelineError):
    """A submitted field mapping references unknown fields or columns."""

    code = "INVALID_MAPPING"


class DraftValidationError(ImportPipelineError):
    """A manually authored draft failed the structural checks."""

    code = "QUESTION_INVALID"

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class DuplicateQuestionOrder(ImportPipelineError):
    """The test set already has a question at this position."""

    code = "DUPLICATE_QUESTION_ORDER"

    def __init__(self, question_order: int):
        self.question_order = question_order
        super().__init__(f"questionOrder {question_order} is already used in this test set")
