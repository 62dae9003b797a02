"""FastAPI dependencies shared by admin endpoints."""

from uuid import UUID

from fastapi import Depends, status
from sqlalchemy.orm import Session

from exambank.core.app_exceptions import raise_app_error
from exambank.db.session import get_db
from exambank.models.question import TestSet


def get_test_set(set_id: UUID, db: Session = Depends(get_db)) -> TestSet:
    """Load the test set named in the path, or 404."""
    test_set = db.get(TestSet, set_id)
    if test_set is None:
        raise_app_error(status.HTTP_404_NOT_FOUND, "TEST_SET_NOT_FOUND", "Test set not found")
    return test_set
