"""Database models."""

# Import all models here so create_all sees them
from exambank.models.question import Question, QuestionSource, TestSet

__all__ = [
    "TestSet",
    "Question",
    "QuestionSource",
]
