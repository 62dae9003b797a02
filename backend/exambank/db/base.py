"""Database base and model registry."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


def create_tables(bind) -> None:
    """Create every registered table that does not exist yet."""
    # Registers the models on Base.metadata
    import exambank.models  # noqa: F401

    Base.metadata.create_all(bind=bind)
