"""Database models for the application."""
from sqlalchemy import JSON, Column, String

from neonvocab.models.base import Base, TimestampMixin


class StoredRecord(Base, TimestampMixin):
    """A JSON document stored under a fixed key.

    Each slice of the persisted state (word lists, stats, daily stats, ...)
    lives in its own record, so a corrupt slice never takes the others down.
    """

    __tablename__ = "stored_records"

    key = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<StoredRecord key={self.key!r}>"
