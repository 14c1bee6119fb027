"""
Domain models for the migrator.

A `Record` is one row of the author/book outer join: the parent author columns
plus exactly one `Child` value. Authors without a book still produce a Record;
their child is the empty `Child()` rather than `None`.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from sqlindexer.errors import DecodeError, SerializationError

# Column order of the source query.
SOURCE_COLUMNS = (
    "id",
    "name",
    "bio",
    "birth_date",
    "title",
    "description",
    "publish_date",
)


class Child(BaseModel):
    """
    The associated book of an author row. All-empty means "no book".
    """

    title: str = Field("", description="Book title.")
    description: str = Field("", description="Book description.")
    publish_date: str = Field("", description="Publication date as ISO string.")

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not (self.title or self.description or self.publish_date)


class Record(BaseModel):
    """
    Representation of a single row of the source query.
    """

    id: int = Field(..., description="Primary key of the author; used as document id.")
    name: str = Field(..., description="Author name.")
    bio: str = Field(..., description="Author biography.")
    birth_date: str = Field(..., description="Author birth date as ISO string.")
    child: Child = Field(default_factory=Child, description="Associated book, possibly empty.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }

    @property
    def document_id(self) -> str:
        return str(self.id)

    def to_document(self) -> Dict[str, Any]:
        """
        Render the index document body. The nested `books` object is always present.
        """
        try:
            return {
                "name": self.name,
                "bio": self.bio,
                "birth_date": self.birth_date,
                "books": self.child.model_dump(mode="json"),
            }
        except (TypeError, ValueError) as exc:
            raise SerializationError(str(exc), document_id=self.document_id) from exc


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def record_from_row(row: Sequence[Any]) -> Record:
    """
    Map one positional source row onto a Record.

    Raises DecodeError when the row has the wrong arity, a required parent
    column is null, or the id is not an integer. Null child columns map to "".
    """
    if len(row) != len(SOURCE_COLUMNS):
        raise DecodeError(
            f"expected {len(SOURCE_COLUMNS)} columns, got {len(row)}",
        )

    raw_id, name, bio, birth_date, title, description, publish_date = row
    document_id = None if raw_id is None else str(raw_id)

    parent = {"name": name, "bio": bio, "birth_date": birth_date}
    missing = [column for column, value in parent.items() if value is None]
    if raw_id is None:
        missing.insert(0, "id")
    if missing:
        raise DecodeError(
            f"null value in required column(s): {', '.join(missing)}",
            document_id=document_id,
        )

    try:
        # Partially null books keep the populated columns and blank the rest.
        child = Child(
            title=_as_text(title) or "",
            description=_as_text(description) or "",
            publish_date=_as_text(publish_date) or "",
        )
        return Record(
            id=raw_id,
            name=_as_text(name),
            bio=_as_text(bio),
            birth_date=_as_text(birth_date),
            child=child,
        )
    except (ValidationError, UnicodeDecodeError) as exc:
        raise DecodeError(str(exc), document_id=document_id) from exc


__all__ = ["Child", "Record", "SOURCE_COLUMNS", "record_from_row"]
