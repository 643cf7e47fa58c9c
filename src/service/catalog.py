from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from core import settings
from core.errors import (
    DatabaseConnectionError,
    DatabaseError,
    DuplicateRecordError,
    RecordNotFoundError,
    ValidationError,
)
from schema.data_sources import DocumentMetadata

logger = logging.getLogger(__name__)

metadata_obj = MetaData()

# One row per document accepted by the file search store, keyed by its document id.
data_sources = Table(
    "data_sources",
    metadata_obj,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("type", String, nullable=False),
    Column("size", String, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Reuse a single SQLAlchemy engine for the metadata catalog."""
    if not settings.DATABASE_URL:
        raise DatabaseConnectionError("DATABASE_URL is not configured")
    return create_engine(settings.DATABASE_URL, pool_pre_ping=True)


def _translate(exc: SQLAlchemyError, message: str) -> DatabaseError:
    if isinstance(exc, IntegrityError):
        return DuplicateRecordError(message, exc)
    if isinstance(exc, (OperationalError, InterfaceError)) or (
        isinstance(exc, DBAPIError) and exc.connection_invalidated
    ):
        return DatabaseConnectionError(message, exc)
    return DatabaseError(message, exc)


@contextmanager
def _transaction(message: str) -> Iterator[Connection]:
    try:
        eng = get_engine()
        with eng.begin() as conn:
            yield conn
    except SQLAlchemyError as exc:
        raise _translate(exc, message) from exc


def _require_id(file_id: str) -> None:
    if not file_id or not isinstance(file_id, str) or not file_id.strip():
        raise ValidationError("File ID is required and must be a non-empty string")


def _validate(meta: DocumentMetadata) -> None:
    _require_id(meta.id)
    if not meta.name or not meta.name.strip():
        raise ValidationError("File name is required and must be a non-empty string")
    if not meta.file_type:
        raise ValidationError("File type is required and must be a valid MIME type")
    if not meta.size:
        raise ValidationError("File size is required")


def _as_utc(value: datetime | None) -> datetime | None:
    # sqlite drops the offset on the way back, and every stored value is UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_meta(row: Any) -> DocumentMetadata:
    return DocumentMetadata(
        id=row["id"],
        name=row["name"],
        file_type=row["type"],
        size=row["size"],
        uploaded_at=_as_utc(row["created_at"]),
    )


def init() -> None:
    """Create the catalog table if not present."""
    try:
        metadata_obj.create_all(get_engine())
    except SQLAlchemyError as exc:
        raise _translate(exc, "Failed to initialise the metadata catalog") from exc
    logger.info("Metadata catalog ready")


def save_metadata(meta: DocumentMetadata) -> DocumentMetadata:
    _validate(meta)
    uploaded_at = _as_utc(meta.uploaded_at) or datetime.now(timezone.utc)
    values = {
        "id": meta.id,
        "name": meta.name,
        "type": meta.file_type,
        "size": meta.size,
        "created_at": uploaded_at,
    }
    try:
        with _transaction("Failed to add file to database") as conn:
            conn.execute(insert(data_sources).values(**values))
    except DuplicateRecordError as exc:
        raise DuplicateRecordError(
            f'A file with ID "{meta.id}" already exists in the database', exc.cause
        ) from exc.cause
    logger.info("File added to catalog | id=%s | name=%s", meta.id, meta.name)
    return meta.model_copy(update={"uploaded_at": uploaded_at})


def list_metadata() -> list[DocumentMetadata]:
    q = select(data_sources).order_by(data_sources.c.created_at.desc(), data_sources.c.id)
    with _transaction("Failed to fetch files from database") as conn:
        rows = conn.execute(q).mappings().all()
    return [_row_to_meta(r) for r in rows]


def get_metadata_by_id(file_id: str) -> DocumentMetadata | None:
    _require_id(file_id)
    q = select(data_sources).where(data_sources.c.id == file_id).limit(1)
    with _transaction(f'Failed to fetch file with ID "{file_id}"') as conn:
        row = conn.execute(q).mappings().first()
    return _row_to_meta(row) if row else None


def update_metadata(
    file_id: str,
    *,
    name: str | None = None,
    file_type: str | None = None,
    size: str | None = None,
) -> DocumentMetadata:
    _require_id(file_id)
    changes = {
        column: value
        for column, value in (("name", name), ("type", file_type), ("size", size))
        if value
    }
    if not changes:
        raise ValidationError("At least one field must be provided for update")

    with _transaction(f'Failed to update file with ID "{file_id}"') as conn:
        result = conn.execute(
            update(data_sources).where(data_sources.c.id == file_id).values(**changes)
        )
        if result.rowcount == 0:
            raise RecordNotFoundError(f'File with ID "{file_id}" not found in the database')
        row = conn.execute(
            select(data_sources).where(data_sources.c.id == file_id)
        ).mappings().one()
    logger.info("File updated in catalog | id=%s | fields=%s", file_id, sorted(changes))
    return _row_to_meta(row)


def delete_metadata(file_id: str) -> None:
    _require_id(file_id)
    with _transaction(f'Failed to delete file with ID "{file_id}"') as conn:
        result = conn.execute(delete(data_sources).where(data_sources.c.id == file_id))
    if result.rowcount == 0:
        raise RecordNotFoundError(f'File with ID "{file_id}" not found in the database')
    logger.info("File deleted from catalog | id=%s", file_id)
