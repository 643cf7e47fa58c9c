"""Error taxonomy shared by the ingestion, deletion and chat paths.

Every error carries an optional ``cause``. Callers branch on the exception
type only; ``user_friendly_message`` turns any exception into the text that
may cross the HTTP boundary, while ``log_error`` records the full detail
server-side.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class DataSourceError(Exception):
    """Base class for every error raised by the service layer."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class ValidationError(DataSourceError):
    """Bad input. Always local, never retried."""


class StorageNotConfiguredError(DataSourceError):
    """The API credential or the file search store name is missing."""


class LocalIOError(DataSourceError):
    """Writing or reading a staged temp file failed."""


class VisionProcessingError(DataSourceError):
    """The image could not be turned into a Markdown summary."""


# -- persistence --


class DatabaseError(DataSourceError):
    """Metadata catalog failure."""


class RecordNotFoundError(DatabaseError):
    pass


class DuplicateRecordError(DatabaseError):
    pass


class DatabaseConnectionError(DatabaseError):
    pass


# -- remote store --


class FileUploadError(DataSourceError):
    """The external store rejected or lost an upload."""


class OperationFailedError(FileUploadError):
    """The upload operation completed with an error payload."""


class OperationTimeoutError(FileUploadError):
    """The upload operation did not complete within the polling bound."""

    def __init__(self, message: str, operation_name: str | None = None, waited: float = 0.0) -> None:
        super().__init__(message)
        self.operation_name = operation_name
        self.waited = waited


class MissingDocumentIdError(FileUploadError):
    """The operation completed but no document id could be extracted.

    The remote artifact exists and is orphaned from the catalog.
    """

    def __init__(self, message: str, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload


class MetadataPersistenceError(FileUploadError):
    """Remote upload succeeded but the catalog row was not written (remote-only document)."""

    def __init__(self, message: str, document_id: str, cause: BaseException | None = None) -> None:
        super().__init__(message, cause)
        self.document_id = document_id


class FileDeletionError(DataSourceError):
    """The external store refused a delete."""


class PartialDeletionError(FileDeletionError):
    """Remote document removed but the catalog row could not be (local-only row)."""

    def __init__(self, message: str, document_id: str, cause: BaseException | None = None) -> None:
        super().__init__(message, cause)
        self.document_id = document_id


GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again."

_FRIENDLY_MESSAGES: list[tuple[type[BaseException], str]] = [
    (StorageNotConfiguredError, "Failed to initialize file storage. Please check your configuration."),
    (LocalIOError, "Failed to process file data"),
    (VisionProcessingError, "Failed to process image. Please try again."),
    (OperationTimeoutError, "File upload timed out while waiting for the search store"),
    (MissingDocumentIdError, "File upload completed but document ID is missing"),
    (MetadataPersistenceError, "File uploaded but failed to save metadata. Please contact support."),
    (OperationFailedError, "File upload failed in the search store"),
    (FileUploadError, "Failed to upload file directly to search store"),
    (PartialDeletionError, "File was removed from the search store but its metadata could not be deleted."),
    (FileDeletionError, "Failed to delete the file. Please try again."),
    (DuplicateRecordError, "This file already exists in the database."),
    (RecordNotFoundError, "The file you are trying to access no longer exists."),
    (DatabaseConnectionError, "Database connection failed. Please check your connection and try again."),
    (DatabaseError, "Database operation failed. Please try again or contact support if the issue persists."),
]


def user_friendly_message(error: BaseException) -> str:
    """Return the sanitized message for ``error``."""

    if isinstance(error, ValidationError):
        return error.message
    for error_type, message in _FRIENDLY_MESSAGES:
        if isinstance(error, error_type):
            return message
    return GENERIC_ERROR_MESSAGE


def _cause_chain(error: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current = error.__cause__ or error.__context__
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def log_error(context: str, error: BaseException) -> None:
    """Log ``error`` once under ``context``. The traceback carries the chained causes."""

    causes = _cause_chain(error)
    logger.error(
        "[%s] %s: %s",
        context,
        type(error).__name__,
        error,
        exc_info=(type(error), error, error.__traceback__),
        extra={
            "context": context,
            "error_name": type(error).__name__,
            "error_causes": [f"{type(c).__name__}: {c}" for c in causes],
        },
    )
