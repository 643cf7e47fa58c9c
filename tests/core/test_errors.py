import logging

import pytest

from core.errors import (
    GENERIC_ERROR_MESSAGE,
    DatabaseConnectionError,
    DatabaseError,
    DuplicateRecordError,
    FileDeletionError,
    FileUploadError,
    LocalIOError,
    MetadataPersistenceError,
    MissingDocumentIdError,
    OperationFailedError,
    OperationTimeoutError,
    PartialDeletionError,
    RecordNotFoundError,
    StorageNotConfiguredError,
    ValidationError,
    VisionProcessingError,
    log_error,
    user_friendly_message,
)


@pytest.mark.parametrize(
    "error, expected",
    [
        (StorageNotConfiguredError("key missing"), "Failed to initialize file storage. Please check your configuration."),
        (LocalIOError("disk full"), "Failed to process file data"),
        (VisionProcessingError("model down"), "Failed to process image. Please try again."),
        (OperationTimeoutError("slow"), "File upload timed out while waiting for the search store"),
        (MissingDocumentIdError("no id"), "File upload completed but document ID is missing"),
        (
            MetadataPersistenceError("db down", document_id="d"),
            "File uploaded but failed to save metadata. Please contact support.",
        ),
        (OperationFailedError("bad file"), "File upload failed in the search store"),
        (FileUploadError("rejected"), "Failed to upload file directly to search store"),
        (
            PartialDeletionError("db down", document_id="d"),
            "File was removed from the search store but its metadata could not be deleted.",
        ),
        (FileDeletionError("nope"), "Failed to delete the file. Please try again."),
        (DuplicateRecordError("dup"), "This file already exists in the database."),
        (RecordNotFoundError("gone"), "The file you are trying to access no longer exists."),
        (
            DatabaseConnectionError("refused"),
            "Database connection failed. Please check your connection and try again.",
        ),
        (
            DatabaseError("weird"),
            "Database operation failed. Please try again or contact support if the issue persists.",
        ),
        (RuntimeError("secret stack detail"), GENERIC_ERROR_MESSAGE),
    ],
)
def test_user_friendly_message(error, expected):
    assert user_friendly_message(error) == expected


def test_validation_message_passes_through():
    assert user_friendly_message(ValidationError("File is empty")) == "File is empty"


def test_cause_is_chained():
    root = OSError("disk")
    error = LocalIOError("Failed to stage a.txt", root)
    assert error.cause is root
    assert error.__cause__ is root
    assert str(error) == "Failed to stage a.txt"


def test_partial_errors_carry_document_id():
    assert MetadataPersistenceError("x", document_id="doc-1").document_id == "doc-1"
    assert PartialDeletionError("x", document_id="doc-2").document_id == "doc-2"


def test_log_error_records_cause_chain(caplog):
    root = ConnectionRefusedError("refused")
    error = DatabaseConnectionError("Failed to add file to database", root)

    with caplog.at_level(logging.ERROR, logger="core.errors"):
        log_error("upload", error)

    [record] = caplog.records
    assert record.context == "upload"
    assert record.error_name == "DatabaseConnectionError"
    assert record.error_causes == ["ConnectionRefusedError: refused"]
    assert record.exc_info[1] is error
