"""Thin wrapper over the Gemini file search store API.

Uploads return a long-running operation which is polled with exponential
backoff until it completes, fails, or exceeds the configured timeout.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from google import genai
from google.genai import errors

from core.errors import (
    FileDeletionError,
    FileUploadError,
    MissingDocumentIdError,
    OperationFailedError,
    OperationTimeoutError,
)
from core.settings import settings

logger = logging.getLogger(__name__)

# Custom metadata key carrying the uploader's original filename; chat filters match on it.
FILE_NAME_METADATA_KEY = "file_name"
DOCUMENTS_SEGMENT = "/documents/"
NOT_FOUND = 404

Sleeper = Callable[[float], Awaitable[Any]]


def document_resource_name(store_name: str, document_id: str) -> str:
    return f"{store_name}{DOCUMENTS_SEGMENT}{document_id}"


async def upload_document(
    client: genai.Client,
    *,
    path: Path,
    store_name: str,
    display_name: str,
    mime_type: str,
    original_name: str,
) -> Any:
    """Start an upload of ``path`` into ``store_name`` and return the operation handle."""
    config: dict[str, Any] = {
        "display_name": display_name,
        "mime_type": mime_type,
        "custom_metadata": [
            {"key": FILE_NAME_METADATA_KEY, "string_value": original_name},
        ],
    }
    try:
        operation = await client.aio.file_search_stores.upload_to_file_search_store(
            file=str(path),
            file_search_store_name=store_name,
            config=config,
        )
    except errors.APIError as exc:
        raise FileUploadError(f"File upload failed: {exc.message}", exc) from exc
    logger.info(
        "Upload started | store=%s | display_name=%s | operation=%s",
        store_name,
        display_name,
        getattr(operation, "name", None),
    )
    return operation


def _operation_error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(getattr(error, "message", error))


async def wait_for_operation(
    client: genai.Client,
    operation: Any,
    *,
    initial_interval: float | None = None,
    max_interval: float | None = None,
    backoff: float | None = None,
    timeout: float | None = None,
    sleep: Sleeper = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Any:
    """Poll ``operation`` until done.

    Raises ``OperationTimeoutError`` once ``timeout`` seconds have elapsed and
    ``OperationFailedError`` when the finished operation carries an error.
    Cancellation of the calling task propagates out of the sleep.
    """
    interval = settings.UPLOAD_POLL_INITIAL_INTERVAL if initial_interval is None else initial_interval
    max_interval = settings.UPLOAD_POLL_MAX_INTERVAL if max_interval is None else max_interval
    backoff = settings.UPLOAD_POLL_BACKOFF if backoff is None else backoff
    timeout = settings.UPLOAD_POLL_TIMEOUT if timeout is None else timeout

    started = clock()
    deadline = started + timeout
    attempts = 0
    while not operation.done:
        remaining = deadline - clock()
        if remaining <= 0:
            raise OperationTimeoutError(
                f"Upload operation did not complete within {timeout:g} seconds",
                operation_name=getattr(operation, "name", None),
                waited=clock() - started,
            )
        await sleep(min(interval, remaining))
        attempts += 1
        try:
            operation = await client.aio.operations.get(operation)
        except errors.APIError as exc:
            raise FileUploadError(f"Failed to check upload status: {exc.message}", exc) from exc
        logger.debug(
            "Upload operation status | operation=%s | attempt=%d | done=%s",
            getattr(operation, "name", None),
            attempts,
            operation.done,
        )
        interval = min(interval * backoff, max_interval)

    if operation.error:
        raise OperationFailedError(
            f"File upload failed: {_operation_error_message(operation.error)}"
        )
    return operation


def extract_document_id(operation: Any) -> str:
    response = getattr(operation, "response", None)
    if isinstance(response, dict):
        document_name = response.get("document_name") or response.get("documentName")
    else:
        document_name = getattr(response, "document_name", None)

    document_id = ""
    if document_name and DOCUMENTS_SEGMENT in document_name:
        document_id = document_name.split(DOCUMENTS_SEGMENT, 1)[1].strip()
    if not document_id:
        raise MissingDocumentIdError(
            "Document ID is missing from operation response", payload=response
        )
    return document_id


async def delete_document(client: genai.Client, store_name: str, document_id: str) -> bool:
    """Force-delete a document. Returns ``False`` when the store no longer has it."""
    name = document_resource_name(store_name, document_id)
    try:
        await client.aio.file_search_stores.documents.delete(
            name=name,
            config={"force": True},
        )
    except errors.APIError as exc:
        if exc.code == NOT_FOUND:
            logger.info("Document already absent from search store | name=%s", name)
            return False
        raise FileDeletionError(
            "Failed to delete file from Google File Search Store", exc
        ) from exc
    logger.info("Document deleted from search store | name=%s", name)
    return True
