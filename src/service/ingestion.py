"""Upload ingestion: validate, stage, summarize images, upload, poll, record.

The search store and the metadata catalog are not transactionally linked.
A failure after the remote upload leaves a remote-only document and is
reported as ``MissingDocumentIdError`` or ``MetadataPersistenceError``;
nothing is rolled back remotely.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from google import genai

from core.errors import DatabaseError, MetadataPersistenceError
from core.genai import get_file_search_store_name, get_genai_client
from schema.data_sources import DocumentMetadata
from service import catalog, file_search
from service.storage import (
    MARKDOWN_MIME_TYPE,
    ScratchFiles,
    build_summary_file_name,
    format_file_size,
    is_image,
    normalize_mime_type,
    validate_upload,
)
from service.vision import summarize_image

logger = logging.getLogger(__name__)

Summarizer = Callable[..., Awaitable[str]]


@dataclass
class IncomingFile:
    """One uploaded payload as received from the form."""

    filename: str | None
    content_type: str | None
    data: bytes | None

    @property
    def size(self) -> int | None:
        return None if self.data is None else len(self.data)


@dataclass
class IngestionResult:
    document: DocumentMetadata
    message: str


@dataclass
class _UploadTarget:
    path: Path
    display_name: str
    mime_type: str


class IngestionPipeline:
    """Runs one upload end to end. Instances are cheap; build one per request."""

    def __init__(
        self,
        client: genai.Client | None = None,
        store_name: str | None = None,
        *,
        scratch_root: Path | None = None,
        summarizer: Summarizer = summarize_image,
    ) -> None:
        self._client = client
        self._store_name = store_name
        self._scratch_root = scratch_root
        self._summarizer = summarizer

    @property
    def store_name(self) -> str:
        if self._store_name is None:
            self._store_name = get_file_search_store_name()
        return self._store_name

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = get_genai_client()
        return self._client

    async def ingest(self, upload: IncomingFile) -> IngestionResult:
        validate_upload(upload.filename, upload.size)
        name = upload.filename or ""
        data = upload.data or b""

        mime_type = normalize_mime_type(upload.content_type, name)
        store_name = self.store_name
        client = self.client

        with ScratchFiles(self._scratch_root) as scratch:
            staged = scratch.write_bytes(name, data)
            target = _UploadTarget(path=staged, display_name=name, mime_type=mime_type)

            if is_image(mime_type):
                target = await self._summarize(client, scratch, data, name, mime_type)

            operation = await file_search.upload_document(
                client,
                path=target.path,
                store_name=store_name,
                display_name=target.display_name,
                mime_type=target.mime_type,
                original_name=name,
            )
            operation = await file_search.wait_for_operation(client, operation)
            document_id = file_search.extract_document_id(operation)
            logger.info("Upload completed | name=%s | document_id=%s", name, document_id)

            document = self._persist(
                DocumentMetadata(
                    id=document_id,
                    name=name,
                    file_type=mime_type,
                    size=format_file_size(len(data)),
                    uploaded_at=datetime.now(timezone.utc),
                )
            )

        return IngestionResult(document=document, message=f"File '{name}' uploaded successfully")

    async def _summarize(
        self,
        client: genai.Client,
        scratch: ScratchFiles,
        data: bytes,
        name: str,
        mime_type: str,
    ) -> _UploadTarget:
        summary_name = build_summary_file_name(name)
        markdown = await self._summarizer(
            client, data=data, mime_type=mime_type, original_name=name
        )
        summary_path = scratch.write_text(summary_name, markdown)
        return _UploadTarget(path=summary_path, display_name=summary_name, mime_type=MARKDOWN_MIME_TYPE)

    def _persist(self, document: DocumentMetadata) -> DocumentMetadata:
        try:
            return catalog.save_metadata(document)
        except DatabaseError as exc:
            logger.error(
                "File uploaded to search store but metadata was not saved | document_id=%s",
                document.id,
            )
            raise MetadataPersistenceError(
                f'Document "{document.id}" uploaded but metadata not saved',
                document_id=document.id,
                cause=exc,
            ) from exc
