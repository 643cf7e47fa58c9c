## src/service/data_sources.py

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from core.errors import (
    DataSourceError,
    FileDeletionError,
    PartialDeletionError,
    RecordNotFoundError,
    ValidationError,
    log_error,
    user_friendly_message,
)
from core.genai import get_file_search_store_name, get_genai_client
from core.langfuse import emit_event, end_span, start_span, update_span
from core.settings import settings
from schema.data_sources import (
    DataSource,
    DataSourceUpdate,
    DeleteResponse,
    DocumentMetadata,
    ErrorResponse,
    UploadResponse,
)
from service import catalog, file_search
from service.ingestion import IncomingFile, IngestionPipeline
from service.storage import describe_file_type, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["data-sources"])


def get_pipeline() -> IngestionPipeline:
    return IngestionPipeline()


def revalidate_listing(reason: str, document_id: str) -> None:
    """Signal that cached listings are stale. Listings are read straight from the catalog."""
    logger.info("Data source listing invalidated | reason=%s | document_id=%s", reason, document_id)
    emit_event("service.data_sources.revalidate", reason=reason, document_id=document_id)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def _listing_record(meta: DocumentMetadata) -> DataSource:
    info = describe_file_type(meta.file_type)
    return DataSource.from_metadata(meta).model_copy(
        update={"label": info.label, "category": info.category}
    )


def get_data_sources() -> list[DataSource]:
    """Newest first. Any read failure yields an empty list."""
    try:
        return [_listing_record(meta) for meta in catalog.list_metadata()]
    except Exception as exc:
        log_error("getDataSources", exc)
        return []


async def delete_data_source(document_id: str) -> DeleteResponse:
    """Remove ``document_id`` from the search store, then from the catalog.

    "Not found" on either side counts as already deleted.
    """
    if not document_id or not isinstance(document_id, str) or not document_id.strip():
        return DeleteResponse(success=False, message="Invalid document ID provided")

    remote_deleted = False
    try:
        store_name = get_file_search_store_name()
        client = get_genai_client()
        remote_deleted = await file_search.delete_document(client, store_name, document_id)

        try:
            catalog.delete_metadata(document_id)
        except RecordNotFoundError:
            logger.info("Catalog row already absent | document_id=%s", document_id)
        except DataSourceError as exc:
            raise PartialDeletionError(
                "Failed to delete file from database", document_id=document_id, cause=exc
            ) from exc

        revalidate_listing("deleted", document_id)
        return DeleteResponse(success=True, message="File deleted successfully")
    except Exception as exc:
        log_error("deleteDataSource", exc)
        if isinstance(exc, FileDeletionError) and not isinstance(exc, PartialDeletionError):
            logger.warning("Remote delete failed; catalog row kept | document_id=%s", document_id)
        elif isinstance(exc, PartialDeletionError) and remote_deleted:
            logger.error("Local-only catalog row left behind | document_id=%s", document_id)
        return DeleteResponse(success=False, message=user_friendly_message(exc))


@router.post(
    "/embeddings/upload",
    response_model=UploadResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def upload_file(
    file: UploadFile | None = File(None),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    if file is None:
        return _error(400, "No file uploaded")

    span, context = start_span(
        "service.data_sources.upload",
        filename=file.filename,
        content_type=file.content_type,
    )
    error: Exception | None = None
    try:
        with context:
            # reject on the declared size before buffering the body
            if file.size is not None:
                validate_upload(file.filename, file.size)
            data = await file.read(settings.MAX_UPLOAD_BYTES + 1)
            result = await pipeline.ingest(
                IncomingFile(filename=file.filename, content_type=file.content_type, data=data)
            )
            update_span(span, output={"document_id": result.document.id})
            revalidate_listing("uploaded", result.document.id)
            return UploadResponse(success=True, message=result.message)
    except ValidationError as exc:
        error = exc
        logger.info("Upload rejected | filename=%s | reason=%s", file.filename, exc.message)
        return _error(400, exc.message)
    except Exception as exc:
        error = exc
        log_error("upload", exc)
        return _error(500, user_friendly_message(exc))
    finally:
        end_span(span, error=error)


@router.get("/data-sources", response_model=list[DataSource])
async def list_data_sources() -> list[DataSource]:
    return get_data_sources()


@router.delete("/data-sources/{document_id}", response_model=DeleteResponse)
async def remove_data_source(document_id: str) -> DeleteResponse:
    span, context = start_span("service.data_sources.delete", document_id=document_id)
    with context:
        result = await delete_data_source(document_id)
        update_span(span, output=result.model_dump())
    end_span(span)
    return result


@router.patch("/data-sources/{document_id}", response_model=DataSource)
async def edit_data_source(document_id: str, changes: DataSourceUpdate) -> DataSource:
    try:
        meta = catalog.update_metadata(
            document_id,
            name=changes.name,
            file_type=changes.file_type,
            size=changes.size,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=user_friendly_message(exc))
    except DataSourceError as exc:
        log_error("updateDataSource", exc)
        raise HTTPException(status_code=500, detail=user_friendly_message(exc))
    revalidate_listing("updated", document_id)
    return _listing_record(meta)
