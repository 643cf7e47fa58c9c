## src/service/service.py

import json
import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from google import genai

from core import LoggingMiddleware, settings
from core.errors import DataSourceError, ValidationError, log_error, user_friendly_message
from core.genai import get_file_search_store_name, get_genai_client
from core.langfuse import end_span, get_langfuse_client, start_span, update_span
from schema import ChatRequest, ChatSource, SelectedDataSource, StreamEvent
from service import catalog
from service.chat import build_generation_config, build_prompt, extract_sources
from service.data_sources import router as data_sources_router
from service.storage import ensure_scratch_dir

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Prepare the scratch directory and the metadata table before serving."""
    try:
        ensure_scratch_dir()
        catalog.init()
        yield
    except Exception as e:
        logger.error(f"Error during startup: {e}")
        raise


app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)

router = APIRouter()


def _sse(event: StreamEvent) -> str:
    return f"data: {json.dumps(event.model_dump())}\n\n"


def _merge_sources(seen: dict[tuple[str | None, str | None], ChatSource], new: list[ChatSource]) -> bool:
    added = False
    for source in new:
        key = (source.title, source.uri)
        if key not in seen:
            seen[key] = source
            added = True
    return added


async def message_generator(
    client: genai.Client,
    store_name: str,
    prompt: str,
    selections: Sequence[SelectedDataSource] | None = None,
) -> AsyncGenerator[str, None]:
    """
    Stream the model's answer as SSE frames.

    Tokens are forwarded as they arrive; citations collected along the way are
    sent once, deduplicated, after the last token, and the stream ends with
    ``[DONE]``. If the client disconnects, the upstream stream is closed and
    nothing more is sent.
    """
    span, context = start_span(
        "service.chat.stream",
        store=store_name,
        selected=[s.name for s in selections or []],
    )
    sources: dict[tuple[str | None, str | None], ChatSource] = {}
    token_count = 0
    error: Exception | None = None
    finished = False
    stream = None

    try:
        with context:
            update_span(span, input={"prompt": prompt})
            stream = await client.aio.models.generate_content_stream(
                model=settings.GOOGLE_CHAT_MODEL,
                contents=prompt,
                config=build_generation_config(store_name, selections),
            )
            async for chunk in stream:
                text = chunk.text
                if text:
                    token_count += 1
                    yield _sse(StreamEvent(type="token", content=text))
                _merge_sources(sources, extract_sources(chunk))

            if sources:
                yield _sse(
                    StreamEvent(
                        type="sources",
                        content=[s.model_dump(exclude_none=True) for s in sources.values()],
                    )
                )
            finished = True
    except Exception as e:
        error = e
        log_error("chat", e)
        yield _sse(StreamEvent(type="error", content="Internal server error"))
    finally:
        # no yield here: the client may have gone away and closed the generator
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()
        if error:
            run_status = "error"
        elif finished:
            run_status = "completed"
        else:
            run_status = "cancelled"
        update_span(
            span,
            metadata={
                "run_status": run_status,
                "token_count": token_count,
                "source_count": len(sources),
            },
        )
        end_span(span, error=error)

    yield "data: [DONE]\n\n"


def _sse_response_example() -> dict[int | str, Any]:
    return {
        status.HTTP_200_OK: {
            "description": "Server Sent Event Response",
            "content": {
                "text/event-stream": {
                    "example": "data: {'type': 'token', 'content': 'Hello'}\n\ndata: {'type': 'sources', 'content': [{'title': 'notes.txt'}]}\n\ndata: [DONE]\n\n",
                    "schema": {"type": "string"},
                }
            },
        }
    }


@router.post("/chat", response_class=StreamingResponse, responses=_sse_response_example())
async def chat(request: ChatRequest):
    """
    Answer the latest user message from the file search store.

    When data sources are selected, retrieval is restricted to documents whose
    original filename matches one of them.
    """
    try:
        prompt = build_prompt(request.messages)
        store_name = get_file_search_store_name()
        client = get_genai_client()
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": e.message})
    except DataSourceError as e:
        log_error("chat", e)
        return JSONResponse(status_code=500, content={"error": user_friendly_message(e)})

    return StreamingResponse(
        message_generator(client, store_name, prompt, request.selected_data_sources),
        media_type="text/event-stream",
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""

    health_status = {"status": "ok"}

    if settings.LANGFUSE_TRACING:
        health_status["langfuse"] = "enabled" if get_langfuse_client() is not None else "disabled"

    return health_status


app.include_router(router, prefix="/api")
app.include_router(data_sources_router, prefix="/api")
