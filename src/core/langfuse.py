"""Langfuse helper utilities.

Tracing is optional. The client factory returns ``None`` whenever tracing
is disabled, keys are missing, or the SDK cannot be imported, so handlers
can call the span helpers unconditionally.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from contextlib import AbstractContextManager, nullcontext
from functools import lru_cache
from typing import Any

from core.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def _resolve_secret(secret: Any) -> str | None:
    from pydantic import SecretStr  # import locally to avoid optional dependency at import time

    if isinstance(secret, SecretStr):
        return secret.get_secret_value()
    if isinstance(secret, str):
        return secret or None
    return None


@lru_cache
def get_langfuse_client() -> Any | None:
    """Return a cached Langfuse client if tracing is enabled."""

    settings: Settings = get_settings()
    if not settings.LANGFUSE_TRACING:
        logger.debug("Langfuse tracing disabled; client will not be created")
        return None

    try:
        from langfuse import Langfuse  # type: ignore[import-untyped]
    except Exception as exc:  # pragma: no cover - defensive guard
        logger.warning("Langfuse SDK import failed: %s", exc)
        return None

    secret_key = _resolve_secret(settings.LANGFUSE_SECRET_KEY)
    public_key = _resolve_secret(settings.LANGFUSE_PUBLIC_KEY)

    if not secret_key or not public_key:
        logger.warning(
            "Langfuse tracing requested but keys are missing; tracing will remain disabled"
        )
        return None

    client_kwargs: dict[str, Any] = {
        "host": settings.LANGFUSE_HOST,
        "secret_key": secret_key,
        "public_key": public_key,
    }
    if settings.LANGFUSE_ENVIRONMENT:
        client_kwargs["environment"] = settings.LANGFUSE_ENVIRONMENT
    if settings.LANGFUSE_SAMPLE_RATE is not None:
        client_kwargs["sample_rate"] = settings.LANGFUSE_SAMPLE_RATE

    client = Langfuse(**client_kwargs)
    logger.debug("Langfuse client initialised for host %s", settings.LANGFUSE_HOST)
    return client


def _clean(metadata: Mapping[str, Any] | None) -> dict[str, Any]:
    return {k: v for k, v in (metadata or {}).items() if v is not None}


def start_span(
    name: str,
    **metadata: Any,
) -> tuple[Any | None, AbstractContextManager[Any]]:
    """Start a Langfuse span named ``name``; returns ``(None, nullcontext())`` when tracing is off."""

    client = get_langfuse_client()
    if client is None:
        return None, nullcontext()

    span_kwargs: dict[str, Any] = {"name": name}
    meta = _clean(metadata)
    if meta:
        span_kwargs["metadata"] = meta

    try:
        span = client.span(**span_kwargs)
    except Exception as exc:  # pragma: no cover - defensive guard
        logger.debug("Failed to create Langfuse span %s: %s", name, exc)
        return None, nullcontext()

    starter = getattr(span, "start_as_current_span", None)
    if callable(starter):
        try:
            context = starter()
        except Exception as exc:  # pragma: no cover - defensive guard
            logger.debug("Failed to enter Langfuse span %s: %s", name, exc)
            context = nullcontext()
    else:
        context = nullcontext()

    return span, context


def update_span(span: Any | None, **payload: Any) -> None:
    if span is None or not payload:
        return
    try:
        span.update(**payload)
    except Exception as exc:  # pragma: no cover - defensive guard
        logger.debug("Failed to update Langfuse span: %s", exc)


def end_span(span: Any | None, error: BaseException | None = None) -> None:
    """End ``span``, marking it as failed when ``error`` is given."""

    if span is None:
        return
    try:
        if error is None:
            span.end()
        else:
            span.end(level="ERROR", status_message=f"{error.__class__.__name__}: {error}")
    except Exception as exc:  # pragma: no cover - defensive guard
        logger.debug("Failed to end Langfuse span: %s", exc)


def emit_event(name: str, **metadata: Any) -> None:
    """Emit a standalone Langfuse event."""

    client = get_langfuse_client()
    if client is None:
        return

    emitter = getattr(client, "event", None)
    if not callable(emitter):  # pragma: no cover - optional API
        return

    event_kwargs: dict[str, Any] = {"name": name}
    meta = _clean(metadata)
    if meta:
        event_kwargs["metadata"] = meta

    try:
        emitter(**event_kwargs)
    except Exception as exc:  # pragma: no cover - defensive guard
        logger.debug("Failed to emit Langfuse event %s: %s", name, exc)
