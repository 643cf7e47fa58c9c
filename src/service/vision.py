from __future__ import annotations

import logging
from datetime import datetime, timezone

from google import genai
from google.genai import types

from core.errors import VisionProcessingError
from core.settings import settings

logger = logging.getLogger(__name__)

VISION_PROMPT = "\n".join(
    [
        "You are preparing an uploaded image for a knowledge base that only accepts text documents.",
        "Analyze the image and produce Markdown with the following sections:",
        "## High-level Summary (2-4 bullet points)",
        "## Key Details (facts, entities, objects, context)",
        "## Detected Text (transcribe any visible text verbatim, keep Markdown code fences for structured data)",
        "## Suggested Tags (comma separated list of themes)",
        "Preserve factual details. If something is uncertain, note it as such. "
        "Keep the response concise but information-dense.",
    ]
)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def render_summary_document(
    summary: str,
    *,
    original_name: str,
    mime_type: str,
    processed_at: str | None = None,
) -> str:
    footer = "\n".join(
        [
            "---",
            "### Ingestion Metadata",
            f"- Original filename: {original_name}",
            f"- Original MIME type: {mime_type}",
            f"- Processed at: {processed_at or _iso_now()}",
        ]
    )
    return f"# Image Document: {original_name}\n\n{summary}\n\n{footer}\n"


async def summarize_image(
    client: genai.Client,
    *,
    data: bytes,
    mime_type: str,
    original_name: str,
) -> str:
    """Ask the vision model for a Markdown description of an image.

    Returns the full Markdown document, metadata footer included.
    """
    try:
        response = await client.aio.models.generate_content(
            model=settings.GOOGLE_VISION_MODEL,
            contents=[
                types.Content(
                    role="user",
                    parts=[
                        types.Part.from_text(text=VISION_PROMPT),
                        types.Part.from_bytes(data=data, mime_type=mime_type),
                    ],
                )
            ],
            config=types.GenerateContentConfig(temperature=settings.VISION_TEMPERATURE),
        )
    except Exception as exc:
        raise VisionProcessingError(f"Vision model call failed for {original_name}", exc) from exc

    summary = (response.text or "").strip()
    if not summary:
        raise VisionProcessingError(f"Vision model returned no summary for {original_name}")

    logger.info(
        "Image summarized | name=%s | mime=%s | chars=%d", original_name, mime_type, len(summary)
    )
    return render_summary_document(summary, original_name=original_name, mime_type=mime_type)
