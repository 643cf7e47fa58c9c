from types import SimpleNamespace

import pytest

from core.errors import VisionProcessingError
from service.vision import VISION_PROMPT, render_summary_document, summarize_image


def test_render_summary_document():
    document = render_summary_document(
        "- A cat",
        original_name="cat.png",
        mime_type="image/png",
        processed_at="2026-01-02T03:04:05.678Z",
    )

    assert document == (
        "# Image Document: cat.png\n\n"
        "- A cat\n\n"
        "---\n"
        "### Ingestion Metadata\n"
        "- Original filename: cat.png\n"
        "- Original MIME type: image/png\n"
        "- Processed at: 2026-01-02T03:04:05.678Z\n"
    )


def test_render_summary_document_stamps_utc_time():
    document = render_summary_document("x", original_name="a.jpg", mime_type="image/jpeg")
    stamp = document.rsplit("- Processed at: ", 1)[1].strip()
    assert stamp.endswith("Z")
    assert "T" in stamp


@pytest.mark.asyncio
async def test_summarize_image_sends_prompt_and_bytes(genai_client):
    document = await summarize_image(
        genai_client, data=b"\x89PNG", mime_type="image/png", original_name="cat.png"
    )

    assert document.startswith("# Image Document: cat.png\n\n- A cat sitting on a mat\n")
    assert "- Original MIME type: image/png" in document

    kwargs = genai_client.aio.models.generate_content.call_args.kwargs
    parts = kwargs["contents"][0].parts
    assert parts[0].text == VISION_PROMPT
    assert parts[1].inline_data.data == b"\x89PNG"
    assert parts[1].inline_data.mime_type == "image/png"
    assert kwargs["config"].temperature == pytest.approx(0.2)


@pytest.mark.asyncio
async def test_summarize_image_empty_response(genai_client):
    genai_client.aio.models.generate_content.return_value = SimpleNamespace(text="   ")
    with pytest.raises(VisionProcessingError, match="no summary"):
        await summarize_image(
            genai_client, data=b"x", mime_type="image/png", original_name="blank.png"
        )


@pytest.mark.asyncio
async def test_summarize_image_model_failure(genai_client):
    genai_client.aio.models.generate_content.side_effect = RuntimeError("quota")
    with pytest.raises(VisionProcessingError) as exc_info:
        await summarize_image(
            genai_client, data=b"x", mime_type="image/png", original_name="cat.png"
        )
    assert isinstance(exc_info.value.cause, RuntimeError)
