from contextlib import contextmanager
from unittest.mock import Mock, patch

import httpx
import pytest

from client import DataSourceClient, DataSourceClientError
from schema import ChatSource, DataSource, DeleteResponse, SelectedDataSource, UploadResponse

BASE_URL = "http://service.test"


def _response(method: str, path: str, status: int = 200, **kwargs) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request(method, f"{BASE_URL}{path}"), **kwargs)


def test_upload():
    client = DataSourceClient(BASE_URL)
    response = _response(
        "POST",
        "/api/embeddings/upload",
        json={"success": True, "message": "File 'notes.txt' uploaded successfully"},
    )
    with patch("httpx.post", return_value=response) as mock_post:
        result = client.upload("notes.txt", b"hello")

    assert result == UploadResponse(success=True, message="File 'notes.txt' uploaded successfully")
    args, kwargs = mock_post.call_args
    assert args[0] == f"{BASE_URL}/api/embeddings/upload"
    assert kwargs["files"] == {"file": ("notes.txt", b"hello", "text/plain")}


def test_upload_error_surfaces_server_message():
    client = DataSourceClient(BASE_URL)
    response = _response("POST", "/api/embeddings/upload", 400, json={"error": "Invalid file name"})
    with patch("httpx.post", return_value=response):
        with pytest.raises(DataSourceClientError, match="Upload failed: Invalid file name"):
            client.upload("../x", b"x")


def test_upload_path(tmp_path):
    path = tmp_path / "report.pdf"
    path.write_bytes(b"%PDF")
    client = DataSourceClient(BASE_URL)
    response = _response("POST", "/api/embeddings/upload", json={"success": True, "message": "ok"})
    with patch("httpx.post", return_value=response) as mock_post:
        client.upload_path(path)

    name, _, mime = mock_post.call_args.kwargs["files"]["file"]
    assert name == "report.pdf"
    assert mime == "application/pdf"


def test_list_data_sources():
    client = DataSourceClient(BASE_URL)
    payload = [
        {
            "id": "doc-1",
            "name": "notes.txt",
            "type": "text/plain",
            "size": "10 Bytes",
            "createdAt": "2026-01-01T00:00:00Z",
        }
    ]
    with patch("httpx.get", return_value=_response("GET", "/api/data-sources", json=payload)):
        [source] = client.list_data_sources()

    assert isinstance(source, DataSource)
    assert source.name == "notes.txt"
    assert source.created_at.year == 2026


def test_list_data_sources_transport_error():
    client = DataSourceClient(BASE_URL)
    with patch("httpx.get", side_effect=httpx.ConnectError("refused")):
        with pytest.raises(DataSourceClientError, match="Error listing data sources"):
            client.list_data_sources()


def test_delete_failure_is_returned_not_raised():
    client = DataSourceClient(BASE_URL)
    payload = {"success": False, "message": "Failed to delete the file. Please try again."}
    with patch("httpx.delete", return_value=_response("DELETE", "/api/data-sources/d", json=payload)):
        result = client.delete_data_source("d")
    assert result == DeleteResponse(**payload)


def test_update_sends_camel_case():
    client = DataSourceClient(BASE_URL)
    payload = {"id": "d", "name": "n", "type": "text/markdown", "size": "1 KB", "createdAt": None}
    with patch("httpx.patch", return_value=_response("PATCH", "/api/data-sources/d", json=payload)) as mock_patch:
        result = client.update_data_source("d", file_type="text/markdown")

    assert mock_patch.call_args.kwargs["json"] == {"fileType": "text/markdown"}
    assert result.type == "text/markdown"


def test_update_not_found():
    client = DataSourceClient(BASE_URL)
    response = _response("PATCH", "/api/data-sources/d", 404, json={"detail": "gone"})
    with patch("httpx.patch", return_value=response):
        with pytest.raises(DataSourceClientError, match="Update failed: gone"):
            client.update_data_source("d", name="x")


def test_parse_stream_line():
    client = DataSourceClient(BASE_URL)

    assert client._parse_stream_line('data: {"type": "token", "content": "Hi"}') == "Hi"
    assert client._parse_stream_line(
        'data: {"type": "sources", "content": [{"title": "a.txt"}]}'
    ) == [ChatSource(title="a.txt")]
    assert client._parse_stream_line("data: [DONE]") is None
    assert client._parse_stream_line(": keep-alive") is None
    with pytest.raises(DataSourceClientError, match="Error: Internal server error"):
        client._parse_stream_line('data: {"type": "error", "content": "Internal server error"}')


@contextmanager
def _fake_stream(lines):
    response = Mock()
    response.raise_for_status = Mock()
    response.iter_lines = Mock(return_value=iter(lines))
    yield response


def test_stream_chat_yields_tokens_and_sources():
    client = DataSourceClient(BASE_URL)
    lines = [
        'data: {"type": "token", "content": "Hello"}',
        "",
        'data: {"type": "token", "content": " world"}',
        'data: {"type": "sources", "content": [{"title": "a.txt", "uri": "u"}]}',
        "data: [DONE]",
        'data: {"type": "token", "content": "ignored"}',
    ]
    with patch("httpx.stream", return_value=_fake_stream(lines)) as mock_stream:
        items = list(
            client.stream_chat("What?", selected=[SelectedDataSource(id="1", name="a.txt")])
        )

    assert items == ["Hello", " world", [ChatSource(title="a.txt", uri="u")]]
    body = mock_stream.call_args.kwargs["json"]
    assert body["messages"][0]["content"] == "What?"
    assert body["selectedDataSources"] == [{"id": "1", "name": "a.txt"}]


@pytest.mark.asyncio
async def test_astream_chat(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/chat"
        body = (
            'data: {"type": "token", "content": "Hi"}\n\n'
            "data: [DONE]\n\n"
        )
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    original = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        return original(*args, transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)

    client = DataSourceClient(BASE_URL)
    items = [item async for item in client.astream_chat("hello")]
    assert items == ["Hi"]
