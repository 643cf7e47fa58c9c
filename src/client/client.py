# src/client/client.py

import json
import mimetypes
from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import IO, Any

import httpx

from schema import (
    ChatRequest,
    ChatSource,
    DataSource,
    DataSourceUpdate,
    DeleteResponse,
    SelectedDataSource,
    UIMessage,
    UploadResponse,
)


class DataSourceClientError(Exception):
    pass


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)


class DataSourceClient:
    """Client for the data source and chat endpoints."""

    def __init__(
        self,
        base_url: str = "http://0.0.0.0:8080",
        timeout: float | None = None,
        api_prefix: str = "/api",
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url (str): The base URL of the service.
            timeout (float, optional): The timeout for non-streaming requests.
            api_prefix (str, optional): Path prefix the routes are mounted under.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_prefix = api_prefix

    def _url(self, path: str) -> str:
        return f"{self.base_url}{self.api_prefix}{path}"

    @staticmethod
    def _multipart(
        name: str, data: bytes | IO[bytes], mime: str | None
    ) -> dict[str, tuple[str, bytes | IO[bytes], str]]:
        mime = mime or mimetypes.guess_type(name)[0] or "application/octet-stream"
        return {"file": (name, data, mime)}

    def upload(
        self, name: str, data: bytes | IO[bytes], mime: str | None = None
    ) -> UploadResponse:
        """Upload one document. Uploads may take minutes, so no timeout applies."""
        try:
            r = httpx.post(
                self._url("/embeddings/upload"),
                files=self._multipart(name, data, mime),
                timeout=None,
            )
        except httpx.HTTPError as e:
            raise DataSourceClientError(f"Upload failed: {e}")
        if r.is_error:
            raise DataSourceClientError(f"Upload failed: {_error_detail(r)}")
        return UploadResponse.model_validate(r.json())

    def upload_path(self, path: str | Path, mime: str | None = None) -> UploadResponse:
        path = Path(path)
        with path.open("rb") as fh:
            return self.upload(path.name, fh, mime)

    async def aupload(
        self, name: str, data: bytes | IO[bytes], mime: str | None = None
    ) -> UploadResponse:
        async with httpx.AsyncClient() as client:
            try:
                r = await client.post(
                    self._url("/embeddings/upload"),
                    files=self._multipart(name, data, mime),
                    timeout=None,
                )
            except httpx.HTTPError as e:
                raise DataSourceClientError(f"Upload failed: {e}")
        if r.is_error:
            raise DataSourceClientError(f"Upload failed: {_error_detail(r)}")
        return UploadResponse.model_validate(r.json())

    def list_data_sources(self) -> list[DataSource]:
        try:
            r = httpx.get(self._url("/data-sources"), timeout=self.timeout)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise DataSourceClientError(f"Error listing data sources: {e}")
        return [DataSource.model_validate(item) for item in r.json()]

    def delete_data_source(self, document_id: str) -> DeleteResponse:
        """Delete a document. A ``success=False`` response is returned, not raised."""
        try:
            r = httpx.delete(self._url(f"/data-sources/{document_id}"), timeout=self.timeout)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise DataSourceClientError(f"Delete failed: {e}")
        return DeleteResponse.model_validate(r.json())

    def update_data_source(
        self,
        document_id: str,
        *,
        name: str | None = None,
        file_type: str | None = None,
        size: str | None = None,
    ) -> DataSource:
        changes = DataSourceUpdate(name=name, file_type=file_type, size=size)
        try:
            r = httpx.patch(
                self._url(f"/data-sources/{document_id}"),
                json=changes.model_dump(by_alias=True, exclude_none=True),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise DataSourceClientError(f"Update failed: {e}")
        if r.is_error:
            raise DataSourceClientError(f"Update failed: {_error_detail(r)}")
        return DataSource.model_validate(r.json())

    @staticmethod
    def _chat_payload(
        message: str | list[UIMessage],
        selected: list[SelectedDataSource] | None,
    ) -> dict[str, Any]:
        if isinstance(message, str):
            messages = [UIMessage(role="user", content=message)]
        else:
            messages = message
        request = ChatRequest(messages=messages, selected_data_sources=selected)
        return request.model_dump(by_alias=True, exclude_none=True)

    def _parse_stream_line(self, line: str) -> str | list[ChatSource] | None:
        line = line.strip()
        if line.startswith("data: "):
            data = line[6:]
            if data == "[DONE]":
                return None
            try:
                parsed = json.loads(data)
            except Exception as e:
                raise DataSourceClientError(f"Error JSON parsing message from server: {e}")
            match parsed["type"]:
                case "token":
                    return parsed["content"]
                case "sources":
                    return [ChatSource.model_validate(s) for s in parsed["content"]]
                case "error":
                    raise DataSourceClientError("Error: " + parsed["content"])
        return None

    def stream_chat(
        self,
        message: str | list[UIMessage],
        selected: list[SelectedDataSource] | None = None,
    ) -> Generator[str | list[ChatSource], None, None]:
        """
        Stream an answer synchronously.

        Text tokens are yielded as ``str``; the citations arrive once as a
        list of ``ChatSource`` after the last token.
        """
        try:
            with httpx.stream(
                "POST",
                self._url("/chat"),
                json=self._chat_payload(message, selected),
                timeout=None,
            ) as response:
                response.raise_for_status()
                for line in response.iter_lines():
                    if line.strip():
                        if line.strip() == "data: [DONE]":
                            break
                        parsed = self._parse_stream_line(line)
                        if parsed is not None:
                            yield parsed
        except httpx.HTTPError as e:
            raise DataSourceClientError(f"Error: {e}")

    async def astream_chat(
        self,
        message: str | list[UIMessage],
        selected: list[SelectedDataSource] | None = None,
    ) -> AsyncGenerator[str | list[ChatSource], None]:
        async with httpx.AsyncClient() as client:
            try:
                async with client.stream(
                    "POST",
                    self._url("/chat"),
                    json=self._chat_payload(message, selected),
                    timeout=None,
                ) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if line.strip():
                            if line.strip() == "data: [DONE]":
                                break
                            parsed = self._parse_stream_line(line)
                            if parsed is not None:
                                yield parsed
            except httpx.HTTPError as e:
                raise DataSourceClientError(f"Error: {e}")
