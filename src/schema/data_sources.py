from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class DocumentMetadata(BaseModel):
    """Catalog row for a document accepted by the file search store."""

    id: str
    name: str
    file_type: str
    size: str  # human readable, e.g. "2.3 MB"
    uploaded_at: datetime | None = None


class DataSource(BaseModel):
    """Listing record returned to the UI."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    type: str
    size: str
    created_at: datetime | None = Field(default=None, alias="createdAt")
    label: str | None = None
    category: str | None = None

    @classmethod
    def from_metadata(cls, meta: DocumentMetadata) -> "DataSource":
        return cls(
            id=meta.id,
            name=meta.name,
            type=meta.file_type,
            size=meta.size,
            created_at=meta.uploaded_at,
        )


class DataSourceUpdate(BaseModel):
    name: str | None = None
    file_type: str | None = Field(default=None, alias="fileType")
    size: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class UploadResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    error: str


class DeleteResponse(BaseModel):
    success: bool
    message: str


class SelectedDataSource(BaseModel):
    id: str
    name: str


class MessagePart(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    text: str | None = None


class UIMessage(BaseModel):
    """One chat turn as sent by the browser. ``parts`` wins over ``content``."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    role: Literal["user", "assistant", "system"] = "user"
    parts: list[MessagePart] = Field(default_factory=list)
    content: str | None = None

    def text_parts(self) -> list[str]:
        if self.parts:
            return [(part.text or "") if part.type == "text" else "" for part in self.parts]
        if self.content is not None:
            return [self.content]
        return []


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: list[UIMessage]
    selected_data_sources: list[SelectedDataSource] | None = Field(
        default=None, alias="selectedDataSources"
    )


class ChatSource(BaseModel):
    title: str | None = None
    uri: str | None = None
    text: str | None = None

    def is_empty(self) -> bool:
        return not (self.title or self.uri or self.text)


StreamEventType = Literal["token", "sources", "error"]


class StreamEvent(BaseModel):
    type: StreamEventType
    content: Any
