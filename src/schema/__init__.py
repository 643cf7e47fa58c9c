from schema.data_sources import (
    ChatRequest,
    ChatSource,
    DataSource,
    DataSourceUpdate,
    DeleteResponse,
    DocumentMetadata,
    ErrorResponse,
    MessagePart,
    SelectedDataSource,
    StreamEvent,
    UIMessage,
    UploadResponse,
)

__all__ = [
    "ChatRequest",
    "ChatSource",
    "DataSource",
    "DataSourceUpdate",
    "DeleteResponse",
    "DocumentMetadata",
    "ErrorResponse",
    "MessagePart",
    "SelectedDataSource",
    "StreamEvent",
    "UIMessage",
    "UploadResponse",
]
