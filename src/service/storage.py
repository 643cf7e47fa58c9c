from __future__ import annotations

import logging
import math
import os
import uuid
from pathlib import Path, PurePath
from types import TracebackType
from typing import NamedTuple

from core.errors import LocalIOError, ValidationError
from core.settings import settings

logger = logging.getLogger(__name__)

GENERIC_MIME_TYPE = "application/octet-stream"
MARKDOWN_MIME_TYPE = "text/markdown"

IMAGE_MIME_TYPES = frozenset(
    {
        "image/png",
        "image/jpeg",
        "image/jpg",
        "image/webp",
        "image/gif",
        "image/bmp",
        "image/tiff",
        "image/svg+xml",
        "image/heic",
        "image/heif",
    }
)

EXTENSION_MIME_TYPES: dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".svg": "image/svg+xml",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".json": "application/json",
    ".html": "text/html",
    ".xml": "application/xml",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}

class FileTypeInfo(NamedTuple):
    label: str
    category: str


UNKNOWN_FILE_TYPE = FileTypeInfo("Unknown", "document")

FILE_TYPES: dict[str, FileTypeInfo] = {
    # documents
    "application/pdf": FileTypeInfo("PDF Document", "document"),
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": FileTypeInfo("Word Document", "document"),
    "application/msword": FileTypeInfo("Word Document", "document"),
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": FileTypeInfo("Excel Spreadsheet", "document"),
    "application/vnd.ms-excel": FileTypeInfo("Excel Spreadsheet", "document"),
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": FileTypeInfo(
        "PowerPoint Presentation", "document"
    ),
    "application/vnd.oasis.opendocument.text": FileTypeInfo("OpenDocument Text", "document"),
    # data
    "application/json": FileTypeInfo("JSON", "data"),
    "application/xml": FileTypeInfo("XML", "data"),
    "text/xml": FileTypeInfo("XML", "data"),
    "text/csv": FileTypeInfo("CSV", "data"),
    "text/tab-separated-values": FileTypeInfo("TSV", "data"),
    "application/x-yaml": FileTypeInfo("YAML", "data"),
    "text/yaml": FileTypeInfo("YAML", "data"),
    "application/sql": FileTypeInfo("SQL", "data"),
    "text/x-sql": FileTypeInfo("SQL", "data"),
    # text
    "text/plain": FileTypeInfo("Text File", "text"),
    "text/markdown": FileTypeInfo("Markdown", "text"),
    "text/html": FileTypeInfo("HTML", "text"),
    "text/rtf": FileTypeInfo("Rich Text", "text"),
    # code
    "text/x-python": FileTypeInfo("Python", "code"),
    "text/javascript": FileTypeInfo("JavaScript", "code"),
    "application/javascript": FileTypeInfo("JavaScript", "code"),
    "text/typescript": FileTypeInfo("TypeScript", "code"),
    "application/typescript": FileTypeInfo("TypeScript", "code"),
    "text/x-java-source": FileTypeInfo("Java", "code"),
    "text/x-c": FileTypeInfo("C", "code"),
    "text/x-c++": FileTypeInfo("C++", "code"),
    "text/x-csharp": FileTypeInfo("C#", "code"),
    "text/x-go": FileTypeInfo("Go", "code"),
    "text/x-rust": FileTypeInfo("Rust", "code"),
    "text/x-ruby": FileTypeInfo("Ruby", "code"),
    "text/x-php": FileTypeInfo("PHP", "code"),
    "text/x-kotlin": FileTypeInfo("Kotlin", "code"),
    "text/x-swift": FileTypeInfo("Swift", "code"),
    "text/x-dart": FileTypeInfo("Dart", "code"),
    "application/x-sh": FileTypeInfo("Shell Script", "code"),
    "text/x-shellscript": FileTypeInfo("Shell Script", "code"),
    # archives and notebooks
    "application/zip": FileTypeInfo("ZIP Archive", "archive"),
    "application/x-ipynb+json": FileTypeInfo("Jupyter Notebook", "notebook"),
    # images
    "image/png": FileTypeInfo("PNG Image", "image"),
    "image/jpeg": FileTypeInfo("JPEG Image", "image"),
    "image/jpg": FileTypeInfo("JPG Image", "image"),
    "image/webp": FileTypeInfo("WebP Image", "image"),
    "image/gif": FileTypeInfo("GIF Image", "image"),
    "image/svg+xml": FileTypeInfo("SVG Image", "image"),
    "image/bmp": FileTypeInfo("BMP Image", "image"),
    "image/tiff": FileTypeInfo("TIFF Image", "image"),
    "image/heic": FileTypeInfo("HEIC Image", "image"),
    "image/heif": FileTypeInfo("HEIF Image", "image"),
}

SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def format_file_size(size_bytes: int) -> str:
    """Render ``size_bytes`` as e.g. ``2.3 MB`` (base 1024, two decimals at most)."""
    if size_bytes <= 0:
        return "0 Bytes"
    k = 1024
    i = min(int(math.floor(math.log(size_bytes, k))), len(SIZE_UNITS) - 1)
    value = round(size_bytes / k**i, 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[i]}"


def validate_upload(filename: str | None, size_bytes: int | None) -> None:
    """Reject an upload before any side effect. Each violation has its own message."""
    if filename is None and size_bytes is None:
        raise ValidationError("No file provided")
    if not filename or not filename.strip():
        raise ValidationError("File name is required")
    if not size_bytes:
        raise ValidationError("File is empty")
    if size_bytes > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(
            f"File size exceeds maximum allowed size of {format_file_size(settings.MAX_UPLOAD_BYTES)}"
        )
    if ".." in filename or "/" in filename or "\\" in filename:
        raise ValidationError("Invalid file name")


def normalize_mime_type(declared: str | None, filename: str) -> str:
    provided = (declared or "").strip()
    if provided:
        return provided
    extension = PurePath(filename).suffix.lower()
    return EXTENSION_MIME_TYPES.get(extension, GENERIC_MIME_TYPE)


def is_image(mime: str) -> bool:
    return mime in IMAGE_MIME_TYPES


def describe_file_type(mime: str) -> FileTypeInfo:
    """Human readable label and category for ``mime``."""
    return FILE_TYPES.get(mime, UNKNOWN_FILE_TYPE)


def build_summary_file_name(original_name: str) -> str:
    base = PurePath(original_name).stem or "image"
    return f"{base}-vision-summary.md"


def ensure_scratch_dir() -> Path:
    root = Path(settings.SCRATCH_DIR).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


class ScratchFiles:
    """Request-scoped temp files, all deleted when the scope exits.

    Every file written through :meth:`write_bytes` or :meth:`write_text` is
    tracked. Deletion failures on exit are logged and never raised.
    """

    def __init__(self, root: Path | None = None) -> None:
        self._root = root
        self.paths: list[Path] = []

    def __enter__(self) -> "ScratchFiles":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()

    @property
    def root(self) -> Path:
        if self._root is None:
            self._root = ensure_scratch_dir()
        return self._root

    def _target(self, name: str) -> Path:
        path = self.root / f"{uuid.uuid4().hex}-{name}"
        # tracked before the write so a half-written file is still removed
        self.paths.append(path)
        return path

    def write_bytes(self, name: str, data: bytes) -> Path:
        try:
            target = self._target(name)
            with open(target, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
        except OSError as exc:
            raise LocalIOError(f"Failed to stage {name}", exc) from exc
        logger.debug("Staged %s at %s (%d bytes)", name, target, len(data))
        return target

    def write_text(self, name: str, text: str) -> Path:
        return self.write_bytes(name, text.encode("utf-8"))

    def cleanup(self) -> None:
        while self.paths:
            path = self.paths.pop()
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Failed to clean up temp file %s: %s", path, exc)
