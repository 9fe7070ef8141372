"""
Attachment resolver.

Three upload sources share one capability, ``resolve() -> list[Attachment]``:

  DiskUploadSource    writes each upload to a unique file in the managed
                      upload directory and returns PathAttachments
  MemoryUploadSource  wraps the uploaded bytes as BufferAttachments
  InlineUploadSource  decodes base64 payloads (optionally "data:" URIs),
                      writes them to the managed directory, returns
                      PathAttachments

Every source checks the whole batch (file count, extension, size, base64
validity) before anything is written, so a rejected request never leaves a
file behind. PathAttachments are released by the delivery pipeline.
"""

import base64
import binascii
import logging
import mimetypes
import re
import time
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Iterable, Optional, Protocol, Sequence
from uuid import uuid4

from formrelay.models.attachment import Attachment, BufferAttachment, PathAttachment

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".pdf", ".doc", ".docx"})
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MiB

INVALID_TYPE_MESSAGE = "Invalid file type. Only JPG, PNG, PDF, and DOC files are allowed."
TOO_LARGE_MESSAGE = "File exceeds 10 MB limit."
TOO_MANY_MESSAGE = "Too many files. A maximum of {max_files} file(s) can be attached."
UNDECODABLE_MESSAGE = "Attached file could not be read."

_DATA_URI_PREFIX_RE = re.compile(r"^data:[^,]*?;base64,", re.IGNORECASE)
_SAFE_STEM_RE = re.compile(r"[^\w\-]")


class FileRejected(Exception):
    """Raised when an upload is refused before anything is persisted."""
    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.filename = filename


@dataclass
class IncomingFile:
    """An uploaded file as read off the request."""
    field_name: str
    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class InlineFile:
    """A base64-encoded file carried in a JSON body."""
    filename: str
    data: str
    content_type: Optional[str] = None


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------

def display_filename(filename: str) -> str:
    """Strip any client-supplied directory part ("C:\\x\\plan.pdf" -> "plan.pdf")."""
    name = PurePath(filename.replace("\\", "/")).name
    return name or "attachment"


def file_extension(filename: str) -> str:
    return PurePath(display_filename(filename)).suffix.lower()


def check_extension(filename: str) -> None:
    if file_extension(filename) not in ALLOWED_EXTENSIONS:
        raise FileRejected(INVALID_TYPE_MESSAGE, filename=filename)


def check_size(filename: str, size: int) -> None:
    if size > MAX_FILE_SIZE_BYTES:
        raise FileRejected(TOO_LARGE_MESSAGE, filename=filename)


def check_count(count: int, max_files: int) -> None:
    if count > max_files:
        raise FileRejected(TOO_MANY_MESSAGE.format(max_files=max_files))


def check_uploads(files: Sequence[IncomingFile], max_files: int) -> None:
    """Count, extension and size checks for a multipart batch."""
    check_count(len(files), max_files)
    for upload in files:
        check_extension(upload.filename)
        check_size(upload.filename, len(upload.content))


def guess_mime_type(filename: str, declared: Optional[str] = None) -> str:
    if declared and declared != "application/octet-stream":
        return declared
    guessed, _ = mimetypes.guess_type(display_filename(filename))
    return guessed or "application/octet-stream"


def decode_inline(data: str, filename: str) -> bytes:
    """
    Decode a base64 payload, stripping a ``data:<mime>;base64,`` header.

    Raises FileRejected for undecodable input.
    """
    payload = _DATA_URI_PREFIX_RE.sub("", data.strip(), count=1)
    payload = "".join(payload.split())
    # Cheap pre-check: 4 base64 chars encode 3 bytes.
    if len(payload) * 3 // 4 > MAX_FILE_SIZE_BYTES + 3:
        raise FileRejected(TOO_LARGE_MESSAGE, filename=filename)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise FileRejected(UNDECODABLE_MESSAGE, filename=filename)


# ---------------------------------------------------------------------------
# Managed upload directory
# ---------------------------------------------------------------------------

class UploadStore:
    """
    The managed upload directory.

    Created on first write. File names are ``<field>-<ms timestamp>-<random>
    <ext>``, so concurrent requests never collide.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def ensure(self) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory

    def unique_path(self, field_name: str, filename: str) -> Path:
        stem = _SAFE_STEM_RE.sub("_", field_name) or "file"
        suffix = f"{int(time.time() * 1000)}-{uuid4().hex[:12]}"
        return self.directory / f"{stem}-{suffix}{file_extension(filename)}"

    def save(self, field_name: str, filename: str, content: bytes,
             mime_type: Optional[str] = None) -> PathAttachment:
        self.ensure()
        path = self.unique_path(field_name, filename)
        path.write_bytes(content)
        logger.debug("Stored upload %r at %s (%d bytes)", filename, path, len(content))
        return PathAttachment(
            filename=display_filename(filename),
            path=path,
            mime_type=guess_mime_type(filename, mime_type),
        )


def release_attachments(attachments: Iterable[Attachment]) -> None:
    """
    Delete the temporary file behind every PathAttachment.

    Best-effort: a file that is already gone or cannot be removed is logged
    and skipped, never raised.
    """
    for attachment in attachments:
        if not isinstance(attachment, PathAttachment):
            continue
        try:
            attachment.path.unlink()
        except FileNotFoundError:
            logger.warning("Temporary upload already removed: %s", attachment.path)
        except OSError as exc:
            logger.warning("Error removing temporary upload %s: %s", attachment.path, exc)


def _save_all(store: UploadStore, items: Sequence[tuple[str, str, bytes, Optional[str]]]) -> list[Attachment]:
    """Persist a pre-checked batch; undo partial writes if one fails."""
    saved: list[Attachment] = []
    try:
        for field_name, filename, content, mime_type in items:
            saved.append(store.save(field_name, filename, content, mime_type))
    except OSError:
        release_attachments(saved)
        raise
    return saved


# ---------------------------------------------------------------------------
# Upload sources
# ---------------------------------------------------------------------------

class UploadSource(Protocol):
    def resolve(self) -> list[Attachment]:
        ...


class DiskUploadSource:
    """Multipart uploads persisted to the managed upload directory."""

    def __init__(self, files: Sequence[IncomingFile], store: UploadStore, max_files: int):
        self.files = list(files)
        self.store = store
        self.max_files = max_files

    def resolve(self) -> list[Attachment]:
        check_uploads(self.files, self.max_files)
        return _save_all(self.store, [
            (upload.field_name, upload.filename, upload.content, upload.content_type)
            for upload in self.files
        ])


class MemoryUploadSource:
    """Multipart uploads kept in memory; nothing touches the filesystem."""

    def __init__(self, files: Sequence[IncomingFile], max_files: int):
        self.files = list(files)
        self.max_files = max_files

    def resolve(self) -> list[Attachment]:
        check_uploads(self.files, self.max_files)
        return [
            BufferAttachment(
                filename=display_filename(upload.filename),
                content=upload.content,
                mime_type=guess_mime_type(upload.filename, upload.content_type),
            )
            for upload in self.files
        ]


class InlineUploadSource:
    """Base64 payloads from a JSON body, decoded and persisted."""

    def __init__(self, files: Sequence[InlineFile], store: UploadStore, max_files: int,
                 field_name: str = "attachment"):
        self.files = list(files)
        self.store = store
        self.max_files = max_files
        self.field_name = field_name

    def resolve(self) -> list[Attachment]:
        check_count(len(self.files), self.max_files)
        decoded: list[tuple[str, str, bytes, Optional[str]]] = []
        for inline in self.files:
            check_extension(inline.filename)
            content = decode_inline(inline.data, inline.filename)
            check_size(inline.filename, len(content))
            decoded.append((self.field_name, inline.filename, content, inline.content_type))
        return _save_all(self.store, decoded)
