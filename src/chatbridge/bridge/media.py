"""Media classification and temp-file handling.

Chat attachments arrive as envelopes with one populated media slot;
workspace attachments arrive as files with a name and MIME type. Both
are reduced to a MediaKind here, once, and the rest of the bridge
dispatches on that.
"""

import logging
import os
import time
import uuid
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from chatbridge.bridge.exceptions import MediaDownloadFailed
from chatbridge.bridge.models import MediaKind, NormalizedMedia
from chatbridge.platforms.models import ChatEnvelope, MediaContainer
from chatbridge.storage.paths import ensure_directory, get_temp_media_dir

logger = logging.getLogger(__name__)

ByteSource = Callable[[ChatEnvelope], Awaitable[bytes]]

MIME_EXTENSIONS: dict[str, str] = {
    # Images
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
    # Video
    "video/mp4": ".mp4",
    "video/mpeg": ".mpeg",
    "video/ogg": ".ogv",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
    "video/x-msvideo": ".avi",
    # Audio
    "audio/mpeg": ".mp3",
    "audio/aac": ".aac",
    "audio/opus": ".opus",
    "audio/wav": ".wav",
    "audio/webm": ".weba",
    "audio/ogg": ".ogg",
    "audio/mp4": ".m4a",
    # Documents
    "application/pdf": ".pdf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/vnd.ms-excel": ".xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "application/vnd.ms-powerpoint": ".ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
    "application/zip": ".zip",
    "application/x-rar-compressed": ".rar",
    "application/json": ".json",
    "application/xml": ".xml",
    "application/octet-stream": ".bin",
    "text/plain": ".txt",
    "text/html": ".html",
    "text/css": ".css",
    "text/javascript": ".js",
    "text/xml": ".xml",
}

# Envelope slots in selection order.
CONTAINER_ORDER: tuple[MediaKind, ...] = (
    MediaKind.IMAGE,
    MediaKind.VIDEO,
    MediaKind.AUDIO,
    MediaKind.DOCUMENT,
    MediaKind.STICKER,
)

FALLBACK_EXTENSIONS: dict[MediaKind, str] = {
    MediaKind.IMAGE: ".jpg",
    MediaKind.VIDEO: ".mp4",
    MediaKind.AUDIO: ".mp3",
    MediaKind.DOCUMENT: ".bin",
    MediaKind.STICKER: ".webp",
}

DEFAULT_MIME_TYPES: dict[MediaKind, str] = {
    MediaKind.IMAGE: "image/jpeg",
    MediaKind.VIDEO: "video/mp4",
    MediaKind.AUDIO: "audio/mpeg",
    MediaKind.DOCUMENT: "application/octet-stream",
    MediaKind.STICKER: "image/webp",
}

CAPTIONED_KINDS = frozenset({MediaKind.IMAGE, MediaKind.VIDEO, MediaKind.DOCUMENT})

# Labels used in generic "<user> sent a <label>" captions.
KIND_LABELS: dict[MediaKind, str] = {
    MediaKind.IMAGE: "Foto",
    MediaKind.VIDEO: "Video",
    MediaKind.AUDIO: "Audio",
    MediaKind.DOCUMENT: "Archivo",
    MediaKind.STICKER: "Foto",
}

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})
VIDEO_EXTENSIONS = frozenset({".mp4", ".mkv", ".avi", ".mov", ".webm"})
AUDIO_EXTENSIONS = frozenset({".mp3", ".ogg", ".wav", ".m4a", ".aac"})


def _base_mime_type(mime_type: Optional[str]) -> str:
    if not mime_type:
        return ""
    return mime_type.split(";", 1)[0].strip().lower()


def extension_for_mime_type(mime_type: Optional[str]) -> str:
    """Return the file extension (with dot) for a MIME type, or "" if unknown.

    Parameters such as ``; codecs=opus`` are ignored.
    """
    base = _base_mime_type(mime_type)
    extension = MIME_EXTENSIONS.get(base, "")
    if base and not extension:
        logger.debug(f"No extension known for MIME type {mime_type}")
    return extension


def kind_from_mime_type(mime_type: Optional[str]) -> Optional[MediaKind]:
    """Map a MIME type to a media kind; None when no MIME type is given.

    MIME alone cannot tell a sticker from an image or an image sent as a
    document: both come back as IMAGE. The classifier keeps the container
    kind on NormalizedMedia.media_kind for those.
    """
    base = _base_mime_type(mime_type)
    if not base:
        return None
    if base.startswith("image/"):
        return MediaKind.IMAGE
    if base.startswith("video/"):
        return MediaKind.VIDEO
    if base.startswith("audio/"):
        return MediaKind.AUDIO
    return MediaKind.DOCUMENT


def file_kind(filename: Optional[str], mime_type: Optional[str]) -> MediaKind:
    """Classify a file by MIME type first, then by extension.

    Anything unrecognised is a document.
    """
    kind = kind_from_mime_type(mime_type)
    if kind is not None:
        return kind

    if not filename:
        return MediaKind.DOCUMENT

    extension = os.path.splitext(filename)[1].lower()
    if extension in IMAGE_EXTENSIONS:
        return MediaKind.IMAGE
    if extension in VIDEO_EXTENSIONS:
        return MediaKind.VIDEO
    if extension in AUDIO_EXTENSIONS:
        return MediaKind.AUDIO
    return MediaKind.DOCUMENT


def select_container(envelope: ChatEnvelope) -> Optional[tuple[MediaKind, MediaContainer]]:
    """Pick the first populated media slot, or None for a text-only envelope."""
    for kind in CONTAINER_ORDER:
        container = getattr(envelope, kind.value)
        if container is not None:
            return kind, container
    return None


def extract_caption(kind: MediaKind, container: MediaContainer) -> str:
    """Caption carried by a container; audio and stickers never have one."""
    if kind not in CAPTIONED_KINDS:
        return ""
    return container.caption or ""


def _generated_name() -> str:
    return uuid.uuid4().hex


def derive_filename(kind: MediaKind, platform_filename: Optional[str], mime_type: Optional[str]) -> str:
    """Choose the filename used when relaying an attachment.

    1. The platform filename when it already has an extension.
    2. The MIME-derived extension appended to the platform filename,
       or to a generated name.
    3. A generated name with the per-kind fallback extension.
    """
    if platform_filename and os.path.splitext(platform_filename)[1]:
        return platform_filename

    extension = extension_for_mime_type(mime_type)
    if extension:
        return f"{platform_filename or _generated_name()}{extension}"

    if platform_filename:
        return platform_filename

    return f"{_generated_name()}{FALLBACK_EXTENSIONS[kind]}"


async def classify(envelope: ChatEnvelope, byte_source: ByteSource) -> Optional[NormalizedMedia]:
    """Normalize the media carried by a chat envelope.

    Args:
        envelope: The chat envelope (must not be an album container)
        byte_source: Coroutine function fetching the media bytes

    Returns:
        NormalizedMedia, or None when the envelope is text-only

    Raises:
        MediaDownloadFailed: If fetching the bytes fails
    """
    selected = select_container(envelope)
    if selected is None:
        return None

    kind, container = selected
    mime_type = _base_mime_type(container.mimetype) or DEFAULT_MIME_TYPES[kind]
    filename = derive_filename(kind, container.file_name, container.mimetype or mime_type)

    try:
        buffer = await byte_source(envelope)
    except MediaDownloadFailed:
        raise
    except Exception as e:
        raise MediaDownloadFailed(f"Failed to download {kind.value}: {e}") from e

    if not buffer:
        raise MediaDownloadFailed(f"Downloaded {kind.value} is empty")

    return NormalizedMedia(
        buffer=bytes(buffer),
        media_kind=kind,
        filename=filename,
        mime_type=mime_type,
        caption=extract_caption(kind, container),
        original_filename=container.file_name,
    )


@contextmanager
def temp_media_file(
    buffer: bytes,
    suffix: str = "",
    directory: Optional[Path] = None,
) -> Iterator[Path]:
    """Write a buffer to a uniquely named temp file, deleted on exit."""
    target_dir = ensure_directory(directory or get_temp_media_dir())
    path = target_dir / f"{uuid.uuid4().hex}{suffix}"
    path.write_bytes(buffer)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


def cleanup_stale_temp_files(
    max_age_seconds: float = 3600,
    directory: Optional[Path] = None,
    now: Optional[float] = None,
) -> int:
    """Delete temp media files older than ``max_age_seconds``.

    Returns:
        Number of files removed
    """
    target_dir = directory or get_temp_media_dir()
    if not target_dir.exists():
        return 0

    now = time.time() if now is None else now
    removed = 0
    for path in target_dir.iterdir():
        if not path.is_file():
            continue
        try:
            if now - path.stat().st_mtime > max_age_seconds:
                path.unlink()
                removed += 1
                logger.debug(f"Removed stale temp file: {path}")
        except OSError as e:
            logger.warning(f"Failed to remove temp file {path}: {e}")

    if removed:
        logger.info(f"Removed {removed} stale temp media file(s)")
    return removed
