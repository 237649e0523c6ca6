"""Image upload storage.

Images arrive base64 encoded (a ``data:image/...;base64,`` prefix is allowed),
are type-sniffed by magic bytes and written under ``<upload_dir>/<kind>/``.
Stored images are referenced by their public path ``/uploads/<kind>/<file>``.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import uuid
from enum import Enum
from pathlib import Path

from skillforge.config import get_settings
from skillforge.exceptions import ValidationFailedError

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/uploads"


class ImageKind(str, Enum):
    PROFILE = "profiles"
    PRACTICE = "practices"
    MESSAGE = "messages"
    PHOTO = "photos"
    ICON = "icons"


_SIGNATURES: list[tuple[bytes, str]] = [
    (b"\xff\xd8\xff", "jpg"),
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
]


def max_bytes(kind: ImageKind) -> int:
    settings = get_settings()
    return {
        ImageKind.PROFILE: settings.upload_max_profile_bytes,
        ImageKind.PRACTICE: settings.upload_max_practice_bytes,
        ImageKind.MESSAGE: settings.upload_max_message_bytes,
        ImageKind.PHOTO: settings.upload_max_practice_bytes,
        ImageKind.ICON: settings.upload_max_icon_bytes,
    }[kind]


def sniff_extension(data: bytes) -> str | None:
    """File extension for a supported image signature, or None."""
    for magic, ext in _SIGNATURES:
        if data.startswith(magic):
            return ext
    return None


def decode_image(encoded: str, kind: ImageKind) -> tuple[bytes, str]:
    """Decode a base64 image. Returns (bytes, extension).

    Raises:
        ValidationFailedError: malformed base64, unsupported type or too large.
    """
    if encoded.startswith("data:"):
        _, _, encoded = encoded.partition(",")
    try:
        data = base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationFailedError("Invalid image encoding") from None

    if not data:
        raise ValidationFailedError("Image is empty")
    limit = max_bytes(kind)
    if len(data) > limit:
        raise ValidationFailedError(f"Image exceeds {limit // (1024 * 1024)} MB limit")

    ext = sniff_extension(data)
    if ext is None:
        raise ValidationFailedError("Only JPEG, PNG and GIF images are allowed")
    return data, ext


def _root() -> Path:
    return Path(get_settings().upload_dir)


def resolve(public_path: str) -> Path | None:
    """Filesystem path for a ``/uploads/...`` reference, or None if it points elsewhere."""
    if not public_path.startswith(PUBLIC_PREFIX + "/"):
        return None
    relative = Path(public_path[len(PUBLIC_PREFIX) + 1:])
    if relative.is_absolute() or ".." in relative.parts:
        return None
    return _root() / relative


def _write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def save_image(encoded: str, kind: ImageKind, prefix: str | int) -> tuple[str, str]:
    """Decode and store an image. Returns (public path, filename)."""
    data, ext = decode_image(encoded, kind)
    filename = f"{prefix}_{uuid.uuid4().hex}.{ext}"
    await asyncio.to_thread(_write, _root() / kind.value / filename, data)
    logger.debug("Stored %s image %s (%d bytes)", kind.value, filename, len(data))
    return f"{PUBLIC_PREFIX}/{kind.value}/{filename}", filename


async def delete_image(public_path: str | None) -> bool:
    """Remove a stored image. Returns False if it was not a stored upload or is already gone."""
    if not public_path:
        return False
    path = resolve(public_path)
    if path is None:
        return False
    try:
        await asyncio.to_thread(path.unlink)
    except FileNotFoundError:
        return False
    return True
