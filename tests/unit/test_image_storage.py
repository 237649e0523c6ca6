"""Image upload decoding and storage tests."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from skillforge.config import get_settings
from skillforge.exceptions import ValidationFailedError
from skillforge.storage import ImageKind, decode_image, delete_image, resolve, save_image, sniff_extension

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 16
GIF = b"GIF89a" + b"\x00" * 16


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


class TestSniff:
    @pytest.mark.parametrize("data,ext", [(PNG, "png"), (JPEG, "jpg"), (GIF, "gif"), (b"GIF87a...", "gif")])
    def test_supported(self, data, ext):
        assert sniff_extension(data) == ext

    def test_unsupported(self):
        assert sniff_extension(b"%PDF-1.7") is None


class TestDecode:
    def test_plain_base64(self):
        assert decode_image(_b64(PNG), ImageKind.PRACTICE) == (PNG, "png")

    def test_data_url_prefix(self):
        assert decode_image(f"data:image/jpeg;base64,{_b64(JPEG)}", ImageKind.PROFILE) == (JPEG, "jpg")

    def test_invalid_base64(self):
        with pytest.raises(ValidationFailedError, match="Invalid image encoding"):
            decode_image("not*base64!", ImageKind.PRACTICE)

    def test_empty(self):
        with pytest.raises(ValidationFailedError, match="empty"):
            decode_image("", ImageKind.PRACTICE)

    def test_wrong_type(self):
        with pytest.raises(ValidationFailedError, match="JPEG, PNG and GIF"):
            decode_image(_b64(b"%PDF-1.7 hello"), ImageKind.MESSAGE)

    def test_too_large(self):
        limit = get_settings().upload_max_icon_bytes
        with pytest.raises(ValidationFailedError, match="limit"):
            decode_image(_b64(PNG + b"\x00" * limit), ImageKind.ICON)


class TestResolve:
    def test_upload_path(self):
        path = resolve("/uploads/photos/a.png")
        assert path == Path(get_settings().upload_dir) / "photos" / "a.png"

    @pytest.mark.parametrize("public_path", ["default-profile.png", "/static/a.png", "/uploads/../etc/passwd"])
    def test_outside_uploads(self, public_path):
        assert resolve(public_path) is None


class TestSaveDelete:
    @pytest.mark.asyncio
    async def test_save_then_delete(self):
        public_path, filename = await save_image(_b64(GIF), ImageKind.PHOTO, 12)
        assert public_path == f"/uploads/photos/{filename}"
        assert filename.startswith("12_") and filename.endswith(".gif")
        stored = resolve(public_path)
        assert stored is not None and stored.read_bytes() == GIF

        assert await delete_image(public_path) is True
        assert not stored.exists()
        assert await delete_image(public_path) is False

    @pytest.mark.asyncio
    async def test_delete_non_upload(self):
        assert await delete_image("default-profile.png") is False
        assert await delete_image(None) is False
