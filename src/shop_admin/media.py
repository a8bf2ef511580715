from __future__ import annotations

import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Literal, Union

MediaKind = Literal["image", "video"]

# .../upload/v1234567890/shop/products/abc123.jpg -> shop/products/abc123
_PUBLIC_ID_RE = re.compile(r"/v\d+/(.+)\.[a-zA-Z0-9]+$")


def extract_public_id(url: str | None) -> str | None:
    """Return the hosted-media identifier embedded in a delivery URL."""
    if not url:
        return None
    match = _PUBLIC_ID_RE.search(url)
    return match.group(1) if match else None


@dataclass
class UploadFile:
    """A file payload for the multipart upload endpoints."""

    filename: str
    content: Union[bytes, IO[bytes]]
    content_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path: Path | str) -> UploadFile:
        path = Path(path)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(filename=path.name, content=path.read_bytes(), content_type=content_type)

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")

    @property
    def is_video(self) -> bool:
        return self.content_type.startswith("video/")

    def as_httpx(self) -> tuple[str, Union[bytes, IO[bytes]], str]:
        return (self.filename, self.content, self.content_type)


UploadSource = Union[UploadFile, Path, str]


def to_upload_file(source: UploadSource) -> UploadFile:
    if isinstance(source, UploadFile):
        return source
    return UploadFile.from_path(source)


__all__ = ["MediaKind", "UploadFile", "UploadSource", "extract_public_id", "to_upload_file"]
