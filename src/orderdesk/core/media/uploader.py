from __future__ import annotations

import mimetypes
from pathlib import Path

import requests

from orderdesk.config import UploadConfig
from orderdesk.core.errors import StoreUnavailable


class ImageUploader:
    """Pushes chat images to an unsigned-upload blob endpoint and returns the public URL."""

    def __init__(self, config: UploadConfig, session: requests.Session | None = None):
        self.config = config
        self.session = session or requests.Session()

    @staticmethod
    def _detect_mime(path: Path) -> str | None:
        mime, _ = mimetypes.guess_type(path.name)
        return mime

    def validate(self, path: Path) -> str:
        if not path.is_file():
            raise ValueError(f"Image file not found: {path}")
        mime = self._detect_mime(path)
        if not mime or not mime.startswith("image/"):
            raise ValueError(f"Not an image file: {path.name}")
        size_bytes = path.stat().st_size
        if size_bytes > self.config.max_bytes:
            raise ValueError(f"Image is too large: {size_bytes} bytes (limit {self.config.max_bytes})")
        return mime

    def upload(self, path: Path) -> str:
        if not self.config.enabled:
            raise StoreUnavailable("Image upload endpoint is not configured", partition="blobs")
        mime = self.validate(path)

        data = {"folder": self.config.folder}
        if self.config.preset:
            data["upload_preset"] = self.config.preset

        try:
            with path.open("rb") as fh:
                response = self.session.post(
                    self.config.url,
                    files={"file": (path.name, fh, mime)},
                    data=data,
                    timeout=self.config.timeout_sec,
                )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise StoreUnavailable(f"Image upload failed: {exc}", partition="blobs") from exc

        url = payload.get("secure_url") or payload.get("url")
        if not url:
            raise StoreUnavailable("Image upload response has no URL", partition="blobs")
        return str(url)
