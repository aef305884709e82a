"""Download, recompress and store product images."""

from __future__ import annotations

import io
import uuid
from pathlib import Path

import httpx
from PIL import Image, UnidentifiedImageError

from app.core.config import settings
from app.core.logging import get_logger
from app.errors import EncodeError, FetchError

logger = get_logger(__name__)

OUTPUT_FORMAT = "JPEG"
OUTPUT_EXTENSION = "jpg"

# Modes Pillow can write as JPEG without conversion.
_JPEG_MODES = {"RGB", "L", "CMYK"}


class LocalImageStorage:
    """Writes encoded images under the media root and links them by public URL."""

    def __init__(self, root: str | Path | None = None, public_base_url: str | None = None) -> None:
        self.root = Path(root or settings.media_root) / "images"
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")

    def save(self, data: bytes) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        name = f"{uuid.uuid4().hex}.{OUTPUT_EXTENSION}"
        (self.root / name).write_bytes(data)
        return f"{self.public_base_url}/files/images/{name}"


class ImageTransformer:
    """Fetches a remote image and re-encodes it as a lower quality JPEG."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        storage: LocalImageStorage | None = None,
        quality: int | None = None,
    ) -> None:
        self._client = client or httpx.Client(timeout=settings.fetch_timeout_seconds, follow_redirects=True)
        self._storage = storage or LocalImageStorage()
        self.quality = quality if quality is not None else settings.image_quality

    def transform(self, url: str) -> str:
        """Return the URL of the recompressed copy of ``url``."""

        source_bytes = self._fetch_source(url)
        encoded = self.compress(source_bytes)
        try:
            output_url = self._storage.save(encoded)
        except OSError as exc:
            raise EncodeError(f"Unable to store compressed image for {url}: {exc}") from exc

        logger.debug(
            "image_transformed",
            url=url,
            output_url=output_url,
            original_bytes=len(source_bytes),
            compressed_bytes=len(encoded),
        )
        return output_url

    def compress(self, source_bytes: bytes) -> bytes:
        """Decode ``source_bytes`` and encode them as JPEG at the configured quality."""

        try:
            with Image.open(io.BytesIO(source_bytes)) as image:
                image.load()
                if image.mode not in _JPEG_MODES:
                    image = image.convert("RGB")
                buffer = io.BytesIO()
                image.save(buffer, format=OUTPUT_FORMAT, quality=self.quality)
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise EncodeError(f"Unable to re-encode image: {exc}") from exc
        return buffer.getvalue()

    def _fetch_source(self, url: str) -> bytes:
        """Download the source image into memory."""

        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("image_fetch_failed", url=url, error=str(exc))
            raise FetchError(f"Unable to download {url}: {exc}") from exc
        return response.content


image_transformer = ImageTransformer()
