# app/core/image_host.py
import asyncio
import logging
import uuid
from typing import Callable, NamedTuple

import httpx

logger = logging.getLogger(__name__)

ProgressListener = Callable[[int], None]


class ImageUploadError(Exception):
    """Raised when the image host rejects or fails an upload."""


class ImageFile(NamedTuple):
    """An image picked in the admin form."""

    filename: str
    content_type: str
    content: bytes


class UploadProgress:
    """
    Aggregate progress of one submission.

    percent = round(sum of per-file fractions / number of files * 100),
    pushed to the listener on every progress event of any upload.
    """

    def __init__(self, total_files: int, listener: ProgressListener | None = None):
        self.fractions = [0.0] * total_files
        self.listener = listener

    @property
    def percent(self) -> int:
        if not self.fractions:
            return 0
        return round(sum(self.fractions) / len(self.fractions) * 100)

    def update(self, index: int, fraction: float) -> int:
        self.fractions[index] = min(max(fraction, 0.0), 1.0)
        percent = self.percent
        if self.listener:
            self.listener(percent)
        return percent


def generate_filename(ext: str) -> str:
    """
    Generate a random filename using UUID4.

    Args:
        ext: File extension without dot (e.g. "png", "jpg")

    Returns:
        A filename like "<uuid4>.png"
    """
    return f"{uuid.uuid4()}.{ext}"


class ImageHost:
    """
    Cloudinary unsigned upload client.

    Each upload is a multipart POST with the fields:
      - file
      - upload_preset
      - folder
    and the public URL comes back as `secure_url`.
    """

    def __init__(
        self,
        upload_url: str,
        upload_preset: str,
        folder: str,
        transport: httpx.AsyncBaseTransport | None = None,
        chunk_size: int = 64 * 1024,
        timeout: float = 120.0,
    ):
        self.upload_url = upload_url
        self.upload_preset = upload_preset
        self.folder = folder
        self.transport = transport
        self.chunk_size = chunk_size
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

    async def upload(
        self,
        client: httpx.AsyncClient,
        file: ImageFile,
        on_progress: Callable[[float], None] | None = None,
    ) -> str:
        """
        Upload one image and return its secure_url.

        The multipart body is encoded up front and streamed in chunks so
        the fraction of bytes sent can be reported while it goes out.

        Raises:
            ImageUploadError: network failure, non-2xx status or a
            response without secure_url.
        """
        encoded = client.build_request(
            "POST",
            self.upload_url,
            data={"upload_preset": self.upload_preset, "folder": self.folder},
            files={"file": (file.filename, file.content, file.content_type)},
        )
        body = encoded.read()
        total = len(body) or 1

        async def stream():
            sent = 0
            for start in range(0, len(body), self.chunk_size):
                chunk = body[start : start + self.chunk_size]
                sent += len(chunk)
                if on_progress:
                    on_progress(sent / total)
                yield chunk

        try:
            resp = await client.post(
                self.upload_url,
                content=stream(),
                headers={
                    "Content-Type": encoded.headers["Content-Type"],
                    "Content-Length": str(len(body)),
                },
            )
        except httpx.HTTPError as exc:
            raise ImageUploadError(f"Network error during upload: {exc}") from exc

        if not resp.is_success:
            raise ImageUploadError(f"Cloudinary upload failed: {resp.status_code}")

        try:
            secure_url = resp.json()["secure_url"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ImageUploadError("Cloudinary response has no secure_url") from exc

        return secure_url

    async def upload_many(
        self,
        files: list[ImageFile],
        on_progress: ProgressListener | None = None,
    ) -> list[str]:
        """
        Upload all files concurrently; URLs come back in file order.

        All-or-nothing: the first failure is raised once every upload
        has finished, so no caller sees a partial list.
        """
        progress = UploadProgress(len(files), on_progress)

        def tracker(index: int) -> Callable[[float], None]:
            return lambda fraction: progress.update(index, fraction)

        async with self._client() as client:
            results = await asyncio.gather(
                *(self.upload(client, f, tracker(i)) for i, f in enumerate(files)),
                return_exceptions=True,
            )

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            for err in errors:
                logger.error("Image upload failed: %s", err)
            raise errors[0]
        return list(results)
