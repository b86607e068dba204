# app/services/product_service.py
import logging
from collections import OrderedDict
from typing import Any

from fastapi import HTTPException, status
from starlette.concurrency import run_in_threadpool

from app.core.image_host import ImageFile, ImageHost, ProgressListener, generate_filename
from app.repositories.product_repo import ProductRepository
from app.schemas.product import ProductDraft, ProductRead
from app.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)


# --- Image config ---

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


class UploadTracker:
    """
    Latest aggregate percentage per client-supplied upload id,
    polled by the admin panel to draw its progress bar.

    - A finished upload (100) is dropped once it has been read.
    - Failed submissions are dropped through `discard`.
    - At most `max_entries` ids are kept; the oldest go first.
    """

    def __init__(self, max_entries: int = 256):
        self.max_entries = max_entries
        self._percent: OrderedDict[str, int] = OrderedDict()

    def __len__(self) -> int:
        return len(self._percent)

    def start(self, upload_id: str) -> ProgressListener:
        self._percent.pop(upload_id, None)
        self._percent[upload_id] = 0
        while len(self._percent) > self.max_entries:
            self._percent.popitem(last=False)

        def listener(percent: int) -> None:
            if upload_id in self._percent:
                self._percent[upload_id] = percent

        return listener

    def get(self, upload_id: str) -> int | None:
        percent = self._percent.get(upload_id)
        if percent is not None and percent >= 100:
            del self._percent[upload_id]
        return percent

    def discard(self, upload_id: str) -> None:
        self._percent.pop(upload_id, None)


class ProductService:
    """
    Admin write side of the catalog.

    Responsibilities:
      - validate the form before anything leaves the server
      - upload images to the image host, all-or-nothing
      - write / update / delete the product record
      - tell catalog subscribers about the change
    """

    def __init__(
        self,
        repo: ProductRepository,
        image_host: ImageHost,
        catalog: CatalogService,
        max_image_bytes: int = 10 * 1024 * 1024,
    ):
        self.repo = repo
        self.image_host = image_host
        self.catalog = catalog
        self.max_image_bytes = max_image_bytes

    # ----- Helpers -----

    def _validate_image(self, file: ImageFile) -> str:
        if file.content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unsupported image type. Allowed: JPEG, PNG, WEBP, GIF.",
            )

        if not file.content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Image '{file.filename}' is empty.",
            )

        if len(file.content) > self.max_image_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Image too large (max {self.max_image_bytes // (1024 * 1024)}MB).",
            )

        return ALLOWED_IMAGE_CONTENT_TYPES[file.content_type]

    def _validate_draft(self, draft: ProductDraft) -> str:
        """
        Title must be present and a category must resolve.
        Returns the category to store.
        """
        if not draft.title.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Please enter a title.",
            )

        category = draft.resolved_category()
        if not category:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Please select a category or create a new one.",
            )
        return category

    def _prepare_images(self, files: list[ImageFile]) -> list[ImageFile]:
        """
        Validate every file and give it a random name
        (the host derives the public id from it).
        """
        return [f._replace(filename=generate_filename(self._validate_image(f))) for f in files]

    async def _upload_images(
        self,
        files: list[ImageFile],
        on_progress: ProgressListener | None,
    ) -> list[str]:
        try:
            return await self.image_host.upload_many(files, on_progress)
        except Exception:
            logger.exception("Upload failed")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Upload failed. Please try again.",
            )

    @staticmethod
    def _record(draft: ProductDraft, category: str, image_urls: list[str]) -> dict[str, Any]:
        return {
            "title": draft.title.strip(),
            "price": draft.price.strip(),
            "category": category,
            # Keep imageURL for older display code
            "imageURL": image_urls[0] if image_urls else None,
            "imageURLs": image_urls,
        }

    def _write_failed(self, action: str) -> HTTPException:
        logger.exception("%s failed", action)
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{action} failed. Please try again.",
        )

    # ----- Products -----

    async def create_product(
        self,
        draft: ProductDraft,
        files: list[ImageFile],
        on_progress: ProgressListener | None = None,
    ) -> ProductRead:
        """
        Upload the images, then write one product record.

        - Validation happens before any upload.
        - imageURLs keep the selection order, imageURL duplicates the first.
        """
        category = self._validate_draft(draft)
        if not files:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Please choose at least one image.",
            )
        files = self._prepare_images(files)

        image_urls = await self._upload_images(files, on_progress)

        try:
            product = await run_in_threadpool(
                self.repo.create, self._record(draft, category, image_urls)
            )
        except Exception:
            raise self._write_failed("Upload")

        logger.info("Product %s created with %d image(s)", product.id, len(image_urls))
        await run_in_threadpool(self.catalog.notify_changed)
        return product

    async def update_product(
        self,
        product_id: str,
        draft: ProductDraft,
        files: list[ImageFile] | None = None,
        on_progress: ProgressListener | None = None,
    ) -> ProductRead:
        """
        Edit a product.

        Images are only re-uploaded when new files were chosen; otherwise
        the existing image_urls are kept as they are.
        """
        try:
            existing = await run_in_threadpool(self.repo.get_by_id, product_id)
        except Exception:
            raise self._write_failed("Update")

        if existing is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )

        category = self._validate_draft(draft)
        files = self._prepare_images(files or [])

        image_urls = list(existing.image_urls)
        if files:
            image_urls = await self._upload_images(files, on_progress)

        try:
            product = await run_in_threadpool(
                self.repo.update, product_id, self._record(draft, category, image_urls)
            )
        except Exception:
            raise self._write_failed("Update")

        if product is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )

        logger.info("Product %s updated", product_id)
        await run_in_threadpool(self.catalog.notify_changed)
        return product

    def delete_product(self, product_id: str) -> None:
        try:
            deleted = self.repo.delete(product_id)
        except Exception:
            raise self._write_failed("Delete")

        if not deleted:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )

        logger.info("Product %s deleted", product_id)
        self.catalog.notify_changed()
