# app/routers/products.py
import asyncio
import json
from contextlib import contextmanager
from typing import Iterator

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Header,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from app.core.auth import require_admin
from app.core.config import Settings, get_settings
from app.core.image_host import ImageFile, ProgressListener
from app.dependencies import (
    get_catalog_service,
    get_product_service,
    get_upload_tracker,
)
from app.schemas.cart import CheckoutLink
from app.schemas.product import (
    CatalogRead,
    ProductDraft,
    ProductRead,
    UploadStatusRead,
)
from app.services.catalog_service import (
    ALL_CATEGORIES,
    CatalogOrder,
    CatalogService,
    derive_categories,
    filter_by_category,
)
from app.services.checkout_service import build_single_product_message, make_deep_link
from app.services.product_service import ProductService, UploadTracker

router = APIRouter(prefix="/products", tags=["Products"])

# Seconds between keep-alive comments on the live stream
STREAM_KEEPALIVE = 15.0


# -------- Helpers --------


def _draft(title: str, price: str, category: str, new_category: str) -> ProductDraft:
    try:
        return ProductDraft(
            title=title,
            price=price,
            category=category,
            new_category=new_category,
        )
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        )


async def _read_files(files: list[UploadFile] | None) -> list[ImageFile]:
    payload: list[ImageFile] = []
    for f in files or []:
        if not f.filename and not f.size:
            # empty file input submitted by the browser
            continue
        if not f.content_type:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing content-type for one of the uploaded files",
            )
        payload.append(ImageFile(f.filename or "image", f.content_type, await f.read()))
    return payload


@contextmanager
def _tracked_upload(tracker: UploadTracker, upload_id: str | None) -> Iterator[ProgressListener | None]:
    """
    Progress listener for X-Upload-Id; the id is dropped again
    when the submission fails.
    """
    if not upload_id:
        yield None
        return
    listener = tracker.start(upload_id)
    try:
        yield listener
    except Exception:
        tracker.discard(upload_id)
        raise


# -------- Public endpoints --------


@router.get("", response_model=CatalogRead)
def list_products(
    order: CatalogOrder | None = None,
    category: str = ALL_CATEGORIES,
    catalog: CatalogService = Depends(get_catalog_service),
):
    """
    Public catalog.

    - `order`: "latest" (newest first) or "shuffle" (discovery);
      defaults to the CATALOG_ORDER setting.
    - `category`: facet filter, "All" shows everything.
    - Backend read errors degrade to an empty list.
    """
    products = catalog.fetch_all(order=order)
    return CatalogRead(
        items=filter_by_category(products, category),
        categories=derive_categories(products),
        selected_category=category or ALL_CATEGORIES,
    )


@router.get("/categories", response_model=list[str])
def list_categories(catalog: CatalogService = Depends(get_catalog_service)):
    """
    Category facets: "All" followed by the categories in use.
    """
    return derive_categories(catalog.fetch_all(order="latest"))


@router.get("/stream", summary="Live catalog updates (Server-Sent Events)")
async def stream_products(
    request: Request,
    catalog: CatalogService = Depends(get_catalog_service),
):
    """
    Sends the current catalog as a first `catalog` event, then a new one
    after every admin change, until the client disconnects.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[list[ProductRead]] = asyncio.Queue()

    def on_change(products: list[ProductRead]) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, products)

    unsubscribe = await run_in_threadpool(catalog.subscribe, on_change)

    async def events():
        try:
            while not await request.is_disconnected():
                try:
                    products = await asyncio.wait_for(queue.get(), timeout=STREAM_KEEPALIVE)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                data = json.dumps([p.model_dump(mode="json") for p in products])
                yield f"event: catalog\ndata: {data}\n\n"
        finally:
            unsubscribe()

    return StreamingResponse(events(), media_type="text/event-stream")


@router.get(
    "/uploads/{upload_id}",
    response_model=UploadStatusRead,
    dependencies=[Depends(require_admin)],
)
def get_upload_progress(
    upload_id: str,
    tracker: UploadTracker = Depends(get_upload_tracker),
):
    """
    Aggregate progress (0-100) of a submission sent with X-Upload-Id.
    """
    percent = tracker.get(upload_id)
    if percent is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Unknown upload id",
        )
    return UploadStatusRead(upload_id=upload_id, percent=percent)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: str,
    catalog: CatalogService = Depends(get_catalog_service),
):
    """
    Get a single product by id.

    - Public endpoint.
    """
    return catalog.get_product(product_id)


@router.get("/{product_id}/checkout-link", response_model=CheckoutLink)
def product_checkout_link(
    product_id: str,
    catalog: CatalogService = Depends(get_catalog_service),
    settings: Settings = Depends(get_settings),
):
    """
    "Buy on WhatsApp" link for one product.
    """
    product = catalog.get_product(product_id)
    message = build_single_product_message(product)
    return CheckoutLink(url=make_deep_link(message, settings.WHATSAPP_PHONE), message=message)


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
    summary="Upload images and create a product",
)
async def create_product(
    title: str = Form(""),
    price: str = Form(""),
    category: str = Form(""),
    new_category: str = Form(""),
    files: list[UploadFile] | None = File(default=None),
    upload_id: str | None = Header(default=None, alias="X-Upload-Id"),
    service: ProductService = Depends(get_product_service),
    tracker: UploadTracker = Depends(get_upload_tracker),
):
    """
    Create a new product (admin only).

    - At least one image; JPEG, PNG, WEBP or GIF.
    - `new_category` wins over `category` when both are sent.
    - Send X-Upload-Id to poll progress at /products/uploads/{id}.
    """
    draft = _draft(title, price, category, new_category)
    images = await _read_files(files)
    with _tracked_upload(tracker, upload_id) as on_progress:
        return await service.create_product(draft, images, on_progress=on_progress)


@router.patch(
    "/{product_id}",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
)
async def update_product(
    product_id: str,
    title: str = Form(""),
    price: str = Form(""),
    category: str = Form(""),
    new_category: str = Form(""),
    files: list[UploadFile] | None = File(default=None),
    upload_id: str | None = Header(default=None, alias="X-Upload-Id"),
    service: ProductService = Depends(get_product_service),
    tracker: UploadTracker = Depends(get_upload_tracker),
):
    """
    Update an existing product (admin only).

    - Images are replaced only when new files are sent.
    """
    draft = _draft(title, price, category, new_category)
    images = await _read_files(files)
    with _tracked_upload(tracker, upload_id) as on_progress:
        return await service.update_product(product_id, draft, images, on_progress=on_progress)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_product(
    product_id: str,
    service: ProductService = Depends(get_product_service),
):
    """
    Delete a product (admin only).
    """
    service.delete_product(product_id)
    return None
