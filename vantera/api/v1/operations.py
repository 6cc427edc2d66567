"""Operations API router — run log, manual media and asset uploads.
/api/v1/ops
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vantera.api.deps import get_db, get_import_run_store
from vantera.config import settings
from vantera.core.exceptions import NotFoundError, ValidationError
from vantera.models.listing_model import Listing
from vantera.schemas.import_run_schema import (
    ImportRunCreate,
    ImportRunListResponse,
    ImportRunResponse,
    ImportRunTrigger,
)
from vantera.schemas.ingest_schema import (
    AssetUploadResponse,
    MediaIngestRequest,
    MediaIngestResponse,
)
from vantera.services.asset_service import store_asset
from vantera.services.import_run_store import ImportRunStore, complete_test_run
from vantera.services.mapper_service import PhotoInput
from vantera.services.media_service import ingest_listing_media

router = APIRouter()


async def read_trigger(request: Request) -> ImportRunTrigger:
    """Optional JSON body. A missing or unparsable body falls back to the defaults."""
    try:
        data = await request.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        return ImportRunTrigger()
    try:
        return ImportRunTrigger.model_validate(data)
    except SchemaValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"Invalid {field}: {first['msg']}") from e


@router.get("/imports", response_model=ImportRunListResponse)
async def list_import_runs(
    limit: int = Query(settings.import_runs_list_limit, ge=1, le=500),
    store: ImportRunStore = Depends(get_import_run_store),
):
    """Recent runs, most recent first."""
    return ImportRunListResponse(runs=await store.list(limit))


@router.post("/imports", response_model=ImportRunResponse)
async def create_test_run(
    background_tasks: BackgroundTasks,
    trigger: ImportRunTrigger = Depends(read_trigger),
    store: ImportRunStore = Depends(get_import_run_store),
):
    """Create a running test run; it completes shortly after the response."""
    run = await store.create(
        ImportRunCreate(
            source=trigger.source,
            scope=trigger.scope,
            region=trigger.region,
            market=trigger.market,
            message="Test run started",
        )
    )
    background_tasks.add_task(complete_test_run, store, run.id, settings.test_run_completion_delay)
    return ImportRunResponse(run=run)


@router.get("/imports/{run_id}", response_model=ImportRunResponse)
async def get_import_run(
    run_id: UUID,
    store: ImportRunStore = Depends(get_import_run_store),
):
    run = await store.get(run_id)
    if not run:
        raise NotFoundError(f"Import run {run_id} not found")
    return ImportRunResponse(run=run)


@router.post("/listings/{listing_id}/media", response_model=MediaIngestResponse)
async def attach_listing_media(
    listing_id: UUID,
    payload: MediaIngestRequest,
    db: AsyncSession = Depends(get_db),
):
    """Append photos to a listing, skipping URLs it already has."""
    result = await db.execute(select(Listing).where(Listing.id == listing_id))
    listing = result.scalar_one_or_none()
    if not listing:
        raise NotFoundError(f"Listing {listing_id} not found")

    photos = [
        PhotoInput(url=p.url, caption=p.caption, width=p.width, height=p.height)
        for p in payload.photos
    ]
    inserted = await ingest_listing_media(db, listing, photos, payload.source.strip().upper() or "MANUAL")
    return MediaIngestResponse(listing_id=str(listing.id), inserted=inserted)


@router.post("/assets/upload", response_model=AssetUploadResponse)
async def upload_asset(
    request: Request,
    filename: Optional[str] = Query(None),
):
    """Raw request body stored under MEDIA_ROOT at the sanitized `filename`."""
    data = await request.body()
    return await store_asset(
        filename,
        data,
        request.headers.get("content-type"),
        media_root=settings.media_root,
        media_base_url=settings.media_base_url,
        allowed_prefixes=settings.upload_allowed_prefixes,
    )
