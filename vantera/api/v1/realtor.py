"""Realtor.com (Apify) ingestion API router.
/api/v1/realtor/ingest
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vantera.api.deps import get_apify_client, get_db, get_import_run_store
from vantera.config import settings
from vantera.core.exceptions import ValidationError
from vantera.schemas.ingest_schema import RealtorHealthResponse, RealtorIngestResponse
from vantera.services.import_run_store import ImportRunStore
from vantera.services.realtor_service import (
    DEFAULT_LIMIT,
    DEFAULT_MIN_PRICE_USD,
    ApifyClient,
    RealtorQuery,
    parse_csv,
    run_realtor_ingest,
)

router = APIRouter()


@router.get("", response_model=RealtorHealthResponse)
async def realtor_health():
    """Confirms configuration without running a scrape."""
    return RealtorHealthResponse(
        has_token=bool(settings.apify_token),
        actor_id=settings.apify_realtor_actor_id,
    )


@router.get("/properties", response_model=RealtorIngestResponse)
async def ingest_realtor_properties(
    search_location: Optional[str] = Query(None, alias="searchLocation"),
    limit: int = Query(DEFAULT_LIMIT),
    price_min: float = Query(DEFAULT_MIN_PRICE_USD, alias="priceMin"),
    beds_min: Optional[float] = Query(None, alias="bedsMin"),
    baths_min: Optional[float] = Query(None, alias="bathsMin"),
    listing_type: Optional[str] = Query(None, alias="listingType"),
    property_type: Optional[str] = Query(None, alias="propertyType"),
    city_slug: Optional[str] = Query(None, alias="citySlug"),
    dry_run: Optional[str] = Query(None, alias="dryRun"),
    db: AsyncSession = Depends(get_db),
    client: ApifyClient = Depends(get_apify_client),
    store: ImportRunStore = Depends(get_import_run_store),
):
    search_location = (search_location or "").strip()
    if not search_location:
        raise ValidationError("Missing required query param: searchLocation (e.g. Miami, FL)")

    query = RealtorQuery(
        search_location=search_location,
        limit=limit,
        price_min=price_min,
        beds_min=beds_min,
        baths_min=baths_min,
        listing_type=parse_csv(listing_type) or ["for_sale"],
        property_type=parse_csv(property_type),
        city_slug=(city_slug or "").strip().lower() or "miami",
        dry_run=dry_run == "1",
    )
    return await run_realtor_ingest(db, client, store, query)
