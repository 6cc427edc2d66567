"""ATTOM ingestion API router.
/api/v1/attom/ingest

Both endpoints are GET so they can be triggered from a browser or a cron
curl; `dryRun=1` records the run without touching cities or listings.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from vantera.api.deps import get_attom_client, get_db, get_import_run_store
from vantera.api.responses import error
from vantera.config import settings
from vantera.schemas.ingest_schema import CityIngestResponse, PropertyIngestResponse
from vantera.services.attom_client import AttomClient
from vantera.services.attom_ingest_service import (
    DEFAULT_MIN_AVM,
    DEFAULT_RADIUS,
    PropertyFilters,
    parse_types,
    run_property_ingest,
)
from vantera.services.city_service import bootstrap_cities, resolve_target
from vantera.services.import_run_store import ImportRunStore

router = APIRouter()


def is_dry_run(value: Optional[str]) -> bool:
    return value == "1"


@router.get("/properties", response_model=PropertyIngestResponse)
async def ingest_properties(
    city: str = Query("miami", description="Preset key; benahavis / estepona / costa-del-sol attach to marbella"),
    radius: float = Query(DEFAULT_RADIUS, gt=0),
    limit: Optional[int] = Query(None, description="Clamped to 1..100"),
    dry_run: Optional[str] = Query(None, alias="dryRun"),
    min_avm: float = Query(DEFAULT_MIN_AVM, alias="minAvm", ge=0),
    min_beds: Optional[int] = Query(None, alias="minBeds", ge=0),
    types: Optional[str] = Query(None, description="Comma-separated type whitelist, e.g. SFR,CONDO"),
    db: AsyncSession = Depends(get_db),
    client: AttomClient = Depends(get_attom_client),
    store: ImportRunStore = Depends(get_import_run_store),
):
    """Address search around the city centre, then detail, AVM and media per property."""
    target = resolve_target(city)
    return await run_property_ingest(
        db,
        client,
        store,
        target,
        radius=radius,
        limit=limit,
        dry_run=is_dry_run(dry_run),
        filters=PropertyFilters(min_avm=min_avm, min_beds=min_beds, types=parse_types(types)),
    )


@router.get("/cities", response_model=CityIngestResponse)
async def ingest_cities(
    request: Request,
    dry_run: Optional[str] = Query(None, alias="dryRun"),
    db: AsyncSession = Depends(get_db),
    store: ImportRunStore = Depends(get_import_run_store),
):
    """Upsert the configured bootstrap cities as one tracked run."""
    result = await bootstrap_cities(db, store, settings.bootstrap_cities, is_dry_run(dry_run))
    if not result.ok:
        return error(
            "City ingest failed",
            500,
            request,
            run_id=result.run_id,
            extra={
                "errors": result.errors,
                "errorSamples": [s.model_dump(by_alias=True) for s in result.error_samples],
            },
        )
    return result
