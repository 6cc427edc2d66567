"""Realtor.com ingestion via an Apify actor.

The actor is run synchronously through Apify's
`run-sync-get-dataset-items` endpoint, which returns the scraped items in the
same response. Items are normalized by mapper_service, filtered by the luxury
gates, deduplicated and stored as listings with their photos.
"""
import asyncio
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vantera.core.exceptions import ApifyError, ConfigurationError, ProviderError
from vantera.core.logging import get_logger, set_correlation_id
from vantera.models.city_model import City
from vantera.models.listing_model import Listing
from vantera.schemas.import_run_schema import ImportRunCreate
from vantera.schemas.ingest_schema import RealtorIngestResponse
from vantera.services.city_service import CITY_PRESETS, find_city, upsert_city
from vantera.services.import_run_store import ImportRunStore, RunStats
from vantera.services.mapper_service import (
    RealtorFields,
    compute_data_completeness,
    looks_residential,
    normalize_realtor_item,
    normalize_realtor_photos,
    slugify,
    sqft_to_m2,
)
from vantera.services.media_service import ingest_listing_media

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.apify.com/v2"
DEFAULT_ACTOR_ID = "logical_vivacity~realtor-property-scraper"
DEFAULT_MIN_PRICE_USD = 2_000_000
DEFAULT_LIMIT = 200
MAX_LIMIT = 2000

SOURCE = "realtor"
MEDIA_SOURCE = "REALTOR"


class ApifyClient:
    """Runs an Apify actor and returns its dataset items."""

    def __init__(
        self,
        token: str,
        actor_id: str = DEFAULT_ACTOR_ID,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 300,
        session: Optional[requests.Session] = None,
    ):
        self.token = token or ""
        self.actor_id = actor_id or DEFAULT_ACTOR_ID
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.token)

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("Missing APIFY_TOKEN. Set it in the environment (or .env) before running Realtor ingestion.")

    def run_actor(self, actor_input: Dict[str, Any]) -> List[Dict[str, Any]]:
        self.ensure_configured()
        url = f"{self.base_url}/acts/{quote(self.actor_id, safe='')}/run-sync-get-dataset-items"

        try:
            response = self._session.post(
                url,
                params={"token": self.token, "format": "json"},
                json=actor_input,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("Apify request error: %s", str(e))
            raise ProviderError(f"Apify request failed: {e}", url=url) from e

        if not response.ok:
            raise ApifyError(
                status=response.status_code,
                reason=response.reason or "",
                url=url,
                body=response.text or "",
            )

        try:
            items = response.json()
        except ValueError as e:
            raise ProviderError("Apify returned invalid JSON", url=url, body=response.text or "") from e
        return [i for i in items if isinstance(i, dict)] if isinstance(items, list) else []

    def close(self) -> None:
        self._session.close()


@dataclass
class RealtorQuery:
    search_location: str
    limit: int = DEFAULT_LIMIT
    price_min: float = DEFAULT_MIN_PRICE_USD
    beds_min: Optional[float] = None
    baths_min: Optional[float] = None
    listing_type: List[str] = field(default_factory=lambda: ["for_sale"])
    property_type: Optional[List[str]] = None
    city_slug: str = "miami"
    dry_run: bool = False

    def actor_input(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "searchLocation": self.search_location,
            "listingType": self.listing_type,
            "limit": self.limit,
            "priceMin": self.price_min,
            "extraPropertyData": True,
            "includeContactInfo": False,
            "excludePending": True,
            "parallel": True,
        }
        if self.property_type:
            payload["propertyType"] = self.property_type
        if self.beds_min is not None:
            payload["bedsMin"] = self.beds_min
        if self.baths_min is not None:
            payload["bathsMin"] = self.baths_min
        return payload


def parse_csv(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    items = [s.strip() for s in value.split(",") if s.strip()]
    return items or None


def gate_reason(f: RealtorFields, q: RealtorQuery) -> Optional[str]:
    """Why an item is filtered out, or None if it passes."""
    if not f.price or f.price < q.price_min:
        return "price"
    if q.beds_min is not None and (f.bedrooms is None or f.bedrooms < q.beds_min):
        return "beds"
    if q.baths_min is not None and (f.bathrooms is None or f.bathrooms < q.baths_min):
        return "baths"
    if not looks_residential(f.property_type):
        return "type"
    return None


async def _already_stored(db: AsyncSession, city: Optional[City], f: RealtorFields) -> Optional[bool]:
    """True/False for the dedup check; None when the item has no usable key."""
    if f.source_id:
        where = [Listing.source == SOURCE, Listing.source_id == f.source_id]
    elif f.address:
        if city is None:
            return False
        where = [Listing.city_id == city.id, Listing.address == f.address]
    else:
        return None
    result = await db.execute(select(Listing.id).where(*where).limit(1))
    return result.first() is not None


async def _resolve_city(db: AsyncSession, slug: str, dry_run: bool) -> Optional[City]:
    if dry_run:
        return await find_city(db, slug)

    preset = CITY_PRESETS.get(slug)
    if preset is not None:
        city = await upsert_city(db, preset)
    else:
        city = await find_city(db, slug)
        if city is None:
            city = City(
                slug=slug,
                name=slug.replace("-", " ").title(),
                country="United States",
                timezone="America/New_York",
            )
            db.add(city)
            await db.flush()
    await db.commit()
    return city


def _build_listing(city: City, f: RealtorFields, slug: str, search_location: str) -> Listing:
    description = "\n".join(
        line
        for line in (
            "Realtor.com import (Apify)",
            f"Search: {search_location}",
            f"Realtor ID: {f.source_id}" if f.source_id else None,
            f.address,
            f.source_url,
        )
        if line
    )
    return Listing(
        slug=slug,
        city_id=city.id,
        source=SOURCE,
        source_id=f.source_id,
        source_url=f.source_url,
        status="LIVE",
        visibility="PUBLIC",
        verification="SELF_REPORTED",
        title=f.title,
        headline="Imported from Realtor.com - verification layers come next.",
        description=description,
        address=f.address,
        address_hidden=True,
        lat=f.lat,
        lng=f.lng,
        property_type=f.property_type,
        bedrooms=f.bedrooms,
        bathrooms=f.bathrooms,
        built_sqft=f.built_sqft,
        built_area=sqft_to_m2(f.built_sqft),
        price=Decimal(str(f.price)) if f.price is not None else None,
        currency="USD",
        price_confidence=90 if f.price is not None else None,
        data_completeness=compute_data_completeness(
            address=f.address,
            lat=f.lat,
            lng=f.lng,
            property_type=f.property_type,
            beds=f.bedrooms,
            baths=f.bathrooms,
            built_sqft=f.built_sqft,
            price=f.price,
        ),
    )


async def run_realtor_ingest(
    db: AsyncSession,
    client: ApifyClient,
    store: ImportRunStore,
    query: RealtorQuery,
) -> RealtorIngestResponse:
    """Run the Realtor actor and store the listings that pass the gates.

    Same dry-run policy as the ATTOM pipeline: nothing but the ImportRun is
    written.
    """
    client.ensure_configured()
    query.limit = max(1, min(int(query.limit), MAX_LIMIT))

    run = await store.create(
        ImportRunCreate(
            source=SOURCE,
            scope="properties",
            region="US",
            market=query.search_location,
            params={"actorId": client.actor_id, **query.actor_input(), "citySlug": query.city_slug, "dryRun": query.dry_run},
            message="Starting Realtor ingest (Apify)",
        )
    )
    run_id = str(run.id)
    set_correlation_id(run_id)
    started = time.monotonic()
    logger.info("Realtor ingest started for %s", query.search_location, extra={"run_id": run_id, "source": SOURCE})

    stats = RunStats()
    step = "apify:run-sync-get-dataset-items"

    try:
        items = await asyncio.to_thread(client.run_actor, query.actor_input())
        stats.scanned = len(items)

        step = "upsert:city"
        city = await _resolve_city(db, query.city_slug, query.dry_run)

        seen = set()
        for item in items:
            step = "normalize"
            f = normalize_realtor_item(item)
            if gate_reason(f, query):
                stats.skipped += 1
                continue

            step = "dedup"
            key = f.source_id or f.address
            stored = await _already_stored(db, city, f)
            if stored is None or stored or key in seen:
                stats.skipped += 1
                continue
            seen.add(key)

            if query.dry_run:
                stats.created += 1
                continue

            step = "create:listing"
            slug = slugify(f"{query.city_slug}-{key}")
            listing = _build_listing(city, f, slug, query.search_location)
            db.add(listing)
            await db.flush()
            await ingest_listing_media(db, listing, normalize_realtor_photos(item), MEDIA_SOURCE)
            await db.commit()
            stats.created += 1

    except Exception as e:
        await db.rollback()
        message = e.message if isinstance(e, ProviderError) else str(e)
        logger.error("Realtor ingest failed at %s: %s", step, message, extra={"run_id": run_id})
        stats.record_error(step, message)
        await store.update(run_id, stats.finish("Realtor ingest failed", failed=True))
        if isinstance(e, ProviderError):
            e.detail = {**(e.detail or {}), "runId": run_id}
        raise

    await store.update(run_id, stats.finish("Realtor ingest complete", failed=False))
    logger.info(
        "Realtor ingest done: scanned=%d created=%d skipped=%d",
        stats.scanned,
        stats.created,
        stats.skipped,
        extra={"run_id": run_id, "duration": round(time.monotonic() - started, 3)},
    )

    return RealtorIngestResponse(
        run_id=run_id,
        search_location=query.search_location,
        city=query.city_slug,
        limit=query.limit,
        dry_run=query.dry_run,
        scanned=stats.scanned,
        created=stats.created,
        skipped=stats.skipped,
        errors=stats.errors,
        error_samples=stats.error_samples,
    )
