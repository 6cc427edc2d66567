"""ATTOM ingestion — address search + property detail + AVM + media into listings.

Flow for one run:
1. Fail fast when the ATTOM credential is missing (before any write)
2. Open an ImportRun
3. Upsert the attach City (read-only lookup on dry runs)
4. Address search around the query centroid, truncated to `limit`
5. Per candidate, sequentially:
   - missing address component             -> skipped
   - stub fails a filter (type, beds)      -> archived if stored, skipped
   - same attomId, or same address in the
     attach city (case-insensitive)         -> skipped
   - fetch detail, re-check the filters on the merged record
   - price from /avm/detail (confidence 85), else the detail's own value (55)
   - price below `min_avm`                 -> archived if stored, skipped
   - create Listing, attach media, commit
6. Close the run as succeeded, or as failed on a provider/storage error

Filtered candidates that already exist as listings are archived
(`ARCHIVED` / `PRIVATE`) instead of deleted. Nothing is archived on dry runs.

Each listing is committed on its own: a failure half-way keeps what was
already imported. Blocking HTTP calls go through `asyncio.to_thread()`.

The check-then-create dedup is not atomic. Two concurrent runs for the same
city can both pass the existence check and insert the same address; nothing
here prevents that.
"""
import asyncio
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Set, Tuple

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vantera.core.exceptions import ProviderError
from vantera.core.logging import get_logger, set_correlation_id
from vantera.models.city_model import City
from vantera.models.listing_model import Listing
from vantera.schemas.import_run_schema import ImportRunCreate
from vantera.schemas.ingest_schema import PropertyIngestResponse
from vantera.services.attom_client import AttomClient
from vantera.services.city_service import IngestTarget, find_city, upsert_city
from vantera.services.import_run_store import ImportRunStore, RunStats
from vantera.services.mapper_service import (
    AddressParts,
    PropertyDetails,
    compute_data_completeness,
    extract_address,
    extract_avm_value,
    extract_details,
    looks_residential,
    normalize_attom_photos,
    slugify,
    sqft_to_m2,
)
from vantera.services.media_service import ingest_listing_media

logger = get_logger(__name__)

DEFAULT_RADIUS = 0.5
DEFAULT_LIMIT = 25
MAX_LIMIT = 100
DEFAULT_MIN_AVM = 2_000_000

AVM_CONFIDENCE = 85
ASSESSED_CONFIDENCE = 55

SOURCE = "attom"
MEDIA_SOURCE = "ATTOM"


@dataclass(frozen=True)
class PropertyFilters:
    """Luxury gates for one run. `types` are upper-cased substrings of the ATTOM type."""

    min_avm: float = DEFAULT_MIN_AVM
    min_beds: Optional[int] = None
    types: Optional[List[str]] = None


def parse_types(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    items = [s.strip().upper() for s in value.split(",") if s.strip()]
    return items or None


def clamp_limit(limit: Optional[int], default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    if limit is None:
        return default
    return max(1, min(int(limit), maximum))


def build_listing_slug(city_slug: str, address: str, source_id: Optional[str]) -> str:
    suffix = source_id or str(int(time.time() * 1000))
    return slugify(f"{city_slug}-{address}-{suffix}")


def filter_reason(details: PropertyDetails, filters: PropertyFilters, final: bool) -> Optional[str]:
    """Why a property is filtered out, or None if it passes.

    On the search stub only values that are present can fail a filter. The
    final check, after the detail fetch, also fails on a missing bed count or
    type when the filter asks for one.
    """
    if not looks_residential(details.property_type):
        return "residential"

    beds = details.bedrooms
    if filters.min_beds is not None and (beds is not None or final):
        if beds is None or beds < filters.min_beds:
            return "beds"

    property_type = (details.property_type or "").upper()
    if filters.types and (property_type or final):
        if not any(allowed in property_type for allowed in filters.types):
            return "type"
    return None


def pick_price(avm_value: Optional[float], details: PropertyDetails) -> Tuple[Optional[float], Optional[int]]:
    """(price, confidence): the AVM estimate first, then the detail's own value."""
    if avm_value is not None:
        return avm_value, AVM_CONFIDENCE
    if details.value is not None:
        return details.value, ASSESSED_CONFIDENCE
    return None, None


def _dedup_keys(address: str, source_id: Optional[str]) -> Set[str]:
    keys = {f"address:{address.lower()}"}
    if source_id:
        keys.add(f"id:{source_id}")
    return keys


async def _already_stored(
    db: AsyncSession,
    city: Optional[City],
    address: Optional[str],
    source_id: Optional[str],
) -> bool:
    clauses = []
    if source_id:
        clauses.append(and_(Listing.source == SOURCE, Listing.source_id == source_id))
    if city is not None and address:
        clauses.append(and_(Listing.city_id == city.id, func.lower(Listing.address) == address.lower()))
    if not clauses:
        return False
    result = await db.execute(select(Listing.id).where(or_(*clauses)).limit(1))
    return result.first() is not None


async def _archive(db: AsyncSession, source_id: Optional[str], dry_run: bool) -> None:
    """Hide a stored listing that no longer passes the filters."""
    if not source_id or dry_run:
        return
    await db.execute(
        update(Listing)
        .where(Listing.source == SOURCE, Listing.source_id == source_id)
        .values(status="ARCHIVED", visibility="PRIVATE")
    )
    await db.commit()


def _build_listing(
    city: City,
    target: IngestTarget,
    parts: AddressParts,
    details: PropertyDetails,
    slug: str,
    price: Optional[float],
    confidence: Optional[int],
    min_avm: float,
) -> Listing:
    address = parts.combined
    property_type = details.property_type
    neighborhood = target.neighborhood or details.neighborhood
    description = "\n".join(
        line
        for line in (
            "ATTOM import",
            f"Query: {target.query.name}",
            f"Attach: {target.attach.name}",
            f"Sub-area: {neighborhood}" if neighborhood else None,
            f"ATTOM ID: {details.best_id}" if details.best_id else None,
            address,
            f"Min gate: {min_avm:,.0f} (AVM currency assumed USD)",
        )
        if line
    )

    return Listing(
        slug=slug,
        city_id=city.id,
        source=SOURCE,
        source_id=details.best_id,
        status="LIVE",
        visibility="PUBLIC",
        verification="SELF_REPORTED",
        title=f"{target.attach.name} · {property_type or 'Property'}",
        headline="Imported from ATTOM - verification and media layers come next.",
        description=description,
        neighborhood=neighborhood,
        address=address,
        address_hidden=True,
        lat=parts.lat,
        lng=parts.lng,
        property_type=property_type,
        bedrooms=details.bedrooms,
        bathrooms=details.bathrooms,
        built_sqft=details.built_sqft,
        plot_sqft=details.lot_sqft,
        built_area=sqft_to_m2(details.built_sqft),
        plot_area=sqft_to_m2(details.lot_sqft),
        price=Decimal(str(price)) if price is not None else None,
        currency="USD",
        price_confidence=confidence,
        data_completeness=compute_data_completeness(
            address=address,
            lat=parts.lat,
            lng=parts.lng,
            property_type=property_type,
            beds=details.bedrooms,
            baths=details.bathrooms,
            built_sqft=details.built_sqft,
            price=price,
        ),
    )


async def _lookup_avm(client: AttomClient, parts: AddressParts, stats: RunStats) -> Optional[float]:
    try:
        record = await asyncio.to_thread(client.avm_detail, parts.address1, parts.address2)
    except ProviderError as e:
        logger.warning("ATTOM AVM lookup failed for %s: %s", parts.combined, e.message)
        stats.record_warning("attom:/avm/detail", e.message)
        return None
    return extract_avm_value(record)


async def _attach_media(db: AsyncSession, client: AttomClient, listing: Listing, stats: RunStats) -> None:
    if not listing.source_id:
        return
    try:
        payload = await asyncio.to_thread(client.property_media, listing.source_id)
    except ProviderError as e:
        logger.warning("ATTOM media fetch failed for %s: %s", listing.source_id, e.message)
        stats.record_warning("attom:/property/detail/media", e.message)
        return
    await ingest_listing_media(db, listing, normalize_attom_photos(payload), MEDIA_SOURCE)


async def run_property_ingest(
    db: AsyncSession,
    client: AttomClient,
    store: ImportRunStore,
    target: IngestTarget,
    radius: float = DEFAULT_RADIUS,
    limit: int = DEFAULT_LIMIT,
    dry_run: bool = False,
    filters: Optional[PropertyFilters] = None,
) -> PropertyIngestResponse:
    """Run one ATTOM property ingest for `target`.

    Dry runs write no City, Listing or ListingMedia rows and archive nothing.
    `created` still counts the listings that would have been created,
    deduplicated against stored listings and against earlier candidates of
    the same run.

    Raises:
        ConfigurationError: ATTOM credential missing (no run is opened).
        ProviderError: hard provider failure; the run is closed as failed.
    """
    client.ensure_configured()
    limit = clamp_limit(limit)
    filters = filters or PropertyFilters()
    query, attach = target.query, target.attach

    run = await store.create(
        ImportRunCreate(
            source=SOURCE,
            scope="properties",
            region=attach.run_region,
            market=attach.name,
            params={
                "city": target.requested,
                "queryCity": query.slug,
                "attachCity": attach.slug,
                "radius": radius,
                "limit": limit,
                "dryRun": dry_run,
                "minAvm": filters.min_avm,
                "minBeds": filters.min_beds,
                "types": filters.types,
                "costaDelSolLocked": target.locked,
                "neighborhoodOverride": target.neighborhood,
            },
            message="Starting property ingest",
        )
    )
    run_id = str(run.id)
    set_correlation_id(run_id)
    started = time.monotonic()
    logger.info("ATTOM ingest started for %s", query.slug, extra={"run_id": run_id, "city": attach.slug})

    stats = RunStats()
    step = "upsert:city"

    try:
        if dry_run:
            city = await find_city(db, attach.slug)
        else:
            city = await upsert_city(db, attach)
            await db.commit()

        step = "attom:/property/address"
        stubs = await asyncio.to_thread(client.address_search, query.lat, query.lng, radius, limit)
        stubs = stubs[:limit]
        stats.scanned = len(stubs)

        seen: Set[str] = set()
        for stub in stubs:
            parts = extract_address(stub)
            if not parts.complete:
                stats.skipped += 1
                continue

            address = parts.combined
            stub_details = extract_details(None, stub)
            if filter_reason(stub_details, filters, final=False):
                step = "archive:listing"
                await _archive(db, stub_details.best_id, dry_run)
                stats.skipped += 1
                continue

            step = "dedup"
            keys = _dedup_keys(address, stub_details.best_id)
            if keys & seen or await _already_stored(db, city, address, stub_details.best_id):
                stats.skipped += 1
                continue
            seen |= keys

            step = "attom:/property/detail"
            detail = await asyncio.to_thread(
                client.property_detail,
                stub_details.attom_id,
                parts.address1,
                parts.address2,
            )
            details = extract_details(detail, stub)

            step = "dedup"
            if details.best_id and details.best_id != stub_details.best_id:
                if f"id:{details.best_id}" in seen or await _already_stored(db, None, None, details.best_id):
                    stats.skipped += 1
                    continue
                seen.add(f"id:{details.best_id}")

            if filter_reason(details, filters, final=True):
                step = "archive:listing"
                await _archive(db, details.best_id, dry_run)
                stats.skipped += 1
                continue

            step = "attom:/avm/detail"
            price, confidence = pick_price(await _lookup_avm(client, parts, stats), details)
            if price is None or price < filters.min_avm:
                step = "archive:listing"
                await _archive(db, details.best_id, dry_run)
                stats.skipped += 1
                continue

            slug = build_listing_slug(attach.slug, address, details.best_id)

            if dry_run:
                stats.created += 1
                continue

            step = "create:listing"
            listing = _build_listing(city, target, parts, details, slug, price, confidence, filters.min_avm)
            db.add(listing)
            await db.flush()

            step = "attom:/property/detail/media"
            await _attach_media(db, client, listing, stats)

            await db.commit()
            stats.created += 1

    except Exception as e:
        await db.rollback()
        message = e.message if isinstance(e, ProviderError) else str(e)
        logger.error("ATTOM ingest failed at %s: %s", step, message, extra={"run_id": run_id})
        stats.record_error(step, message)
        await store.update(run_id, stats.finish("Property ingest failed", failed=True))
        if isinstance(e, ProviderError):
            e.detail = {**(e.detail or {}), "runId": run_id}
        raise

    await store.update(run_id, stats.finish("Property ingest complete", failed=False))
    logger.info(
        "ATTOM ingest done: scanned=%d created=%d skipped=%d",
        stats.scanned,
        stats.created,
        stats.skipped,
        extra={"run_id": run_id, "city": attach.slug, "duration": round(time.monotonic() - started, 3)},
    )

    return PropertyIngestResponse(
        run_id=run_id,
        city=target.requested,
        query_city=query.slug,
        attach_city=attach.slug,
        radius=radius,
        limit=limit,
        dry_run=dry_run,
        min_avm=filters.min_avm,
        scanned=stats.scanned,
        created=stats.created,
        skipped=stats.skipped,
        errors=stats.errors,
    )
