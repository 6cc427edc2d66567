"""Media sub-ingestion — dedup-and-append photos onto a listing.

Shared by the ATTOM and Realtor pipelines and the manual operations endpoint;
each provider only supplies its own photo normalizer (see mapper_service).
Existing ListingMedia rows are never updated or removed.
"""
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vantera.core.logging import get_logger
from vantera.models.listing_model import Listing
from vantera.models.media_model import ListingMedia
from vantera.services.mapper_service import PhotoInput

logger = get_logger(__name__)

DEFAULT_ALT = "Property image"


async def ingest_listing_media(
    db: AsyncSession,
    listing: Listing,
    photos: Iterable[PhotoInput],
    source: str,
) -> int:
    """Insert photos not yet attached to `listing`. Returns the number inserted.

    The (listing_id, url) existence check is not atomic; concurrent calls for
    the same listing can still insert the same URL twice.
    """
    inserted = 0
    seen = set()

    for photo in photos:
        url = (photo.url or "").strip()
        if not url or url in seen:
            continue
        seen.add(url)

        result = await db.execute(
            select(ListingMedia.id).where(
                ListingMedia.listing_id == listing.id,
                ListingMedia.url == url,
            )
        )
        if result.first() is not None:
            continue

        media = ListingMedia(
            listing_id=listing.id,
            url=url,
            alt=(photo.caption or DEFAULT_ALT).strip(),
            width=photo.width,
            height=photo.height,
            source=source,
        )
        db.add(media)
        await db.flush()

        if listing.cover_media_id is None:
            listing.cover_media_id = media.id

        inserted += 1

    if inserted:
        logger.debug("Attached %d %s media to listing %s", inserted, source, listing.id)
    return inserted
