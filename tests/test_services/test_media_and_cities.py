"""Tests for media sub-ingestion and city presets/bootstrap."""
import pytest
from sqlalchemy import func, select

from vantera.core.exceptions import UnknownCityError
from vantera.models.city_model import City
from vantera.models.listing_model import Listing
from vantera.models.media_model import ListingMedia
from vantera.services.city_service import (
    CITY_PRESETS,
    bootstrap_cities,
    find_city,
    resolve_preset,
    resolve_target,
    upsert_city,
)
from vantera.services.import_run_store import InMemoryImportRunStore
from vantera.services.mapper_service import PhotoInput
from vantera.services.media_service import ingest_listing_media


async def make_listing(db, slug="miami-test-listing") -> Listing:
    city = await upsert_city(db, CITY_PRESETS["miami"])
    listing = Listing(slug=slug, city_id=city.id, source="attom", title="Miami · SFR")
    db.add(listing)
    await db.flush()
    return listing


async def media_count(db, listing_id) -> int:
    result = await db.execute(select(func.count()).select_from(ListingMedia).where(ListingMedia.listing_id == listing_id))
    return result.scalar_one()


class TestMedia:
    @pytest.mark.asyncio
    async def test_inserts_and_sets_cover(self, db_session):
        listing = await make_listing(db_session)
        photos = [PhotoInput(url="https://img/1.jpg", caption="Pool"), PhotoInput(url="https://img/2.jpg")]

        inserted = await ingest_listing_media(db_session, listing, photos, "ATTOM")
        await db_session.commit()

        assert inserted == 2
        first = (await db_session.execute(select(ListingMedia).where(ListingMedia.url == "https://img/1.jpg"))).scalar_one()
        assert listing.cover_media_id == first.id
        assert first.alt == "Pool"
        assert first.source == "ATTOM"

    @pytest.mark.asyncio
    async def test_idempotent_per_listing_url(self, db_session):
        listing = await make_listing(db_session)
        photos = [PhotoInput(url="https://img/1.jpg")]

        assert await ingest_listing_media(db_session, listing, photos, "ATTOM") == 1
        assert await ingest_listing_media(db_session, listing, photos, "ATTOM") == 0
        assert await media_count(db_session, listing.id) == 1

    @pytest.mark.asyncio
    async def test_skips_blank_and_repeated_urls(self, db_session):
        listing = await make_listing(db_session)
        photos = [PhotoInput(url=" "), PhotoInput(url="u"), PhotoInput(url="u "), PhotoInput(url="")]

        assert await ingest_listing_media(db_session, listing, photos, "MANUAL") == 1

    @pytest.mark.asyncio
    async def test_existing_cover_kept(self, db_session):
        listing = await make_listing(db_session)
        await ingest_listing_media(db_session, listing, [PhotoInput(url="a")], "MANUAL")
        cover = listing.cover_media_id

        await ingest_listing_media(db_session, listing, [PhotoInput(url="b")], "MANUAL")

        assert listing.cover_media_id == cover
        assert await media_count(db_session, listing.id) == 2

    @pytest.mark.asyncio
    async def test_same_url_on_other_listing(self, db_session):
        a = await make_listing(db_session, "a")
        b = await make_listing(db_session, "b")

        assert await ingest_listing_media(db_session, a, [PhotoInput(url="shared")], "MANUAL") == 1
        assert await ingest_listing_media(db_session, b, [PhotoInput(url="shared")], "MANUAL") == 1


class TestCities:
    def test_resolve_preset_case_insensitive(self):
        assert resolve_preset(" Miami ").slug == "miami"
        assert resolve_preset("MARBELLA").country == "Spain"

    @pytest.mark.parametrize("key", ["berlin", "", None])
    def test_unknown_city(self, key):
        with pytest.raises(UnknownCityError) as exc_info:
            resolve_preset(key)
        assert exc_info.value.message == "Unknown city"
        assert exc_info.value.status_code == 400

    def test_target_outside_costa_del_sol(self):
        target = resolve_target("Miami")
        assert target.query is target.attach
        assert target.neighborhood is None
        assert target.locked is False

    @pytest.mark.parametrize(
        "key, query_slug, neighborhood",
        [
            ("marbella", "marbella", None),
            ("benahavis", "benahavis", "Benahavís"),
            ("ESTEPONA", "estepona", "Estepona"),
            ("costa-del-sol", "marbella", None),
        ],
    )
    def test_costa_del_sol_attaches_to_marbella(self, key, query_slug, neighborhood):
        target = resolve_target(key)
        assert target.query.slug == query_slug
        assert target.attach.slug == "marbella"
        assert target.neighborhood == neighborhood
        assert target.locked is True

    def test_target_unknown_city(self):
        with pytest.raises(UnknownCityError):
            resolve_target("malaga")

    @pytest.mark.asyncio
    async def test_upsert_is_keyed_by_slug(self, db_session):
        first = await upsert_city(db_session, CITY_PRESETS["miami"])
        second = await upsert_city(db_session, CITY_PRESETS["miami"])
        await db_session.commit()

        assert first.id == second.id
        count = (await db_session.execute(select(func.count()).select_from(City))).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_bootstrap_creates_cities_and_run(self, db_session):
        store = InMemoryImportRunStore()

        result = await bootstrap_cities(db_session, store, ["miami", "marbella", "miami"], dry_run=False)

        assert result.ok is True
        assert result.scanned == 2
        assert result.created == 2
        assert [p.slug for p in result.preview] == ["miami", "marbella"]
        assert await find_city(db_session, "marbella") is not None

        run = await store.get(result.run_id)
        assert run.status == "succeeded"
        assert (run.source, run.scope, run.region, run.market) == ("vantera", "cities", "GLOBAL", "Cities")

    @pytest.mark.asyncio
    async def test_bootstrap_dry_run_writes_nothing(self, db_session):
        store = InMemoryImportRunStore()

        result = await bootstrap_cities(db_session, store, ["miami"], dry_run=True)

        assert result.created == 1
        assert result.dry_run is True
        assert await find_city(db_session, "miami") is None
        assert (await store.get(result.run_id)).status == "succeeded"

    @pytest.mark.asyncio
    async def test_bootstrap_unknown_slug_rejected_before_run(self, db_session):
        store = InMemoryImportRunStore()
        with pytest.raises(UnknownCityError):
            await bootstrap_cities(db_session, store, ["miami", "atlantis"], dry_run=False)
        assert await store.list() == []
