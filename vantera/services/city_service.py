"""City presets, upserts and the city bootstrap run."""
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vantera.core.exceptions import UnknownCityError
from vantera.core.logging import get_logger, set_correlation_id
from vantera.models.city_model import City
from vantera.schemas.import_run_schema import ImportRunCreate
from vantera.schemas.ingest_schema import CityIngestResponse, CityPreview
from vantera.services.import_run_store import ImportRunStore, RunStats

logger = get_logger(__name__)


@dataclass(frozen=True)
class CityPreset:
    name: str
    slug: str
    country: str
    region: str
    timezone: str
    lat: float
    lng: float
    run_region: str


CITY_PRESETS = {
    "miami": CityPreset(
        name="Miami",
        slug="miami",
        country="United States",
        region="Florida",
        timezone="America/New_York",
        lat=25.7617,
        lng=-80.1918,
        run_region="US-FL",
    ),
    "marbella": CityPreset(
        name="Marbella",
        slug="marbella",
        country="Spain",
        region="Andalucia",
        timezone="Europe/Madrid",
        lat=36.5101,
        lng=-4.8824,
        run_region="ES-AN",
    ),
    "benahavis": CityPreset(
        name="Benahavís",
        slug="benahavis",
        country="Spain",
        region="Andalucia",
        timezone="Europe/Madrid",
        lat=36.5235,
        lng=-5.0465,
        run_region="ES-AN",
    ),
    "estepona": CityPreset(
        name="Estepona",
        slug="estepona",
        country="Spain",
        region="Andalucia",
        timezone="Europe/Madrid",
        lat=36.4276,
        lng=-5.1459,
        run_region="ES-AN",
    ),
}


COSTA_DEL_SOL_KEYS = frozenset({"marbella", "benahavis", "estepona", "costa-del-sol"})
COSTA_DEL_SOL_ATTACH = "marbella"


def resolve_preset(key: Optional[str]) -> CityPreset:
    preset = CITY_PRESETS.get((key or "").strip().lower())
    if preset is None:
        raise UnknownCityError("Unknown city", detail={"city": key, "known": sorted(CITY_PRESETS)})
    return preset


@dataclass(frozen=True)
class IngestTarget:
    """Where a property ingest searches and where its listings are stored.

    Costa del Sol keys search around their own centroid but attach every
    listing to Marbella, labelling the sub-area through `neighborhood`.
    """

    requested: str
    query: CityPreset
    attach: CityPreset
    neighborhood: Optional[str] = None

    @property
    def locked(self) -> bool:
        return self.requested in COSTA_DEL_SOL_KEYS


def resolve_target(key: Optional[str]) -> IngestTarget:
    requested = (key or "").strip().lower()
    query = resolve_preset(COSTA_DEL_SOL_ATTACH if requested == "costa-del-sol" else requested)
    if requested not in COSTA_DEL_SOL_KEYS:
        return IngestTarget(requested=requested, query=query, attach=query)

    attach = CITY_PRESETS[COSTA_DEL_SOL_ATTACH]
    neighborhood = query.name if query.slug != attach.slug else None
    return IngestTarget(requested=requested, query=query, attach=attach, neighborhood=neighborhood)


async def find_city(db: AsyncSession, slug: str) -> Optional[City]:
    result = await db.execute(select(City).where(City.slug == slug))
    return result.scalar_one_or_none()


async def upsert_city(db: AsyncSession, preset: CityPreset) -> City:
    """Insert or update the City keyed by slug. Flushes, does not commit."""
    city = await find_city(db, preset.slug)
    if city is None:
        city = City(slug=preset.slug)
        db.add(city)

    city.name = preset.name
    city.country = preset.country
    city.region = preset.region
    city.timezone = preset.timezone
    city.lat = preset.lat
    city.lng = preset.lng

    await db.flush()
    return city


def _unique_presets(slugs: Iterable[str]) -> List[CityPreset]:
    presets = {}
    for slug in slugs:
        preset = resolve_preset(slug)
        presets[preset.slug] = preset
    return list(presets.values())


async def bootstrap_cities(
    db: AsyncSession,
    store: ImportRunStore,
    slugs: Iterable[str],
    dry_run: bool,
) -> CityIngestResponse:
    """Upsert every preset in `slugs`, tracked as one ImportRun.

    Dry runs write nothing except the run itself; `created` then reports how
    many cities would have been upserted.
    """
    presets = _unique_presets(slugs)

    run = await store.create(
        ImportRunCreate(
            source="vantera",
            scope="cities",
            region="GLOBAL",
            market="Cities",
            params={"dryRun": dry_run, "count": len(presets), "cities": [p.slug for p in presets]},
            message="Starting city ingest",
        )
    )
    set_correlation_id(str(run.id))
    logger.info("City bootstrap started (%d presets, dry_run=%s)", len(presets), dry_run, extra={"run_id": str(run.id)})

    stats = RunStats(scanned=len(presets))

    if dry_run:
        stats.created = len(presets)
    else:
        for preset in presets:
            try:
                await upsert_city(db, preset)
                await db.commit()
                stats.created += 1
            except Exception as e:
                await db.rollback()
                logger.error("City upsert failed for %s: %s", preset.slug, str(e))
                stats.record_error("upsert:city", str(e))

    message = "City ingest finished with errors" if stats.errors else "City ingest complete"
    await store.update(run.id, stats.finish(message))
    logger.info(message, extra={"run_id": str(run.id), "status": "failed" if stats.errors else "succeeded"})

    return CityIngestResponse(
        ok=stats.errors == 0,
        run_id=str(run.id),
        dry_run=dry_run,
        scanned=stats.scanned,
        created=stats.created,
        skipped=stats.skipped,
        errors=stats.errors,
        error_samples=stats.error_samples,
        preview=[CityPreview(slug=p.slug, name=p.name, country=p.country) for p in presets],
    )
