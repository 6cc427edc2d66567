"""Tests for the operations endpoints — run log, manual media, asset upload."""
import uuid

import pytest
from httpx import AsyncClient

from vantera.config import settings
from vantera.models.listing_model import Listing
from vantera.schemas.import_run_schema import ImportRunCreate
from vantera.services.city_service import CITY_PRESETS, upsert_city
from tests.conftest import make_media_payload

IMPORTS_URL = "/api/v1/ops/imports"


@pytest.fixture(autouse=True)
def no_completion_delay(monkeypatch):
    monkeypatch.setattr(settings, "test_run_completion_delay", 0)


@pytest.mark.asyncio
async def test_list_runs_empty(client: AsyncClient):
    resp = await client.get(IMPORTS_URL)
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "runs": []}


@pytest.mark.asyncio
async def test_test_run_defaults_and_completion(client: AsyncClient):
    resp = await client.post(IMPORTS_URL)

    assert resp.status_code == 200
    run = resp.json()["run"]
    assert run["status"] == "running"
    assert (run["source"], run["scope"], run["region"], run["market"]) == ("attom", "cities", "US-FL", "Miami")
    assert run["message"] == "Test run started"
    assert run["finishedAt"] is None

    # background task has run by the time the ASGI call returns
    polled = (await client.get(f"{IMPORTS_URL}/{run['id']}")).json()["run"]
    assert polled["status"] == "succeeded"
    assert (polled["scanned"], polled["created"], polled["warnings"]) == (120, 118, 2)
    assert polled["message"] == "Test run completed"
    assert polled["finishedAt"] is not None


@pytest.mark.asyncio
async def test_test_run_with_body(client: AsyncClient):
    resp = await client.post(IMPORTS_URL, json={"source": "realtor", "scope": "properties", "market": "Marbella"})

    run = resp.json()["run"]
    assert (run["source"], run["scope"], run["market"]) == ("realtor", "properties", "Marbella")
    assert run["region"] == "US-FL"


@pytest.mark.asyncio
async def test_test_run_rejects_bad_scope(client: AsyncClient):
    resp = await client.post(IMPORTS_URL, json={"scope": "everything"})

    assert resp.status_code == 400
    body = resp.json()
    assert body["ok"] is False
    assert body["error"].startswith("Invalid scope")


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [b"{not json", b"[1, 2]", b"null"])
async def test_test_run_unreadable_body_uses_defaults(client: AsyncClient, content):
    resp = await client.post(IMPORTS_URL, content=content, headers={"content-type": "application/json"})

    assert resp.status_code == 200
    run = resp.json()["run"]
    assert (run["source"], run["scope"], run["region"], run["market"]) == ("attom", "cities", "US-FL", "Miami")


@pytest.mark.asyncio
async def test_list_most_recent_first(client: AsyncClient, run_store):
    ids = []
    for market in ("A", "B", "C"):
        ids.append(str((await run_store.create(ImportRunCreate(source="attom", scope="cities", market=market))).id))

    runs = (await client.get(IMPORTS_URL)).json()["runs"]
    assert [r["id"] for r in runs] == list(reversed(ids))

    runs = (await client.get(IMPORTS_URL, params={"limit": 2})).json()["runs"]
    assert [r["market"] for r in runs] == ["C", "B"]


@pytest.mark.asyncio
async def test_get_missing_run(client: AsyncClient):
    resp = await client.get(f"{IMPORTS_URL}/{uuid.uuid4()}")
    assert resp.status_code == 404
    assert resp.json()["ok"] is False


@pytest.mark.asyncio
async def test_ops_requires_api_key(client: AsyncClient):
    resp = await client.get(IMPORTS_URL, headers={"X-API-Key": "nope"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_server_without_api_key(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "api_key", "")
    resp = await client.get(IMPORTS_URL)
    assert resp.status_code == 500


# ---------------------------------------------------------------------------
# Manual media
# ---------------------------------------------------------------------------

async def make_listing(db) -> Listing:
    city = await upsert_city(db, CITY_PRESETS["miami"])
    listing = Listing(slug="miami-manual", city_id=city.id, title="Manual listing")
    db.add(listing)
    await db.commit()
    return listing


@pytest.mark.asyncio
async def test_attach_media(client: AsyncClient, db_session):
    listing = await make_listing(db_session)
    url = f"/api/v1/ops/listings/{listing.id}/media"

    resp = await client.post(url, json=make_media_payload("https://img/1.jpg", "https://img/2.jpg"))
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "listingId": str(listing.id), "inserted": 2}

    resp = await client.post(url, json=make_media_payload("https://img/1.jpg"))
    assert resp.json()["inserted"] == 0

    await db_session.refresh(listing)
    assert listing.cover_media_id is not None


@pytest.mark.asyncio
async def test_attach_media_unknown_listing(client: AsyncClient, db_session):
    resp = await client.post(
        f"/api/v1/ops/listings/{uuid.uuid4()}/media",
        json=make_media_payload("https://img/1.jpg"),
    )
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Asset upload
# ---------------------------------------------------------------------------

UPLOAD_URL = "/api/v1/ops/assets/upload"


@pytest.mark.asyncio
async def test_upload_asset(client: AsyncClient, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "media_root", str(tmp_path))

    resp = await client.post(
        UPLOAD_URL,
        params={"filename": "/brand/logo v2.png"},
        content=b"\x89PNG",
        headers={"content-type": "image/png"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["pathname"] == "brand/logo-v2.png"
    assert body["url"] == "/media/brand/logo-v2.png"
    assert body["contentType"] == "image/png"
    assert body["size"] == 4
    assert (tmp_path / "brand" / "logo-v2.png").read_bytes() == b"\x89PNG"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "filename, status",
    [
        (None, 400),
        ("brand/../../etc/passwd", 400),
        ("uploads/evil.png", 403),
        ("images/other/x.png", 403),
    ],
)
async def test_upload_rejected(client: AsyncClient, tmp_path, monkeypatch, filename, status):
    monkeypatch.setattr(settings, "media_root", str(tmp_path))
    params = {"filename": filename} if filename else {}

    resp = await client.post(UPLOAD_URL, params=params, content=b"data")

    assert resp.status_code == status
    assert resp.json()["ok"] is False
    assert not any(tmp_path.iterdir())
