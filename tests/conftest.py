"""Test fixtures — async test client, test database, fake provider sessions, factories."""
import json
import os
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Union

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("API_KEY", "test-api-key")
os.environ.setdefault("IMPORT_RUN_STORE", "memory")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from vantera.database import Base
from vantera.api.deps import get_apify_client, get_attom_client, get_db, get_import_run_store
from vantera.main import app
from vantera.services.attom_client import AttomClient
from vantera.services.import_run_store import InMemoryImportRunStore
from vantera.services.realtor_service import ApifyClient


TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"
TEST_API_KEY = os.environ["API_KEY"]
ATTOM_BASE_URL = "https://attom.test/propertyapi/v1.0.0"
APIFY_BASE_URL = "https://apify.test/v2"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
test_session_factory = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Fake requests session
# ---------------------------------------------------------------------------

class FakeResponse:
    """The subset of requests.Response the provider clients read."""

    def __init__(
        self,
        status_code: int = 200,
        json_body: Any = None,
        text: Optional[str] = None,
        reason: str = "",
        url: str = "",
    ):
        self.status_code = status_code
        self._json = json_body
        self.text = text if text is not None else ("" if json_body is None else json.dumps(json_body))
        self.reason = reason or ("OK" if status_code < 400 else "Error")
        self.url = url

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


Route = Union[FakeResponse, Exception, Callable[[Dict[str, Any]], FakeResponse]]


class FakeSession:
    """Routes requests by URL suffix; records every call."""

    def __init__(self, routes: Optional[Dict[str, Route]] = None):
        self.routes = routes or {}
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def _dispatch(self, method: str, url: str, params=None, **kwargs) -> FakeResponse:
        self.calls.append({"method": method, "url": url, "params": dict(params or {}), **kwargs})
        for suffix, route in self.routes.items():
            if url.endswith(suffix):
                if isinstance(route, Exception):
                    raise route
                response = route(dict(params or {})) if callable(route) else route
                response.url = response.url or url
                return response
        return FakeResponse(404, text="not routed", url=url)

    def get(self, url: str, params=None, **kwargs) -> FakeResponse:
        return self._dispatch("GET", url, params, **kwargs)

    def post(self, url: str, params=None, **kwargs) -> FakeResponse:
        return self._dispatch("POST", url, params, **kwargs)

    def calls_to(self, suffix: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["url"].endswith(suffix)]

    def close(self) -> None:
        self.closed = True


def make_attom_client(routes: Optional[Dict[str, Route]] = None, api_key: str = "attom-test-key") -> AttomClient:
    return AttomClient(api_key=api_key, base_url=ATTOM_BASE_URL, timeout=5, session=FakeSession(routes))


def make_apify_client(items: Any = None, token: str = "apify-test-token", response: Optional[Route] = None) -> ApifyClient:
    route = response if response is not None else FakeResponse(200, json_body=items if items is not None else [])
    return ApifyClient(
        token=token,
        base_url=APIFY_BASE_URL,
        timeout=5,
        session=FakeSession({"/run-sync-get-dataset-items": route}),
    )


# ---------------------------------------------------------------------------
# Database and HTTP client
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables and yield a test database session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session_factory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def run_store() -> InMemoryImportRunStore:
    return InMemoryImportRunStore()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, run_store: InMemoryImportRunStore) -> AsyncGenerator[AsyncClient, None]:
    """Yield an HTTP test client with the test DB, a fresh run store and unconfigured providers."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_import_run_store] = lambda: run_store
    app.dependency_overrides[get_attom_client] = lambda: make_attom_client(api_key="")
    app.dependency_overrides[get_apify_client] = lambda: make_apify_client(token="")

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-API-Key": TEST_API_KEY},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def use_attom(client: AttomClient) -> AttomClient:
    app.dependency_overrides[get_attom_client] = lambda: client
    return client


def use_apify(client: ApifyClient) -> ApifyClient:
    app.dependency_overrides[get_apify_client] = lambda: client
    return client


# ---------------------------------------------------------------------------
# Payload factories
# ---------------------------------------------------------------------------

def make_attom_stub(attom_id: Optional[int] = 1001, line1: Optional[str] = "100 Brickell Ave", line2: Optional[str] = "Miami, FL 33131", **overrides) -> dict:
    """A /property/address result item."""
    stub = {
        "identifier": {"attomId": attom_id} if attom_id is not None else {},
        "address": {"line1": line1, "line2": line2},
        "location": {"latitude": "25.7650", "longitude": "-80.1900"},
    }
    stub.update(overrides)
    return stub


def make_attom_detail(attom_id: int = 1001, **overrides) -> dict:
    """A /property/detail property item."""
    detail = {
        "identifier": {"attomId": attom_id, "obPropId": 9_000_000 + attom_id},
        "address": {"line1": "100 Brickell Ave", "line2": "Miami, FL 33131", "locality": "Brickell"},
        "summary": {"proptype": "SFR"},
        "building": {"rooms": {"beds": 4, "bathstotal": 3.5}, "size": {"universalsize": 3200}},
        "lot": {"lotsize1": 0.25},
        "avm": {"amount": {"value": 2_450_000}},
    }
    detail.update(overrides)
    return detail


def make_attom_media(*urls: str) -> dict:
    return {
        "status": {"code": 0, "msg": "SuccessWithResult"},
        "property": [{"media": {"photos": [{"url": u, "caption": "Front"} for u in urls]}}],
    }


def attom_payload(*items: dict) -> dict:
    return {"status": {"code": 0, "msg": "SuccessWithResult", "total": len(items)}, "property": list(items)}


def make_attom_avm(value: Optional[float] = 2_600_000) -> dict:
    """An /avm/detail payload."""
    return attom_payload({"avm": {"amount": {"value": value}}} if value is not None else {})


def attom_routes(
    stubs: List[dict],
    media: Optional[Route] = None,
    avm: Optional[Route] = None,
) -> Dict[str, Route]:
    """ATTOM routes serving `stubs` from address search, a detail per attomid and an AVM."""

    def detail(params: Dict[str, Any]) -> FakeResponse:
        attom_id = int(params.get("attomid") or 1)
        return FakeResponse(200, json_body=attom_payload(make_attom_detail(attom_id)))

    return {
        "/property/address": FakeResponse(200, json_body=attom_payload(*stubs)),
        "/property/detail": detail,
        "/property/detail/media": media if media is not None else FakeResponse(200, json_body=make_attom_media()),
        "/avm/detail": avm if avm is not None else FakeResponse(200, json_body=make_attom_avm()),
    }


def make_realtor_item(property_id: Optional[str] = "M123", **overrides) -> dict:
    """An item as returned by the Realtor.com Apify actor."""
    item = {
        "property_id": property_id,
        "permalink": f"https://www.realtor.com/realestateandhomes-detail/{property_id or 'x'}",
        "list_price": 3_500_000,
        "beds": 5,
        "baths": 4.5,
        "sqft": 4800,
        "prop_type": "single_family",
        "address": {
            "line": "200 Ocean Dr",
            "city": "Miami Beach",
            "state": "FL",
            "postal_code": "33139",
            "lat": 25.77,
            "lon": -80.13,
        },
        "photos": [{"href": "https://img.test/a.jpg"}, {"href": "https://img.test/a.jpg"}, {"href": "https://img.test/b.jpg"}],
    }
    item.update(overrides)
    return item


def make_media_payload(*urls: str, **overrides) -> dict:
    payload = {"source": "manual", "photos": [{"url": u} for u in urls]}
    payload.update(overrides)
    return payload
