"""API dependencies — database session, authentication, run store and provider clients.

Every ingestion and operations router is mounted with `RequireApiKey`;
/api/health and the placeholder page stay public.

Provider clients are built per request from settings so that tests can swap
them through `app.dependency_overrides`.
"""
import secrets
from typing import AsyncGenerator, Annotated, Iterator

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from vantera.config import settings
from vantera.database import async_session_factory
from vantera.services.attom_client import AttomClient
from vantera.services.import_run_store import ImportRunStore
from vantera.services.realtor_service import ApifyClient


# ---------------------------------------------------------------------------
# Database session
# ---------------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for request scope."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ---------------------------------------------------------------------------
# API Key authentication
# ---------------------------------------------------------------------------

_api_key_header = APIKeyHeader(
    name="X-API-Key",
    auto_error=False,  # custom 401 instead of FastAPI's 403
    description="Operations API key, configured via API_KEY",
)


async def verify_api_key(
    api_key: Annotated[str | None, Security(_api_key_header)],
) -> str:
    """Validate the X-API-Key header with a constant-time compare.

    Raises:
        HTTPException 401: key missing or wrong.
        HTTPException 500: API_KEY not configured on the server.
    """
    if not settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfigured (API_KEY missing).",
        )

    if not api_key or not secrets.compare_digest(api_key, settings.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key. Send the X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key


RequireApiKey = Depends(verify_api_key)


# ---------------------------------------------------------------------------
# Run store and provider clients
# ---------------------------------------------------------------------------

def get_import_run_store(request: Request) -> ImportRunStore:
    return request.app.state.import_runs


def get_attom_client() -> Iterator[AttomClient]:
    client = AttomClient(
        api_key=settings.attom_api_key,
        base_url=settings.attom_base_url,
        timeout=settings.request_timeout,
    )
    try:
        yield client
    finally:
        client.close()


def get_apify_client() -> Iterator[ApifyClient]:
    client = ApifyClient(
        token=settings.apify_token,
        actor_id=settings.apify_realtor_actor_id,
        base_url=settings.apify_base_url,
        # the actor runs synchronously and can take minutes
        timeout=max(settings.request_timeout, 300),
    )
    try:
        yield client
    finally:
        client.close()
