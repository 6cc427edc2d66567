"""Pydantic schemas for ingestion summaries and media payloads."""
from typing import List, Optional

from pydantic import Field

from vantera.schemas.base_schema import CamelModel, OkResponse
from vantera.schemas.import_run_schema import ErrorSample


class PropertyIngestResponse(OkResponse):
    run_id: Optional[str] = None
    city: str
    query_city: Optional[str] = None
    attach_city: Optional[str] = None
    radius: float
    limit: int
    dry_run: bool
    min_avm: Optional[float] = None
    scanned: int = 0
    created: int = 0
    skipped: int = 0
    errors: int = 0


class CityPreview(CamelModel):
    slug: str
    name: str
    country: str


class CityIngestResponse(OkResponse):
    run_id: str
    dry_run: bool
    scanned: int = 0
    created: int = 0
    skipped: int = 0
    errors: int = 0
    error_samples: List[ErrorSample] = []
    preview: List[CityPreview] = []


class RealtorIngestResponse(OkResponse):
    run_id: Optional[str] = None
    search_location: str
    city: str
    limit: int
    dry_run: bool
    scanned: int = 0
    created: int = 0
    skipped: int = 0
    errors: int = 0
    error_samples: List[ErrorSample] = []


class RealtorHealthResponse(OkResponse):
    provider: str = "realtor(apify)"
    has_token: bool
    actor_id: str


class PhotoPayload(CamelModel):
    url: str
    caption: Optional[str] = None
    width: Optional[int] = Field(None, ge=0)
    height: Optional[int] = Field(None, ge=0)


class MediaIngestRequest(CamelModel):
    source: str = Field("MANUAL", max_length=30)
    photos: List[PhotoPayload] = []


class MediaIngestResponse(OkResponse):
    listing_id: str
    inserted: int


class AssetUploadResponse(OkResponse):
    url: str
    pathname: str
    content_type: str
    size: int
