"""Pydantic schemas for ImportRun records and the operations API."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from vantera.schemas.base_schema import CamelModel, OkResponse

RUN_QUEUED = "queued"
RUN_RUNNING = "running"
RUN_SUCCEEDED = "succeeded"
RUN_FAILED = "failed"
TERMINAL_STATUSES = frozenset({RUN_SUCCEEDED, RUN_FAILED})

MAX_ERROR_SAMPLES = 8


class ErrorSample(CamelModel):
    step: str
    message: str


class ImportRunCreate(CamelModel):
    """Fields supplied when a run starts."""
    source: str
    scope: str
    region: Optional[str] = None
    market: Optional[str] = None
    params: Optional[Dict[str, Any]] = None
    status: str = Field(RUN_RUNNING, pattern="^(queued|running)$")
    message: Optional[str] = None


class ImportRunUpdate(CamelModel):
    """Patch merged into a run when it reaches its terminal state."""
    status: Optional[str] = Field(None, pattern="^(queued|running|succeeded|failed)$")
    finished_at: Optional[datetime] = None
    scanned: Optional[int] = None
    created: Optional[int] = None
    skipped: Optional[int] = None
    errors: Optional[int] = None
    warnings: Optional[int] = None
    error_samples: Optional[List[ErrorSample]] = None
    message: Optional[str] = None


class ImportRunRead(CamelModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: UUID
    source: str
    scope: str
    region: Optional[str] = None
    market: Optional[str] = None
    params: Optional[Dict[str, Any]] = None
    status: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    scanned: int = 0
    created: int = 0
    skipped: int = 0
    errors: int = 0
    warnings: int = 0
    error_samples: List[ErrorSample] = []
    message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ImportRunTrigger(CamelModel):
    """Optional body for POST /ops/imports."""
    source: str = "attom"
    scope: str = Field("cities", pattern="^(cities|properties)$")
    region: str = "US-FL"
    market: Optional[str] = "Miami"


class ImportRunListResponse(OkResponse):
    runs: List[ImportRunRead]


class ImportRunResponse(OkResponse):
    run: ImportRunRead
