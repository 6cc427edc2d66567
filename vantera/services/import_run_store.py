"""Run-log stores — append-only record of ingestion runs.

Two implementations share one contract:

- InMemoryImportRunStore: process-lifetime only, resets on restart.
- SqlImportRunStore: persisted in the `import_runs` table, opening its own
  sessions from an injected session factory so that it can be used after the
  request session is gone (background completion).

Contract:
    create(run)        -> ImportRunRead          fresh id, started now
    update(id, patch)  -> ImportRunRead | None   None when the id is unknown
    get(id)            -> ImportRunRead | None
    list(limit)        -> [ImportRunRead]        most recent first

Runs are never deleted. Once a run is terminal (succeeded/failed) further
updates raise RunFinalizedError.

Instances are built once in create_app() and injected via
`vantera.api.deps.get_import_run_store`.
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Protocol, Union

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vantera.core.exceptions import RunFinalizedError
from vantera.core.logging import get_logger
from vantera.models.import_run_model import ImportRun
from vantera.schemas.import_run_schema import (
    ImportRunCreate,
    ErrorSample,
    ImportRunRead,
    ImportRunUpdate,
    MAX_ERROR_SAMPLES,
    RUN_FAILED,
    RUN_SUCCEEDED,
    TERMINAL_STATUSES,
)

logger = get_logger(__name__)

RunId = Union[str, uuid.UUID]


def _as_uuid(run_id: RunId) -> Optional[uuid.UUID]:
    if isinstance(run_id, uuid.UUID):
        return run_id
    try:
        return uuid.UUID(str(run_id))
    except ValueError:
        return None


class ImportRunStore(Protocol):
    async def create(self, run: ImportRunCreate) -> ImportRunRead: ...

    async def update(self, run_id: RunId, patch: ImportRunUpdate) -> Optional[ImportRunRead]: ...

    async def get(self, run_id: RunId) -> Optional[ImportRunRead]: ...

    async def list(self, limit: int = 50) -> List[ImportRunRead]: ...


class InMemoryImportRunStore:
    """Volatile run log kept in an ordered list."""

    def __init__(self) -> None:
        self._runs: List[ImportRunRead] = []

    async def create(self, run: ImportRunCreate) -> ImportRunRead:
        record = ImportRunRead(
            id=uuid.uuid4(),
            started_at=datetime.now(timezone.utc),
            **run.model_dump(),
        )
        self._runs.append(record)
        return record

    async def update(self, run_id: RunId, patch: ImportRunUpdate) -> Optional[ImportRunRead]:
        key = _as_uuid(run_id)
        for i, current in enumerate(self._runs):
            if current.id != key:
                continue
            if current.is_terminal:
                raise RunFinalizedError(f"Import run {current.id} is already {current.status}")
            merged = {**current.model_dump(), **patch.model_dump(exclude_unset=True)}
            self._runs[i] = ImportRunRead.model_validate(merged)
            return self._runs[i]
        return None

    async def get(self, run_id: RunId) -> Optional[ImportRunRead]:
        key = _as_uuid(run_id)
        return next((r for r in self._runs if r.id == key), None)

    async def list(self, limit: int = 50) -> List[ImportRunRead]:
        if limit <= 0:
            return []
        return list(reversed(self._runs[-limit:]))


class SqlImportRunStore:
    """Run log persisted next to cities and listings."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, run: ImportRunCreate) -> ImportRunRead:
        async with self._session_factory() as db:
            record = ImportRun(
                **run.model_dump(),
                started_at=datetime.now(timezone.utc),
                error_samples=[],
            )
            db.add(record)
            await db.commit()
            await db.refresh(record)
            return ImportRunRead.model_validate(record)

    async def update(self, run_id: RunId, patch: ImportRunUpdate) -> Optional[ImportRunRead]:
        key = _as_uuid(run_id)
        if key is None:
            return None
        async with self._session_factory() as db:
            result = await db.execute(select(ImportRun).where(ImportRun.id == key))
            record = result.scalar_one_or_none()
            if not record:
                return None
            if record.status in TERMINAL_STATUSES:
                raise RunFinalizedError(f"Import run {record.id} is already {record.status}")
            for name, value in patch.model_dump(exclude_unset=True).items():
                setattr(record, name, value)
            await db.commit()
            await db.refresh(record)
            return ImportRunRead.model_validate(record)

    async def get(self, run_id: RunId) -> Optional[ImportRunRead]:
        key = _as_uuid(run_id)
        if key is None:
            return None
        async with self._session_factory() as db:
            result = await db.execute(select(ImportRun).where(ImportRun.id == key))
            record = result.scalar_one_or_none()
            return ImportRunRead.model_validate(record) if record else None

    async def list(self, limit: int = 50) -> List[ImportRunRead]:
        if limit <= 0:
            return []
        async with self._session_factory() as db:
            result = await db.execute(
                select(ImportRun).order_by(desc(ImportRun.started_at)).limit(limit)
            )
            return [ImportRunRead.model_validate(r) for r in result.scalars().all()]


def build_import_run_store(kind: str, session_factory: async_sessionmaker[AsyncSession]) -> ImportRunStore:
    if kind == "memory":
        logger.info("Using in-memory import run store (runs are lost on restart)")
        return InMemoryImportRunStore()
    return SqlImportRunStore(session_factory)


@dataclass
class RunStats:
    """Counters accumulated while a run is in flight."""
    scanned: int = 0
    created: int = 0
    skipped: int = 0
    errors: int = 0
    warnings: int = 0
    error_samples: List[ErrorSample] = field(default_factory=list)

    def _sample(self, step: str, message: str) -> None:
        if len(self.error_samples) < MAX_ERROR_SAMPLES:
            self.error_samples.append(ErrorSample(step=step, message=message[:1000]))

    def record_error(self, step: str, message: str) -> None:
        self.errors += 1
        self._sample(step, message)

    def record_warning(self, step: str, message: str) -> None:
        """Non-fatal problem that does not fail the run (e.g. media fetch)."""
        self.warnings += 1
        self._sample(step, message)

    def finish(self, message: str, failed: Optional[bool] = None) -> ImportRunUpdate:
        """Build the terminal patch. Fails when asked to, or when errors were counted."""
        if failed is None:
            failed = self.errors > 0
        return ImportRunUpdate(
            status=RUN_FAILED if failed else RUN_SUCCEEDED,
            finished_at=datetime.now(timezone.utc),
            scanned=self.scanned,
            created=self.created,
            skipped=self.skipped,
            errors=self.errors,
            warnings=self.warnings,
            error_samples=list(self.error_samples),
            message=message,
        )


async def complete_test_run(store: ImportRunStore, run_id: RunId, delay: float) -> None:
    """Background completion of a test run created from the operations API."""
    if delay > 0:
        await asyncio.sleep(delay)
    try:
        await store.update(
            run_id,
            ImportRunUpdate(
                status=RUN_SUCCEEDED,
                finished_at=datetime.now(timezone.utc),
                scanned=120,
                created=118,
                warnings=2,
                message="Test run completed",
            ),
        )
    except RunFinalizedError:
        logger.warning("Test run %s was already finalized", run_id)
