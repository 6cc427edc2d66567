"""ImportRun SQLAlchemy model — persisted run log for ingestion jobs."""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vantera.database import Base


class ImportRun(Base):
    __tablename__ = "import_runs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    source: Mapped[str] = mapped_column(String(30), index=True, comment="attom, realtor, vantera")
    scope: Mapped[str] = mapped_column(String(30), comment="cities, properties")
    region: Mapped[Optional[str]] = mapped_column(String(50))
    market: Mapped[Optional[str]] = mapped_column(String(200))
    params: Mapped[Optional[dict]] = mapped_column(JSON)

    status: Mapped[str] = mapped_column(
        String(20),
        default="running",
        index=True,
        comment="queued, running, succeeded, failed",
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    scanned: Mapped[int] = mapped_column(Integer, default=0)
    created: Mapped[int] = mapped_column(Integer, default=0)
    skipped: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[int] = mapped_column(Integer, default=0)
    warnings: Mapped[int] = mapped_column(Integer, default=0)
    error_samples: Mapped[Optional[list]] = mapped_column(JSON, default=list, comment='[{"step": ..., "message": ...}]')
    message: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<ImportRun(id={self.id}, source={self.source}, scope={self.scope}, status={self.status})>"
