"""ListingMedia SQLAlchemy model — photos and videos attached to listings."""
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vantera.database import Base

if TYPE_CHECKING:
    from vantera.models.listing_model import Listing


class ListingMedia(Base):
    __tablename__ = "listing_media"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    listing_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("listings.id", ondelete="CASCADE"),
        index=True,
    )
    url: Mapped[str] = mapped_column(String(2048))
    alt: Mapped[Optional[str]] = mapped_column(String(500))
    width: Mapped[Optional[int]] = mapped_column(Integer)
    height: Mapped[Optional[int]] = mapped_column(Integer)
    source: Mapped[Optional[str]] = mapped_column(String(30), comment="ATTOM, REALTOR, MANUAL")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    listing: Mapped["Listing"] = relationship(back_populates="media")

    __table_args__ = (
        Index("ix_listing_media_listing_url", "listing_id", "url"),
    )

    def __repr__(self) -> str:
        return f"<ListingMedia(id={self.id}, source='{self.source}', url='{self.url[:60]}...')>"
