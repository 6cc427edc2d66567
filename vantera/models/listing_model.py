"""Listing SQLAlchemy model — a property record owned by one City."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vantera.database import Base

if TYPE_CHECKING:
    from vantera.models.media_model import ListingMedia


class Listing(Base):
    __tablename__ = "listings"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(String(120), unique=True)
    city_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("cities.id"),
        index=True,
    )

    source: Mapped[Optional[str]] = mapped_column(String(30), comment="attom, realtor")
    source_id: Mapped[Optional[str]] = mapped_column(String(255), comment="Provider identifier (attomId, property_id)")
    source_url: Mapped[Optional[str]] = mapped_column(String(2048))

    status: Mapped[str] = mapped_column(String(20), default="LIVE", comment="LIVE, ARCHIVED")
    visibility: Mapped[str] = mapped_column(String(20), default="PUBLIC", comment="PUBLIC, PRIVATE")
    verification: Mapped[str] = mapped_column(String(30), default="SELF_REPORTED")

    title: Mapped[str] = mapped_column(String(500))
    headline: Mapped[Optional[str]] = mapped_column(String(500))
    description: Mapped[Optional[str]] = mapped_column(Text)
    neighborhood: Mapped[Optional[str]] = mapped_column(String(200))

    address: Mapped[Optional[str]] = mapped_column(String(500), comment="Dedup key within a city (checked, not enforced)")
    address_hidden: Mapped[bool] = mapped_column(Boolean, default=True)
    lat: Mapped[Optional[float]] = mapped_column(Float)
    lng: Mapped[Optional[float]] = mapped_column(Float)

    property_type: Mapped[Optional[str]] = mapped_column(String(100))
    bedrooms: Mapped[Optional[int]] = mapped_column(Integer)
    bathrooms: Mapped[Optional[float]] = mapped_column(Float)
    built_area: Mapped[Optional[int]] = mapped_column(Integer, comment="m²")
    plot_area: Mapped[Optional[int]] = mapped_column(Integer, comment="m²")
    built_sqft: Mapped[Optional[int]] = mapped_column(Integer)
    plot_sqft: Mapped[Optional[int]] = mapped_column(Integer)

    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    currency: Mapped[Optional[str]] = mapped_column(String(3), default="USD")
    price_confidence: Mapped[Optional[int]] = mapped_column(Integer, comment="0-100")
    data_completeness: Mapped[Optional[int]] = mapped_column(Integer, comment="0-100")

    cover_media_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    media: Mapped[List["ListingMedia"]] = relationship(
        back_populates="listing",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_listings_city_address", "city_id", "address"),
        Index("ix_listings_source_source_id", "source", "source_id"),
        Index("ix_listings_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, slug='{self.slug}', source={self.source})>"
