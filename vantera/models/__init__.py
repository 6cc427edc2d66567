"""SQLAlchemy models for the Vantera backend."""
from vantera.models.city_model import City
from vantera.models.listing_model import Listing
from vantera.models.media_model import ListingMedia
from vantera.models.import_run_model import ImportRun

__all__ = [
    "City",
    "Listing",
    "ListingMedia",
    "ImportRun",
]
