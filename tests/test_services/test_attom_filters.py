"""Tests for the ATTOM luxury filters and price selection."""
import pytest

from vantera.services.attom_ingest_service import (
    ASSESSED_CONFIDENCE,
    AVM_CONFIDENCE,
    PropertyFilters,
    filter_reason,
    parse_types,
    pick_price,
)
from vantera.services.mapper_service import PropertyDetails


def test_parse_types():
    assert parse_types(" sfr, Condo ,,") == ["SFR", "CONDO"]
    assert parse_types("") is None
    assert parse_types(" , ") is None


@pytest.mark.parametrize("property_type", ["COMMERCIAL LAND", "Vacant Lot", "OFFICE"])
def test_non_residential_fails(property_type):
    details = PropertyDetails(property_type=property_type)
    assert filter_reason(details, PropertyFilters(), final=False) == "residential"


def test_min_beds():
    filters = PropertyFilters(min_beds=4)

    assert filter_reason(PropertyDetails(bedrooms=3), filters, final=False) == "beds"
    assert filter_reason(PropertyDetails(bedrooms=4), filters, final=True) is None
    # a stub without beds is let through to the detail fetch
    assert filter_reason(PropertyDetails(), filters, final=False) is None
    assert filter_reason(PropertyDetails(), filters, final=True) == "beds"


def test_type_whitelist():
    filters = PropertyFilters(types=["CONDO", "SFR"])

    assert filter_reason(PropertyDetails(property_type="Condominium"), filters, final=True) is None
    assert filter_reason(PropertyDetails(property_type="DUPLEX"), filters, final=False) == "type"
    assert filter_reason(PropertyDetails(), filters, final=False) is None
    assert filter_reason(PropertyDetails(), filters, final=True) == "type"


def test_no_filters_pass_unknown_type():
    assert filter_reason(PropertyDetails(), PropertyFilters(), final=True) is None


def test_pick_price():
    details = PropertyDetails(value=2_100_000)

    assert pick_price(3_000_000, details) == (3_000_000, AVM_CONFIDENCE)
    assert pick_price(None, details) == (2_100_000, ASSESSED_CONFIDENCE)
    assert pick_price(None, PropertyDetails()) == (None, None)
