"""Mapper service — normalizes provider payloads into listing fields.

ATTOM and the Realtor.com actor are inconsistent about field naming across
endpoints and versions. Every field is therefore read through an ordered chain
of extractors, first non-null wins:

    ADDRESS1 = (at("address", "line1"), at("address", "oneLine"), at("address1"))
    first_of(stub, ADDRESS1, pick_string)

Chains are module-level tuples so each can be tested on its own.

Also here:
- slug / address helpers
- sqft → m² conversion and ATTOM lot-size normalization
- data completeness score (0-100)
- residential type guard
- AVM value extraction
- photo normalizers for both providers (feeding media_service)
"""
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

Extractor = Callable[[Any], Any]

SQFT_TO_M2 = 0.092903
ACRE_TO_SQFT = 43560

_BAD_TYPE_HINTS = ("LAND", "LOT", "COMM", "IND", "OFFICE", "RETAIL", "WAREHOUSE", "FARM", "AGRIC")

_COMPLETENESS_WEIGHTS = {
    "address": 20,
    "geo": 15,
    "type": 15,
    "beds": 10,
    "baths": 10,
    "size": 15,
    "price": 15,
}


# ---------------------------------------------------------------------------
# Extraction primitives
# ---------------------------------------------------------------------------

def at(*keys: str) -> Extractor:
    """Build an extractor that walks nested dict keys, None on any miss."""

    def extract(payload: Any) -> Any:
        node = payload
        for key in keys:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        return node

    return extract


def first_of(payload: Any, chain: Sequence[Extractor], coerce: Callable[[Any], Any]) -> Any:
    for extractor in chain:
        value = coerce(extractor(payload))
        if value is not None:
            return value
    return None


def pick_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def pick_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        try:
            n = float(value.strip())
        except ValueError:
            return None
        return n if math.isfinite(n) else None
    return None


def pick_id(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return str(int(value)) if value.is_integer() else str(value)
    return pick_string(value)


def _as_int(value: Optional[float]) -> Optional[int]:
    return int(round(value)) if value is not None else None


# ---------------------------------------------------------------------------
# Generic helpers
# ---------------------------------------------------------------------------

def slugify(text: str, max_length: int = 90) -> str:
    s = text.strip().lower()
    s = re.sub(r"['\"]", "", s)
    s = re.sub(r"[^a-z0-9]+", "-", s)
    s = s.strip("-")
    return s[:max_length]


def join_address(parts: Iterable[Optional[str]], sep: str = ", ") -> str:
    return sep.join(p.strip() for p in parts if isinstance(p, str) and p.strip())


def sqft_to_m2(sqft: Optional[float]) -> Optional[int]:
    if sqft is None or not math.isfinite(sqft):
        return None
    return int(round(sqft * SQFT_TO_M2))


def compute_data_completeness(
    address: Optional[str],
    lat: Optional[float],
    lng: Optional[float],
    property_type: Optional[str],
    beds: Optional[float],
    baths: Optional[float],
    built_sqft: Optional[float],
    price: Optional[float],
) -> int:
    w = _COMPLETENESS_WEIGHTS
    score = 0
    if address:
        score += w["address"]
    if lat is not None and lng is not None:
        score += w["geo"]
    if property_type:
        score += w["type"]
    if beds is not None:
        score += w["beds"]
    if baths is not None:
        score += w["baths"]
    if built_sqft is not None:
        score += w["size"]
    if price is not None:
        score += w["price"]
    return max(0, min(100, score))


def looks_residential(property_type: Optional[str]) -> bool:
    """Conservative guard: unknown types pass, obvious non-residential ones don't."""
    t = (property_type or "").upper()
    if not t:
        return True
    return not any(hint in t for hint in _BAD_TYPE_HINTS)


# ---------------------------------------------------------------------------
# ATTOM
# ---------------------------------------------------------------------------

ADDRESS1 = (at("address", "line1"), at("address", "oneLine"), at("address1"))
ADDRESS2 = (at("address", "line2"), at("address2"))
LATITUDE = (at("location", "latitude"), at("latitude"))
LONGITUDE = (at("location", "longitude"), at("longitude"))

ATTOM_ID = (at("identifier", "attomId"), at("identifier", "AttomId"), at("identifier", "Id"))
OB_PROP_ID = (at("identifier", "obPropId"), at("identifier", "ObPropId"))

BEDS = (at("building", "rooms", "beds"), at("building", "rooms", "Beds"))
BATHS = (at("building", "rooms", "bathstotal"), at("building", "rooms", "bathsTotal"))
LIVING_SQFT = (at("building", "size", "universalsize"), at("building", "size", "livingSize"), at("building", "size", "livingsize"))
PROPERTY_TYPE = (at("summary", "proptype"), at("summary", "propsubtype"), at("summary", "propclass"))
VALUE = (
    at("avm", "amount", "value"),
    at("assessment", "market", "mktTtlValue"),
    at("assessment", "market", "mktttlvalue"),
    at("sale", "amount", "saleamt"),
)
NEIGHBORHOOD = (at("address", "locality"), at("location", "neighborhood"))
AVM_VALUE = (at("avm", "amount", "value"),)


@dataclass(frozen=True)
class AddressParts:
    address1: Optional[str]
    address2: Optional[str]
    lat: Optional[float]
    lng: Optional[float]

    @property
    def complete(self) -> bool:
        return bool(self.address1 and self.address2)

    @property
    def combined(self) -> str:
        return join_address([self.address1, self.address2])


@dataclass(frozen=True)
class PropertyDetails:
    attom_id: Optional[str] = None
    ob_prop_id: Optional[str] = None
    property_type: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    built_sqft: Optional[int] = None
    lot_sqft: Optional[int] = None
    value: Optional[float] = None
    neighborhood: Optional[str] = None

    @property
    def best_id(self) -> Optional[str]:
        return self.attom_id or self.ob_prop_id


def extract_address(stub: Dict[str, Any]) -> AddressParts:
    return AddressParts(
        address1=first_of(stub, ADDRESS1, pick_string),
        address2=first_of(stub, ADDRESS2, pick_string),
        lat=first_of(stub, LATITUDE, pick_number),
        lng=first_of(stub, LONGITUDE, pick_number),
    )


def normalize_lot_sqft(payload: Optional[Dict[str, Any]]) -> Optional[int]:
    """lotsize2 is square feet; lotsize1 is acres when small, sqft otherwise."""
    lotsize2 = pick_number(at("lot", "lotsize2")(payload))
    if lotsize2 is not None and lotsize2 > 0:
        return int(round(lotsize2))

    lotsize1 = pick_number(at("lot", "lotsize1")(payload))
    if lotsize1 is None or lotsize1 <= 0:
        return None
    if lotsize1 < 200:
        return int(round(lotsize1 * ACRE_TO_SQFT))
    return int(round(lotsize1))


def extract_details(detail: Optional[Dict[str, Any]], stub: Optional[Dict[str, Any]] = None) -> PropertyDetails:
    """Read detail attributes, falling back to the search stub field by field."""
    sources = [s for s in (detail, stub) if isinstance(s, dict)]

    def read(chain: Sequence[Extractor], coerce: Callable[[Any], Any]) -> Any:
        for source in sources:
            value = first_of(source, chain, coerce)
            if value is not None:
                return value
        return None

    return PropertyDetails(
        attom_id=read(ATTOM_ID, pick_id),
        ob_prop_id=read(OB_PROP_ID, pick_id),
        property_type=read(PROPERTY_TYPE, pick_string),
        bedrooms=_as_int(read(BEDS, pick_number)),
        bathrooms=read(BATHS, pick_number),
        built_sqft=_as_int(read(LIVING_SQFT, pick_number)),
        lot_sqft=next((v for v in map(normalize_lot_sqft, sources) if v is not None), None),
        value=read(VALUE, pick_number),
        neighborhood=read(NEIGHBORHOOD, pick_string),
    )


def extract_avm_value(record: Optional[Dict[str, Any]]) -> Optional[float]:
    """Estimated value from an /avm/detail record, None when absent or not positive."""
    value = first_of(record, AVM_VALUE, pick_number)
    return value if value is not None and value > 0 else None


@dataclass(frozen=True)
class PhotoInput:
    url: str
    caption: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


def _photos_from(items: Any) -> List[PhotoInput]:
    if not isinstance(items, list):
        return []
    photos: List[PhotoInput] = []
    for p in items:
        url = first_of(p, (at("url"), at("href"), at("src")), pick_string)
        if not url:
            continue
        photos.append(
            PhotoInput(
                url=url,
                caption=first_of(p, (at("caption"), at("description")), pick_string),
                width=_as_int(pick_number(at("width")(p))),
                height=_as_int(pick_number(at("height")(p))),
            )
        )
    return photos


def normalize_attom_photos(payload: Optional[Dict[str, Any]]) -> List[PhotoInput]:
    """Photos from /property/detail/media; `property` may be an object or a list."""
    prop = at("property")(payload)
    if isinstance(prop, list):
        prop = prop[0] if prop else None
    return _photos_from(at("media", "photos")(prop))


# ---------------------------------------------------------------------------
# Realtor.com (Apify actor)
# ---------------------------------------------------------------------------

R_SOURCE_ID = (at("property_id"), at("listing_id"), at("mls_id"), at("id"), at("permalink"))
R_PRICE = (at("list_price"), at("price"), at("listPrice"))
R_BEDS = (at("beds"), at("bedrooms"))
R_BATHS = (at("baths"), at("bathrooms"))
R_SQFT = (at("sqft"), at("building_size"), at("living_area"))
R_ADDRESS_LINE = (
    at("address", "line"),
    at("address", "street_address"),
    at("location", "address"),
    at("address"),
)
R_CITY = (at("address", "city"), at("location", "city"))
R_STATE = (at("address", "state"), at("location", "state"))
R_POSTAL = (at("address", "postal_code"), at("location", "postal_code"))
R_LAT = (at("address", "lat"), at("location", "lat"), at("lat"))
R_LNG = (at("address", "lon"), at("location", "lon"), at("lng"), at("lon"))
R_TYPE = (at("prop_type"), at("property_type"), at("type"), at("description", "type"))
R_URL = (at("permalink"), at("url"), at("listing_url"))
R_TITLE = (at("title"), at("description", "name"))
R_PHOTOS = (at("photos"), at("media", "photos"), at("property", "photos"), at("property", "media", "photos"))


@dataclass(frozen=True)
class RealtorFields:
    source_id: Optional[str]
    price: Optional[float]
    bedrooms: Optional[int]
    bathrooms: Optional[float]
    built_sqft: Optional[int]
    address: Optional[str]
    lat: Optional[float]
    lng: Optional[float]
    property_type: Optional[str]
    source_url: Optional[str]
    title: str
    city: Optional[str]
    state: Optional[str]


def normalize_realtor_item(item: Dict[str, Any]) -> RealtorFields:
    address_line = first_of(item, R_ADDRESS_LINE, pick_string)
    city = first_of(item, R_CITY, pick_string)
    state = first_of(item, R_STATE, pick_string)
    postal = first_of(item, R_POSTAL, pick_string)

    return RealtorFields(
        source_id=first_of(item, R_SOURCE_ID, pick_id),
        price=first_of(item, R_PRICE, pick_number),
        bedrooms=_as_int(first_of(item, R_BEDS, pick_number)),
        bathrooms=first_of(item, R_BATHS, pick_number),
        built_sqft=_as_int(first_of(item, R_SQFT, pick_number)),
        address=join_address([address_line, city, state, postal]) or None,
        lat=first_of(item, R_LAT, pick_number),
        lng=first_of(item, R_LNG, pick_number),
        property_type=first_of(item, R_TYPE, pick_string),
        source_url=first_of(item, R_URL, pick_string),
        title=first_of(item, R_TITLE, pick_string) or join_address([city, state], " ") or "Realtor Listing",
        city=city,
        state=state,
    )


def normalize_realtor_photos(item: Dict[str, Any]) -> List[PhotoInput]:
    raw = next((v for v in (e(item) for e in R_PHOTOS) if isinstance(v, list)), [])
    seen = set()
    unique: List[PhotoInput] = []
    for photo in _photos_from(raw):
        if photo.url in seen:
            continue
        seen.add(photo.url)
        unique.append(photo)
    return unique
