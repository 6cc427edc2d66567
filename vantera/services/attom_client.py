"""ATTOM property API client.

Synchronous `requests` session; async callers wrap calls with
`asyncio.to_thread()`. No retries: a failed call is reported once and the run
decides what to do with it.

Provider quirk: ATTOM sometimes answers a search with no matches using a
non-success status (460, 404, ...) and a body whose status message reads
"SuccessWithNoResult" / "SuccessfulWithoutResult". Those are returned as an
empty payload instead of raising.
"""
import json
import re
from typing import Any, Dict, List, Mapping, Optional

import requests

from vantera.core.exceptions import AttomError, ConfigurationError, ProviderError
from vantera.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.gateway.attomdata.com/propertyapi/v1.0.0"

_NO_RESULT = re.compile(r"success(ful)?with(no|out)results?")


def looks_like_success_without_result(body: str) -> bool:
    """Case- and spacing-insensitive match on the provider's 'no result' message."""
    squashed = re.sub(r"[^a-z]", "", (body or "").lower())
    return bool(_NO_RESULT.search(squashed))


def _empty_payload(body: str, status: int) -> Dict[str, Any]:
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        payload = None
    if not isinstance(payload, dict):
        payload = {"status": {"code": status, "msg": "SuccessWithNoResult"}}
    payload["property"] = []
    return payload


def _first_property(payload: Any) -> Optional[Dict[str, Any]]:
    items = payload.get("property") if isinstance(payload, dict) else None
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    if isinstance(items, dict):
        return items
    return None


class AttomClient:
    """Thin wrapper over the ATTOM gateway endpoints used by ingestion."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 60,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key or ""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError(
                "Missing ATTOM_API_KEY. Set it in the environment (or .env) before running ATTOM ingestion."
            )

    def get_json(self, path: str, query: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        self.ensure_configured()

        params = {k: v for k, v in (query or {}).items() if v is not None}
        url = f"{self.base_url}{path}"

        try:
            response = self._session.get(
                url,
                params=params,
                headers={"accept": "application/json", "apikey": self.api_key},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("ATTOM request error for %s: %s", path, str(e))
            raise ProviderError(f"ATTOM request failed for {url}: {e}", url=url) from e

        if not response.ok:
            body = response.text or ""
            if looks_like_success_without_result(body):
                logger.info("ATTOM %d with no result for %s — treating as empty", response.status_code, path)
                return _empty_payload(body, response.status_code)
            logger.warning("ATTOM HTTP %d for %s", response.status_code, path)
            raise AttomError(
                status=response.status_code,
                reason=response.reason or "",
                url=response.url or url,
                body=body,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"ATTOM returned invalid JSON for {url}", url=url, body=response.text or "") from e

    def address_search(self, lat: float, lng: float, radius: float, page_size: int) -> List[Dict[str, Any]]:
        """Property stubs around a point (radius in miles)."""
        payload = self.get_json(
            "/property/address",
            {"latitude": lat, "longitude": lng, "radius": radius, "pagesize": page_size},
        )
        items = payload.get("property") if isinstance(payload, dict) else None
        return items if isinstance(items, list) else []

    def property_detail(
        self,
        attom_id: Optional[str] = None,
        address1: Optional[str] = None,
        address2: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        if attom_id:
            query = {"attomid": attom_id}
        else:
            query = {"address1": address1, "address2": address2}
        return _first_property(self.get_json("/property/detail", query))

    def avm_detail(self, address1: str, address2: str) -> Optional[Dict[str, Any]]:
        """AVM record for an address; None when the provider has no valuation."""
        payload = self.get_json("/avm/detail", {"address1": address1, "address2": address2})
        return _first_property(payload) or (payload if isinstance(payload, dict) else None)

    def property_media(self, attom_id: str) -> Dict[str, Any]:
        return self.get_json("/property/detail/media", {"attomId": attom_id})

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()
