"""Traffic gate — decides pass-through vs. "coming soon" rewrite per request.

Pure and stateless: the middleware in main.py feeds it the request headers and
path and applies the returned decision. Rules, first match wins:

1. public assets and /api/*           -> bypass-assets
2. the placeholder route itself        -> allow-coming-soon
3. development hosts                   -> dev-allow
4. everything else                     -> prod-coming-soon (path rewritten)
"""
import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

BYPASS_ASSETS = "bypass-assets"
ALLOW_COMING_SOON = "allow-coming-soon"
DEV_ALLOW = "dev-allow"
PROD_COMING_SOON = "prod-coming-soon"

GATE_HEADER = "x-vantera-gate"
HOST_HEADER = "x-vantera-host"

DEFAULT_DEV_HOSTS = frozenset({"dev.vantera.io", "localhost", "127.0.0.1"})
DEFAULT_PLACEHOLDER = "/coming-soon"

_EXACT_ASSETS = frozenset({"/favicon.ico", "/robots.txt", "/sitemap.xml"})
_ASSET_PREFIXES = ("/og/", "/brand/", "/brands/", "/hero/")
_FILE_EXTENSION = re.compile(r"\.[A-Za-z0-9]+$")
_PORT_SUFFIX = re.compile(r":\d+$")


@dataclass(frozen=True)
class GateDecision:
    tag: str
    host: str
    rewrite_to: Optional[str] = None

    @property
    def rewritten(self) -> bool:
        return self.rewrite_to is not None


def resolve_host(forwarded_host: Optional[str], host: Optional[str]) -> str:
    """Normalize the request host: first proxy hop, lower-case, no port."""
    raw = (forwarded_host or host or "").lower()
    first = raw.split(",")[0].strip()
    return _PORT_SUFFIX.sub("", first) or "unknown"


def is_public_asset(path: str) -> bool:
    if path.startswith("/_next"):
        return True
    if path in _EXACT_ASSETS:
        return True
    if path.startswith(_ASSET_PREFIXES):
        return True
    last_segment = path.rsplit("/", 1)[-1]
    return bool(_FILE_EXTENSION.search(last_segment))


def classify_request(
    headers: Mapping[str, str],
    path: str,
    dev_hosts: Iterable[str] = DEFAULT_DEV_HOSTS,
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> GateDecision:
    """Classify a request. `headers` must be case-insensitive or lower-cased."""
    host = resolve_host(headers.get("x-forwarded-host"), headers.get("host"))

    if is_public_asset(path) or path.startswith("/api"):
        return GateDecision(BYPASS_ASSETS, host)

    if path == placeholder:
        return GateDecision(ALLOW_COMING_SOON, host)

    if host in {h.lower() for h in dev_hosts}:
        return GateDecision(DEV_ALLOW, host)

    return GateDecision(PROD_COMING_SOON, host, rewrite_to=placeholder)
