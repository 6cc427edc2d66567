"""Operations asset upload — brand and hero images written under MEDIA_ROOT."""
import asyncio
import re
from pathlib import Path
from typing import Iterable, Optional

from vantera.core.exceptions import UploadRejectedError
from vantera.core.logging import get_logger
from vantera.schemas.ingest_schema import AssetUploadResponse

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def sanitize_upload_path(name: Optional[str]) -> Optional[str]:
    """Normalize a client-supplied path. None when it tries to traverse."""
    cleaned = (name or "").strip()
    cleaned = cleaned.replace("\\", "/")
    cleaned = re.sub(r"\s+", "-", cleaned)
    cleaned = re.sub(r"[^a-zA-Z0-9/_\-.]", "-", cleaned)
    cleaned = re.sub(r"/+", "/", cleaned)

    if ".." in cleaned:
        return None
    return cleaned.lstrip("/")


def resolve_upload_path(filename: Optional[str], allowed_prefixes: Iterable[str]) -> str:
    if not filename:
        raise UploadRejectedError("Missing filename")

    pathname = sanitize_upload_path(filename)
    if not pathname or pathname.endswith("/"):
        raise UploadRejectedError("Invalid filename")

    if not any(pathname.startswith(prefix) for prefix in allowed_prefixes):
        raise UploadRejectedError("Path not allowed", status_code=403)
    return pathname


def _write_file(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


async def store_asset(
    filename: Optional[str],
    data: bytes,
    content_type: Optional[str],
    media_root: str,
    media_base_url: str,
    allowed_prefixes: Iterable[str],
) -> AssetUploadResponse:
    """Validate the path and write `data` below `media_root`. Overwrites."""
    pathname = resolve_upload_path(filename, allowed_prefixes)
    if not data:
        raise UploadRejectedError("Empty upload")

    target = Path(media_root) / pathname
    await asyncio.to_thread(_write_file, target, data)
    logger.info("Stored asset %s (%d bytes)", pathname, len(data))

    return AssetUploadResponse(
        url=f"{media_base_url.rstrip('/')}/{pathname}",
        pathname=pathname,
        content_type=content_type or DEFAULT_CONTENT_TYPE,
        size=len(data),
    )
