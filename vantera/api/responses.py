# vantera/api/responses.py
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from vantera.schemas.base_schema import ErrorResponse


def error(
    message: str,
    status_code: int,
    request: Optional[Request] = None,
    run_id: Optional[str] = None,
    extra: Optional[dict] = None,
) -> JSONResponse:
    """Render the `{ok: false, error, ...}` envelope used by every failure."""
    body: dict[str, Any] = ErrorResponse(
        error=message,
        run_id=run_id,
        trace_id=getattr(request.state, "trace_id", None) if request else None,
    ).model_dump(by_alias=True, exclude_none=True)
    if extra:
        body.update(extra)
    return JSONResponse(status_code=status_code, content=body)
