from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OkResponse(CamelModel):
    ok: bool = True


class ErrorResponse(CamelModel):
    ok: bool = False
    error: str
    run_id: Optional[str] = None
    trace_id: Optional[str] = Field(None, alias="trace_id")
