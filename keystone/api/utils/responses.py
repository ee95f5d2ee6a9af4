"""JSON responses serialized with orjson.

``ORJSONResponse`` is the application's default response class; it
serializes datetimes, UUIDs and Pydantic models natively and sorts keys
for predictable output.
"""

from typing import Any

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ORJSONResponse(JSONResponse):
    """FastAPI response class using orjson for serialization."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - accepts any JSON-serializable content
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json", exclude_none=True)

        return orjson.dumps(
            content, option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS
        )
