# -*- coding: utf-8 -*-
"""Location: ./floodgate/utils/orjson_response.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: Floodgate Contributors

JSON response rendered with orjson.

Rejections are the hot path of a flooded service, so the 429 body is
serialized with orjson rather than the standard library encoder. Pydantic
models, datetimes and non-string dict keys are handled natively.

References:
- orjson: https://github.com/ijl/orjson
"""

# Standard
from typing import Any

# Third-Party
import orjson
from starlette.responses import JSONResponse


class ORJSONResponse(JSONResponse):
    """Drop-in ``JSONResponse`` that renders with orjson.

    Example:
        >>> response = ORJSONResponse(content={"error": {"text": "Too many requests."}}, status_code=429)
        >>> response.status_code
        429
        >>> response.body
        b'{"error":{"text":"Too many requests."}}'
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        """Render content to JSON bytes using orjson.

        Args:
            content: The content to serialize.

        Returns:
            JSON bytes ready for the HTTP response.

        Raises:
            orjson.JSONEncodeError: If content cannot be serialized to JSON.
        """
        return orjson.dumps(content, option=orjson.OPT_NON_STR_KEYS)
