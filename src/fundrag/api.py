"""API Gateway helpers shared by the Lambda handlers.

Handlers stay thin: decode the event, validate into a typed request, call a
pipeline, and map ``FundRagError`` subclasses to structured JSON responses.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fundrag.errors import FundRagError, ValidationError

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


def json_response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": JSON_HEADERS,
        "body": json.dumps(body, default=str),
    }


def error_response(exc: FundRagError) -> dict[str, Any]:
    """Render an error as ``{error, message, details?}`` with its status code."""
    if exc.status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc.message)
    else:
        logger.info("Rejected request: %s", exc.message)
    return json_response(exc.status_code, exc.to_dict())


def parse_body(event: dict[str, Any]) -> dict[str, Any]:
    """Decode the JSON request body; an absent body is an empty object.

    Raises:
        ValidationError: the body is not valid JSON.
    """
    raw = event.get("body")
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ValidationError("Request body is not valid JSON") from exc
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def path_params(event: dict[str, Any]) -> dict[str, Any]:
    return event.get("pathParameters") or {}


def query_params(event: dict[str, Any]) -> dict[str, Any]:
    return event.get("queryStringParameters") or {}
