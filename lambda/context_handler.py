"""Lambda handler for time-series context reads — triggered by API Gateway.

Serves ``GET /funds/{fundId}/{source}`` for metrics, cash_flows and
documents, and ``GET /benchmarks``. A source whose table is not provisioned
answers 200 with ``available: false`` and no rows.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from fundrag.api import error_response, json_response, path_params, query_params
from fundrag.app import Services, build_services
from fundrag.errors import FundRagError
from fundrag.pipeline.schemas import ContextRequest, parse_request
from fundrag.retrieval.context import Unavailable

logger = logging.getLogger(__name__)
logger.setLevel(os.getenv("LOG_LEVEL", "INFO"))

# Initialize outside handler for Lambda warm-start reuse
_services: Services | None = None


def _get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
    return _services


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    path = path_params(event)
    params = {
        **query_params(event),
        "source": path.get("source") or "benchmarks",
        "fundId": path.get("fundId"),
    }
    try:
        request = parse_request(ContextRequest, params)
        result = _get_services().query.read_context(request)
    except FundRagError as exc:
        return error_response(exc)

    body: dict[str, Any] = {
        "source": request.source,
        "available": result.available,
        "rows": [row.to_dict() for row in result.rows],
    }
    if isinstance(result, Unavailable):
        body["reason"] = result.reason
    return json_response(200, body)
