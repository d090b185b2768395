"""Lambda handler for similarity search — triggered by API Gateway.

Thin wrapper around QueryPipeline.search. All business logic lives in src/fundrag/.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from fundrag.api import error_response, json_response, parse_body
from fundrag.app import Services, build_services
from fundrag.errors import FundRagError
from fundrag.pipeline.schemas import SearchRequest, parse_request

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
    """Handle ``POST search`` — resolve the query vector and rank chunks."""
    try:
        request = parse_request(SearchRequest, parse_body(event))
        results = _get_services().query.search(request)
    except FundRagError as exc:
        return error_response(exc)

    return json_response(200, {"results": [r.to_dict() for r in results]})
