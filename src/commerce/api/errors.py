"""HTTP mapping for the commerce error taxonomy.

Business-rule errors keep their own status code (404, 409 or 422) and a
stable ``error`` code. Data-layer errors become 503 with ``retryable`` so
clients can tell "try again" apart from "fix your input".
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from commerce.errors import CommerceRuleError, DataAccessError

logger = structlog.get_logger(__name__)


def register_commerce_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CommerceRuleError)
    async def handle_rule_error(request: Request, exc: CommerceRuleError):
        return JSONResponse(
            status_code=exc.http_status,
            content={"error": exc.code, "message": exc.message, "details": exc.details},
        )

    @app.exception_handler(DataAccessError)
    async def handle_data_access_error(request: Request, exc: DataAccessError):
        logger.error("Data access failure", path=request.url.path, error=exc.code, reason=str(exc))
        return JSONResponse(
            status_code=503,
            content={"error": exc.code, "message": str(exc), "retryable": exc.retryable},
        )
