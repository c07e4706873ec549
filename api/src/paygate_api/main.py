"""Paygate HTTP entry point.

One app serves every bot integration:
- ``POST /api/telegram/webhook``: Telegram updates, routed by secret token
- ``POST /api/webhooks/stripe``: signed Stripe events
- ``GET /api/ping``: health check

Deployed behind API Gateway through Mangum; ``run_server`` starts uvicorn for
local development.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from mangum import Mangum

from paygate.utils.logging import configure_logging, get_logger
from paygate_api.exceptions import register_exception_handlers
from paygate_api.middleware.correlation import CorrelationIdMiddleware
from paygate_api.routes import telegram_router, webhooks_router

configure_logging(logging.INFO)
logger = get_logger(__name__)

API_PREFIX = "/api"

app = FastAPI(
    title="Paygate API",
    description="Telegram bot and Stripe webhooks for paid channel access",
    version="0.1.0",
)
app.add_middleware(CorrelationIdMiddleware)
register_exception_handlers(app)

for router in (telegram_router, webhooks_router):
    app.include_router(router, prefix=API_PREFIX)


@app.get(f"{API_PREFIX}/ping")
async def ping() -> dict[str, Any]:
    return {
        "status": "ok",
        "service": "paygate-api",
        "timestamp": datetime.now(UTC).isoformat(),
    }


handler = Mangum(app, lifespan="off")


def run_server(host: str = "127.0.0.1", port: int = 8080, reload: bool = True) -> None:
    """Serve the app with uvicorn, reloading on source changes by default."""
    import uvicorn

    logger.info("Starting Paygate API on %s:%d", host, port)
    if not reload:
        uvicorn.run(app, host=host, port=port)
        return

    # uvicorn only reloads apps given as an import string
    uvicorn.run(
        "paygate_api.main:app",
        host=host,
        port=port,
        reload=True,
        reload_dirs=["api/src", "shared/src"],
    )


if __name__ == "__main__":
    run_server()
