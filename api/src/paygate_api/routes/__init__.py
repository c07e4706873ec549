"""API routes package.

- telegram: inbound bot updates, routed by secret token
- webhooks: Stripe payment events

All routers are registered in main.py with /api prefix.
"""

from paygate_api.routes.telegram import router as telegram_router
from paygate_api.routes.webhooks import router as webhooks_router

__all__ = [
    "telegram_router",
    "webhooks_router",
]
