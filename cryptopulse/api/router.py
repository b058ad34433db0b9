from fastapi import APIRouter

from cryptopulse.api.endpoints import bot, health, risk

api_router = APIRouter()

# 1. System (Health)
api_router.include_router(health.router, tags=["System"])

# 2. Risk gate
api_router.include_router(risk.router, prefix="/risk", tags=["Risk"])

# 3. Bot control & signals
api_router.include_router(bot.router, prefix="/bot", tags=["Bot"])
