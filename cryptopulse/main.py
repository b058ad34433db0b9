import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from cryptopulse.api.errors import register_exception_handlers
from cryptopulse.api.router import api_router
from cryptopulse.core.container import AppContainer
from cryptopulse.core.executors import exchange_pool
from cryptopulse.core.logger import setup_logging
from cryptopulse.core.settings import Settings, settings as default_settings

logger = logging.getLogger("API")


def create_app(settings: Optional[Settings] = None, container: Optional[AppContainer] = None) -> FastAPI:
    settings = settings or default_settings
    container = container or AppContainer(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application Lifecycle Management.

        Startup: thread pool, restore per-user limits and idle bots
        Shutdown: drain bot workers, close DB connections
        """
        # --- STARTUP ---
        logger.info(f"🌐 {settings.APP_NAME} API Starting ({settings.ENV})...")
        exchange_pool.start(settings.EXCHANGE_POOL_WORKERS)

        try:
            await container.bots.restore()
        except Exception as e:
            logger.error(f"❌ Failed to restore state: {e}")

        logger.info("🛑 Bots are STOPPED. Use POST /api/bot/start to launch.")

        yield  # Application runs here

        # --- SHUTDOWN (Graceful) ---
        logger.info("🛑 API Stopping... Initiating graceful shutdown.")
        try:
            async with asyncio.timeout(20):
                await container.close()
        except asyncio.TimeoutError:
            logger.critical("❌ Shutdown timeout exceeded! Forcing termination.")
        finally:
            exchange_pool.stop()
            logger.info("✅ Shutdown Complete.")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Crypto trading risk gate: position sizing, risk limits, circuit breaker",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.container = container
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app


if __name__ == "__main__":
    setup_logging()
    uvicorn.run("cryptopulse.main:create_app", factory=True, host="0.0.0.0", port=8000)
