from fastapi import APIRouter, Depends

from cryptopulse.core.container import AppContainer, get_container
from cryptopulse.core.executors import exchange_pool
from cryptopulse.risk.models import utcnow

router = APIRouter()


@router.get("/health")
async def health_check(container: AppContainer = Depends(get_container)):
    """
    Liveness plus a coarse view of the bots.

    "degraded" when any running bot has its circuit breaker open or its
    signal queue above 80% capacity.
    """
    bots = list(container.bots.bots.values())
    running = [b for b in bots if b.is_running]

    status = "healthy"
    for bot in running:
        queue = bot.pipeline.queue
        if bot.breaker.is_open or len(queue) >= 0.8 * queue.maxsize:
            status = "degraded"
            break

    return {
        "status": status,
        "timestamp": utcnow().isoformat(),
        "env": container.settings.ENV,
        "bots": {
            "total": len(bots),
            "running": len(running),
            "circuitOpen": sum(1 for b in bots if b.breaker.is_open),
        },
        "threadPool": exchange_pool.is_active,
    }
