import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from cryptopulse.api.deps import get_bot, get_user_id
from cryptopulse.core.constants import CIRCUIT_OPEN_REASON
from cryptopulse.core.container import AppContainer, get_container
from cryptopulse.core.exceptions import ResourceNotFoundError
from cryptopulse.engine.bot import TradingBot
from cryptopulse.risk.models import RiskDecision
from cryptopulse.schemas.common import envelope
from cryptopulse.schemas.requests import CheckLimitsRequest, PositionSizeRequest, SetLimitsRequest

logger = logging.getLogger("RiskAPI")

router = APIRouter()


@router.get("/summary")
async def get_risk_summary(user_id: str = Depends(get_user_id), container: AppContainer = Depends(get_container)):
    """
    Limits, live usage, risk level, breaker state and recent alerts for the caller.
    404 when the user has neither a bot nor stored limits.
    """
    bot = container.bots.get(user_id)
    if bot is None:
        if await container.store.get(user_id) is None:
            raise ResourceNotFoundError("Risk summary not found")
        bot = await container.bots.get_or_create(user_id)

    return envelope(await bot.get_risk_summary())


@router.post("/calculate-position-size")
async def calculate_position_size(
    data: PositionSizeRequest,
    user_id: str = Depends(get_user_id),
    container: AppContainer = Depends(get_container),
):
    leverage = data.leverage
    if leverage is None:
        bot = container.bots.get(user_id)
        leverage = bot.limits.leverage if bot is not None else 1.0

    quote = container.evaluator.quote_position_size(
        data.risk_amount, data.entry_price, data.stop_loss_price, leverage=leverage
    )
    return envelope(
        {
            "symbol": data.symbol,
            "positionSize": quote.position_size,
            "riskAmount": quote.risk_amount,
            "leverage": quote.leverage,
            "notional": quote.notional,
            "marginRequired": quote.margin_required,
        }
    )


@router.post("/check-limits")
async def check_limits(
    data: CheckLimitsRequest,
    bot: TradingBot = Depends(get_bot),
    container: AppContainer = Depends(get_container),
):
    """
    Dry run of the risk gate for a concrete trade.
    200 when allowed, 400 with the decision payload when not.
    """
    proposal = data.to_proposal()
    bot.pipeline.roll_day()

    if bot.breaker.is_open:
        decision = RiskDecision(allowed=False, reason=CIRCUIT_OPEN_REASON, risk_score=100.0)
    else:
        portfolio = await bot.pipeline.portfolio_state()
        decision = container.evaluator.check_risk_limits(proposal, bot.limits, portfolio, bot.stats.snapshot())

    if not decision.allowed:
        return JSONResponse(status_code=400, content=envelope(decision, success=False, message=decision.reason))
    return envelope(decision)


@router.get("/metrics")
async def get_metrics(bot: TradingBot = Depends(get_bot)):
    return envelope(bot.get_performance_metrics())


@router.get("/limits")
async def get_limits(bot: TradingBot = Depends(get_bot)):
    return envelope(bot.limits)


@router.post("/set-limits")
async def set_limits(
    data: SetLimitsRequest,
    bot: TradingBot = Depends(get_bot),
    container: AppContainer = Depends(get_container),
):
    limits = data.apply(bot.limits)
    await container.store.set(bot.user_id, limits)
    bot.update_limits(limits)
    return envelope(limits, message="Risk limits updated")


@router.get("/alerts")
async def get_alerts(
    limit: int = Query(10, ge=1, le=500),
    offset: int = Query(0, ge=0),
    unacknowledged_only: bool = Query(False, alias="unacknowledgedOnly"),
    bot: TradingBot = Depends(get_bot),
):
    alerts = bot.alerts.list(limit=limit, offset=offset, include_acknowledged=not unacknowledged_only)
    return envelope(
        {
            "alerts": [a.to_wire() for a in alerts],
            "total": len(bot.alerts),
            "unacknowledged": bot.alerts.unacknowledged_count,
            "limit": limit,
            "offset": offset,
        }
    )


@router.post("/alerts/{alert_id}/acknowledge")
async def acknowledge_alert(alert_id: str, bot: TradingBot = Depends(get_bot)):
    return envelope(bot.alerts.acknowledge(alert_id), message="Alert acknowledged")


@router.get("/circuit-breaker")
async def get_circuit_breaker(bot: TradingBot = Depends(get_bot)):
    return envelope(bot.breaker.state)


@router.post("/circuit-breaker/reset")
async def reset_circuit_breaker(bot: TradingBot = Depends(get_bot)):
    """🟢 Manual override: re-enables trading after a trip."""
    state = bot.reset_circuit_breaker()
    logger.warning(f"⚠️ Circuit breaker manually reset for {bot.user_id}")
    return envelope(state, message="Circuit breaker reset")


@router.post("/reset-metrics")
async def reset_metrics(bot: TradingBot = Depends(get_bot)):
    bot.reset_daily_stats()
    return envelope(message="Daily risk metrics reset successfully")
