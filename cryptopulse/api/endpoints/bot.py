import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from cryptopulse.api.deps import get_bot, get_existing_bot
from cryptopulse.engine.bot import TradingBot
from cryptopulse.pipeline.models import SignalStatus
from cryptopulse.schemas.common import envelope
from cryptopulse.schemas.requests import CloseTradeRequest, ConfigUpdateRequest, SignalRequest

logger = logging.getLogger("BotAPI")

router = APIRouter()

# Outcome -> HTTP status. Policy rejections are values, not exceptions.
OUTCOME_STATUS_CODES = {
    SignalStatus.EXECUTED: 200,
    SignalStatus.FILTERED: 200,
    SignalStatus.CANCELLED: 200,
    SignalStatus.RISK_REJECTED: 400,
    SignalStatus.CIRCUIT_OPEN: 423,
}


@router.post("/start")
async def start_bot(bot: TradingBot = Depends(get_bot)):
    """🟢 Starts the caller's signal worker."""
    if bot.is_running:
        return envelope(bot.get_status(), message="Bot is already running")
    await bot.start()
    return envelope(bot.get_status(), message="Bot started")


@router.post("/stop")
async def stop_bot(bot: TradingBot = Depends(get_existing_bot)):
    """🔴 Stops the worker. The in-flight signal completes, queued ones are cancelled."""
    await bot.stop()
    return envelope(bot.get_status(), message="Bot stopped")


@router.get("/status")
async def get_status(bot: TradingBot = Depends(get_existing_bot)):
    return envelope(bot.get_status())


@router.get("/config")
async def get_config(bot: TradingBot = Depends(get_bot)):
    return envelope(bot.get_config())


@router.put("/config")
async def update_config(data: ConfigUpdateRequest, bot: TradingBot = Depends(get_bot)):
    config = bot.update_config(data.model_dump(exclude_unset=True))
    return envelope(config, message="Configuration updated")


@router.post("/signals")
async def submit_signal(data: SignalRequest, bot: TradingBot = Depends(get_existing_bot)):
    """Enqueues a signal and waits for its outcome."""
    outcome = await bot.submit_and_wait(data.to_signal())
    status_code = OUTCOME_STATUS_CODES.get(outcome.status, 200)
    body = envelope(outcome, success=outcome.executed, message=None if outcome.executed else outcome.error)
    return JSONResponse(status_code=status_code, content=body)


@router.delete("/signals/{signal_id}")
async def cancel_signal(signal_id: str, bot: TradingBot = Depends(get_existing_bot)):
    bot.cancel_signal(signal_id)
    return envelope(message=f"Signal {signal_id} cancelled")


@router.get("/signals/history")
async def get_signal_history(
    limit: int = Query(50, ge=1, le=1000),
    status: Optional[SignalStatus] = Query(None),
    bot: TradingBot = Depends(get_bot),
):
    outcomes = bot.pipeline.get_history(limit=limit, status=status)
    return envelope([o.to_wire() for o in outcomes])


@router.post("/trades/{order_id}/close")
async def close_trade(order_id: str, data: CloseTradeRequest, bot: TradingBot = Depends(get_existing_bot)):
    pnl = await bot.close_trade(order_id, data.exit_price)
    return envelope(
        {
            "orderId": order_id,
            "exitPrice": data.exit_price,
            "realizedPnl": pnl,
            "dailyStats": bot.stats.snapshot().to_wire(),
            "circuitBreaker": bot.breaker.state.to_wire(),
        }
    )
