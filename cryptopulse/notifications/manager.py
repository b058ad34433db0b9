import asyncio
import logging
from typing import Optional, Set

from cryptopulse.notifications.telegram import TelegramClient

logger = logging.getLogger("NotificationManager")

ICONS = {
    "INFO": "ℹ️",
    "SUCCESS": "✅",
    "WARNING": "⚠️",
    "ERROR": "❌",
    "CRITICAL": "🚨",
}


class NotificationManager:
    """
    Central Alert System.
    Decouples the risk core from specific channels. Never blocks the pipeline.
    """

    def __init__(self, telegram: Optional[TelegramClient] = None):
        self.telegram = telegram
        self._pending: Set[asyncio.Task] = set()

    async def push(self, message: str, level: str = "INFO"):
        """Logs the alert and hands it to Telegram in the background. Level is one of ICONS."""
        log_level = logging.ERROR if level in ("ERROR", "CRITICAL") else logging.INFO
        logger.log(log_level, f"🔔 [{level}] {message}")

        if self.telegram is None or not self.telegram.enabled:
            return
        text = f"{ICONS.get(level, ICONS['INFO'])} <b>[{level}]</b>\n{message}"
        self._track(asyncio.create_task(self.telegram.send(text)))

    def _track(self, task: asyncio.Task) -> None:
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def push_nowait(self, message: str, level: str = "INFO"):
        """Schedules push() from synchronous code (e.g. circuit breaker listeners)."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"⚠️ No running loop, alert logged only: {message}")
            return

        self._track(loop.create_task(self.push(message, level)))

    def notify_circuit_open(self, user_id: str, reason: str):
        self.push_nowait(f"<b>Trading suspended</b> for {user_id}\n<b>Reason:</b> {reason}", level="CRITICAL")

    def notify_risk_rejection(self, user_id: str, symbol: str, reason: str):
        self.push_nowait(f"<b>Trade blocked</b> for {user_id}\n<b>Symbol:</b> {symbol}\n<b>Reason:</b> {reason}", level="WARNING")

    def notify_trade(self, user_id: str, symbol: str, side: str, quantity: float, price: float):
        """Helper for standard trade alerts."""
        msg = (
            f"<b>User:</b> {user_id}\n"
            f"<b>Symbol:</b> {symbol}\n"
            f"<b>Action:</b> {side} {quantity} @ {price}"
        )
        self.push_nowait(msg, level="SUCCESS")
