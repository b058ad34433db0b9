import logging
from typing import Optional

import httpx

logger = logging.getLogger("TelegramClient")

TELEGRAM_API = "https://api.telegram.org"


class TelegramClient:
    """Posts operator alerts to one Telegram chat. A no-op when unconfigured."""

    def __init__(self, token: str, chat_id: Optional[int], timeout: float = 5.0):
        self.chat_id = chat_id
        self.timeout = timeout
        self.enabled = bool(token and chat_id)
        self._url = f"{TELEGRAM_API}/bot{token}/sendMessage"

        if not self.enabled:
            logger.warning("⚠️ Telegram not configured, risk alerts stay local")

    async def send(self, text: str) -> bool:
        """Returns True when Telegram accepted the message. Never raises."""
        if not self.enabled:
            return False

        body = {"chat_id": self.chat_id, "text": text, "parse_mode": "HTML", "disable_web_page_preview": True}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self._url, json=body)
        except httpx.HTTPError as e:
            logger.error(f"📵 Telegram unreachable: {e}")
            return False

        if resp.is_success:
            return True
        logger.error(f"❌ Telegram rejected alert ({resp.status_code}): {resp.text}")
        return False
