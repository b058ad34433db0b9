from fastapi import Depends, Header

from cryptopulse.core.constants import USER_ID_HEADER
from cryptopulse.core.container import AppContainer, get_container
from cryptopulse.core.exceptions import ResourceNotFoundError
from cryptopulse.engine.bot import TradingBot


async def get_user_id(user_id: str = Header(..., alias=USER_ID_HEADER, min_length=1)) -> str:
    return user_id


async def get_bot(
    user_id: str = Depends(get_user_id), container: AppContainer = Depends(get_container)
) -> TradingBot:
    """Resolves the caller's bot, creating it with stored or default limits."""
    return await container.bots.get_or_create(user_id)


async def get_existing_bot(
    user_id: str = Depends(get_user_id), container: AppContainer = Depends(get_container)
) -> TradingBot:
    bot = container.bots.get(user_id)
    if bot is None:
        raise ResourceNotFoundError(f"No trading bot for {user_id}")
    return bot
