# feedback_bot/bot.py
# Initialises the Telegram Bot objects and the Dispatcher that serves webhook updates.

import logging
from typing import Optional

from aiogram import Bot, Dispatcher

from . import config

logger = logging.getLogger(__name__)


def _create_bot(token: Optional[str], label: str) -> Optional[Bot]:
    if not token:
        return None
    try:
        return Bot(token=token)
    except Exception as e:
        error_message = f"Could not initialise the {label} Bot: {e}. Check the token."
        logger.critical(error_message)
        raise RuntimeError(error_message) from e


def _create_image_bot(token: Optional[str], main_bot: Optional[Bot]) -> Optional[Bot]:
    # Falls back to the main bot when no separate image token is set
    return _create_bot(token, "image proxy") or main_bot


bot = _create_bot(config.TELEGRAM_BOT_TOKEN, "main")
if bot is None:
    logger.warning("TELEGRAM_BOT_TOKEN is not configured, Telegram features are disabled.")

image_bot = _create_image_bot(config.TELEGRAM_IMAGE_BOT_TOKEN, bot)

dp = Dispatcher()


async def close_sessions() -> None:
    for instance in {id(b): b for b in (bot, image_bot) if b is not None}.values():
        await instance.session.close()
