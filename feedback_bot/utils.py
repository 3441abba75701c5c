# feedback_bot/utils.py
# Telegram helpers: safe sending, group notifications and feedback message formatting.

import asyncio
import logging
from typing import Any, Dict, Optional

from aiogram import Bot

from . import config, google_sheets

logger = logging.getLogger(__name__)


async def send_telegram_message(bot_instance: Optional['Bot'], chat_id, text: str, **kwargs) -> None:
    """Sends a message, logging delivery failures instead of raising them."""
    if bot_instance is None:
        logger.error("TELEGRAM_BOT_TOKEN not configured, dropping message to %s", chat_id)
        return

    try:
        await bot_instance.send_message(chat_id, text, **kwargs)
    except Exception as e_send:
        logger.error("Failed to send Telegram message to %s: %s - %s", chat_id, type(e_send).__name__, e_send)


def pending_feedback_for_host(rows: list, host: Optional[str]) -> list:
    return [r for r in rows if r.get("host") == host and r.get("stage") == google_sheets.STAGE_FEEDBACK]


def _shop_link(shop: str) -> str:
    url = shop if shop.startswith("http") else f"https://{shop}"
    return f"[{shop}]({url})"


def format_feedback_message(record: Dict[str, Any]) -> str:
    """One pending feedback as a Markdown message. The ``#row`` tag is what replies are matched on."""
    shop = record.get("shop") or "N/A"
    note = record.get("note") or record.get("message") or ""
    link = record.get("link")
    file_status = f"[File Feedback]({link})" if link else "KHÔNG có file"

    text = (
        f"• ID: #{record['rowNumber']}\n"
        f"• Shop: {_shop_link(shop)}\n"
        f"• File: {file_status}"
    )
    if note:
        text += f"\n• Note: {note}"
    return text


async def notify_host_feedback_count(bot_instance: Optional['Bot'], host: str) -> None:
    """Posts the host's pending feedback count to the team group chat."""
    group_chat_id = config.TELEGRAM_GROUP_CHAT_ID
    if group_chat_id is None:
        logger.warning("TELEGRAM_GROUP_CHAT_ID not configured, skipping notification for %s", host)
        return

    try:
        data = await asyncio.to_thread(google_sheets.get_all_feedback)
        rows = data.get("rows", [])
        feedback_count = len(pending_feedback_for_host(rows, host))
        if feedback_count > 0:
            await send_telegram_message(bot_instance, group_chat_id, f"📬 {host} có {feedback_count} feedback")
    except Exception as e:
        logger.error("Failed to notify group about %s: %s - %s", host, type(e).__name__, e)
