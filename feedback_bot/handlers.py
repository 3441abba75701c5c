# feedback_bot/handlers.py
# Handlers for Telegram webhook updates. Registration order is dispatch priority.

import asyncio
import logging
import re
from typing import Optional

from aiogram import Router
from aiogram.types import LinkPreviewOptions, Message

from . import comments, config, google_sheets
from .r2_storage import upload_telegram_photo
from .utils import format_feedback_message, pending_feedback_for_host

logger = logging.getLogger(__name__)

main_router = Router(name="feedback_handlers_router")

# Lower-cased spellings people type after "// " -> host name in the sheet
HOST_ALIASES = {
    'quoc': 'Quốc',
    'quốc': 'Quốc',
    'taiz': 'Taiz',
    'tai': 'Taiz',
    'tài': 'Taiz',
    'lam': 'Lâm',
    'lâm': 'Lâm',
    'nghia': 'Nghĩa',
    'nghĩa': 'Nghĩa',
    'tuan': 'Tuan',
    'tuấn': 'Tuan',
}

ROW_REF_RE = re.compile(r"#(\d+)")
DONE_RE = re.compile(r"^done(?:$|[ \-:])", re.IGNORECASE)
DONE_PREFIX_RE = re.compile(r"^done[\s\-:]*", re.IGNORECASE)

NO_PREVIEW = LinkPreviewOptions(is_disabled=True)


def _text(message: Message) -> str:
    return (message.text or "").strip()


def _first_name(message: Message) -> str:
    return message.from_user.first_name or "User"


def exact_command(command: str):
    """Commands only count when they are the whole (trimmed) message text."""
    def matches(message: Message) -> bool:
        return _text(message) == command
    return matches


def is_feedback_list_request(message: Message) -> bool:
    text = _text(message)
    return text == "//" or text.startswith("// ")


def replied_row_number(message: Message):
    """Matches replies to a feedback message and injects ``row_number`` taken from its ``#N`` tag."""
    replied = message.reply_to_message
    if replied is None:
        return False
    match = ROW_REF_RE.search(replied.text or "")
    if not match:
        return False
    return {"row_number": int(match.group(1))}


def resolve_target_host(text: str, current_host: str) -> str:
    if not text.startswith("// "):
        return current_host
    requested = text[3:].strip()
    return HOST_ALIASES.get(requested.lower(), requested)


def attached_image_file_id(message: Message) -> Optional[str]:
    """Uncompressed image documents win over compressed photos; the largest photo size is last."""
    document = message.document
    if document and document.mime_type and document.mime_type.startswith("image/"):
        return document.file_id
    if message.photo:
        return message.photo[-1].file_id
    return None


async def send_feedback_list(message: Message, feedbacks: list) -> None:
    for fb in feedbacks:
        await message.answer(format_feedback_message(fb), parse_mode="Markdown", link_preview_options=NO_PREVIEW)


@main_router.message(exact_command("/myid"))
async def cmd_myid_handler(message: Message):
    username = message.from_user.username or ""
    await message.answer(
        "🆔 *Thông tin của bạn:*\n\n"
        f"• User ID: `{message.from_user.id}`\n"
        f"• Chat ID: `{message.chat.id}`\n"
        f"• Username: @{username}",
        parse_mode="Markdown",
    )


@main_router.message(exact_command("/groupid"))
async def cmd_groupid_handler(message: Message):
    chat = message.chat
    hint = "✅ Đây là Group ID, copy vào .env!" if chat.type != "private" else "⚠️ Đây là chat riêng, không phải group"
    await message.answer(
        "🆔 *Thông tin chat:*\n\n"
        f"• Chat ID: `{chat.id}`\n"
        f"• Type: {chat.type}\n"
        f"• Title: {chat.title or 'N/A'}\n\n"
        f"{hint}",
        parse_mode="Markdown",
    )


@main_router.message(is_feedback_list_request)
async def feedback_list_handler(message: Message):
    user_id = str(message.from_user.id)
    current_host = config.TELEGRAM_ID_TO_HOST.get(user_id)

    if not current_host:
        await message.answer(
            "⚠️ Chưa được đăng ký trong hệ thống\n\n"
            f"🆔 User ID của bạn: `{user_id}`\n\n"
            "Gửi ID này cho admin để được thêm vào.",
            parse_mode="Markdown",
        )
        return

    target_host = resolve_target_host(_text(message), current_host)
    data = await asyncio.to_thread(google_sheets.get_all_feedback)
    rows = data.get("rows", [])
    user_feedbacks = pending_feedback_for_host(rows, target_host)
    logger.info("User %s requested pending feedback for %s: %d found", user_id, target_host, len(user_feedbacks))

    if not user_feedbacks:
        await message.answer(f"✅ Không có feedback nào cho {target_host}")
        return

    await send_feedback_list(message, user_feedbacks)


@main_router.message(replied_row_number)
async def feedback_reply_handler(message: Message, row_number: int):
    reply_text = _text(message) or message.caption or ""
    first_name = _first_name(message)
    file_id = attached_image_file_id(message)

    try:
        if DONE_RE.match(reply_text):
            await asyncio.to_thread(google_sheets.set_stage, row_number, google_sheets.STAGE_DONE)

            extra_text = DONE_PREFIX_RE.sub("", reply_text, count=1).strip()
            comment_text = ""
            if file_id:
                photo_url = await upload_telegram_photo(message.bot, file_id)
                comment_text = f"[Telegram] {first_name}: {extra_text or 'Done'}\n{photo_url}"
            elif extra_text:
                comment_text = f"[Telegram] {first_name}: {extra_text}"

            if comment_text:
                await asyncio.to_thread(comments.append_comment, row_number, comment_text, comments.AUTHOR_TELEGRAM)

            await message.answer(f"✅ #{row_number} → Done!")

            # Follow up with what is still pending for the sender
            data = await asyncio.to_thread(google_sheets.get_all_feedback)
            rows = data.get("rows", [])
            host = config.TELEGRAM_ID_TO_HOST.get(str(message.from_user.id))
            remaining = pending_feedback_for_host(rows, host)
            if remaining:
                await message.answer(f"📋 Còn {len(remaining)} feedback:")
                await send_feedback_list(message, remaining)
            else:
                await message.answer("🎉 Không còn feedback nào!")
        else:
            comment_text = f"[Telegram] {first_name}: {reply_text}"
            if file_id:
                photo_url = await upload_telegram_photo(message.bot, file_id)
                comment_text += f"\n{photo_url}"
            await asyncio.to_thread(comments.append_comment, row_number, comment_text, comments.AUTHOR_TELEGRAM)
    except Exception as e:
        logger.error("Reply to #%s failed: %s - %s", row_number, type(e).__name__, e)
        await message.answer(f"❌ Lỗi: {e}")


@main_router.message(exact_command("/start"))
async def cmd_start_handler(message: Message):
    await message.answer(
        f"👋 Xin chào {_first_name(message)}!\n\n"
        "🔹 Gõ // để xem feedback của bạn\n"
        "🔹 Gõ /help để xem hướng dẫn"
    )


@main_router.message(exact_command("/help"))
async def cmd_help_handler(message: Message):
    await message.answer(
        "📚 *Hướng dẫn sử dụng Bot*\n\n"
        "`//` - Xem danh sách feedback của bạn\n"
        "`/start` - Bắt đầu\n"
        "`/help` - Xem hướng dẫn",
        parse_mode="Markdown",
    )
