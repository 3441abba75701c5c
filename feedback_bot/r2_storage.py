# feedback_bot/r2_storage.py
# Copies photos attached to Telegram replies into Cloudflare R2 and returns their CDN URL.

import asyncio
import logging
import time
import uuid

import boto3
from aiogram import Bot

from . import config

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "telegram"

_s3 = None


def _get_s3():
    global _s3
    if _s3 is None:
        _s3 = boto3.client(
            "s3",
            region_name="auto",
            endpoint_url=f"https://{config.CLOUDFLARE_ACCOUNT_ID}.r2.cloudflarestorage.com",
            aws_access_key_id=config.CLOUDFLARE_R2_ACCESS_KEY_ID,
            aws_secret_access_key=config.CLOUDFLARE_R2_SECRET_ACCESS_KEY,
        )
    return _s3


def build_object_key(file_path: str) -> str:
    ext = file_path.rsplit(".", 1)[-1] if "." in file_path else "jpg"
    return f"{UPLOAD_PREFIX}/{int(time.time() * 1000)}-{uuid.uuid4()}.{ext}"


async def upload_telegram_photo(bot_instance: 'Bot', file_id: str) -> str:
    """
    Downloads a Telegram file and stores it in the R2 bucket.
    Returns the public URL, or an ``Error: ...`` string that ends up in the
    comment text so the reply is still recorded.
    """
    if bot_instance is None:
        return "Error: Bot token not configured"

    try:
        tg_file = await bot_instance.get_file(file_id)
        if not tg_file.file_path:
            return "Error: Could not get file from Telegram"

        buffer = await bot_instance.download_file(tg_file.file_path)
        key = build_object_key(tg_file.file_path)
        ext = key.rsplit(".", 1)[-1]

        await asyncio.to_thread(
            _get_s3().put_object,
            Bucket=(config.CLOUDFLARE_R2_BUCKET_NAME or "").strip(),
            Key=key,
            Body=buffer.getvalue(),
            ContentType=f"image/{ext}",
        )
        logger.info("Uploaded Telegram file %s to R2 as %s", file_id, key)
        return f"{config.CLOUDFLARE_CDN_URL}/{key}"
    except Exception as e:
        logger.error("Failed to upload Telegram file %s to R2: %s - %s", file_id, type(e).__name__, e)
        return f"Error: {e}"
