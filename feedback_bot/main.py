# feedback_bot/main.py
# FastAPI app: the dashboard "exec" endpoint and the Telegram webhook routes.

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from aiogram.types import Update
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from . import actions, config
from . import bot as bot_module
from .handlers import main_router

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    logging.basicConfig(
        level=(config.LOG_LEVEL or "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    logging.getLogger("aiogram.event").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _setup_logging()
    logger.info("Feedback API starting, Telegram bot %s.", "enabled" if bot_module.bot else "disabled")
    if not config.API_KEY:
        logger.warning("API_KEY not set! /api/exec is not protected.")

    yield

    logger.info("Feedback API stopping, closing Telegram sessions.")
    await bot_module.close_sessions()


# Webhook updates are fed to the dispatcher directly, no polling
bot_module.dp.include_router(main_router)

app = FastAPI(title="Feedback Sheet API", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


class InvalidApiKey(Exception):
    pass


@app.exception_handler(InvalidApiKey)
async def invalid_api_key_handler(request: Request, exc: InvalidApiKey):
    return JSONResponse(status_code=403, content={"success": False, "message": "Forbidden: Invalid API Key"})


def require_api_key(request: Request) -> None:
    """Static shared-secret check. No key configured means the check is off."""
    if not config.API_KEY:
        logger.warning("API_KEY not set, skipping API key check for %s", request.url.path)
        return
    if request.headers.get("x-api-key") != config.API_KEY:
        raise InvalidApiKey()


def _failure(message: str) -> dict:
    return {"success": False, "message": message}


# ==================== TELEGRAM BOT WEBHOOK ====================
@app.post("/api/telegram-webhook")
async def telegram_webhook(request: Request):
    # Telegram retries on anything but 200, so every outcome answers ok
    try:
        data = await request.json()
        if not isinstance(data, dict) or "message" not in data:
            return {"ok": True}

        bot = bot_module.bot
        if bot is None:
            logger.error("Webhook update received but TELEGRAM_BOT_TOKEN is not configured.")
            return {"ok": True}

        update = Update.model_validate(data, context={"bot": bot})
        await bot_module.dp.feed_update(bot, update)
    except Exception as e:
        logger.exception("Telegram webhook error: %s - %s", type(e).__name__, e)
    return {"ok": True}


@app.get("/api/telegram-setup")
async def telegram_setup(url: Optional[str] = None):
    bot = bot_module.bot
    if bot is None:
        return _failure("TELEGRAM_BOT_TOKEN not configured")

    webhook_url = url or config.TELEGRAM_WEBHOOK_URL
    if not webhook_url:
        return _failure("Missing webhook url: pass ?url= or set TELEGRAM_WEBHOOK_URL")

    try:
        result = await bot.set_webhook(webhook_url)
    except Exception as e:
        logger.error("setWebhook failed: %s - %s", type(e).__name__, e)
        return _failure(str(e))

    if result:
        return {"success": True, "message": f"Webhook đã được thiết lập: {webhook_url}", "result": result}
    return {"success": False, "message": "Failed to set webhook", "result": result}


@app.get("/api/telegram-info")
async def telegram_info():
    bot = bot_module.bot
    if bot is None:
        return _failure("TELEGRAM_BOT_TOKEN not configured")

    try:
        info = await bot.get_webhook_info()
    except Exception as e:
        logger.error("getWebhookInfo failed: %s - %s", type(e).__name__, e)
        return _failure(str(e))
    return {"success": True, "webhookInfo": info.model_dump(mode="json", exclude_none=True)}


@app.get("/api/telegram-image")
async def telegram_image(file_id: Optional[str] = Query(None, alias="fileId")):
    if not file_id:
        return _failure("Missing fileId parameter")

    image_bot = bot_module.image_bot
    if image_bot is None:
        return _failure("Telegram bot token not configured")

    try:
        tg_file = await image_bot.get_file(file_id)
    except Exception as e:
        logger.error("getFile failed for %s: %s - %s", file_id, type(e).__name__, e)
        return _failure(f"Failed to get file from Telegram: {e}")

    return {
        "success": True,
        "url": image_bot.session.api.file_url(image_bot.token, tg_file.file_path),
        "fileId": file_id,
    }


# ==================== DASHBOARD EXEC ====================
@app.post("/api/exec", dependencies=[Depends(require_api_key)])
async def exec_post(request: Request):
    action = None
    try:
        body = await request.json()
        if not isinstance(body, dict):
            raise ValueError("Request body must be a JSON object")
        action = body.get("action")
        return await actions.run_post_action(body)
    except Exception as e:
        logger.error("API Error in action %s: %s - %s", action, type(e).__name__, e)
        return _failure(str(e))


@app.get("/api/exec", dependencies=[Depends(require_api_key)])
async def exec_get(action: Optional[str] = None):
    try:
        return await actions.run_get_action(action)
    except Exception as e:
        logger.error("API Error in action %s: %s - %s", action, type(e).__name__, e)
        return _failure(str(e))


@app.get("/health")
async def health():
    return PlainTextResponse("ok")


if __name__ == "__main__":
    uvicorn.run("feedback_bot.main:app", host="0.0.0.0", port=config.PORT)
