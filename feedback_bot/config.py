# feedback_bot/config.py
# Loads .env and exposes every setting the service reads from the environment.

import json
import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# __file__ -> feedback_bot/config.py, the .env lives one level up (project root)
_package_dir = os.path.dirname(os.path.abspath(__file__))
project_root_dir = os.path.dirname(_package_dir)
dotenv_path = os.path.join(project_root_dir, '.env')

if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)
elif not load_dotenv():
    logger.info("No .env file found at %s, relying on the process environment.", dotenv_path)


def _get_env(key: str, default: str = None):
    val = os.getenv(key)
    return val.strip() if val and val.strip() else default


def _get_int(key: str, default: int = None):
    raw = _get_env(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.error("%s ('%s') is not a number, ignoring it.", key, raw)
        return default


def _get_bool(key: str) -> bool:
    return (_get_env(key, "") or "").lower() in {"1", "true", "yes", "on"}


# --- Google Sheets ---
SHEET_ID = _get_env("SHEET_ID")
GOOGLE_JSON_KEY = _get_env("GOOGLE_JSON_KEY")
GOOGLE_APPLICATION_CREDENTIALS = _get_env("GOOGLE_APPLICATION_CREDENTIALS", "credentials.json")
HISTORY_ENABLED = _get_bool("HISTORY_ENABLED")

# --- HTTP ---
API_KEY = _get_env("API_KEY")
PORT = _get_int("PORT", 3000)
LOG_LEVEL = _get_env("LOG_LEVEL", "INFO")

# --- Telegram ---
TELEGRAM_BOT_TOKEN = _get_env("TELEGRAM_BOT_TOKEN")
# Image proxy uses the old bot that still has access to previously uploaded files
TELEGRAM_IMAGE_BOT_TOKEN = _get_env("TELEGRAM_IMAGE_BOT_TOKEN")
TELEGRAM_GROUP_CHAT_ID = _get_int("TELEGRAM_GROUP_CHAT_ID")
TELEGRAM_WEBHOOK_URL = _get_env("TELEGRAM_WEBHOOK_URL")

# Telegram user id -> host name. Send /myid to the bot to find an id.
DEFAULT_TELEGRAM_HOSTS = {
    '814408956': 'Quốc',
    '852487488': 'Taiz',
    '642649821': 'Lâm',
    '801593125': 'Nghĩa',
}


def _load_host_map() -> dict:
    raw = _get_env("TELEGRAM_HOST_MAP")
    if not raw:
        return dict(DEFAULT_TELEGRAM_HOSTS)
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error("TELEGRAM_HOST_MAP is not valid JSON (%s), using the built-in map.", e)
        return dict(DEFAULT_TELEGRAM_HOSTS)
    if not isinstance(parsed, dict):
        logger.error("TELEGRAM_HOST_MAP must be a JSON object, using the built-in map.")
        return dict(DEFAULT_TELEGRAM_HOSTS)
    return {str(user_id): str(host) for user_id, host in parsed.items()}


TELEGRAM_ID_TO_HOST = _load_host_map()

# --- Cloudflare R2 (photo uploads from Telegram replies) ---
CLOUDFLARE_ACCOUNT_ID = _get_env("CLOUDFLARE_ACCOUNT_ID")
CLOUDFLARE_R2_ACCESS_KEY_ID = _get_env("CLOUDFLARE_R2_ACCESS_KEY_ID")
CLOUDFLARE_R2_SECRET_ACCESS_KEY = _get_env("CLOUDFLARE_R2_SECRET_ACCESS_KEY")
CLOUDFLARE_R2_BUCKET_NAME = _get_env("CLOUDFLARE_R2_BUCKET_NAME")
CLOUDFLARE_CDN_URL = (_get_env("CLOUDFLARE_CDN_URL") or "").rstrip("/")
