# feedback_bot/google_sheets.py
# Spreadsheet-as-record-store access: feedback rows, guide rows and the history log.

import json
import logging
from datetime import datetime

import gspread
import pytz
from google.oauth2.service_account import Credentials

from . import config

logger = logging.getLogger(__name__)

# --- Settings ---
VN_TZ = pytz.timezone('Asia/Ho_Chi_Minh')

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

FEEDBACK_WORKSHEET_NAME = "Feedback"
GUIDES_WORKSHEET_NAME = "File Hướng Dẫn"
HISTORY_WORKSHEET_NAME = "History"

# Feedback sheet has two header rows, data starts at row 3
FEEDBACK_HEADER_ROWS = 2
# Guides and history sheets have a single header row
GUIDES_HEADER_ROWS = 1
HISTORY_HEADER_ROWS = 1

# Feedback columns A..O in sheet order
FEEDBACK_FIELDS = [
    "id",         # A
    "deadline",   # B
    "host",       # C
    "shop",       # D
    "link",       # E
    "stage",      # F
    "tags",       # G
    "devNote",    # H  (comment cell)
    "imageNote",  # I
    "note",       # J
    "time",       # K  created at
    "message",    # L
    "messageId",  # M
    "imageId",    # N
    "updatedAt",  # O
]
FEEDBACK_COLUMN_COUNT = len(FEEDBACK_FIELDS)
FEEDBACK_LAST_COLUMN = "O"

HOST_INDEX = FEEDBACK_FIELDS.index("host")
COMMENTS_INDEX = FEEDBACK_FIELDS.index("devNote")
STAGE_COLUMN = "F"
COMMENTS_COLUMN = "H"
UPDATED_AT_COLUMN = "O"

GUIDE_FIELDS = ["type", "template", "link", "app"]
GUIDE_LAST_COLUMN = "D"

HISTORY_FIELDS = ["time", "action", "details"]

STAGE_FEEDBACK = "Feedback"
STAGE_DONE = "Done"

TIMESTAMP_FORMAT = "%H:%M:%S %d/%m/%Y"
COMMENT_TIME_FORMAT = "%H:%M %d/%m/%Y"

# --- Authorisation ---
_CLIENT = None


def get_gspread_client():
    global _CLIENT
    if _CLIENT is None:
        try:
            if config.GOOGLE_JSON_KEY:
                creds = Credentials.from_service_account_info(json.loads(config.GOOGLE_JSON_KEY), scopes=SCOPES)
            else:
                creds = Credentials.from_service_account_file(config.GOOGLE_APPLICATION_CREDENTIALS, scopes=SCOPES)
            _CLIENT = gspread.authorize(creds)
        except Exception as e:
            logger.error("Google Sheets authorisation failed: %s - %s", type(e).__name__, e)
            raise
    return _CLIENT


def _get_worksheet(title: str):
    if not config.SHEET_ID:
        raise RuntimeError("SHEET_ID is not configured")
    return get_gspread_client().open_by_key(config.SHEET_ID).worksheet(title)


# --- Timestamps ---
def now_vn() -> datetime:
    return datetime.now(VN_TZ)


def format_timestamp(moment: datetime = None) -> str:
    """Record timestamp, e.g. ``22:30:05 09/01/2026``."""
    return (moment or now_vn()).strftime(TIMESTAMP_FORMAT)


def format_comment_time(moment: datetime = None) -> str:
    """Comment timestamp, e.g. ``22:30 09/01/2026``."""
    return (moment or now_vn()).strftime(COMMENT_TIME_FORMAT)


def _pad(row: list, width: int) -> list:
    return list(row) + [""] * (width - len(row))


# --- Feedback ---
def get_all_feedback() -> dict:
    """
    Reads the whole feedback sheet.
    Returns {"headers": [...], "rows": [...]} where every row is a dict with
    its 1-based ``rowNumber`` and the fields from FEEDBACK_FIELDS.
    Rows with neither shop nor host are skipped.
    """
    sheet = _get_worksheet(FEEDBACK_WORKSHEET_NAME)
    data = sheet.get_all_values()
    if len(data) <= FEEDBACK_HEADER_ROWS:
        return {"headers": [], "rows": []}

    headers = data[0]
    rows = []
    for row_number, raw in enumerate(data[FEEDBACK_HEADER_ROWS:], start=FEEDBACK_HEADER_ROWS + 1):
        values = _pad(raw, FEEDBACK_COLUMN_COUNT)
        record = {"rowNumber": row_number}
        record.update(zip(FEEDBACK_FIELDS, values))
        if record["shop"] or record["host"]:
            rows.append(record)
    logger.debug("Read %d feedback rows.", len(rows))
    return {"headers": headers, "rows": rows}


def get_feedback_row(row_number: int) -> list:
    """Values of columns A..O only; anything the team keeps to the right of O is not ours."""
    sheet = _get_worksheet(FEEDBACK_WORKSHEET_NAME)
    return sheet.row_values(row_number)[:FEEDBACK_COLUMN_COUNT]


def append_feedback_row(values: list) -> None:
    sheet = _get_worksheet(FEEDBACK_WORKSHEET_NAME)
    sheet.append_row(values, value_input_option="USER_ENTERED")


def update_feedback_row(row_number: int, values: list) -> None:
    sheet = _get_worksheet(FEEDBACK_WORKSHEET_NAME)
    sheet.update(
        range_name=f"A{row_number}:{FEEDBACK_LAST_COLUMN}{row_number}",
        values=[values],
        value_input_option="USER_ENTERED",
    )


def update_feedback_cell(row_number: int, column: str, value) -> None:
    sheet = _get_worksheet(FEEDBACK_WORKSHEET_NAME)
    sheet.update_acell(f"{column}{row_number}", value)


def delete_feedback_row(row_number: int) -> None:
    sheet = _get_worksheet(FEEDBACK_WORKSHEET_NAME)
    sheet.delete_rows(row_number)


def set_stage(row_number: int, stage: str, timestamp: str = None) -> None:
    """Writes the stage (F) and bumps updatedAt (O). Two separate writes, not atomic."""
    update_feedback_cell(row_number, STAGE_COLUMN, stage)
    update_feedback_cell(row_number, UPDATED_AT_COLUMN, timestamp or format_timestamp())


# --- Guides ---
def get_all_guides() -> dict:
    sheet = _get_worksheet(GUIDES_WORKSHEET_NAME)
    data = sheet.get_all_values()
    if len(data) <= GUIDES_HEADER_ROWS:
        return {"rows": []}

    rows = []
    for row_number, raw in enumerate(data[GUIDES_HEADER_ROWS:], start=GUIDES_HEADER_ROWS + 1):
        record = {"rowNumber": row_number}
        record.update(zip(GUIDE_FIELDS, _pad(raw, len(GUIDE_FIELDS))))
        if record["template"] or record["link"]:
            rows.append(record)
    return {"rows": rows}


def append_guide_row(values: list) -> None:
    sheet = _get_worksheet(GUIDES_WORKSHEET_NAME)
    sheet.append_row(values, value_input_option="USER_ENTERED")


def update_guide_row(row_number: int, values: list) -> None:
    sheet = _get_worksheet(GUIDES_WORKSHEET_NAME)
    sheet.update(
        range_name=f"A{row_number}:{GUIDE_LAST_COLUMN}{row_number}",
        values=[values],
        value_input_option="USER_ENTERED",
    )


def delete_guide_row(row_number: int) -> None:
    sheet = _get_worksheet(GUIDES_WORKSHEET_NAME)
    sheet.delete_rows(row_number)


# --- History ---
def get_history() -> dict:
    try:
        sheet = _get_worksheet(HISTORY_WORKSHEET_NAME)
    except gspread.exceptions.WorksheetNotFound:
        logger.warning("Worksheet '%s' not found, history is empty.", HISTORY_WORKSHEET_NAME)
        return {"rows": []}

    data = sheet.get_all_values()
    rows = []
    for row_number, raw in enumerate(data[HISTORY_HEADER_ROWS:], start=HISTORY_HEADER_ROWS + 1):
        record = {"rowNumber": row_number}
        record.update(zip(HISTORY_FIELDS, _pad(raw, len(HISTORY_FIELDS))))
        if record["action"]:
            rows.append(record)
    return {"rows": rows}


def log_history(action: str, details: str) -> None:
    """Appends an audit line to the history sheet when HISTORY_ENABLED is set."""
    if not config.HISTORY_ENABLED:
        return
    try:
        sheet = _get_worksheet(HISTORY_WORKSHEET_NAME)
        sheet.append_row([format_timestamp(), action, details], value_input_option="USER_ENTERED")
    except Exception as e:
        logger.error("Could not write history entry %s: %s - %s", action, type(e).__name__, e)
