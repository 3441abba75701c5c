# feedback_bot/comments.py
# Comment list stored as a JSON array inside the feedback devNote cell (column H).

import json
import logging
from typing import Any, Dict, List

from . import google_sheets

logger = logging.getLogger(__name__)

LEGACY_NOTE_TIME = "Note cũ"
LEGACY_NOTE_AUTHOR = "System"

AUTHOR_USER = "User"
AUTHOR_TELEGRAM = "Telegram"


def parse_comments(cell: str, keep_legacy: bool = True) -> List[Dict[str, Any]]:
    """
    Decodes the comment cell.
    A JSON array is returned as-is; broken JSON or a non-list decodes to [].
    Plain text predating the JSON format becomes a single System comment,
    unless keep_legacy is False.
    """
    if not cell:
        return []
    stripped = cell.strip()
    if stripped.startswith("[") and stripped.endswith("]"):
        try:
            comments = json.loads(stripped)
        except json.JSONDecodeError as e:
            logger.warning("Comment cell is not valid JSON, treating as empty: %s", e)
            return []
        return comments if isinstance(comments, list) else []
    if not keep_legacy:
        return []
    return [{"text": cell, "time": LEGACY_NOTE_TIME, "author": LEGACY_NOTE_AUTHOR}]


def dump_comments(comments: List[Dict[str, Any]]) -> str:
    return json.dumps(comments, ensure_ascii=False, separators=(",", ":"))


def _comment_cell(row: list) -> str:
    index = google_sheets.COMMENTS_INDEX
    return row[index] if len(row) > index else ""


def read_comments(row_number: int, keep_legacy: bool = True) -> List[Dict[str, Any]]:
    row = google_sheets.get_feedback_row(row_number)
    return parse_comments(_comment_cell(row), keep_legacy=keep_legacy)


def write_comments(row_number: int, comments: List[Dict[str, Any]]) -> None:
    google_sheets.update_feedback_cell(row_number, google_sheets.COMMENTS_COLUMN, dump_comments(comments))


def append_comment(row_number: int, text: str, author: str) -> List[Dict[str, Any]]:
    """Reads the cell, appends one comment stamped with the current VN time and writes it back."""
    comments = read_comments(row_number)
    comments.append({
        "text": text,
        "time": google_sheets.format_comment_time(),
        "author": author,
    })
    write_comments(row_number, comments)
    return comments
