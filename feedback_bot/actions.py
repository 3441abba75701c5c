# feedback_bot/actions.py
# The "exec" action contract used by the dashboard: one coroutine per action name.

import asyncio
import logging
import time
from typing import Any, Dict

from . import bot as bot_module
from . import comments, google_sheets
from .utils import notify_host_feedback_count

logger = logging.getLogger(__name__)

DEFAULT_GUIDE_TYPE = "Hướng dẫn"

# Fields the dashboard may overwrite in a partial update. id (A) and time (K) never change.
UPDATABLE_FEEDBACK_FIELDS = ["deadline", "host", "shop", "link", "stage", "tags", "devNote", "note", "message"]


def _require_row_number(value) -> int:
    if value is None or value == "" or value == 0:
        raise ValueError("Missing rowNumber")
    return int(value)


def _require_row_numbers(values) -> list:
    if not values or not isinstance(values, list):
        raise ValueError("Missing or invalid rowNumbers")
    return [int(v) for v in values]


def _cell(value) -> str:
    return "" if value is None else value


# --- Read actions ---
async def get_dashboard_data() -> Dict[str, Any]:
    data = await asyncio.to_thread(google_sheets.get_all_feedback)
    rows = data.get("rows", [])

    host_stats = {}
    stage_stats = {}
    pending_feedback = 0
    done_feedback = 0
    for row in rows:
        if row["host"]:
            host_stats[row["host"]] = host_stats.get(row["host"], 0) + 1
        if row["stage"]:
            stage_stats[row["stage"]] = stage_stats.get(row["stage"], 0) + 1
        if row["stage"] == google_sheets.STAGE_FEEDBACK:
            pending_feedback += 1
        if row["stage"] == google_sheets.STAGE_DONE:
            done_feedback += 1

    return {
        "success": True,
        "stats": {
            "pending": pending_feedback,
            "done": done_feedback,
            "byHost": host_stats,
            "byStage": stage_stats,
        },
        "filterOptions": {
            "hosts": sorted({r["host"] for r in rows if r["host"]}),
            "stages": sorted({r["stage"] for r in rows if r["stage"]}),
        },
        "feedback": rows,
    }


async def get_guides_data() -> Dict[str, Any]:
    data = await asyncio.to_thread(google_sheets.get_all_guides)
    rows = data.get("rows", [])
    grouped = {}
    for row in rows:
        grouped.setdefault(row["type"], []).append(row)
    return {"success": True, "guides": rows, "groupedGuides": grouped}


async def get_history() -> Dict[str, Any]:
    data = await asyncio.to_thread(google_sheets.get_history)
    return {"success": True, "history": data.get("rows", [])}


# --- Feedback CRUD ---
async def create_feedback(feedback: Dict[str, Any]) -> Dict[str, Any]:
    if not feedback:
        raise ValueError("No feedback data")

    timestamp = google_sheets.format_timestamp()
    note = feedback.get("note") or ""
    row = [
        str(int(time.time() * 1000)),                              # A id
        feedback.get("deadline") or "",                            # B
        feedback.get("host") or "",                                # C
        feedback.get("shop") or "",                                # D
        feedback.get("link") or "",                                # E
        feedback.get("stage") or google_sheets.STAGE_FEEDBACK,     # F
        feedback.get("tags") or "",                                # G
        feedback.get("devNote") or "",                             # H
        "",                                                        # I image note
        note,                                                      # J
        timestamp,                                                 # K created
        note,                                                      # L message mirrors note
        "",                                                        # M
        "",                                                        # N
        timestamp,                                                 # O updated
    ]
    await asyncio.to_thread(google_sheets.append_feedback_row, row)
    shop = feedback.get("shop") or "N/A"
    await asyncio.to_thread(google_sheets.log_history, "CREATE", f"Tạo feedback: {shop}")
    return {"success": True, "message": "Đã tạo feedback thành công!"}


async def update_feedback(row_number, updates: Dict[str, Any]) -> Dict[str, Any]:
    row_number = _require_row_number(row_number)
    updates = updates or {}

    current_row = await asyncio.to_thread(google_sheets.get_feedback_row, row_number)
    if not current_row:
        raise ValueError("Row not found")

    new_row = list(current_row)
    new_row += [""] * (google_sheets.FEEDBACK_COLUMN_COUNT - len(new_row))
    for field in UPDATABLE_FEEDBACK_FIELDS:
        if field in updates:
            new_row[google_sheets.FEEDBACK_FIELDS.index(field)] = _cell(updates[field])
    new_row[google_sheets.FEEDBACK_FIELDS.index("updatedAt")] = google_sheets.format_timestamp()

    await asyncio.to_thread(google_sheets.update_feedback_row, row_number, new_row)
    return {"success": True, "message": "Cập nhật thành công!"}


async def update_stage(row_number, new_stage: str) -> Dict[str, Any]:
    row_number = _require_row_number(row_number)
    if not new_stage:
        raise ValueError("Missing newStage")

    current_row = await asyncio.to_thread(google_sheets.get_feedback_row, row_number)
    host = current_row[google_sheets.HOST_INDEX] if len(current_row) > google_sheets.HOST_INDEX else ""

    await asyncio.to_thread(google_sheets.set_stage, row_number, new_stage)

    if new_stage == google_sheets.STAGE_FEEDBACK and host:
        logger.info("Stage changed to Feedback for host %s (row %s), notifying group.", host, row_number)
        await notify_host_feedback_count(bot_module.bot, host)

    await asyncio.to_thread(google_sheets.log_history, "UPDATE_STAGE", f"Row {row_number} -> {new_stage}")
    return {"success": True, "message": f'Đã cập nhật Stage thành "{new_stage}"'}


async def delete_feedback(row_number) -> Dict[str, Any]:
    row_number = _require_row_number(row_number)
    await asyncio.to_thread(google_sheets.delete_feedback_row, row_number)
    await asyncio.to_thread(google_sheets.log_history, "DELETE", f"Xóa row {row_number}")
    return {"success": True, "message": "Đã xóa feedback!"}


# --- Bulk actions ---
async def bulk_update_stage(row_numbers, new_stage: str) -> Dict[str, Any]:
    row_numbers = _require_row_numbers(row_numbers)
    if not new_stage:
        raise ValueError("Missing newStage")

    timestamp = google_sheets.format_timestamp()
    for row_number in row_numbers:
        await asyncio.to_thread(google_sheets.set_stage, row_number, new_stage, timestamp)

    return {"success": True, "message": f'Đã cập nhật {len(row_numbers)} mục thành "{new_stage}"'}


async def bulk_delete(row_numbers) -> Dict[str, Any]:
    row_numbers = _require_row_numbers(row_numbers)

    # Bottom-up so a deletion never shifts a row that is still to be deleted
    for row_number in sorted(row_numbers, reverse=True):
        await asyncio.to_thread(google_sheets.delete_feedback_row, row_number)

    return {"success": True, "message": f"Đã xóa {len(row_numbers)} mục"}


# --- Comments ---
async def add_comment(row_number, comment_text: str) -> Dict[str, Any]:
    row_number = _require_row_number(row_number)
    if not comment_text or not comment_text.strip():
        raise ValueError("Missing comment text")

    updated = await asyncio.to_thread(
        comments.append_comment, row_number, comment_text.strip(), comments.AUTHOR_USER
    )
    return {"success": True, "message": "Đã thêm comment!", "comments": updated}


async def get_comments(row_number) -> Dict[str, Any]:
    row_number = _require_row_number(row_number)
    current = await asyncio.to_thread(comments.read_comments, row_number)
    return {"success": True, "comments": current}


async def delete_comment(row_number, comment_index) -> Dict[str, Any]:
    row_number = _require_row_number(row_number)
    if comment_index is None:
        raise ValueError("Missing commentIndex")
    comment_index = int(comment_index)

    # Legacy plain-text notes are not deletable entries
    current = await asyncio.to_thread(comments.read_comments, row_number, keep_legacy=False)
    if not 0 <= comment_index < len(current):
        return {"success": False, "message": "Invalid comment index"}

    current.pop(comment_index)
    await asyncio.to_thread(comments.write_comments, row_number, current)
    return {"success": True, "message": "Deleted comment!", "comments": current}


# --- Guides ---
async def create_guide(guide: Dict[str, Any]) -> Dict[str, Any]:
    if not guide:
        raise ValueError("No guide data")

    await asyncio.to_thread(google_sheets.append_guide_row, [
        guide.get("type") or DEFAULT_GUIDE_TYPE,
        guide.get("template") or "",
        guide.get("link") or "",
        guide.get("app") or "",
    ])
    return {"success": True, "message": "Đã tạo hướng dẫn thành công!"}


async def update_guide(row_number, updates: Dict[str, Any]) -> Dict[str, Any]:
    row_number = _require_row_number(row_number)
    updates = updates or {}
    values = [updates.get(field) or "" for field in google_sheets.GUIDE_FIELDS]
    await asyncio.to_thread(google_sheets.update_guide_row, row_number, values)
    return {"success": True, "message": "Cập nhật thành công!"}


async def delete_guide(row_number) -> Dict[str, Any]:
    row_number = _require_row_number(row_number)
    await asyncio.to_thread(google_sheets.delete_guide_row, row_number)
    return {"success": True, "message": "Đã xóa hướng dẫn!"}


# --- Dispatch tables: action name -> handler taking the request payload ---
POST_ACTIONS = {
    "getDashboardData": lambda body: get_dashboard_data(),
    "getGuidesData": lambda body: get_guides_data(),
    "createFeedback": lambda body: create_feedback(body.get("feedback")),
    "updateFeedback": lambda body: update_feedback(body.get("rowNumber"), body.get("updates")),
    "updateStage": lambda body: update_stage(body.get("rowNumber"), body.get("newStage")),
    "deleteFeedback": lambda body: delete_feedback(body.get("rowNumber")),
    "bulkUpdateStage": lambda body: bulk_update_stage(body.get("rowNumbers"), body.get("newStage")),
    "bulkDelete": lambda body: bulk_delete(body.get("rowNumbers")),
    "addComment": lambda body: add_comment(body.get("rowNumber"), body.get("commentText")),
    "getComments": lambda body: get_comments(body.get("rowNumber")),
    "deleteComment": lambda body: delete_comment(body.get("rowNumber"), body.get("commentIndex")),
    "createGuide": lambda body: create_guide(body.get("guide")),
    "updateGuide": lambda body: update_guide(body.get("rowNumber"), body.get("updates")),
    "deleteGuide": lambda body: delete_guide(body.get("rowNumber")),
}

GET_ACTIONS = {
    "getDashboardData": get_dashboard_data,
    "getGuidesData": get_guides_data,
    "getHistory": get_history,
}


def _action_label(action) -> str:
    # A missing action reads as "undefined" in the dashboard
    return "undefined" if action is None else str(action)


async def run_post_action(body: Dict[str, Any]) -> Dict[str, Any]:
    action = body.get("action")
    handler = POST_ACTIONS.get(action)
    if handler is None:
        return {"success": False, "message": f"Unknown action: {_action_label(action)}"}
    return await handler(body)


async def run_get_action(action: str) -> Dict[str, Any]:
    handler = GET_ACTIONS.get(action)
    if handler is None:
        return {"success": False, "message": f"Unknown action or use POST: {_action_label(action)}"}
    return await handler()
