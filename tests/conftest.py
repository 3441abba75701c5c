import re
from datetime import datetime

import gspread
import pytest
from aiogram import Bot
from aiogram.client.session.base import BaseSession

from feedback_bot import bot as bot_module
from feedback_bot import config, google_sheets

FEEDBACK_HEADER = [
    "ID", "Deadline", "Host", "Shop", "Link", "Stage", "Tags", "Dev_note",
    "Image_note", "Note", "Time", "Message", "MessageID", "ImageID", "UpdatedAt",
]

COMMENT_CELL = '[{"text":"first","time":"10:00 02/01/2026","author":"User"}]'


def feedback_sheet_rows():
    return [
        FEEDBACK_HEADER,
        ["Mã", "Hạn", "Người", "Shop"],
        ["1700000000001", "10/01", "Quốc", "shop-a.com", "https://drive.example/a", "Feedback", "", "", "",
         "Fix header", "08:00:00 01/01/2026", "Fix header", "", "", "08:00:00 01/01/2026"],
        ["1700000000002", "", "Taiz", "shop-b.com", "", "Done"],
        ["1700000000003", "", "Quốc", "shop-c.com", "", "Feedback", "", COMMENT_CELL, "", "", "", "legacy msg"],
        ["1700000000004", "", "", "", "", "Feedback"],
        ["1700000000005", "", "Lâm", "shop-d.com", "", "In progress", "", "Old plain note"],
    ]


def guide_sheet_rows():
    return [
        ["Type", "Template", "Link", "App"],
        ["Hướng dẫn", "Setup shop", "https://docs.example/setup", "Haravan"],
        ["Template", "Banner", "https://docs.example/banner", ""],
        ["Hướng dẫn", "", "", "Shopify"],
        ["Hướng dẫn", "Checkout", "https://docs.example/checkout", "Shopify"],
    ]


_A1_RE = re.compile(r"^([A-Z])(\d+)$")


def _split_a1(label):
    match = _A1_RE.match(label)
    return ord(match.group(1)) - ord("A"), int(match.group(2))


class FakeWorksheet:
    """In-memory stand-in for gspread.Worksheet covering the calls the app makes."""

    def __init__(self, title, rows):
        self.title = title
        self.rows = [list(r) for r in rows]

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def row_values(self, row):
        if row > len(self.rows):
            return []
        values = list(self.rows[row - 1])
        while values and values[-1] == "":
            values.pop()
        return values

    def append_row(self, values, value_input_option=None):
        self.rows.append(list(values))

    def update(self, range_name=None, values=None, value_input_option=None):
        start, _end = range_name.split(":")
        _col, row = _split_a1(start)
        self._ensure_row(row)
        self.rows[row - 1] = list(values[0])

    def update_acell(self, label, value):
        col, row = _split_a1(label)
        self._ensure_row(row)
        cells = self.rows[row - 1]
        cells += [""] * (col + 1 - len(cells))
        cells[col] = value

    def delete_rows(self, start_index, end_index=None):
        del self.rows[start_index - 1]

    def cell(self, row, col_letter):
        col = ord(col_letter) - ord("A")
        cells = self.rows[row - 1]
        return cells[col] if col < len(cells) else ""

    def _ensure_row(self, row):
        while len(self.rows) < row:
            self.rows.append([])


class FakeSpreadsheet:
    def __init__(self, sheets):
        self.sheets = {title: FakeWorksheet(title, rows) for title, rows in sheets.items()}

    def worksheet(self, title):
        if title not in self.sheets:
            raise gspread.exceptions.WorksheetNotFound(title)
        return self.sheets[title]

    def __getitem__(self, title):
        return self.sheets[title]


class MockedSession(BaseSession):
    """Records outgoing Bot API calls and answers them from ``results`` keyed by method class name."""

    def __init__(self):
        super().__init__()
        self.requests = []
        self.results = {}
        self.file_content = b""

    async def make_request(self, bot, method, timeout=None):
        self.requests.append(method)
        return self.results.get(type(method).__name__, True)

    async def stream_content(self, url, headers=None, timeout=30, chunk_size=65536, raise_for_status=True):
        yield self.file_content

    async def close(self):
        pass

    def sent(self, method_name="SendMessage"):
        return [r for r in self.requests if type(r).__name__ == method_name]


FIXED_NOW = google_sheets.VN_TZ.localize(datetime(2026, 1, 9, 22, 30, 5))


@pytest.fixture(autouse=True)
def fixed_clock(monkeypatch):
    monkeypatch.setattr(google_sheets, "now_vn", lambda: FIXED_NOW)
    return FIXED_NOW


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    monkeypatch.setattr(config, "API_KEY", None)
    monkeypatch.setattr(config, "HISTORY_ENABLED", False)
    monkeypatch.setattr(config, "TELEGRAM_GROUP_CHAT_ID", None)
    monkeypatch.setattr(config, "TELEGRAM_WEBHOOK_URL", None)
    monkeypatch.setattr(config, "TELEGRAM_ID_TO_HOST", {"814408956": "Quốc", "852487488": "Taiz"})
    monkeypatch.setattr(bot_module, "bot", None)
    monkeypatch.setattr(bot_module, "image_bot", None)


@pytest.fixture
def book(monkeypatch):
    spreadsheet = FakeSpreadsheet({
        google_sheets.FEEDBACK_WORKSHEET_NAME: feedback_sheet_rows(),
        google_sheets.GUIDES_WORKSHEET_NAME: guide_sheet_rows(),
    })
    monkeypatch.setattr(google_sheets, "_get_worksheet", spreadsheet.worksheet)
    return spreadsheet


@pytest.fixture
def mocked_bot(monkeypatch):
    instance = Bot(token="42:TEST", session=MockedSession())
    monkeypatch.setattr(bot_module, "bot", instance)
    monkeypatch.setattr(bot_module, "image_bot", instance)
    return instance
