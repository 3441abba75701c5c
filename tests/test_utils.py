import asyncio

from feedback_bot import config, utils


def test_feedback_message_keeps_full_shop_urls():
    text = utils.format_feedback_message({"rowNumber": 9, "shop": "https://shop.example", "link": "", "note": ""})

    assert text == "• ID: #9\n• Shop: [https://shop.example](https://shop.example)\n• File: KHÔNG có file"


def test_feedback_message_without_shop():
    text = utils.format_feedback_message({"rowNumber": 4, "shop": "", "link": "https://f", "message": "from chat"})

    assert text.splitlines() == [
        "• ID: #4",
        "• Shop: [N/A](https://N/A)",
        "• File: [File Feedback](https://f)",
        "• Note: from chat",
    ]


def test_pending_feedback_for_host_filters_stage_and_host():
    rows = [
        {"host": "Taiz", "stage": "Feedback"},
        {"host": "Taiz", "stage": "Done"},
        {"host": "Lâm", "stage": "Feedback"},
    ]

    assert utils.pending_feedback_for_host(rows, "Taiz") == [{"host": "Taiz", "stage": "Feedback"}]
    assert utils.pending_feedback_for_host(rows, None) == []


def test_send_message_errors_are_swallowed(mocked_bot):
    async def fail(*args, **kwargs):
        raise RuntimeError("chat not found")

    mocked_bot.session.make_request = fail

    asyncio.run(utils.send_telegram_message(mocked_bot, 1, "hello"))


def test_no_notification_for_host_without_pending(book, mocked_bot, monkeypatch):
    monkeypatch.setattr(config, "TELEGRAM_GROUP_CHAT_ID", -1001)

    asyncio.run(utils.notify_host_feedback_count(mocked_bot, "Lâm"))

    assert mocked_bot.session.sent() == []
