from __future__ import annotations

from fishfeeder._redact import redact_for_log, redact_url


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "status": 0,
        "auth": "database-secret",
        "params": {"Authorization": "Bearer abc", "chat_id": "-42"},
        "nested": [{"token": "123:abc"}],
    }

    redacted = redact_for_log(payload)
    assert redacted["status"] == 0
    assert redacted["auth"] == "<redacted>"
    assert redacted["params"] == {"Authorization": "<redacted>", "chat_id": "-42"}
    assert redacted["nested"] == [{"token": "<redacted>"}]


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_summarizes_bytes() -> None:
    assert redact_for_log(b"\x00\x01\x02") == "<bytes:3b>"


def test_redact_url_masks_bot_token() -> None:
    url = "https://api.telegram.org/bot123:ABC-def/sendMessage"
    assert redact_url(url) == "https://api.telegram.org/bot<redacted>/sendMessage"
    assert redact_url("https://feeder.firebaseio.com/system.json") == "https://feeder.firebaseio.com/system.json"
