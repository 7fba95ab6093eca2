import logging

from services.redaction import REDACTED, redact_dict, redact_text


def test_redact_text_masks_phone_and_email():
    redacted = redact_text("payer alice@example.com phone +250788123456")
    assert "alice@example.com" not in redacted
    assert "+250788123456" not in redacted
    assert "a***@example.com" in redacted
    assert "+250****56" in redacted


def test_redact_text_drops_bearer_tokens_entirely():
    assert redact_text("Authorization: Bearer FLWSECK-abcdef") == REDACTED


def test_redact_dict_masks_sensitive_keys_and_phones():
    payload = {
        "transaction_id": "NH-1001",
        "phone_number": "250788123456",
        "account_number": "250722000111",
        "X-Nhonga-Signature": "sha256=deadbeef",
        "api_key": "nh_live_123",
        "data": {"secret_key": "FLWSECK-1", "status": "completed"},
        "items": ["call 0788123456"],
    }
    redacted = redact_dict(payload)
    assert redacted["transaction_id"] == "NH-1001"
    assert redacted["phone_number"] == "2507****56"
    assert redacted["account_number"] == "2507****11"
    assert redacted["X-Nhonga-Signature"] == REDACTED
    assert redacted["api_key"] == REDACTED
    assert redacted["data"] == {"secret_key": REDACTED, "status": "completed"}
    assert "0788123456" not in redacted["items"][0]


def test_redact_dict_does_not_mutate_input():
    payload = {"phone_number": "250788123456"}
    redact_dict(payload)
    assert payload == {"phone_number": "250788123456"}


def test_log_line_uses_redaction_helper(caplog):
    logger = logging.getLogger("redaction-test")
    caplog.set_level(logging.INFO)
    logger.info("payload=%s", redact_dict({"phone_number": "250788123456", "secret": "s3cr3t"}))
    assert "250788123456" not in caplog.text
    assert "s3cr3t" not in caplog.text
