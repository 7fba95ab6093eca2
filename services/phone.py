from __future__ import annotations

import re


COUNTRY_CODE = "250"
LOCAL_LENGTHS = (8, 9)

_NON_DIGIT_RE = re.compile(r"\D")
# Permissive on purpose: candidates are re-validated after extraction.
_SMS_PHONE_RE = re.compile(r"(?:\+?250|0)?[0-9]{8,9}")
_PAYOUT_MSISDN_RE = re.compile(r"^250[0-9]{9}$")


def _digits(value: str | None) -> str:
    return _NON_DIGIT_RE.sub("", value or "")


def _local_part(value: str | None) -> str | None:
    """
    Strip the known prefixes (country code or trunk zero) and return the local number,
    or None when what remains is not an 8-9 digit number without a leading zero.
    """
    clean = _digits(value)
    if not clean:
        return None

    if clean.startswith(COUNTRY_CODE) and len(clean) - len(COUNTRY_CODE) in LOCAL_LENGTHS:
        local = clean[len(COUNTRY_CODE):]
    elif clean.startswith("0") and len(clean) - 1 in LOCAL_LENGTHS:
        local = clean[1:]
    else:
        local = clean

    if len(local) not in LOCAL_LENGTHS or local.startswith("0"):
        return None
    return local


def is_valid_local_phone(value: str | None) -> bool:
    return _local_part(value) is not None


def normalize_phone(value: str | None) -> str | None:
    """
    "0788123456", "+250 788 123 456", "788123456" -> "250788123456".
    Returns None for anything that is not an 8-9 digit local number.
    """
    local = _local_part(value)
    if local is None:
        return None
    return COUNTRY_CODE + local


def extract_phone(phone_field: str | None, sms_content: str | None) -> str | None:
    direct = normalize_phone(phone_field)
    if direct:
        return direct

    if not sms_content:
        return None

    # A 9-digit local number wins over an earlier 8-digit one.
    fallback = None
    for match in _SMS_PHONE_RE.finditer(sms_content):
        candidate = normalize_phone(match.group(0))
        if not candidate:
            continue
        if is_valid_payout_msisdn(candidate):
            return candidate
        if fallback is None:
            fallback = candidate
    return fallback


def to_payout_msisdn(value: str | None) -> str | None:
    clean = _digits(value)
    if not clean:
        return None
    if clean.startswith(COUNTRY_CODE):
        return clean
    if clean.startswith("0"):
        return COUNTRY_CODE + clean[1:]
    if len(clean) in LOCAL_LENGTHS:
        return COUNTRY_CODE + clean
    return None


def is_valid_payout_msisdn(value: str | None) -> bool:
    msisdn = to_payout_msisdn(value)
    return bool(msisdn and _PAYOUT_MSISDN_RE.match(msisdn))


def mask_phone(value: str | None) -> str | None:
    if not value or len(value) < 8:
        return value
    return f"{value[:4]}****{value[-2:]}"
