from __future__ import annotations

import re
from datetime import UTC, date, datetime

from followops.domain.rules import as_utc

PHONE_DIGITS_RE = re.compile(r"\D")


def utc_now() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def to_iso(value: datetime) -> str:
    return as_utc(value).isoformat()


def today_iso() -> str:
    return date.today().isoformat()


def normalize_phone(phone: str | None) -> str | None:
    if not phone:
        return None
    digits = PHONE_DIGITS_RE.sub("", phone)
    return digits or None
