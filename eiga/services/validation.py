"""Input normalization shared by the schemas and the services."""

import math
import re
from typing import Any

from eiga.core.errors import CoreError, ErrorKind

CONTENT_MIN_LENGTH = 5
CONTENT_MAX_LENGTH = 5000
TIMESTAMP_MAX_SECONDS = 12 * 60 * 60

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,20}$")
INVITE_CODE_RE = re.compile(r"^[A-Z0-9]+(?:-[A-Z0-9]+)*$")
INVITE_CODE_MIN_LENGTH = 8
INVITE_CODE_MAX_LENGTH = 64

_WHITESPACE_RE = re.compile(r"\s+")
_NUMERIC_RE = re.compile(r"^\d+(\.\d+)?$")
_CLOCK_RE = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")

_TRUTHY = {"true", "1", "on", "yes"}
_FALSY = {"false", "0", "off", "no"}


def compact_whitespace(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value).strip()


def validate_content(value: str) -> str:
    """Collapse whitespace runs and enforce the length bounds."""
    if not isinstance(value, str):
        raise CoreError(ErrorKind.INVALID, "content must be text")
    content = compact_whitespace(value)
    if len(content) < CONTENT_MIN_LENGTH:
        raise CoreError(ErrorKind.INVALID, f"Say a bit more (>= {CONTENT_MIN_LENGTH} characters).")
    if len(content) > CONTENT_MAX_LENGTH:
        raise CoreError(ErrorKind.INVALID, f"Keep it under {CONTENT_MAX_LENGTH} characters.")
    return content


def parse_timecode(value: Any) -> int | None:
    """Turn seconds, "mm:ss" or "h:mm:ss" into integer seconds.

    Blank input means "absent" and returns None. Anything else that cannot be
    read as a non-negative offset of at most 12 hours raises ``invalid``.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise CoreError(ErrorKind.INVALID, "timestamp_reference must be seconds or a clock string")

    seconds: int | None = None
    if isinstance(value, (int, float)):
        if math.isfinite(value) and value >= 0:
            seconds = math.floor(value)
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if _NUMERIC_RE.match(s):
            seconds = math.floor(float(s))
        elif _CLOCK_RE.match(s):
            parts = [int(p) for p in s.split(":")]
            if len(parts) == 2:
                mm, ss = parts
                if ss < 60:
                    seconds = mm * 60 + ss
            else:
                hh, mm, ss = parts
                if mm < 60 and ss < 60:
                    seconds = hh * 3600 + mm * 60 + ss

    if seconds is None:
        raise CoreError(ErrorKind.INVALID, "timestamp_reference must be seconds or a clock string")
    if seconds > TIMESTAMP_MAX_SECONDS:
        raise CoreError(ErrorKind.INVALID, "timestamp_reference is capped at 12 hours")
    return seconds


def parse_booleanish(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        s = value.strip().lower()
        if s in _TRUTHY:
            return True
        if s in _FALSY:
            return False
    return False


def normalize_invite_code(code: str) -> str:
    return code.strip().upper()


def is_valid_invite_format(code: str) -> bool:
    if not isinstance(code, str):
        return False
    if not INVITE_CODE_MIN_LENGTH <= len(code) <= INVITE_CODE_MAX_LENGTH:
        return False
    return INVITE_CODE_RE.match(code) is not None
