import pytest

from eiga.core.errors import CoreError, ErrorKind
from eiga.services.validation import (
    is_valid_invite_format,
    normalize_invite_code,
    parse_booleanish,
    parse_timecode,
    validate_content,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, None),
        ("", None),
        ("   ", None),
        (90, 90),
        (90.9, 90),
        ("125", 125),
        ("12.7", 12),
        ("1:05", 65),
        ("01:02:03", 3723),
        ("12:00:00", 43200),
    ],
)
def test_parse_timecode_accepts(raw, expected):
    assert parse_timecode(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "1:75", "1:2:3:4", -5, "12:00:01", True, float("inf")])
def test_parse_timecode_rejects(raw):
    with pytest.raises(CoreError) as exc:
        parse_timecode(raw)
    assert exc.value.kind is ErrorKind.INVALID


def test_validate_content_compacts_whitespace():
    assert validate_content("  great \n\n  film  ") == "great film"


@pytest.mark.parametrize("raw", ["hey", "   a b  ", "x" * 5001])
def test_validate_content_bounds(raw):
    with pytest.raises(CoreError) as exc:
        validate_content(raw)
    assert exc.value.kind is ErrorKind.INVALID


def test_validate_content_edges():
    assert validate_content("abcde") == "abcde"
    assert len(validate_content("y" * 5000)) == 5000


@pytest.mark.parametrize("raw", [True, "true", "on", "1", 1, " YES "])
def test_booleanish_true(raw):
    assert parse_booleanish(raw) is True


@pytest.mark.parametrize("raw", [False, "false", "off", "0", 0, "", None, "maybe"])
def test_booleanish_false(raw):
    assert parse_booleanish(raw) is False


def test_invite_format():
    assert is_valid_invite_format("EIGA-AB12-CD34-EF56")
    assert is_valid_invite_format("ABCDEFGH")
    assert not is_valid_invite_format("SHORT")
    assert not is_valid_invite_format("eiga-ab12-cd34")
    assert not is_valid_invite_format("EIGA--AB12")
    assert not is_valid_invite_format("EIGA-AB12-")
    assert not is_valid_invite_format("A" * 65)
    assert normalize_invite_code("  eiga-ab12-cd34 ") == "EIGA-AB12-CD34"
