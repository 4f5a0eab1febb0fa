from __future__ import annotations

import pytest

from vehicle_lists.services.validation import (
    ERR_EMPTY,
    ERR_FORMAT,
    ERR_REQUIRED,
    ERR_TOO_LONG,
    ERR_TOO_SHORT,
    STATE_CODES,
    normalize_identifier,
    validate_identifier,
    validate_identifiers,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("dl 01 ab 1234", "DL01AB1234"),
        ("  hr-26-c-4567  ", "HR26C4567"),
        ("mh.12/de_3456", "MH12DE3456"),
        ("", ""),
        (None, ""),
        (1234, ""),
        ("---", ""),
    ],
)
def test_normalize_identifier(raw, expected):
    assert normalize_identifier(raw) == expected


@pytest.mark.parametrize("raw", ["dl 01 ab 1234", "a-b c", "ÄB12", "KA 05 MN 0001"])
def test_normalize_is_idempotent(raw):
    once = normalize_identifier(raw)
    assert normalize_identifier(once) == once


def test_lowercase_with_spaces_is_valid():
    outcome = validate_identifier("dl 01 ab 1234")
    assert outcome.is_valid is True
    assert outcome.cleaned_value == "DL01AB1234"
    assert outcome.error is None


def test_unknown_state_code_names_the_code():
    outcome = validate_identifier("XX01AB1234")
    assert outcome.is_valid is False
    assert outcome.cleaned_value == "XX01AB1234"
    assert "XX" in (outcome.error or "")
    assert outcome.error == "Invalid state code: XX. Must be a valid Indian state code."


@pytest.mark.parametrize("raw", ["", None, 42, 3.5])
def test_missing_or_non_string_is_required(raw):
    outcome = validate_identifier(raw)
    assert outcome.is_valid is False
    assert outcome.cleaned_value is None
    assert outcome.error == ERR_REQUIRED


def test_only_separators_is_empty_after_cleaning():
    outcome = validate_identifier(" - . / ")
    assert outcome.is_valid is False
    assert outcome.cleaned_value is None
    assert outcome.error == ERR_EMPTY


@pytest.mark.parametrize(
    "raw,valid,error",
    [
        ("DL01234", False, ERR_TOO_SHORT),  # 7
        ("DL011234", True, None),  # 8
        ("DLABCDEFGH12345", True, None),  # 15
        ("DLABCDEFGHI12345", False, ERR_TOO_LONG),  # 16
    ],
)
def test_length_boundaries(raw, valid, error):
    outcome = validate_identifier(raw)
    assert outcome.is_valid is valid
    assert outcome.error == error
    assert outcome.cleaned_value == raw


@pytest.mark.parametrize(
    "raw",
    [
        "DL01AB1234",  # state + 2 digits + 2 letters + 4 digits
        "DL01A1234",  # 1 series letter
        "DL011234",  # no series
        "DLFAPATW00347",  # older registration
    ],
)
def test_supported_formats(raw):
    assert validate_identifier(raw).is_valid is True


@pytest.mark.parametrize("raw", ["DL01AB12CD", "DL0ABC1234", "MH1234ABCD"])
def test_known_state_but_no_pattern(raw):
    outcome = validate_identifier(raw)
    assert outcome.is_valid is False
    assert outcome.error == ERR_FORMAT


def test_state_code_table():
    assert len(STATE_CODES) == 34
    for code in ("DL", "MH", "KA", "TS", "UT", "CT"):
        assert code in STATE_CODES
    assert "XX" not in STATE_CODES


def test_length_check_runs_before_state_check():
    # XX is unknown but the value is too short first
    assert validate_identifier("XX0123").error == ERR_TOO_SHORT


def test_valid_outcome_is_normalized():
    for raw in ("dl 01 ab 1234", "UP14 7788", "mh12de3456"):
        outcome = validate_identifier(raw)
        assert outcome.is_valid
        assert outcome.cleaned_value == normalize_identifier(raw)


def test_validate_identifiers_summary():
    summary = validate_identifiers(["dl01ab1234", "XX01AB1234", None, "UP147788"])
    assert summary.total_count == 4
    assert summary.valid_count == 2
    assert summary.invalid_count == 2
    assert summary.cleaned_numbers == ["DL01AB1234", "UP147788"]
    assert [r.row_index for r in summary.invalid_numbers] == [2, 3]
    assert summary.invalid_numbers[1].original_value == ""
    assert summary.invalid_numbers[1].error == ERR_REQUIRED


def test_validate_identifiers_empty():
    summary = validate_identifiers([])
    assert (summary.total_count, summary.valid_count, summary.invalid_count) == (0, 0, 0)
