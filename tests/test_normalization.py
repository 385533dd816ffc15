"""Tests for phone, gender and name normalization of imported rows."""
import pytest

from fitclub.utils.normalization import (
    is_known_gender, normalize_email, normalize_gender, normalize_phone, split_full_name,
)


# =============================================================================
# Phone
# =============================================================================

@pytest.mark.parametrize("raw", [
    "0788123456",
    "+250788123456",
    "250788123456",
    "788123456",
    "0788 123 456",
    "+250 (788) 123-456",
])
def test_rwandan_numbers_normalize_to_same_pair(raw):
    assert normalize_phone(raw) == {"code": "+250", "number": "788123456"}


def test_numeric_cell_is_read_as_digits():
    assert normalize_phone(788123456.0) == {"code": "+250", "number": "788123456"}


def test_country_code_without_mobile_prefix_gets_prefix():
    assert normalize_phone("2500788123456") == {"code": "+250", "number": "788123456"}


def test_foreign_number_uses_leading_digits_as_code():
    result = normalize_phone("+14155552671")
    assert result["code"] == "+141"
    assert result["number"] == "55552671"


def test_unrecognised_local_number_keeps_digits_without_code():
    assert normalize_phone("0212345678") == {"code": None, "number": "0212345678"}


@pytest.mark.parametrize("raw", [None, "", "   ", "n/a", "+"])
def test_blank_phone_returns_none(raw):
    assert normalize_phone(raw) is None


def test_other_default_country_code():
    assert normalize_phone("256712345678", default_country_code="256") == {
        "code": "+256",
        "number": "712345678",
    }


# =============================================================================
# Gender
# =============================================================================

@pytest.mark.parametrize("raw,expected", [
    ("male", "male"),
    ("M", "male"),
    ("Female", "female"),
    ("f", "female"),
    ("OTHER", "other"),
    (None, "other"),
    ("", "other"),
])
def test_normalize_gender(raw, expected):
    assert normalize_gender(raw) == expected


def test_is_known_gender_accepts_blank_and_rejects_unknown():
    assert is_known_gender(None)
    assert is_known_gender("  ")
    assert is_known_gender("F")
    assert not is_known_gender("unknown")


# =============================================================================
# Names & Email
# =============================================================================

def test_split_full_name_keeps_remaining_tokens_as_last_name():
    assert split_full_name("Jean Claude Mugisha") == ("Jean", "Claude Mugisha")


def test_split_single_token_name():
    assert split_full_name("  Aline ") == ("Aline", "")


def test_normalize_email():
    assert normalize_email("  Jean@Example.COM ") == "jean@example.com"
    assert normalize_email("   ") is None
    assert normalize_email(None) is None
