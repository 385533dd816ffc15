"""Data normalization utilities for imported member data."""

import re

from fitclub.db.enums import Gender


# =============================================================================
# Phone Numbers
# =============================================================================

# Rwandan mobile numbers: country code 250, subscriber numbers start with 7
LOCAL_COUNTRY_CODE = "250"
LOCAL_MOBILE_PREFIX = "7"


def normalize_phone(
    value: object,
    default_country_code: str = LOCAL_COUNTRY_CODE,
) -> dict[str, str | None] | None:
    """
    Split a free-form phone number into a country code and subscriber number.

    Examples (default_country_code = "250"):
        "0788 123 456"     -> {"code": "+250", "number": "788123456"}
        "250788123456"     -> {"code": "+250", "number": "788123456"}
        "+250788123456"    -> {"code": "+250", "number": "788123456"}
        "+14155552671"     -> {"code": "+141", "number": "55552671"}
        "0212345678"       -> {"code": None, "number": "0212345678"}

    Returns None for blank input or input with no digits.
    """
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)

    cleaned = re.sub(r"[^\d+]", "", str(value))
    if not re.search(r"\d", cleaned):
        return None

    code: str | None = None
    number = cleaned

    if cleaned.startswith(default_country_code):
        code = default_country_code
        number = cleaned[len(default_country_code):]
    elif cleaned.startswith("0" + LOCAL_MOBILE_PREFIX):
        code = default_country_code
        number = cleaned[1:]
    elif cleaned.startswith(LOCAL_MOBILE_PREFIX):
        code = default_country_code
        number = cleaned
    elif cleaned.startswith("+"):
        digits = cleaned.replace("+", "")
        if digits.startswith(default_country_code):
            code = default_country_code
            number = digits[len(default_country_code):]
        else:
            # Greedy 1-3 digit country code
            match = re.match(r"^(\d{1,3})(\d+)$", digits)
            if match:
                code, number = match.group(1), match.group(2)
            else:
                number = digits

    if code == default_country_code and not number.startswith(LOCAL_MOBILE_PREFIX):
        if number.startswith("0"):
            number = number[1:]
        if not number.startswith(LOCAL_MOBILE_PREFIX):
            number = LOCAL_MOBILE_PREFIX + number

    return {
        "code": f"+{code}" if code else None,
        "number": number,
    }


# =============================================================================
# Gender
# =============================================================================

GENDER_ALIASES = {
    "male": Gender.MALE,
    "m": Gender.MALE,
    "female": Gender.FEMALE,
    "f": Gender.FEMALE,
    "other": Gender.OTHER,
}


def is_known_gender(value: str | None) -> bool:
    """True for blank values and recognised gender spellings."""
    if value is None or not str(value).strip():
        return True
    return str(value).strip().lower() in GENDER_ALIASES


def normalize_gender(value: str | None) -> str:
    """Map m/f/male/female/other (any case) to the stored value; default other."""
    if value is None:
        return Gender.OTHER.value
    gender = GENDER_ALIASES.get(str(value).strip().lower(), Gender.OTHER)
    return gender.value


# =============================================================================
# Names & Email
# =============================================================================

def split_full_name(name: str) -> tuple[str, str]:
    """Split on the first whitespace run: first token, then the remainder."""
    parts = name.strip().split(None, 1)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1].strip()


def normalize_email(email: str | None) -> str | None:
    """Normalize email: lowercase and strip whitespace."""
    if not email:
        return None
    email = email.strip().lower()
    return email or None
