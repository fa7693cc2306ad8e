"""Input validation and sanitization for patient records.

Every identifier, free-text filter and write payload passes through these
checks before it reaches a store or a cache key.

Security Impact:
    - Identifiers are restricted to letters, digits, '-' and '_', which keeps
      them out of query syntax and away from the cache key delimiter
    - Free-text filters are escaped for LIKE metacharacters and always bound
      as parameters, so user search text is matched literally
    - Validation messages never echo PHI values back (names, phones)
"""

import re
import threading
import time
import unicodedata
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from patient_records.domain.models import MAX_PAGE_LIMIT, Address, Patient
from patient_records.domain.ports import ValidationError

# ============================================================================
# Constants
# ============================================================================

ID_PATTERN = re.compile(r'[A-Za-z0-9_-]+')
ZIP_PATTERN = re.compile(r'[0-9]{5}')
STATE_CODE_PATTERN = re.compile(r'[A-Z]{2}')
PHONE_STRIP_PATTERN = re.compile(r'[\s\-()+.]')
PHONE_DIGITS_PATTERN = re.compile(r'[0-9]+')

PATIENT_ID_MAX_LENGTH = 64
ADDRESS_ID_MAX_LENGTH = 96

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15
REGION_MAX_LENGTH = 50
REGION_SEARCH_MIN_LENGTH = 2
MAX_AGE_YEARS = 150
SEARCH_TERM_MAX_LENGTH = 100

ADDRESS_LINE_MAX_LENGTH = 100
CITY_MAX_LENGTH = 50


# ============================================================================
# Field validators
# ============================================================================

def validate_id(value: Optional[str], field: str = "patient_id", max_length: int = PATIENT_ID_MAX_LENGTH) -> str:
    """Validate an identifier's shape.

    Parameters:
        value: Identifier to check
        field: Field name used in the error
        max_length: Upper bound on the identifier length

    Returns:
        str: The identifier, unchanged

    Raises:
        ValidationError: If the identifier is empty, too long or contains
            characters other than letters, digits, '-' and '_'
    """
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} is required", field=field, value=value)
    if len(value) > max_length:
        raise ValidationError(
            f"{field} must be at most {max_length} characters", field=field, value=value
        )
    if not ID_PATTERN.fullmatch(value):
        raise ValidationError(
            f"{field} may only contain letters, digits, '-' and '_'", field=field, value=value
        )
    return value


def is_valid_id(value: Optional[str], max_length: int = ADDRESS_ID_MAX_LENGTH) -> bool:
    """Non-raising variant of validate_id."""
    try:
        validate_id(value, max_length=max_length)
    except ValidationError:
        return False
    return True


def validate_required(field: str, value: Optional[str]) -> str:
    """Raise if value is missing or blank."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return value


def validate_length(field: str, value: Optional[str], min_length: int, max_length: int) -> str:
    """Validate that a string's length lies within [min_length, max_length]."""
    length = len(value or "")
    if length < min_length or length > max_length:
        raise ValidationError(
            f"{field} must be between {min_length} and {max_length} characters",
            field=field,
        )
    return value


def normalize_phone(phone: str) -> str:
    """Return only the digits of a phone number.

    Spaces, dashes, dots, parentheses and '+' are stripped; any other
    character is kept so validate_phone can reject it.
    """
    return PHONE_STRIP_PATTERN.sub('', phone or '')


def validate_phone(phone: Optional[str], field: str = "phone") -> str:
    """Validate a phone number and return its digit form.

    Raises:
        ValidationError: If the number does not reduce to 10-15 digits
    """
    digits = normalize_phone(phone or "")
    if not PHONE_DIGITS_PATTERN.fullmatch(digits) or not (PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS):
        raise ValidationError(
            f"{field} must contain {PHONE_MIN_DIGITS} to {PHONE_MAX_DIGITS} digits",
            field=field,
        )
    return digits


def validate_date_of_birth(dob: Optional[date], today: Optional[date] = None) -> date:
    """Validate a date of birth is present, not in the future and plausible."""
    if dob is None:
        raise ValidationError("date_of_birth is required", field="date_of_birth")
    today = today or datetime.now(timezone.utc).date()
    if dob > today:
        raise ValidationError("date_of_birth cannot be in the future", field="date_of_birth")
    try:
        oldest = today.replace(year=today.year - MAX_AGE_YEARS)
    except ValueError:
        # Feb 29 on a non-leap target year
        oldest = today.replace(year=today.year - MAX_AGE_YEARS, day=28)
    if dob < oldest:
        raise ValidationError(
            f"date_of_birth implies an age over {MAX_AGE_YEARS} years", field="date_of_birth"
        )
    return dob


def validate_region(state: Optional[str], field: str = "state", min_length: int = 1) -> str:
    """Validate a free-text state/region name (e.g. "Washington")."""
    validate_required(field, state)
    return validate_length(field, state.strip(), min_length, REGION_MAX_LENGTH)


def validate_page(limit: int, offset: int) -> None:
    """Validate pagination bounds (limit 1-100, offset >= 0)."""
    if not isinstance(limit, int) or not (1 <= limit <= MAX_PAGE_LIMIT):
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_LIMIT}", field="limit")
    if not isinstance(offset, int) or offset < 0:
        raise ValidationError("offset must be non-negative", field="offset")


def validate_state_search(state: Optional[str], limit: int, offset: int) -> str:
    """Validate a find-by-state request and return the trimmed state."""
    if not isinstance(state, str):
        raise ValidationError("state is required", field="state")
    state = state.strip()
    validate_length("state", state, REGION_SEARCH_MIN_LENGTH, REGION_MAX_LENGTH)
    validate_page(limit, offset)
    return state


def validate_state_code(state: Optional[str]) -> str:
    """Validate a 2-letter uppercase address state code."""
    if not state or not STATE_CODE_PATTERN.fullmatch(state):
        raise ValidationError("state must be a 2-letter code", field="state")
    return state


def validate_zip(zip_code: Optional[str]) -> str:
    """Validate a 5-digit ZIP code."""
    if not zip_code or not ZIP_PATTERN.fullmatch(zip_code):
        raise ValidationError("zip must be exactly 5 digits", field="zip")
    return zip_code


# ============================================================================
# Search term handling
# ============================================================================

def _clean_search_text(term: str) -> str:
    without_controls = "".join(ch for ch in term if unicodedata.category(ch)[0] != "C")
    return " ".join(without_controls.split())


def canonicalize_search_term(term: Optional[str]) -> str:
    """Canonical form of a name filter: control characters removed,
    whitespace trimmed and collapsed, lower-cased.

    This is exactly the text repositories match on, so two filters with the
    same canonical form always select the same patients.
    """
    if not term:
        return ""
    return _clean_search_text(term).lower()


def sanitize_search_term(term: Optional[str]) -> Optional[str]:
    """Prepare a user search term for querying.

    Control characters are removed and whitespace is collapsed. The result
    is still free text; callers must match it literally.

    Returns:
        The cleaned term, or None when nothing searchable remains
    """
    if term is None:
        return None
    cleaned = _clean_search_text(term)
    if not cleaned:
        return None
    if len(cleaned) > SEARCH_TERM_MAX_LENGTH:
        raise ValidationError(
            f"name filter must be at most {SEARCH_TERM_MAX_LENGTH} characters", field="name"
        )
    return cleaned


def escape_like_pattern(term: str, escape: str = "\\") -> str:
    """Escape LIKE metacharacters so the term matches literally.

    Example:
        ``escape_like_pattern("50%_off")`` returns ``50\\%\\_off``
    """
    return (
        term.replace(escape, escape + escape)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )


# ============================================================================
# Entity validators
# ============================================================================

def validate_patient(patient: Patient) -> None:
    """Validate a patient before it is written.

    Every failing field is collected so a caller sees all problems at once.

    Raises:
        ValidationError: With ``errors`` mapping each failing field to its message
    """
    errors: dict[str, str] = {}

    checks = (
        ("name", lambda: validate_length("name", validate_required("name", patient.name),
                                         NAME_MIN_LENGTH, NAME_MAX_LENGTH)),
        ("phone", lambda: validate_phone(patient.phone)),
        ("date_of_birth", lambda: validate_date_of_birth(patient.date_of_birth)),
        ("state", lambda: validate_region(patient.state)),
    )
    for field, check in checks:
        try:
            check()
        except ValidationError as e:
            errors[field] = str(e)

    if patient.patient_id is not None:
        try:
            validate_id(patient.patient_id)
        except ValidationError as e:
            errors["patient_id"] = str(e)

    if errors:
        raise ValidationError("Patient validation failed", errors=errors)


def validate_address_fields(line1: str, line2: str, city: str, state: str, zip_code: str) -> None:
    """Validate address fields, collecting every failure."""
    errors: dict[str, str] = {}

    checks = (
        ("line1", lambda: validate_length("line1", validate_required("line1", line1), 1,
                                          ADDRESS_LINE_MAX_LENGTH)),
        ("line2", lambda: validate_length("line2", line2 or "", 0, ADDRESS_LINE_MAX_LENGTH)),
        ("city", lambda: validate_length("city", validate_required("city", city), 1, CITY_MAX_LENGTH)),
        ("state", lambda: validate_state_code(state)),
        ("zip", lambda: validate_zip(zip_code)),
    )
    for field, check in checks:
        try:
            check()
        except ValidationError as e:
            errors[field] = str(e)

    if errors:
        raise ValidationError("Address validation failed", errors=errors)


def validate_address(address: Address) -> None:
    """Validate an address before it is written."""
    validate_address_fields(address.line1, address.line2, address.city, address.state, address.zip)
    if address.address_id is not None:
        validate_id(address.address_id, field="address_id", max_length=ADDRESS_ID_MAX_LENGTH)


# ============================================================================
# Identifier generation
# ============================================================================

_address_suffix_lock = threading.Lock()
_last_address_suffix = 0


def generate_patient_id() -> str:
    """Generate a new patient identifier (``P`` + 12 upper-case hex chars)."""
    return "P" + uuid.uuid4().hex[:12].upper()


def _next_address_suffix() -> int:
    global _last_address_suffix
    with _address_suffix_lock:
        candidate = time.time_ns()
        if candidate <= _last_address_suffix:
            candidate = _last_address_suffix + 1
        _last_address_suffix = candidate
        return candidate


def generate_address_id(patient_id: str) -> str:
    """Generate an address identifier unique within this process.

    The suffix is strictly increasing, so two addresses generated in the
    same clock tick still get distinct identifiers.
    """
    return f"{patient_id}-addr-{_next_address_suffix()}"
