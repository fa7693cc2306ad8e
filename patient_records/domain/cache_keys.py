"""Cache key construction.

Pure functions mapping an entity kind plus its identifiers or query
parameters to a canonical cache key. Nothing here holds state.

Security Impact:
    - Identifier components must pass the ID validator, so they can never
      contain the ':' delimiter or control characters
    - Name filters are canonicalized and hashed; raw search text (possibly
      PHI) never appears in a key
    - Invalid input maps to a constant key in the ``invalid:`` namespace;
      services treat such keys as a guaranteed miss and never write them
"""

import hashlib
from typing import Optional

from patient_records.domain.validation import (
    ADDRESS_ID_MAX_LENGTH,
    PATIENT_ID_MAX_LENGTH,
    canonicalize_search_term,
    is_valid_id,
)

INVALID_NAMESPACE = "invalid"
ALL_TOKEN = "all"
QUERY_TOKEN_PREFIX = "q-"
QUERY_DIGEST_LENGTH = 32


def _invalid(family: str) -> str:
    return f"{INVALID_NAMESPACE}:{family}"


def is_invalid_key(key: str) -> bool:
    """Return True for keys in the invalid namespace."""
    return key.startswith(INVALID_NAMESPACE + ":")


def name_token(name: Optional[str]) -> str:
    """Return the key token for a name filter.

    Semantically equal filters (differing only in case or whitespace) share
    a token; an empty filter maps to ``all``.
    """
    canonical = canonicalize_search_term(name)
    if not canonical:
        return ALL_TOKEN
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return QUERY_TOKEN_PREFIX + digest[:QUERY_DIGEST_LENGTH]


def _valid_page(limit, offset) -> bool:
    return (
        isinstance(limit, int) and not isinstance(limit, bool) and limit > 0
        and isinstance(offset, int) and not isinstance(offset, bool) and offset >= 0
    )


def patient_by_id(patient_id: str) -> str:
    if not is_valid_id(patient_id, PATIENT_ID_MAX_LENGTH):
        return _invalid("patient:id")
    return f"patient:id:{patient_id}"


def patient_list(name: Optional[str], limit: int, offset: int) -> str:
    if not _valid_page(limit, offset):
        return _invalid("patient:list")
    return f"patient:list:{name_token(name)}:{limit}:{offset}"


def patient_count(name: Optional[str]) -> str:
    return f"patient:count:{name_token(name)}"


def address_by_id(patient_id: str, address_id: str) -> str:
    if not (is_valid_id(patient_id, PATIENT_ID_MAX_LENGTH)
            and is_valid_id(address_id, ADDRESS_ID_MAX_LENGTH)):
        return _invalid("address:id")
    return f"address:id:{patient_id}:{address_id}"


def addresses_by_patient(patient_id: str) -> str:
    if not is_valid_id(patient_id, PATIENT_ID_MAX_LENGTH):
        return _invalid("address:patient")
    return f"address:patient:{patient_id}"
