"""
Identifier Validation

Charset and length policies for tenant and channel identifiers. Both
checks run before any hashing or storage access; a violation aborts
the whole invocation.
"""

from __future__ import annotations

from tenantmesh.core import constants as C
from tenantmesh.core.errors import ValidationError
from tenantmesh.core.types import Err, Ok, Result


def _validate_identifier(
    field: str,
    value: str,
    min_len: int,
    max_len: int,
) -> Result[str, ValidationError]:
    if not isinstance(value, str):
        return Err(ValidationError.invalid_length(field, repr(value), min_len, max_len))

    # The charset is ASCII, so once it passes len() is the byte length.
    # Checking it first also rejects strings that cannot be UTF-8 encoded.
    for char in value:
        if char not in C.IDENTIFIER_CHARSET:
            return Err(ValidationError.invalid_character(field, value, char))

    if len(value) < min_len or len(value) > max_len:
        return Err(ValidationError.invalid_length(field, value, min_len, max_len))

    return Ok(value)


def validate_tenant_id(tenant_id: str) -> Result[str, ValidationError]:
    """Ok(tenant_id) iff 2 <= len <= 64 and every char is in [a-z0-9-_.]."""
    return _validate_identifier(
        "Tenant ID",
        tenant_id,
        C.TENANT_ID_MIN_LEN,
        C.TENANT_ID_MAX_LEN,
    )


def validate_channel_id(channel_id: str) -> Result[str, ValidationError]:
    """Ok(channel_id) iff 1 <= len <= 128 and every char is in [a-z0-9-_.]."""
    return _validate_identifier(
        "Channel ID",
        channel_id,
        C.CHANNEL_ID_MIN_LEN,
        C.CHANNEL_ID_MAX_LEN,
    )


def validate_utf8(field: str, value: str) -> Result[str, ValidationError]:
    """Ok(value) iff value can be stored as UTF-8 (no lone surrogates)."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        return Err(ValidationError.invalid_encoding(field, e))
    return Ok(value)
