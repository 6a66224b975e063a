"""
System-Wide Constants for the Tenant Mesh Store

All storage tags, identifier limits and defaults centralized here.
Storage tags and the reserved tenant id are part of the on-disk and
wire contract: changing them orphans existing data.
"""

from typing import Final

# =============================================================================
# HASHING
# =============================================================================
DIGEST_SIZE_BYTES: Final[int] = 32  # SHA-256

# =============================================================================
# STORAGE TAGS
# =============================================================================
STATE_KEY: Final[bytes] = b"STATE"
TENANT_VALUE_TAG: Final[bytes] = b"a"
CHANNEL_MAP_TAG: Final[bytes] = b"c"
MESSAGES_TAG: Final[bytes] = b"m"

# =============================================================================
# IDENTIFIER POLICY
# =============================================================================
TENANT_ID_MIN_LEN: Final[int] = 2
TENANT_ID_MAX_LEN: Final[int] = 64
CHANNEL_ID_MIN_LEN: Final[int] = 1
CHANNEL_ID_MAX_LEN: Final[int] = 128
IDENTIFIER_CHARSET: Final[frozenset[str]] = frozenset(
    "abcdefghijklmnopqrstuvwxyz0123456789-_."
)

# =============================================================================
# CHAT APPLICATION
# =============================================================================
CHAT_TENANT_ID: Final[str] = "chat"

# =============================================================================
# RECORD CODEC
# =============================================================================
KB: Final[int] = 1024
RECORD_VERSION: Final[int] = 1
COMPRESSION_THRESHOLD_BYTES: Final[int] = 1 * KB
MAX_U64: Final[int] = 2**64 - 1

# =============================================================================
# DEFAULTS
# =============================================================================
DEFAULT_SELF_ID: Final[str] = "tenantmesh"
DEFAULT_REDIS_KEY_PREFIX: Final[str] = "tenantmesh:"
