"""
Error Hierarchy for the Tenant Mesh Store

Design Principles:
- Forbid exceptions for control flow (use Result types)
- Every error aborts the enclosing invocation; nothing is partially applied
- "Not found" is never an error
- Carry full error context for debugging and audit trails

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause for root cause analysis
- Timestamp for correlation with invocation logs

Usage:
    result = store.get(tenant_id, key)
    match result:
        case Ok(value):
            process(value)
        case Err(ValidationError() as error):
            reject(error)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from tenantmesh.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Storage errors
    - 2xxx: Validation errors
    - 3xxx: Chat protocol errors
    - 5xxx: Security errors
    - 7xxx: Contract state errors
    - 9xxx: Internal/unknown errors
    """

    # Storage errors (1xxx)
    STORAGE_CONNECTION_FAILED = 1001
    STORAGE_TIMEOUT = 1002
    STORAGE_CORRUPTION = 1006
    STORAGE_COMMIT_FAILED = 1008

    # Validation errors (2xxx)
    VALIDATION_INVALID_LENGTH = 2001
    VALIDATION_INVALID_CHARACTER = 2002
    VALIDATION_INVALID_ENCODING = 2003

    # Chat protocol errors (3xxx)
    PROTOCOL_MALFORMED_PAYLOAD = 3001
    PROTOCOL_UNKNOWN_VARIANT = 3002
    PROTOCOL_UNSUPPORTED_TENANT = 3003

    # Security errors (5xxx)
    SECURITY_SELF_CALL_REQUIRED = 5001

    # Contract state errors (7xxx)
    STATE_ALREADY_INITIALIZED = 7001
    STATE_NOT_INITIALIZED = 7002

    # Internal errors (9xxx)
    INTERNAL_ERROR = 9001
    INTERNAL_CONFIGURATION_ERROR = 9002


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class TenantMeshError(Exception):
    """
    Base class for all tenant mesh errors.

    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp for correlation
    - Cause chain for root cause analysis
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[Exception] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def with_context(self, **kwargs: Any) -> TenantMeshError:
        """
        Add context to error (returns new instance of the same class).

        Context is useful for debugging but should not
        contain sensitive information.
        """
        return type(self)(
            code=self.code,
            message=self.message,
            error_id=self.error_id,
            timestamp=self.timestamp,
            cause=self.cause,
            context={**self.context, **kwargs},
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for logging."""
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_nanos": self.timestamp.nanos,
            "context": self.context,
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# STORAGE ERRORS
# =============================================================================
@dataclass
class StorageError(TenantMeshError):
    """
    Errors from the key-value backends and the record codec.

    Covers connection issues, timeouts, failed commits, and
    records that cannot be decoded.
    """

    @classmethod
    def connection_failed(
        cls,
        host: str,
        port: int,
        cause: Optional[Exception] = None,
    ) -> StorageError:
        """Backend connection failed."""
        return cls(
            code=ErrorCode.STORAGE_CONNECTION_FAILED,
            message=f"Failed to connect to backend at {host}:{port}",
            cause=cause,
            context={"host": host, "port": port},
        )

    @classmethod
    def timeout(
        cls,
        operation: str,
        cause: Optional[Exception] = None,
    ) -> StorageError:
        """Backend operation timed out."""
        return cls(
            code=ErrorCode.STORAGE_TIMEOUT,
            message=f"Operation '{operation}' timed out",
            cause=cause,
            context={"operation": operation},
        )

    @classmethod
    def corruption(
        cls,
        description: str,
        key_hex: Optional[str] = None,
    ) -> StorageError:
        """Stored record cannot be decoded."""
        return cls(
            code=ErrorCode.STORAGE_CORRUPTION,
            message=f"Data corruption detected: {description}",
            context={"key_hex": key_hex},
        )

    @classmethod
    def commit_failed(
        cls,
        staged_writes: int,
        cause: Optional[Exception] = None,
    ) -> StorageError:
        """Staged batch could not be applied to the backend."""
        return cls(
            code=ErrorCode.STORAGE_COMMIT_FAILED,
            message=f"Failed to commit {staged_writes} staged writes",
            cause=cause,
            context={"staged_writes": staged_writes},
        )


# =============================================================================
# VALIDATION ERRORS
# =============================================================================
@dataclass
class ValidationError(TenantMeshError):
    """
    Identifier policy and payload encoding violations.

    Raised before any hashing or storage access takes place.
    """

    @classmethod
    def invalid_length(
        cls,
        field: str,
        value: str,
        min_len: int,
        max_len: int,
    ) -> ValidationError:
        return cls(
            code=ErrorCode.VALIDATION_INVALID_LENGTH,
            message=(
                f"{field} length should be between {min_len} and "
                f"{max_len} characters"
            ),
            context={"field": field, "value": value[:100], "length": len(value)},
        )

    @classmethod
    def invalid_character(
        cls,
        field: str,
        value: str,
        character: str,
    ) -> ValidationError:
        return cls(
            code=ErrorCode.VALIDATION_INVALID_CHARACTER,
            message=(
                f"Unsupported character {character!r} in the {field}. "
                f"Only allowed to use `-_.` and 0-9 a-z"
            ),
            context={"field": field, "value": value[:100], "character": character},
        )

    @classmethod
    def invalid_encoding(
        cls,
        field: str,
        cause: Optional[Exception] = None,
    ) -> ValidationError:
        """Text is not valid UTF-8, either stored bytes or a caller string."""
        return cls(
            code=ErrorCode.VALIDATION_INVALID_ENCODING,
            message=f"{field} is not valid UTF-8",
            cause=cause,
            context={"field": field},
        )


# =============================================================================
# CHAT PROTOCOL ERRORS
# =============================================================================
@dataclass
class ProtocolError(TenantMeshError):
    """
    Errors from decoding structured chat requests and messages.
    """

    @classmethod
    def malformed_payload(
        cls,
        payload_kind: str,
        reason: str,
        cause: Optional[Exception] = None,
    ) -> ProtocolError:
        return cls(
            code=ErrorCode.PROTOCOL_MALFORMED_PAYLOAD,
            message=f"Can't parse {payload_kind}: {reason}",
            cause=cause,
            context={"payload_kind": payload_kind, "reason": reason},
        )

    @classmethod
    def unknown_variant(
        cls,
        payload_kind: str,
        tag: str,
        expected: list[str],
    ) -> ProtocolError:
        return cls(
            code=ErrorCode.PROTOCOL_UNKNOWN_VARIANT,
            message=f"Unknown {payload_kind} variant '{tag}'",
            context={"payload_kind": payload_kind, "tag": tag, "expected": expected},
        )

    @classmethod
    def unsupported_tenant(cls, tenant_id: str) -> ProtocolError:
        return cls(
            code=ErrorCode.PROTOCOL_UNSUPPORTED_TENANT,
            message=f"Only chat messages are supported, got tenant '{tenant_id}'",
            context={"tenant_id": tenant_id},
        )


# =============================================================================
# SECURITY ERRORS
# =============================================================================
@dataclass
class AuthorizationError(TenantMeshError):
    """
    Privileged operation invoked by a caller other than the store itself.
    """

    @classmethod
    def self_call_required(
        cls,
        operation: str,
        caller_id: str,
        self_id: str,
    ) -> AuthorizationError:
        return cls(
            code=ErrorCode.SECURITY_SELF_CALL_REQUIRED,
            message=f"Self calls only: '{caller_id}' cannot {operation}",
            context={"operation": operation, "caller_id": caller_id, "self_id": self_id},
        )


# =============================================================================
# CONTRACT STATE ERRORS
# =============================================================================
@dataclass
class StateError(TenantMeshError):
    """
    Lifecycle errors: initialize twice, or use before initialize.
    """

    @classmethod
    def already_initialized(cls) -> StateError:
        return cls(
            code=ErrorCode.STATE_ALREADY_INITIALIZED,
            message="The store is already initialized",
        )

    @classmethod
    def not_initialized(cls) -> StateError:
        return cls(
            code=ErrorCode.STATE_NOT_INITIALIZED,
            message="Not initialized yet",
        )


# =============================================================================
# INTERNAL ERRORS
# =============================================================================
@dataclass
class InternalError(TenantMeshError):
    """Unexpected exceptions escaping a contract method."""

    @classmethod
    def unexpected(cls, operation: str, cause: Exception) -> InternalError:
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Unexpected failure in '{operation}': {cause}",
            cause=cause,
            context={"operation": operation, "exception": type(cause).__name__},
        )

    @classmethod
    def configuration(cls, reason: str) -> InternalError:
        return cls(
            code=ErrorCode.INTERNAL_CONFIGURATION_ERROR,
            message=f"Configuration error: {reason}",
            context={"reason": reason},
        )
