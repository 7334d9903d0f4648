"""Typed failures raised by the identity and signing-key resolution core.

Every error carries the offending alias/reference text and network in
``context`` so command handlers can render a precise diagnostic or map the
failure to an exit code without parsing messages.
"""

from __future__ import annotations

__all__ = [
    "AlreadyExistsError",
    "ConfigurationError",
    "IdentityError",
    "IncompleteRecordError",
    "InvalidInputError",
    "InvalidReferenceError",
    "NotFoundError",
    "OperatorNotConfiguredError",
    "StorageError",
    "ValidationError",
]


class IdentityError(RuntimeError):
    """Base class for resolution failures.

    Args:
        message: Human readable description.
        context: Diagnostic fields such as ``alias``, ``network`` or
            ``reference``.
        recoverable: Whether retrying with corrected input can succeed.
    """

    code: str = "IDENTITY_ERROR"

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, object] | None = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, object] = dict(context or {})
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-ready representation of the error."""

        payload: dict[str, object] = {"code": self.code, "message": self.message}
        if self.context:
            payload["context"] = dict(self.context)
        if self.__cause__ is not None:
            payload["cause"] = str(self.__cause__)
        return payload


class AlreadyExistsError(IdentityError):
    """Raised when an alias is already registered on a network."""

    code = "ALREADY_EXISTS"


class NotFoundError(IdentityError):
    """Raised when an alias or key reference cannot be found.

    A type mismatch during alias lookup is reported as not-found as well.
    """

    code = "NOT_FOUND"


class IncompleteRecordError(IdentityError):
    """Raised when an alias exists but lacks the fields a caller needs."""

    code = "INCOMPLETE_RECORD"


class ValidationError(IdentityError):
    """Raised for malformed private keys or entity identifiers."""

    code = "VALIDATION_ERROR"


class InvalidInputError(IdentityError):
    """Raised when input matches neither the keypair nor the alias form."""

    code = "INVALID_INPUT"


class OperatorNotConfiguredError(InvalidInputError):
    """Raised when a fallback to the operator is requested but none is set."""

    code = "OPERATOR_NOT_CONFIGURED"


class InvalidReferenceError(IdentityError):
    """Raised when a reference is neither a known alias nor a valid id."""

    code = "INVALID_REFERENCE"


class ConfigurationError(IdentityError):
    """Raised when the vault or network configuration cannot satisfy a call."""

    code = "CONFIGURATION_ERROR"

    def __init__(
        self, message: str, *, context: dict[str, object] | None = None
    ) -> None:
        super().__init__(message, context=context, recoverable=False)


class StorageError(IdentityError):
    """Raised when the persisted state cannot be read or written safely."""

    code = "STORAGE_ERROR"

    def __init__(
        self, message: str, *, context: dict[str, object] | None = None
    ) -> None:
        super().__init__(message, context=context, recoverable=False)
