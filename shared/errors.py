"""
Shared error handling for the ACL policy engine.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class AccessControlException(Exception):
    """Base exception for the ACL engine."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class InvalidIdentifier(AccessControlException):
    """A node id or rule field is not a valid scalar."""

    def __init__(self, message: str = "Invalid identifier", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_IDENTIFIER", message, details)


class DuplicateNode(AccessControlException):
    """A node with the same kind and id is already registered."""

    def __init__(self, kind: str, node_id: Any, details: Optional[Dict[str, Any]] = None):
        self.kind = kind
        self.node_id = node_id
        super().__init__("DUPLICATE_NODE", f"Duplicate {kind.lower()}: {node_id}", details)


class UnknownElement(AccessControlException):
    """A node id can neither be found nor materialized."""

    def __init__(self, message: str = "Unknown element", details: Optional[Dict[str, Any]] = None):
        super().__init__("UNKNOWN_ELEMENT", message, details)


class InvalidPolicyValue(AccessControlException):
    """A policy value outside the accepted set."""

    def __init__(self, message: str = "Invalid policy", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_POLICY", message, details)


class StructuralConflict(AccessControlException):
    """NOINHERIT combined with a role or an action."""

    def __init__(self, message: str = "Structural conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__("STRUCTURAL_CONFLICT", message, details)


class ValidationFailed(AccessControlException):
    """Action rejected by the configured validator."""

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        self.reason = reason
        super().__init__("VALIDATION_FAILED", f"Action can not be validated: {reason}", details)


class DuplicateRegistration(AccessControlException):
    """The same external-id kind name was registered twice."""

    def __init__(self, message: str = "Cannot register the same name twice", details: Optional[Dict[str, Any]] = None):
        super().__init__("DUPLICATE_REGISTRATION", message, details)


class LoaderNotConfigured(AccessControlException):
    """A collaborator is required but none has been set."""

    def __init__(self, message: str = "Loader not configured", details: Optional[Dict[str, Any]] = None):
        super().__init__("LOADER_NOT_CONFIGURED", message, details)
