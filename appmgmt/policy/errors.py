"""
Typed errors raised by the policy engine.

All of these are raised synchronously by pure functions; none of them
originate from I/O and none of them are ever retried.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Engine failure taxonomy."""
    INVALID_RESTRICTION_PATH = "InvalidRestrictionPath"
    DUPLICATE_EXEMPTION = "DuplicateExemption"
    MALFORMED_POLICY_SHAPE = "MalformedPolicyShape"


class PolicyError(Exception):
    """Base exception for policy engine errors."""

    kind: ErrorKind

    def __init__(self, message: str, path: str = "", policy_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.policy_id = policy_id

    def __str__(self) -> str:
        where = f" at '{self.path}'" if self.path else ""
        owner = f" (policy {self.policy_id})" if self.policy_id else ""
        return f"{self.kind.value}: {self.message}{where}{owner}"


class InvalidRestrictionPath(PolicyError):
    """Unknown restriction group, category or type for a policy type."""
    kind = ErrorKind.INVALID_RESTRICTION_PATH


class DuplicateExemption(PolicyError):
    """A second, different exemption record under an existing id."""
    kind = ErrorKind.DUPLICATE_EXEMPTION


class MalformedPolicyShape(PolicyError):
    """A fetched document contradicts its schema at a traversed path."""
    kind = ErrorKind.MALFORMED_POLICY_SHAPE
