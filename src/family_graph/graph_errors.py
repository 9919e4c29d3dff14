#!/usr/bin/env python3

from typing import Optional


class GraphError(Exception):
    """Base exception for family graph operations."""

    def __init__(self, message: str, error_code: str = None, recovery_suggestion: str = None):
        self.message = message
        self.error_code = error_code or "UNKNOWN_ERROR"
        self.recovery_suggestion = recovery_suggestion
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary format."""
        result = {
            "error": self.message,
            "error_code": self.error_code
        }
        if self.recovery_suggestion:
            result["recovery_suggestion"] = self.recovery_suggestion
        return result


class NotFoundError(GraphError):
    """Raised when a person referenced by a single-entity lookup does not exist."""

    def __init__(self, person_id: str, message: Optional[str] = None):
        self.person_id = person_id
        super().__init__(
            message or f"Person not found: {person_id}",
            error_code="PERSON_NOT_FOUND",
            recovery_suggestion="Check the person ID; the record may have been deleted"
        )


class DataAccessError(GraphError):
    """Raised when a store or snapshot backend cannot be read. The engine
    propagates it unchanged."""

    def __init__(self, message: str, error_code: str = None, recovery_suggestion: str = None):
        super().__init__(message, error_code=error_code or "DATA_ACCESS_ERROR", recovery_suggestion=recovery_suggestion)


class RelationshipValidationError(GraphError):
    """Base class for edges rejected before they are persisted."""

    reason = "INVALID_RELATIONSHIP"
    default_message = "Invalid relationship"
    default_suggestion = None

    def __init__(self, message: str = None, recovery_suggestion: str = None):
        super().__init__(
            message or self.default_message,
            error_code=self.reason,
            recovery_suggestion=recovery_suggestion or self.default_suggestion
        )

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["reason"] = self.reason
        return result


class SelfRelationError(RelationshipValidationError):
    reason = "SELF_RELATION"
    default_message = "Cannot create relationship with self"


class CycleError(RelationshipValidationError):
    reason = "CYCLE_DETECTED"
    default_message = "Cycle detected: cannot make a descendant a parent"
    default_suggestion = "Check the direction of the relationship; person_a must be the child"


class InvalidAgeOrderError(RelationshipValidationError):
    reason = "INVALID_AGE_ORDER"
    default_message = "Invalid relationship: parent cannot be younger than child"
    default_suggestion = "Check both birth dates"


class DuplicateParentRoleError(RelationshipValidationError):
    reason = "DUPLICATE_PARENT_ROLE"
    default_message = "Person already has a parent with this role"
    default_suggestion = "Remove the existing parent edge before adding another with the same role"


class DuplicateRelationshipError(RelationshipValidationError):
    reason = "DUPLICATE_RELATIONSHIP"
    default_message = "Relationship already exists"
