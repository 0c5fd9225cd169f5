"""
Domain Exceptions.

Custom exceptions for domain-level errors.
Every error carries a stable ``code`` and a ``details`` dict so callers can
render it without parsing the message.
"""

from typing import Any, Dict, Optional, Sequence


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "DOMAIN_ERROR"
        self.details = details or {}


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            message=f"{entity_type} with id '{entity_id}' not found",
            code="ENTITY_NOT_FOUND",
            details={"entity_type": entity_type, "entity_id": str(entity_id)}
        )


class InvalidFieldException(DomainException):
    """Raised when a record field is out of range or malformed."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        errors: Optional[Dict[str, Any]] = None,
    ):
        details: Dict[str, Any] = {
            "field": field,
            "value": str(value) if value is not None else None,
        }
        if errors:
            details["errors"] = errors
        super().__init__(message=message, code="INVALID_FIELD", details=details)
        self.field = field


class VersionConflictException(DomainException):
    """Raised when optimistic locking fails due to concurrent modification."""

    def __init__(self, entity_type: str, entity_id: Any, expected_revision: int, actual_revision: int):
        super().__init__(
            message=f"{entity_type} '{entity_id}' was modified by another writer "
                    f"(expected revision {expected_revision}, found {actual_revision})",
            code="VERSION_CONFLICT",
            details={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "expected_revision": expected_revision,
                "actual_revision": actual_revision,
            }
        )


class StructuralCycleException(DomainException):
    """Raised when a component would become its own ancestor."""

    def __init__(self, path: Sequence[Any], message: Optional[str] = None):
        self.path = tuple(str(p) for p in path)
        super().__init__(
            message=message or "Circular reference detected in BOM structure: "
                               + " -> ".join(self.path),
            code="STRUCTURAL_CYCLE",
            details={"path": list(self.path)}
        )


class TraversalBudgetExceededException(DomainException):
    """Raised when a traversal hits its depth or node budget."""

    def __init__(self, budget: str, limit: int, path: Sequence[Any] = ()):
        self.path = tuple(str(p) for p in path)
        super().__init__(
            message=f"Traversal budget exceeded: {budget} limit of {limit} reached",
            code="TRAVERSAL_BUDGET_EXCEEDED",
            details={"budget": budget, "limit": limit, "path": list(self.path)}
        )


class BusinessRuleViolationException(DomainException):
    """Raised when a business rule is violated."""

    def __init__(self, rule: str, message: str, **details: Any):
        super().__init__(
            message=message,
            code="BUSINESS_RULE_VIOLATION",
            details={"rule": rule, **{k: str(v) for k, v in details.items()}}
        )
        self.rule = rule
