"""Structured errors raised by the catalog versioning engine.

Every error is recoverable and carries a stable ``kind`` string so the
API layer can surface it unchanged. Infrastructure errors (database,
network) are not wrapped and propagate as-is.
"""
from typing import Any, Dict, Optional


class CatalogError(Exception):
    """Base class for engine errors."""
    kind = "CatalogError"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"error": self.kind, "message": self.message}
        detail.update(self.context)
        return detail


class InvalidCatalogState(CatalogError):
    """Operation attempted on an archived or nonexistent catalog."""
    kind = "InvalidCatalogState"
    status_code = 409


class InvalidLineage(CatalogError):
    """Cross-catalog version link or a cyclic basedOn reference."""
    kind = "InvalidLineage"
    status_code = 409


class ConcurrentModification(CatalogError):
    """Optimistic precondition failed; retry with fresh state."""
    kind = "ConcurrentModification"
    status_code = 409


class NotApproved(CatalogError):
    kind = "NotApproved"
    status_code = 409


class IdenticalVersions(CatalogError):
    kind = "IdenticalVersions"
    status_code = 400


class StepNotActive(CatalogError):
    """Decision submitted for a step that is not the lowest-order pending step."""
    kind = "StepNotActive"
    status_code = 409


class Unauthorized(CatalogError):
    kind = "Unauthorized"
    status_code = 403


class EntityNotFound(CatalogError):
    kind = "EntityNotFound"
    status_code = 404

    def __init__(self, entity_type: str, entity_id: Optional[int]):
        super().__init__(
            f"{entity_type} {entity_id} not found",
            entity_type=entity_type,
            entity_id=entity_id,
        )


class InvalidWorkflowState(CatalogError):
    kind = "InvalidWorkflowState"
    status_code = 409


class InvalidWorkflowDefinition(CatalogError):
    kind = "InvalidWorkflowDefinition"
    status_code = 422
