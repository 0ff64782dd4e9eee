"""
Domain error taxonomy.
Routers never build these by hand; services raise them and the exception
handlers in main.py translate them to HTTP responses.
"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    status_code = 500
    kind = "error"

    def __init__(
        self,
        entity: str,
        entity_id: Any = None,
        action: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        self.entity = entity
        self.entity_id = entity_id
        self.action = action
        self.reason = reason
        super().__init__(self.message)

    @property
    def message(self) -> str:
        parts = [f"{self.entity}"]
        if self.entity_id is not None:
            parts.append(str(self.entity_id))
        text = " ".join(parts)
        if self.action:
            text = f"{self.action} on {text}"
        if self.reason:
            text = f"{text}: {self.reason}"
        return text

    def to_detail(self) -> Dict[str, Any]:
        return {
            "error": self.kind,
            "entity": self.entity,
            "entity_id": str(self.entity_id) if self.entity_id is not None else None,
            "action": self.action,
            "reason": self.reason,
            "message": self.message,
        }


class NotFound(DomainError):
    status_code = 404
    kind = "not_found"

    def __init__(self, entity: str, entity_id: Any = None, action: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(entity, entity_id, action, reason or f"{entity} not found")


class ValidationError(DomainError):
    status_code = 400
    kind = "validation_error"


class ConflictError(DomainError):
    status_code = 409
    kind = "conflict"


class PersistenceFailure(DomainError):
    status_code = 500
    kind = "persistence_failure"
