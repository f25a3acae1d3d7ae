"""
Workflow error kinds.

Services raise these and never translate them into HTTP responses
themselves; ``app.main`` maps each kind to a status code.
"""
from typing import List, Optional


class WorkflowError(Exception):
    """Base class for every error surfaced by the workflow engine."""

    kind = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(WorkflowError):
    kind = "unauthorized"


class Forbidden(WorkflowError):
    kind = "forbidden"

    def __init__(self, reason: str, required_roles: Optional[List[str]] = None):
        super().__init__(reason)
        self.reason = reason
        self.required_roles = required_roles or []


class NotFound(WorkflowError):
    kind = "not_found"


class InvalidTransition(WorkflowError):
    kind = "invalid_transition"

    def __init__(self, current_status: str, target_status: str, message: str):
        super().__init__(message)
        self.current_status = current_status
        self.target_status = target_status


class InvalidInput(WorkflowError):
    kind = "validation_error"


class StorageError(WorkflowError):
    kind = "storage_error"


class SecurityRisk(WorkflowError):
    kind = "security_risk"

    def __init__(self, risk_level: str, message: str = "The input was rejected by the content security filter."):
        super().__init__(message)
        self.risk_level = risk_level


class Conflict(WorkflowError):
    kind = "conflict"


class ExternalServiceError(WorkflowError):
    kind = "ai_service_error"
