"""
Domain Exceptions for the cost forecasting engine.

Expected missing data never raises; these cover:
- Lookups of records that must exist
- Structural WBS integrity
- Mathematical invariants on computed results
- Persistence failures that must reach the caller
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


# =============================================================================
# Lookup Exceptions
# =============================================================================

class ProjectNotFoundError(DomainError):
    """Raised when a project cannot be found."""

    def __init__(self, project_id: str):
        message = f"Project with id '{project_id}' not found"
        super().__init__(message, code="PROJECT_NOT_FOUND")
        self.project_id = project_id


# =============================================================================
# WBS Exceptions
# =============================================================================

class InvalidWBSCodeError(DomainError):
    """Raised when a WBS node breaks the code/level/path structure."""

    def __init__(self, code: str, reason: str):
        message = f"Invalid WBS node '{code}': {reason}"
        super().__init__(message, code="INVALID_WBS_CODE")
        self.wbs_code = code
        self.reason = reason


# =============================================================================
# Validation Exceptions
# =============================================================================

class ValidationError(DomainError):
    """Raised when input data validation fails."""

    def __init__(self, field: str, message: str):
        super().__init__(f"Validation failed for '{field}': {message}", code="VALIDATION_ERROR")
        self.field = field


class InvariantViolationError(DomainError):
    """Raised when a mathematical invariant is violated."""

    def __init__(self, invariant_name: str, expected: str, actual: str):
        message = (
            f"Invariant '{invariant_name}' violated. "
            f"Expected: {expected}, Actual: {actual}"
        )
        super().__init__(message, code="INVARIANT_VIOLATION")
        self.invariant_name = invariant_name
        self.expected = expected
        self.actual = actual


# =============================================================================
# Persistence Exceptions
# =============================================================================

class PersistenceError(DomainError):
    """Raised when a persistence call fails and the caller must be told."""

    def __init__(self, operation: str, details: dict = None):
        super().__init__(f"Persistence failed during {operation}", code="PERSISTENCE_ERROR")
        self.operation = operation
        self.details = details or {}
