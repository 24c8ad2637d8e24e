"""Domain errors raised by the service handlers.

Input-shape problems are caught earlier by the pydantic input models; the
errors here cover what only the store or the business rules can detect.
"""

from typing import Any, Iterable


class SchoolAdminError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SchoolAdminError):
    """A referenced record id does not resolve."""

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} with id {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(SchoolAdminError):
    """A business rule was violated (weight sum, unknown ids in a batch, wrong role)."""


class ConstraintViolationError(SchoolAdminError):
    """The store rejected a write, typically a uniqueness conflict."""


def invalid_ids_error(label: str, ids: Iterable[int]) -> ValidationError:
    """Build the error for a batch that references ids missing from the store."""
    return ValidationError(f"Invalid {label} IDs: {', '.join(str(i) for i in ids)}")
