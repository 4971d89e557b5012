"""Error handling utilities."""

from typing import Any, Optional

from pydantic import ValidationError


class TaskTrackerError(Exception):
    """Base exception for the task tracker backend."""
    pass


class NotFoundError(TaskTrackerError):
    """Requested task or comment has no matching (non-deleted) row."""

    def __init__(self, resource: str, resource_id: Any):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found with id: {resource_id}")


class ValidationFailure(TaskTrackerError):
    """Request failed validation. Carries a field -> message map."""

    def __init__(self, field_errors: dict[str, str], message: str = "Validation failed"):
        self.field_errors = dict(field_errors)
        super().__init__(message)

    @classmethod
    def from_pydantic(cls, error: ValidationError) -> "ValidationFailure":
        """Flatten a pydantic ValidationError into one message per field."""
        field_errors: dict[str, str] = {}
        for item in error.errors():
            loc = ".".join(str(part) for part in item.get("loc", ())) or "__root__"
            # First violation per field wins
            field_errors.setdefault(loc, item.get("msg", "Invalid value"))
        return cls(field_errors)


class TagConflictError(TaskTrackerError):
    """Tag name uniqueness violation while creating a tag."""

    def __init__(self, name: str, cause: Optional[BaseException] = None):
        self.name = name
        self.cause = cause
        super().__init__(f"Tag already exists: {name}")


class StorageError(TaskTrackerError):
    """Storage (Supabase / in-process store) operation error."""
    pass
