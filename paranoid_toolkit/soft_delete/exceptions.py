"""Exceptions for paranoid delete operations."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .validation import ValidationResult


class ParanoidError(Exception):
    """Base exception for paranoid delete operations."""

    def __init__(self, message: str, entity_id: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(message)


class ParanoidConfigurationError(ParanoidError):
    """Raised when a model cannot be enrolled with the given configuration."""


class UnknownScopeError(ParanoidError):
    """Raised when a scope name is not one of the configured scope names."""

    def __init__(self, scope_name: str, model_name: str):
        self.scope_name = scope_name
        super().__init__(f"{model_name} has no scope named '{scope_name}'")


class PersistenceError(ParanoidError):
    """Raised when writing a deletion marker to storage fails.

    The in-memory record keeps the mutated fields; the caller has to discard
    the record or roll back the session before retrying.
    """

    def __init__(self, operation: str, entity_id: Optional[str] = None):
        self.operation = operation
        super().__init__(
            f"Failed to persist {operation} of entity {entity_id}",
            entity_id=entity_id,
        )


class ConcurrentModificationError(ParanoidError):
    """Raised when a guarded update matched no row."""

    def __init__(self, entity_id: str):
        super().__init__(
            f"Update of entity {entity_id} affected no rows; "
            "it was removed or changed concurrently",
            entity_id=entity_id,
        )


class HardDeleteError(ParanoidError):
    """Raised when a physical delete is attempted on a paranoid model."""

    def __init__(self, model_name: str, entity_id: Optional[str] = None):
        super().__init__(
            f"Hard delete attempted on {model_name}. Use destroy() instead.",
            entity_id=entity_id,
        )


class UniquenessError(ParanoidError):
    """Raised when a conflicting record exists in the relevant scope."""

    def __init__(self, result: "ValidationResult", entity_id: Optional[str] = None):
        self.result = result
        messages = [
            f"{field} {message}"
            for field, field_messages in result.field_errors.items()
            for message in field_messages
        ]
        super().__init__(
            "Uniqueness validation failed: " + "; ".join(messages),
            entity_id=entity_id,
        )

    @property
    def field_errors(self):
        return self.result.field_errors
