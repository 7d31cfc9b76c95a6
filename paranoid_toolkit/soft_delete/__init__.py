"""
Soft Delete Module - paranoid deletion for SQLAlchemy models.

Provides the scope resolver, the deletion state machine, the guarded update
path and paranoid-aware uniqueness validation.
"""

from .exceptions import (
    ConcurrentModificationError,
    HardDeleteError,
    ParanoidConfigurationError,
    ParanoidError,
    PersistenceError,
    UniquenessError,
    UnknownScopeError,
)
from .guard import MutationGuard, primary_key_criteria
from .mixins import DeletedAtMixin, DeletedByMixin, ParanoidMixin
from .models import DeleteContext, DeletionState, HookEvent, RecoverContext, UniqueOptions
from .plugin import ParanoidBinding, enroll, paranoid
from .scopes import ScopeResolver, register_default_scope, unregister_default_scope
from .state import DeletionHooks, DeletionStateMachine
from .uniqueness import ParanoidUniquenessValidator
from .validation import UniquenessValidator, ValidationHelpersMixin, ValidationResult

__all__ = [
    # Enrollment
    "paranoid",
    "enroll",
    "ParanoidBinding",
    # Mixins
    "ParanoidMixin",
    "DeletedAtMixin",
    "DeletedByMixin",
    "ValidationHelpersMixin",
    # Components
    "ScopeResolver",
    "DeletionStateMachine",
    "DeletionHooks",
    "MutationGuard",
    "UniquenessValidator",
    "ParanoidUniquenessValidator",
    "register_default_scope",
    "unregister_default_scope",
    "primary_key_criteria",
    # Models
    "DeletionState",
    "DeleteContext",
    "RecoverContext",
    "HookEvent",
    "UniqueOptions",
    "ValidationResult",
    # Exceptions
    "ParanoidError",
    "ParanoidConfigurationError",
    "PersistenceError",
    "ConcurrentModificationError",
    "UniquenessError",
    "HardDeleteError",
    "UnknownScopeError",
]
