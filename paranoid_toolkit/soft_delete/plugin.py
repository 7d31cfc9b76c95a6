"""
Enrollment of mapped classes into paranoid deletion.

``@paranoid`` resolves the configuration once and composes the scope
resolver, state machine, mutation guard and, when the class supports
uniqueness validation, the paranoid uniqueness adapter.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Type

from sqlalchemy import inspect

from ..config import ParanoidConfig, get_config
from .exceptions import ParanoidConfigurationError
from .guard import MutationGuard
from .mixins import ParanoidMixin, register_paranoid_listeners
from .scopes import ScopeResolver, register_default_scope
from .state import DeletionHooks, DeletionStateMachine
from .uniqueness import ParanoidUniquenessValidator
from .validation import UniquenessValidator, ValidationHelpersMixin

logger = logging.getLogger(__name__)


class ParanoidBinding:
    """Collaborators of one enrolled model, built from a resolved config."""

    def __init__(
        self,
        model: Type[Any],
        config: ParanoidConfig,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.model = model
        self.config = config
        self.scopes = ScopeResolver(model, config)
        self.hooks = DeletionHooks()
        self.state_machine = DeletionStateMachine(config, self.hooks, clock)
        self.guard = MutationGuard(config, self.scopes)

        self.uniqueness: Optional[ParanoidUniquenessValidator] = None
        if issubclass(model, ValidationHelpersMixin):
            self.uniqueness = ParanoidUniquenessValidator(
                UniquenessValidator(), config, self.scopes, self.state_machine
            )

    @classmethod
    def for_class(cls, model: Type[Any]) -> "ParanoidBinding":
        """
        Get the binding of an enrolled model.

        Raises:
            ParanoidConfigurationError: If the model was never enrolled
        """
        binding = getattr(model, "__paranoid__", None)
        if not isinstance(binding, cls):
            raise ParanoidConfigurationError(
                f"{model.__name__} is not enrolled; decorate it with @paranoid"
            )
        return binding


def enroll(
    model: Type[Any],
    config: Optional[ParanoidConfig] = None,
    clock: Optional[Callable[[], datetime]] = None,
    **overrides: Any,
) -> ParanoidBinding:
    """
    Enroll a mapped class into paranoid deletion.

    Args:
        model: Mapped class inheriting ParanoidMixin
        config: Base configuration, the global one when omitted
        clock: Source of deletion timestamps
        **overrides: Configuration fields overriding the base configuration

    Returns:
        The binding stored on the class as ``__paranoid__``

    Raises:
        ParanoidConfigurationError: If the class cannot be enrolled
    """
    try:
        resolved = (config or get_config()).merge(**overrides)
    except ValueError as e:
        raise ParanoidConfigurationError(f"Invalid configuration for {model.__name__}: {e}") from e

    if not issubclass(model, ParanoidMixin):
        raise ParanoidConfigurationError(f"{model.__name__} must inherit ParanoidMixin")

    mapper = inspect(model, raiseerr=False)
    if mapper is None:
        raise ParanoidConfigurationError(f"{model.__name__} is not a mapped class")

    attributes = mapper.all_orm_descriptors
    if resolved.deleted_at_field_name not in attributes:
        raise ParanoidConfigurationError(
            f"{model.__name__} has no mapped attribute "
            f"'{resolved.deleted_at_field_name}'"
        )
    if resolved.enable_deleted_by and resolved.deleted_by_field_name not in attributes:
        raise ParanoidConfigurationError(
            f"{model.__name__} has no mapped attribute "
            f"'{resolved.deleted_by_field_name}' required by enable_deleted_by"
        )

    binding = ParanoidBinding(model, resolved, clock=clock)
    model.__paranoid__ = binding

    register_paranoid_listeners(model)
    if resolved.enable_default_scope:
        register_default_scope(binding.scopes)

    logger.info(
        f"Enrolled {model.__name__} for paranoid deletion "
        f"(default_scope={resolved.enable_default_scope}, "
        f"deleted_by={resolved.enable_deleted_by}, "
        f"uniqueness={binding.uniqueness is not None})"
    )
    return binding


def paranoid(
    model: Optional[Type[Any]] = None,
    *,
    config: Optional[ParanoidConfig] = None,
    clock: Optional[Callable[[], datetime]] = None,
    **overrides: Any,
) -> Any:
    """
    Class decorator enrolling a model, usable bare or with options.

    Usage:
        @paranoid
        class Note(Base, ParanoidMixin, DeletedAtMixin): ...

        @paranoid(enable_default_scope=True, non_deleted_scope_name="alive")
        class Account(Base, ParanoidMixin, DeletedAtMixin): ...
    """

    def decorator(cls: Type[Any]) -> Type[Any]:
        enroll(cls, config=config, clock=clock, **overrides)
        return cls

    if model is not None:
        return decorator(model)
    return decorator
