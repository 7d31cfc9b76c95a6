"""
SQLAlchemy mixins for paranoid delete functionality.

These mixins give mapped classes the paranoid entry points (destroy, recover,
guarded updates and scoped views) and optional default marker columns.
"""

import logging
from datetime import datetime
from typing import Any, Optional, Type

from sqlalchemy import DateTime, String, Select, event
from sqlalchemy.orm import Mapped, Session, mapped_column

from .exceptions import HardDeleteError
from .models import DeleteContext, DeletionState, RecoverContext

logger = logging.getLogger(__name__)


class ParanoidMixin:
    """
    Mixin adding paranoid deletion to SQLAlchemy models.

    The class must be enrolled with the ``@paranoid`` decorator, which
    resolves field names, scope names and the sentinel once.

    Usage:
        @paranoid(enable_deleted_by=True, enable_default_scope=True)
        class Account(Base, ParanoidMixin, DeletedAtMixin, DeletedByMixin):
            __tablename__ = 'accounts'
            id = Column(Integer, primary_key=True)
            email = Column(String)

        account.destroy(session, deleted_by="u1")
        session.scalars(Account.deleted_view()).all()
        account.recover(session)
    """

    @classmethod
    def paranoid_binding(cls) -> Any:
        """
        Return the paranoid binding of this class.

        Raises:
            ParanoidConfigurationError: If the class was never enrolled
        """
        from .plugin import ParanoidBinding

        return ParanoidBinding.for_class(cls)

    # Scopes

    @classmethod
    def unfiltered_view(cls) -> Select[Any]:
        return cls.paranoid_binding().scopes.unfiltered_view()

    @classmethod
    def present_view(cls) -> Select[Any]:
        return cls.paranoid_binding().scopes.present_view()

    @classmethod
    def deleted_view(cls) -> Select[Any]:
        return cls.paranoid_binding().scopes.deleted_view()

    @classmethod
    def scoped(cls, name: str) -> Select[Any]:
        """Return the view registered under a configured scope name."""
        return cls.paranoid_binding().scopes.view(name)

    # State

    @property
    def is_deleted(self) -> bool:
        return type(self).paranoid_binding().state_machine.is_deleted(self)

    @property
    def deletion_state(self) -> DeletionState:
        return type(self).paranoid_binding().state_machine.state_of(self)

    def destroy(self, session: Session, deleted_by: Optional[Any] = None) -> DeleteContext:
        """
        Soft delete this record.

        Args:
            session: Session used to write the marker
            deleted_by: Actor performing the deletion, stored only when
                actor tracking is enabled

        Raises:
            PersistenceError: If writing the marker fails
        """
        return type(self).paranoid_binding().state_machine.delete(
            session, self, deleted_by=deleted_by
        )

    def recover(self, session: Session) -> RecoverContext:
        """
        Undelete this record.

        Raises:
            PersistenceError: If writing the marker fails
        """
        return type(self).paranoid_binding().state_machine.recover(session, self)

    def update_columns(self, session: Session, **values: Any) -> int:
        """
        Update columns of this record by primary key, even if it is deleted.

        Raises:
            ConcurrentModificationError: If the row no longer exists
            PersistenceError: If the statement fails
        """
        return type(self).paranoid_binding().guard.update(session, self, values)

    # Hooks, override in models

    def before_destroy(self, context: DeleteContext) -> None:
        pass

    def after_destroy(self, context: DeleteContext) -> None:
        pass

    def before_recover(self, context: RecoverContext) -> None:
        pass

    def after_recover(self, context: RecoverContext) -> None:
        pass


class DeletedAtMixin:
    """Default deletion timestamp column."""

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )


class DeletedByMixin:
    """Default deleting-actor column."""

    deleted_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)


def prevent_hard_delete(mapper: Any, connection: Any, target: Any) -> None:
    """
    Prevent hard deletes on enrolled paranoid models.

    This function is connected to SQLAlchemy's before_delete event.
    """
    if getattr(target, "__paranoid__", None) is not None:
        raise HardDeleteError(target.__class__.__name__)


def register_paranoid_listeners(model: Type[Any]) -> None:
    """
    Register SQLAlchemy event listeners for a paranoid model.

    Args:
        model: The mapped class
    """
    if not event.contains(model, "before_delete", prevent_hard_delete):
        event.listen(model, "before_delete", prevent_hard_delete, propagate=True)

    if not event.contains(model, "init", apply_sentinel):
        event.listen(model, "init", apply_sentinel, propagate=True)


def apply_sentinel(target: Any, args: Any, kwargs: Any) -> None:
    """Start new records at the configured sentinel value."""
    config = type(target).paranoid_binding().config
    if config.deleted_column_default is None:
        return
    if config.deleted_at_field_name not in kwargs:
        setattr(target, config.deleted_at_field_name, config.deleted_column_default)
