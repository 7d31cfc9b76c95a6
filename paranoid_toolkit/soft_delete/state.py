"""
Deletion state machine for paranoid models.

Moves records between the ACTIVE and DELETED states by writing the deletion
marker, and fires the extension hooks around each transition.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from ..config import ParanoidConfig
from .exceptions import PersistenceError
from .models import DeleteContext, DeletionState, HookEvent, RecoverContext

logger = logging.getLogger(__name__)

Hook = Callable[[Any, BaseModel], None]

# Instance methods a record may define to take part in its own lifecycle
RECORD_HOOKS = {
    HookEvent.BEFORE_DELETE: "before_destroy",
    HookEvent.AFTER_DELETE: "after_destroy",
    HookEvent.BEFORE_RECOVER: "before_recover",
    HookEvent.AFTER_RECOVER: "after_recover",
}


def entity_id_of(record: Any) -> Optional[str]:
    """Return the record's primary key as a string, or None when unsaved."""
    identity = inspect(record).identity
    if identity is None:
        return None
    return ",".join(str(value) for value in identity)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeletionHooks:
    """
    Registry of listeners fired around deletion and recovery.

    The record's own hook method (e.g. ``before_destroy``) runs first, then
    the registered listeners in registration order. A listener aborts the
    operation by raising.
    """

    def __init__(self) -> None:
        self._listeners: Dict[HookEvent, List[Hook]] = {
            hook_event: [] for hook_event in HookEvent
        }

    def register(self, hook_event: Union[HookEvent, str], fn: Hook) -> Hook:
        """
        Register a listener.

        Args:
            hook_event: Event to listen to
            fn: Callable receiving ``(record, context)``

        Returns:
            The listener, unchanged
        """
        self._listeners[HookEvent(hook_event)].append(fn)
        return fn

    def listen(self, hook_event: Union[HookEvent, str]) -> Callable[[Hook], Hook]:
        """Decorator form of :meth:`register`."""

        def decorator(fn: Hook) -> Hook:
            return self.register(hook_event, fn)

        return decorator

    def remove(self, hook_event: Union[HookEvent, str], fn: Hook) -> None:
        self._listeners[HookEvent(hook_event)].remove(fn)

    def fire(
        self, hook_event: Union[HookEvent, str], record: Any, context: BaseModel
    ) -> None:
        """Run the record hook and all listeners for an event."""
        hook_event = HookEvent(hook_event)

        method = getattr(record, RECORD_HOOKS[hook_event], None)
        if callable(method):
            method(context)

        for fn in list(self._listeners[hook_event]):
            fn(record, context)


class DeletionStateMachine:
    """
    Governs the deletion marker of records of one model.

    Transitions:
        ACTIVE  --delete-->  DELETED  (marker set to now, actor recorded)
        DELETED --delete-->  DELETED  (marker refreshed)
        DELETED --recover--> ACTIVE   (marker reset to the sentinel)
        ACTIVE  --recover--> ACTIVE   (nothing changes, still written)
    """

    def __init__(
        self,
        config: ParanoidConfig,
        hooks: Optional[DeletionHooks] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the state machine.

        Args:
            config: Resolved paranoid configuration of the model
            hooks: Hook registry, a fresh one is created when omitted
            clock: Source of deletion timestamps
        """
        self.config = config
        self.hooks = hooks or DeletionHooks()
        self.clock = clock or utcnow

    def state_of(self, record: Any) -> DeletionState:
        if self.is_deleted(record):
            return DeletionState.DELETED
        return DeletionState.ACTIVE

    def is_deleted(self, record: Any) -> bool:
        """Check whether the record's marker differs from the sentinel."""
        marker = getattr(record, self.config.deleted_at_field_name)
        return marker != self.config.deleted_column_default

    def delete(
        self, session: Session, record: Any, deleted_by: Optional[Any] = None
    ) -> DeleteContext:
        """
        Mark a record as deleted.

        Deleting an already deleted record is allowed and refreshes the
        timestamp.

        Args:
            session: Session the record belongs to (or will be added to)
            record: Record to delete
            deleted_by: Actor performing the deletion

        Returns:
            The context that was passed through the hooks

        Raises:
            PersistenceError: If writing the marker fails
        """
        context = DeleteContext(
            record_type=type(record).__name__,
            entity_id=entity_id_of(record),
            deleted_at=self.clock(),
            deleted_by=deleted_by,
        )

        self.hooks.fire(HookEvent.BEFORE_DELETE, record, context)
        snapshot = self._snapshot(record)
        self.apply_delete(session, record, context)
        try:
            self.hooks.fire(HookEvent.AFTER_DELETE, record, context)
        except Exception:
            self._restore(session, record, snapshot, "delete")
            raise
        self._commit(session, "delete", context.entity_id)

        logger.debug(
            f"Deleted {context.record_type} {context.entity_id} "
            f"(deleted_by={context.deleted_by})"
        )
        return context

    def apply_delete(self, session: Session, record: Any, context: DeleteContext) -> None:
        """Write the deletion marker from an explicit context."""
        setattr(record, self.config.deleted_at_field_name, context.deleted_at)

        if self.config.enable_deleted_by and context.deleted_by is not None:
            setattr(record, self.config.deleted_by_field_name, context.deleted_by)

        self.save(session, record, "delete")

    def recover(self, session: Session, record: Any) -> RecoverContext:
        """
        Reset the deletion marker of a record to the sentinel.

        Raises:
            PersistenceError: If writing the marker fails
        """
        context = RecoverContext(
            record_type=type(record).__name__,
            entity_id=entity_id_of(record),
            previous_deleted_at=getattr(record, self.config.deleted_at_field_name),
        )

        self.hooks.fire(HookEvent.BEFORE_RECOVER, record, context)
        snapshot = self._snapshot(record)

        setattr(
            record,
            self.config.deleted_at_field_name,
            self.config.deleted_column_default,
        )
        if self.config.enable_deleted_by and hasattr(
            record, self.config.deleted_by_field_name
        ):
            setattr(record, self.config.deleted_by_field_name, None)

        self.save(session, record, "recover")
        try:
            self.hooks.fire(HookEvent.AFTER_RECOVER, record, context)
        except Exception:
            self._restore(session, record, snapshot, "recover")
            raise
        self._commit(session, "recover", context.entity_id)

        logger.debug(f"Recovered {context.record_type} {context.entity_id}")
        return context

    def save(self, session: Session, record: Any, operation: str) -> None:
        """
        Write the record, even when no column value changed.

        Raises:
            PersistenceError: If the flush fails
        """
        # Forces an UPDATE for unchanged records, e.g. recovering an active one
        flag_modified(record, self.config.deleted_at_field_name)

        try:
            session.add(record)
            session.flush()
        except SQLAlchemyError as e:
            entity_id = entity_id_of(record)
            logger.error(f"Failed to {operation} {type(record).__name__} {entity_id}: {e}")
            raise PersistenceError(operation, entity_id) from e

    def _snapshot(self, record: Any) -> Dict[str, Any]:
        """Capture the marker fields a transition may overwrite."""
        names = [self.config.deleted_at_field_name]
        if self.config.enable_deleted_by and hasattr(
            record, self.config.deleted_by_field_name
        ):
            names.append(self.config.deleted_by_field_name)
        return {name: getattr(record, name) for name in names}

    def _restore(
        self, session: Session, record: Any, snapshot: Dict[str, Any], operation: str
    ) -> None:
        """
        Write the captured marker fields back after an after-hook failed.

        The flushed transition and its reversal share the open transaction,
        so a later commit persists neither.
        """
        entity_id = entity_id_of(record)
        logger.warning(
            f"After-{operation} hook failed for {type(record).__name__} "
            f"{entity_id}; restoring deletion marker"
        )
        for name, value in snapshot.items():
            setattr(record, name, value)
        self.save(session, record, operation)

    def _commit(self, session: Session, operation: str, entity_id: Optional[str]) -> None:
        if not self.config.commit_on_save:
            return

        try:
            session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to commit {operation} of {entity_id}: {e}")
            raise PersistenceError(operation, entity_id) from e
