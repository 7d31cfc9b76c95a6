"""
Scope resolution for paranoid models.

Derives the three views over a model (present, deleted and unfiltered) and
installs the optional default scope that hides deleted rows from ordinary
ORM queries.
"""

import logging
from typing import Any, Callable, Dict, Type

from sqlalchemy import Select, event, func, select
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria
from sqlalchemy.sql.elements import ColumnElement

from ..config import ParanoidConfig
from .exceptions import UnknownScopeError

logger = logging.getLogger(__name__)


class ScopeResolver:
    """
    Builds composable views over a paranoid model.

    Every view is a ``Select`` derived from the same unfiltered base, so
    callers can keep chaining ``where()``, ``order_by()`` and friends onto it.
    """

    def __init__(self, model: Type[Any], config: ParanoidConfig):
        self.model = model
        self.config = config

    @property
    def marker(self) -> Any:
        """The mapped deletion marker attribute."""
        return getattr(self.model, self.config.deleted_at_field_name)

    @property
    def bypass_options(self) -> Dict[str, Any]:
        """Execution options that switch the default scope off."""
        return {self.config.include_deleted_option: True}

    def present_criteria(self) -> ColumnElement[bool]:
        """Predicate matching rows that are not deleted."""
        sentinel = self.config.deleted_column_default
        if sentinel is None:
            return self.marker.is_(None)
        return self.marker == sentinel

    def deleted_criteria(self) -> ColumnElement[bool]:
        """Predicate matching deleted rows."""
        sentinel = self.config.deleted_column_default
        if sentinel is None:
            return self.marker.is_not(None)
        return self.marker != sentinel

    def unfiltered_view(self) -> Select[Any]:
        """All rows, regardless of the default scope."""
        return select(self.model).execution_options(**self.bypass_options)

    def present_view(self) -> Select[Any]:
        """Rows whose marker equals the sentinel."""
        return self.unfiltered_view().where(self.present_criteria())

    def deleted_view(self) -> Select[Any]:
        """Rows whose marker differs from the sentinel."""
        return self.unfiltered_view().where(self.deleted_criteria())

    def narrow_to_present(self, statement: Select[Any]) -> Select[Any]:
        """Restrict an existing statement to present rows."""
        return statement.where(self.present_criteria()).execution_options(
            **self.bypass_options
        )

    def narrow_to_deleted(self, statement: Select[Any]) -> Select[Any]:
        """Restrict an existing statement to deleted rows."""
        return statement.where(self.deleted_criteria()).execution_options(
            **self.bypass_options
        )

    def view(self, name: str) -> Select[Any]:
        """
        Resolve a configured scope name to its view.

        Args:
            name: One of the configured scope names

        Returns:
            The matching view

        Raises:
            UnknownScopeError: If the name is not a configured scope
        """
        views: Dict[str, Callable[[], Select[Any]]] = {
            self.config.non_deleted_scope_name: self.present_view,
            self.config.deleted_scope_name: self.deleted_view,
            self.config.ignore_deletion_scope_name: self.unfiltered_view,
        }
        if name not in views:
            raise UnknownScopeError(name, self.model.__name__)
        return views[name]()

    def count(self, session: Session, view: Select[Any]) -> int:
        """
        Count the rows of a view.

        The view's execution options are carried onto the counting statement
        so that a bypassed default scope stays bypassed.
        """
        statement = (
            select(func.count())
            .select_from(view.subquery())
            .execution_options(**view.get_execution_options())
        )
        return session.scalar(statement) or 0


# Models whose ordinary queries hide deleted rows
_default_scoped: Dict[Type[Any], ScopeResolver] = {}


def _resolver_for(cls: Type[Any]) -> Any:
    for model, resolver in _default_scoped.items():
        if issubclass(cls, model):
            return resolver
    return None


def _apply_default_scope(orm_execute_state: ORMExecuteState) -> None:
    """Add present-row criteria to ORM statements on default-scoped models."""
    if not _default_scoped or orm_execute_state.is_column_load:
        return

    options = orm_execute_state.execution_options

    if orm_execute_state.is_select:
        statement = orm_execute_state.statement
        for model, resolver in _default_scoped.items():
            if options.get(resolver.config.include_deleted_option):
                continue
            statement = statement.options(
                with_loader_criteria(model, resolver.present_criteria())
            )
        orm_execute_state.statement = statement

    elif orm_execute_state.is_update:
        mapper = orm_execute_state.bind_mapper
        resolver = _resolver_for(mapper.class_) if mapper is not None else None
        if resolver is None:
            return
        if options.get(resolver.config.include_deleted_option):
            return
        orm_execute_state.statement = orm_execute_state.statement.where(
            resolver.present_criteria()
        )


def register_default_scope(resolver: ScopeResolver) -> None:
    """
    Hide deleted rows of the resolver's model from ordinary ORM queries.

    Args:
        resolver: Scope resolver of the model to register
    """
    _default_scoped[resolver.model] = resolver

    if not event.contains(Session, "do_orm_execute", _apply_default_scope):
        event.listen(Session, "do_orm_execute", _apply_default_scope)

    logger.debug(f"Default scope installed for {resolver.model.__name__}")


def unregister_default_scope(model: Type[Any]) -> None:
    """Remove a model from the default scope registry."""
    _default_scoped.pop(model, None)

    if not _default_scoped and event.contains(
        Session, "do_orm_execute", _apply_default_scope
    ):
        event.remove(Session, "do_orm_execute", _apply_default_scope)
