"""Paranoid-aware uniqueness checks."""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import Select
from sqlalchemy.orm import Session

from ..config import ParanoidConfig
from .scopes import ScopeResolver
from .state import DeletionStateMachine
from .validation import (
    ColumnSpec,
    ScopeCallback,
    UniquenessValidator,
    ValidationResult,
    normalize_columns,
)

PARANOID_OPTION = "paranoid"


class ParanoidUniquenessValidator:
    """
    Wraps a :class:`UniquenessValidator` with the ``paranoid=True`` option.

    When the option is given, a deleted record is compared only against
    other deleted rows, with the deletion marker added to every column group,
    and an active record only against present rows. Without the option the
    wrapped validator runs exactly as it would on its own.
    """

    def __init__(
        self,
        validator: UniquenessValidator,
        config: ParanoidConfig,
        resolver: ScopeResolver,
        state_machine: DeletionStateMachine,
    ):
        self.validator = validator
        self.config = config
        self.resolver = resolver
        self.state_machine = state_machine

    def prepare(
        self,
        record: Any,
        columns: Tuple[ColumnSpec, ...],
        scope: Optional[ScopeCallback],
        options: Dict[str, Any],
    ) -> Tuple[List[ColumnSpec], Optional[ScopeCallback], Dict[str, Any]]:
        """Rewrite the arguments for the wrapped validator."""
        options = dict(options)
        if not options.pop(PARANOID_OPTION, False):
            return list(columns), scope, options

        if self.state_machine.is_deleted(record):
            marker = self.config.deleted_at_field_name
            columns = tuple(group + (marker,) for group in normalize_columns(columns))
            narrow = self.resolver.narrow_to_deleted
        else:
            narrow = self.resolver.narrow_to_present

        def paranoid_scope(statement: Select[Any]) -> Select[Any]:
            statement = narrow(statement)
            if scope is not None:
                statement = scope(statement)
            return statement

        return list(columns), paranoid_scope, options

    def check(
        self,
        session: Session,
        record: Any,
        *columns: ColumnSpec,
        scope: Optional[ScopeCallback] = None,
        **options: Any,
    ) -> ValidationResult:
        columns_, scope_, options_ = self.prepare(record, columns, scope, options)
        return self.validator.check(session, record, *columns_, scope=scope_, **options_)

    def validate(
        self,
        session: Session,
        record: Any,
        *columns: ColumnSpec,
        scope: Optional[ScopeCallback] = None,
        **options: Any,
    ) -> ValidationResult:
        columns_, scope_, options_ = self.prepare(record, columns, scope, options)
        return self.validator.validate(
            session, record, *columns_, scope=scope_, **options_
        )
