"""
Generic uniqueness validation for SQLAlchemy models.

Checks that the values of one or more columns of a record are not already
used by another row of the same model.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError
from sqlalchemy import Select, and_, inspect, not_, select
from sqlalchemy.orm import Session

from .exceptions import UniquenessError
from .guard import primary_key_criteria
from .models import ColumnGroup, UniqueOptions

ScopeCallback = Callable[[Select[Any]], Select[Any]]
ColumnSpec = Union[str, Sequence[str]]


@dataclass
class ValidationResult:
    """Result of a uniqueness check."""

    is_valid: bool = True
    field_errors: Dict[str, List[str]] = field(default_factory=dict)

    def add_error(self, message: str, field: str) -> None:
        """Add validation error."""
        self.is_valid = False
        if field not in self.field_errors:
            self.field_errors[field] = []
        self.field_errors[field].append(message)


def normalize_columns(columns: Iterable[ColumnSpec]) -> List[ColumnGroup]:
    """
    Turn column arguments into column groups.

    A plain name is a group of one; a list or tuple of names is checked as a
    combined key.
    """
    groups: List[ColumnGroup] = []
    for column in columns:
        if isinstance(column, str):
            groups.append((column,))
        elif isinstance(column, (list, tuple)):
            groups.append(tuple(column))
        else:
            raise TypeError(f"Unsupported column specification: {column!r}")
    return groups


class UniquenessValidator:
    """Checks column values against the model's ordinary query path."""

    def parse_options(self, options: Dict[str, Any]) -> UniqueOptions:
        try:
            return UniqueOptions(**options)
        except ValidationError as e:
            raise TypeError(f"Invalid uniqueness options {sorted(options)}: {e}") from e

    def check(
        self,
        session: Session,
        record: Any,
        *columns: ColumnSpec,
        scope: Optional[ScopeCallback] = None,
        **options: Any,
    ) -> ValidationResult:
        """
        Check the record's column values for conflicts.

        Args:
            session: Session used to query for conflicting rows
            record: Record being validated
            *columns: Column names or groups of names
            scope: Optional callback narrowing the comparison query
            **options: See :class:`UniqueOptions`

        Returns:
            Validation result with one error per conflicting group
        """
        opts = self.parse_options(options)
        model = type(record)
        state = inspect(record)
        result = ValidationResult()

        # The record itself must not be flushed before it is compared
        with session.no_autoflush:
            for group in normalize_columns(columns):
                values: Tuple[Any, ...] = tuple(getattr(record, name) for name in group)
                if any(value is None for value in values):
                    continue

                if opts.only_if_modified and state.persistent:
                    if not any(state.attrs[name].history.has_changes() for name in group):
                        continue

                statement = select(model).where(
                    and_(
                        *[
                            getattr(model, name) == value
                            for name, value in zip(group, values)
                        ]
                    )
                )
                if state.identity is not None:
                    statement = statement.where(not_(primary_key_criteria(record)))
                if scope is not None:
                    statement = scope(statement)

                if session.execute(statement.limit(1)).first() is not None:
                    result.add_error(opts.message, ", ".join(group))

        return result

    def validate(
        self,
        session: Session,
        record: Any,
        *columns: ColumnSpec,
        scope: Optional[ScopeCallback] = None,
        **options: Any,
    ) -> ValidationResult:
        """
        Like :meth:`check`, but raise when a conflict exists.

        Raises:
            UniquenessError: If any column group conflicts
        """
        result = self.check(session, record, *columns, scope=scope, **options)
        if not result.is_valid:
            raise UniquenessError(result)
        return result


class ValidationHelpersMixin:
    """
    Adds ``validates_unique`` to a model.

    Paranoid models that also inherit this mixin get the paranoid-aware
    validator when they are enrolled.
    """

    @classmethod
    def unique_validator(cls) -> Any:
        binding = getattr(cls, "__paranoid__", None)
        if binding is not None and binding.uniqueness is not None:
            return binding.uniqueness
        return UniquenessValidator()

    def validates_unique(
        self,
        session: Session,
        *columns: ColumnSpec,
        scope: Optional[ScopeCallback] = None,
        **options: Any,
    ) -> ValidationResult:
        """
        Validate that the given columns are unique.

        Raises:
            UniquenessError: If a conflicting row exists
        """
        validator = type(self).unique_validator()
        return validator.validate(session, self, *columns, scope=scope, **options)
