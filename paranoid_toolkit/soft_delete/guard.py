"""
Guarded updates for paranoid models.

With the default scope enabled, ORM-enabled UPDATE statements only reach
present rows. The guard re-targets an update of one record at the
unfiltered view, keyed by the record's primary key, so deleted records
stay writable.
"""

import logging
from typing import Any, Dict

from sqlalchemy import and_, inspect, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from ..config import ParanoidConfig
from .exceptions import ConcurrentModificationError, ParanoidError, PersistenceError
from .scopes import ScopeResolver
from .state import entity_id_of

logger = logging.getLogger(__name__)


def primary_key_criteria(record: Any) -> ColumnElement[bool]:
    """
    Build the primary key predicate of a record.

    Composite keys produce one comparison per key column. For joined table
    inheritance the mapper's key columns are already qualified by the base
    table.

    Raises:
        ParanoidError: If the record has no complete primary key
    """
    mapper = inspect(type(record))
    state = inspect(record)

    identity = state.identity
    if identity is None:
        identity = tuple(mapper.primary_key_from_instance(record))

    if not identity or any(value is None for value in identity):
        raise ParanoidError(f"{type(record).__name__} has no primary key; save it first")

    return and_(*[column == value for column, value in zip(mapper.primary_key, identity)])


class MutationGuard:
    """Applies column updates to a single record by primary key."""

    def __init__(self, config: ParanoidConfig, resolver: ScopeResolver):
        self.config = config
        self.resolver = resolver

    def primary_key_criteria(self, record: Any) -> ColumnElement[bool]:
        return primary_key_criteria(record)

    def update(self, session: Session, record: Any, values: Dict[str, Any]) -> int:
        """
        Update columns of one record, reaching it even when it is deleted.

        Args:
            session: Active session
            record: Record to update
            values: Attribute names mapped to their new values

        Returns:
            Number of rows updated

        Raises:
            ConcurrentModificationError: If no row matched the primary key
            PersistenceError: If the statement fails
        """
        entity_id = entity_id_of(record)
        model = type(record)

        statement = (
            update(model)
            .where(self.primary_key_criteria(record))
            .values({getattr(model, name): value for name, value in values.items()})
        )

        if self.config.enable_default_scope:
            statement = statement.execution_options(**self.resolver.bypass_options)

        try:
            result = session.execute(statement)
        except SQLAlchemyError as e:
            logger.error(f"Guarded update of {model.__name__} {entity_id} failed: {e}")
            raise PersistenceError("update", entity_id) from e

        if result.rowcount == 0:
            logger.warning(f"Guarded update of {model.__name__} {entity_id} matched no rows")
            raise ConcurrentModificationError(str(entity_id))

        if self.config.commit_on_save:
            try:
                session.commit()
            except SQLAlchemyError as e:
                logger.error(f"Failed to commit update of {entity_id}: {e}")
                raise PersistenceError("update", entity_id) from e

        logger.debug(
            f"Guarded update of {model.__name__} {entity_id}: {sorted(values)}"
        )
        return result.rowcount
