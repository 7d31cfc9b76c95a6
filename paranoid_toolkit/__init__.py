"""
Paranoid Python Toolkit - soft deletion for SQLAlchemy models.

Instead of removing a row, deleting a record stamps it with a deletion time
(and optionally the deleting actor). Queries are partitioned into three
scopes: present rows, deleted rows, and everything.

Key Features
------------
* **Scopes**: composable ``Select`` views for present, deleted and all rows
* **Default scope**: optionally hide deleted rows from every ORM query
* **State machine**: destroy/recover with before/after hooks
* **Guarded updates**: update deleted rows by primary key under a default scope
* **Uniqueness**: compare a record only against rows in its own deletion state

Quick Start
-----------
>>> from paranoid_toolkit import ParanoidMixin, DeletedAtMixin, paranoid
>>>
>>> @paranoid(enable_default_scope=True)
... class Account(Base, ParanoidMixin, DeletedAtMixin):
...     __tablename__ = "accounts"
...     id = Column(Integer, primary_key=True)
>>>
>>> account.destroy(session, deleted_by="u1")
>>> session.scalars(Account.deleted_view()).all()
>>> account.recover(session)

License
-------
MIT License - See LICENSE file for details.
"""

__version__ = "1.0.0"

from .config import ParanoidConfig, configure, get_config, set_config
from .soft_delete import (
    ConcurrentModificationError,
    DeletedAtMixin,
    DeletedByMixin,
    ParanoidError,
    ParanoidMixin,
    PersistenceError,
    UniquenessError,
    ValidationHelpersMixin,
    paranoid,
)

__all__ = [
    # Soft Delete
    "paranoid",
    "ParanoidMixin",
    "DeletedAtMixin",
    "DeletedByMixin",
    "ValidationHelpersMixin",
    # Errors
    "ParanoidError",
    "PersistenceError",
    "ConcurrentModificationError",
    "UniquenessError",
    # Configuration
    "ParanoidConfig",
    "configure",
    "get_config",
    "set_config",
]
