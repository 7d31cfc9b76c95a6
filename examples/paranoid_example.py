#!/usr/bin/env python3
"""
Paranoid Delete Example - Paranoid Python Toolkit

Demonstrates:
- Soft deleting with an actor
- Present, deleted and unfiltered views
- The default scope and its bypass option
- Updating a deleted record by primary key
- Paranoid uniqueness checks
- Recovering a deleted record
"""

import logging

from sqlalchemy import Column, Integer, String, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from paranoid_toolkit import (
    DeletedAtMixin,
    DeletedByMixin,
    ParanoidMixin,
    UniquenessError,
    ValidationHelpersMixin,
    paranoid,
)

Base = declarative_base()


@paranoid(enable_deleted_by=True, enable_default_scope=True)
class Account(
    Base, ParanoidMixin, DeletedAtMixin, DeletedByMixin, ValidationHelpersMixin
):
    """Customer account with paranoid deletion."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    email = Column(String(100), nullable=False)
    plan = Column(String(20), default="free")


def demonstrate_paranoid_delete() -> None:
    """Show paranoid delete functionality."""
    print("Paranoid Delete Example\n")

    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()

    # 1. Create test data
    print("1. Creating accounts:")
    alice = Account(email="alice@example.com")
    bob = Account(email="bob@example.com")
    carol = Account(email="carol@example.com")
    session.add_all([alice, bob, carol])
    session.commit()
    print(f"  Created {len(session.scalars(select(Account)).all())} accounts\n")

    # 2. Soft delete with an actor
    print("2. Deleting bob:")
    bob.destroy(session, deleted_by="admin@example.com")
    print(f"  deleted_at: {bob.deleted_at}")
    print(f"  deleted_by: {bob.deleted_by}\n")

    # 3. Views
    print("3. Views:")
    scopes = Account.paranoid_binding().scopes
    print(f"  present:      {scopes.count(session, Account.present_view())}")
    print(f"  deleted:      {scopes.count(session, Account.deleted_view())}")
    print(f"  with_deleted: {scopes.count(session, Account.unfiltered_view())}")
    visible = session.scalars(select(Account)).all()
    print(f"  default scope sees: {[a.email for a in visible]}")
    everything = session.scalars(
        select(Account).execution_options(include_deleted=True)
    ).all()
    print(f"  bypassed scope sees: {[a.email for a in everything]}\n")

    # 4. Guarded update of a deleted record
    print("4. Updating deleted bob by primary key:")
    bob.update_columns(session, plan="archived")
    print(f"  bob.plan: {bob.plan}\n")

    # 5. Uniqueness
    print("5. Paranoid uniqueness:")
    bobby = Account(email="bob@example.com")
    session.add(bobby)
    bobby.validates_unique(session, "email", paranoid=True)
    print("  New bob does not conflict with deleted bob")
    try:
        bobby.validates_unique(session, "email")
    except UniquenessError as e:
        print(f"  Without paranoid option: {e}")
    session.commit()
    print()

    # 6. Recover
    print("6. Recovering bob:")
    bob.recover(session)
    print(f"  bob deleted: {bob.is_deleted}")
    print(f"  present: {scopes.count(session, Account.present_view())}")

    print("\nParanoid delete example completed!")


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    demonstrate_paranoid_delete()
