"""
Tests for the deletion state machine.

Covers the ACTIVE/DELETED lifecycle, actor tracking, hooks, persistence
failures and hard delete prevention.
"""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError
from sqlalchemy import Column, Integer, String, create_engine, event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from paranoid_toolkit.soft_delete import (
    DeletedAtMixin,
    DeletedByMixin,
    DeleteContext,
    DeletionState,
    HardDeleteError,
    HookEvent,
    ParanoidMixin,
    PersistenceError,
    paranoid,
)
from paranoid_toolkit.soft_delete.state import DeletionHooks

Base = declarative_base()


class FakeClock:
    """Clock advancing one minute per call."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        self.now += timedelta(minutes=1)
        return self.now


clock = FakeClock()

CALLS = []


@paranoid(enable_deleted_by=True, clock=clock)
class Sample(Base, ParanoidMixin, DeletedAtMixin, DeletedByMixin):
    """Paranoid model with actor tracking."""

    __tablename__ = "sm_samples"

    id = Column(Integer, primary_key=True)
    name = Column(String(100))


@paranoid(clock=clock)
class Untracked(Base, ParanoidMixin, DeletedAtMixin, DeletedByMixin):
    """Has a deleted_by column but actor tracking is off."""

    __tablename__ = "sm_untracked"

    id = Column(Integer, primary_key=True)


@paranoid(enable_deleted_by=True)
class Hooked(Base, ParanoidMixin, DeletedAtMixin, DeletedByMixin):
    """Records its own lifecycle hooks."""

    __tablename__ = "sm_hooked"

    id = Column(Integer, primary_key=True)

    def before_destroy(self, context):
        CALLS.append(("before_destroy", context.deleted_by, self.deleted_at))

    def after_destroy(self, context):
        CALLS.append(("after_destroy", context.deleted_by, self.deleted_at))

    def before_recover(self, context):
        CALLS.append(("before_recover", context.previous_deleted_at is not None))

    def after_recover(self, context):
        CALLS.append(("after_recover", self.deleted_at))


@paranoid
class Strict(Base, ParanoidMixin, DeletedAtMixin):
    """Requires a name, so incomplete records fail to save."""

    __tablename__ = "sm_strict"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)


@paranoid(commit_on_save=False)
class Draft(Base, ParanoidMixin, DeletedAtMixin):
    """Leaves committing to the caller."""

    __tablename__ = "sm_drafts"

    id = Column(Integer, primary_key=True)


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database session for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()


@pytest.fixture
def sample(db_session):
    """Create a persisted sample."""
    record = Sample(name="Test Record")
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture(autouse=True)
def reset_calls():
    CALLS.clear()
    yield
    CALLS.clear()


class TestLifecycle:
    """Test state transitions."""

    def test_new_record_is_active(self):
        record = Sample(name="new")

        assert record.is_deleted is False
        assert record.deletion_state == DeletionState.ACTIVE

    def test_delete_and_recover_with_actor(self, db_session, sample):
        """Active -> Deleted -> Active with actor tracking enabled."""
        sample.destroy(db_session, deleted_by="u1")

        assert sample.deleted_at is not None
        assert sample.deleted_by == "u1"
        assert sample.is_deleted is True
        assert sample.deletion_state == DeletionState.DELETED

        sample.recover(db_session)

        assert sample.deleted_at is None
        assert sample.deleted_by is None
        assert sample.is_deleted is False

    def test_delete_returns_context(self, db_session, sample):
        context = sample.destroy(db_session, deleted_by="u1")

        assert isinstance(context, DeleteContext)
        assert context.record_type == "Sample"
        assert context.entity_id == str(sample.id)
        assert context.deleted_by == "u1"
        assert sample.deleted_at == context.deleted_at

    def test_delete_without_actor(self, db_session, sample):
        sample.destroy(db_session)

        assert sample.is_deleted is True
        assert sample.deleted_by is None

    def test_delete_again_refreshes_timestamp(self, db_session, sample):
        """Deleting a deleted record is allowed."""
        first = sample.destroy(db_session, deleted_by="u1")
        second = sample.destroy(db_session)

        assert second.deleted_at > first.deleted_at
        assert sample.deleted_at == second.deleted_at
        assert sample.is_deleted is True
        # No new actor given, the previous one is kept
        assert sample.deleted_by == "u1"

    def test_actor_ignored_when_tracking_disabled(self, db_session):
        record = Untracked()
        db_session.add(record)
        db_session.commit()

        record.destroy(db_session, deleted_by="u1")

        assert record.is_deleted is True
        assert record.deleted_by is None

    def test_recover_leaves_actor_when_tracking_disabled(self, db_session):
        record = Untracked(deleted_by="importer")
        db_session.add(record)
        db_session.commit()
        record.destroy(db_session)

        record.recover(db_session)

        assert record.is_deleted is False
        assert record.deleted_by == "importer"

    def test_recover_active_record_still_writes(self, db_session, sample):
        """Recovering an active record issues an UPDATE."""
        statements = []
        engine = db_session.get_bind()

        def capture(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        event.listen(engine, "before_cursor_execute", capture)
        try:
            sample.recover(db_session)
        finally:
            event.remove(engine, "before_cursor_execute", capture)

        assert sample.is_deleted is False
        assert any(s.startswith("UPDATE sm_samples") for s in statements)

    def test_delete_new_record(self, db_session):
        """A transient record is inserted already deleted."""
        record = Sample(name="never active")

        context = record.destroy(db_session, deleted_by="u2")

        assert context.entity_id is None
        assert record.id is not None
        assert record.is_deleted is True
        scopes = Sample.paranoid_binding().scopes
        assert scopes.count(db_session, scopes.deleted_view()) == 1

    def test_state_machine_is_deleted(self, db_session, sample):
        machine = Sample.paranoid_binding().state_machine

        assert machine.is_deleted(sample) is False
        sample.destroy(db_session)
        assert machine.is_deleted(sample) is True
        assert machine.state_of(sample) == DeletionState.DELETED


class TestHooks:
    """Test hooks fired around transitions."""

    def test_record_hooks_and_listeners(self, db_session):
        record = Hooked()
        db_session.add(record)
        db_session.commit()

        hooks = Hooked.paranoid_binding().hooks

        def listener(target, context):
            CALLS.append(("listener", context.deleted_by, target.deleted_at is not None))

        hooks.register(HookEvent.AFTER_DELETE, listener)
        try:
            record.destroy(db_session, deleted_by="u1")
        finally:
            hooks.remove(HookEvent.AFTER_DELETE, listener)

        assert CALLS[0] == ("before_destroy", "u1", None)
        assert CALLS[1][0] == "after_destroy"
        assert CALLS[1][1] == "u1"
        assert CALLS[1][2] is not None
        assert CALLS[2] == ("listener", "u1", True)

    def test_recover_hooks(self, db_session):
        record = Hooked()
        db_session.add(record)
        db_session.commit()
        record.destroy(db_session)
        CALLS.clear()

        record.recover(db_session)

        assert CALLS == [("before_recover", True), ("after_recover", None)]

    def test_before_listener_aborts_delete(self, db_session):
        record = Hooked()
        db_session.add(record)
        db_session.commit()

        hooks = Hooked.paranoid_binding().hooks

        @hooks.listen("before_delete")
        def refuse(target, context):
            raise RuntimeError("deletion refused")

        try:
            with pytest.raises(RuntimeError):
                record.destroy(db_session, deleted_by="u1")
        finally:
            hooks.remove("before_delete", refuse)

        assert record.is_deleted is False
        assert record.deleted_by is None

    def test_hook_registry_standalone(self):
        hooks = DeletionHooks()
        seen = []

        hooks.register("after_recover", lambda target, context: seen.append(target))
        hooks.fire(HookEvent.AFTER_RECOVER, "record", None)

        assert seen == ["record"]

    def test_unknown_hook_event(self):
        with pytest.raises(ValueError):
            DeletionHooks().register("on_purge", lambda target, context: None)

    def test_context_is_immutable(self):
        context = DeleteContext(record_type="Sample", deleted_at=datetime(2024, 1, 1))

        with pytest.raises(ValidationError):
            context.deleted_by = "u9"


class TestFailures:
    """Test persistence failures and hard delete prevention."""

    def test_persistence_error(self, db_session):
        """A failed write surfaces as PersistenceError, fields stay mutated."""
        record = Strict(name=None)

        with pytest.raises(PersistenceError) as exc:
            record.destroy(db_session)

        assert isinstance(exc.value.__cause__, IntegrityError)
        assert exc.value.operation == "delete"
        assert record.deleted_at is not None

        db_session.rollback()

    def test_hard_delete_prevented(self, db_session, sample):
        db_session.delete(sample)

        with pytest.raises(HardDeleteError) as exc:
            db_session.flush()

        assert "Sample" in str(exc.value)
        db_session.rollback()

    def test_without_commit_rollback_discards_delete(self, db_session):
        record = Draft()
        db_session.add(record)
        db_session.commit()

        record.destroy(db_session)
        assert record.is_deleted is True

        db_session.rollback()

        assert record.is_deleted is False

    def test_commit_failure(self, db_session, sample):
        """A failed commit surfaces as PersistenceError."""

        def refuse_commit(session):
            raise SQLAlchemyError("commit refused")

        event.listen(db_session, "before_commit", refuse_commit)
        try:
            with pytest.raises(PersistenceError) as exc:
                sample.destroy(db_session)
        finally:
            event.remove(db_session, "before_commit", refuse_commit)

        assert exc.value.operation == "delete"
        assert str(exc.value.__cause__) == "commit refused"
        db_session.rollback()


class TestAfterHookFailure:
    """Test that a failing after-hook leaves the record unchanged."""

    def test_failed_delete_is_not_committed(self, db_session, sample):
        hooks = Sample.paranoid_binding().hooks
        scopes = Sample.paranoid_binding().scopes

        @hooks.listen(HookEvent.AFTER_DELETE)
        def explode(target, context):
            raise RuntimeError("after delete failed")

        try:
            with pytest.raises(RuntimeError):
                sample.destroy(db_session, deleted_by="u1")
        finally:
            hooks.remove(HookEvent.AFTER_DELETE, explode)

        assert sample.is_deleted is False
        assert sample.deleted_by is None

        db_session.commit()

        assert scopes.count(db_session, scopes.deleted_view()) == 0
        assert scopes.count(db_session, scopes.present_view()) == 1

    def test_failed_recover_is_not_committed(self, db_session, sample):
        hooks = Sample.paranoid_binding().hooks
        scopes = Sample.paranoid_binding().scopes
        context = sample.destroy(db_session, deleted_by="u1")

        @hooks.listen(HookEvent.AFTER_RECOVER)
        def explode(target, context):
            raise RuntimeError("after recover failed")

        try:
            with pytest.raises(RuntimeError):
                sample.recover(db_session)
        finally:
            hooks.remove(HookEvent.AFTER_RECOVER, explode)

        db_session.commit()

        assert sample.is_deleted is True
        assert sample.deleted_at == context.deleted_at
        assert sample.deleted_by == "u1"
        assert scopes.count(db_session, scopes.deleted_view()) == 1
