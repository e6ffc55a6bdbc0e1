"""
Tests for session sync.

Covers session restore, loading after sign-in, autosave (immediate,
debounced and flushed), failed-save retry, and dropping late loads.
"""

import asyncio

import pytest

from financeflow.models import DEFAULT_BUDGETS, AuditEventType
from financeflow.services.auth import AuthService, InMemoryCredentialStore
from financeflow.services.persistence import PersistenceGateway, ServerError
from financeflow.services.storage import InMemorySnapshotStorage, StorageError
from financeflow.state import FinanceStore, SessionSync


EXPENSE = {"description": "Milk", "amount": 40, "type": "expense", "category": "Groceries"}


class FlakySnapshotStorage(InMemorySnapshotStorage):
    """Fails every save while `failing` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False

    async def save_snapshot(self, user_id, payload, version):
        if self.failing:
            raise StorageError("sheet unavailable")
        return await super().save_snapshot(user_id, payload, version)


class HeldGateway(PersistenceGateway):
    """Holds every load until `release` is set."""

    def __init__(self, auth, storage):
        super().__init__(auth, storage)
        self.release = None

    async def load(self, token):
        await self.release.wait()
        return await super().load(token)


class BrokenGateway(PersistenceGateway):
    async def load(self, token):
        raise ServerError("Failed to load user data.")


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


@pytest.fixture
def sync(store, gateway, auth, audit_logger):
    return SessionSync(store, gateway, auth, debounce_seconds=0, audit_logger=audit_logger)


@pytest.fixture
def session(auth):
    return asyncio.run(auth.sign_up("me@example.com", "secret"))


def stored(storage, session):
    return asyncio.run(storage.load_snapshot(session.user_id))


class TestSessionLifecycle:
    """Tests for restore, sign-in and sign-out."""

    def test_restore_without_stored_session(self, sync):
        """Test startup with no token finishes loading signed out."""
        assert asyncio.run(sync.restore_session()) is None
        assert sync.is_loaded is True
        assert sync.session is None

    def test_restore_with_stored_session(self, session, store, gateway, auth, audit_storage, audit_logger):
        """Test a stored token restores the session and loads its data."""
        sync = SessionSync(store, gateway, auth, audit_logger=audit_logger)

        restored = asyncio.run(sync.restore_session())

        assert restored.email == "me@example.com"
        assert sync.autosave_active is True
        assert store.budgets == DEFAULT_BUDGETS
        assert AuditEventType.SESSION_RESTORED in event_types(audit_storage)

    def test_restore_with_invalid_token(self, user_storage, snapshot_storage, auth_settings, store):
        """Test an unreadable stored token is discarded."""
        credentials = InMemoryCredentialStore("not-a-jwt")
        auth = AuthService(user_storage, snapshot_storage, credentials, auth_settings)
        sync = SessionSync(store, PersistenceGateway(auth, snapshot_storage), auth)

        assert asyncio.run(sync.restore_session()) is None
        assert credentials.get_token() is None
        assert sync.is_loaded is True

    def test_sign_in_loads_snapshot(self, sync, session, store, snapshot_storage, audit_storage):
        """Test signing in replaces the store with the stored snapshot."""
        asyncio.run(snapshot_storage.save_snapshot(
            session.user_id,
            {"familyMembers": [{"id": 1, "name": "Asha"}]},
            version=1,
        ))

        assert asyncio.run(sync.on_auth_success(session)) is True

        assert store.family_members[0].name == "Asha"
        assert sync.is_dirty is False
        types = event_types(audit_storage)
        assert AuditEventType.SIGNED_IN in types
        assert AuditEventType.SNAPSHOT_LOADED in types

    def test_new_account_is_audited(self, sync, session, audit_storage):
        """Test a sign-up session records the account creation."""
        asyncio.run(sync.on_auth_success(session, new_account=True))
        assert AuditEventType.SIGNED_UP in event_types(audit_storage)

    def test_load_failure_signs_out(self, store, auth, snapshot_storage, credentials, session, audit_storage, audit_logger):
        """Test a snapshot that cannot be loaded ends the session."""
        sync = SessionSync(store, BrokenGateway(auth, snapshot_storage), auth, audit_logger=audit_logger)

        assert asyncio.run(sync.on_auth_success(session)) is False

        assert sync.session is None
        assert credentials.get_token() is None
        types = event_types(audit_storage)
        assert AuditEventType.SNAPSHOT_LOAD_FAILED in types
        assert AuditEventType.SIGNED_OUT in types

    def test_sign_out_resets_without_saving(self, sync, session, store, snapshot_storage, credentials):
        """Test sign-out clears the store, the token and pending changes."""
        asyncio.run(sync.on_auth_success(session))
        saves = snapshot_storage.save_count
        store.add_transaction(EXPENSE)

        asyncio.run(sync.sign_out())

        assert store.transactions == ()
        assert sync.is_dirty is False
        assert credentials.get_token() is None
        assert snapshot_storage.save_count == saves


class TestAutosave:
    """Tests for saving after mutations."""

    def test_saves_each_mutation(self, sync, session, store, snapshot_storage):
        """Test with no debounce every mutation is saved."""
        async def scenario():
            await sync.on_auth_success(session)
            store.add_transaction(EXPENSE)
            store.add_family_member("Asha")
            await sync.wait_for_saves()

        asyncio.run(scenario())

        payload = stored(snapshot_storage, session)
        assert len(payload["transactions"]) == 1
        assert payload["familyMembers"][0]["name"] == "Asha"
        assert snapshot_storage.stored_version(session.user_id) == store.version
        assert sync.is_dirty is False

    def test_debounce_coalesces_saves(self, store, gateway, auth, session, snapshot_storage):
        """Test mutations inside the debounce window share one save of the latest data."""
        sync = SessionSync(store, gateway, auth, debounce_seconds=0.05)

        async def scenario():
            await sync.on_auth_success(session)
            before = snapshot_storage.save_count
            for _ in range(3):
                store.add_transaction(EXPENSE)
            await sync.wait_for_saves()
            return snapshot_storage.save_count - before

        assert asyncio.run(scenario()) == 1
        assert len(stored(snapshot_storage, session)["transactions"]) == 3

    def test_save_keeps_unreadable_records(self, sync, session, store, snapshot_storage):
        """Test stored records the app cannot read survive a later save."""
        odd = {"id": 7, "type": "Expense", "amount": 99, "description": "Old import"}
        asyncio.run(snapshot_storage.save_snapshot(session.user_id, {"transactions": [odd]}, version=1))
        asyncio.run(sync.on_auth_success(session))
        assert store.transactions == ()

        store.add_transaction(EXPENSE)
        assert asyncio.run(sync.flush()) is True

        saved = stored(snapshot_storage, session)["transactions"]
        assert odd in saved
        assert len(saved) == 2
        assert store.transactions[0].id > 7

    def test_rejected_mutation_does_not_save(self, sync, session, store, snapshot_storage):
        """Test refused edits leave storage alone."""
        async def scenario():
            await sync.on_auth_success(session)
            before = snapshot_storage.save_count
            store.add_family_member("Me")
            await sync.wait_for_saves()
            return snapshot_storage.save_count - before

        assert asyncio.run(scenario()) == 0

    def test_no_autosave_while_signed_out(self, sync, store):
        """Test mutations without a session are never marked for saving."""
        store.add_transaction(EXPENSE)
        assert sync.is_dirty is False
        assert asyncio.run(sync.flush()) is True

    def test_closed_sync_stops_listening(self, sync, session, store):
        """Test a closed sync ignores later mutations."""
        asyncio.run(sync.on_auth_success(session))
        sync.close()
        store.add_transaction(EXPENSE)
        assert sync.is_dirty is False

    def test_flush_without_running_loop(self, sync, session, store, snapshot_storage):
        """Test a mutation outside an event loop waits for flush()."""
        asyncio.run(sync.on_auth_success(session))

        store.add_transaction(EXPENSE)
        assert sync.is_dirty is True

        assert asyncio.run(sync.flush()) is True
        assert sync.is_dirty is False
        assert len(stored(snapshot_storage, session)["transactions"]) == 1

    def test_failed_save_retried_on_next_flush(self, store, auth, session, audit_storage, audit_logger):
        """Test a failed save leaves the store dirty until a later save succeeds."""
        storage = FlakySnapshotStorage()
        asyncio.run(storage.save_snapshot(session.user_id, {}, 0))
        sync = SessionSync(store, PersistenceGateway(auth, storage), auth, audit_logger=audit_logger)
        asyncio.run(sync.on_auth_success(session))

        storage.failing = True
        store.add_transaction(EXPENSE)
        assert asyncio.run(sync.flush()) is False
        assert sync.is_dirty is True
        assert AuditEventType.SNAPSHOT_SAVE_FAILED in event_types(audit_storage)

        storage.failing = False
        assert asyncio.run(sync.flush()) is True
        assert sync.is_dirty is False
        assert len(stored(storage, session)["transactions"]) == 1


class TestStaleResponses:
    """Tests for dropping loads that finish after the session moved on."""

    def test_late_load_after_sign_out_is_discarded(
        self, store, auth, snapshot_storage, session, audit_storage, audit_logger
    ):
        """Test a load that lands after sign-out does not repopulate the store."""
        asyncio.run(snapshot_storage.save_snapshot(
            session.user_id,
            {"transactions": [{"id": 1, "type": "income", "amount": 500}]},
            version=1,
        ))
        gateway = HeldGateway(auth, snapshot_storage)
        sync = SessionSync(store, gateway, auth, audit_logger=audit_logger)

        async def scenario():
            gateway.release = asyncio.Event()
            loading = asyncio.create_task(sync.on_auth_success(session))
            await asyncio.sleep(0)
            await sync.sign_out()
            gateway.release.set()
            await loading

        asyncio.run(scenario())

        assert store.transactions == ()
        assert sync.session is None
        assert AuditEventType.STALE_RESPONSE_DISCARDED in event_types(audit_storage)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
