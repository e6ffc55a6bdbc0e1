"""
Session Sync

Connects the FinanceStore to the signed-in session and to storage.

Responsibilities:
1. Restore a stored session at startup and load its snapshot
2. Load the snapshot after sign-in or sign-up
3. Sign out (and reset the store) when a session cannot be loaded
4. Autosave the snapshot after every mutation

DESIGN DECISION: Saves are debounced. Mutations inside
`debounce_seconds` of each other share one save, and that save always
sends the store's latest snapshot, so merging never loses a change. A
debounce of 0 saves once per mutation.

Without a running event loop (e.g. a Streamlit rerun) a mutation only
marks the store dirty; the caller runs `flush()` to save it.

A failed save is logged and audited and the store stays dirty. The next
mutation (or flush) tries again; there is no timer-based retry.

DESIGN DECISION: Late responses are dropped. A load records the store's
generation when it starts; if a sign-out or another load has moved the
generation on by the time the response arrives, the response is
discarded instead of overwriting the newer state.
"""

import asyncio
from typing import Optional
from uuid import UUID

import structlog

from financeflow.audit import AuditLogger, create_correlation_id
from financeflow.models.audit import AuditEventBuilder
from financeflow.services.auth import AuthError, AuthService, Session
from financeflow.services.persistence import GatewayError, PersistenceGateway
from financeflow.state.store import ChangeCause, FinanceStore, StateChange


logger = structlog.get_logger(__name__)


class SessionSync:
    """
    Keeps one user's store loaded and saved.

    Usage:
        sync = SessionSync(store, gateway, auth, debounce_seconds=1.0)
        await sync.restore_session()
        store.add_transaction({...})   # autosaved
        await sync.flush()              # when no event loop was running
    """

    def __init__(
        self,
        store: FinanceStore,
        gateway: PersistenceGateway,
        auth: AuthService,
        debounce_seconds: float = 0.0,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._auth = auth
        self._debounce_seconds = debounce_seconds
        self._audit = audit_logger or AuditLogger()

        self._session: Optional[Session] = None
        self._correlation_id: Optional[UUID] = None
        self._loaded = False
        self._dirty = False
        self._pending: Optional[asyncio.Task] = None
        self._in_flight: set[asyncio.Task] = set()

        self._unsubscribe = store.subscribe(self._on_change)

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_loaded(self) -> bool:
        """True once the startup session check has finished."""
        return self._loaded

    @property
    def is_dirty(self) -> bool:
        """True while the store holds changes that are not saved."""
        return self._dirty

    @property
    def autosave_active(self) -> bool:
        return self._session is not None and self._loaded

    # =========================================================================
    # SESSION LIFECYCLE
    # =========================================================================

    async def restore_session(self) -> Optional[Session]:
        """
        Pick up a stored session at startup.

        If the stored session's snapshot cannot be loaded the user is
        signed out. Either way the app is marked loaded afterwards.
        """
        try:
            session = self._auth.get_current_session()
            if session is None:
                return None

            self._start(session)
            await self._audit.log(
                AuditEventBuilder.session_restored(session.email, self._correlation_id)
            )
            if not await self._load(session):
                await self.sign_out(reason="restore_failed")
            return self._session
        finally:
            self._loaded = True

    async def on_auth_success(self, session: Session, new_account: bool = False) -> bool:
        """
        Load the snapshot for a freshly signed-in user.

        Args:
            session: The session sign-in or sign-up returned
            new_account: The session comes from a sign-up

        Returns:
            True if the snapshot was loaded, False if the user was signed out
        """
        self._loaded = False
        try:
            self._start(session)
            if new_account:
                await self._audit.log(AuditEventBuilder.signed_up(session.email))
            await self._audit.log(
                AuditEventBuilder.signed_in(session.email, self._correlation_id)
            )
            if not await self._load(session):
                await self.sign_out(reason="load_failed")
                return False
            return True
        finally:
            self._loaded = True

    async def sign_out(self, reason: str = "user_request") -> None:
        """Forget the session, drop any pending save and reset the store."""
        session, correlation_id = self._session, self._correlation_id
        self._cancel_pending()
        self._session = None
        self._correlation_id = None
        self._auth.sign_out()
        self._store.reset_to_defaults()
        self._dirty = False

        await self._audit.log(AuditEventBuilder.signed_out(
            session.email if session else None,
            reason,
            correlation_id,
        ))

    def close(self) -> None:
        """Stop listening to the store."""
        self._cancel_pending()
        self._unsubscribe()

    def _start(self, session: Session) -> None:
        self._cancel_pending()
        self._session = session
        self._correlation_id = create_correlation_id()
        self._dirty = False

    # =========================================================================
    # LOADING
    # =========================================================================

    async def _load(self, session: Session) -> bool:
        """Load into the store. Returns False if the load failed."""
        generation = self._store.generation
        try:
            raw = await self._gateway.load(session.token)
        except (GatewayError, AuthError) as e:
            logger.warning(
                "snapshot_load_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            await self._audit.log(AuditEventBuilder.snapshot_load_failed(
                session.email, str(e), self._correlation_id
            ))
            return False

        if self._store.generation != generation or self._session is not session:
            logger.info("stale_load_discarded", generation=generation)
            await self._audit.log(AuditEventBuilder.stale_response_discarded(
                session.email, "load", self._correlation_id
            ))
            return True

        self._store.load_snapshot(raw)
        self._dirty = False
        snapshot = self._store.snapshot
        await self._audit.log(AuditEventBuilder.snapshot_loaded(
            session.email,
            {
                "transactions": len(snapshot.transactions),
                "budgets": len(snapshot.budgets),
                "family_members": len(snapshot.family_members),
                "goals": len(snapshot.goals),
                "recurring_payments": len(snapshot.recurring_payments),
            },
            self._correlation_id,
        ))
        return True

    # =========================================================================
    # AUTOSAVE
    # =========================================================================

    def _on_change(self, change: StateChange) -> None:
        if change.cause != ChangeCause.MUTATION or not self.autosave_active:
            return
        self._dirty = True

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop; flush() will save
            return

        if self._debounce_seconds <= 0:
            self._track(loop.create_task(self._save()))
            return

        self._cancel_pending()
        self._pending = loop.create_task(self._save_after_delay())
        self._track(self._pending)

    async def _save_after_delay(self) -> None:
        await asyncio.sleep(self._debounce_seconds)
        self._pending = None
        await self._save()

    def _track(self, task: asyncio.Task) -> None:
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def flush(self) -> bool:
        """
        Save now if there are unsaved changes.

        Returns:
            True if nothing was pending or the save succeeded
        """
        self._cancel_pending()
        if not self._dirty or not self.autosave_active:
            return True
        return await self._save()

    async def wait_for_saves(self) -> None:
        """Wait for every scheduled save to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def _save(self) -> bool:
        session = self._session
        if session is None:
            return False

        generation = self._store.generation
        snapshot, version = self._store.snapshot, self._store.version
        # Changes made while this save is in flight mark the store dirty again
        self._dirty = False

        try:
            await self._gateway.save(session.token, snapshot.to_payload(), version)
        except (GatewayError, AuthError) as e:
            if self._store.generation == generation and self._session is session:
                self._dirty = True
            logger.warning(
                "snapshot_save_failed",
                version=version,
                error_type=type(e).__name__,
                error=str(e),
            )
            await self._audit.log(AuditEventBuilder.snapshot_save_failed(
                session.email, version, str(e), self._correlation_id
            ))
            return False

        logger.debug("snapshot_saved", version=version)
        await self._audit.log(
            AuditEventBuilder.snapshot_saved(session.email, version, self._correlation_id)
        )
        return True
