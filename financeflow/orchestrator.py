"""
Main Orchestrator for FamilyFinance

This module ties together all the components:
1. Storage (Google Sheets, or in-memory when it isn't configured)
2. Auth, the persistence gateway and the session sync
3. The finance store
4. The AI assistant flow

DESIGN DECISION: The orchestrator enforces the boundaries:
- The AI only ever receives copies of the store's collections
- Every AI failure is audited before it reaches the UI
- Rejected edits are audited so the user's feedback has a trail

The presentation layer builds everything through create_app_components()
and never wires services itself.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from financeflow.agents import (
    AIError,
    AIServiceError,
    FinanceAIAgent,
    build_initial_messages,
)
from financeflow.audit import AuditLogger
from financeflow.config import Settings, get_settings
from financeflow.models.ai import (
    ChatMessage,
    ChatReply,
    DreamPlanResult,
    FinancialTip,
    VideoStory,
)
from financeflow.models.audit import AuditEventBuilder
from financeflow.services.auth import AuthService, FileCredentialStore
from financeflow.services.persistence import PersistenceGateway
from financeflow.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSnapshotStorage,
    GoogleSheetsUserStorage,
    InMemoryAuditStorage,
    InMemorySnapshotStorage,
    InMemoryUserStorage,
    SnapshotStorageInterface,
    UserStorageInterface,
)
from financeflow.state import FinanceStore, MutationResult, SessionSync


logger = structlog.get_logger(__name__)

AI_NOT_CONFIGURED_MESSAGE = (
    "The AI assistant isn't configured yet. Set GEMINI_API_KEY in your .env "
    "file and restart the app."
)


class AssistantFlow:
    """
    Runs the AI features against the current store.

    Each call hands the agent read-only copies of the collections it
    needs. Failures are audited and re-raised for the UI to show.
    """

    def __init__(
        self,
        store: FinanceStore,
        agent: Optional[FinanceAIAgent] = None,
        agent_factory: Callable[[], FinanceAIAgent] = FinanceAIAgent,
        audit_logger: Optional[AuditLogger] = None,
        actor: Callable[[], Optional[str]] = lambda: None,
    ):
        self._store = store
        self._agent = agent
        self._agent_factory = agent_factory
        self._audit_logger = audit_logger or AuditLogger()
        self._actor = actor

    def _get_agent(self) -> FinanceAIAgent:
        """Create the agent on first use, so the app runs without AI configured."""
        if self._agent is None:
            try:
                self._agent = self._agent_factory()
            except ValidationError as e:
                logger.warning("ai_not_configured", error_count=e.error_count())
                raise AIServiceError(AI_NOT_CONFIGURED_MESSAGE, detail=str(e)) from e
        return self._agent

    async def _audited(self, feature: str, run):
        try:
            return await run(self._get_agent())
        except AIError as e:
            await self._audit_logger.log(AuditEventBuilder.ai_request_failed(
                self._actor(), feature, str(e)
            ))
            raise

    async def financial_tip(self, today: Optional[date] = None) -> FinancialTip:
        transactions = list(self._store.transactions)
        return await self._audited(
            "financial_tip",
            lambda agent: agent.generate_financial_tip(transactions, today),
        )

    async def dream_plan(self, dream_description: str) -> DreamPlanResult:
        return await self._audited(
            "dream_plan",
            lambda agent: agent.generate_dream_plan(dream_description),
        )

    async def video_story(self, prompt: str) -> VideoStory:
        return await self._audited(
            "video_story",
            lambda agent: agent.generate_video_story(prompt),
        )

    def start_conversation(self, data_updated: bool = False) -> list[ChatMessage]:
        """Opening messages for a chat about the current snapshot."""
        return build_initial_messages(self._store.snapshot, data_updated)

    async def chat(self, history: list[ChatMessage]) -> ChatReply:
        history = list(history)
        return await self._audited("chat", lambda agent: agent.chat(history))


@dataclass
class AppComponents:
    """Everything the presentation layer needs, wired together."""

    store: FinanceStore
    auth: AuthService
    gateway: PersistenceGateway
    sync: SessionSync
    assistant: AssistantFlow
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient] = None

    @property
    def uses_google_sheets(self) -> bool:
        return self.sheets_client is not None

    async def record_rejection(self, action: str, result: MutationResult) -> None:
        """Audit an edit the store refused."""
        if result.ok or result.reason is None:
            return
        session = self.sync.session
        await self.audit_logger.log(AuditEventBuilder.mutation_rejected(
            session.email if session else None,
            action,
            result.reason,
        ))


def create_app_components(
    use_storage: bool = True,
    settings: Optional[Settings] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to keep everything in memory.
        settings: Settings to use; loaded from the environment if omitted

    Raises:
        pydantic.ValidationError: If the auth settings are missing
    """
    settings = settings or get_settings()
    app_settings = settings.app
    auth_settings = settings.auth

    sheets_client = None
    snapshot_storage: SnapshotStorageInterface
    user_storage: UserStorageInterface
    audit_storage: AuditStorageInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient(settings.google_sheets)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    if sheets_client is not None:
        snapshot_storage = GoogleSheetsSnapshotStorage(sheets_client)
        user_storage = GoogleSheetsUserStorage(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        snapshot_storage = InMemorySnapshotStorage()
        user_storage = InMemoryUserStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    auth = AuthService(
        users=user_storage,
        snapshots=snapshot_storage,
        credentials=FileCredentialStore(auth_settings.credentials_file),
        settings=auth_settings,
    )
    gateway = PersistenceGateway(auth, snapshot_storage)
    store = FinanceStore(
        activity_window_days=app_settings.activity_window_days,
        family_hub_limit=app_settings.family_hub_limit,
        upcoming_payment_days=app_settings.upcoming_payment_days,
    )
    sync = SessionSync(
        store,
        gateway,
        auth,
        debounce_seconds=app_settings.autosave_debounce_seconds,
        audit_logger=audit_logger,
    )
    assistant = AssistantFlow(
        store,
        agent_factory=lambda: FinanceAIAgent(settings.gemini),
        audit_logger=audit_logger,
        actor=lambda: sync.session.email if sync.session else None,
    )

    return AppComponents(
        store=store,
        auth=auth,
        gateway=gateway,
        sync=sync,
        assistant=assistant,
        audit_logger=audit_logger,
        sheets_client=sheets_client,
    )
