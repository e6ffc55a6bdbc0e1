"""Tests for the assistant flow and application wiring."""

import asyncio
from datetime import date

import pytest

from financeflow.agents import AIServiceError, FinanceAIAgent
from financeflow.config import Settings
from financeflow.models import AuditEventType, FinancialTip
from financeflow.orchestrator import AI_NOT_CONFIGURED_MESSAGE, AssistantFlow, create_app_components


def unconfigured_agent():
    # Raises pydantic.ValidationError, like a missing GEMINI_API_KEY
    FinancialTip.model_validate({})


@pytest.fixture
def agent(fake_client, gemini_settings):
    async def no_sleep(seconds):
        pass

    return FinanceAIAgent(gemini_settings, client=fake_client, sleep=no_sleep)


@pytest.fixture
def flow(store, agent, audit_logger):
    return AssistantFlow(store, agent=agent, audit_logger=audit_logger, actor=lambda: "me@example.com")


class TestAssistantFlow:
    """Tests for running AI features against the store."""

    def test_tip_uses_store_transactions(self, flow, store, fake_client):
        """Test the tip is built from the store's transactions."""
        for _ in range(3):
            store.add_transaction({"type": "expense", "amount": 100, "category": "Shopping", "date": "2024-06-10"})

        asyncio.run(flow.financial_tip(date(2024, 6, 15)))

        _, kwargs = fake_client.aio.models.calls[0]
        assert "- Shopping: ₹300.00" in kwargs["contents"]

    def test_conversation_reflects_snapshot(self, flow, store):
        """Test a new conversation carries the current data."""
        store.add_family_member("Asha")
        messages = flow.start_conversation()
        assert "Asha" in messages[0].text

    def test_failure_is_audited(self, flow, fake_client, audit_storage):
        """Test AI failures are audited and re-raised."""
        fake_client.aio.models.error = RuntimeError("Failed to fetch")
        with pytest.raises(AIServiceError):
            asyncio.run(flow.dream_plan("A new tractor"))

        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.AI_REQUEST_FAILED
        assert event.actor == "me@example.com"
        assert event.details == {"feature": "dream_plan"}

    def test_unconfigured_agent(self, store, audit_logger, audit_storage):
        """Test a missing API key is reported without crashing the app."""
        flow = AssistantFlow(store, agent_factory=unconfigured_agent, audit_logger=audit_logger)
        with pytest.raises(AIServiceError) as exc_info:
            asyncio.run(flow.video_story("Our first home"))
        assert exc_info.value.user_message == AI_NOT_CONFIGURED_MESSAGE
        assert audit_storage.events[-1].event_type == AuditEventType.AI_REQUEST_FAILED


class TestAppComponents:
    """Tests for wiring everything together in memory."""

    @pytest.fixture
    def components(self, monkeypatch, tmp_path):
        monkeypatch.setenv("AUTH_JWT_SECRET", "s" * 32)
        monkeypatch.setenv("AUTH_BCRYPT_ROUNDS", "4")
        monkeypatch.setenv("AUTH_CREDENTIALS_FILE", str(tmp_path / "session.json"))
        return create_app_components(use_storage=False, settings=Settings())

    def test_in_memory_wiring(self, components):
        """Test the app runs without Google Sheets."""
        assert components.uses_google_sheets is False

    def test_sign_up_edit_and_save(self, components):
        """Test a full session: sign up, edit and save."""
        sync, store = components.sync, components.store
        session = asyncio.run(components.auth.sign_up("me@example.com", "secret"))
        assert asyncio.run(sync.on_auth_success(session, new_account=True)) is True

        store.add_family_member("Asha")
        assert asyncio.run(sync.flush()) is True

        raw = asyncio.run(components.gateway.load(session.token))
        assert raw["familyMembers"][0]["name"] == "Asha"
        assert components.auth.get_current_session().email == "me@example.com"

    def test_rejection_is_audited(self, components):
        """Test refused edits leave an audit trail."""
        session = asyncio.run(components.auth.sign_up("me@example.com", "secret"))
        asyncio.run(components.sync.on_auth_success(session))

        result = components.store.add_family_member("me")
        asyncio.run(components.record_rejection("add_family_member", result))

        events = asyncio.run(components.audit_logger._storage.get_recent_events())
        rejected = [e for e in events if e.event_type == AuditEventType.MUTATION_REJECTED]
        assert rejected[0].details == {"command": "add_family_member", "reason": "reserved_name"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
