"""
Tests for the Gemini agent.

All calls go to the fake client from conftest; nothing reaches Google.
"""

import asyncio
import base64
import json
from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from financeflow.agents import (
    AIServiceError,
    EmptyAIResponseError,
    FinanceAIAgent,
    InvalidAIRequestError,
    summarize_recent_spending,
)
from financeflow.agents.ai_agents import NOT_ENOUGH_DATA_TIP
from financeflow.agents.errors import AI_SERVICE_ERROR_MESSAGE, describe_ai_error
from financeflow.models import ChatMessage, Transaction, TransactionType


TODAY = date(2024, 6, 15)

DREAM_JSON = json.dumps({
    "title": "Kerala Trip",
    "summary": "A week on the backwaters.",
    "estimatedCost": "₹80,000 - ₹1,20,000",
    "timeline": "8 months",
    "steps": [
        {"title": "Open a savings pot", "description": "Set aside ₹10,000 a month."},
        {"title": "Book early", "description": "Watch for fares."},
        {"title": "Plan the stay", "description": "Compare houseboats."},
    ],
})


def expenses(count, days_ago=1, category="Groceries"):
    return [
        Transaction(
            id=i,
            amount=100,
            type=TransactionType.EXPENSE,
            category=category,
            date=TODAY - timedelta(days=days_ago),
        )
        for i in range(count)
    ]


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def agent(fake_client, gemini_settings, sleeps):
    async def sleep(seconds):
        sleeps.append(seconds)

    return FinanceAIAgent(gemini_settings, client=fake_client, sleep=sleep)


@pytest.fixture
def models(fake_client):
    return fake_client.aio.models


class TestFinancialTip:
    """Tests for the spending tip."""

    def test_not_enough_data(self, agent, models):
        """Test fewer than three recent expenses skips the model."""
        tip = asyncio.run(agent.generate_financial_tip(expenses(2), TODAY))
        assert tip.tip == NOT_ENOUGH_DATA_TIP
        assert models.calls == []

    def test_old_expenses_do_not_count(self, agent, models):
        """Test expenses older than 30 days are ignored."""
        tip = asyncio.run(agent.generate_financial_tip(expenses(5, days_ago=45), TODAY))
        assert tip.tip == NOT_ENOUGH_DATA_TIP

    def test_tip_from_model(self, agent, models):
        """Test the prompt summarizes spending by category."""
        models.text = "Cook at home twice more a week."
        tip = asyncio.run(agent.generate_financial_tip(expenses(3), TODAY))

        assert tip.tip == "Cook at home twice more a week."
        name, kwargs = models.calls[0]
        assert name == "generate_content"
        assert "- Groceries: ₹300.00" in kwargs["contents"]

    def test_empty_response(self, agent, models):
        """Test an empty model answer is reported as such."""
        models.text = ""
        with pytest.raises(EmptyAIResponseError) as exc_info:
            asyncio.run(agent.generate_financial_tip(expenses(3), TODAY))
        assert "safety filters" in exc_info.value.user_message

    def test_sdk_error_translated(self, agent, models):
        """Test SDK failures become user-facing service errors."""
        models.error = RuntimeError("400 API key not valid. Please pass a valid API key.")
        with pytest.raises(AIServiceError) as exc_info:
            asyncio.run(agent.generate_financial_tip(expenses(3), TODAY))
        assert "...abcd" in exc_info.value.user_message

    def test_summarize_recent_spending(self):
        """Test the spending summary sums recent expenses per category."""
        summary = summarize_recent_spending(
            expenses(2) + expenses(1, category="Health") + expenses(4, days_ago=60),
            TODAY,
        )
        assert summary == {"Groceries": 200, "Health": 100}


class TestDreamPlan:
    """Tests for the dream planner."""

    def test_plan_and_image(self, agent, models):
        """Test the structured plan and image are combined."""
        models.text = DREAM_JSON
        result = asyncio.run(agent.generate_dream_plan("A family trip to Kerala"))

        assert result.plan.title == "Kerala Trip"
        assert len(result.plan.steps) == 3
        assert result.image_url == "data:image/jpeg;base64," + base64.b64encode(b"jpeg-bytes").decode()

        requests = dict(models.calls)
        assert requests["generate_content"]["config"]["response_mime_type"] == "application/json"
        assert "Kerala" in requests["generate_images"]["prompt"]

    def test_unparseable_plan(self, agent, models):
        """Test a plan that doesn't match the schema is a service error."""
        models.text = '{"title": "Half a plan"}'
        with pytest.raises(AIServiceError):
            asyncio.run(agent.generate_dream_plan("A new tractor"))

    def test_missing_image(self, agent, models):
        """Test a plan without an image is incomplete."""
        models.text = DREAM_JSON
        models.image_bytes = None
        with pytest.raises(EmptyAIResponseError):
            asyncio.run(agent.generate_dream_plan("A new tractor"))


class TestVideoStory:
    """Tests for video generation."""

    def test_polls_until_done(self, agent, models, fake_client, sleeps):
        """Test the operation is polled until it finishes."""
        models.operation = SimpleNamespace(done=False, response=None)

        story = asyncio.run(agent.generate_video_story("Our first home"))

        assert story.video_uri == "https://example.com/video.mp4"
        assert fake_client.aio.operations.polls == 2
        assert len(sleeps) == 2

    def test_missing_uri(self, agent, models):
        """Test a finished operation without a video is a service error."""
        models.operation = SimpleNamespace(done=True, response=None)
        with pytest.raises(AIServiceError, match="valid download link"):
            asyncio.run(agent.generate_video_story("Our first home"))


class TestChat:
    """Tests for the assistant chat."""

    def test_history_sent_with_roles(self, agent, models):
        """Test user and ai turns map to user and model roles."""
        history = [
            ChatMessage(sender="user", text="context"),
            ChatMessage(sender="ai", text="Hello!"),
            ChatMessage(sender="user", text="How much did I spend?"),
        ]
        reply = asyncio.run(agent.chat(history, TODAY))

        assert reply.text == "A helpful answer."
        _, kwargs = models.calls[0]
        assert [c["role"] for c in kwargs["contents"]] == ["user", "model", "user"]
        assert kwargs["contents"][2]["parts"] == [{"text": "How much did I spend?"}]
        assert "2024-06-15" in kwargs["config"]["system_instruction"]

    @pytest.mark.parametrize("history", [[], None, "hello"])
    def test_invalid_history(self, agent, history):
        """Test an empty or malformed history is refused."""
        with pytest.raises(InvalidAIRequestError, match="Invalid chat history"):
            asyncio.run(agent.chat(history))


class TestDescribeAIError:
    """Tests for user-facing error messages."""

    def test_connection_problem(self):
        """Test network failures mention the connection."""
        message = describe_ai_error(RuntimeError("Failed to fetch"), "key")
        assert "failed to connect" in message

    def test_billing_problem(self):
        """Test billing failures mention billing."""
        message = describe_ai_error(RuntimeError("Billing account disabled"), "key")
        assert "billing" in message

    def test_short_key_not_revealed(self):
        """Test a short key is not echoed back."""
        message = describe_ai_error(RuntimeError("API key not valid"), "abc")
        assert "abc" not in message

    def test_unknown(self):
        """Test anything else gets the generic message."""
        assert describe_ai_error(RuntimeError("boom"), "key") == AI_SERVICE_ERROR_MESSAGE


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
