"""
AI Agents for FamilyFinance

DESIGN DECISION: All generative features go through one agent built on
the google-genai SDK (async client). It covers:
1. Financial tip from recent spending
2. Dream plan (structured JSON) with an inspirational image
3. Assistant chat over the user's own data
4. Video story generation (long-running operation, polled)

CRITICAL BOUNDARIES:
- The agent never sees the store, only read-only copies of collections
- The chat assistant answers ONLY from the data in the conversation
- Model output is never written back into the user's snapshot

Failures surface as AIError subclasses whose `user_message` is safe to
show. SDK errors are logged with their detail and translated at this
boundary.
"""

import asyncio
import base64
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

import structlog
from google import genai
from pydantic import ValidationError

from financeflow.agents.errors import (
    INVALID_CHAT_HISTORY_MESSAGE,
    AIError,
    AIServiceError,
    EmptyAIResponseError,
    InvalidAIRequestError,
    describe_ai_error,
)
from financeflow.config import GeminiSettings, get_settings
from financeflow.models.ai import (
    ChatMessage,
    ChatReply,
    DreamPlan,
    DreamPlanResult,
    FinancialTip,
    VideoStory,
)
from financeflow.models.finance import Transaction, TransactionType


logger = structlog.get_logger(__name__)


TIP_WINDOW_DAYS = 30
MIN_EXPENSES_FOR_TIP = 3

NOT_ENOUGH_DATA_TIP = (
    "👋 Keep adding expenses to your tracker. Once I have a little more data "
    "on your spending, I can provide a personalized financial tip!"
)

DREAM_PLAN_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "summary": {"type": "STRING"},
        "estimatedCost": {"type": "STRING"},
        "timeline": {"type": "STRING"},
        "steps": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING"},
                    "description": {"type": "STRING"},
                },
                "required": ["title", "description"],
            },
        },
    },
    "required": ["title", "summary", "estimatedCost", "timeline", "steps"],
}


def _chat_system_instruction(today: date) -> str:
    return f"""You are 'Family FinanceFlow Assistant', a helpful AI chatbot inside a personal finance app. All monetary values are in Indian Rupees (INR, symbol ₹). Your role is to answer user questions based *only* on the financial data provided in the initial messages.
- Today's date is {today.isoformat()}.
- Do NOT provide financial advice, investment tips, or any information outside of the provided data.
- If a question cannot be answered with the data, politely say so.
- Be friendly, conversational, and concise."""


def summarize_recent_spending(
    transactions: list[Transaction],
    today: date,
    window_days: int = TIP_WINDOW_DAYS,
) -> dict[str, Decimal]:
    """Expense totals per category over the last `window_days` days."""
    since = today - timedelta(days=window_days)
    summary: dict[str, Decimal] = {}
    for t in transactions:
        if t.type != TransactionType.EXPENSE or t.date is None or t.date < since:
            continue
        summary[t.category] = summary.get(t.category, Decimal(0)) + t.amount
    return summary


class FinanceAIAgent:
    """
    Gemini-backed generative features.

    RESPONSIBILITIES:
    - Build prompts from read-only copies of the user's data
    - Call the text, image and video models
    - Validate and shape the responses

    BOUNDARIES:
    - NEVER mutates user data
    - NEVER answers chat questions from outside the provided data
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        client: Optional[Any] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            settings: Gemini settings; loaded from the environment if omitted
            client: A google-genai client; created from the API key if omitted
            sleep: Delay used between video status checks
        """
        self._settings = settings or get_settings().gemini
        self._client = client or genai.Client(api_key=self._settings.api_key)
        self._sleep = sleep

    async def _call(self, feature: str, request: Awaitable[Any]) -> Any:
        """Await an SDK call, translating its failures."""
        try:
            return await request
        except AIError:
            raise
        except Exception as e:
            logger.error("ai_request_failed", feature=feature, error=str(e))
            raise AIServiceError(
                describe_ai_error(e, self._settings.api_key),
                detail=str(e),
            ) from e

    # =========================================================================
    # FINANCIAL TIP
    # =========================================================================

    async def generate_financial_tip(
        self,
        transactions: list[Transaction],
        today: Optional[date] = None,
    ) -> FinancialTip:
        """
        One short tip based on the last 30 days of spending.

        With fewer than three recent expenses there is nothing to go on,
        and a fixed encouragement is returned without calling the model.
        """
        today = today or date.today()
        since = today - timedelta(days=TIP_WINDOW_DAYS)
        recent_count = sum(
            1 for t in transactions
            if t.type == TransactionType.EXPENSE and t.date is not None and t.date >= since
        )
        if recent_count < MIN_EXPENSES_FOR_TIP:
            return FinancialTip(tip=NOT_ENOUGH_DATA_TIP)

        summary = summarize_recent_spending(transactions, today)
        formatted = "\n".join(f"- {category}: ₹{amount:.2f}" for category, amount in summary.items())
        prompt = (
            "You are a friendly financial coach. Based on the user's recent spending "
            "in Indian Rupees (₹), provide one specific, practical, and encouraging "
            f"tip under 60 words.\n\nSpending:\n{formatted}"
        )

        response = await self._call(
            "financial_tip",
            self._client.aio.models.generate_content(
                model=self._settings.text_model,
                contents=prompt,
            ),
        )
        if not response.text:
            raise EmptyAIResponseError("Financial tip response was empty")
        return FinancialTip(tip=response.text)

    # =========================================================================
    # DREAM PLANNER
    # =========================================================================

    async def generate_dream_plan(self, dream_description: str) -> DreamPlanResult:
        """
        A structured plan for a dream plus an image of it.

        The plan and the image are requested concurrently.
        """
        plan_prompt = (
            "Based on the user's dream, create a high-level, encouraging financial "
            "plan. Currency is Indian Rupees (₹).\n\n"
            f'Dream: "{dream_description}"\n\n'
            "Provide a title, summary, estimated cost range, timeline, and 3-5 practical steps."
        )
        image_prompt = (
            "An inspirational, vibrant, photorealistic image representing the dream of: "
            f"{dream_description}. Cinematic lighting, high detail."
        )

        plan_response, image_response = await self._call(
            "dream_plan",
            asyncio.gather(
                self._client.aio.models.generate_content(
                    model=self._settings.text_model,
                    contents=plan_prompt,
                    config={
                        "response_mime_type": "application/json",
                        "response_schema": DREAM_PLAN_SCHEMA,
                    },
                ),
                self._client.aio.models.generate_images(
                    model=self._settings.image_model,
                    prompt=image_prompt,
                    config={
                        "number_of_images": 1,
                        "output_mime_type": "image/jpeg",
                        "aspect_ratio": "16:9",
                    },
                ),
            ),
        )

        plan_text = plan_response.text
        images = image_response.generated_images or []
        image_bytes = images[0].image.image_bytes if images and images[0].image else None
        if not plan_text or not image_bytes:
            raise EmptyAIResponseError("Dream plan response was incomplete")

        try:
            plan = DreamPlan.model_validate_json(plan_text)
        except ValidationError as e:
            logger.error("dream_plan_unparseable", error_count=e.error_count())
            raise AIServiceError(
                describe_ai_error(e, self._settings.api_key),
                detail="Dream plan did not match the schema",
            ) from e

        image_url = "data:image/jpeg;base64," + base64.b64encode(image_bytes).decode("ascii")
        return DreamPlanResult(plan=plan, image_url=image_url)

    # =========================================================================
    # VIDEO STORY
    # =========================================================================

    async def generate_video_story(self, prompt: str) -> VideoStory:
        """
        Generate a short video and return its download URI.

        Video generation is a long-running operation; its status is checked
        every `video_poll_interval_seconds` until it is done.
        """
        operation = await self._call(
            "video_story",
            self._client.aio.models.generate_videos(
                model=self._settings.video_model,
                prompt=prompt,
                config={"number_of_videos": 1},
            ),
        )
        while not operation.done:
            await self._sleep(self._settings.video_poll_interval_seconds)
            operation = await self._call(
                "video_story",
                self._client.aio.operations.get(operation),
            )

        videos = operation.response.generated_videos if operation.response else None
        uri = videos[0].video.uri if videos and videos[0].video else None
        if not uri:
            logger.error("video_story_missing_uri")
            raise AIServiceError(
                describe_ai_error(
                    RuntimeError("Video generation failed to produce a valid download link."),
                    self._settings.api_key,
                ),
                detail="Video generation failed to produce a valid download link.",
            )
        return VideoStory(video_uri=uri)

    # =========================================================================
    # ASSISTANT CHAT
    # =========================================================================

    async def chat(
        self,
        history: list[ChatMessage],
        today: Optional[date] = None,
    ) -> ChatReply:
        """
        Answer the latest message of a conversation.

        Args:
            history: The whole conversation, starting with the context message
            today: Date the assistant treats as today

        Raises:
            InvalidAIRequestError: If the history is empty or not a list
        """
        if not isinstance(history, list) or not history:
            raise InvalidAIRequestError(INVALID_CHAT_HISTORY_MESSAGE)

        contents = [
            {
                "role": "user" if message.sender == "user" else "model",
                "parts": [{"text": message.text}],
            }
            for message in history
        ]
        response = await self._call(
            "chat",
            self._client.aio.models.generate_content(
                model=self._settings.text_model,
                contents=contents,
                config={"system_instruction": _chat_system_instruction(today or date.today())},
            ),
        )
        if not response.text:
            raise EmptyAIResponseError("Chat response was empty")
        return ChatReply(text=response.text)
