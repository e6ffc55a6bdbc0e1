"""
AI errors.

Every AI failure carries a `user_message` that is safe to show in the UI.
The underlying SDK error is kept as `__cause__` for the logs.
"""

from typing import Optional


AI_SERVICE_ERROR_MESSAGE = (
    "An unexpected error occurred while communicating with the AI. "
    "Please check the application logs for more details and ensure your "
    "Google Gemini API key is correctly configured in the .env file."
)

AI_EMPTY_RESPONSE_MESSAGE = (
    "The AI responded, but the message was empty. This can happen due to "
    "the AI's safety filters. Please try rephrasing your request."
)

INVALID_CHAT_HISTORY_MESSAGE = "Invalid chat history provided."


class AIError(Exception):
    """Base exception for AI requests."""

    def __init__(self, user_message: str, detail: Optional[str] = None):
        super().__init__(detail or user_message)
        self.user_message = user_message


class EmptyAIResponseError(AIError):
    """The model answered with no usable content."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(AI_EMPTY_RESPONSE_MESSAGE, detail)


class AIServiceError(AIError):
    """The AI service call failed."""
    pass


class InvalidAIRequestError(AIError):
    """The request was malformed before reaching the model."""
    pass


def describe_ai_error(error: Exception, api_key: str) -> str:
    """
    Turn an SDK failure into a message the user can act on.

    Recognizes rejected API keys (only the last four characters of the key
    are shown), connectivity failures and billing problems.
    """
    message = str(error).lower()

    if "api key not valid" in message:
        key_snippet = f"...{api_key[-4:]}" if len(api_key) > 4 else "..."
        return (
            f"The AI service rejected your API key (ending in {key_snippet}). "
            "The key appears to be invalid or expired.\n\n"
            "**How to Fix:**\n"
            "1. Go to Google AI Studio to create a new, valid API key.\n"
            "2. Set it as `GEMINI_API_KEY` in your `.env` file.\n"
            "3. **Important:** Restart the app to apply the change."
        )
    if "fetch" in message or "connect" in message:
        return (
            "The app failed to connect to Google's AI services. This could be "
            "a network issue or a temporary Google-side problem. Please check "
            "your internet connection and try again later."
        )
    if "billing" in message:
        return (
            "Your Google Cloud project associated with this API key does not "
            "have billing enabled, or the billing account is invalid. Please "
            "check your Google Cloud Console settings."
        )
    return AI_SERVICE_ERROR_MESSAGE
