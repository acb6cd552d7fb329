"""Conversation history shared by the chat route and the chat session."""

from typing import Literal, TypedDict

SYSTEM_PROMPT = (
    "You are a helpful voice assistant. Keep your responses concise and "
    "conversational as they will be spoken aloud."
)
FALLBACK_RESPONSE = "I apologize, but I could not generate a response."
MAX_HISTORY_ENTRIES = 10

Role = Literal["system", "user", "assistant"]


class ChatTurn(TypedDict):
    role: Role
    content: str


def truncate_history(history: list[ChatTurn], limit: int = MAX_HISTORY_ENTRIES) -> list[ChatTurn]:
    """Keep only the most recent ``limit`` entries."""
    if limit <= 0:
        return []
    return list(history[-limit:])


def build_chat_messages(message: str, history: list[ChatTurn] | None) -> list[ChatTurn]:
    """Build the message list sent to the completion service.

    Without history the conversation is seeded with the system prompt and the
    message. With history, the history is expected to already end with the
    user's message. It is cut down so that the system prompt plus the most
    recent turns never exceed MAX_HISTORY_ENTRIES; a system prompt supplied
    by the client replaces the default one.

    Args:
        message: Latest user utterance
        history: Prior turns supplied by the client, if any

    Returns:
        Messages ready for the completion request
    """
    if not history:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": message},
        ]

    system_prompt = SYSTEM_PROMPT
    if history[0]["role"] == "system":
        system_prompt = history[0]["content"]

    turns = [turn for turn in history if turn["role"] != "system"]
    messages: list[ChatTurn] = [{"role": "system", "content": system_prompt}]
    messages.extend(truncate_history(turns, MAX_HISTORY_ENTRIES - 1))
    return messages
