"""
Grounded reasoning over the product document.

Provides:
- Conversation history management (rolling window)
- Fixed system prompt built from the product document
- Non-streaming completion under the shared retry/timeout policy
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Union

import structlog

from src.medinfo.retry import PipelineOperation
from src.medinfo.services import ServiceContext
from src.medinfo.translation import completion_text

logger = structlog.get_logger(__name__)

CLARIFICATION_PROMPT = "I didn't catch that. Could you repeat your question?"

REASON_TEMPERATURE = 0.4
REASON_MAX_TOKENS = 300


@dataclass
class ConversationTurn:
    """A single turn in the conversation."""
    role: str  # "user" or "assistant"
    content: str


HistoryEntry = Union[ConversationTurn, Mapping[str, str]]


class ConversationHistory:
    """Manages conversation history with a rolling window."""

    def __init__(self, max_messages: int = 20):
        self.max_messages = max_messages
        self._turns: List[ConversationTurn] = []

    def add_user_message(self, content: str) -> None:
        """Add a user message."""
        self._turns.append(ConversationTurn(role="user", content=content))
        self._trim()

    def add_assistant_message(self, content: str) -> None:
        """Add an assistant message."""
        self._turns.append(ConversationTurn(role="assistant", content=content))
        self._trim()

    def _trim(self) -> None:
        if len(self._turns) > self.max_messages:
            self._turns = self._turns[-self.max_messages:]

    def get_messages(self) -> List[Dict[str, str]]:
        """Get messages in OpenAI format."""
        return [
            {"role": turn.role, "content": turn.content}
            for turn in self._turns
        ]

    def clear(self) -> None:
        """Clear conversation history."""
        self._turns.clear()

    def __iter__(self):
        return iter(self._turns)

    def __len__(self) -> int:
        return len(self._turns)


def _as_message(entry: HistoryEntry) -> Dict[str, str]:
    if isinstance(entry, ConversationTurn):
        return {"role": entry.role, "content": entry.content}
    return {"role": entry["role"], "content": entry["content"]}


def build_messages(
    system_prompt: str,
    query: str,
    history: Iterable[HistoryEntry] = (),
    max_history: int = 20,
) -> List[Dict[str, str]]:
    """System prompt, then at most `max_history` recent entries, then the query."""
    recent = list(history)[-max_history:] if max_history > 0 else []
    messages = [{"role": "system", "content": system_prompt}]
    messages.extend(_as_message(entry) for entry in recent)
    messages.append({"role": "user", "content": query})
    return messages


class ProductReasoner:
    """
    Answers a caller's question strictly from the product document.

    Works in the pivot language; translation happens around it.
    """

    LABEL = "LLM"

    def __init__(self, context: ServiceContext):
        self.context = context
        self.config = context.config
        self._client = context.client

    async def reason(self, query: str, history: Iterable[HistoryEntry] = ()) -> str:
        """
        Generate a grounded reply.

        Args:
            query: The user's question (pivot language)
            history: Prior turns, oldest first; only the most recent are sent

        Returns:
            Reply text, or a fixed clarification prompt for an empty query
        """
        if not query or not query.strip():
            return CLARIFICATION_PROMPT

        messages = build_messages(
            self.context.system_prompt,
            query,
            history,
            max_history=self.config.max_history_messages,
        )

        start_time = time.time()
        response = await PipelineOperation(
            self.LABEL,
            lambda: self._client.chat.completions.create(
                model=self.config.llm_model,
                temperature=REASON_TEMPERATURE,
                max_tokens=REASON_MAX_TOKENS,
                messages=messages,
            ),
            self.context.policy_for("llm"),
        ).run()

        reply = completion_text(response, self.LABEL)
        logger.debug(
            "LLM reply",
            history_messages=len(messages) - 2,
            chars=len(reply),
            total_ms=round((time.time() - start_time) * 1000),
        )
        return reply
