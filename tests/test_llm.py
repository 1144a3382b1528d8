"""
Tests for the grounded reasoning stage and conversation history.
"""

from unittest.mock import AsyncMock

import pytest

from src.medinfo.errors import TransientServiceError
from src.medinfo.llm import (
    CLARIFICATION_PROMPT,
    ConversationHistory,
    ConversationTurn,
    ProductReasoner,
    build_messages,
)


class StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class TestReason:
    @pytest.mark.asyncio
    async def test_empty_query_returns_clarification(self, context, fake_client):
        reasoner = ProductReasoner(context)

        assert await reasoner.reason("") == CLARIFICATION_PROMPT
        assert await reasoner.reason("  \n ") == CLARIFICATION_PROMPT
        fake_client.chat.completions.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_grounded_request(self, context, fake_client, make_completion, product_document):
        fake_client.chat.completions.create = AsyncMock(
            return_value=make_completion("  It is 100 mg/mL. Anything else?  ")
        )
        reasoner = ProductReasoner(context)
        history = [
            {"role": "user", "content": "Hi"},
            ConversationTurn(role="assistant", content="Hello, how can I help?"),
        ]

        reply = await reasoner.reason("What strength is Examplumab?", history)

        assert reply == "It is 100 mg/mL. Anything else?"
        kwargs = fake_client.chat.completions.create.await_args.kwargs
        assert kwargs["temperature"] == 0.4
        assert kwargs["max_tokens"] == 300
        messages = kwargs["messages"]
        assert messages[0]["role"] == "system"
        assert product_document in messages[0]["content"]
        assert messages[1:] == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello, how can I help?"},
            {"role": "user", "content": "What strength is Examplumab?"},
        ]

    @pytest.mark.asyncio
    async def test_only_last_twenty_history_entries_sent(self, context, fake_client):
        reasoner = ProductReasoner(context)
        history = [{"role": "user", "content": f"m{i}"} for i in range(35)]

        await reasoner.reason("latest", history)

        messages = fake_client.chat.completions.create.await_args.kwargs["messages"]
        assert len(messages) == 22
        assert messages[1]["content"] == "m15"
        assert messages[-2]["content"] == "m34"
        assert messages[-1]["content"] == "latest"

    @pytest.mark.asyncio
    async def test_retry_exhaustion_propagates(self, context, fake_client):
        from dataclasses import replace

        fast = replace(context, config=replace(context.config, retry_base_ms=1))
        fake_client.chat.completions.create = AsyncMock(side_effect=StatusError(503))
        reasoner = ProductReasoner(fast)

        with pytest.raises(TransientServiceError) as exc_info:
            await reasoner.reason("dose?")

        assert exc_info.value.label == "LLM"
        assert fake_client.chat.completions.create.await_count == 3


class TestBuildMessages:
    def test_no_history(self):
        assert build_messages("sys", "q") == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "q"},
        ]

    def test_zero_history_limit(self):
        messages = build_messages("sys", "q", [{"role": "user", "content": "old"}], max_history=0)
        assert len(messages) == 2


class TestConversationHistory:
    def test_rolling_window(self):
        history = ConversationHistory(max_messages=4)
        for i in range(3):
            history.add_user_message(f"q{i}")
            history.add_assistant_message(f"a{i}")

        assert len(history) == 4
        assert history.get_messages()[0] == {"role": "user", "content": "q1"}
        assert history.get_messages()[-1] == {"role": "assistant", "content": "a2"}

    def test_clear(self):
        history = ConversationHistory()
        history.add_user_message("hello")
        history.clear()
        assert len(history) == 0

    @pytest.mark.asyncio
    async def test_history_object_accepted_by_reasoner(self, context, fake_client):
        history = ConversationHistory()
        history.add_user_message("earlier question")
        history.add_assistant_message("earlier answer")

        await ProductReasoner(context).reason("follow-up", history)

        messages = fake_client.chat.completions.create.await_args.kwargs["messages"]
        assert [m["content"] for m in messages[1:]] == [
            "earlier question",
            "earlier answer",
            "follow-up",
        ]
