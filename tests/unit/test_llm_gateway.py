"""Unit tests for LLMGateway – the async completion interface.

All LiteLLM calls are mocked so tests run without API keys or network access.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from drivergen.llm.exceptions import NonTextResponseError, RetryExhaustedError
from drivergen.llm.gateway import (
    LLMGateway,
    _truncate,
    _truncate_messages,
    build_messages,
    strip_code_fences,
)
from drivergen.llm.models import ContextBlock, GatewayConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mock_response(
    text: object = "Hello!",
    prompt_tokens: int = 10,
    completion_tokens: int = 5,
) -> MagicMock:
    """Build a mock LiteLLM response object."""
    choice = SimpleNamespace(message=SimpleNamespace(content=text))
    usage = SimpleNamespace(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )
    resp = MagicMock()
    resp.choices = [choice]
    resp.usage = usage
    return resp


def _gateway(**overrides: object) -> LLMGateway:
    config = GatewayConfig(model="gpt-4o-mini", base_retry_delay=1.0, **overrides)
    return LLMGateway(config)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


class TestTruncate:
    def test_short_text_unchanged(self) -> None:
        assert _truncate("hello", max_len=10) == "hello"

    def test_long_text_truncated(self) -> None:
        assert _truncate("abcdefghij", max_len=5) == "abcde…"

    def test_messages_not_mutated(self) -> None:
        msgs = [{"role": "user", "content": "x" * 2000}]
        result = _truncate_messages(msgs)
        assert len(result[0]["content"]) < 2000
        assert len(msgs[0]["content"]) == 2000


class TestStripCodeFences:
    def test_fenced_json(self) -> None:
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_fence_without_language(self) -> None:
        assert strip_code_fences("```\nexport const Root = {};\n```\n") == "export const Root = {};"

    def test_unfenced_text_is_stripped_only(self) -> None:
        assert strip_code_fences("  plain text \n") == "plain text"

    def test_partial_fence_is_left_alone(self) -> None:
        text = "Here you go:\n```ts\ncode\n```"
        assert strip_code_fences(text) == text


class TestBuildMessages:
    def test_order_is_preamble_system_user_prompt(self) -> None:
        messages = build_messages(
            "the prompt",
            [
                ContextBlock.user("user one"),
                ContextBlock.system("system one"),
                ContextBlock.user("user two"),
                ContextBlock.system("system two"),
            ],
            preamble="PREAMBLE",
        )
        assert messages == [
            {"role": "system", "content": "PREAMBLE\n\nsystem one\n\nsystem two"},
            {"role": "user", "content": "user one"},
            {"role": "user", "content": "user two"},
            {"role": "user", "content": "the prompt"},
        ]

    def test_no_blocks(self) -> None:
        messages = build_messages("p", preamble="P")
        assert messages == [
            {"role": "system", "content": "P"},
            {"role": "user", "content": "p"},
        ]


# ---------------------------------------------------------------------------
# complete()
# ---------------------------------------------------------------------------


class TestComplete:
    @patch("drivergen.llm.gateway.litellm.acompletion", new_callable=AsyncMock)
    async def test_returns_stripped_text(self, mock_completion: AsyncMock) -> None:
        mock_completion.return_value = _mock_response("  answer \n")
        gw = _gateway()
        assert await gw.complete("question") == "answer"

        kwargs = mock_completion.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 8000
        assert kwargs["messages"][-1] == {"role": "user", "content": "question"}

    @patch("drivergen.llm.gateway.asyncio.sleep", new_callable=AsyncMock)
    @patch("drivergen.llm.gateway.litellm.acompletion", new_callable=AsyncMock)
    async def test_retries_with_exponential_backoff(
        self, mock_completion: AsyncMock, mock_sleep: AsyncMock
    ) -> None:
        mock_completion.side_effect = [
            RuntimeError("boom"),
            RuntimeError("boom again"),
            _mock_response("ok"),
        ]
        gw = _gateway()
        assert await gw.complete("q") == "ok"
        assert mock_completion.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]
        assert gw.logs[0].attempts == 3

    @patch("drivergen.llm.gateway.asyncio.sleep", new_callable=AsyncMock)
    @patch("drivergen.llm.gateway.litellm.acompletion", new_callable=AsyncMock)
    async def test_exhaustion_raises_with_last_error(
        self, mock_completion: AsyncMock, mock_sleep: AsyncMock
    ) -> None:
        last = RuntimeError("still down")
        mock_completion.side_effect = [RuntimeError("down")] * 3 + [last]
        gw = _gateway(max_retries=3)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await gw.complete("q")

        assert exc_info.value.attempts == 4
        assert exc_info.value.last_error is last
        assert mock_completion.call_count == 4
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0, 4.0]

    @patch("drivergen.llm.gateway.asyncio.sleep", new_callable=AsyncMock)
    @patch("drivergen.llm.gateway.litellm.acompletion", new_callable=AsyncMock)
    async def test_zero_retries_fails_once(
        self, mock_completion: AsyncMock, mock_sleep: AsyncMock
    ) -> None:
        mock_completion.side_effect = RuntimeError("down")
        gw = _gateway(max_retries=0)
        with pytest.raises(RetryExhaustedError):
            await gw.complete("q")
        assert mock_completion.call_count == 1
        mock_sleep.assert_not_called()

    @patch("drivergen.llm.gateway.litellm.acompletion", new_callable=AsyncMock)
    async def test_non_text_response_is_not_retried(self, mock_completion: AsyncMock) -> None:
        mock_completion.return_value = _mock_response(text=None)
        gw = _gateway()
        with pytest.raises(NonTextResponseError):
            await gw.complete("q")
        assert mock_completion.call_count == 1

    @patch("drivergen.llm.gateway.litellm.acompletion", new_callable=AsyncMock)
    async def test_records_usage_and_logs(self, mock_completion: AsyncMock) -> None:
        mock_completion.return_value = _mock_response("ok", prompt_tokens=100, completion_tokens=50)
        gw = _gateway()
        await gw.complete("q")

        assert gw.tracker.totals().total_tokens == 150
        assert gw.tracker.totals().requests == 1
        entry = gw.logs[0]
        assert entry.model == "gpt-4o-mini"
        assert entry.tokens_total == 150
        assert entry.response == "ok"


class TestGenerate:
    @patch("drivergen.llm.gateway.litellm.acompletion", new_callable=AsyncMock)
    async def test_instruction_in_system_and_prompt(self, mock_completion: AsyncMock) -> None:
        mock_completion.return_value = _mock_response("schema")
        gw = _gateway(system_preamble="PRE")
        await gw.generate(
            "Build a schema",
            "Analyzed API:\n{}",
            context_blocks=[ContextBlock.user("Reference material:\nexample")],
        )

        messages = mock_completion.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "PRE\n\nBuild a schema"}
        assert messages[1]["content"] == "Reference material:\nexample"
        assert messages[2]["content"] == "Instruction:\nBuild a schema\n\nContext:\nAnalyzed API:\n{}"

    @patch("drivergen.llm.gateway.litellm.acompletion", new_callable=AsyncMock)
    async def test_usage_booked_under_step(self, mock_completion: AsyncMock) -> None:
        mock_completion.return_value = _mock_response("schema", prompt_tokens=1_000_000, completion_tokens=0)
        gw = _gateway()
        await gw.generate("Build a schema", "{}", step="Generate Schema")

        usage = gw.tracker.usage("Generate Schema")
        assert usage is not None and usage.prompt_tokens == 1_000_000
        assert "step" not in mock_completion.call_args.kwargs
        entry = gw.logs[0]
        assert entry.step == "Generate Schema"
        assert entry.cost_usd == pytest.approx(0.15)


class TestGetLogs:
    @patch("drivergen.llm.gateway.litellm.acompletion", new_callable=AsyncMock)
    async def test_time_filter(self, mock_completion: AsyncMock) -> None:
        mock_completion.return_value = _mock_response("ok")
        gw = _gateway()
        await gw.complete("q")

        now = datetime.now(timezone.utc)
        assert len(gw.get_logs()) == 1
        assert len(gw.get_logs(start_time=now - timedelta(minutes=1))) == 1
        assert gw.get_logs(start_time=now + timedelta(minutes=1)) == []
        assert gw.get_logs(end_time=now - timedelta(minutes=1)) == []
