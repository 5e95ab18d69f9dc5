"""LLM Gateway – single async entry point for text completion via LiteLLM.

The gateway owns three concerns:

- prompt assembly (fixed preamble, system context, user context, prompt)
- retry with exponential backoff around the completion call
- request/response logging and token usage tracking
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from datetime import datetime
from typing import Any, Sequence
from uuid import uuid4

import litellm
from pydantic import ValidationError

from drivergen.llm.exceptions import (
    ConfigurationError,
    NonTextResponseError,
    RetryExhaustedError,
)
from drivergen.llm.models import (
    BlockRole,
    ContextBlock,
    GatewayConfig,
    LLMLogEntry,
)
from drivergen.llm.token_tracker import TokenTracker

logger = logging.getLogger(__name__)

# Maximum truncation length for logged messages / responses.
_LOG_TRUNCATE_LEN = 1000

_FENCE_RE = re.compile(r"^\s*```[\w.+-]*[ \t]*\n(?P<body>.*?)\n?```\s*$", re.DOTALL)


def _truncate(text: str, max_len: int = _LOG_TRUNCATE_LEN) -> str:
    """Truncate text to *max_len* characters, appending '…' if clipped."""
    if len(text) <= max_len:
        return text
    return text[:max_len] + "…"


def _truncate_messages(
    messages: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Return a copy of *messages* with ``content`` values truncated."""
    truncated: list[dict[str, Any]] = []
    for msg in messages:
        entry = dict(msg)
        if isinstance(entry.get("content"), str):
            entry["content"] = _truncate(entry["content"])
        truncated.append(entry)
    return truncated


def strip_code_fences(text: str) -> str:
    """Remove one Markdown code fence wrapping the whole of *text*.

    Models are told to answer with bare content but occasionally wrap it in
    ```lang ... ``` anyway. Text that is not fully fenced is returned stripped
    and otherwise unchanged.
    """
    match = _FENCE_RE.match(text)
    if match is None:
        return text.strip()
    return match.group("body").strip()


def build_messages(
    prompt: str,
    context_blocks: Sequence[ContextBlock] | None = None,
    preamble: str = "",
) -> list[dict[str, str]]:
    """Assemble the chat messages for one completion request.

    The result always starts with a single ``system`` message holding the
    preamble followed by every system block (joined by blank lines), then one
    ``user`` message per user block in the order given, and finally the
    prompt itself.
    """
    blocks = list(context_blocks or [])
    system_parts = [preamble] if preamble else []
    system_parts.extend(b.text for b in blocks if b.role == BlockRole.SYSTEM)

    messages: list[dict[str, str]] = [
        {"role": "system", "content": "\n\n".join(system_parts)}
    ]
    messages.extend(
        {"role": "user", "content": b.text}
        for b in blocks
        if b.role == BlockRole.USER
    )
    messages.append({"role": "user", "content": prompt})
    return messages


def _extract_text(response: Any) -> str:
    """Pull the assistant text out of a LiteLLM response object."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        raise NonTextResponseError("Completion response contained no choices")
    content = getattr(choices[0].message, "content", None)
    if not isinstance(content, str):
        raise NonTextResponseError(
            f"Expected text content, got {type(content).__name__}"
        )
    return content


class LLMGateway:
    """Async LLM interface with prompt assembly, retry, logging and tracking.

    Example::

        gw = LLMGateway(GatewayConfig(model="gpt-4o-mini"))
        text = await gw.complete(
            "Summarise this API",
            context_blocks=[ContextBlock.user(spec_text)],
        )
    """

    def __init__(self, config: GatewayConfig | None = None) -> None:
        try:
            self._config = config or GatewayConfig()
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc
        self._tracker = TokenTracker()
        self._logs: list[LLMLogEntry] = []

        # Suppress litellm's own verbose logging by default
        litellm.suppress_debug_info = True

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> GatewayConfig:
        return self._config

    @property
    def tracker(self) -> TokenTracker:
        """Token usage of this gateway, per pipeline step."""
        return self._tracker

    @property
    def logs(self) -> list[LLMLogEntry]:
        """Access the request/response log."""
        return list(self._logs)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def complete(
        self,
        prompt: str,
        context_blocks: Sequence[ContextBlock] | None = None,
        step: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Send *prompt* with its context and return the stripped response text.

        Any failure of the completion call is retried with exponential
        backoff (``base_retry_delay * 2**attempt``) up to ``max_retries``
        times.

        Args:
            prompt: The task prompt, sent as the final user message.
            context_blocks: Extra context placed before the prompt.
            step: Pipeline step the request is booked against in the
                token tracker.
            **kwargs: Forwarded to ``litellm.acompletion()``.

        Returns:
            The assistant's response text, whitespace-stripped.

        Raises:
            NonTextResponseError: The service answered without text content.
            RetryExhaustedError: If all retry attempts are exhausted.
        """
        messages = build_messages(
            prompt, context_blocks, preamble=self._config.system_preamble
        )
        model = self._config.model
        kwargs.setdefault("max_tokens", self._config.max_tokens)

        request_id = uuid4()
        start = time.monotonic()
        last_error: Exception | None = None
        attempts = self._config.max_retries + 1

        for attempt in range(attempts):
            try:
                response = await litellm.acompletion(
                    model=model,
                    messages=messages,
                    **kwargs,
                )
            except Exception as exc:
                last_error = exc
                if attempt < self._config.max_retries:
                    delay = self._config.base_retry_delay * (2 ** attempt)
                    logger.warning(
                        "LLM call failed (attempt %d/%d): %s; retrying in %.1fs",
                        attempt + 1,
                        attempts,
                        exc,
                        delay,
                    )
                    await asyncio.sleep(delay)
                continue

            text = _extract_text(response).strip()
            self._record(request_id, model, messages, text, response, attempt + 1, start, step)
            return text

        assert last_error is not None
        logger.error("LLM call failed after %d attempts: %s", attempts, last_error)
        raise RetryExhaustedError(
            attempts=attempts,
            last_error=last_error,
        ) from last_error

    async def generate(
        self,
        instruction: str,
        context: str = "",
        context_blocks: Sequence[ContextBlock] | None = None,
        step: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Run one agent instruction against *context*.

        The instruction is sent both as a system block (after any caller
        system blocks) and inside the ``Instruction:/Context:`` user prompt.
        """
        blocks = list(context_blocks or [])
        blocks.append(ContextBlock.system(instruction))
        prompt = f"Instruction:\n{instruction}\n\nContext:\n{context}"
        return await self.complete(prompt, context_blocks=blocks, step=step, **kwargs)

    # ------------------------------------------------------------------
    # Log retrieval
    # ------------------------------------------------------------------

    def get_logs(
        self,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> list[LLMLogEntry]:
        """Return log entries optionally filtered by time range.

        Args:
            start_time: Inclusive lower bound (UTC).
            end_time: Inclusive upper bound (UTC).
        """
        result: list[LLMLogEntry] = []
        for entry in self._logs:
            if start_time and entry.timestamp < start_time:
                continue
            if end_time and entry.timestamp > end_time:
                continue
            result.append(entry)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _record(
        self,
        request_id: Any,
        model: str,
        messages: list[dict[str, Any]],
        text: str,
        response: Any,
        attempts: int,
        start: float,
        step: str | None,
    ) -> None:
        usage = getattr(response, "usage", None)
        prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
        completion_tokens = getattr(usage, "completion_tokens", 0) or 0
        total_tokens = getattr(usage, "total_tokens", 0) or (
            prompt_tokens + completion_tokens
        )

        cost = self._tracker.record(model, prompt_tokens, completion_tokens, step=step)
        self._logs.append(
            LLMLogEntry(
                request_id=request_id,
                model=model,
                messages=_truncate_messages(messages),
                response=_truncate(text),
                attempts=attempts,
                tokens_prompt=prompt_tokens,
                tokens_completion=completion_tokens,
                tokens_total=total_tokens,
                latency_ms=(time.monotonic() - start) * 1000,
                step=step,
                cost_usd=cost,
            )
        )
        logger.debug(
            "LLM %s answered %s in %d attempt(s), %d tokens",
            model,
            step or "request",
            attempts,
            total_tokens,
        )
