"""Per-step token usage ledger for LLM requests.

Every completion is attributed to the pipeline step that asked for it, so a
run can report which stage spent the tokens. Requests made outside the
pipeline are booked under :data:`UNATTRIBUTED`.
"""

from __future__ import annotations

from dataclasses import dataclass

from drivergen.llm.models import TOKEN_PRICING

UNATTRIBUTED = "(direct)"


def estimate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Estimated USD cost of one request; unpriced models cost nothing."""
    pricing = TOKEN_PRICING.get(model)
    if pricing is None:
        return 0.0
    return (
        prompt_tokens * pricing["input"] + completion_tokens * pricing["output"]
    ) / 1_000_000


@dataclass
class StepUsage:
    """Accumulated usage of one pipeline step."""

    step: str
    requests: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost_usd: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def add(self, prompt_tokens: int, completion_tokens: int, cost_usd: float) -> None:
        self.requests += 1
        self.prompt_tokens += prompt_tokens
        self.completion_tokens += completion_tokens
        self.cost_usd += cost_usd


class TokenTracker:
    """Token usage and cost, broken down by pipeline step.

    Example::

        tracker = TokenTracker()
        tracker.record("gpt-4o-mini", 1200, 300, step="Generate Schema")
        for usage in tracker.by_step():
            print(usage.step, usage.total_tokens)
    """

    def __init__(self) -> None:
        self._steps: dict[str, StepUsage] = {}

    def record(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        step: str | None = None,
    ) -> float:
        """Book one request against *step* and return its estimated cost."""
        cost = estimate_cost(model, prompt_tokens, completion_tokens)
        label = step or UNATTRIBUTED
        usage = self._steps.setdefault(label, StepUsage(label))
        usage.add(prompt_tokens, completion_tokens, cost)
        return cost

    def usage(self, step: str) -> StepUsage | None:
        return self._steps.get(step)

    def by_step(self) -> list[StepUsage]:
        """Usage per step, in the order the steps first asked for a completion."""
        return list(self._steps.values())

    def totals(self) -> StepUsage:
        """Usage summed over every step."""
        total = StepUsage("total")
        for usage in self._steps.values():
            total.requests += usage.requests
            total.prompt_tokens += usage.prompt_tokens
            total.completion_tokens += usage.completion_tokens
            total.cost_usd += usage.cost_usd
        return total

    def reset(self) -> None:
        self._steps.clear()
