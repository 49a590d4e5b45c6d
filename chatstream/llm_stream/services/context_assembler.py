"""
Context Assembler

Builds the token-budgeted list of turns sent to a provider.

Strategy:
1. Always include the system prompt (if any), charged first.
2. Always include the most recent turn, even if it alone exceeds the budget.
3. Walk the remaining history newest to oldest, including whole turns while
   they fit in ``max_tokens - reserve_tokens``; stop at the first that does not.
4. Emit: system prompt, included history (chronological), latest turn.

Token counts are estimated as ``ceil(len(text) / 4)``.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass

from chatstream.core.config.constants import (
    CHARS_PER_TOKEN,
    DEFAULT_MAX_CONTEXT_TOKENS,
    DEFAULT_RESPONSE_RESERVE_TOKENS,
    MessageRole,
    Stage,
)
from chatstream.core.logging import get_logger, log_stage
from chatstream.llm_stream.models import ConversationTurn

logger = get_logger(__name__)


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass(frozen=True)
class ContextBudget:
    max_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS
    reserve_tokens: int = DEFAULT_RESPONSE_RESERVE_TOKENS

    @property
    def available(self) -> int:
        return self.max_tokens - self.reserve_tokens


class ContextAssembler:
    """Token-budget-aware context builder."""

    def __init__(self, budget: ContextBudget | None = None):
        self.budget = budget or ContextBudget()

    def assemble(
        self,
        turns: Sequence[ConversationTurn],
        system_prompt: str | None = None,
        budget: ContextBudget | None = None,
    ) -> list[ConversationTurn]:
        """
        Assemble turns for one provider request.

        Args:
            turns: Full history, chronological, latest turn last
            system_prompt: Optional system prompt
            budget: Overrides the assembler's default budget

        Returns:
            Ordered turns; never raises on overflow
        """
        budget = budget or self.budget
        limit = budget.available
        used = 0

        result: list[ConversationTurn] = []
        if system_prompt:
            result.append(ConversationTurn(role=MessageRole.SYSTEM, text=system_prompt))
            used += estimate_tokens(system_prompt)

        if not turns:
            return result

        latest = turns[-1]
        used += estimate_tokens(latest.text)

        included: list[ConversationTurn] = []
        history = turns[:-1]
        for index in range(len(history) - 1, -1, -1):
            tokens = estimate_tokens(history[index].text)
            if used + tokens > limit:
                log_stage(
                    logger,
                    Stage.CONTEXT_BUILD,
                    "Context window truncated",
                    level="debug",
                    truncated_at=index,
                    total_turns=len(turns),
                    used_tokens=used,
                    budget=limit,
                )
                break
            included.append(history[index])
            used += tokens

        included.reverse()
        result.extend(included)
        result.append(latest)
        return result
