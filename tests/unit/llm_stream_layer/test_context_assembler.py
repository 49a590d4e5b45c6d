"""
Unit Tests for ContextAssembler

Tests the budget invariant, the contiguous-suffix property and ordering.
"""

import random

import pytest

from chatstream.core.config.constants import MessageRole
from chatstream.llm_stream.models import ConversationTurn
from chatstream.llm_stream.services import ContextAssembler, ContextBudget, estimate_tokens


def turn(text: str, role: MessageRole = MessageRole.USER) -> ConversationTurn:
    return ConversationTurn(role=role, text=text)


@pytest.mark.unit
class TestEstimateTokens:

    @pytest.mark.parametrize(
        "text,expected",
        [("", 0), ("a", 1), ("abcd", 1), ("abcde", 2), ("x" * 400, 100)],
    )
    def test_ceil_of_quarter_length(self, text, expected):
        assert estimate_tokens(text) == expected


@pytest.mark.unit
class TestContextAssembler:

    def test_everything_fits(self):
        turns = [turn("one"), turn("two", MessageRole.ASSISTANT), turn("three")]

        result = ContextAssembler().assemble(turns, system_prompt="Be brief")

        assert result[0] == turn("Be brief", MessageRole.SYSTEM)
        assert result[1:] == turns

    def test_empty_history_returns_only_system_prompt(self):
        assembler = ContextAssembler()

        assert assembler.assemble([], system_prompt="sys") == [turn("sys", MessageRole.SYSTEM)]
        assert assembler.assemble([]) == []

    def test_latest_turn_kept_even_when_over_budget(self):
        budget = ContextBudget(max_tokens=10, reserve_tokens=0)
        turns = [turn("old"), turn("z" * 400)]

        result = ContextAssembler(budget).assemble(turns)

        assert result == [turns[-1]]

    def test_stops_at_first_turn_that_does_not_fit(self):
        # Arrange: budget 10; latest=2, then 3 fits (5), 8 does not, 1 would fit but is older
        budget = ContextBudget(max_tokens=10, reserve_tokens=0)
        turns = [turn("a" * 4), turn("b" * 32), turn("c" * 12), turn("d" * 8)]

        # Act
        result = ContextAssembler(budget).assemble(turns)

        # Assert
        assert [t.text[0] for t in result] == ["c", "d"]

    def test_system_prompt_charged_first(self):
        budget = ContextBudget(max_tokens=10, reserve_tokens=0)
        turns = [turn("a" * 16), turn("b" * 8)]

        without = ContextAssembler(budget).assemble(turns)
        with_system = ContextAssembler(budget).assemble(turns, system_prompt="s" * 20)

        assert [t.text[0] for t in without] == ["a", "b"]
        assert [t.text[0] for t in with_system] == ["s", "b"]

    def test_reserve_reduces_budget(self):
        turns = [turn("a" * 40), turn("b" * 4)]

        roomy = ContextAssembler(ContextBudget(max_tokens=20, reserve_tokens=0)).assemble(turns)
        tight = ContextAssembler(ContextBudget(max_tokens=20, reserve_tokens=15)).assemble(turns)

        assert len(roomy) == 2
        assert len(tight) == 1

    def test_budget_override_per_call(self):
        assembler = ContextAssembler(ContextBudget(max_tokens=1000, reserve_tokens=0))
        turns = [turn("a" * 40), turn("b")]

        result = assembler.assemble(turns, budget=ContextBudget(max_tokens=5, reserve_tokens=0))

        assert result == [turns[-1]]

    def test_randomized_histories_keep_invariants(self):
        """Budget holds, history is a contiguous suffix, order is chronological."""
        rng = random.Random(1234)
        for _ in range(200):
            turns = [turn(str(i) * rng.randint(0, 60)) for i in range(rng.randint(1, 12))]
            system_prompt = "s" * rng.randint(0, 40) or None
            budget = ContextBudget(max_tokens=rng.randint(5, 120), reserve_tokens=rng.randint(0, 4))

            result = ContextAssembler(budget).assemble(turns, system_prompt)

            body = result[1:] if system_prompt else result
            assert body[-1] is turns[-1]
            history = body[:-1]
            assert history == turns[len(turns) - 1 - len(history):-1]

            if len(body) > 1:
                total = sum(estimate_tokens(t.text) for t in result)
                assert total <= budget.available
