"""Tests for inclination.prompts."""

from inclination.discussion import Comment, Discussion, Participant, Round
from inclination.prompts import (
    build_discussion_prompt,
    build_voting_prompt,
    format_comment_excerpt,
)


def make_discussion(rounds: list[Round] | None = None) -> Discussion:
    participants = [
        Participant(id="claude-0", name="Claude", api_id="anthropic/claude-3-haiku"),
        Participant(id="gpt4-0", name="GPT-4", api_id="openai/gpt-4o-mini"),
    ]
    return Discussion(
        id="disc-1",
        concept_a="Explore",
        concept_b="Exploit",
        context="Quarter planning.",
        option_a="Investigate new markets",
        option_b="Double down on the core product",
        total_rounds=3,
        participants=participants,
        player_map={"claude-0": "Player 1", "gpt4-0": "Player 2"},
        rounds=rounds or [],
    )


def make_round(number: int, texts: list[str]) -> Round:
    ids = ["claude-0", "gpt4-0"]
    return Round(
        number=number,
        comments=[
            Comment(ids[i], f"Player {i + 1}", text) for i, text in enumerate(texts)
        ],
    )


class TestFormatCommentExcerpt:

    def test_short_comment_keeps_full_text(self):
        comment = Comment("claude-0", "Player 1", "Short point.")
        assert format_comment_excerpt(comment) == 'Player 1: "Short point...."\n\n'

    def test_long_comment_truncated_to_250_chars(self):
        comment = Comment("claude-0", "Player 1", "x" * 400)
        excerpt = format_comment_excerpt(comment)
        assert excerpt == f'Player 1: "{"x" * 250}..."\n\n'


class TestDiscussionPrompt:

    def test_first_round_has_no_history(self):
        discussion = make_discussion()
        prompt = build_discussion_prompt(discussion.participants[0], 1, discussion)

        assert prompt.startswith("You are Player 1, an AI assistant")
        assert '"Explore vs Exploit"' in prompt
        assert "Option A: Investigate new markets (Explore)" in prompt
        assert "Option B: Double down on the core product (Exploit)" in prompt
        assert "This is the first round of discussion." in prompt
        assert "Previous round comments" not in prompt

    def test_uses_anonymous_name_not_model_name(self):
        discussion = make_discussion()
        prompt = build_discussion_prompt(discussion.participants[1], 1, discussion)
        assert "You are Player 2" in prompt
        assert "GPT-4" not in prompt

    def test_later_round_quotes_only_previous_round(self):
        discussion = make_discussion([
            make_round(1, ["round one alpha", "round one beta"]),
            make_round(2, ["round two alpha", "round two beta"]),
        ])
        prompt = build_discussion_prompt(discussion.participants[0], 3, discussion)

        assert "Previous round comments:\n\n" in prompt
        assert 'Player 1: "round two alpha..."' in prompt
        assert 'Player 2: "round two beta..."' in prompt
        assert "round one" not in prompt
        assert "This is round 3 of the discussion." in prompt

    def test_prompt_is_deterministic(self):
        discussion = make_discussion([make_round(1, ["a", "b"])])
        participant = discussion.participants[0]
        first = build_discussion_prompt(participant, 2, discussion)
        second = build_discussion_prompt(participant, 2, discussion)
        assert first == second

    def test_missing_previous_round_still_builds_prompt(self):
        discussion = make_discussion()
        prompt = build_discussion_prompt(discussion.participants[0], 2, discussion)
        assert "This is round 2 of the discussion." in prompt
        assert "Previous round comments" not in prompt


class TestVotingPrompt:

    def test_includes_every_round_in_order(self):
        discussion = make_discussion([
            make_round(2, ["second alpha", "second beta"]),
            make_round(1, ["first alpha", "first beta"]),
        ])
        prompt = build_voting_prompt(discussion.participants[0], discussion)

        assert "Discussion history:\n\n" in prompt
        assert prompt.index("Round 1:\n") < prompt.index("Round 2:\n")
        assert prompt.index("first alpha") < prompt.index("second alpha")
        assert 'Player 2: "second beta..."' in prompt

    def test_asks_for_exact_phrases(self):
        discussion = make_discussion([make_round(1, ["a", "b"])])
        prompt = build_voting_prompt(discussion.participants[1], discussion)

        assert prompt.startswith("You are Player 2, an AI assistant who has participated")
        assert '"I choose Option A" if you prefer Investigate new markets' in prompt
        assert '"I choose Option B" if you prefer Double down on the core product' in prompt
        assert '"I remain neutral"' in prompt
        assert prompt.endswith("explain your reasoning in 2-3 sentences.")

    def test_long_comments_truncated_in_history(self):
        discussion = make_discussion([make_round(1, ["y" * 300, "short"])])
        prompt = build_voting_prompt(discussion.participants[0], discussion)
        assert "y" * 250 + '..."' in prompt
        assert "y" * 251 not in prompt
