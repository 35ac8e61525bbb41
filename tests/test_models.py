"""Tests for inclination.discussion data models."""

import pytest

from inclination.discussion import (
    Comment,
    Dimension,
    Discussion,
    DiscussionStatus,
    ModelAggregate,
    Participant,
    Round,
    Vote,
)


def make_discussion() -> Discussion:
    return Discussion(
        id="disc-1",
        concept_a="Explore",
        concept_b="Exploit",
        context="ctx",
        option_a="new markets",
        option_b="core product",
        total_rounds=3,
        participants=[
            Participant("claude-0", "Claude", "anthropic/claude-3-haiku"),
            Participant("claude-1", "Claude", "anthropic/claude-3-haiku"),
            Participant("gpt4-0", "GPT-4", "openai/gpt-4o-mini"),
        ],
        player_map={"claude-0": "Player 1", "claude-1": "Player 2", "gpt4-0": "Player 3"},
        current_round=2,
        rounds=[Round(1, [Comment("claude-0", "Player 1", "hello")])],
        status=DiscussionStatus.VOTING,
        results={"claude-0": Vote.A, "gpt4-0": Vote.NEUTRAL},
        voting_reasons={"claude-0": "I choose Option A"},
    )


class TestParticipant:

    def test_base_model_id_strips_ordinal(self):
        assert Participant("deepseek-2", "DeepSeek", "x").base_model_id == "deepseek"


class TestDiscussionSerialization:

    def test_to_dict_uses_stored_field_names(self):
        doc = make_discussion().to_dict()

        assert doc["conceptA"] == "Explore"
        assert doc["rounds"] == 3
        assert doc["currentRound"] == 2
        assert doc["status"] == "voting"
        assert doc["results"] == {"claude-0": "A", "gpt4-0": "Neutral"}
        assert doc["discussions"][0] == {
            "round": 1,
            "comments": [{
                "modelId": "claude-0",
                "playerName": "Player 1",
                "comment": "hello",
                "timestamp": doc["discussions"][0]["comments"][0]["timestamp"],
            }],
        }
        assert doc["participants"][0]["apiId"] == "anthropic/claude-3-haiku"

    def test_from_dict_restores_state(self):
        original = make_discussion()
        restored = Discussion.from_dict(original.to_dict())

        assert restored == original

    def test_from_dict_drops_unknown_votes(self):
        doc = make_discussion().to_dict()
        doc["results"]["claude-1"] = "Maybe"

        restored = Discussion.from_dict(doc)

        assert "claude-1" not in restored.results

    def test_without_id_omits_key(self):
        discussion = make_discussion()
        discussion.id = None
        assert "id" not in discussion.to_dict()


class TestDiscussionHelpers:

    def test_eliminate_removes_from_active(self):
        discussion = make_discussion()
        discussion.eliminate("claude-1")

        assert [p.id for p in discussion.active_participants()] == ["claude-0", "gpt4-0"]
        assert discussion.to_dict()["participants"][1]["eliminated"] is True

    def test_eliminate_unknown_raises(self):
        with pytest.raises(KeyError):
            make_discussion().eliminate("nobody-0")

    def test_display_name_falls_back_to_id(self):
        discussion = make_discussion()
        assert discussion.display_name("gpt4-0") == "Player 3"
        assert discussion.display_name("ghost-0") == "ghost-0"

    def test_has_comments(self):
        discussion = make_discussion()
        assert discussion.has_comments(1) is True
        assert discussion.has_comments(2) is False


class TestLeaderboardModels:

    def test_aggregate_round_trip(self):
        agg = ModelAggregate("claude-0", "claude", 33.3, Vote.B, 4)
        assert ModelAggregate.from_dict("claude-0", agg.to_dict()) == agg

    def test_aggregate_defaults(self):
        agg = ModelAggregate.from_dict("qwen-1", {})
        assert agg.balance == 50.0
        assert agg.discussion_count == 1
        assert agg.base_model_id == "qwen"
        assert agg.recent_vote == Vote.NEUTRAL

    def test_dimension_round_trip(self):
        dimension = Dimension(
            key="explore-exploit",
            concept_a="Explore",
            concept_b="Exploit",
            models={"claude-0": ModelAggregate("claude-0", "claude", 0.0, Vote.A)},
            discussion_count=1,
        )
        restored = Dimension.from_dict("explore-exploit", dimension.to_dict())
        assert restored == dimension
