"""Discussion and leaderboard data models.

Persisted documents use the camelCase field names of the stored discussion
and leaderboard shapes; the dataclasses use snake_case.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Vote(str, Enum):
    """Outcome of a participant's final decision."""

    A = "A"
    B = "B"
    NEUTRAL = "Neutral"


class DiscussionStatus(str, Enum):
    """Lifecycle state of a discussion."""

    IN_PROGRESS = "in-progress"
    VOTING = "voting"
    COMPLETED = "completed"


@dataclass
class Participant:
    """One model instance taking part in a discussion.

    Two instances of the same catalogue model get distinct ids,
    e.g. "claude-0" and "claude-1".
    """

    id: str
    name: str
    api_id: str
    eliminated: bool = False

    @property
    def base_model_id(self) -> str:
        """Catalogue model id without the instance ordinal."""
        return self.id.rsplit("-", 1)[0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "apiId": self.api_id,
            "eliminated": self.eliminated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Participant":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            api_id=data.get("apiId", ""),
            eliminated=bool(data.get("eliminated", False)),
        )


@dataclass
class Comment:
    """A participant's contribution to one round."""

    participant_id: str
    player_name: str
    text: str = ""
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "modelId": self.participant_id,
            "playerName": self.player_name,
            "comment": self.text,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Comment":
        return cls(
            participant_id=data.get("modelId", ""),
            player_name=data.get("playerName", ""),
            text=data.get("comment", "") or "",
            timestamp=data.get("timestamp") or utc_now_iso(),
        )


@dataclass
class Round:
    """One pass of commentary, comments kept in participant order."""

    number: int
    comments: list[Comment] = field(default_factory=list)

    def comment_for(self, participant_id: str) -> Comment | None:
        for comment in self.comments:
            if comment.participant_id == participant_id:
                return comment
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.number,
            "comments": [c.to_dict() for c in self.comments],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Round":
        return cls(
            number=data.get("round", 1),
            comments=[Comment.from_dict(c) for c in data.get("comments", [])],
        )


def _parse_vote(value: Any) -> Vote | None:
    try:
        return Vote(value)
    except ValueError:
        return None


@dataclass
class Discussion:
    """A moderated discussion between model instances on one tension."""

    concept_a: str
    concept_b: str
    context: str
    option_a: str
    option_b: str
    total_rounds: int
    participants: list[Participant] = field(default_factory=list)
    player_map: dict[str, str] = field(default_factory=dict)
    id: str | None = None
    current_round: int = 1
    rounds: list[Round] = field(default_factory=list)
    status: DiscussionStatus = DiscussionStatus.IN_PROGRESS
    results: dict[str, Vote] = field(default_factory=dict)
    voting_reasons: dict[str, str] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_now_iso)

    def active_participants(self) -> list[Participant]:
        """Participants that still take part, in participant order."""
        return [p for p in self.participants if not p.eliminated]

    def display_name(self, participant_id: str) -> str:
        return self.player_map.get(participant_id, participant_id)

    def get_round(self, number: int) -> Round | None:
        for discussion_round in self.rounds:
            if discussion_round.number == number:
                return discussion_round
        return None

    def has_comments(self, number: int) -> bool:
        """True when the given round has been started."""
        discussion_round = self.get_round(number)
        return discussion_round is not None and bool(discussion_round.comments)

    def eliminate(self, participant_id: str) -> None:
        """
        Exclude a participant from later rounds and voting.

        Raises:
            KeyError: If no participant has this id
        """
        for participant in self.participants:
            if participant.id == participant_id:
                participant.eliminated = True
                return
        raise KeyError(participant_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted discussion document."""
        result = {
            "conceptA": self.concept_a,
            "conceptB": self.concept_b,
            "context": self.context,
            "optionA": self.option_a,
            "optionB": self.option_b,
            "rounds": self.total_rounds,
            "currentRound": self.current_round,
            "participants": [p.to_dict() for p in self.participants],
            "playerMap": dict(self.player_map),
            "discussions": [r.to_dict() for r in self.rounds],
            "status": self.status.value,
            "results": {pid: vote.value for pid, vote in self.results.items()},
            "votingReasons": dict(self.voting_reasons),
            "timestamp": self.timestamp,
        }
        if self.id:
            result["id"] = self.id
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Discussion":
        """Create from a persisted discussion document."""
        results = {}
        for pid, value in (data.get("results") or {}).items():
            vote = _parse_vote(value)
            if vote is not None:
                results[pid] = vote

        return cls(
            id=data.get("id"),
            concept_a=data.get("conceptA", ""),
            concept_b=data.get("conceptB", ""),
            context=data.get("context", ""),
            option_a=data.get("optionA", ""),
            option_b=data.get("optionB", ""),
            total_rounds=int(data.get("rounds", 1)),
            current_round=int(data.get("currentRound", 1)),
            participants=[Participant.from_dict(p) for p in data.get("participants", [])],
            player_map=dict(data.get("playerMap") or {}),
            rounds=[Round.from_dict(r) for r in data.get("discussions") or []],
            status=DiscussionStatus(data.get("status", DiscussionStatus.IN_PROGRESS.value)),
            results=results,
            voting_reasons=dict(data.get("votingReasons") or {}),
            timestamp=data.get("timestamp") or utc_now_iso(),
        )


@dataclass
class ModelAggregate:
    """Running leaning of one participant id within a dimension."""

    model_id: str
    base_model_id: str
    balance: float
    recent_vote: Vote
    discussion_count: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "modelId": self.model_id,
            "baseModelId": self.base_model_id,
            "balance": self.balance,
            "recentVote": self.recent_vote.value,
            "discussionCount": self.discussion_count,
        }

    @classmethod
    def from_dict(cls, model_id: str, data: dict[str, Any]) -> "ModelAggregate":
        # Older entries may lack a count or balance; treat them as one neutral sample
        recent = _parse_vote(data.get("recentVote", data.get("vote"))) or Vote.NEUTRAL
        balance = data.get("balance")
        return cls(
            model_id=data.get("modelId", model_id),
            base_model_id=data.get("baseModelId", model_id.rsplit("-", 1)[0]),
            balance=float(balance) if balance is not None else 50.0,
            recent_vote=recent,
            discussion_count=int(data.get("discussionCount") or 1),
        )


@dataclass
class Dimension:
    """A tracked concept pair with per-participant aggregates."""

    key: str
    concept_a: str
    concept_b: str
    context: str = ""
    option_a: str = ""
    option_b: str = ""
    models: dict[str, ModelAggregate] = field(default_factory=dict)
    discussion_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "conceptA": self.concept_a,
            "conceptB": self.concept_b,
            "context": self.context,
            "optionA": self.option_a,
            "optionB": self.option_b,
            "models": {mid: m.to_dict() for mid, m in self.models.items()},
            "discussionCount": self.discussion_count,
        }

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> "Dimension":
        return cls(
            key=key,
            concept_a=data.get("conceptA", ""),
            concept_b=data.get("conceptB", ""),
            context=data.get("context", ""),
            option_a=data.get("optionA", ""),
            option_b=data.get("optionB", ""),
            models={
                mid: ModelAggregate.from_dict(mid, m)
                for mid, m in (data.get("models") or {}).items()
            },
            discussion_count=int(data.get("discussionCount") or 0),
        )
