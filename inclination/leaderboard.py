"""Leaderboard tracking of each model's leaning per concept-pair dimension."""

import logging
from typing import Any

from . import config
from .config import LEADERBOARD_COLLECTION, LEADERBOARD_DOC_ID, get_model_info
from .discussion import Dimension, Discussion, ModelAggregate, Vote, utc_now_iso
from .storage import JsonDocumentStore, get_default_store
from .votes import vote_balance

logger = logging.getLogger(__name__)

AVERAGING_RULES = ("weighted", "pairwise")


def dimension_key(concept_a: str, concept_b: str) -> str:
    """
    Key a dimension by its lower-cased labels, A first.

    The key is order-sensitive: (Explore, Exploit) and (Exploit, Explore)
    are separate dimensions. Labels are not escaped, so a label containing
    "-" can collide with another pair; existing stored keys rely on this
    exact scheme.
    """
    return f"{concept_a.lower()}-{concept_b.lower()}"


def _clamp_balance(balance: float) -> float:
    return min(100.0, max(0.0, balance))


def merge_vote(aggregate: ModelAggregate, vote: Vote, averaging: str = "weighted") -> None:
    """
    Fold one more vote into an existing aggregate.

    "weighted" keeps a count-weighted running average. "pairwise" averages
    the stored balance with the new sample regardless of count.
    """
    sample = vote_balance(vote)
    if averaging == "pairwise":
        new_balance = (aggregate.balance + sample) / 2
    elif averaging == "weighted":
        count = aggregate.discussion_count
        new_balance = (aggregate.balance * count + sample) / (count + 1)
    else:
        raise ValueError(f"Unknown averaging rule: {averaging}")

    aggregate.balance = _clamp_balance(new_balance)
    aggregate.recent_vote = vote
    aggregate.discussion_count += 1


def apply_votes(
    dimension: Dimension,
    votes: dict[str, Vote],
    averaging: str = "weighted",
) -> Dimension:
    """
    Fold one discussion's votes into a dimension.

    Participants new to the dimension are seeded with their single sample.
    The dimension's discussion count goes up by one per call.
    """
    for participant_id, vote in votes.items():
        aggregate = dimension.models.get(participant_id)
        if aggregate is None:
            dimension.models[participant_id] = ModelAggregate(
                model_id=participant_id,
                base_model_id=participant_id.rsplit("-", 1)[0],
                balance=vote_balance(vote),
                recent_vote=vote,
                discussion_count=1,
            )
        else:
            merge_vote(aggregate, vote, averaging)

    dimension.discussion_count += 1
    return dimension


def record_discussion(
    discussion: Discussion,
    store: JsonDocumentStore | None = None,
    averaging: str | None = None,
) -> Dimension:
    """
    Fold a completed discussion's votes into the persistent leaderboard.

    The read-modify-write runs inside a store transaction, so two
    discussions finishing at once cannot overwrite each other's votes.

    Args:
        discussion: Discussion with final results
        store: Document store (defaults to the configured store)
        averaging: Aggregate update rule (defaults to config)

    Returns:
        The updated dimension
    """
    if store is None:
        store = get_default_store()
    rule = averaging or config.LEADERBOARD_AVERAGING
    if rule not in AVERAGING_RULES:
        raise ValueError(f"Unknown averaging rule: {rule}")

    key = dimension_key(discussion.concept_a, discussion.concept_b)
    updated: dict[str, Dimension] = {}

    def fold(doc: dict[str, Any] | None) -> dict[str, Any]:
        dimensions = dict((doc or {}).get("dimensions") or {})
        existing = dimensions.get(key)
        if existing is None:
            dimension = Dimension(key=key, concept_a=discussion.concept_a, concept_b=discussion.concept_b)
        else:
            dimension = Dimension.from_dict(key, existing)

        # Latest discussion's labels and context win
        dimension.concept_a = discussion.concept_a
        dimension.concept_b = discussion.concept_b
        dimension.context = discussion.context
        dimension.option_a = discussion.option_a
        dimension.option_b = discussion.option_b

        apply_votes(dimension, discussion.results, rule)
        dimensions[key] = dimension.to_dict()
        updated["dimension"] = dimension
        return {"dimensions": dimensions, "lastUpdated": utc_now_iso()}

    store.transact(LEADERBOARD_COLLECTION, LEADERBOARD_DOC_ID, fold)

    dimension = updated["dimension"]
    logger.info(
        "Leaderboard updated. Dimension: %s, Votes: %d, DiscussionCount: %d, Averaging: %s",
        key, len(discussion.results), dimension.discussion_count, rule,
    )
    return dimension


def get_leaderboard(store: JsonDocumentStore | None = None) -> dict[str, Dimension]:
    """
    Load all dimensions, creating an empty leaderboard on first use.

    Returns:
        Dict mapping dimension key to Dimension
    """
    if store is None:
        store = get_default_store()

    def initialize(doc: dict[str, Any] | None) -> dict[str, Any]:
        if doc is not None:
            return {}
        return {"dimensions": {}, "lastUpdated": utc_now_iso()}

    doc = store.transact(LEADERBOARD_COLLECTION, LEADERBOARD_DOC_ID, initialize)
    return {
        key: Dimension.from_dict(key, data)
        for key, data in (doc.get("dimensions") or {}).items()
    }


def dimension_standings(dimension: Dimension) -> dict[str, list[ModelAggregate]]:
    """
    Split a dimension's models by leaning.

    Returns:
        Dict with "leaning_a" (balance below 50, strongest A first) and
        "leaning_b" (balance 50 or more, strongest B first)
    """
    aggregates = list(dimension.models.values())
    leaning_a = sorted((m for m in aggregates if m.balance < 50), key=lambda m: m.balance)
    leaning_b = sorted(
        (m for m in aggregates if m.balance >= 50), key=lambda m: m.balance, reverse=True
    )
    return {"leaning_a": leaning_a, "leaning_b": leaning_b}


def model_summaries(dimensions: dict[str, Dimension]) -> list[dict[str, Any]]:
    """
    Summarize each catalogue model across dimensions.

    Instances of the same model ("claude-0", "claude-1") are grouped and
    their balances averaged per dimension.

    Returns:
        List of dicts with base_model_id, name and per-dimension stats,
        sorted by base_model_id
    """
    grouped: dict[str, dict[str, list[ModelAggregate]]] = {}
    for key, dimension in dimensions.items():
        for aggregate in dimension.models.values():
            per_dimension = grouped.setdefault(aggregate.base_model_id, {})
            per_dimension.setdefault(key, []).append(aggregate)

    summaries = []
    for base_model_id in sorted(grouped):
        info = get_model_info(base_model_id)
        stats = {}
        for key, instances in grouped[base_model_id].items():
            dimension = dimensions[key]
            stats[key] = {
                "concept_a": dimension.concept_a,
                "concept_b": dimension.concept_b,
                "average_balance": sum(m.balance for m in instances) / len(instances),
                "instances": len(instances),
            }
        summaries.append({
            "base_model_id": base_model_id,
            "name": info["name"] if info else base_model_id,
            "dimensions": stats,
        })
    return summaries
