"""Discussion setup: validate input, build participants, create the document."""

import logging

from pydantic import BaseModel, Field, field_validator

from .config import (
    DEFAULT_ROUNDS,
    DISCUSSIONS_COLLECTION,
    MAX_INSTANCES_PER_MODEL,
    MAX_ROUNDS,
    MIN_PARTICIPANTS,
    MIN_ROUNDS,
    get_model_info,
    get_tension,
)
from .discussion import Discussion, DiscussionStatus, Participant
from .storage import JsonDocumentStore, get_default_store

logger = logging.getLogger(__name__)


class SetupError(ValueError):
    """Setup input that passes field validation but cannot form a discussion."""


class ModelSelection(BaseModel):
    """How many instances of a catalogue model should take part."""
    model_id: str
    count: int = Field(default=1, ge=0, le=MAX_INSTANCES_PER_MODEL)


class DiscussionSetup(BaseModel):
    """Everything needed to start a discussion."""
    concept_a: str = Field(min_length=1)
    concept_b: str = Field(min_length=1)
    context: str = Field(min_length=1)
    option_a: str = Field(min_length=1)
    option_b: str = Field(min_length=1)
    rounds: int = Field(
        default=DEFAULT_ROUNDS,
        ge=MIN_ROUNDS,
        le=MAX_ROUNDS,
        description=f"Number of discussion rounds ({MIN_ROUNDS}-{MAX_ROUNDS})",
    )
    selections: list[ModelSelection] = Field(default_factory=list)

    @field_validator("concept_a", "concept_b", "context", "option_a", "option_b")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


def build_participants(selections: list[ModelSelection]) -> list[Participant]:
    """
    Expand model selections into participant instances.

    Instance ids are "<model_id>-<ordinal>" with ordinals from 0, in
    selection order.

    Raises:
        SetupError: On unknown models or fewer than the minimum instances
    """
    participants = []
    for selection in selections:
        info = get_model_info(selection.model_id)
        if info is None:
            raise SetupError(f"Unknown model: {selection.model_id}")
        for ordinal in range(selection.count):
            participants.append(Participant(
                id=f"{info['id']}-{ordinal}",
                name=info["name"],
                api_id=info["api_id"],
            ))

    if len(participants) < MIN_PARTICIPANTS:
        raise SetupError(
            f"At least {MIN_PARTICIPANTS} model instances are required, got {len(participants)}"
        )
    return participants


def build_player_map(participants: list[Participant]) -> dict[str, str]:
    """Assign anonymous display names "Player 1".."Player N" in order."""
    return {p.id: f"Player {index}" for index, p in enumerate(participants, start=1)}


def setup_from_tension(
    tension: dict[str, str] | tuple[str, str],
    selections: list[ModelSelection],
    rounds: int = DEFAULT_ROUNDS,
) -> DiscussionSetup:
    """
    Build setup input from one of the predefined tensions.

    ``tension`` is either a tension dict or a (concept_a, concept_b) pair
    looked up case-insensitively.

    Raises:
        SetupError: If the pair names no predefined tension
    """
    if isinstance(tension, tuple):
        concept_a, concept_b = tension
        found = get_tension(concept_a, concept_b)
        if found is None:
            raise SetupError(f"No predefined tension for {concept_a} vs {concept_b}")
        tension = found

    return DiscussionSetup(
        concept_a=tension["concept_a"],
        concept_b=tension["concept_b"],
        context=tension["context"],
        option_a=tension["option_a"],
        option_b=tension["option_b"],
        rounds=rounds,
        selections=selections,
    )


def create_discussion(
    setup: DiscussionSetup,
    store: JsonDocumentStore | None = None,
) -> Discussion:
    """
    Create and persist a new discussion at round 1.

    Returns:
        The stored Discussion, with its generated id
    """
    if store is None:
        store = get_default_store()

    participants = build_participants(setup.selections)
    discussion = Discussion(
        concept_a=setup.concept_a,
        concept_b=setup.concept_b,
        context=setup.context,
        option_a=setup.option_a,
        option_b=setup.option_b,
        total_rounds=setup.rounds,
        participants=participants,
        player_map=build_player_map(participants),
        current_round=1,
        status=DiscussionStatus.IN_PROGRESS,
    )

    discussion.id = store.insert(DISCUSSIONS_COLLECTION, discussion.to_dict())
    logger.info(
        "Created discussion. DiscussionId: %s, Dimension: %s vs %s, Participants: %d, Rounds: %d",
        discussion.id, discussion.concept_a, discussion.concept_b,
        len(participants), discussion.total_rounds,
    )
    return discussion
