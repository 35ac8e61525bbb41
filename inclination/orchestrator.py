"""Discussion and voting orchestration.

Rounds and the voting pass stream one participant at a time. Each provider
call runs as its own task that pushes cumulative text onto a queue; the
orchestrator drains the queue in order, merges every chunk into the
discussion, and yields event dicts for the caller to render or log.
"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

from .config import DISCUSSION_FAILURE_TEXT, DISCUSSIONS_COLLECTION, VOTING_FAILURE_TEXT
from .discussion import Comment, Discussion, DiscussionStatus, Participant, Round, Vote
from .leaderboard import record_discussion
from .logging_config import set_discussion_id
from .openrouter import stream_completion
from .prompts import build_discussion_prompt, build_voting_prompt
from .runtime import configure_runtime
from .storage import JsonDocumentStore, StorageError, get_default_store
from .telemetry import get_tracer, is_telemetry_enabled
from .votes import parse_vote

logger = logging.getLogger(__name__)

# (model api id, prompt) -> cumulative text per chunk
CompletionStream = Callable[[str, str], AsyncIterator[str]]


class DiscussionNotFoundError(LookupError):
    """No discussion is stored under the requested id."""

    def __init__(self, discussion_id: str) -> None:
        super().__init__(f"Discussion {discussion_id} not found")
        self.discussion_id = discussion_id


@dataclass
class StreamStatus:
    """Live state of one participant's provider call."""

    participant_id: str
    content: str = ""
    is_streaming: bool = True
    vote: Vote | None = None
    failed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "participant_id": self.participant_id,
            "content": self.content,
            "is_streaming": self.is_streaming,
            "vote": self.vote.value if self.vote else None,
            "failed": self.failed,
        }


@dataclass
class VotingOutcome:
    """Collected results of a voting pass, filled in as participants finish."""

    statuses: dict[str, StreamStatus] = field(default_factory=dict)

    @property
    def votes(self) -> dict[str, Vote]:
        """Parsed votes; participants whose call failed have none."""
        return {
            pid: status.vote
            for pid, status in self.statuses.items()
            if status.vote is not None and not status.failed
        }

    @property
    def rationales(self) -> dict[str, str]:
        return {pid: status.content for pid, status in self.statuses.items()}

    @property
    def is_complete(self) -> bool:
        return all(not status.is_streaming for status in self.statuses.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "votes": {pid: vote.value for pid, vote in self.votes.items()},
            "rationales": self.rationales,
        }


async def _participant_channel(
    provider: CompletionStream,
    api_id: str,
    prompt: str,
) -> AsyncGenerator[tuple[str, Any], None]:
    """
    Run one provider call as a task and yield its items in order.

    Yields ("chunk", text) for every cumulative update, then exactly one of
    ("done", final_text) or ("error", exception). The task is cancelled if
    the consumer stops early.
    """
    queue: asyncio.Queue = asyncio.Queue()

    async def run() -> None:
        final_text = ""
        try:
            async for text in provider(api_id, prompt):
                final_text = text
                queue.put_nowait(("chunk", text))
            queue.put_nowait(("done", final_text))
        except Exception as e:
            queue.put_nowait(("error", e))
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(run())
    try:
        while True:
            item = await queue.get()
            if item is None:
                break
            yield item
    finally:
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)


def _require_stored(discussion: Discussion) -> str:
    if not discussion.id:
        raise ValueError("Discussion must be stored before it can be orchestrated")
    return discussion.id


def _place_round(discussion: Discussion, discussion_round: Round) -> None:
    """Insert or replace a round, keeping rounds ordered by number."""
    rounds = [r for r in discussion.rounds if r.number != discussion_round.number]
    rounds.append(discussion_round)
    rounds.sort(key=lambda r: r.number)
    discussion.rounds = rounds


def load_discussion(
    discussion_id: str,
    store: JsonDocumentStore | None = None,
) -> Discussion:
    """
    Load a stored discussion.

    Raises:
        DiscussionNotFoundError: If the id is unknown
        StorageError: If the document cannot be read
    """
    if store is None:
        store = get_default_store()

    doc = store.get(DISCUSSIONS_COLLECTION, discussion_id)
    if doc is None:
        raise DiscussionNotFoundError(discussion_id)
    return Discussion.from_dict(doc)


def list_discussions(store: JsonDocumentStore | None = None) -> list[Discussion]:
    """Load every stored discussion."""
    if store is None:
        store = get_default_store()
    return [Discussion.from_dict(doc) for doc in store.query_all(DISCUSSIONS_COLLECTION)]


def get_recent_discussions(
    store: JsonDocumentStore | None = None,
    limit: int = 5,
) -> list[Discussion]:
    """Load the most recently created discussions, newest first."""
    if store is None:
        store = get_default_store()
    docs = store.query_ordered(DISCUSSIONS_COLLECTION, "timestamp", "desc", limit)
    return [Discussion.from_dict(doc) for doc in docs]


async def run_round(
    discussion: Discussion,
    round_number: int | None = None,
    *,
    store: JsonDocumentStore | None = None,
    provider: CompletionStream | None = None,
) -> AsyncGenerator[dict[str, Any], None]:
    """
    Run one discussion round over every active participant.

    All comments are created empty before the first provider call. Each
    streamed chunk replaces the participant's comment text. A provider
    failure replaces the text with a failure notice and the round carries
    on. Once every participant has finished, the rounds are persisted and a
    ``round_complete`` event is yielded.

    Args:
        discussion: Stored discussion, mutated in place
        round_number: Round to run (defaults to the discussion's current round)
        store: Document store (injectable for testing)
        provider: Completion stream (injectable for testing)

    Yields:
        Event dicts: round_start, comment_start, comment_chunk,
        comment_complete, comment_error, round_complete

    Raises:
        ValueError: If the discussion is completed or the round is out of range
        StorageError: If the finished round cannot be persisted
    """
    if store is None:
        store = get_default_store()
    if provider is None:
        provider = stream_completion

    discussion_id = _require_stored(discussion)
    number = round_number if round_number is not None else discussion.current_round
    if discussion.status == DiscussionStatus.COMPLETED:
        raise ValueError(f"Discussion {discussion_id} is already completed")
    if not 1 <= number <= discussion.total_rounds:
        raise ValueError(
            f"Round {number} is outside 1..{discussion.total_rounds} for discussion {discussion_id}"
        )

    participants = discussion.active_participants()
    if not participants:
        raise ValueError(f"Discussion {discussion_id} has no active participants")
    discussion_round = Round(
        number=number,
        comments=[Comment(p.id, discussion.display_name(p.id)) for p in participants],
    )
    _place_round(discussion, discussion_round)
    statuses = {p.id: StreamStatus(p.id) for p in participants}

    tracer = get_tracer()
    span = tracer.start_span(
        "discussion.run_round",
        attributes={
            "discussion.id": discussion_id,
            "discussion.round": number,
            "discussion.participant_count": len(participants),
        },
    )
    round_start = time.monotonic()
    logger.info(
        "Beginning discussion round. DiscussionId: %s, Round: %d/%d, Participants: %d",
        discussion_id, number, discussion.total_rounds, len(participants),
    )

    try:
        yield {
            "type": "round_start",
            "data": {"round": number, "participants": [p.id for p in participants]},
        }

        failures = 0
        for participant in participants:
            comment = discussion_round.comment_for(participant.id)
            status = statuses[participant.id]
            prompt = build_discussion_prompt(participant, number, discussion)

            yield {"type": "comment_start", "data": {"round": number, "participant_id": participant.id}}

            channel = _participant_channel(provider, participant.api_id, prompt)
            async with aclosing(channel):
                async for kind, value in channel:
                    if kind == "chunk":
                        comment.text = value
                        status.content = value
                        yield {"type": "comment_chunk", "data": status.to_dict()}
                    elif kind == "done":
                        status.is_streaming = False
                        yield {"type": "comment_complete", "data": status.to_dict()}
                    else:
                        failures += 1
                        logger.warning(
                            "Participant failed to comment. DiscussionId: %s, Round: %d, Participant: %s, Model: %s, Error: %s",
                            discussion_id, number, participant.id, participant.api_id, value,
                        )
                        comment.text = DISCUSSION_FAILURE_TEXT
                        status.content = DISCUSSION_FAILURE_TEXT
                        status.is_streaming = False
                        status.failed = True
                        yield {"type": "comment_error", "data": {**status.to_dict(), "error": str(value)}}

        store.update(
            DISCUSSIONS_COLLECTION,
            discussion_id,
            {"discussions": [r.to_dict() for r in discussion.rounds]},
        )

        if is_telemetry_enabled():
            span.set_attribute("discussion.failure_count", failures)
        logger.info(
            "Discussion round complete. DiscussionId: %s, Round: %d, Failures: %d, Duration: %.2fs",
            discussion_id, number, failures, time.monotonic() - round_start,
        )
        yield {
            "type": "round_complete",
            "data": {
                "round": number,
                "comments": [c.to_dict() for c in discussion_round.comments],
                "is_final_round": number >= discussion.total_rounds,
            },
        }
    finally:
        span.end()


def advance_round(
    discussion: Discussion,
    store: JsonDocumentStore | None = None,
) -> int:
    """
    Move the discussion to its next round and persist the round number.

    Raises:
        ValueError: If the discussion is already on its final round
    """
    if store is None:
        store = get_default_store()

    discussion_id = _require_stored(discussion)
    if discussion.current_round >= discussion.total_rounds:
        raise ValueError(
            f"Discussion {discussion_id} is already on its final round ({discussion.total_rounds})"
        )

    next_round = discussion.current_round + 1
    store.update(DISCUSSIONS_COLLECTION, discussion_id, {"currentRound": next_round})
    discussion.current_round = next_round
    return next_round


async def run_voting(
    discussion: Discussion,
    outcome: VotingOutcome | None = None,
    *,
    store: JsonDocumentStore | None = None,
    provider: CompletionStream | None = None,
) -> AsyncGenerator[dict[str, Any], None]:
    """
    Ask every active participant for a final vote, one at a time.

    The accumulated text is re-parsed into a vote on every chunk so a live
    vote can be shown. A provider failure records a failure notice and no
    vote for that participant.

    Args:
        discussion: Stored discussion with its rounds
        outcome: Populated in place with per-participant statuses
        store: Document store (injectable for testing)
        provider: Completion stream (injectable for testing)

    Yields:
        Event dicts: voting_start, vote_start, vote_chunk, vote_complete,
        vote_error, voting_complete
    """
    if store is None:
        store = get_default_store()
    if provider is None:
        provider = stream_completion
    if outcome is None:
        outcome = VotingOutcome()

    discussion_id = _require_stored(discussion)
    if discussion.status == DiscussionStatus.COMPLETED:
        raise ValueError(f"Discussion {discussion_id} is already completed")

    store.update(DISCUSSIONS_COLLECTION, discussion_id, {"status": DiscussionStatus.VOTING.value})
    discussion.status = DiscussionStatus.VOTING

    participants: list[Participant] = discussion.active_participants()
    outcome.statuses = {p.id: StreamStatus(p.id) for p in participants}

    tracer = get_tracer()
    span = tracer.start_span(
        "discussion.run_voting",
        attributes={
            "discussion.id": discussion_id,
            "discussion.participant_count": len(participants),
            "discussion.round_count": len(discussion.rounds),
        },
    )
    voting_start = time.monotonic()
    logger.info(
        "Beginning voting. DiscussionId: %s, Participants: %d",
        discussion_id, len(participants),
    )

    try:
        yield {"type": "voting_start", "data": {"participants": [p.id for p in participants]}}

        for participant in participants:
            status = outcome.statuses[participant.id]
            prompt = build_voting_prompt(participant, discussion)

            yield {"type": "vote_start", "data": {"participant_id": participant.id}}

            channel = _participant_channel(provider, participant.api_id, prompt)
            async with aclosing(channel):
                async for kind, value in channel:
                    if kind == "chunk":
                        status.content = value
                        status.vote = parse_vote(value, discussion.concept_a, discussion.concept_b)
                        yield {"type": "vote_chunk", "data": status.to_dict()}
                    elif kind == "done":
                        # A stream without content casts no vote
                        status.is_streaming = False
                        yield {"type": "vote_complete", "data": status.to_dict()}
                    else:
                        logger.warning(
                            "Participant failed to vote. DiscussionId: %s, Participant: %s, Model: %s, Error: %s",
                            discussion_id, participant.id, participant.api_id, value,
                        )
                        status.content = VOTING_FAILURE_TEXT
                        status.vote = None
                        status.is_streaming = False
                        status.failed = True
                        yield {"type": "vote_error", "data": {**status.to_dict(), "error": str(value)}}

        if is_telemetry_enabled():
            span.set_attribute("discussion.vote_count", len(outcome.votes))
        logger.info(
            "Voting complete. DiscussionId: %s, Votes: %d/%d, Duration: %.2fs",
            discussion_id, len(outcome.votes), len(participants), time.monotonic() - voting_start,
        )
        yield {"type": "voting_complete", "data": outcome.to_dict()}
    finally:
        span.end()


def finalize_discussion(
    discussion: Discussion,
    outcome: VotingOutcome,
    store: JsonDocumentStore | None = None,
) -> Discussion:
    """
    Store the final votes, mark the discussion completed, update the leaderboard.

    Raises:
        ValueError: If the discussion was already finalized
        StorageError: If either write fails
    """
    if store is None:
        store = get_default_store()

    discussion_id = _require_stored(discussion)
    if discussion.status == DiscussionStatus.COMPLETED:
        raise ValueError(f"Discussion {discussion_id} is already completed")

    results = outcome.votes
    reasons = outcome.rationales
    store.update(
        DISCUSSIONS_COLLECTION,
        discussion_id,
        {
            "status": DiscussionStatus.COMPLETED.value,
            "results": {pid: vote.value for pid, vote in results.items()},
            "votingReasons": reasons,
        },
    )
    discussion.results = results
    discussion.voting_reasons = reasons
    discussion.status = DiscussionStatus.COMPLETED

    record_discussion(discussion, store)
    logger.info(
        "Discussion finalized. DiscussionId: %s, Results: %s",
        discussion_id, {pid: vote.value for pid, vote in results.items()},
    )
    return discussion


def next_action(discussion: Discussion) -> str:
    """
    Decide what a resumed discussion needs next.

    Returns:
        "results" when completed, "vote" when voting is due, "advance" when
        the current round is done and more remain, otherwise "start_round"
    """
    if discussion.status == DiscussionStatus.COMPLETED:
        return "results"
    if discussion.status == DiscussionStatus.VOTING:
        return "vote"
    if discussion.has_comments(discussion.current_round):
        if discussion.current_round < discussion.total_rounds:
            return "advance"
        return "vote"
    return "start_round"


async def run_discussion(
    discussion_id: str,
    *,
    store: JsonDocumentStore | None = None,
    provider: CompletionStream | None = None,
) -> AsyncGenerator[dict[str, Any], None]:
    """Run a stored discussion to completion, resuming wherever it stopped.

    Configures logging and tracing on first use, then runs the remaining
    rounds, the voting pass and finalization, yielding
    every event along the way and a final ``complete`` event. Failures are
    logged and reported as a single ``error`` event whose ``error_type`` is
    "not_found", "storage" or "unexpected".

    Args:
        discussion_id: Id of a stored discussion
        store: Document store (injectable for testing)
        provider: Completion stream (injectable for testing)
    """
    configure_runtime()
    if store is None:
        store = get_default_store()

    set_discussion_id(discussion_id)
    pipeline_start = time.monotonic()
    logger.info("Beginning discussion pipeline. DiscussionId: %s", discussion_id)

    try:
        discussion = load_discussion(discussion_id, store)
        action = next_action(discussion)

        while action in ("start_round", "advance"):
            if action == "advance":
                next_round = advance_round(discussion, store)
                yield {"type": "round_advance", "data": {"round": next_round}}
            round_events = run_round(discussion, discussion.current_round, store=store, provider=provider)
            async with aclosing(round_events):
                async for event in round_events:
                    yield event
            action = next_action(discussion)

        if action == "vote":
            outcome = VotingOutcome()
            voting_events = run_voting(discussion, outcome, store=store, provider=provider)
            async with aclosing(voting_events):
                async for event in voting_events:
                    yield event
            finalize_discussion(discussion, outcome, store)

        logger.info(
            "Successfully completed discussion pipeline. DiscussionId: %s, Duration: %.2fs",
            discussion_id, time.monotonic() - pipeline_start,
        )
        yield {
            "type": "complete",
            "data": {
                "status": discussion.status.value,
                "results": {pid: vote.value for pid, vote in discussion.results.items()},
            },
        }

    except DiscussionNotFoundError as e:
        logger.warning("Discussion pipeline aborted, discussion not found. DiscussionId: %s", discussion_id)
        yield {"type": "error", "error_type": "not_found", "message": str(e)}
    except StorageError as e:
        logger.exception(
            "Failed discussion pipeline, storage error. DiscussionId: %s, Duration: %.2fs, Error: %s",
            discussion_id, time.monotonic() - pipeline_start, e,
        )
        yield {"type": "error", "error_type": "storage", "message": str(e)}
    except Exception as e:
        logger.exception(
            "Failed discussion pipeline. DiscussionId: %s, Duration: %.2fs, Error: %s",
            discussion_id, time.monotonic() - pipeline_start, e,
        )
        yield {"type": "error", "error_type": "unexpected", "message": str(e)}
    finally:
        set_discussion_id(None)
