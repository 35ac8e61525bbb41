"""Prompt templates for discussion rounds and the final vote.

All builders are pure: the same discussion state and round number always
produce the same text.
"""

from .config import COMMENT_EXCERPT_LENGTH
from .discussion import Comment, Discussion, Participant, Round

DISCUSSION_HEADER = """You are {player_name}, an AI assistant participating in a management discussion about "{concept_a} vs {concept_b}".

Context: {context}

The two approaches being discussed are:
Option A: {option_a} ({concept_a})
Option B: {option_b} ({concept_b})

"""

VOTING_HEADER = """You are {player_name}, an AI assistant who has participated in a discussion about "{concept_a} vs {concept_b}".

Context: {context}

The two approaches that were discussed are:
Option A: {option_a} ({concept_a})
Option B: {option_b} ({concept_b})

"""

FIRST_ROUND_INSTRUCTIONS = (
    "This is the first round of discussion. Please share your thoughts on these "
    "two approaches. Consider the strengths and weaknesses of each option. Don't "
    "explicitly state which option you prefer yet, as there will be a final "
    "voting round later."
)

FOLLOW_UP_INSTRUCTIONS = (
    "This is round {round_number} of the discussion. Based on the previous "
    "comments, please provide your updated thoughts. You can respond to points "
    "raised by others, but don't explicitly state your final choice yet."
)

# Used when the previous round is missing from the history
NO_HISTORY_INSTRUCTIONS = (
    "This is round {round_number} of the discussion. Please share your updated "
    "thoughts on the two approaches."
)

VOTING_INSTRUCTIONS = """Based on the full discussion, you now need to make a clear decision between Option A and Option B. Start your response with one of these exact phrases:
- "I choose Option A" if you prefer {option_a}
- "I choose Option B" if you prefer {option_b}
- "I remain neutral" if you truly cannot decide between the options

After stating your choice, explain your reasoning in 2-3 sentences."""


def format_comment_excerpt(comment: Comment) -> str:
    """Attribute a comment by display name, cut to the excerpt length."""
    excerpt = comment.text[:COMMENT_EXCERPT_LENGTH]
    return f'{comment.player_name}: "{excerpt}..."\n\n'


def format_round_comments(discussion_round: Round) -> str:
    return "".join(format_comment_excerpt(c) for c in discussion_round.comments)


def _header(template: str, participant: Participant, discussion: Discussion) -> str:
    return template.format(
        player_name=discussion.display_name(participant.id),
        concept_a=discussion.concept_a,
        concept_b=discussion.concept_b,
        context=discussion.context,
        option_a=discussion.option_a,
        option_b=discussion.option_b,
    )


def build_discussion_prompt(
    participant: Participant,
    round_number: int,
    discussion: Discussion,
) -> str:
    """
    Build the prompt for one participant in one discussion round.

    Round 1 asks for an open first take. Later rounds quote every comment of
    the immediately preceding round only.

    Args:
        participant: The participant being prompted
        round_number: Round being run (1-based)
        discussion: Discussion state holding the earlier rounds

    Returns:
        Prompt text
    """
    prompt = _header(DISCUSSION_HEADER, participant, discussion)

    if round_number == 1:
        return prompt + FIRST_ROUND_INSTRUCTIONS

    previous_round = discussion.get_round(round_number - 1)
    if previous_round is None or not previous_round.comments:
        return prompt + NO_HISTORY_INSTRUCTIONS.format(round_number=round_number)

    prompt += "Previous round comments:\n\n"
    prompt += format_round_comments(previous_round)
    prompt += FOLLOW_UP_INSTRUCTIONS.format(round_number=round_number)
    return prompt


def build_voting_prompt(participant: Participant, discussion: Discussion) -> str:
    """
    Build the final voting prompt, quoting the entire discussion history.

    The prompt asks the participant to open with one of three literal
    phrases so the vote parser can match them directly.
    """
    prompt = _header(VOTING_HEADER, participant, discussion)

    prompt += "Discussion history:\n\n"
    for discussion_round in sorted(discussion.rounds, key=lambda r: r.number):
        prompt += f"Round {discussion_round.number}:\n"
        prompt += format_round_comments(discussion_round)
        prompt += "\n"

    prompt += VOTING_INSTRUCTIONS.format(
        option_a=discussion.option_a,
        option_b=discussion.option_b,
    )
    return prompt
