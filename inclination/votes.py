"""Vote parsing: classify free-text answers into A, B or Neutral."""

from .discussion import Vote

VOTE_BALANCE = {
    Vote.A: 0.0,
    Vote.B: 100.0,
    Vote.NEUTRAL: 50.0,
}


def parse_vote(text: str, concept_a: str, concept_b: str) -> Vote:
    """
    Classify a (possibly partial) voting answer.

    Checks, in order and case-insensitively: the exact opening phrases,
    then a lone mention of "option a"/"option b", then a lone mention of
    one concept label. Anything else, including empty text, is Neutral.
    Cheap enough to re-run on every streamed chunk.

    Args:
        text: Raw model output so far
        concept_a: Label of concept A
        concept_b: Label of concept B

    Returns:
        The parsed Vote
    """
    lowered = text.lower()

    if "i choose option a" in lowered:
        return Vote.A
    if "i choose option b" in lowered:
        return Vote.B
    if "i remain neutral" in lowered:
        return Vote.NEUTRAL

    mentions_a = "option a" in lowered
    mentions_b = "option b" in lowered
    if mentions_a and not mentions_b:
        return Vote.A
    if mentions_b and not mentions_a:
        return Vote.B

    label_a = concept_a.lower()
    label_b = concept_b.lower()
    mentions_a = bool(label_a) and label_a in lowered
    mentions_b = bool(label_b) and label_b in lowered
    if mentions_a and not mentions_b:
        return Vote.A
    if mentions_b and not mentions_a:
        return Vote.B

    return Vote.NEUTRAL


def vote_balance(vote: Vote) -> float:
    """Balance sample for a vote: A is 0, B is 100, Neutral is 50."""
    return VOTE_BALANCE[vote]
