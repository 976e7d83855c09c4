"""
Visual simplification of vote lists.

simplify_segments decides which votes of a choice are drawn as their own bar
segment and which are merged into one hatched segment. aggregate_small_votes
does the same for time-ordered vote feeds: small votes between two large
votes collapse into one entry per choice.
"""
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from vote_processor.config.settings import ACCUMULATE_VOTING_POWER_THRESHOLD, SEGMENT_POWER_SHARE
from vote_processor.data_models import AggregatedSegment, ChoiceSegments, VoteResult, VoteSegment

from .colors import DEFAULT_CHOICE_COLOR

AGGREGATED_VOTER_ADDRESS = "aggregated"


def calculate_voting_power_threshold(
    votes: List[VoteResult],
    total_voting_power: float,
    power_share: float = SEGMENT_POWER_SHARE,
) -> float:
    """Power of the vote at which the largest votes first cover `power_share` of the total."""
    cumulative_power = 0.0
    for vote in sorted(votes, key=lambda v: v.voting_power, reverse=True):
        cumulative_power += vote.voting_power
        if cumulative_power >= total_voting_power * power_share:
            return vote.voting_power
    return 0.0


def calculate_top_votes_count(total_votes: int, voting_power_threshold: float, votes: List[VoteResult]) -> int:
    if total_votes <= 5:
        return total_votes

    significant_votes_count = sum(1 for vote in votes if vote.voting_power >= voting_power_threshold)
    if total_votes <= 100:
        return min(10, significant_votes_count)
    if total_votes <= 1000:
        return min(8, significant_votes_count)
    if total_votes <= 10000:
        return min(6, significant_votes_count)
    return min(4, significant_votes_count)


def _segments_for_choice(
    choice: int,
    choice_text: str,
    color: str,
    votes: List[VoteResult],
    min_visible_power: float,
) -> ChoiceSegments:
    sorted_votes = sorted(votes, key=lambda v: v.voting_power, reverse=True)
    choice_total = sum(vote.voting_power for vote in sorted_votes)
    threshold = calculate_voting_power_threshold(sorted_votes, choice_total)
    top_count = calculate_top_votes_count(len(sorted_votes), threshold, sorted_votes)

    top_votes = sorted_votes[:top_count]
    # Segments narrower than the visible minimum go to the aggregate too
    while top_votes and top_votes[-1].voting_power < min_visible_power:
        top_votes.pop()
    rest = sorted_votes[len(top_votes):]

    segments = [
        VoteSegment(voter_address=vote.voter_address, voting_power=vote.voting_power, color=color)
        for vote in top_votes
    ]
    aggregated = AggregatedSegment(
        voting_power=sum(vote.voting_power for vote in rest),
        count=len(rest),
        color=color,
    )
    return ChoiceSegments(
        choice=choice,
        choice_text=choice_text,
        total_voting_power=sum(s.voting_power for s in segments) + aggregated.voting_power,
        voting_power_threshold=threshold,
        segments=segments,
        aggregated=aggregated,
    )


def simplify_segments(
    votes: List[VoteResult],
    choices: Optional[List[str]] = None,
    min_visible_percent: float = 0.0,
    total_voting_power: Optional[float] = None,
) -> List[ChoiceSegments]:
    """Group votes by choice and split each group into drawn and merged segments.

    Choices with five votes or fewer draw every vote. Larger choices draw the
    votes needed to cover most of their power, capped by a count that shrinks
    as the number of votes grows; the remainder is one aggregated segment.
    With `choices`, every choice gets an entry, including ones without votes.
    `min_visible_percent` is measured against `total_voting_power`, or the sum
    of all votes when not given.
    """
    by_choice: Dict[int, List[VoteResult]] = defaultdict(list)
    for vote in votes:
        by_choice[vote.choice].append(vote)

    if total_voting_power is None:
        total_voting_power = sum(vote.voting_power for vote in votes)
    min_visible_power = total_voting_power * min_visible_percent / 100 if min_visible_percent > 0 else 0.0

    indices = sorted(set(by_choice) | set(range(len(choices or []))))
    result = []
    for index in indices:
        choice_votes = by_choice.get(index, [])
        if choices is not None and 0 <= index < len(choices):
            choice_text = choices[index]
        else:
            choice_text = choice_votes[0].choice_text if choice_votes else ""
        color = choice_votes[0].color if choice_votes else DEFAULT_CHOICE_COLOR
        result.append(_segments_for_choice(index, choice_text, color, choice_votes, min_visible_power))
    return result


def _aggregated_entries(window: Dict[int, List[VoteResult]], timestamp: datetime, final: bool) -> List[VoteResult]:
    entries = []
    for choice, small_votes in window.items():
        power = sum(vote.voting_power for vote in small_votes)
        if power <= 0:
            continue
        sample = small_votes[0]
        suffix = " (final)" if final else ""
        entries.append(VoteResult(
            choice=choice,
            choice_text=sample.choice_text,
            voting_power=power,
            voter_address=AGGREGATED_VOTER_ADDRESS,
            timestamp=timestamp,
            color=sample.color,
            reason=f"Aggregated {len(small_votes)} votes{suffix}",
            aggregate=True,
        ))
    return entries


def aggregate_small_votes(
    votes: List[VoteResult],
    threshold: float = ACCUMULATE_VOTING_POWER_THRESHOLD,
) -> List[VoteResult]:
    """Collapse runs of votes below `threshold` into one entry per choice.

    Votes are walked oldest first. A run of small votes ends at the next vote
    of at least `threshold` power; its aggregate entries carry that vote's
    timestamp and come right before it. A trailing run is stamped with the
    last vote's time.
    """
    if not votes:
        return []

    sorted_votes = sorted(votes, key=lambda v: v.timestamp)
    result: List[VoteResult] = []
    window: Dict[int, List[VoteResult]] = defaultdict(list)

    for vote in sorted_votes:
        if vote.voting_power >= threshold:
            if window:
                result.extend(_aggregated_entries(window, vote.timestamp, final=False))
                window = defaultdict(list)
            result.append(vote.model_copy(update={"aggregate": False}))
        else:
            window[vote.choice].append(vote)

    if window:
        result.extend(_aggregated_entries(window, sorted_votes[-1].timestamp, final=True))
    return result


def apply_relative_voting_power(votes: List[VoteResult]) -> List[VoteResult]:
    """Set relative_voting_power against the largest individual vote.

    Aggregated entries are capped at 1 so a merged run never outgrows the
    biggest real vote.
    """
    individual = [vote.voting_power for vote in votes if not vote.aggregate]
    max_power = max(individual, default=0.0)

    updated = []
    for vote in votes:
        relative = vote.voting_power / max_power if max_power > 0 else 0.0
        if vote.aggregate:
            relative = min(relative, 1.0)
        updated.append(vote.model_copy(update={"relative_voting_power": relative}))
    return updated
