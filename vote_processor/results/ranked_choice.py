"""
Ranked-choice results using Instant-Runoff Voting (IRV).

Each round counts every ballot for its highest-ranked choice that is still in
the race. A choice holding strictly more than half of the counted power wins;
otherwise the weakest choice is eliminated and its ballots move to their next
preference. Ballots whose preferences are all eliminated are exhausted and
stop counting toward the round total.

Elimination ties are broken deterministically: among the choices tied for
fewest votes, the one with the highest index is eliminated, so the lowest
surviving index wins the tie.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from vote_processor.data_models import DataError, ProcessedResults, Proposal, RawVote, VoteResult, VoteType
from vote_processor.utils.logger import logger

from .aggregators import build_results, init_hourly_for_votes, make_vote_result, prepare_votes
from .bucketing import hour_key
from .colors import get_choice_colors

Ballot = Tuple[Sequence[int], float]


@dataclass
class IRVRound:
    """Counts for the choices still active in one round."""
    counts: Dict[int, float]
    eliminated: Optional[int] = None

    @property
    def total(self) -> float:
        return sum(self.counts.values())


@dataclass
class IRVResult:
    winner: Optional[int]
    final_counts: Dict[int, float]  # every choice; eliminated choices at 0
    rounds: List[IRVRound] = field(default_factory=list)
    eliminated: List[int] = field(default_factory=list)

    @property
    def total(self) -> float:
        return sum(self.final_counts.values())

    @property
    def winning_threshold(self) -> float:
        return self.total / 2


def _elimination_candidate(counts: Dict[int, float]) -> int:
    min_votes = min(counts.values())
    return max(choice for choice, votes in counts.items() if votes == min_votes)


def run_instant_runoff(ballots: Sequence[Ballot], num_choices: int) -> IRVResult:
    """Run IRV rounds over `(ranking, voting_power)` ballots with 0-based rankings.

    Stops at the first majority, which is at the latest when one choice is
    left, or when no ballot counts toward any active choice.
    """
    eliminated: List[int] = []
    rounds: List[IRVRound] = []
    winner: Optional[int] = None
    counts: Dict[int, float] = {}

    while True:
        counts = {index: 0.0 for index in range(num_choices) if index not in eliminated}
        for ranking, voting_power in ballots:
            for choice in ranking:
                if choice in counts:
                    counts[choice] += voting_power
                    break

        current_round = IRVRound(counts=dict(counts))
        rounds.append(current_round)

        total = current_round.total
        if not counts or total <= 0:
            break

        majority = [choice for choice, votes in counts.items() if votes > total / 2]
        if majority:
            winner = majority[0]
            break

        to_eliminate = _elimination_candidate(counts)
        current_round.eliminated = to_eliminate
        eliminated.append(to_eliminate)
        logger.debug(f"[RankedChoice] Round {len(rounds)}: eliminating {to_eliminate} ({counts[to_eliminate]} votes)")

    final_counts = {index: counts.get(index, 0.0) for index in range(num_choices)}
    return IRVResult(winner=winner, final_counts=final_counts, rounds=rounds, eliminated=eliminated)


def process_ranked_choice_votes(
    votes: List[RawVote],
    choices: List[str],
    proposal: Proposal,
) -> ProcessedResults:
    """IRV tally with an hourly history of the race.

    Votes are applied oldest first. The IRV state after the last vote of an
    hour overwrites that hour's bucket, and hours without new votes repeat the
    previous state, so each bucket shows the race as it stood at that time.
    `votes` lists each ballot under its first valid preference.
    Every point, and the result itself, carries the winning threshold of
    its IRV state: half the final-round total.
    """
    errors: List[DataError] = []
    choice_colors = get_choice_colors(choices)
    prepared = prepare_votes(votes, choices, VoteType.RANKED_CHOICE, errors)
    hourly_data = init_hourly_for_votes(proposal, prepared, choices)
    num_choices = len(choices)

    ballots: List[Ballot] = []
    snapshots: Dict[str, IRVResult] = {}
    result: Optional[IRVResult] = None
    for position, p in enumerate(prepared):
        ballots.append((p.choice.ranking, p.voting_power))
        key = hour_key(p.timestamp)
        is_last_in_hour = position == len(prepared) - 1 or hour_key(prepared[position + 1].timestamp) != key
        if is_last_in_hour:
            result = run_instant_runoff(ballots, num_choices)
            snapshots[key] = result

    thresholds: Dict[str, float] = {}
    current: Optional[IRVResult] = None
    for key in hourly_data:
        current = snapshots.get(key, current)
        if current is not None:
            hourly_data[key] = dict(current.final_counts)
            thresholds[key] = current.winning_threshold

    if result is None:
        result = run_instant_runoff([], num_choices)
    elif result.winner is None:
        logger.warning(f"[RankedChoice] No majority winner for proposal {proposal.id}")

    processed_votes: List[VoteResult] = [
        make_vote_result(p, p.choice.first_preference, p.voting_power, choices, choice_colors)
        for p in prepared
    ]

    results = build_results(
        proposal,
        choices,
        choice_colors,
        VoteType.RANKED_CHOICE,
        processed_votes,
        hourly_data,
        result.final_counts,
        errors,
        winner=result.winner,
    )
    time_series = [
        point.model_copy(update={"winning_threshold": thresholds.get(point.timestamp)})
        for point in results.time_series_data
    ]
    return results.model_copy(update={
        "time_series_data": time_series,
        "winning_threshold": result.winning_threshold,
    })
