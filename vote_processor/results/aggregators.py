"""
Per-vote-type aggregators.

Every aggregator takes the proposal's raw votes, its choice labels and the
proposal itself, and returns ProcessedResults. They share vote preparation
(filtering, choice normalization, chronological ordering), hour bucketing and
colour assignment; only the way a vote's power is spread over choices differs.

Time-series buckets hold the power added during that hour (deltas), not
running totals. See bucketing.to_cumulative_series for the latter.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from vote_processor.data_models import (
    DataError,
    ProcessedResults,
    Proposal,
    RawVote,
    VoteResult,
    VoteType,
)
from vote_processor.utils.logger import logger

from .bucketing import HourlyData, hour_key, hourly_data_to_series, initialize_hourly_data
from .choice_utils import (
    ApprovalChoice,
    NormalizedChoice,
    SingleChoice,
    WeightedChoice,
    normalize_choice,
)
from .colors import DEFAULT_CHOICE_COLOR, get_choice_colors
from .errors import InvalidChoiceError

UNKNOWN_CHOICE_TEXT = "Unknown Choice"


@dataclass
class PreparedVote:
    """A raw vote that passed validation, with its normalized choice."""
    vote: RawVote
    choice: NormalizedChoice
    timestamp: datetime

    @property
    def voting_power(self) -> float:
        return self.vote.voting_power


def _data_error(vote: RawVote, reason: str) -> DataError:
    return DataError(
        reason=reason,
        voter_address=vote.voter_address,
        vote_id=vote.id,
        raw_choice=vote.choice,
    )


def prepare_votes(
    votes: List[RawVote],
    choices: List[str],
    vote_type: VoteType,
    errors: List[DataError],
) -> List[PreparedVote]:
    """Validate and normalize votes, oldest first.

    Zero-power votes are dropped quietly. Votes with negative or non-finite
    power, no timestamp, or an unusable choice are dropped and reported in
    `errors`; the rest of the batch is still processed.
    """
    prepared: List[PreparedVote] = []
    for vote in votes:
        power = vote.voting_power
        if not math.isfinite(power) or power < 0:
            errors.append(_data_error(vote, f"Invalid voting power: {power}"))
            continue
        if power == 0:
            continue
        if vote.time_created is None:
            errors.append(_data_error(vote, "Missing timeCreated"))
            continue
        try:
            choice = normalize_choice(vote.choice, vote_type, len(choices))
        except InvalidChoiceError as e:
            errors.append(_data_error(vote, str(e)))
            continue

        dropped = getattr(choice, "dropped", ())
        if dropped:
            errors.append(_data_error(vote, f"Ignored invalid choice entries: {list(dropped)}"))
        prepared.append(PreparedVote(vote=vote, choice=choice, timestamp=vote.time_created))

    if errors:
        logger.warning(
            f"[VoteResults] {len(errors)} vote issue(s) while preparing {len(votes)} {vote_type.value} votes"
        )
    # sort is stable, so votes sharing a timestamp keep reader order
    prepared.sort(key=lambda p: p.timestamp)
    return prepared


def make_vote_result(
    prepared: PreparedVote,
    choice_index: int,
    voting_power: float,
    choices: List[str],
    choice_colors: List[str],
) -> VoteResult:
    in_range = 0 <= choice_index < len(choices)
    return VoteResult(
        choice=choice_index,
        choice_text=choices[choice_index] if in_range and choices[choice_index] else UNKNOWN_CHOICE_TEXT,
        voting_power=voting_power,
        voter_address=prepared.vote.voter_address,
        timestamp=prepared.timestamp,
        color=choice_colors[choice_index] if in_range else DEFAULT_CHOICE_COLOR,
        reason=prepared.vote.reason,
    )


def init_hourly_for_votes(proposal: Proposal, prepared: List[PreparedVote], choices: List[str]) -> HourlyData:
    """Buckets from the proposal start to the last vote (or just the start).

    Votes stamped before the proposal start pull the first bucket back so
    every vote has a bucket.
    """
    if not prepared:
        return initialize_hourly_data(proposal.time_start, proposal.time_start, choices)
    start_time = min(proposal.time_start, prepared[0].timestamp)
    return initialize_hourly_data(start_time, prepared[-1].timestamp, choices)


def empty_final_results(choices: List[str]) -> Dict[int, float]:
    return {index: 0.0 for index in range(len(choices))}


def leading_choice(final_results: Dict[int, float]) -> Optional[int]:
    """Choice with the most power; lowest index on ties, None without votes."""
    best: Optional[int] = None
    for index in sorted(final_results):
        power = final_results[index]
        if index < 0 or power <= 0:
            continue
        if best is None or power > final_results[best]:
            best = index
    return best


def build_results(
    proposal: Proposal,
    choices: List[str],
    choice_colors: List[str],
    vote_type: VoteType,
    processed_votes: List[VoteResult],
    hourly_data: HourlyData,
    final_results: Dict[int, float],
    errors: List[DataError],
    winner: Optional[int] = None,
) -> ProcessedResults:
    metadata = proposal.metadata
    return ProcessedResults(
        votes=processed_votes,
        time_series_data=hourly_data_to_series(hourly_data),
        choices=choices,
        choice_colors=choice_colors,
        total_voting_power=sum(vote.voting_power for vote in processed_votes),
        quorum=proposal.quorum,
        quorum_choices=list(metadata.quorum_choices),
        vote_type=vote_type.value,
        final_results=final_results,
        winner=winner if winner is not None else leading_choice(final_results),
        hidden_vote=metadata.hidden_vote,
        scores_state=metadata.scores_state or "unknown",
        total_delegated_vp=proposal.total_delegated_vp,
        data_errors=errors,
    )


def _distribute(
    proposal: Proposal,
    votes: List[RawVote],
    choices: List[str],
    vote_type: VoteType,
    shares_for,
) -> ProcessedResults:
    """Shared loop for aggregators where each vote maps to fixed per-choice shares."""
    errors: List[DataError] = []
    choice_colors = get_choice_colors(choices)
    prepared = prepare_votes(votes, choices, vote_type, errors)
    hourly_data = init_hourly_for_votes(proposal, prepared, choices)
    final_results = empty_final_results(choices)
    processed_votes: List[VoteResult] = []

    for p in prepared:
        key = hour_key(p.timestamp)
        for choice_index, power in shares_for(p, errors).items():
            processed_votes.append(make_vote_result(p, choice_index, power, choices, choice_colors))
            hourly_data[key][choice_index] += power
            final_results[choice_index] += power

    return build_results(
        proposal, choices, choice_colors, vote_type, processed_votes, hourly_data, final_results, errors
    )


def process_basic_votes(
    votes: List[RawVote],
    choices: List[str],
    proposal: Proposal,
    vote_type: VoteType = VoteType.BASIC,
) -> ProcessedResults:
    """Single-choice votes: the voter's full power goes to one 0-based choice."""

    def shares(p: PreparedVote, errors: List[DataError]) -> Dict[int, float]:
        return {p.choice.index: p.voting_power}

    return _distribute(proposal, votes, choices, vote_type, shares)


def _weighted_shares(p: PreparedVote, errors: List[DataError]) -> Dict[int, float]:
    if isinstance(p.choice, SingleChoice):
        return {p.choice.index: p.voting_power}
    if p.choice.total_weight <= 0:
        errors.append(_data_error(p.vote, "Weights sum to zero"))
        return {}
    return p.choice.shares(p.voting_power)


def process_weighted_votes(
    votes: List[RawVote],
    choices: List[str],
    proposal: Proposal,
) -> ProcessedResults:
    """Weighted votes: power split as `power * weight / sum(weights)`.

    A vote's shares add back up to its voting power. A plain index instead of
    a weight mapping is read as 1-based and gets the full power.
    """
    return _distribute(proposal, votes, choices, VoteType.WEIGHTED, _weighted_shares)


def process_approval_votes(
    votes: List[RawVote],
    choices: List[str],
    proposal: Proposal,
) -> ProcessedResults:
    """Approval votes: every approved choice receives the voter's full power.

    totalVotingPower therefore counts a voter once per approved choice.
    """

    def shares(p: PreparedVote, errors: List[DataError]) -> Dict[int, float]:
        choice: ApprovalChoice = p.choice
        return {index: p.voting_power for index in choice.indices}

    return _distribute(proposal, votes, choices, VoteType.APPROVAL, shares)


def process_quadratic_votes(
    votes: List[RawVote],
    choices: List[str],
    proposal: Proposal,
) -> ProcessedResults:
    """Quadratic votes.

    Allocations are split like weighted votes and listed per choice with their
    linear share. The tally instead credits each choice with the square root of
    that share, then rescales all credits so they sum to the power of the
    counted votes, keeping the tally in voting-power units for quorum checks.
    """
    errors: List[DataError] = []
    choice_colors = get_choice_colors(choices)
    prepared = prepare_votes(votes, choices, VoteType.QUADRATIC, errors)
    hourly_data = init_hourly_for_votes(proposal, prepared, choices)
    credits = empty_final_results(choices)
    processed_votes: List[VoteResult] = []

    for p in prepared:
        key = hour_key(p.timestamp)
        for choice_index, share in _weighted_shares(p, errors).items():
            processed_votes.append(make_vote_result(p, choice_index, share, choices, choice_colors))
            credit = math.sqrt(share)
            hourly_data[key][choice_index] += credit
            credits[choice_index] += credit

    total_power = sum(vote.voting_power for vote in processed_votes)
    total_credits = sum(credits.values())
    scale = total_power / total_credits if total_credits > 0 else 0.0

    final_results = {index: credit * scale for index, credit in credits.items()}
    for values in hourly_data.values():
        for choice_index in values:
            values[choice_index] *= scale

    return build_results(
        proposal, choices, choice_colors, VoteType.QUADRATIC, processed_votes, hourly_data, final_results, errors
    )
