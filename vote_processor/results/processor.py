"""
Entry point for vote results: picks the aggregator for the proposal's vote
type and applies the options and visibility rules shared by all of them.
"""
from typing import Callable, Dict, List

from vote_processor.data_models import ProcessedResults, Proposal, RawVote, TimeSeriesPoint, VoteType
from vote_processor.utils.logger import logger

from .aggregators import (
    process_approval_votes,
    process_basic_votes,
    process_quadratic_votes,
    process_weighted_votes,
)
from .ranked_choice import process_ranked_choice_votes
from .segments import aggregate_small_votes, apply_relative_voting_power

HIDDEN_CHOICE = -1
FINAL_SCORES_STATE = "final"

Aggregator = Callable[[List[RawVote], List[str], Proposal], ProcessedResults]

AGGREGATORS: Dict[VoteType, Aggregator] = {
    VoteType.BASIC: process_basic_votes,
    VoteType.SINGLE_CHOICE: lambda votes, choices, proposal: process_basic_votes(
        votes, choices, proposal, VoteType.SINGLE_CHOICE
    ),
    VoteType.WEIGHTED: process_weighted_votes,
    VoteType.APPROVAL: process_approval_votes,
    VoteType.RANKED_CHOICE: process_ranked_choice_votes,
    VoteType.QUADRATIC: process_quadratic_votes,
}


def _empty_results(proposal: Proposal, vote_type: VoteType) -> ProcessedResults:
    metadata = proposal.metadata
    return ProcessedResults(
        choices=[],
        choice_colors=[],
        quorum=proposal.quorum,
        quorum_choices=list(metadata.quorum_choices),
        vote_type=vote_type.value,
        hidden_vote=metadata.hidden_vote,
        scores_state=metadata.scores_state or "unknown",
        total_delegated_vp=proposal.total_delegated_vp,
    )


def is_hidden(results: ProcessedResults) -> bool:
    """Shielded votes stay hidden until the scores are final."""
    return results.hidden_vote and results.scores_state != FINAL_SCORES_STATE


def mask_hidden_results(results: ProcessedResults) -> ProcessedResults:
    """Move all power onto the hidden choice (-1) and drop the winner."""
    final_results = {HIDDEN_CHOICE: results.total_voting_power}
    final_results.update({index: 0.0 for index in range(len(results.choices))})
    time_series = [
        TimeSeriesPoint(timestamp=point.timestamp, values={HIDDEN_CHOICE: sum(point.values.values())})
        for point in results.time_series_data
    ]
    return results.model_copy(update={
        "final_results": final_results,
        "time_series_data": time_series,
        "winner": None,
    })


def process_results(
    proposal: Proposal,
    votes: List[RawVote],
    with_votes: bool = True,
    with_timeseries: bool = True,
    aggregated_votes: bool = False,
) -> ProcessedResults:
    """Aggregate a proposal's votes into display-ready results.

    Unknown vote types are processed as basic votes. `aggregated_votes`
    collapses small votes in the returned vote list; it does not change any
    totals.
    """
    vote_type, recognized = VoteType.resolve(proposal.metadata.vote_type)
    if not recognized:
        logger.warning(
            f"[VoteResults] Unknown vote type '{proposal.metadata.vote_type}' for proposal {proposal.id}. "
            f"Defaulting to basic."
        )

    choices = list(proposal.choices)
    if not choices:
        logger.warning(f"[VoteResults] Proposal {proposal.id} has no choices")
        return _empty_results(proposal, vote_type)

    results = AGGREGATORS[vote_type](votes, choices, proposal)
    logger.debug(
        f"[VoteResults] Proposal {proposal.id}: {len(votes)} votes, {vote_type.value}, "
        f"total power {results.total_voting_power}"
    )

    if with_votes:
        processed_votes = results.votes
        if aggregated_votes and processed_votes:
            processed_votes = aggregate_small_votes(processed_votes)
        results = results.model_copy(update={"votes": apply_relative_voting_power(processed_votes)})
    else:
        results = results.model_copy(update={"votes": []})

    if not with_timeseries:
        results = results.model_copy(update={"time_series_data": []})

    if is_hidden(results):
        results = mask_hidden_results(results)
    return results
