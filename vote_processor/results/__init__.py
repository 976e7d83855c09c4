from .processor import process_results
from .aggregators import (
    process_approval_votes,
    process_basic_votes,
    process_quadratic_votes,
    process_weighted_votes,
)
from .ranked_choice import IRVResult, IRVRound, process_ranked_choice_votes, run_instant_runoff
from .bucketing import hour_key, initialize_hourly_data, to_cumulative_series
from .colors import get_choice_colors, get_color_for_choice
from .choice_utils import (
    normalize_choice,
    to_one_based_index,
    to_zero_based_index,
    validate_vote_choice,
)
from .segments import aggregate_small_votes, simplify_segments
from .summary import summarize_results
from .errors import InvalidChoiceError, ProposalNotFoundError, VoteProcessingError

__all__ = [
    "process_results",
    "process_approval_votes",
    "process_basic_votes",
    "process_quadratic_votes",
    "process_weighted_votes",
    "IRVResult",
    "IRVRound",
    "process_ranked_choice_votes",
    "run_instant_runoff",
    "hour_key",
    "initialize_hourly_data",
    "to_cumulative_series",
    "get_choice_colors",
    "get_color_for_choice",
    "normalize_choice",
    "to_one_based_index",
    "to_zero_based_index",
    "validate_vote_choice",
    "aggregate_small_votes",
    "simplify_segments",
    "summarize_results",
    "InvalidChoiceError",
    "ProposalNotFoundError",
    "VoteProcessingError",
]
