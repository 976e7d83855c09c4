from .vote_schemas import (
    Proposal,
    ProposalMetadata,
    RawVote,
    VoteType,
    ensure_utc,
)
from .results_schemas import (
    AggregatedSegment,
    ChoiceSegments,
    ChoiceSummary,
    DataError,
    ProcessedResults,
    ResultSummary,
    TimeSeriesPoint,
    VoteResult,
    VoteSegment,
)

__all__ = [
    "Proposal",
    "ProposalMetadata",
    "RawVote",
    "VoteType",
    "ensure_utc",
    "AggregatedSegment",
    "ChoiceSegments",
    "ChoiceSummary",
    "DataError",
    "ProcessedResults",
    "ResultSummary",
    "TimeSeriesPoint",
    "VoteResult",
    "VoteSegment",
]
