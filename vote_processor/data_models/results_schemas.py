# Output schemas for processed vote results
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VoteResult(_CamelModel):
    """One per-choice contribution of a vote"""
    choice: int
    choice_text: str
    voting_power: float
    voter_address: str
    timestamp: datetime
    color: str
    reason: Optional[str] = None
    aggregate: bool = False  # True for entries that merge many small votes
    relative_voting_power: Optional[float] = None


class TimeSeriesPoint(_CamelModel):
    """Voting power per choice for one hour bucket"""
    timestamp: str  # "yyyy-MM-dd HH:mm", UTC
    values: Dict[int, float] = Field(default_factory=dict)
    winning_threshold: Optional[float] = None  # ranked-choice: half the round total


class DataError(_CamelModel):
    """A vote (or part of one) that could not be processed"""
    reason: str
    voter_address: Optional[str] = None
    vote_id: Optional[str] = None
    raw_choice: Any = None


class ProcessedResults(_CamelModel):
    """Aggregated results for one proposal, ready for charts and tables"""
    votes: List[VoteResult] = Field(default_factory=list)
    time_series_data: List[TimeSeriesPoint] = Field(default_factory=list)
    choices: List[str] = Field(default_factory=list)
    choice_colors: List[str] = Field(default_factory=list)
    total_voting_power: float = 0.0
    quorum: Optional[float] = None
    quorum_choices: List[int] = Field(default_factory=list)
    vote_type: str = "basic"
    final_results: Dict[int, float] = Field(default_factory=dict)
    winner: Optional[int] = None
    winning_threshold: Optional[float] = None
    hidden_vote: bool = False
    scores_state: str = "unknown"
    total_delegated_vp: Optional[float] = None
    data_errors: List[DataError] = Field(default_factory=list)


class VoteSegment(_CamelModel):
    """An individually drawn bar segment"""
    voter_address: str
    voting_power: float
    color: str
    is_aggregated: bool = False


class AggregatedSegment(_CamelModel):
    """Many small votes merged into one hatched bar segment"""
    voting_power: float = 0.0
    count: int = 0
    color: str
    pattern: str = "hatch"
    is_aggregated: bool = True


class ChoiceSegments(_CamelModel):
    """Bar segments for a single choice"""
    choice: int
    choice_text: str
    total_voting_power: float
    voting_power_threshold: float
    segments: List[VoteSegment] = Field(default_factory=list)
    aggregated: AggregatedSegment


class ChoiceSummary(_CamelModel):
    """Display totals for one choice"""
    choice: int
    choice_text: str
    voting_power: float
    percentage: float
    color: str
    counts_towards_quorum: bool


class ResultSummary(_CamelModel):
    """Headline numbers derived from processed results"""
    choices: List[ChoiceSummary] = Field(default_factory=list)
    total_voting_power: float = 0.0
    quorum: Optional[float] = None
    quorum_voting_power: float = 0.0
    has_quorum: bool = False
    participation_percentage: float = 0.0
    has_majority_support: Optional[bool] = None
    winner: Optional[int] = None
