# Input schemas for vote result processing
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class VoteType(str, Enum):
    """Voting systems a proposal can use"""
    BASIC = "basic"
    SINGLE_CHOICE = "single-choice"
    WEIGHTED = "weighted"
    APPROVAL = "approval"
    RANKED_CHOICE = "ranked-choice"
    QUADRATIC = "quadratic"

    @classmethod
    def resolve(cls, value: Optional[str]) -> Tuple["VoteType", bool]:
        """Map a raw metadata tag to a vote type.

        Returns the vote type and whether the tag was recognised. Missing tags
        resolve to basic and count as recognised; unknown tags resolve to basic
        and do not.
        """
        if not value:
            return cls.BASIC, True
        try:
            return cls(str(value).strip().lower()), True
        except ValueError:
            return cls.BASIC, False


class RawVote(BaseModel):
    """A single vote record as returned by the vote reader"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    voter_address: str
    voting_power: float = 0.0
    choice: Any = None
    time_created: Optional[datetime] = None
    reason: Optional[str] = None
    id: Optional[str] = None

    @field_validator("time_created")
    @classmethod
    def _normalize_time_created(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @field_validator("choice", mode="before")
    @classmethod
    def _decode_json_choice(cls, v: Any) -> Any:
        # JSON columns sometimes arrive still encoded
        if isinstance(v, str) and v[:1] in ("[", "{"):
            try:
                return json.loads(v)
            except ValueError:
                return v
        return v


class ProposalMetadata(BaseModel):
    """Vote-type and quorum settings stored with a proposal"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    vote_type: Optional[str] = None
    quorum_choices: List[int] = Field(default_factory=list)
    hidden_vote: bool = False
    scores_state: Optional[str] = None

    @field_validator("quorum_choices", mode="before")
    @classmethod
    def _default_quorum_choices(cls, v: Any) -> Any:
        return [] if v is None else v


class Proposal(BaseModel):
    """Proposal fields the processor reads"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: Optional[str] = None
    choices: List[str] = Field(default_factory=list)
    quorum: Optional[float] = None
    time_start: datetime
    time_end: Optional[datetime] = None
    metadata: ProposalMetadata = Field(default_factory=ProposalMetadata)
    total_delegated_vp: Optional[float] = None

    @field_validator("choices", mode="before")
    @classmethod
    def _coerce_choices(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except ValueError:
                return []
        if not isinstance(v, list):
            return []
        return [str(choice) for choice in v]

    @field_validator("quorum", mode="before")
    @classmethod
    def _falsy_quorum_is_none(cls, v: Any) -> Any:
        return v if v else None

    @field_validator("metadata", mode="before")
    @classmethod
    def _decode_metadata(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, str):
            try:
                return json.loads(v)
            except ValueError:
                return {}
        return v

    @field_validator("time_start", "time_end")
    @classmethod
    def _normalize_times(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @property
    def vote_type(self) -> VoteType:
        return VoteType.resolve(self.metadata.vote_type)[0]
