"""
Choice normalization for raw vote records.

Raw `choice` values differ by voting system: a bare index for basic votes, a
list of indices for approval and ranked-choice votes, and an index->weight
mapping for weighted and quadratic votes. Sources other than basic votes use
1-based indices. Everything here converts to one tagged variant per shape with
0-based indices, so aggregators never inspect raw payloads themselves.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from vote_processor.data_models import VoteType

from .errors import InvalidChoiceError


def to_zero_based_index(one_based_index: int) -> int:
    """Snapshot-style 1-based index to the internal 0-based index."""
    return one_based_index - 1


def to_one_based_index(zero_based_index: int) -> int:
    """Internal 0-based index to the Snapshot-style 1-based index."""
    return zero_based_index + 1


def to_zero_based_indices(one_based_indices: List[int]) -> List[int]:
    return [to_zero_based_index(index) for index in one_based_indices]


def to_one_based_indices(zero_based_indices: List[int]) -> List[int]:
    return [to_one_based_index(index) for index in zero_based_indices]


def is_valid_choice_index(choice_index: int, num_choices: int) -> bool:
    return 0 <= choice_index < num_choices


# ==================
# Normalized choice variants
# ==================

@dataclass(frozen=True)
class SingleChoice:
    """Full voting power to one choice."""
    index: int


@dataclass(frozen=True)
class ApprovalChoice:
    """Full voting power to every approved choice."""
    indices: Tuple[int, ...]
    dropped: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class RankedChoice:
    """Preferences, most preferred first."""
    ranking: Tuple[int, ...]
    dropped: Tuple[Any, ...] = ()

    @property
    def first_preference(self) -> int:
        return self.ranking[0]


@dataclass(frozen=True)
class WeightedChoice:
    """Voting power split across choices in proportion to the weights."""
    weights: Dict[int, float] = field(default_factory=dict)

    @property
    def total_weight(self) -> float:
        return sum(self.weights.values())

    def shares(self, voting_power: float) -> Dict[int, float]:
        """Voting power per choice; all zero when the weights sum to zero."""
        total = self.total_weight
        if total <= 0:
            return {index: 0.0 for index in self.weights}
        return {index: voting_power * weight / total for index, weight in self.weights.items()}


NormalizedChoice = Union[SingleChoice, ApprovalChoice, RankedChoice, WeightedChoice]


def parse_choice_index(value: Any) -> int:
    """Read an integer index from an int, an integral float or a digit string."""
    if isinstance(value, bool):
        raise InvalidChoiceError(f"Boolean is not a choice index: {value!r}", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    raise InvalidChoiceError(f"Not a choice index: {value!r}", value)


def _parse_weight(value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidChoiceError(f"Boolean is not a weight: {value!r}", value)
    try:
        weight = float(value)
    except (TypeError, ValueError):
        raise InvalidChoiceError(f"Not a weight: {value!r}", value)
    if not math.isfinite(weight) or weight < 0:
        raise InvalidChoiceError(f"Weight must be a non-negative number: {value!r}", value)
    return weight


def _normalize_single(raw: Any, num_choices: int, one_based: bool) -> SingleChoice:
    index = parse_choice_index(raw)
    if one_based:
        index = to_zero_based_index(index)
    if not is_valid_choice_index(index, num_choices):
        raise InvalidChoiceError(f"Choice index {index} out of range for {num_choices} choices", raw)
    return SingleChoice(index)


def _normalize_index_list(raw: Any, num_choices: int) -> Tuple[Tuple[int, ...], Tuple[Any, ...]]:
    if raw is None:
        raise InvalidChoiceError("Missing choice", raw)
    items = raw if isinstance(raw, (list, tuple)) else [raw]

    indices: List[int] = []
    dropped: List[Any] = []
    seen = set()
    for item in items:
        try:
            index = to_zero_based_index(parse_choice_index(item))
        except InvalidChoiceError:
            dropped.append(item)
            continue
        if not is_valid_choice_index(index, num_choices) or index in seen:
            dropped.append(item)
            continue
        seen.add(index)
        indices.append(index)

    if not indices:
        raise InvalidChoiceError("No valid choices provided", raw)
    return tuple(indices), tuple(dropped)


def _normalize_weights(raw: Any, num_choices: int) -> WeightedChoice:
    weights: Dict[int, float] = {}
    for key, value in raw.items():
        index = to_zero_based_index(parse_choice_index(key))
        if not is_valid_choice_index(index, num_choices):
            raise InvalidChoiceError(f"Choice index {index} out of range for {num_choices} choices", raw)
        weights[index] = weights.get(index, 0.0) + _parse_weight(value)
    if not weights:
        raise InvalidChoiceError("No valid choices provided", raw)
    return WeightedChoice(weights)


def normalize_choice(raw: Any, vote_type: VoteType, num_choices: int) -> NormalizedChoice:
    """Convert a raw `choice` payload into its 0-based variant.

    Raises InvalidChoiceError when nothing usable remains. Approval and
    ranked-choice lists keep their valid entries and report the rest in
    `dropped`.
    """
    if vote_type in (VoteType.BASIC, VoteType.SINGLE_CHOICE):
        return _normalize_single(raw, num_choices, one_based=False)

    if vote_type in (VoteType.WEIGHTED, VoteType.QUADRATIC):
        if isinstance(raw, dict):
            return _normalize_weights(raw, num_choices)
        # Plain index for a weighted proposal: the whole vote goes to that choice
        return _normalize_single(raw, num_choices, one_based=True)

    if vote_type == VoteType.APPROVAL:
        indices, dropped = _normalize_index_list(raw, num_choices)
        return ApprovalChoice(indices, dropped)

    if vote_type == VoteType.RANKED_CHOICE:
        ranking, dropped = _normalize_index_list(raw, num_choices)
        return RankedChoice(ranking, dropped)

    raise InvalidChoiceError(f"Unsupported vote type: {vote_type}", raw)


def to_snapshot_choice(choice: NormalizedChoice, vote_type: VoteType) -> Any:
    """Inverse of normalize_choice: the 1-based payload Snapshot expects."""
    if isinstance(choice, SingleChoice):
        if vote_type in (VoteType.BASIC, VoteType.SINGLE_CHOICE):
            return choice.index
        if vote_type in (VoteType.APPROVAL, VoteType.RANKED_CHOICE):
            return [to_one_based_index(choice.index)]
        return {str(to_one_based_index(choice.index)): 1}
    if isinstance(choice, ApprovalChoice):
        return to_one_based_indices(list(choice.indices))
    if isinstance(choice, RankedChoice):
        return to_one_based_indices(list(choice.ranking))
    return {str(to_one_based_index(index)): weight for index, weight in choice.weights.items()}


def validate_vote_choice(
    raw_choice: Any,
    available_choices: List[str],
    vote_type: VoteType,
) -> Tuple[bool, Optional[str]]:
    """Check a choice payload before it is submitted.

    Stricter than normalize_choice: duplicates and out-of-range entries fail
    instead of being dropped.
    """
    num_choices = len(available_choices)

    if vote_type in (VoteType.APPROVAL, VoteType.RANKED_CHOICE):
        items = raw_choice if isinstance(raw_choice, (list, tuple)) else None
        if not items:
            return False, "No valid choices provided"
        try:
            indices = to_zero_based_indices([parse_choice_index(item) for item in items])
        except InvalidChoiceError:
            return False, "No valid choices provided"
        if not all(is_valid_choice_index(index, num_choices) for index in indices):
            return False, "Choice index out of bounds"
        if len(set(indices)) != len(indices):
            label = "Approval" if vote_type == VoteType.APPROVAL else "Ranked choice"
            return False, f"{label} vote cannot have duplicate choices"
        return True, None

    if vote_type in (VoteType.WEIGHTED, VoteType.QUADRATIC):
        if not isinstance(raw_choice, dict) or not raw_choice:
            return False, "Weighted vote must have weight values"
        try:
            choice = _normalize_weights(raw_choice, num_choices)
        except InvalidChoiceError as e:
            return False, str(e)
        total_weight = choice.total_weight
        if total_weight <= 0:
            return False, "Total weight must be greater than 0"
        if vote_type == VoteType.WEIGHTED and abs(total_weight - 100) > 0.01:
            return False, "Weighted vote total must equal 100%"
        return True, None

    if isinstance(raw_choice, (list, tuple)):
        if len(raw_choice) != 1:
            return False, "Basic vote must have exactly one choice"
        raw_choice = raw_choice[0]
    try:
        _normalize_single(raw_choice, num_choices, one_based=False)
    except InvalidChoiceError:
        return False, "Choice index out of bounds"
    return True, None
