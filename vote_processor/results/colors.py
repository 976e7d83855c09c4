"""Deterministic colours for proposal choices."""
import re
from typing import List, Optional

DEFAULT_CHOICE_COLOR = "#CBD5E1"  # Neutral grey
FOR_COLOR = "#10B981"
AGAINST_COLOR = "#EF4444"
ABSTAIN_COLOR = "#F59E0B"

CHOICE_PALETTE = ["#3B82F6", "#8B5CF6", "#EC4899", "#F97316", "#6EE7B7"]

_FOR_PATTERN = re.compile(r"^(for|yes|yae)")
_AGAINST_PATTERN = re.compile(r"^(against|no|nay)")


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def choice_label_hash(label: str) -> int:
    """Signed 32-bit `hash * 31 + code` over the label's characters.

    Characters outside the BMP contribute their leading UTF-16 surrogate, so
    labels hash the same as they do in the web front end.
    """
    acc = 0
    for ch in label:
        code = ord(ch)
        if code > 0xFFFF:
            code = 0xD800 + ((code - 0x10000) >> 10)
        acc = _to_int32(_to_int32(acc << 5) - acc + code)
    return acc


def get_color_for_choice(choice: Optional[str]) -> str:
    """Colour for a choice label.

    For/yes/yae prefixes are green, against/no/nay prefixes red and an exact
    "abstain" yellow. Anything else hashes into a fixed palette so a label
    keeps its colour across renders.
    """
    if not choice:
        return DEFAULT_CHOICE_COLOR
    lower_case_choice = choice.lower()
    if _FOR_PATTERN.match(lower_case_choice):
        return FOR_COLOR
    if _AGAINST_PATTERN.match(lower_case_choice):
        return AGAINST_COLOR
    if lower_case_choice == "abstain":
        return ABSTAIN_COLOR
    return CHOICE_PALETTE[abs(choice_label_hash(lower_case_choice)) % len(CHOICE_PALETTE)]


def get_choice_colors(choices: List[str]) -> List[str]:
    return [get_color_for_choice(choice) for choice in choices]
