from typing import List

from vote_processor.data_models import ChoiceSummary, ProcessedResults, ResultSummary

from .colors import DEFAULT_CHOICE_COLOR

FOR_CHOICE = "For"


def _percentage(part: float, whole: float) -> float:
    return part / whole * 100 if whole > 0 else 0.0


def summarize_results(results: ProcessedResults) -> ResultSummary:
    """Headline numbers for a results page.

    Choices are ordered by voting power, largest first (ties keep choice
    order). Majority support is only defined when one of the choices is
    literally "For".
    """
    total = results.total_voting_power
    choices: List[ChoiceSummary] = []
    for index, label in enumerate(results.choices):
        power = results.final_results.get(index, 0.0)
        choices.append(ChoiceSummary(
            choice=index,
            choice_text=label,
            voting_power=power,
            percentage=_percentage(power, total),
            color=results.choice_colors[index] if index < len(results.choice_colors) else DEFAULT_CHOICE_COLOR,
            counts_towards_quorum=index in results.quorum_choices,
        ))
    choices.sort(key=lambda c: c.voting_power, reverse=True)

    quorum_voting_power = sum(c.voting_power for c in choices if c.counts_towards_quorum)
    # No quorum requirement means any quorum-choice power reaches it
    has_quorum = quorum_voting_power > (results.quorum or 0)

    has_majority_support = None
    if any(c.choice_text == FOR_CHOICE for c in choices):
        leader = choices[0]
        has_majority_support = leader.choice_text == FOR_CHOICE and leader.voting_power > total / 2

    participation = 0.0
    if results.total_delegated_vp:
        participation = _percentage(total, results.total_delegated_vp)

    return ResultSummary(
        choices=choices,
        total_voting_power=total,
        quorum=results.quorum,
        quorum_voting_power=quorum_voting_power,
        has_quorum=has_quorum,
        participation_percentage=participation,
        has_majority_support=has_majority_support,
        winner=results.winner,
    )
