"""Tests for instant-runoff voting."""
from datetime import datetime, timezone

from vote_processor.data_models import Proposal, RawVote

from ..ranked_choice import process_ranked_choice_votes, run_instant_runoff


def _ts(hour, minute=0):
    return datetime(2024, 1, 1, hour, minute, tzinfo=timezone.utc)


class TestRunInstantRunoff:
    """IRV rounds on plain ballots."""

    def test_first_round_majority(self):
        """A first-round majority ends the count."""
        result = run_instant_runoff([((0,), 60.0), ((1, 0), 25.0), ((2, 1), 15.0)], 3)
        assert result.winner == 0
        assert len(result.rounds) == 1
        assert result.eliminated == []
        assert result.final_counts == {0: 60.0, 1: 25.0, 2: 15.0}

    def test_redistribution(self):
        """Ballots of the eliminated choice move to their next preference."""
        ballots = [((0,), 40.0), ((1,), 35.0), ((2, 1), 25.0)]
        result = run_instant_runoff(ballots, 3)
        assert result.eliminated == [2]
        assert result.winner == 1
        assert result.final_counts == {0: 40.0, 1: 60.0, 2: 0.0}
        assert result.winning_threshold == 50.0

    def test_tie_eliminates_highest_index(self):
        """On a tie for fewest votes the highest index goes first."""
        ballots = [((0,), 10.0), ((1,), 10.0), ((2,), 10.0)]
        result = run_instant_runoff(ballots, 3)
        assert result.eliminated == [2, 1]
        assert result.winner == 0
        assert [len(r.counts) for r in result.rounds] == [3, 2, 1]

    def test_exhausted_ballots_leave_the_total(self):
        """A ballot with no remaining preference stops counting."""
        ballots = [((0,), 30.0), ((1,), 25.0), ((2,), 20.0)]
        result = run_instant_runoff(ballots, 3)
        assert result.rounds[0].total == 75.0
        assert result.rounds[1].total == 55.0
        assert result.winner == 0

    def test_no_ballots(self):
        """Nothing counted means no winner."""
        result = run_instant_runoff([], 3)
        assert result.winner is None
        assert result.final_counts == {0: 0.0, 1: 0.0, 2: 0.0}
        assert len(result.rounds) == 1


class TestProcessRankedChoiceVotes:
    """Hourly IRV snapshots."""

    def test_hourly_snapshots_carry_forward(self):
        """Each hour shows the race as it stood; empty hours repeat it."""
        choices = ["A", "B", "C"]
        proposal = Proposal(
            id="p-ranked",
            choices=choices,
            time_start=_ts(10),
            metadata={"voteType": "ranked-choice"},
        )
        votes = [
            RawVote(voter_address="0xa", voting_power=40, choice=[1], time_created=_ts(10, 10)),
            RawVote(voter_address="0xb", voting_power=35, choice=[2], time_created=_ts(10, 20)),
            RawVote(voter_address="0xc", voting_power=25, choice=[3, 2], time_created=_ts(12, 30)),
        ]
        results = process_ranked_choice_votes(votes, choices, proposal)

        assert [(p.timestamp, p.values) for p in results.time_series_data] == [
            ("2024-01-01 10:00", {0: 40.0, 1: 35.0, 2: 0.0}),
            ("2024-01-01 11:00", {0: 40.0, 1: 35.0, 2: 0.0}),
            ("2024-01-01 12:00", {0: 40.0, 1: 60.0, 2: 0.0}),
        ]
        assert results.winner == 1
        assert results.final_results == {0: 40.0, 1: 60.0, 2: 0.0}
        assert results.total_voting_power == 100
        assert results.votes[2].choice == 2
        assert results.votes[2].choice_text == "C"
        assert results.vote_type == "ranked-choice"
        assert [p.winning_threshold for p in results.time_series_data] == [37.5, 37.5, 50.0]
        assert results.winning_threshold == 50.0
        assert results.model_dump(by_alias=True)["winningThreshold"] == 50.0

    def test_no_votes(self):
        """An empty race has no winner."""
        proposal = Proposal(id="p", choices=["A", "B"], time_start=_ts(10))
        results = process_ranked_choice_votes([], ["A", "B"], proposal)
        assert results.winner is None
        assert results.final_results == {0: 0.0, 1: 0.0}
        assert results.winning_threshold == 0.0
        assert [p.winning_threshold for p in results.time_series_data] == [None]
