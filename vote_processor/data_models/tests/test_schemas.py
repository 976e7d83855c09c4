"""Tests for input and output schemas."""
from datetime import datetime, timezone

from ..vote_schemas import Proposal, RawVote, VoteType
from ..results_schemas import DataError


class TestVoteType:
    """Vote type tags."""

    def test_known_tags(self):
        """Tags are matched case-insensitively."""
        assert VoteType.resolve("Ranked-Choice") == (VoteType.RANKED_CHOICE, True)
        assert VoteType.resolve("quadratic") == (VoteType.QUADRATIC, True)

    def test_missing_and_unknown(self):
        """Missing tags are basic; unknown tags are basic but flagged."""
        assert VoteType.resolve(None) == (VoteType.BASIC, True)
        assert VoteType.resolve("copeland") == (VoteType.BASIC, False)


class TestProposal:
    """Proposal parsing."""

    def test_camel_case_input(self):
        """Reader payloads use camelCase names."""
        proposal = Proposal.model_validate({
            "choices": '["For", "Against"]',
            "quorum": 0,
            "timeStart": "2024-01-01T10:00:00",
            "metadata": {"voteType": "weighted", "quorumChoices": None, "hiddenVote": True},
        })
        assert proposal.choices == ["For", "Against"]
        assert proposal.quorum is None
        assert proposal.time_start.tzinfo == timezone.utc
        assert proposal.vote_type == VoteType.WEIGHTED
        assert proposal.metadata.quorum_choices == []
        assert proposal.metadata.hidden_vote is True

    def test_missing_metadata(self):
        """Null metadata means defaults."""
        proposal = Proposal(time_start=datetime(2024, 1, 1), metadata=None)
        assert proposal.vote_type == VoteType.BASIC
        assert proposal.metadata.scores_state is None


class TestRawVote:
    """Vote parsing."""

    def test_encoded_choice(self):
        """JSON-encoded choices are decoded; plain strings are kept."""
        assert RawVote(voter_address="0xa", choice="[1, 3]").choice == [1, 3]
        assert RawVote(voter_address="0xa", choice="2").choice == "2"

    def test_data_error_serialization(self):
        """Data errors serialize with camelCase keys."""
        error = DataError(reason="Missing timeCreated", voter_address="0xa", vote_id="v1")
        assert error.model_dump(by_alias=True) == {
            "reason": "Missing timeCreated",
            "voterAddress": "0xa",
            "voteId": "v1",
            "rawChoice": None,
        }
