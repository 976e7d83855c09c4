"""Exceptions raised while turning raw votes into results."""


class VoteProcessingError(Exception):
    """Base class for vote processing failures."""
    pass


class InvalidChoiceError(VoteProcessingError):
    """Raised when a vote's choice does not fit the proposal's vote type."""

    def __init__(self, message: str, raw_choice=None):
        super().__init__(message)
        self.raw_choice = raw_choice


class ProposalNotFoundError(VoteProcessingError):
    """Raised by readers when a proposal id does not exist."""

    def __init__(self, proposal_id: str):
        super().__init__(f"Proposal '{proposal_id}' not found")
        self.proposal_id = proposal_id
