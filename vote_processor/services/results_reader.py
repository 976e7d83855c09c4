"""
Readers that load proposals and votes for the results processor.

The processor only depends on the ProposalReader and VoteReader protocols;
DatabaseResultsReader implements both against the governance Postgres
database through the shared connection pool.
"""
from typing import Any, Dict, List, Optional, Protocol

import psycopg2

from vote_processor.data_models import Proposal, RawVote
from vote_processor.results.errors import ProposalNotFoundError
from vote_processor.services.connection_pool import ResultsConnectionPool, get_results_pool
from vote_processor.utils.logger import logger


class ProposalReader(Protocol):
    def get_proposal(self, proposal_id: str) -> Optional[Proposal]:
        ...


class VoteReader(Protocol):
    def get_votes(self, proposal_id: str) -> List[RawVote]:
        ...


def load_proposal(reader: ProposalReader, proposal_id: str) -> Proposal:
    """Like get_proposal, but a missing proposal raises ProposalNotFoundError."""
    proposal = reader.get_proposal(proposal_id)
    if proposal is None:
        raise ProposalNotFoundError(proposal_id)
    return proposal


PROPOSAL_QUERY = """
    SELECT id, choices, quorum, start_at AS time_start, end_at AS time_end, metadata
    FROM public.proposal
    WHERE id = %s
"""

VOTES_QUERY = """
    SELECT id, voter_address, voting_power, choice, created_at AS time_created, reason
    FROM public.vote
    WHERE proposal_id = %s
    ORDER BY created_at ASC
"""


def _row_to_proposal(row: Dict[str, Any]) -> Proposal:
    proposal = Proposal.model_validate({**row, "id": str(row["id"])})
    # The delegated supply snapshot lives in proposal metadata
    extra = proposal.metadata.model_extra or {}
    total_delegated_vp = extra.get("totalDelegatedVp") or extra.get("total_delegated_vp")
    if total_delegated_vp is not None:
        try:
            proposal = proposal.model_copy(update={"total_delegated_vp": float(total_delegated_vp)})
        except (TypeError, ValueError):
            logger.warning("ResultsReader: ignoring invalid totalDelegatedVp %r for proposal %s",
                           total_delegated_vp, proposal.id)
    return proposal


def _row_to_vote(row: Dict[str, Any]) -> RawVote:
    return RawVote(
        id=str(row["id"]) if row.get("id") is not None else None,
        voter_address=row["voter_address"],
        voting_power=float(row.get("voting_power") or 0),
        choice=row.get("choice"),
        time_created=row.get("time_created"),
        reason=row.get("reason"),
    )


class DatabaseResultsReader:
    """ProposalReader and VoteReader over the pooled psycopg2 connection."""

    def __init__(self, pool: Optional[ResultsConnectionPool] = None):
        self._pool = pool

    @property
    def pool(self) -> ResultsConnectionPool:
        if self._pool is None:
            self._pool = get_results_pool()
        return self._pool

    def _fetch_all(self, query: str, params: tuple) -> List[Dict[str, Any]]:
        try:
            with self.pool.cursor() as cur:
                cur.execute(query, params)
                column_names = [desc[0] for desc in cur.description]
                return [dict(zip(column_names, row)) for row in cur.fetchall()]
        except psycopg2.Error as e:
            logger.error("ResultsReader: query failed: %s", e, exc_info=True)
            raise RuntimeError(f"SQL execution error: {e}") from e

    def get_proposal(self, proposal_id: str) -> Optional[Proposal]:
        rows = self._fetch_all(PROPOSAL_QUERY, (proposal_id,))
        if not rows:
            logger.info("ResultsReader: proposal %s not found", proposal_id)
            return None
        return _row_to_proposal(rows[0])

    def get_votes(self, proposal_id: str) -> List[RawVote]:
        rows = self._fetch_all(VOTES_QUERY, (proposal_id,))
        logger.info("ResultsReader: loaded %d votes for proposal %s", len(rows), proposal_id)
        return [_row_to_vote(row) for row in rows]
