from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, Header, Query
from fastapi.concurrency import run_in_threadpool

from vote_processor.data_models import ChoiceSegments, ProcessedResults, Proposal, RawVote, ResultSummary
from vote_processor.results import process_results, simplify_segments, summarize_results
from vote_processor.results.errors import ProposalNotFoundError
from vote_processor.results.processor import is_hidden
from vote_processor.routers.deps import (
    _validate_api_key,
    database_unavailable,
    get_results_cache,
    get_results_reader,
    proposal_not_found,
)
from vote_processor.services.connection_pool import DatabaseUnavailableError
from vote_processor.services.results_cache import ResultsCache, snapshot_version
from vote_processor.services.results_reader import DatabaseResultsReader, load_proposal
from vote_processor.utils.logger import logger

router = APIRouter(prefix="/v1/proposals", tags=["results"])


async def _load(reader: DatabaseResultsReader, proposal_id: str) -> Tuple[Proposal, List[RawVote]]:
    try:
        proposal = await run_in_threadpool(load_proposal, reader, proposal_id)
        votes = await run_in_threadpool(reader.get_votes, proposal_id)
    except ProposalNotFoundError as e:
        raise proposal_not_found(e)
    except DatabaseUnavailableError as e:
        raise database_unavailable(e)
    return proposal, votes


async def _cached_results(
    cache: ResultsCache,
    proposal: Proposal,
    votes: List[RawVote],
    with_votes: bool = True,
    with_timeseries: bool = True,
    aggregated_votes: bool = False,
) -> ProcessedResults:
    # Response options are part of the key so each variant is cached separately
    version = f"{snapshot_version(votes)}:{int(with_votes)}{int(with_timeseries)}{int(aggregated_votes)}"
    proposal_id = proposal.id or ""

    cached = await cache.get(proposal_id, version=version)
    if cached is not None:
        return cached

    results = process_results(
        proposal,
        votes,
        with_votes=with_votes,
        with_timeseries=with_timeseries,
        aggregated_votes=aggregated_votes,
    )
    await cache.store(proposal_id, results, version=version)
    return results


@router.get("/{proposal_id}/results")
async def get_results(
    proposal_id: str,
    with_votes: bool = Query(True),
    with_timeseries: bool = Query(True),
    aggregated_votes: bool = Query(False),
    authorization: Optional[str] = Header(None),
    reader: DatabaseResultsReader = Depends(get_results_reader),
    cache: ResultsCache = Depends(get_results_cache),
):
    """Processed results for one proposal."""
    _validate_api_key(authorization)
    proposal, votes = await _load(reader, proposal_id)
    results = await _cached_results(cache, proposal, votes, with_votes, with_timeseries, aggregated_votes)
    logger.info(f"Router: results for proposal {proposal_id} ({len(votes)} votes, {len(results.data_errors)} issues)")
    return results.model_dump(mode="json", by_alias=True)


@router.get("/{proposal_id}/summary")
async def get_summary(
    proposal_id: str,
    authorization: Optional[str] = Header(None),
    reader: DatabaseResultsReader = Depends(get_results_reader),
    cache: ResultsCache = Depends(get_results_cache),
):
    _validate_api_key(authorization)
    proposal, votes = await _load(reader, proposal_id)
    results = await _cached_results(cache, proposal, votes, with_votes=False)
    summary: ResultSummary = summarize_results(results)
    return summary.model_dump(mode="json", by_alias=True)


@router.get("/{proposal_id}/segments")
async def get_segments(
    proposal_id: str,
    min_visible_percent: float = Query(0.0, ge=0, le=100),
    authorization: Optional[str] = Header(None),
    reader: DatabaseResultsReader = Depends(get_results_reader),
    cache: ResultsCache = Depends(get_results_cache),
):
    """Bar segments per choice; empty while the votes are hidden."""
    _validate_api_key(authorization)
    proposal, votes = await _load(reader, proposal_id)
    results = await _cached_results(cache, proposal, votes, with_timeseries=False)
    if is_hidden(results):
        return []
    segments: List[ChoiceSegments] = simplify_segments(
        results.votes,
        choices=results.choices,
        min_visible_percent=min_visible_percent,
        total_voting_power=results.total_voting_power,
    )
    return [segment.model_dump(mode="json", by_alias=True) for segment in segments]
