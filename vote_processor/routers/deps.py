# Shared FastAPI router dependencies and helpers
from typing import Optional

from fastapi import HTTPException

from vote_processor.config import settings
from vote_processor.results.errors import ProposalNotFoundError
from vote_processor.services.connection_pool import DatabaseUnavailableError
from vote_processor.services.results_cache import ResultsCache
from vote_processor.services.results_reader import DatabaseResultsReader
from vote_processor.utils.logger import logger

_results_reader: Optional[DatabaseResultsReader] = None
_results_cache: Optional[ResultsCache] = None


def _error_detail(message: str, error_type: str, code: Optional[str] = None) -> dict:
    return {
        "error": {
            "message": message,
            "type": error_type,
            "param": None,
            "code": code,
        }
    }


def _validate_api_key(auth_header: Optional[str]):
    required = settings.REQUIRED_API_KEY
    if not required:
        logger.error("Router: missing VOTE_PROCESSOR_TOKEN in environment")
        raise HTTPException(status_code=500, detail=_error_detail(
            "Server missing API key configuration.", "server_error"
        ))
    if not auth_header or not auth_header.startswith("Bearer "):
        logger.warning("Router: missing or malformed Authorization header")
        raise HTTPException(status_code=401, detail=_error_detail(
            "You didn't provide an API key.", "invalid_request_error"
        ))
    token_value = auth_header.split("Bearer ")[-1].strip()
    if token_value != required:
        logger.warning("Router: incorrect API key provided")
        raise HTTPException(status_code=401, detail=_error_detail(
            "Incorrect API key provided.", "invalid_request_error"
        ))


def get_results_reader() -> DatabaseResultsReader:
    global _results_reader
    if _results_reader is None:
        _results_reader = DatabaseResultsReader()
    return _results_reader


def get_results_cache() -> ResultsCache:
    global _results_cache
    if _results_cache is None:
        _results_cache = ResultsCache()
    return _results_cache


def proposal_not_found(error: ProposalNotFoundError) -> HTTPException:
    logger.info(f"Router: {error}")
    return HTTPException(status_code=404, detail=_error_detail(
        str(error), "invalid_request_error", "proposal_not_found"
    ))


def database_unavailable(error: DatabaseUnavailableError) -> HTTPException:
    logger.error(f"Router: {error}")
    return HTTPException(status_code=503, detail=_error_detail(
        "Results database is temporarily unavailable.", "server_error", "database_unavailable"
    ))
