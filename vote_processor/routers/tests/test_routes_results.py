"""Tests for the results HTTP routes."""
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from vote_processor.config import settings
from vote_processor.data_models import Proposal, RawVote
from vote_processor.main import app
from vote_processor.services.connection_pool import DatabaseUnavailableError
from vote_processor.services.results_cache import ResultsCache

from ..deps import get_results_cache, get_results_reader

TOKEN = "test-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


class FakeReader:
    def __init__(self, proposals, votes):
        self.proposals = proposals
        self.votes = votes
        self.vote_reads = 0

    def get_proposal(self, proposal_id):
        return self.proposals.get(proposal_id)

    def get_votes(self, proposal_id):
        self.vote_reads += 1
        return self.votes.get(proposal_id, [])


def _proposal(proposal_id, metadata=None):
    return Proposal(
        id=proposal_id,
        choices=["For", "Against", "Abstain"],
        quorum=120,
        time_start=datetime(2024, 1, 1, 10, tzinfo=timezone.utc),
        metadata=metadata or {"quorumChoices": [0, 2]},
    )


def _votes():
    return [
        RawVote(voter_address="0xa", voting_power=100, choice=0,
                time_created=datetime(2024, 1, 1, 10, 15, tzinfo=timezone.utc)),
        RawVote(voter_address="0xb", voting_power=50, choice=1,
                time_created=datetime(2024, 1, 1, 11, 30, tzinfo=timezone.utc)),
        RawVote(voter_address="0xc", voting_power=30, choice=2,
                time_created=datetime(2024, 1, 1, 11, 45, tzinfo=timezone.utc)),
    ]


@pytest.fixture
def reader():
    return FakeReader(
        proposals={"p1": _proposal("p1"), "hidden": _proposal("hidden", {"hiddenVote": True})},
        votes={"p1": _votes(), "hidden": _votes()},
    )


@pytest.fixture
def client(reader, monkeypatch):
    monkeypatch.setattr(settings, "REQUIRED_API_KEY", TOKEN)
    cache = ResultsCache(ttl_seconds=60)
    app.dependency_overrides[get_results_reader] = lambda: reader
    app.dependency_overrides[get_results_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuthentication:
    """Bearer token checks."""

    def test_missing_header(self, client):
        """Requests without a token are rejected."""
        response = client.get("/v1/proposals/p1/results")
        assert response.status_code == 401
        assert response.json()["detail"]["error"]["message"] == "You didn't provide an API key."

    def test_wrong_token(self, client):
        """A wrong token is rejected."""
        response = client.get("/v1/proposals/p1/results", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["detail"]["error"]["type"] == "invalid_request_error"

    def test_server_without_token(self, client, monkeypatch):
        """A server without a configured token cannot authenticate anyone."""
        monkeypatch.setattr(settings, "REQUIRED_API_KEY", None)
        response = client.get("/v1/proposals/p1/results", headers=AUTH)
        assert response.status_code == 500
        assert response.json()["detail"]["error"]["type"] == "server_error"


class TestResultsRoute:
    """GET /v1/proposals/{id}/results"""

    def test_results(self, client):
        """Results come back as camelCase JSON."""
        response = client.get("/v1/proposals/p1/results", headers=AUTH)
        assert response.status_code == 200
        data = response.json()
        assert data["totalVotingPower"] == 180
        assert data["finalResults"] == {"0": 100.0, "1": 50.0, "2": 30.0}
        assert len(data["votes"]) == 3
        assert [p["timestamp"] for p in data["timeSeriesData"]] == ["2024-01-01 10:00", "2024-01-01 11:00"]

    def test_options(self, client):
        """Query flags drop the vote list and time series."""
        response = client.get(
            "/v1/proposals/p1/results",
            params={"with_votes": "false", "with_timeseries": "false"},
            headers=AUTH,
        )
        data = response.json()
        assert data["votes"] == []
        assert data["timeSeriesData"] == []
        assert data["totalVotingPower"] == 180

    def test_not_found(self, client):
        """Unknown proposals are 404."""
        response = client.get("/v1/proposals/nope/results", headers=AUTH)
        assert response.status_code == 404
        assert response.json()["detail"]["error"]["code"] == "proposal_not_found"

    def test_database_unavailable(self, client, reader, monkeypatch):
        """A pool in backoff answers 503 instead of a server error."""
        def unavailable(proposal_id):
            raise DatabaseUnavailableError("Results database unavailable after 3 failures")

        monkeypatch.setattr(reader, "get_proposal", unavailable)
        response = client.get("/v1/proposals/p1/results", headers=AUTH)
        assert response.status_code == 503
        assert response.json()["detail"]["error"]["code"] == "database_unavailable"

    def test_results_are_cached(self, client):
        """The second request for the same snapshot is served from cache."""
        first = client.get("/v1/proposals/p1/results", headers=AUTH).json()
        second = client.get("/v1/proposals/p1/results", headers=AUTH).json()
        assert first == second


class TestSummaryRoute:
    """GET /v1/proposals/{id}/summary"""

    def test_summary(self, client):
        """Quorum counts only the quorum choices."""
        response = client.get("/v1/proposals/p1/summary", headers=AUTH)
        assert response.status_code == 200
        data = response.json()
        assert data["quorumVotingPower"] == 130
        assert data["hasQuorum"] is True
        assert data["hasMajoritySupport"] is True
        assert data["choices"][0]["choiceText"] == "For"


class TestSegmentsRoute:
    """GET /v1/proposals/{id}/segments"""

    def test_segments(self, client):
        """One entry per choice."""
        response = client.get("/v1/proposals/p1/segments", headers=AUTH)
        assert response.status_code == 200
        data = response.json()
        assert [s["choice"] for s in data] == [0, 1, 2]
        assert data[0]["segments"][0]["voterAddress"] == "0xa"
        assert data[0]["aggregated"]["pattern"] == "hatch"

    def test_hidden_segments(self, client):
        """Hidden votes show no segments."""
        response = client.get("/v1/proposals/hidden/segments", headers=AUTH)
        assert response.status_code == 200
        assert response.json() == []


class TestHealthz:
    """GET /healthz"""

    def test_unconfigured_database(self, client, monkeypatch):
        """A missing database configuration degrades the status."""
        import vote_processor.main as main_module
        monkeypatch.setattr(main_module, "database_configured", lambda: False)
        monkeypatch.setattr(main_module, "REQUIRED_API_KEY", TOKEN)
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "degraded", "database": "not configured", "config": "ok"}

    def test_connected_database(self, client, monkeypatch):
        """A successful ping reports the pool status."""
        import vote_processor.main as main_module

        class FakePool:
            in_backoff = False

            def ping(self):
                pass

            def status(self):
                return {"pool_open": True, "failure_count": 0, "in_backoff": False}

        monkeypatch.setattr(main_module, "database_configured", lambda: True)
        monkeypatch.setattr(main_module, "get_results_pool", lambda: FakePool())
        monkeypatch.setattr(main_module, "REQUIRED_API_KEY", TOKEN)
        response = client.get("/healthz")
        assert response.json() == {
            "status": "ok",
            "database": "connected",
            "pool_stats": {"pool_open": True, "failure_count": 0, "in_backoff": False},
            "config": "ok",
        }
