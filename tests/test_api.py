import uuid

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.dependencies import get_cache, get_orchestrator
from app.api.routers import practice_ranking_router
from app.services.batch_state import BatchStateRegistry
from app.services.ranking_batch_orchestrator import RankingBatchOrchestrator
from app.services.retry_policy import RetryPolicy
from tests.conftest import DEFAULT_COMPETITORS, RecordingExecutor


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def orchestrator(make_pipeline, run_store, tracker, executor, clock) -> RankingBatchOrchestrator:
    return RankingBatchOrchestrator(
        store=run_store,
        pipeline=make_pipeline(),
        tracker=tracker,
        executor=executor,
        registry=BatchStateRegistry(clock=clock),
        retry_policy=RetryPolicy.fixed(max_attempts=3, delay_seconds=0.0),
        sleep=lambda seconds: None,
    )


@pytest.fixture
def client(orchestrator, cache) -> TestClient:
    app = FastAPI()
    app.include_router(practice_ranking_router)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_cache] = lambda: cache
    return TestClient(app)


def _batch_payload(**overrides):
    payload = {
        "account_id": 7,
        "domain": "brightsmile.example",
        "specialty": "orthodontist",
        "market_location": "Austin, TX",
        "locations": [
            {"location_id": "locations/1", "display_name": "Downtown"},
            {"location_id": "locations/2", "display_name": "Westlake"},
        ],
    }
    payload.update(overrides)
    return payload


def test_trigger_batch_returns_accepted(client: TestClient, executor: RecordingExecutor) -> None:
    response = client.post("/practice-ranking/batches", json=_batch_payload())

    assert response.status_code == 202
    body = response.json()
    assert body["total_locations"] == 2
    assert body["status"] == "processing"
    assert len(body["run_ids"]) == 2
    assert len(executor.submitted) == 1


def test_trigger_batch_rejects_duplicate_locations(client: TestClient) -> None:
    payload = _batch_payload(locations=[{"location_id": "a"}, {"location_id": "a"}])

    response = client.post("/practice-ranking/batches", json=payload)

    assert response.status_code == 400
    assert "duplicate location_id" in response.json()["detail"]


def test_trigger_batch_rejects_malformed_body(client: TestClient) -> None:
    response = client.post("/practice-ranking/batches", json={"domain": "x"})
    assert response.status_code == 422


def test_batch_status_and_run_result(client: TestClient, executor: RecordingExecutor) -> None:
    accepted = client.post("/practice-ranking/batches", json=_batch_payload()).json()
    executor.run_all()

    status = client.get(f"/practice-ranking/batches/{accepted['batch_id']}")
    assert status.status_code == 200
    assert status.json()["status"] == "completed"
    assert status.json()["completed_count"] == 2
    assert status.json()["source"] == "memory"

    run_id = accepted["run_ids"][0]
    run_status = client.get(f"/practice-ranking/runs/{run_id}/status").json()
    assert run_status["status"] == "completed"
    assert run_status["status_detail"]["progress"] == 100
    assert "raw_data" not in run_status

    result = client.get(f"/practice-ranking/runs/{run_id}").json()
    assert result["domain"] == "brightsmile.example"
    assert result["raw_data"]["competitors_discovered"] == len(DEFAULT_COMPETITORS)
    assert result["llm_analysis"] == {"top_recommendations": [{"title": "Post weekly"}]}


def test_unknown_ids_return_404(client: TestClient) -> None:
    missing = uuid.uuid4()

    assert client.get(f"/practice-ranking/batches/{missing}").status_code == 404
    assert client.get(f"/practice-ranking/runs/{missing}").status_code == 404
    assert client.get(f"/practice-ranking/runs/{missing}/status").status_code == 404
    assert client.delete(f"/practice-ranking/runs/{missing}").status_code == 404
    assert client.get("/practice-ranking/latest", params={"account_id": 7}).status_code == 404


def test_list_latest_and_delete(client: TestClient, executor: RecordingExecutor) -> None:
    accepted = client.post("/practice-ranking/batches", json=_batch_payload()).json()
    executor.run_all()

    listed = client.get("/practice-ranking/runs", params={"account_id": 7, "status": "completed"}).json()
    assert len(listed["runs"]) == 2

    latest = client.get(
        "/practice-ranking/latest",
        params={"account_id": 7, "gbp_location_id": "locations/1"},
    ).json()
    assert latest["run_id"] == accepted["run_ids"][0]

    assert client.delete(f"/practice-ranking/runs/{accepted['run_ids'][0]}").status_code == 204
    assert client.get(f"/practice-ranking/runs/{accepted['run_ids'][0]}").status_code == 404


def test_competitor_cache_refresh_and_stats(client: TestClient, cache) -> None:
    cache.set("orthodontist", "Austin, TX", DEFAULT_COMPETITORS)

    stats = client.get("/practice-ranking/competitor-cache/stats").json()
    assert stats["total_entries"] == 1
    assert stats["active_entries"] == 1

    refreshed = client.post(
        "/practice-ranking/competitor-cache/refresh",
        json={"specialty": "Orthodontist", "market_location": "Austin, TX"},
    ).json()
    assert refreshed == {"cache_key": "orthodontist:austin, tx", "invalidated": True}
    assert client.get("/practice-ranking/competitor-cache/stats").json()["total_entries"] == 0
