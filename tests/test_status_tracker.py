import uuid

from app.domain.practice_ranking import LocationInput
from app.services.ranking_status import RANKING_STEPS, RankingStep, StatusDetail, steps_before
from db.models.practice_ranking import PracticeRankingStatus


def _pending_run(run_store, tracker) -> uuid.UUID:
    runs = run_store.create_pending_runs(
        batch_id=uuid.uuid4(),
        account_id=7,
        domain="brightsmile.example",
        locations=[LocationInput(location_id="loc-1")],
        status_detail=tracker.initial_detail().as_dict(),
    )
    return runs[0].id


def test_initial_detail_is_queued(tracker) -> None:
    detail = tracker.initial_detail().as_dict()

    assert detail["currentStep"] == "queued"
    assert detail["progress"] == 0
    assert detail["stepsCompleted"] == []
    assert detail["timestamps"] == {"started_at": "2026-03-01T12:00:00+00:00"}


def test_transition_persists_status_and_snapshot_together(run_store, tracker) -> None:
    run_id = _pending_run(run_store, tracker)

    detail = tracker.transition(
        run_id,
        PracticeRankingStatus.PROCESSING,
        RankingStep.DISCOVERING_COMPETITORS,
        "Discovering local competitors...",
        30,
    )

    run = run_store.get_run(run_id)
    assert run.status == "processing"
    assert run.status_detail == detail.as_dict()
    assert detail.steps_completed == ["queued", "fetching_client_profile", "fetching_search_console"]
    assert "discovering_competitors_at" in detail.timestamps


def test_progress_never_regresses(run_store, tracker) -> None:
    run_id = _pending_run(run_store, tracker)
    detail = tracker.transition(run_id, "processing", RankingStep.SCRAPING_COMPETITORS, "Scraping", 50)

    detail = tracker.transition(run_id, "processing", RankingStep.QUEUED, "Retrying", 0, detail)

    assert detail.progress == 50
    assert run_store.progress_history(run_id) == [50, 50]


def test_terminal_runs_are_never_modified(run_store, tracker) -> None:
    run_id = _pending_run(run_store, tracker)
    done = tracker.complete(run_id, "Analysis complete", extra={"rank_score": 80.0, "rank_position": 1})
    assert done.progress == 100
    assert done.current_step == "done"

    returned = tracker.transition(run_id, "processing", RankingStep.CALCULATING_SCORES, "late write", 80, done)

    run = run_store.get_run(run_id)
    assert returned == done
    assert run.status == "completed"
    assert run.rank_score == 80.0
    assert run.status_detail["message"] == "Analysis complete"


def test_fail_clears_score_and_keeps_step(run_store, tracker) -> None:
    run_id = _pending_run(run_store, tracker)
    detail = tracker.transition(run_id, "processing", RankingStep.AUDITING_WEBSITE, "Auditing", 60)

    tracker.fail(run_id, "boom", detail)

    run = run_store.get_run(run_id)
    assert run.status == "failed"
    assert run.error_message == "boom"
    assert run.rank_score is None
    assert run.status_detail["currentStep"] == "auditing_website"
    assert run.status_detail["progress"] == 60


def test_missing_run_is_ignored(tracker) -> None:
    detail = tracker.transition(uuid.uuid4(), "processing", RankingStep.QUEUED, "x", 0)
    assert detail.current_step == "queued"


def test_status_detail_round_trips_through_json_shape() -> None:
    detail = StatusDetail(
        current_step=RankingStep.CALCULATING_SCORES,
        message="Calculating ranking scores...",
        progress=80,
        steps_completed=steps_before(RankingStep.CALCULATING_SCORES),
        timestamps={"started_at": "2026-03-01T12:00:00+00:00"},
    )
    assert StatusDetail.from_dict(detail.as_dict()) == detail


def test_step_order() -> None:
    assert RANKING_STEPS[0] == "queued"
    assert RANKING_STEPS[-1] == "done"
    assert steps_before("unknown") == []
