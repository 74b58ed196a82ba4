import uuid

import pytest

from app.domain.errors import LocationNotFoundError
from app.domain.practice_ranking import LocationInput
from app.services.location_ranking_pipeline import filter_client_listing, is_client_listing
from tests.conftest import (
    DEFAULT_COMPETITORS,
    FakeAnalysis,
    FakeAuditor,
    FakeDetails,
    FakeDiscovery,
    FakeProfileFetcher,
    FakeSearchFetcher,
    competitor,
    profile_payload,
)


def _create_run(run_store, tracker, location: LocationInput, batch_id: uuid.UUID | None = None) -> uuid.UUID:
    return run_store.create_pending_runs(
        batch_id=batch_id or uuid.uuid4(),
        account_id=7,
        domain="brightsmile.example",
        locations=[location],
        status_detail=tracker.initial_detail().as_dict(),
    )[0].id


def _process(pipeline, run_id, location):
    return pipeline.process(run_id=run_id, account_id=7, domain="brightsmile.example", location=location)


# ---------------------------------------------------------------------------
# Client listing filter
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("client", "listing", "expected"),
    [
        ("Bright Smile Orthodontics", "bright smile orthodontics", True),
        ("Bright Smile Orthodontics", "Bright Smile Orthodontics - Austin", True),
        ("Smile", "Bright Smile Orthodontics", False),
        ("Bright Smile Orthodontics", "Capital Dental", False),
        ("", "Capital Dental", False),
    ],
)
def test_is_client_listing(client: str, listing: str, expected: bool) -> None:
    assert is_client_listing(client, listing) is expected


def test_filter_client_listing_removes_only_matches() -> None:
    details = FakeDetails().enrich(["p1", "p2"], ())
    assert [c.place_id for c in filter_client_listing("Austin Braces Studio", details)] == ["p2"]


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


def test_process_completes_run_with_results(make_pipeline, run_store, tracker, location, collaborators) -> None:
    run_id = _create_run(run_store, tracker, location)

    result = _process(make_pipeline(), run_id, location)

    run = run_store.get_run(run_id)
    assert run.status == "completed"
    assert run.rank_score == result.rank_score
    assert run.rank_position == result.rank_position
    assert run.total_competitors == len(DEFAULT_COMPETITORS) + 1
    assert run.error_message is None
    assert run.llm_analysis == {"top_recommendations": [{"title": "Post weekly"}]}
    assert run.status_detail["currentStep"] == "done"
    assert run.status_detail["message"] == "Analysis complete with AI insights"
    assert result.analysis_included is True

    assert set(run.ranking_factors) >= {"category_match", "review_count", "sentiment"}
    raw = run.raw_data
    assert raw["competitors_discovered"] == 3
    assert raw["competitors_from_cache"] is False
    assert raw["client_gbp"]["totalReviewCount"] == 220
    assert raw["client_gbp"]["performance"] == {"calls": 7, "directions": 0, "clicks": 10}
    assert raw["client_gsc"] is None
    assert raw["website_audit"]["performance_score"] == 78
    assert [c["rankPosition"] for c in raw["competitors"]] == sorted(c["rankPosition"] for c in raw["competitors"])
    assert set(raw["benchmarks"]) == {
        "avg_score",
        "median_score",
        "avg_reviews",
        "median_reviews",
        "avg_rating",
        "avg_reviews_30d",
    }

    assert collaborators["discovery"].queries == [("orthodontist Austin, TX", 20)]
    assert collaborators["auditor"].urls == ["https://brightsmile.example"]
    assert collaborators["search_fetcher"].calls == []


def test_progress_is_monotonic_and_ends_at_100(make_pipeline, run_store, tracker, location) -> None:
    run_id = _create_run(run_store, tracker, location)

    _process(make_pipeline(), run_id, location)

    history = run_store.progress_history(run_id)
    assert history == sorted(history)
    assert history[0] == 10
    assert history[-1] == 100
    assert {10, 20, 30, 50, 60, 80, 90} <= set(history)


def test_analysis_payload_shape(make_pipeline, run_store, tracker, location, collaborators) -> None:
    batch_id = uuid.uuid4()
    run_id = _create_run(run_store, tracker, location, batch_id)

    _process(make_pipeline(), run_id, location)

    payload = collaborators["analysis"].payloads[0]["additional_data"]
    assert payload["practice_ranking_id"] == str(run_id)
    assert payload["batch_id"] == str(batch_id)
    assert payload["client"]["practice_name"] == "Bright Smile Downtown"
    assert payload["client"]["gbp_location_id"] == "locations/100"
    assert payload["client"]["gbp_account_id"] == "accounts/1"
    assert payload["client"]["gbp_data"]["business_name"] == "Bright Smile Downtown"
    assert payload["client"]["gsc_data"] is None
    assert len(payload["competitors"]) <= 5
    assert payload["benchmarks"]["top_performer"]["name"] == payload["competitors"][0]["name"]


def test_search_data_fetched_when_site_configured(make_pipeline, run_store, tracker, location) -> None:
    location = LocationInput(**{**location.__dict__, "search_site_url": "sc-domain:brightsmile.example"})
    search = FakeSearchFetcher(
        {"totals": {"impressions": 1200, "clicks": 80, "avgPosition": 7.5}, "topQueries": [{"query": "braces"}]}
    )
    analysis = FakeAnalysis()
    run_id = _create_run(run_store, tracker, location)

    _process(make_pipeline(search_fetcher=search, analysis=analysis), run_id, location)

    assert search.calls == ["sc-domain:brightsmile.example"]
    gsc = analysis.payloads[0]["additional_data"]["client"]["gsc_data"]
    assert gsc == {
        "top_queries": [{"query": "braces"}],
        "total_impressions": 1200,
        "total_clicks": 80,
        "avg_position": 7.5,
    }


# ---------------------------------------------------------------------------
# Competitor cache
# ---------------------------------------------------------------------------


def test_second_run_uses_cached_competitors(make_pipeline, run_store, tracker, location, cache_store) -> None:
    first = _create_run(run_store, tracker, location)
    _process(make_pipeline(), first, location)
    assert "orthodontist:austin, tx" in cache_store.entries

    discovery = FakeDiscovery(failures=[AssertionError("discovery must not be called")])
    second = _create_run(run_store, tracker, location)
    _process(make_pipeline(discovery=discovery), second, location)

    run = run_store.get_run(second)
    assert discovery.queries == []
    assert run.raw_data["competitors_from_cache"] is True
    messages = [
        values["status_detail"]["message"]
        for run_id, values in run_store.updates
        if run_id == second and "status_detail" in values
    ]
    assert "Using 3 cached competitors" in messages


def test_empty_discovery_is_not_cached(make_pipeline, run_store, tracker, location, cache_store) -> None:
    run_id = _create_run(run_store, tracker, location)

    _process(make_pipeline(discovery=FakeDiscovery(competitors=[])), run_id, location)

    run = run_store.get_run(run_id)
    assert cache_store.entries == {}
    assert run.status == "completed"
    assert run.rank_position == 1
    assert run.total_competitors == 1


# ---------------------------------------------------------------------------
# Degraded collaborators
# ---------------------------------------------------------------------------


def test_client_listing_is_excluded_from_competitors(make_pipeline, run_store, tracker, location) -> None:
    listings = [*DEFAULT_COMPETITORS, competitor("self", "Bright Smile Downtown")]
    run_id = _create_run(run_store, tracker, location)

    pipeline = make_pipeline(discovery=FakeDiscovery(competitors=listings), details=FakeDetails(known=listings))
    _process(pipeline, run_id, location)

    run = run_store.get_run(run_id)
    assert run.total_competitors == 4
    assert "self" not in {c["placeId"] for c in run.raw_data["competitors"]}
    assert run.raw_data["competitors_discovered"] == 3


def test_detail_failure_falls_back_to_discovery_data(make_pipeline, run_store, tracker, location) -> None:
    run_id = _create_run(run_store, tracker, location)

    _process(make_pipeline(details=FakeDetails(error=RuntimeError("actor failed"))), run_id, location)

    run = run_store.get_run(run_id)
    assert run.status == "completed"
    stored = {c["placeId"]: c for c in run.raw_data["competitors"]}
    assert stored["p1"]["totalReviews"] == 400
    assert stored["p1"]["reviewsLast30d"] == 0
    assert stored["p1"]["hasKeywordInName"] is True


def test_audit_failure_is_not_fatal(make_pipeline, run_store, tracker, location) -> None:
    run_id = _create_run(run_store, tracker, location)

    _process(make_pipeline(auditor=FakeAuditor(error=RuntimeError("lighthouse timeout"))), run_id, location)

    run = run_store.get_run(run_id)
    assert run.status == "completed"
    assert run.raw_data["website_audit"] is None


def test_analysis_failure_completes_without_insights(make_pipeline, run_store, tracker, location) -> None:
    run_id = _create_run(run_store, tracker, location)

    result = _process(make_pipeline(analysis=FakeAnalysis(error=RuntimeError("502"))), run_id, location)

    run = run_store.get_run(run_id)
    assert run.status == "completed"
    assert run.llm_analysis is None
    assert run.status_detail["message"] == "Analysis complete (without AI insights)"
    assert result.analysis_included is False


def test_unconfigured_analysis_is_skipped(make_pipeline, run_store, tracker, location) -> None:
    analysis = FakeAnalysis(configured=False)
    run_id = _create_run(run_store, tracker, location)

    _process(make_pipeline(analysis=analysis), run_id, location)

    assert analysis.payloads == []
    assert run_store.get_run(run_id).status_detail["message"] == "Analysis complete"


def test_discovery_failure_propagates(make_pipeline, run_store, tracker, location) -> None:
    run_id = _create_run(run_store, tracker, location)
    pipeline = make_pipeline(discovery=FakeDiscovery(failures=[RuntimeError("apify down")]))

    with pytest.raises(RuntimeError, match="apify down"):
        _process(pipeline, run_id, location)

    assert run_store.get_run(run_id).status == "processing"


def test_missing_run_raises(make_pipeline, location) -> None:
    with pytest.raises(LocationNotFoundError):
        _process(make_pipeline(), uuid.uuid4(), location)


def test_client_listing_matches_display_name_not_profile_title(
    make_pipeline, run_store, tracker, location, collaborators
) -> None:
    listings = [competitor("self", "Bright Smile Downtown"), competitor("p2", "Capital Dental")]
    profile_fetcher = FakeProfileFetcher(profile_payload(title="Bright Smile Orthodontics of Austin"))
    run_id = _create_run(run_store, tracker, location)

    pipeline = make_pipeline(
        profile_fetcher=profile_fetcher,
        discovery=FakeDiscovery(competitors=listings),
        details=FakeDetails(known=listings),
    )
    _process(pipeline, run_id, location)

    run = run_store.get_run(run_id)
    assert [c["placeId"] for c in run.raw_data["competitors"]] == ["p2"]
    assert run.total_competitors == 2
    assert collaborators["analysis"].payloads[0]["additional_data"]["client"]["gbp_data"]["business_name"] == (
        "Bright Smile Downtown"
    )


def test_profile_title_names_client_without_display_name(make_pipeline, run_store, tracker, location) -> None:
    location = LocationInput(**{**location.__dict__, "display_name": None})
    listings = [*DEFAULT_COMPETITORS, competitor("self", "Bright Smile Orthodontics")]
    run_id = _create_run(run_store, tracker, location)

    pipeline = make_pipeline(discovery=FakeDiscovery(competitors=listings), details=FakeDetails(known=listings))
    _process(pipeline, run_id, location)

    assert "self" not in {c["placeId"] for c in run_store.get_run(run_id).raw_data["competitors"]}
