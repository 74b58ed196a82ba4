import pytest

from ranking import (
    FACTOR_WEIGHTS,
    PracticeData,
    PracticeRankingModel,
    calculate_ranking_score,
    factors_for_storage,
    normalize_specialty,
    specialty_keywords,
)


def _strong_practice() -> PracticeData:
    return PracticeData(
        name="Austin Braces Studio",
        primary_category="Orthodontist",
        total_reviews=800,
        average_rating=4.8,
        reviews_last_30d=20,
        posts_last_90d=12,
        has_website=True,
        has_phone=True,
        has_hours=True,
        hours_complete=True,
        description_length=750,
        photos_count=50,
    )


def test_factor_weights_sum_to_one() -> None:
    assert sum(FACTOR_WEIGHTS.values()) == pytest.approx(1.0)


def test_strong_practice_scores_near_maximum() -> None:
    result = calculate_ranking_score(_strong_practice(), "orthodontist")

    assert result.total_score == 99.5
    assert result.factors.category_match.score == 25.0
    assert result.factors.review_count.score == 20.0
    assert result.factors.star_rating.score == 15.0
    assert result.factors.keyword_name.score == 10.0
    assert result.factors.sentiment.score == 4.5


def test_empty_practice_only_earns_default_sentiment() -> None:
    result = calculate_ranking_score(PracticeData(), "orthodontics")

    assert result.total_score == 4.0
    assert result.factors.sentiment.details == "Good sentiment: 80% positive reviews"


def test_total_equals_sum_of_breakdown() -> None:
    result = calculate_ranking_score(_strong_practice(), "orthodontics")
    assert [entry.factor for entry in result.breakdown] == list(FACTOR_WEIGHTS)
    assert sum(entry.weighted_score for entry in result.breakdown) == pytest.approx(result.total_score)


@pytest.mark.parametrize(
    ("category", "expected"),
    [
        ("Orthodontist", 25.0),
        ("Dentist", 15.0),
        ("Pharmacy", 0.0),
        ("", 0.0),
    ],
)
def test_category_match(category: str, expected: float) -> None:
    assert PracticeRankingModel().category_match(category, "orthodontics").score == expected


@pytest.mark.parametrize(
    ("rating", "expected"),
    [
        (5.0, 15.0),
        (4.8, 15.0),
        (4.0, 9.0),
        (3.5, 4.5),
        (0.0, 0.0),
    ],
)
def test_star_rating_piecewise(rating: float, expected: float) -> None:
    assert PracticeRankingModel().star_rating(rating).score == expected


def test_review_count_is_logarithmic_and_capped() -> None:
    model = PracticeRankingModel()
    assert model.review_count(0).score == 0.0
    assert model.review_count(800).score == 20.0
    assert model.review_count(5000).score == 20.0
    assert model.review_count(100).score < model.review_count(400).score < 20.0


def test_review_velocity_linear_to_excellent() -> None:
    model = PracticeRankingModel()
    assert model.review_velocity(10).score == 5.0
    assert model.review_velocity(40).score == 10.0


def test_nap_consistency_weights() -> None:
    model = PracticeRankingModel()
    assert model.nap_consistency(has_website=True, has_phone=True, has_hours=True).score == 8.0
    assert model.nap_consistency(has_website=True, has_phone=False, has_hours=False).score == 2.4
    incomplete = model.nap_consistency(has_website=True, has_phone=True, has_hours=True, hours_complete=False)
    assert incomplete.score == 7.2
    assert incomplete.details == "Missing NAP elements: complete hours"


def test_keyword_name_requires_specialty_keyword() -> None:
    model = PracticeRankingModel()
    assert model.keyword_name("Austin Braces Studio", "orthodontics").score == 10.0
    assert model.keyword_name("Austin Family Dental", "orthodontics").score == 0.0
    assert model.keyword_name("Austin Braces Studio", "general").score == 0.0


def test_sentiment_fallbacks() -> None:
    model = PracticeRankingModel()
    assert model.sentiment(0.5, 4.9).score == 2.5
    assert model.sentiment(None, 5.0).score == 5.0
    assert model.sentiment(None, 2.0).score == 0.0
    assert model.sentiment(None, None).score == 4.0


def test_factors_for_storage_shape() -> None:
    practice = _strong_practice()
    stored = factors_for_storage(calculate_ranking_score(practice, "orthodontics"), practice)

    assert set(stored) == set(FACTOR_WEIGHTS)
    assert stored["category_match"]["score"] == 1.0
    assert stored["category_match"]["weighted"] == 25.0
    assert stored["category_match"]["weight"] == 0.25
    assert "value" not in stored["category_match"]
    assert stored["review_count"]["value"] == 800
    assert stored["star_rating"]["value"] == 4.8


def test_specialty_aliases() -> None:
    assert normalize_specialty("Orthodontist") == "orthodontics"
    assert normalize_specialty("  oral surgeon ") == "oral_surgery"
    assert normalize_specialty("veterinarian") == "general"
    assert normalize_specialty(None) == "general"
    assert specialty_keywords("general") == ()
    assert "braces" in specialty_keywords("orthodontist")


def test_practice_data_from_loose_mapping() -> None:
    practice = PracticeData.from_mapping(
        {"name": "X", "totalReviews": "12", "averageRating": None, "hasWebsite": "true", "photosCount": -3}
    )

    assert practice.total_reviews == 12
    assert practice.average_rating is None
    assert practice.has_website is True
    assert practice.hours_complete is True
    assert practice.photos_count == 0
