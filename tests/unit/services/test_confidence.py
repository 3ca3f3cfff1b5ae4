"""
Tests for confidence scoring.

Tests:
- Score formula for unanimous, split and sparse reviews
- Monotonic growth with review count, saturating at the configured cap
- Bounds and custom weights
- Database lookups for one and many applications
"""

import pytest

from api.services.confidence import (
    calculate_confidence,
    compute_confidence,
    compute_confidences,
)


class TestCalculateConfidence:
    """Tests for calculate_confidence."""

    def test_unanimous_full_coverage(self):
        # coverage 1.0, agreement 1.0, reliability 0.7 -> (0.4 + 0.4 + 0.14) * 100
        assert calculate_confidence([6, 6, 6, 6, 6]) == 94

    def test_no_reviews(self):
        assert calculate_confidence([]) == 0

    def test_single_review(self):
        assert calculate_confidence([7]) == 62

    def test_split_reviews(self):
        # stdev(2, 8) = 4.24 -> agreement 0.15
        assert calculate_confidence([2, 8]) == 36

    def test_agreement_floors_at_zero(self):
        assert calculate_confidence([1, 10]) == 30

    def test_monotonic_in_review_count(self):
        scores = [calculate_confidence([6] * n) for n in range(1, 9)]

        assert scores == sorted(scores)
        assert scores[:5] == [62, 70, 78, 86, 94]
        # Flat beyond the cap
        assert set(scores[4:]) == {94}

    def test_custom_cap_and_weights(self):
        assert calculate_confidence([5, 5], max_reviews=2, weights=(0.5, 0.5, 0.0)) == 100
        assert calculate_confidence([5], max_reviews=10, weights=(1.0, 0.0, 0.0)) == 10

    @pytest.mark.parametrize("ratings", [
        [1], [10], [1, 10, 1, 10], [5] * 20, [1, 2, 3, 4, 5, 6, 7, 8, 9, 10],
    ])
    def test_bounds(self, ratings):
        assert 0 <= calculate_confidence(ratings) <= 100


class TestConfidenceLookups:
    """Confidence computed from stored reviews."""

    @pytest.mark.asyncio
    async def test_single_application(self, seed, session_factory):
        reviewers = [await seed.reviewer() for _ in range(5)]
        app = await seed.applicant(ratings=[(r, 6) for r in reviewers])

        async with session_factory() as session:
            assert await compute_confidence(session, app.id) == 94

    @pytest.mark.asyncio
    async def test_unknown_or_unreviewed_application(self, seed, session_factory):
        app = await seed.applicant()

        async with session_factory() as session:
            assert await compute_confidence(session, app.id) == 0
            assert await compute_confidence(session, "missing") == 0

    @pytest.mark.asyncio
    async def test_batch_matches_single(self, seed, session_factory):
        first, second = await seed.reviewer(), await seed.reviewer()
        split = await seed.applicant(ratings=[(first, 2), (second, 8)])
        single = await seed.applicant(ratings=[(first, 7)])
        empty = await seed.applicant()

        async with session_factory() as session:
            batch = await compute_confidences(session, [split.id, single.id, empty.id])
            one = await compute_confidence(session, split.id)

        assert batch == {split.id: 36, single.id: 62, empty.id: 0}
        assert batch[split.id] == one

    @pytest.mark.asyncio
    async def test_batch_without_ids_scores_reviewed_applications(self, seed, session_factory):
        reviewer = await seed.reviewer()
        reviewed = await seed.applicant(ratings=[(reviewer, 7)])
        await seed.applicant()

        async with session_factory() as session:
            assert await compute_confidences(session) == {reviewed.id: 62}
            assert await compute_confidences(session, []) == {}
