"""Tests for the decision queue."""

import pytest
import pytest_asyncio

from api.schemas.common import PaginationParams
from api.services.decisions import list_decisions
from api.services.normalization import normalize_ratings
from database.models import InternalResult


@pytest_asyncio.fixture
async def queue(seed):
    reviewers = [await seed.reviewer() for _ in range(5)]
    sparse = await seed.applicant(ratings=[(reviewers[0], 3)], normalized_avg_rating=300)
    confident = await seed.applicant(
        ratings=[(r, 8) for r in reviewers], normalized_avg_rating=800
    )
    unreviewed = await seed.applicant(status=InternalResult.WAITLISTED)
    await seed.applicant(submitted=False)
    return {"sparse": sparse, "confident": confident, "unreviewed": unreviewed}


class TestListDecisions:

    @pytest.mark.asyncio
    async def test_sorted_by_confidence(self, queue, session_factory):
        async with session_factory() as session:
            page = await list_decisions(
                session, PaginationParams(), sort="confidence", order="desc"
            )

        assert [item.id for item in page.items] == [
            queue["confident"].id, queue["sparse"].id, queue["unreviewed"].id,
        ]
        assert [item.confidence for item in page.items] == [94, 62, 0]

    @pytest.mark.asyncio
    async def test_sorted_by_normalized_rating_nulls_last(self, queue, session_factory):
        async with session_factory() as session:
            desc = await list_decisions(session, PaginationParams(), order="desc")
            asc = await list_decisions(session, PaginationParams(), order="asc")

        assert [item.normalized_avg_rating for item in desc.items] == [800, 300, None]
        assert [item.normalized_avg_rating for item in asc.items] == [300, 800, None]

    @pytest.mark.asyncio
    async def test_pagination(self, queue, session_factory):
        async with session_factory() as session:
            page = await list_decisions(
                session, PaginationParams(page=2, page_size=2), sort="review_count"
            )

        assert page.total == 3
        assert page.total_pages == 2
        assert page.page == 2
        assert [item.id for item in page.items] == [queue["unreviewed"].id]

    @pytest.mark.asyncio
    async def test_confidence_sort_past_last_page(self, queue, session_factory):
        async with session_factory() as session:
            page = await list_decisions(
                session, PaginationParams(page=5, page_size=2), sort="confidence"
            )

        assert page.items == []
        assert page.total == 3

    @pytest.mark.asyncio
    async def test_summary(self, queue, session_factory):
        async with session_factory() as session:
            before = await list_decisions(session, PaginationParams())
        async with session_factory() as session:
            await normalize_ratings(session)
        async with session_factory() as session:
            after = await list_decisions(session, PaginationParams())

        assert before.status_counts.pending == 2
        assert before.status_counts.waitlisted == 1
        assert before.last_normalized_at is None
        assert after.last_normalized_at is not None
        assert after.items[0].internal_result == "pending"
