import pytest

from libs.common.errors import ConflictError, InvalidRequestError, NotFoundError
from libs.firestore.ratings import (
    RATINGS,
    compute_rating_stats,
    create_rating,
    delete_rating,
    find_rating_for_pair,
    get_coach_rating_stats,
    get_rating,
    list_ratings,
    update_rating,
)
from libs.firestore.subscriptions import SUBSCRIPTIONS


class TestComputeRatingStats:
    def test_no_ratings(self):
        assert compute_rating_stats([]) == {
            "averageRating": 0,
            "totalReviews": 0,
            "ratingDistribution": {1: 0, 2: 0, 3: 0, 4: 0, 5: 0},
        }

    def test_average_is_rounded_half_up_to_one_decimal(self):
        stats = compute_rating_stats([5, 5, 4])

        assert stats["averageRating"] == 4.7
        assert stats["totalReviews"] == 3
        assert stats["ratingDistribution"] == {1: 0, 2: 0, 3: 0, 4: 1, 5: 2}

    def test_exact_half_rounds_up(self):
        # 4.25 rounds to 4.3, which binary float rounding would get wrong
        assert compute_rating_stats([5, 4, 4, 4])["averageRating"] == 4.3

    def test_non_numeric_values_are_ignored(self):
        stats = compute_rating_stats([3, None, "5", True])

        assert stats["totalReviews"] == 1
        assert stats["averageRating"] == 3.0


@pytest.fixture
def rated_pair(fake_firestore, seed_pair):
    fake_firestore.seed(SUBSCRIPTIONS, "s1", {"coachId": "c1", "playerId": "p1", "status": "stopped"})
    return seed_pair


@pytest.mark.asyncio
async def test_create_rating_updates_coach_aggregate(fake_firestore, rated_pair):
    rating = await create_rating(fake_firestore, "c1", "p1", 4, review="Solid")

    assert rating.id == "c1__p1"
    assert rating.player_name == "Pat Player"
    coach = fake_firestore.get("coaches", "c1")
    assert coach["averageRating"] == 4.0
    assert coach["totalReviews"] == 1


@pytest.mark.asyncio
async def test_create_rating_defaults(fake_firestore):
    fake_firestore.seed(SUBSCRIPTIONS, "s1", {"coachId": "c1", "playerId": "ghost", "status": "pending"})

    rating = await create_rating(fake_firestore, "c1", "ghost", 3)

    assert rating.player_name == "Anonymous"
    assert rating.review == ""
    stored = fake_firestore.get(RATINGS, "c1__ghost")
    assert stored["review"] == ""


@pytest.mark.asyncio
async def test_create_rating_requires_subscription(fake_firestore, seed_pair):
    with pytest.raises(InvalidRequestError, match="must have a subscription"):
        await create_rating(fake_firestore, "c1", "p1", 5)


@pytest.mark.asyncio
async def test_second_rating_for_pair_is_rejected(fake_firestore, rated_pair):
    await create_rating(fake_firestore, "c1", "p1", 5)

    with pytest.raises(ConflictError, match="already rated this coach"):
        await create_rating(fake_firestore, "c1", "p1", 1)


@pytest.mark.asyncio
async def test_legacy_rating_counts_as_existing(fake_firestore, rated_pair):
    fake_firestore.seed(RATINGS, "random-id", {"coachId": "c1", "playerId": "p1", "rating": 2})

    with pytest.raises(ConflictError):
        await create_rating(fake_firestore, "c1", "p1", 5)


@pytest.mark.asyncio
async def test_update_and_delete_recompute_aggregate(fake_firestore, rated_pair):
    # Arrange
    fake_firestore.seed(SUBSCRIPTIONS, "s2", {"coachId": "c1", "playerId": "p2", "status": "active"})
    await create_rating(fake_firestore, "c1", "p1", 5)
    await create_rating(fake_firestore, "c1", "p2", 4)
    assert fake_firestore.get("coaches", "c1")["averageRating"] == 4.5

    # Act / Assert: update
    updated = await update_rating(fake_firestore, "c1__p2", rating=2, review="Changed my mind")
    assert updated.rating == 2
    assert updated.review == "Changed my mind"
    assert fake_firestore.get("coaches", "c1")["averageRating"] == 3.5

    # Act / Assert: delete
    assert await delete_rating(fake_firestore, "c1__p1") == {"message": "Rating deleted successfully"}
    coach = fake_firestore.get("coaches", "c1")
    assert coach["averageRating"] == 2.0
    assert coach["totalReviews"] == 1


@pytest.mark.asyncio
async def test_deleting_last_rating_resets_aggregate(fake_firestore, rated_pair):
    await create_rating(fake_firestore, "c1", "p1", 5)

    await delete_rating(fake_firestore, "c1__p1")

    coach = fake_firestore.get("coaches", "c1")
    assert coach["averageRating"] == 0
    assert coach["totalReviews"] == 0


@pytest.mark.asyncio
async def test_aggregate_tolerates_missing_coach(fake_firestore):
    fake_firestore.seed(SUBSCRIPTIONS, "s1", {"coachId": "nobody", "playerId": "p1", "status": "active"})

    rating = await create_rating(fake_firestore, "nobody", "p1", 5)

    assert rating.id == "nobody__p1"
    assert fake_firestore.get("coaches", "nobody") is None


@pytest.mark.asyncio
async def test_missing_rating_operations_raise_not_found(fake_firestore):
    with pytest.raises(NotFoundError, match="Rating not found"):
        await get_rating(fake_firestore, "missing")
    with pytest.raises(NotFoundError):
        await update_rating(fake_firestore, "missing", rating=3)
    with pytest.raises(NotFoundError):
        await delete_rating(fake_firestore, "missing")


@pytest.mark.asyncio
async def test_find_list_and_stats(fake_firestore, rated_pair):
    assert await find_rating_for_pair(fake_firestore, "c1", "p1") is None

    fake_firestore.seed(
        RATINGS, "c1__p1", {"coachId": "c1", "playerId": "p1", "rating": 5, "createdAt": "2024-01-01T00:00:00"}
    )
    fake_firestore.seed(
        RATINGS, "c1__p2", {"coachId": "c1", "playerId": "p2", "rating": 4, "createdAt": "2024-02-01T00:00:00"}
    )
    fake_firestore.seed(
        RATINGS, "c2__p1", {"coachId": "c2", "playerId": "p1", "rating": 1, "createdAt": "2024-03-01T00:00:00"}
    )

    found = await find_rating_for_pair(fake_firestore, "c1", "p1")
    coach_ratings = await list_ratings(fake_firestore, coach_id="c1")
    stats = await get_coach_rating_stats(fake_firestore, "c1")

    assert found.rating == 5
    assert [r.id for r in coach_ratings] == ["c1__p2", "c1__p1"]
    assert stats["averageRating"] == 4.5
    assert stats["ratingDistribution"][4] == 1
