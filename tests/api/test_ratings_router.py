from fastapi import status


def _rate(api_client, rating=5, **extra):
    return api_client.post("/api/ratings", json={"coachId": "c1", "playerId": "p1", "rating": rating, **extra})


def test_rate_coach_once(api_client, fake_firestore, seed_pair):
    fake_firestore.seed("subscriptions", "s1", {"coachId": "c1", "playerId": "p1", "status": "active"})

    created = _rate(api_client, review="Great sessions")
    duplicate = _rate(api_client, rating=1)

    assert created.status_code == status.HTTP_201_CREATED
    assert created.json()["id"] == "c1__p1"
    assert created.json()["playerName"] == "Pat Player"
    assert duplicate.status_code == status.HTTP_400_BAD_REQUEST
    assert duplicate.json()["error"] == "CONFLICT"
    assert fake_firestore.get("coaches", "c1")["totalReviews"] == 1


def test_rating_without_subscription_is_rejected(api_client, seed_pair):
    response = _rate(api_client)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "INVALID_REQUEST"


def test_rating_out_of_range_is_rejected(api_client):
    assert _rate(api_client, rating=6).status_code == 422


def test_pair_lookup_and_stats(api_client, fake_firestore):
    assert api_client.get("/api/ratings/coach/c1/player/p1").json() is None

    fake_firestore.seed("ratings", "c1__p1", {"coachId": "c1", "playerId": "p1", "rating": 5})
    fake_firestore.seed("ratings", "c1__p2", {"coachId": "c1", "playerId": "p2", "rating": 4})

    pair = api_client.get("/api/ratings/coach/c1/player/p1")
    stats = api_client.get("/api/ratings/coach/c1/stats")

    assert pair.json()["rating"] == 5
    assert stats.json() == {
        "averageRating": 4.5,
        "totalReviews": 2,
        "ratingDistribution": {"1": 0, "2": 0, "3": 0, "4": 1, "5": 1},
    }


def test_update_and_delete_rating(api_client, fake_firestore, seed_pair):
    fake_firestore.seed("ratings", "c1__p1", {"coachId": "c1", "playerId": "p1", "rating": 5, "review": "ok"})

    updated = api_client.patch("/api/ratings/c1__p1", json={"rating": 3})
    deleted = api_client.delete("/api/ratings/c1__p1")
    missing = api_client.get("/api/ratings/c1__p1")

    assert updated.json()["rating"] == 3
    assert updated.json()["review"] == "ok"
    assert deleted.json() == {"message": "Rating deleted successfully"}
    assert missing.status_code == status.HTTP_404_NOT_FOUND
