import mongomock
import pytest
from bson import ObjectId

from reviews import average_rating, rating_distribution, update_seller_rating


@pytest.mark.parametrize("ratings, expected", [
    ([], 0),
    ([5, 4, 3], 4.0),
    ([4, 5], 4.5),
    ([4, 4, 5], 4.3),
    ([3, 3, 3, 4], 3.3),
    ([1], 1.0),
])
def test_average_rating(ratings, expected):
    assert average_rating(ratings) == expected


def test_rating_distribution():
    reviews = [{"rating": 5}, {"rating": 5}, {"rating": 2}]
    assert rating_distribution(reviews) == {5: 2, 4: 0, 3: 0, 2: 1, 1: 0}


def test_update_seller_rating():
    db = mongomock.MongoClient()["reviews_test"]
    seller_id = str(db["user"].insert_one({"first_name": "Ana", "rating": 0}).inserted_id)
    for rating in (5, 4, 3):
        db["sellerreview"].insert_one({"seller_id": seller_id, "rating": rating})
    db["sellerreview"].insert_one({"seller_id": "someone-else", "rating": 1})

    assert update_seller_rating(db, seller_id) == 4.0
    assert db["user"].find_one({"_id": ObjectId(seller_id)})["rating"] == 4.0

    db["sellerreview"].delete_many({"seller_id": seller_id})
    assert update_seller_rating(db, seller_id) == 0
    assert db["user"].find_one({"_id": ObjectId(seller_id)})["rating"] == 0
