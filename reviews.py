import logging
import math
from typing import Dict, Iterable, List

from bson import ObjectId

logger = logging.getLogger(__name__)

SORT_OPTIONS = {
    "recent": ("created_at", -1),
    "oldest": ("created_at", 1),
    "highest": ("rating", -1),
    "lowest": ("rating", 1),
}


def average_rating(ratings: Iterable[float]) -> float:
    ratings = list(ratings)
    if not ratings:
        return 0
    mean = sum(ratings) / len(ratings)
    # half-up to one decimal
    return math.floor(mean * 10 + 0.5) / 10


def rating_distribution(reviews: Iterable[Dict]) -> Dict[int, int]:
    counts = {5: 0, 4: 0, 3: 0, 2: 0, 1: 0}
    for r in reviews:
        rating = int(r.get("rating", 0))
        if rating in counts:
            counts[rating] += 1
    return counts


def update_seller_rating(db, seller_id: str) -> float:
    """Recompute a seller's aggregate rating from all of their reviews.

    Runs after every review create/update/delete. Not transactional with the
    review write: a failure in between leaves the previous aggregate.
    """
    reviews: List[Dict] = list(db["sellerreview"].find({"seller_id": seller_id}, {"rating": 1}))
    rating = average_rating(r["rating"] for r in reviews)
    db["user"].update_one({"_id": ObjectId(seller_id)}, {"$set": {"rating": rating}})
    logger.info("Seller %s rating set to %s from %d reviews", seller_id, rating, len(reviews))
    return rating
