from __future__ import annotations
import logging
from typing import Iterable, Tuple

from database import get_documents, parse_object_id, update_document

logger = logging.getLogger(__name__)


def average_rating(ratings: Iterable[int]) -> Tuple[float, int]:
    values = list(ratings)
    if not values:
        return 0, 0
    return round(sum(values) / len(values), 1), len(values)


async def recompute_product_rating(product_id: str) -> Tuple[float, int]:
    """Reload every review of the product and store the fresh mean and count.

    The aggregate is rebuilt from scratch on each review mutation; concurrent
    writes on the same product can leave it reflecting a stale review set
    until the next mutation.
    """
    reviews = await get_documents("review", {"product_id": product_id})
    rating, count = average_rating(r["rating"] for r in reviews)
    oid = parse_object_id(product_id)
    if oid is not None:
        await update_document("product", oid, {"rating": rating, "reviews_count": count})
    logger.info("Product %s rating recomputed: %s from %d reviews", product_id, rating, count)
    return rating, count
