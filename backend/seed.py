from __future__ import annotations
import asyncio
import logging
from typing import List

from pymongo.errors import DuplicateKeyError

from database import count_documents, create_document, ensure_indexes
from schemas import Category, FragranceType, Product

logger = logging.getLogger(__name__)

# Ratings start at zero; they are derived from reviews once those arrive
SEED_PRODUCTS: List[dict] = [
    {"name": "Royal Oud", "description": "A luxurious blend of rare oud wood, amber, and musk creating an opulent and mysterious fragrance.", "price": 299.99, "image": "/images/1.png", "images": ["/images/1.png", "/images/2.png"], "category": "Woody", "fragrance_type": "Oriental", "fragrance_notes": ["Oud", "Amber", "Musk", "Sandalwood"]},
    {"name": "Arabian Nights", "description": "An exotic composition of rose, jasmine, and saffron with a base of vanilla and oud.", "price": 249.99, "image": "/images/2.png", "images": ["/images/2.png", "/images/1.png"], "category": "Floral", "fragrance_type": "Floral Oriental", "fragrance_notes": ["Rose", "Jasmine", "Saffron", "Vanilla", "Oud"]},
    {"name": "Desert Bloom", "description": "Fresh and vibrant with notes of citrus, mint, and lavender, finished with white musk.", "price": 179.99, "image": "/images/3.png", "images": ["/images/3.png"], "category": "Fresh", "fragrance_type": "Fresh", "fragrance_notes": ["Citrus", "Mint", "Lavender", "White Musk"]},
    {"name": "Mukhallat Saffron", "description": "Saffron threads folded into rose oil over a warm agarwood base.", "price": 349.99, "image": "/images/4.png", "images": ["/images/4.png"], "category": "Woody", "fragrance_type": "Oriental", "fragrance_notes": ["Saffron", "Rose", "Agarwood"], "size": "12ml"},
    {"name": "Jasmine Attar", "description": "Night-blooming jasmine distilled into sandalwood oil in the traditional way.", "price": 199.99, "image": "/images/5.png", "images": ["/images/5.png"], "category": "Floral", "fragrance_type": "Floral", "fragrance_notes": ["Jasmine", "Sandalwood"], "size": "12ml", "discount": 10},
    {"name": "Mitti", "description": "The scent of first rain on baked earth, captured over sandalwood.", "price": 159.99, "image": "/images/6.png", "images": ["/images/6.png"], "category": "Fresh", "fragrance_type": "Woody", "fragrance_notes": ["Petrichor", "Clay", "Sandalwood"], "size": "12ml"},
]

DEFAULT_CATEGORIES: List[dict] = [
    {"name": "Woody", "description": "Rich oud, sandalwood, and amber scents", "image": "/images/1.png"},
    {"name": "Floral", "description": "Delicate roses, jasmine, and gardenia", "image": "/images/2.png"},
    {"name": "Fresh", "description": "Crisp citrus and aquatic notes", "image": "/images/3.png"},
]

DEFAULT_FRAGRANCE_TYPES: List[dict] = [
    {"name": "Oriental", "description": "Warm, spicy, and exotic scents"},
    {"name": "Floral", "description": "Delicate flower-based fragrances"},
    {"name": "Floral Oriental", "description": "A blend of floral and oriental notes"},
    {"name": "Woody", "description": "Rich wood and earthy scents"},
    {"name": "Fresh", "description": "Crisp, clean, and invigorating"},
]

SEEDS = {
    "product": (Product, SEED_PRODUCTS),
    "category": (Category, DEFAULT_CATEGORIES),
    "fragrancetype": (FragranceType, DEFAULT_FRAGRANCE_TYPES),
}


async def seed_collection(collection_name: str) -> int:
    """Insert the defaults for a collection if it is empty; returns the number inserted."""
    model, rows = SEEDS[collection_name]
    if await count_documents(collection_name) > 0:
        return 0
    inserted = 0
    for row in rows:
        try:
            await create_document(collection_name, model(**row).model_dump())
        except DuplicateKeyError:
            # another request seeded this row first
            continue
        inserted += 1
    logger.info("Seeded %d documents into %s", inserted, collection_name)
    return inserted


async def seed_catalog() -> dict:
    await ensure_indexes()
    return {name: await seed_collection(name) for name in SEEDS}


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    print(asyncio.run(seed_catalog()))
