"""Product catalog helpers: slugs, image paths, rating aggregation and response shaping."""

import re
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId

from database import serialize_doc
from schemas import PRODUCT_CATEGORIES

DEFAULT_THUMBNAIL = "/images/default.jpg"


def to_slug(text: str = "") -> str:
    slug = str(text or "").lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    return re.sub(r"[^a-z0-9\-]", "", slug)


def unique_slug(collection, name: str, exclude_id: Optional[ObjectId] = None) -> str:
    """Slug for `name`, suffixed -1, -2, ... until no other product in `collection` uses it."""
    base = to_slug(name) or "product"
    slug = base
    counter = 1
    while True:
        query: Dict[str, Any] = {"slug": slug}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if collection.find_one(query) is None:
            return slug
        slug = f"{base}-{counter}"
        counter += 1


def sanitize_path(path: Optional[str]) -> Optional[str]:
    if not path:
        return path
    p = str(path).replace("\\", "/").strip()
    if not p:
        return p
    if re.match(r"^https?://", p, re.IGNORECASE):
        return p
    return p if p.startswith("/") else f"/{p}"


def sanitize_images(images: Iterable[str]) -> List[str]:
    return [p for p in (sanitize_path(i) for i in images) if p]


def canonical_category(value: str) -> str:
    cat = (value or "").strip().lower()
    if cat not in PRODUCT_CATEGORIES:
        raise ValueError(f"Category must be one of: {', '.join(PRODUCT_CATEGORIES)}")
    return cat


def review_stats(reviews: List[dict]) -> Dict[str, Any]:
    """rating is the mean of review ratings, 0 with no reviews."""
    if not reviews:
        return {"rating": 0, "num_reviews": 0}
    total = sum(float(r.get("rating", 0)) for r in reviews)
    return {"rating": total / len(reviews), "num_reviews": len(reviews)}


def normalize_product(doc: dict, with_reviews: bool = False) -> dict:
    p = serialize_doc(doc)
    images = sanitize_images(p.get("images") or [])
    thumbnail = sanitize_path(p.get("thumbnail")) or (images[0] if images else DEFAULT_THUMBNAIL)
    category = p.get("category") or "uncategorized"
    out = {
        "id": p.get("id"),
        "name": p.get("name", ""),
        "slug": p.get("slug", ""),
        "description": p.get("description", ""),
        "brand": p.get("brand", ""),
        "price": p.get("price", 0),
        "condition": p.get("condition", ""),
        "badge": p.get("badge"),
        "sizes": p.get("sizes") or [],
        "images": images,
        "thumbnail": thumbnail,
        "category": category,
        "category_slug": to_slug(category),
        "stock": p.get("stock", 0),
        "rating": p.get("rating", 0),
        "num_reviews": p.get("num_reviews", 0),
        "created_at": p.get("created_at"),
        "updated_at": p.get("updated_at"),
    }
    if with_reviews:
        out["reviews"] = p.get("reviews") or []
    return out
