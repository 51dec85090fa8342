"""Keyword-based spending category classification."""

from __future__ import annotations

from expense_sync.models import Category

# Evaluated top to bottom; the first rule with a keyword in either input wins.
# Explicit ride markers come before Food so "GrabCar" never reads as food,
# and the bare "grab" fallback comes after Food so "GrabFood" stays Food.
CATEGORY_RULES: tuple[tuple[tuple[str, ...], Category], ...] = (
    (("grabcar", "grabbike", "taxi", "ride"), Category.TRANSPORT),
    (("food", "restaurant", "cafe", "coffee"), Category.FOOD),
    (("grab",), Category.TRANSPORT),
    (("shopping", "mart", "retail", "store"), Category.SHOPPING),
    (("entertainment", "movie", "game", "subscription"), Category.ENTERTAINMENT),
    (("bill", "utility", "internet", "phone"), Category.BILLS),
    (("health", "hospital", "pharmacy", "medical", "clinic"), Category.HEALTH),
)


def map_to_category(transaction_type: str, merchant: str) -> Category:
    """Classify a transaction by its type label and merchant name."""
    haystacks = ((transaction_type or "").lower(), (merchant or "").lower())
    for keywords, category in CATEGORY_RULES:
        if any(keyword in text for keyword in keywords for text in haystacks):
            return category
    return Category.OTHER
