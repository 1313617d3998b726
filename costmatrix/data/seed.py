"""Seed combinations for demo mode.

A complete 2 × 2 × 2 matrix: every project type is priced for every style
preference and specification, so the dropdown editor starts consistent.
Prices are per square foot.
"""

from costmatrix.models.combination import CombinationDraft


def _draft(
    project_type: str,
    style_preference: str,
    specification: str,
    price: str,
    furniture_price: str,
) -> CombinationDraft:
    return CombinationDraft(
        project_type=project_type,
        style_preference=style_preference,
        project_specification=specification,
        price_per_sqft=price,
        furniture_included_price_per_sqft=furniture_price,
    )


SEED_COMBINATIONS: list[CombinationDraft] = [
    # --- Villa ---
    _draft("Villa", "Modern", "Basic", "1450", "2100"),
    _draft("Villa", "Modern", "Premium", "1950", "2800"),
    _draft("Villa", "Classic", "Basic", "1600", "2350"),
    _draft("Villa", "Classic", "Premium", "2150", "3100"),
    # --- Apartment ---
    _draft("Apartment", "Modern", "Basic", "1100", "1650"),
    _draft("Apartment", "Modern", "Premium", "1500", "2200"),
    _draft("Apartment", "Classic", "Basic", "1250", "1850"),
    _draft("Apartment", "Classic", "Premium", "1700", "2450.50"),
]
