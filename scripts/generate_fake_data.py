"""Generate a fake product catalog and activity ledger for development.

Creates a JSON catalog of cosmetics products and a JSON-lines activity ledger
of simulated user interactions (views, clicks, cart-adds, purchases, searches
and filter use) spread over a date range.

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_data.py

    Or import and use programmatically:
        from scripts.generate_fake_data import generate_fake_catalog
        df = generate_fake_catalog(num_products=200)
"""

import argparse
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import pandas as pd

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.personalization.ledger import JsonlActivityLedger
from src.personalization.models import (
    ActivityMetadata,
    ActivityRecord,
    ActivityType,
    FilterSnapshot,
    PriceRange,
)

# Default configuration constants
DEFAULT_NUM_USERS = 50
DEFAULT_NUM_PRODUCTS = 100
DEFAULT_NUM_EVENTS = 2000
DEFAULT_DAYS_BACK = 90
SECONDS_PER_DAY = 86400

CATEGORIES = ["cleansers", "serums", "moisturizers", "sunscreen", "masks", "toners"]
BRANDS = ["lumina", "verdant", "aquaveil", "petalwise", "dermacore"]
TAGS = ["vegan", "fragrance-free", "cruelty-free", "organic", "hydrating", "brightening"]
SKIN_TYPES = ["dry", "oily", "combination", "sensitive", "normal"]
CONCERNS = ["acne", "aging", "dullness", "redness", "pores", "dark-spots"]
NAME_WORDS = ["Hydra", "Glow", "Calm", "Radiant", "Pure", "Velvet", "Dew", "Clear"]
SEARCH_TERMS = ["serum", "vitamin c", "spf", "gentle cleanser", "retinol", "night cream"]

# Relative frequency of each activity type in the generated ledger
EVENT_MIX = {
    ActivityType.VIEW: 50,
    ActivityType.CLICK: 20,
    ActivityType.ADD_TO_CART: 10,
    ActivityType.PURCHASE: 5,
    ActivityType.SEARCH: 10,
    ActivityType.FILTER_USE: 5,
}


def generate_fake_catalog(
    num_products: int = DEFAULT_NUM_PRODUCTS,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """Generate a synthetic product catalog.

    Args:
        num_products: Number of products to create. Must be positive.
        seed: Optional random seed for reproducible output.

    Returns:
        A pandas DataFrame with one row per product and the catalog columns
        (id, name, descriptions, status, category_ids, brand_id, tags,
        skin_types, concerns, average_rating, review_count, is_best_seller,
        created_at).

    Raises:
        ValueError: If num_products is not positive.
    """
    if num_products <= 0:
        raise ValueError("num_products must be positive")

    rng = random.Random(seed)
    now = datetime.now(timezone.utc)
    products = []

    for index in range(1, num_products + 1):
        category = rng.choice(CATEGORIES)
        name = f"{rng.choice(NAME_WORDS)} {rng.choice(NAME_WORDS)} {category.rstrip('s').title()}"
        products.append({
            "id": f"p{index:04d}",
            "name": name,
            "description_short": f"A {rng.choice(TAGS)} {category.rstrip('s')}.",
            "description_full": f"{name} for {rng.choice(SKIN_TYPES)} skin.",
            "status": rng.choices(
                ["active", "out_of_stock", "discontinued"], weights=[85, 10, 5]
            )[0],
            "category_ids": [category],
            "brand_id": rng.choice(BRANDS),
            "tags": rng.sample(TAGS, k=rng.randint(1, 3)),
            "skin_types": rng.sample(SKIN_TYPES, k=rng.randint(1, 2)),
            "concerns": rng.sample(CONCERNS, k=rng.randint(1, 2)),
            "average_rating": round(rng.uniform(2.5, 5.0), 1),
            "review_count": rng.randint(0, 500),
            "is_best_seller": rng.random() < 0.15,
            "created_at": (now - timedelta(days=rng.randint(0, 365))).isoformat(),
        })

    return pd.DataFrame(products)


def generate_fake_activity(
    product_ids: List[str],
    num_users: int = DEFAULT_NUM_USERS,
    num_events: int = DEFAULT_NUM_EVENTS,
    days_back: int = DEFAULT_DAYS_BACK,
    seed: Optional[int] = None,
) -> List[ActivityRecord]:
    """Generate synthetic activity records ordered by time.

    Args:
        product_ids: Catalog product ids the events may reference.
        num_users: Number of unique users to simulate. Must be positive.
        num_events: Total number of records to generate. Must be positive.
        days_back: Width of the time window ending now, in days.
        seed: Optional random seed for reproducible output.

    Returns:
        Activity records sorted by ``created_at``.

    Raises:
        ValueError: If a numeric parameter is non-positive or product_ids is
            empty.
    """
    if num_users <= 0 or num_events <= 0 or days_back <= 0:
        raise ValueError("num_users, num_events, and days_back must be positive")
    if not product_ids:
        raise ValueError("product_ids must not be empty")

    rng = random.Random(seed)
    end_date = datetime.now(timezone.utc)
    start_date = end_date - timedelta(days=days_back)
    activity_types = list(EVENT_MIX)
    weights = list(EVENT_MIX.values())

    records = []
    for _ in range(num_events):
        user_id = f"u{rng.randint(1, num_users):03d}"
        activity_type = rng.choices(activity_types, weights=weights)[0]
        created_at = start_date + timedelta(
            days=rng.randrange(days_back), seconds=rng.randrange(SECONDS_PER_DAY)
        )

        product_id = None
        if activity_type == ActivityType.SEARCH:
            metadata = ActivityMetadata(search_query=rng.choice(SEARCH_TERMS))
        elif activity_type == ActivityType.FILTER_USE:
            low = rng.choice([0, 10, 20, 40])
            metadata = ActivityMetadata(
                filters=FilterSnapshot(
                    price=PriceRange(min=low, max=low + rng.choice([15, 30, 60])),
                    category_ids=rng.sample(CATEGORIES, k=1),
                    skin_types=rng.sample(SKIN_TYPES, k=1),
                    concerns=rng.sample(CONCERNS, k=rng.randint(0, 2)),
                )
            )
        else:
            product_id = rng.choice(product_ids)
            time_spent = (
                round(rng.uniform(3, 240), 1) if activity_type == ActivityType.VIEW else None
            )
            metadata = ActivityMetadata(time_spent=time_spent)

        records.append(
            ActivityRecord(
                user_id=user_id,
                activity_type=activity_type,
                product_id=product_id,
                metadata=metadata,
                created_at=created_at,
            )
        )

    records.sort(key=lambda record: record.created_at)
    return records


def main() -> None:
    """Generate a catalog and an activity ledger under data/."""
    parser = argparse.ArgumentParser(description="Generate fake GlowRec catalog and activity data")
    parser.add_argument("--num-products", type=int, default=DEFAULT_NUM_PRODUCTS)
    parser.add_argument("--num-users", type=int, default=DEFAULT_NUM_USERS)
    parser.add_argument("--num-events", type=int, default=DEFAULT_NUM_EVENTS)
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--output-dir",
        type=str,
        default=str(project_root / "data"),
        help="Directory for catalog.json and activity.jsonl (default: data/)",
    )
    args = parser.parse_args()

    print(f"Generating {args.num_products} products and {args.num_events} activity records...")

    try:
        catalog_df = generate_fake_catalog(num_products=args.num_products, seed=args.seed)
        records = generate_fake_activity(
            catalog_df["id"].tolist(),
            num_users=args.num_users,
            num_events=args.num_events,
            seed=args.seed,
        )
    except ValueError as e:
        print(f"Error generating data: {e}")
        return

    data_dir = Path(args.output_dir)
    data_dir.mkdir(parents=True, exist_ok=True)

    catalog_path = data_dir / "catalog.json"
    catalog_df.to_json(catalog_path, orient="records", indent=2)

    ledger_path = data_dir / "activity.jsonl"
    if ledger_path.exists():
        ledger_path.unlink()
    JsonlActivityLedger(ledger_path).append_many(records)

    activity_df = pd.DataFrame(
        [{"user_id": r.user_id, "activity_type": r.activity_type.value} for r in records]
    )

    print("\nData generated successfully!")
    print(f"Catalog saved to: {catalog_path}")
    print(f"Activity saved to: {ledger_path}")
    print("\nCatalog summary:")
    print(f"  Products: {len(catalog_df)}")
    print(f"  Active: {(catalog_df['status'] == 'active').sum()}")
    print(f"  Best sellers: {catalog_df['is_best_seller'].sum()}")
    print("\nActivity summary:")
    print(f"  Records: {len(activity_df)}")
    print(f"  Unique users: {activity_df['user_id'].nunique()}")
    print(activity_df["activity_type"].value_counts().to_string())


if __name__ == "__main__":
    main()
