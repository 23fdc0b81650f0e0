"""CLI script for getting product recommendations.

Useful for testing and evaluation. Loads a catalog and an activity ledger,
then prints personalized, similar, popular or search results to the console.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.config import Settings
from src.personalization.exceptions import GlowRecException
from src.personalization.models import ProductAttributes
from src.personalization.service import RecommendationService, build_service

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


def print_products(title: str, products: List[ProductAttributes]) -> None:
    print(f"\n{title}:")
    if not products:
        print("  (none)")
    for rank, product in enumerate(products, start=1):
        best_seller = " [best seller]" if product.is_best_seller else ""
        print(
            f"  {rank:2d}. {product.id}  {product.name}  "
            f"rating={product.average_rating:.1f} reviews={product.review_count}{best_seller}"
        )


def run_command(service: RecommendationService, args: argparse.Namespace) -> None:
    if args.command == "personalized":
        if args.explain:
            products, details = service.get_personalized_recommendations(
                args.user_id, args.limit, explain=True
            )
        else:
            products = service.get_personalized_recommendations(args.user_id, args.limit)
        print_products(f"Recommendations for user {args.user_id}", products)

        if args.explain:
            print("\nExplanation:")
            print(f"  Method: {details['method']}")
            for name, values in details["signals"].items():
                if values:
                    print(f"  {name}: {values}")
            print(f"  Excluded: {details['excluded']}")
            if details["skipped_products"]:
                print(f"  Skipped (not in catalog): {details['skipped_products']}")
            for product_id, tier in details["tiers"].items():
                print(f"  {product_id}: {tier}")

    elif args.command == "similar":
        products = service.get_similar_products(args.product_id, args.limit)
        print_products(f"Products similar to {args.product_id}", products)

    elif args.command == "popular":
        print_products("Popular products", service.get_popular_products(args.limit))

    elif args.command == "search":
        products = service.get_products_by_search_query(args.query, args.limit)
        print_products(f"Search results for '{args.query}'", products)


def main() -> None:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Query GlowRec recommendations from the console",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/recommend_cli.py personalized u001
  python scripts/recommend_cli.py personalized u001 --limit 5 --explain
  python scripts/recommend_cli.py similar p0042
  python scripts/recommend_cli.py popular --limit 20
  python scripts/recommend_cli.py search "vitamin c"
        """
    )

    parser.add_argument(
        "--catalog",
        type=str,
        default="data/catalog.json",
        help="Catalog file, JSON or CSV (default: data/catalog.json)"
    )
    parser.add_argument(
        "--ledger",
        type=str,
        default="data/activity.jsonl",
        help="Activity ledger file (default: data/activity.jsonl)"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Number of products to return"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    personalized = subparsers.add_parser("personalized", help="Personalized recommendations")
    personalized.add_argument("user_id", help="User ID to get recommendations for")
    personalized.add_argument(
        "--explain",
        action="store_true",
        help="Show the signals and fallback tier behind each product"
    )

    similar = subparsers.add_parser("similar", help="Products similar to a product")
    similar.add_argument("product_id", help="Reference product ID")

    subparsers.add_parser("popular", help="Best sellers, then top rated")

    search = subparsers.add_parser("search", help="Search product text and tags")
    search.add_argument("query", help="Search text")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    try:
        service = build_service(Settings(catalog_path=args.catalog, ledger_path=args.ledger))
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("  Run scripts/generate_fake_data.py first", file=sys.stderr)
        sys.exit(1)

    try:
        run_command(service, args)
    except GlowRecException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    finally:
        service.close()

    print()


if __name__ == "__main__":
    main()
