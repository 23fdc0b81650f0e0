"""Fallback tier pipeline shared by the candidate and similarity engines.

A tier is one catalog query. Tiers run strictly in order; each one sees every
id collected by the tiers before it, and the loop stops as soon as the
candidate set is full.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Set

from src.personalization.models import ProductAttributes

# Configure module logger
logger = logging.getLogger(__name__)

# (ids to exclude, number of products still needed) -> products
TierQuery = Callable[[Set[str], int], List[ProductAttributes]]


def top_ranked(scores: Mapping[str, float], n: Optional[int] = None) -> List[str]:
    """Attribute ids ordered by score descending, ties by id ascending."""
    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    ids = [attribute_id for attribute_id, score in ranked if score > 0]
    return ids[:n] if n is not None else ids


class CandidateSet:
    """Ordered, duplicate-free, size-bounded set of products.

    Ids in ``blocked`` can never be added. Each entry remembers the tier that
    produced it.
    """

    def __init__(self, limit: int, blocked: Iterable[str] = ()):
        self.limit = max(0, limit)
        self.blocked = frozenset(blocked)
        self._products: Dict[str, ProductAttributes] = {}
        self._tiers: Dict[str, str] = {}

    def add(self, product: ProductAttributes, tier: str) -> bool:
        """Add a product unless full, blocked or already present."""
        if self.is_full or product.id in self.blocked or product.id in self._products:
            return False
        self._products[product.id] = product
        self._tiers[product.id] = tier
        return True

    @property
    def is_full(self) -> bool:
        return len(self._products) >= self.limit

    @property
    def remaining(self) -> int:
        return max(0, self.limit - len(self._products))

    @property
    def ids(self) -> List[str]:
        return list(self._products)

    @property
    def products(self) -> List[ProductAttributes]:
        return list(self._products.values())

    def tier_of(self, product_id: str) -> Optional[str]:
        return self._tiers.get(product_id)

    def tier_counts(self) -> Dict[str, int]:
        return dict(Counter(self._tiers.values()))

    def __len__(self) -> int:
        return len(self._products)

    def __iter__(self) -> Iterator[ProductAttributes]:
        return iter(self._products.values())

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._products


@dataclass(frozen=True)
class FallbackTier:
    """One step of a fallback cascade.

    Attributes:
        name: Label recorded on every product the tier contributes.
        query: Catalog query for the tier.
        honors_exclusions: When False the caller's exclusion set is ignored;
            ids already collected and blocked ids are still excluded.
    """

    name: str
    query: TierQuery
    honors_exclusions: bool = True


def run_tiers(
    candidates: CandidateSet,
    tiers: Iterable[FallbackTier],
    exclusions: Iterable[str] = (),
) -> CandidateSet:
    """Run fallback tiers in order until the candidate set is full.

    Args:
        candidates: Set to fill. Products already in it are kept.
        tiers: Tiers in priority order.
        exclusions: Ids the tiers must skip (unless a tier opts out).

    Returns:
        The same candidate set, filled as far as the tiers allow.
    """
    exclusions = frozenset(exclusions)

    for tier in tiers:
        if candidates.is_full:
            break

        exclude_ids = set(candidates.ids) | candidates.blocked
        if tier.honors_exclusions:
            exclude_ids |= exclusions

        needed = candidates.remaining
        products = tier.query(exclude_ids, needed)
        added = sum(1 for product in products if candidates.add(product, tier.name))

        logger.debug(
            "Fallback tier applied",
            extra={
                "tier": tier.name,
                "requested": needed,
                "returned": len(products),
                "added": added,
                "total": len(candidates),
            },
        )

    return candidates
