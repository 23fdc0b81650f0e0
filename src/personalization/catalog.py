"""Catalog lookup interface and an in-memory, pandas backed implementation.

The recommendation engines only talk to the catalog through
``CatalogLookup``: single product resolution and "active products matching a
filter" queries. Filter expressions are small condition objects that the
in-memory catalog evaluates to boolean masks over a DataFrame.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from src.personalization.exceptions import GlowRecException, ProductNotFoundError
from src.personalization.models import ProductAttributes, ProductStatus

# Configure module logger
logger = logging.getLogger(__name__)

# (column, descending)
SortKey = Tuple[str, bool]

BY_RATING: Tuple[SortKey, ...] = (("average_rating", True),)
BY_RATING_THEN_BEST_SELLER: Tuple[SortKey, ...] = (
    ("average_rating", True),
    ("is_best_seller", True),
)
BY_RATING_BEST_SELLER_NEWEST: Tuple[SortKey, ...] = (
    ("average_rating", True),
    ("is_best_seller", True),
    ("created_at", True),
)
BY_BEST_SELLER_RATING_NEWEST: Tuple[SortKey, ...] = (
    ("is_best_seller", True),
    ("average_rating", True),
    ("created_at", True),
)
BY_POPULARITY: Tuple[SortKey, ...] = (
    ("is_best_seller", True),
    ("average_rating", True),
    ("review_count", True),
)

LIST_COLUMNS = ("category_ids", "tags", "skin_types", "concerns")
TEXT_COLUMNS = ("name", "description_short", "description_full")
REQUIRED_COLUMNS = {"id", "name"}
CSV_LIST_SEPARATOR = "|"


@dataclass(frozen=True)
class LookupResult:
    """Outcome of resolving one product id.

    Exactly one of ``product`` and ``error`` is set, so callers can tell a
    skipped lookup apart from a product without attributes.
    """

    product_id: str
    product: Optional[ProductAttributes] = None
    error: Optional[GlowRecException] = None

    @property
    def ok(self) -> bool:
        return self.product is not None


class Condition(ABC):
    """A predicate over catalog rows."""

    @abstractmethod
    def mask(self, frame: pd.DataFrame) -> pd.Series:
        """Boolean Series aligned with ``frame``."""


class Intersects(Condition):
    """List column shares at least one value with ``values``."""

    def __init__(self, column: str, values: Iterable[str]):
        self.column = column
        self.values = frozenset(values)

    def mask(self, frame: pd.DataFrame) -> pd.Series:
        values = self.values
        return frame[self.column].apply(lambda items: not values.isdisjoint(items))

    def __repr__(self) -> str:
        return f"Intersects({self.column}, {sorted(self.values)})"


class IsIn(Condition):
    """Scalar column equals one of ``values``."""

    def __init__(self, column: str, values: Iterable[Any]):
        self.column = column
        self.values = list(values)

    def mask(self, frame: pd.DataFrame) -> pd.Series:
        return frame[self.column].isin(self.values)

    def __repr__(self) -> str:
        return f"IsIn({self.column}, {self.values})"


class TextMatch(Condition):
    """Any term occurs in a text column, or matches a tag.

    Terms are matched literally and case-insensitively. Tags match exactly
    unless ``tag_substring`` is set.
    """

    def __init__(
        self,
        terms: Iterable[str],
        columns: Sequence[str] = TEXT_COLUMNS,
        tag_substring: bool = False,
    ):
        self.terms = [term for term in terms if term]
        self.columns = tuple(columns)
        self.tag_substring = tag_substring

    def mask(self, frame: pd.DataFrame) -> pd.Series:
        result = pd.Series(False, index=frame.index)
        for term in self.terms:
            for column in self.columns:
                result |= frame[column].str.contains(term, case=False, regex=False)
            lowered = term.lower()
            if self.tag_substring:
                result |= frame["tags"].apply(
                    lambda tags: any(lowered in tag.lower() for tag in tags)
                )
            else:
                result |= frame["tags"].apply(lambda tags: term in tags)
        return result

    def __repr__(self) -> str:
        return f"TextMatch({self.terms})"


class NameKeywords(Condition):
    """Product name contains any of the keywords, case-insensitively."""

    def __init__(self, keywords: Iterable[str]):
        self.keywords = [keyword.lower() for keyword in keywords]

    def mask(self, frame: pd.DataFrame) -> pd.Series:
        keywords = self.keywords
        lowered = frame["name"].str.lower()
        return lowered.apply(lambda name: any(keyword in name for keyword in keywords))

    def __repr__(self) -> str:
        return f"NameKeywords({self.keywords})"


class AnyOf(Condition):
    """Logical OR of sub-conditions. Matches nothing when empty."""

    def __init__(self, conditions: Iterable[Condition]):
        self.conditions = list(conditions)

    def mask(self, frame: pd.DataFrame) -> pd.Series:
        if not self.conditions:
            return pd.Series(False, index=frame.index)
        masks = [condition.mask(frame).to_numpy(dtype=bool) for condition in self.conditions]
        return pd.Series(np.logical_or.reduce(masks), index=frame.index)

    def __bool__(self) -> bool:
        return bool(self.conditions)

    def __len__(self) -> int:
        return len(self.conditions)

    def __repr__(self) -> str:
        return f"AnyOf({self.conditions})"


class CatalogLookup(ABC):
    """Read interface the recommendation core needs from the catalog."""

    @abstractmethod
    def get_product(self, product_id: str) -> ProductAttributes:
        """Resolve one product.

        Raises:
            ProductNotFoundError: If the product does not exist.
            DependencyError: If the backing store fails.
        """

    @abstractmethod
    def query_active(
        self,
        filter_expr: Optional[Condition] = None,
        exclude_ids: Iterable[str] = (),
        order_by: Sequence[SortKey] = BY_RATING,
        limit: Optional[int] = None,
    ) -> List[ProductAttributes]:
        """Active products matching ``filter_expr``, minus ``exclude_ids``."""

    def lookup(self, product_id: str) -> LookupResult:
        """Resolve a product as a value instead of raising."""
        try:
            return LookupResult(product_id=product_id, product=self.get_product(product_id))
        except GlowRecException as e:
            return LookupResult(product_id=product_id, error=e)


def _frame_from_products(products: Sequence[ProductAttributes]) -> pd.DataFrame:
    rows = []
    for position, product in enumerate(products):
        row = product.model_dump()
        row["status"] = product.status.value
        row["_position"] = position
        rows.append(row)

    columns = list(ProductAttributes.model_fields) + ["_position"]
    frame = pd.DataFrame(rows, columns=columns)
    frame["created_at"] = pd.to_datetime(frame["created_at"], utc=True)
    for column in TEXT_COLUMNS:
        frame[column] = frame[column].fillna("").astype(str)
    return frame


class InMemoryCatalog(CatalogLookup):
    """Catalog held in a pandas DataFrame.

    Ordering ties are broken by insertion order, so query results are
    reproducible for a given catalog.
    """

    def __init__(self, products: Iterable[ProductAttributes] = ()):
        self._products: Dict[str, ProductAttributes] = {}
        self._frame = _frame_from_products([])
        self.add_products(products)

    def add_products(self, products: Iterable[ProductAttributes]) -> None:
        """Insert or replace products and rebuild the query frame."""
        for product in products:
            self._products[product.id] = product
        self._frame = _frame_from_products(list(self._products.values()))

    def __len__(self) -> int:
        return len(self._products)

    def count_active(self) -> int:
        return int((self._frame["status"] == ProductStatus.ACTIVE.value).sum())

    def get_product(self, product_id: str) -> ProductAttributes:
        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def query_active(
        self,
        filter_expr: Optional[Condition] = None,
        exclude_ids: Iterable[str] = (),
        order_by: Sequence[SortKey] = BY_RATING,
        limit: Optional[int] = None,
    ) -> List[ProductAttributes]:
        if limit is not None and limit <= 0:
            return []

        frame = self._frame
        if frame.empty:
            return []

        selected = frame["status"] == ProductStatus.ACTIVE.value
        excluded = set(exclude_ids)
        if excluded:
            selected &= ~frame["id"].isin(excluded)
        if filter_expr is not None:
            selected &= filter_expr.mask(frame).astype(bool)

        matches = frame[selected]
        if matches.empty:
            return []

        columns = [column for column, _ in order_by] + ["_position"]
        ascending = [not descending for _, descending in order_by] + [True]
        matches = matches.sort_values(by=columns, ascending=ascending, na_position="last")

        if limit is not None:
            matches = matches.head(limit)

        return [self._products[product_id] for product_id in matches["id"]]


def _clean_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Turn a raw DataFrame row into ProductAttributes keyword arguments."""
    cleaned: Dict[str, Any] = {}
    for key, value in row.items():
        if key not in ProductAttributes.model_fields:
            continue
        if key in LIST_COLUMNS:
            if isinstance(value, str):
                value = [item.strip() for item in value.split(CSV_LIST_SEPARATOR) if item.strip()]
            elif not isinstance(value, (list, tuple)):
                value = []
            cleaned[key] = [str(item) for item in value]
            continue
        if not isinstance(value, (list, tuple, dict)) and pd.isna(value):
            continue
        if key in ("id", "brand_id"):
            value = str(value)
        if key == "is_best_seller" and isinstance(value, str):
            value = value.strip().lower() in ("1", "true", "yes")
        cleaned[key] = value
    return cleaned


def load_catalog(path: Union[str, Path]) -> InMemoryCatalog:
    """Load a product catalog from a JSON or CSV file.

    JSON files hold a list of product objects. In CSV files, list columns
    (category_ids, tags, skin_types, concerns) are ``|`` separated.

    Args:
        path: Path to a ``.json`` or ``.csv`` file.

    Returns:
        An ``InMemoryCatalog`` with every product from the file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file type is unsupported or required columns are
            missing.
    """
    catalog_file = Path(path)
    if not catalog_file.exists():
        raise FileNotFoundError(f"Catalog file not found: {path}")

    logger.info(f"Loading catalog from {path}")
    string_columns = {"id": str, "brand_id": str}
    if catalog_file.suffix == ".json":
        # dtype=False keeps numeric-looking ids as strings
        df = pd.read_json(catalog_file, orient="records", dtype=False)
    elif catalog_file.suffix == ".csv":
        df = pd.read_csv(catalog_file, dtype=string_columns)
    else:
        raise ValueError(f"Unsupported catalog format: {catalog_file.suffix}")

    if not REQUIRED_COLUMNS.issubset(df.columns):
        missing = REQUIRED_COLUMNS - set(df.columns)
        raise ValueError(f"Catalog missing required columns: {missing}")

    products = [ProductAttributes(**_clean_row(row)) for row in df.to_dict(orient="records")]
    catalog = InMemoryCatalog(products)

    logger.info(
        f"Loaded {len(catalog)} products ({catalog.count_active()} active)"
    )
    return catalog
