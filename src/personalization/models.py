"""Data models shared by the ledger, aggregator and candidate engines.

Activity records and filter snapshots are frozen: once captured they are
never mutated. Product attributes are the read-only catalog view the engines
score against.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.personalization.exceptions import ValidationError

# Accepts 24-hex document ids as well as slug style ids
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def is_valid_identifier(value: Optional[str]) -> bool:
    """Check whether a user or product id is well formed."""
    return isinstance(value, str) and bool(IDENTIFIER_PATTERN.match(value))


def validate_identifier(value: Optional[str], field: str) -> str:
    """Return the identifier unchanged or raise ValidationError.

    Args:
        value: Identifier to check.
        field: Field name reported in the error details.

    Returns:
        The validated identifier.

    Raises:
        ValidationError: If the identifier is missing or malformed.
    """
    if not value:
        raise ValidationError(f"{field} is required", details={"field": field})
    if not is_valid_identifier(value):
        raise ValidationError(
            f"{field} '{value}' is not a valid identifier",
            details={"field": field, "value": value},
        )
    return value


class ActivityType(str, Enum):
    """Tracked user interaction types."""

    SEARCH = "search"
    VIEW = "view"
    CLICK = "click"
    ADD_TO_CART = "add_to_cart"
    PURCHASE = "purchase"
    FILTER_USE = "filter_use"

    @classmethod
    def is_valid(cls, activity_type: str) -> bool:
        """Check if an activity type string is valid."""
        try:
            cls(activity_type)
            return True
        except ValueError:
            return False


class PriceRange(BaseModel):
    """Price bounds requested through the price filter."""

    model_config = ConfigDict(frozen=True)

    min: Optional[float] = Field(default=None, ge=0)
    max: Optional[float] = Field(default=None, ge=0)


class FilterSnapshot(BaseModel):
    """Point-in-time capture of the filters a user applied."""

    model_config = ConfigDict(frozen=True)

    price: Optional[PriceRange] = None
    category_ids: List[str] = Field(default_factory=list)
    brand_ids: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    skin_types: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        """True when no filter dimension carries a value."""
        return self.price is None and not any(
            [self.category_ids, self.brand_ids, self.tags, self.skin_types, self.concerns]
        )


class ActivityMetadata(BaseModel):
    """Optional payload attached to an activity."""

    model_config = ConfigDict(frozen=True)

    search_query: Optional[str] = None
    time_spent: Optional[float] = Field(default=None, ge=0, description="Seconds")
    variant_id: Optional[str] = None
    filters: Optional[FilterSnapshot] = None


class ActivityRecord(BaseModel):
    """Immutable user interaction event.

    ``record_id``, ``sequence`` and (when absent) ``created_at`` are assigned
    by the ledger on append.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    activity_type: ActivityType
    product_id: Optional[str] = None
    metadata: ActivityMetadata = Field(default_factory=ActivityMetadata)
    created_at: Optional[datetime] = None
    record_id: Optional[str] = None
    sequence: Optional[int] = None

    @field_validator("user_id")
    @classmethod
    def _check_user_id(cls, value: str) -> str:
        if not is_valid_identifier(value):
            raise ValueError(f"invalid user id '{value}'")
        return value

    @field_validator("product_id")
    @classmethod
    def _check_product_id(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_identifier(value):
            raise ValueError(f"invalid product id '{value}'")
        return value

    @property
    def sort_key(self):
        """Ordering key: creation time, then ledger sequence."""
        return (self.created_at or EPOCH, self.sequence or 0)


class ProductStatus(str, Enum):
    """Catalog lifecycle states."""

    ACTIVE = "active"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


class ProductAttributes(BaseModel):
    """Catalog attributes the recommendation engines read."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description_short: str = ""
    description_full: str = ""
    status: ProductStatus = ProductStatus.ACTIVE
    category_ids: List[str] = Field(default_factory=list)
    brand_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    skin_types: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    average_rating: float = Field(default=0.0, ge=0)
    review_count: int = Field(default=0, ge=0)
    is_best_seller: bool = False
    created_at: Optional[datetime] = None


class FilterUsagePatterns(BaseModel):
    """Raw frequency of filter values across recent filter-use records."""

    price_ranges: List[PriceRange] = Field(default_factory=list)
    category_usage: Dict[str, int] = Field(default_factory=dict)
    brand_usage: Dict[str, int] = Field(default_factory=dict)
    tag_usage: Dict[str, int] = Field(default_factory=dict)
    skin_type_usage: Dict[str, int] = Field(default_factory=dict)
    concerns_usage: Dict[str, int] = Field(default_factory=dict)
