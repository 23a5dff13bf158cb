"""
Payout stats model - derived statistics on historical payouts.

order_count, average_check and product_type_stats are pure functions of
order_numbers and the referenced order data. A record counts as migrated when
all derived fields are present and product_type_stats is non-empty; the same
predicate drives both the migration status check and the migration itself.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from debt_ledger.models.base import MongoModel


class OrderSummary(BaseModel):
    """Order fields consumed from the order-tracking collaborator."""
    order_number: str
    category: str
    price: Decimal


class PayoutStatsRecord(MongoModel):
    order_numbers: List[str] = Field(default_factory=list)
    order_count: Optional[int] = None
    average_check: Optional[float] = None
    product_type_stats: Optional[Dict[str, int]] = None
    date: Optional[datetime] = None

    @field_validator("order_numbers", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        if value is None:
            return []
        return [str(n) for n in value]

    def has_order_numbers(self) -> bool:
        return any(n for n in self.order_numbers)

    def is_migrated(self) -> bool:
        """Derived fields present and non-empty."""
        return (
            self.order_count is not None
            and self.order_count > 0
            and self.average_check is not None
            and bool(self.product_type_stats)
        )

    def needs_update(self) -> bool:
        return self.has_order_numbers() and not self.is_migrated()


class PayoutStats(BaseModel):
    """Values computed for one payout."""
    order_count: int
    average_check: Decimal
    product_type_stats: Dict[str, int]
