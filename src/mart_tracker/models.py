"""Core data models for Mart Tracker."""

import datetime
from enum import Enum

from pydantic import BaseModel, Field

MAX_PINNED_ITEMS = 20


class Theme(str, Enum):
    """Display theme preference."""

    DARK = "dark"
    LIGHT = "light"

    def toggled(self) -> "Theme":
        return Theme.LIGHT if self is Theme.DARK else Theme.DARK


class Mart(BaseModel):
    """A named purchase location."""

    id: int
    name: str = Field(min_length=1)


class InventoryItem(BaseModel):
    """A recorded price observation tied to a mart."""

    id: int
    mart_id: int
    name: str = Field(min_length=1)
    price: float = Field(ge=0)
    unit: str = ""
    is_pinned: bool = False
    date: datetime.date = Field(default_factory=datetime.date.today)


class AnalysisResult(BaseModel):
    """A product proposed by the image analysis service."""

    name: str = Field(min_length=1)
    price: float = Field(ge=0)
    unit: str


class AnalysisResponse(BaseModel):
    """Structured payload returned by the image analysis service."""

    products: list[AnalysisResult]


class PriceEntry(BaseModel):
    """One mart's price within a comparison."""

    mart_name: str
    price: float
    date: datetime.date


class PriceComparisonRecord(BaseModel):
    """Same-named items across marts, cheapest first."""

    name: str
    prices: list[PriceEntry] = Field(default_factory=list)

    @property
    def best_price(self) -> PriceEntry | None:
        """Get the cheapest entry."""
        if not self.prices:
            return None
        return self.prices[0]

    @property
    def savings(self) -> float:
        """Difference between the most and least expensive entry."""
        if len(self.prices) < 2:
            return 0.0
        return self.prices[-1].price - self.prices[0].price
