"""
Catalog data model: Product -> Variation -> SizeOffer.

Stock and price figures are never stored on the product; they are always
derived from the size offers at read time.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class SizeOffer(BaseModel):
    """One purchasable unit within a variation."""
    size: str = Field(description="Free-form size label, e.g. '12', 'M', '0-3m'")
    quantity: int = Field(ge=0, description="Units on hand (0 = out of stock)")
    price: float = Field(ge=0, description="Unit price")

    @property
    def in_stock(self) -> bool:
        return self.quantity > 0


class Variation(BaseModel):
    """One color/image grouping of a product."""
    colors: List[str] = Field(min_length=1)
    image_url: str = ""
    sizes: List[SizeOffer] = Field(min_length=1)

    @field_validator("colors")
    @classmethod
    def _non_empty_colors(cls, value: List[str]) -> List[str]:
        cleaned = [c.strip() for c in value if c and c.strip()]
        if not cleaned:
            raise ValueError("a variation needs at least one non-empty color")
        return cleaned


class Product(BaseModel):
    """A catalog entry."""
    id: Optional[str] = None
    name: str
    description: str = ""
    category: str
    subcategory: str = ""
    active: bool = True
    created_at: Optional[datetime] = None
    variations: List[Variation] = Field(min_length=1)

    # -- derived figures --------------------------------------------------

    def size_offers(self) -> List[SizeOffer]:
        """Flatten all size offers across variations, in catalog order."""
        return [offer for variation in self.variations for offer in variation.sizes]

    @property
    def total_stock(self) -> int:
        return sum(offer.quantity for offer in self.size_offers())

    @property
    def price_range(self) -> Tuple[float, float]:
        prices = [offer.price for offer in self.size_offers()]
        return (min(prices), max(prices))

    @property
    def min_price(self) -> float:
        return self.price_range[0]

    @property
    def colors(self) -> List[str]:
        """Distinct colors across variations, first-seen order."""
        seen: Dict[str, None] = {}
        for variation in self.variations:
            for color in variation.colors:
                seen.setdefault(color, None)
        return list(seen)

    @property
    def in_stock_sizes(self) -> List[str]:
        """Distinct size labels with positive stock, first-seen order."""
        seen: Dict[str, None] = {}
        for offer in self.size_offers():
            if offer.in_stock:
                seen.setdefault(offer.size, None)
        return list(seen)

    def searchable_text(self) -> str:
        """Case-folded name, description, category and subcategory."""
        return " ".join(
            [self.name, self.description, self.category, self.subcategory]
        ).casefold()

    def to_document(self) -> Dict[str, Any]:
        """Serialize for storage (id is kept by the store, not the document)."""
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_document(cls, product_id: str, document: Dict[str, Any]) -> "Product":
        return cls.model_validate({**document, "id": product_id})
