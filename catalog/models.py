"""
catalog/models.py -- Domain dataclass for the product catalog.

Pure data container with zero logic. catalog/store.py owns persistence.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Product:
    """A listed product.

    owner_id is the Account.id of the seller. price is in whole currency
    units. id is None before the record is written to the database.
    """

    owner_id: str
    name: str
    price: int
    category: str
    condition: str  # "new" | "used"
    description: str = ""
    image_url: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""
