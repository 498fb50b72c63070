# inventory/products.py

"""
PRODUCT COLLABORATOR INTERFACE

The medication / vaccine master records live outside the inventory core.
Intake only needs a few attributes from them:
- id, name, product_type
- fallback unit_cost / manufacturer / supplier for batches that omit them

Any object exposing these attributes works (duck-typed); ProductRef is the
plain carrier used by callers that only hold ids.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from inventory.exceptions import ValidationError


@dataclass(frozen=True)
class ProductRef:
    id: str
    name: str
    product_type: str
    unit_cost: Decimal | None = None
    manufacturer: str = ""
    supplier: str = ""


def product_key(product) -> str:
    pid = getattr(product, "id", None)
    if pid is None:
        pid = getattr(product, "pk", None)
    if pid in (None, ""):
        raise ValidationError({"product": "product must expose an id"})
    return str(pid)
