"""Product catalogue endpoints."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, status

from ...models import schemas
from ...services.inventory_service import InventoryService
from ..deps import get_inventory_service

router = APIRouter()


@router.get("/products")
def list_products(
    service: InventoryService = Depends(get_inventory_service),
) -> Dict[str, List[schemas.Product]]:
    return {"products": service.list_products()}


@router.post("/products", status_code=status.HTTP_201_CREATED)
def create_product(
    body: schemas.ProductCreate,
    service: InventoryService = Depends(get_inventory_service),
) -> Dict[str, Any]:
    """Create a product with a generated ``product_id``."""

    product = service.create_product(body)
    return {"success": True, "product": product}
