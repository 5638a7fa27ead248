r"""backend\app\api\v1\inventory.py

Stock levels and low-stock alerts."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from ...models import schemas
from ...services.inventory_service import InventoryService, build_alerts
from ..deps import get_inventory_service

LOGGER = logging.getLogger(__name__)
router = APIRouter()


@router.get("/inventory")
def list_inventory(
    service: InventoryService = Depends(get_inventory_service),
) -> Dict[str, Any]:
    """Return current stock for every product plus the alerts it triggers."""

    inventory = service.list_inventory()
    return {"inventory": inventory, "alerts": build_alerts(inventory)}


@router.get("/inventory/alerts")
def list_alerts(
    service: InventoryService = Depends(get_inventory_service),
) -> Dict[str, List[schemas.InventoryAlert]]:
    return {"alerts": service.alerts()}


@router.put("/inventory/{product_id}")
def put_inventory(
    product_id: str,
    body: schemas.InventoryUpdate,
    service: InventoryService = Depends(get_inventory_service),
) -> Dict[str, Any]:
    """Set the current stock level (and thresholds) for a product."""

    level = service.set_inventory(product_id, body)
    LOGGER.info("Inventory for %s set to %d", product_id, level.current_stock)
    return {"success": True, "inventory": level}
