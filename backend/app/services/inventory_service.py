r"""backend\app\services\inventory_service.py

Product catalogue and stock-level helpers."""

from __future__ import annotations

import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from ..models.schemas import (
    InventoryAlert,
    InventoryLevel,
    InventoryUpdate,
    Product,
    ProductCreate,
)
from .stores import CsvInventoryStore, CsvProductStore

LOGGER = logging.getLogger(__name__)

DEFAULT_REORDER_POINT = 10
DEFAULT_MAX_STOCK = 100

_ID_ALPHABET = string.digits + string.ascii_lowercase


def new_product_id(now_ms: Optional[int] = None) -> str:
    """Return an identifier like ``product_1733212345678_k3j9x0a2b``."""

    stamp = int(time.time() * 1000) if now_ms is None else now_ms
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"product_{stamp}_{suffix}"


def build_alerts(levels: Iterable[InventoryLevel]) -> List[InventoryAlert]:
    """Flag every product at or below its reorder point."""

    alerts: List[InventoryAlert] = []
    for level in levels:
        if level.current_stock > level.reorder_point:
            continue
        out_of_stock = level.current_stock == 0
        alerts.append(
            InventoryAlert(
                product_id=level.product_id,
                current_stock=level.current_stock,
                reorder_point=level.reorder_point,
                severity="CRITICAL" if out_of_stock else "WARNING",
                message=(
                    f"Product {level.product_id} is "
                    f"{'out of stock' if out_of_stock else 'below reorder point'}"
                ),
            )
        )
    return alerts


class InventoryService:
    """Create products, record stock levels and surface low-stock alerts."""

    def __init__(
        self,
        product_store: CsvProductStore,
        inventory_store: CsvInventoryStore,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.product_store = product_store
        self.inventory_store = inventory_store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    def create_product(self, payload: ProductCreate) -> Product:
        now = self._clock()
        product = Product(
            product_id=new_product_id(),
            created_at=now,
            updated_at=now,
            **payload.model_dump(),
        )
        self.product_store.put(product)
        LOGGER.info("Created product %s (%s)", product.product_id, product.product_name)
        return product

    def list_products(self) -> List[Product]:
        return self.product_store.list_all()

    # ------------------------------------------------------------------
    def set_inventory(self, product_id: str, payload: InventoryUpdate) -> InventoryLevel:
        level = InventoryLevel(
            product_id=product_id,
            current_stock=payload.current_stock,
            reorder_point=(
                payload.reorder_point if payload.reorder_point is not None else DEFAULT_REORDER_POINT
            ),
            max_stock=payload.max_stock if payload.max_stock is not None else DEFAULT_MAX_STOCK,
            last_updated=self._clock(),
        )
        self.inventory_store.put(level)
        return level

    def list_inventory(self) -> List[InventoryLevel]:
        return self.inventory_store.list_all()

    def alerts(self) -> List[InventoryAlert]:
        return build_alerts(self.list_inventory())
