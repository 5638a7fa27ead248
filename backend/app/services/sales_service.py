r"""backend\app\services\sales_service.py

Bulk CSV ingest for sales history."""

from __future__ import annotations

import io
import logging
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Tuple

import pandas as pd
from pydantic import ValidationError

from ..models.schemas import SalesRecord
from .stores import CsvSalesStore

LOGGER = logging.getLogger(__name__)

# Columns are positional: product_id, sale_date, quantity_sold, unit_price.
UPLOAD_COLUMNS = ["product_id", "sale_date", "quantity_sold", "unit_price"]


def parse_sales_csv(csv_text: str, created_at: datetime) -> Tuple[List[SalesRecord], int]:
    """Parse uploaded CSV text into sales records.

    The first non-blank line is a header and is ignored by name.  Every other
    line is split on commas and its first four fields are read by position;
    trailing extra fields are ignored.  Lines with fewer than four fields, or
    with a date that is not ISO formatted, are skipped.  Quantities and prices
    that do not parse as numbers count as 0.

    Returns the parsed records and the number of skipped rows.
    """

    lines = pd.Series(csv_text.splitlines(), dtype=object)
    lines = lines.loc[lines.str.strip() != ""]
    if lines.empty:
        return [], 0
    if len(lines.iloc[0].split(",")) < len(UPLOAD_COLUMNS):
        raise ValueError(
            "CSV must have at least four columns: product_id, sale_date, quantity_sold, unit_price"
        )
    rows = lines.iloc[1:]
    if rows.empty:
        return [], 0

    fields = rows.str.split(",", expand=True).reindex(columns=range(len(UPLOAD_COLUMNS)))
    fields.columns = UPLOAD_COLUMNS
    complete = fields.notna().all(axis=1)
    skipped = int((~complete).sum())
    frame = fields.loc[complete].copy()
    for column in UPLOAD_COLUMNS:
        frame[column] = frame[column].astype(str).str.strip()

    quantity = pd.to_numeric(frame["quantity_sold"], errors="coerce").fillna(0).astype(int)
    price = pd.to_numeric(frame["unit_price"], errors="coerce").fillna(0.0).astype(float)

    records: List[SalesRecord] = []
    for product_id, raw_date, qty, unit_price in zip(
        frame["product_id"], frame["sale_date"], quantity, price
    ):
        try:
            record = SalesRecord(
                product_id=product_id,
                sale_date=date.fromisoformat(raw_date),
                quantity_sold=int(qty),
                unit_price=float(unit_price),
                total_revenue=int(qty) * float(unit_price),
                created_at=created_at,
            )
        except (ValueError, ValidationError):
            skipped += 1
            continue
        records.append(record)
    return records, skipped


class SalesService:
    """Ingest and list per-product sales history."""

    def __init__(
        self,
        store: CsvSalesStore,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def upload_csv(self, csv_text: str) -> dict:
        records, skipped = parse_sales_csv(csv_text, created_at=self._clock())
        written = self.store.add_many(records)
        if skipped:
            LOGGER.warning("Skipped %d malformed sales rows during upload", skipped)
        LOGGER.info("Uploaded %d sales records", written)
        return {
            "success": True,
            "message": f"Uploaded {written} sales records",
            "records": written,
            "skipped": skipped,
        }

    def list_sales(self, product_id: str) -> List[SalesRecord]:
        return self.store.list_records(product_id)
