r"""backend/app/services/stores.py

CSV-backed record stores.

Each store owns one table under the data directory and guards its
read-modify-write cycle with a lock.  The forecast orchestrator only depends
on the two protocols below, so tests and alternative backends can hand in
any object with the same methods.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable, List, Protocol, Sequence, Type, TypeVar

import pandas as pd
from pydantic import BaseModel

from ..models.schemas import (
    ForecastDay,
    InventoryLevel,
    Product,
    SalesObservation,
    SalesRecord,
)
from .io_utils import append_rows, load_table, write_table_atomic

LOGGER = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class SalesHistoryStore(Protocol):
    def query(self, product_id: str) -> List[SalesObservation]: ...


class ForecastStore(Protocol):
    def put(self, day: ForecastDay) -> None: ...

    def query(self, product_id: str, limit: int = 30) -> List[ForecastDay]: ...


# ---------------------------------------------------------------------------


class _CsvTable:
    """A lock-guarded CSV file with a fixed column list."""

    filename: str = ""
    model: Type[BaseModel] = BaseModel

    def __init__(self, data_root: str | Path = "data") -> None:
        self.data_root = Path(data_root)
        self.columns: list[str] = list(self.model.model_fields)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self.data_root / self.filename

    def _read(self) -> pd.DataFrame:
        return load_table(self.path, columns=self.columns)

    def _write(self, frame: pd.DataFrame) -> None:
        write_table_atomic(frame, self.path)

    def _rows_to_models(self, frame: pd.DataFrame, model: Type[ModelT]) -> List[ModelT]:
        return [model.model_validate(row) for row in frame.to_dict(orient="records")]

    def _append(self, records: Iterable[BaseModel]) -> int:
        rows = [record.model_dump(mode="json") for record in records]
        if not rows:
            return 0
        with self._lock:
            frame = self._read()
            self._write(append_rows(frame, rows))
        LOGGER.debug("Appended %d rows to %s", len(rows), self.path)
        return len(rows)

    def _upsert(self, record: BaseModel, key: Sequence[str]) -> None:
        row = record.model_dump(mode="json")
        with self._lock:
            frame = self._read()
            if not frame.empty:
                match = pd.Series(True, index=frame.index)
                for column in key:
                    match &= frame[column] == str(row[column])
                frame = frame.loc[~match]
            self._write(append_rows(frame, [row]))


class CsvSalesStore(_CsvTable):
    """Sales history, appended by the CSV upload path."""

    filename = "sales.csv"
    model = SalesRecord

    def add_many(self, records: Iterable[SalesRecord]) -> int:
        return self._append(records)

    def list_records(self, product_id: str) -> List[SalesRecord]:
        frame = self._read()
        frame = frame.loc[frame["product_id"] == product_id]
        return self._rows_to_models(frame, SalesRecord)

    def query(self, product_id: str) -> List[SalesObservation]:
        """Return the product's observations in storage order."""

        frame = self._read()
        frame = frame.loc[frame["product_id"] == product_id]
        return self._rows_to_models(frame, SalesObservation)


class CsvForecastStore(_CsvTable):
    """Forecast days keyed by ``(product_id, forecast_date)``."""

    filename = "forecasts.csv"
    model = ForecastDay

    def put(self, day: ForecastDay) -> None:
        self._upsert(day, key=("product_id", "forecast_date"))

    def query(self, product_id: str, limit: int = 30) -> List[ForecastDay]:
        frame = self._read()
        frame = frame.loc[frame["product_id"] == product_id]
        # ISO dates sort chronologically as strings.
        frame = frame.sort_values("forecast_date", ascending=False, kind="stable")
        if limit > 0:
            frame = frame.head(limit)
        return self._rows_to_models(frame, ForecastDay)


class CsvProductStore(_CsvTable):
    filename = "products.csv"
    model = Product

    def put(self, product: Product) -> None:
        self._upsert(product, key=("product_id",))

    def list_all(self) -> List[Product]:
        return self._rows_to_models(self._read(), Product)


class CsvInventoryStore(_CsvTable):
    filename = "inventory.csv"
    model = InventoryLevel

    def put(self, level: InventoryLevel) -> None:
        self._upsert(level, key=("product_id",))

    def list_all(self) -> List[InventoryLevel]:
        return self._rows_to_models(self._read(), InventoryLevel)
