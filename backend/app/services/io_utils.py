from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd


def load_table(
    csv_path: str | Path,
    columns: Optional[Iterable[str]] = None,
    **csv_kwargs: Any,
) -> pd.DataFrame:
    """Load a CSV table as strings, returning an empty frame when it is absent.

    Parameters
    ----------
    csv_path:
        Location of the CSV file.
    columns:
        Expected column names. Used as the schema of the empty frame returned
        for a missing file, and any column missing from the file is added
        with empty values.
    csv_kwargs:
        Additional keyword arguments forwarded to :func:`pandas.read_csv`.
    """

    csv_path = Path(csv_path)
    column_list = list(columns) if columns is not None else None

    if not csv_path.exists() or csv_path.stat().st_size == 0:
        return pd.DataFrame(columns=column_list or [])

    # Keep every cell as text; pydantic does the typing when rows are loaded.
    csv_kwargs.setdefault("dtype", str)
    csv_kwargs.setdefault("keep_default_na", False)
    frame = pd.read_csv(csv_path, **csv_kwargs)

    if column_list is not None:
        for column in column_list:
            if column not in frame.columns:
                frame[column] = ""
        frame = frame[column_list]
    return frame


def append_rows(frame: pd.DataFrame, rows: List[Dict[str, Any]]) -> pd.DataFrame:
    """Return ``frame`` with ``rows`` appended, keeping the frame's columns."""

    addition = pd.DataFrame(rows, columns=list(frame.columns) or None)
    if frame.empty:
        return addition.reset_index(drop=True)
    return pd.concat([frame, addition], ignore_index=True)


def write_table_atomic(frame: pd.DataFrame, csv_path: str | Path) -> None:
    """Write ``frame`` to ``csv_path`` via a temporary file and a move."""

    csv_path = Path(csv_path)
    directory = csv_path.parent
    directory.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".csv", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            frame.to_csv(handle, index=False)
        shutil.move(tmp_path, csv_path)
    finally:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
