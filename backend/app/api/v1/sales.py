r"""backend\app\api\v1\sales.py

Endpoints for uploading and reading sales history."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status

from ...models import schemas
from ...services.sales_service import SalesService
from ..deps import get_sales_service

LOGGER = logging.getLogger(__name__)
router = APIRouter()


@router.post("/sales/upload")
def upload_sales(
    body: schemas.SalesUploadRequest,
    service: SalesService = Depends(get_sales_service),
) -> Dict[str, Any]:
    """Append the rows of an uploaded CSV to the sales history."""

    try:
        return service.upload_csv(body.csv_data)
    except ValueError as exc:
        LOGGER.warning("Rejected sales upload: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_csv", "message": str(exc)},
        ) from exc
    except OSError as exc:
        LOGGER.exception("Failed to store uploaded sales records")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "write_failed", "message": str(exc)},
        ) from exc


@router.get("/sales/{product_id}")
def list_sales(
    product_id: str,
    service: SalesService = Depends(get_sales_service),
) -> Dict[str, List[schemas.SalesRecord]]:
    """Return every stored sales row for the product."""

    return {"sales": service.list_sales(product_id)}
