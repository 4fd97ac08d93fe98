"""Generic CRUD endpoints over deployed dynamic domains.

Records are plain JSON objects keyed by the domain's field names, plus ``id``,
``created_at``, and ``updated_at``.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from domain_evolution.api.deps import get_record_service, http_error
from domain_evolution.services import DynamicRecordService

router = APIRouter(prefix="/domains/{domain_name}/records", tags=["records"])


def _record_not_found(domain_name: str, record_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Record {record_id} not found in '{domain_name}'",
    )


@router.get("", response_model=list[dict[str, Any]])
async def list_records(
    domain_name: str,
    limit: Optional[int] = Query(default=None, ge=1),
    service: DynamicRecordService = Depends(get_record_service),
) -> list[dict[str, Any]]:
    try:
        return await service.list(domain_name, limit)
    except LookupError as exc:
        raise http_error(exc) from exc


@router.get("/count")
async def count_records(
    domain_name: str,
    service: DynamicRecordService = Depends(get_record_service),
) -> dict[str, int]:
    try:
        return {"count": await service.count(domain_name)}
    except LookupError as exc:
        raise http_error(exc) from exc


@router.post("", response_model=dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_record(
    domain_name: str,
    payload: dict[str, Any] = Body(...),
    service: DynamicRecordService = Depends(get_record_service),
) -> dict[str, Any]:
    try:
        return await service.create(domain_name, payload)
    except (LookupError, ValueError) as exc:
        raise http_error(exc) from exc


@router.get("/{record_id}", response_model=dict[str, Any])
async def get_record(
    domain_name: str,
    record_id: int,
    service: DynamicRecordService = Depends(get_record_service),
) -> dict[str, Any]:
    try:
        record = await service.get(domain_name, record_id)
    except LookupError as exc:
        raise http_error(exc) from exc
    if record is None:
        raise _record_not_found(domain_name, record_id)
    return record


@router.patch("/{record_id}", response_model=dict[str, Any])
async def update_record(
    domain_name: str,
    record_id: int,
    payload: dict[str, Any] = Body(...),
    service: DynamicRecordService = Depends(get_record_service),
) -> dict[str, Any]:
    try:
        record = await service.update(domain_name, record_id, payload)
    except (LookupError, ValueError) as exc:
        raise http_error(exc) from exc
    if record is None:
        raise _record_not_found(domain_name, record_id)
    return record


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(
    domain_name: str,
    record_id: int,
    service: DynamicRecordService = Depends(get_record_service),
) -> None:
    try:
        deleted = await service.delete(domain_name, record_id)
    except LookupError as exc:
        raise http_error(exc) from exc
    if not deleted:
        raise _record_not_found(domain_name, record_id)
