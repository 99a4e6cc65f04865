from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from labtrack.database import get_db
from labtrack.dependencies import get_actor
from labtrack.models.disposal_record import DisposalMethod, DisposalStatus
from labtrack.models.inventory_item import ItemCategory
from labtrack.schemas.common import success_response, paginated_response, ERROR_RESPONSES
from labtrack.schemas.disposal import DisposalCreateRequest, DisposalUpdateRequest
from labtrack.services.disposal_service import disposal_service

router = APIRouter(prefix="/disposals", responses=ERROR_RESPONSES)


@router.get("", summary="List disposal records")
def list_disposals(
    page:     int                      = Query(1, ge=1),
    limit:    int                      = Query(20, ge=1, le=100),
    status:   Optional[DisposalStatus] = Query(None),
    category: Optional[ItemCategory]   = Query(None),
    method:   Optional[DisposalMethod] = Query(None),
    search:   Optional[str]            = Query(None, description="Equipment name, item code or reason"),
    db:       Session                  = Depends(get_db),
):
    data, total = disposal_service.list_disposals(
        db, page, limit, status, category.value if category else None, method, search,
    )
    return paginated_response("Disposal records retrieved successfully", data, total, page, limit)


@router.get("/{disposal_id}", summary="Get disposal record")
def get_disposal(disposal_id: int, db: Session = Depends(get_db)):
    return success_response("Disposal record retrieved", disposal_service.get_disposal(db, disposal_id))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Write off units of an item")
def create_disposal(
    body:  DisposalCreateRequest,
    db:    Session = Depends(get_db),
    actor: str     = Depends(get_actor),
):
    return success_response("Disposal recorded successfully", disposal_service.create_disposal(db, body, actor))


@router.put("/{disposal_id}", summary="Update disposal record (complete or cancel)")
def update_disposal(
    disposal_id: int,
    body:        DisposalUpdateRequest,
    db:          Session = Depends(get_db),
    actor:       str     = Depends(get_actor),
):
    return success_response("Disposal record updated",
                            disposal_service.update_disposal(db, disposal_id, body, actor))


@router.delete("/{disposal_id}", summary="Delete disposal record (units are restored)")
def delete_disposal(
    disposal_id: int,
    db:          Session = Depends(get_db),
    actor:       str     = Depends(get_actor),
):
    disposal_service.delete_disposal(db, disposal_id, actor)
    return success_response("Disposal record deleted")
