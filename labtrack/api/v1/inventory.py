from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from labtrack.database import get_db
from labtrack.dependencies import get_actor
from labtrack.models.inventory_item import ItemCategory, ItemStatus
from labtrack.schemas.common import success_response, paginated_response, ERROR_RESPONSES
from labtrack.schemas.inventory import InventoryCreateRequest, InventoryUpdateRequest, BorrowingStatusRequest
from labtrack.services.inventory_service import inventory_service

router = APIRouter(prefix="/inventory", responses=ERROR_RESPONSES)


@router.get("", summary="List inventory items")
def list_items(
    page:       int                    = Query(1, ge=1),
    limit:      int                    = Query(20, ge=1, le=100),
    category:   Optional[ItemCategory] = Query(None),
    status:     Optional[ItemStatus]   = Query(None),
    search:     Optional[str]          = Query(None, description="Name, item code or room"),
    borrowable: Optional[bool]         = Query(None, description="Only items with units that can be lent"),
    db:         Session                = Depends(get_db),
):
    data, total = inventory_service.list_items(db, page, limit, category, status, search, borrowable)
    return paginated_response("Inventory retrieved successfully", data, total, page, limit)


@router.get("/{item_id}", summary="Get inventory item")
def get_item(item_id: int, db: Session = Depends(get_db)):
    return success_response("Inventory item retrieved", inventory_service.get_item(db, item_id))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Take new stock into inventory")
def create_item(
    body:  InventoryCreateRequest,
    db:    Session = Depends(get_db),
    actor: str     = Depends(get_actor),
):
    return success_response("Inventory item created successfully", inventory_service.create_item(db, body, actor))


@router.put("/{item_id}", summary="Update item metadata (quantities are managed by workflows)")
def update_item(
    item_id: int,
    body:    InventoryUpdateRequest,
    db:      Session = Depends(get_db),
    actor:   str     = Depends(get_actor),
):
    return success_response("Inventory item updated", inventory_service.update_item(db, item_id, body, actor))


@router.patch("/{item_id}/borrowing-status", summary="Enable or disable lending of an item")
def set_borrowing_status(
    item_id: int,
    body:    BorrowingStatusRequest,
    db:      Session = Depends(get_db),
    actor:   str     = Depends(get_actor),
):
    data = inventory_service.set_borrowing_status(db, item_id, body.canBeBorrowed, actor)
    return success_response("Borrowing status updated", data)


@router.delete("/{item_id}", summary="Delete inventory item")
def delete_item(
    item_id: int,
    db:      Session = Depends(get_db),
    actor:   str     = Depends(get_actor),
):
    inventory_service.delete_item(db, item_id, actor)
    return success_response("Inventory item deleted")


@router.get("/{item_id}/movements", summary="Ledger journal of bucket transfers for an item")
def list_movements(
    item_id: int,
    page:    int     = Query(1, ge=1),
    limit:   int     = Query(50, ge=1, le=200),
    db:      Session = Depends(get_db),
):
    data, total = inventory_service.list_movements(db, item_id, page, limit)
    return paginated_response("Ledger movements retrieved", data, total, page, limit)
