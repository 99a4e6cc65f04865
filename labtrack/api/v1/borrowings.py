from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from labtrack.database import get_db
from labtrack.dependencies import get_actor
from labtrack.models.borrowing import BorrowerType, BorrowingStatus
from labtrack.schemas.borrowing import BorrowingCreateRequest, BorrowingUpdateRequest
from labtrack.schemas.common import success_response, paginated_response, ERROR_RESPONSES
from labtrack.services.borrowing_service import borrowing_service

router = APIRouter(prefix="/borrowings", responses=ERROR_RESPONSES)


@router.get("", summary="List borrowing requests")
def list_borrowings(
    page:         int                       = Query(1, ge=1),
    limit:        int                       = Query(20, ge=1, le=100),
    status:       Optional[BorrowingStatus] = Query(None),
    equipmentId:  Optional[int]             = Query(None),
    borrowerType: Optional[BorrowerType]    = Query(None),
    search:       Optional[str]             = Query(None, description="Borrower name, ID or purpose"),
    db:           Session                   = Depends(get_db),
):
    data, total = borrowing_service.list_borrowings(db, page, limit, status, equipmentId, borrowerType, search)
    return paginated_response("Borrowing requests retrieved successfully", data, total, page, limit)


@router.get("/{borrowing_id}", summary="Get borrowing request")
def get_borrowing(borrowing_id: int, db: Session = Depends(get_db)):
    return success_response("Borrowing request retrieved", borrowing_service.get_borrowing(db, borrowing_id))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Submit a borrowing request")
def create_borrowing(
    body:  BorrowingCreateRequest,
    db:    Session = Depends(get_db),
    actor: str     = Depends(get_actor),
):
    data = borrowing_service.create_borrowing(db, body, actor)
    return success_response("Borrowing request submitted successfully", data)


@router.patch("/{borrowing_id}", summary="Move a borrowing request to a new status")
def update_borrowing(
    borrowing_id: int,
    body:         BorrowingUpdateRequest,
    db:           Session = Depends(get_db),
    actor:        str     = Depends(get_actor),
):
    data = borrowing_service.update_borrowing(db, borrowing_id, body, actor)
    return success_response(f"Borrowing request {data['status']}", data)


@router.delete("/{borrowing_id}", summary="Delete borrowing request (units on loan are restored)")
def delete_borrowing(
    borrowing_id: int,
    db:           Session = Depends(get_db),
    actor:        str     = Depends(get_actor),
):
    borrowing_service.delete_borrowing(db, borrowing_id, actor)
    return success_response("Borrowing request deleted")
