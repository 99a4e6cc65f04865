from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from labtrack.database import get_db
from labtrack.dependencies import get_actor
from labtrack.models.return_record import ReturnStatus
from labtrack.schemas.common import success_response, paginated_response, ERROR_RESPONSES
from labtrack.schemas.returning import ReturnCreateRequest, ReturnUpdateRequest
from labtrack.services.return_service import return_service

router = APIRouter(prefix="/returning", responses=ERROR_RESPONSES)


@router.get("", summary="List returns")
def list_returns(
    page:   int                    = Query(1, ge=1),
    limit:  int                    = Query(20, ge=1, le=100),
    status: Optional[ReturnStatus] = Query(None),
    search: Optional[str]          = Query(None, description="Borrower or equipment name"),
    db:     Session                = Depends(get_db),
):
    data, total = return_service.list_returns(db, page, limit, status, search)
    return paginated_response("Returns retrieved successfully", data, total, page, limit)


@router.get("/{return_id}", summary="Get return")
def get_return(return_id: int, db: Session = Depends(get_db)):
    return success_response("Return retrieved", return_service.get_return(db, return_id))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Submit a return for adjudication")
def submit_return(
    body:  ReturnCreateRequest,
    db:    Session = Depends(get_db),
    actor: str     = Depends(get_actor),
):
    data, message = return_service.submit_return(db, body, actor)
    return success_response(message, data)


@router.patch("/{return_id}", summary="Review a return (fees, damage, status)")
def update_return(
    return_id: int,
    body:      ReturnUpdateRequest,
    db:        Session = Depends(get_db),
    actor:     str     = Depends(get_actor),
):
    return success_response("Return updated", return_service.update_return(db, return_id, body, actor))


@router.delete("/{return_id}", summary="Delete return record")
def delete_return(
    return_id: int,
    db:        Session = Depends(get_db),
    actor:     str     = Depends(get_actor),
):
    return_service.delete_return(db, return_id, actor)
    return success_response("Return deleted")
