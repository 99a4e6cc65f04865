from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from labtrack.database import get_db
from labtrack.dependencies import get_actor
from labtrack.models.maintenance_record import MaintenanceStatus, MaintenanceType
from labtrack.schemas.common import success_response, paginated_response, ERROR_RESPONSES
from labtrack.schemas.maintenance import (
    MaintenanceCreateRequest, MaintenanceUpdateRequest, MaintenanceQuantityRequest,
)
from labtrack.services.maintenance_service import maintenance_service

router = APIRouter(prefix="/maintenance", responses=ERROR_RESPONSES)


@router.get("", summary="List maintenance records with summary stats")
def list_records(
    page:        int                         = Query(1, ge=1),
    limit:       int                         = Query(20, ge=1, le=100),
    status:      Optional[MaintenanceStatus] = Query(None),
    equipmentId: Optional[int]               = Query(None),
    type:        Optional[MaintenanceType]   = Query(None),
    db:          Session                     = Depends(get_db),
):
    data, total, stats = maintenance_service.list_records(db, page, limit, status, equipmentId, type)
    return paginated_response("Maintenance records retrieved successfully", data, total, page, limit,
                              stats=stats)


@router.get("/{record_id}", summary="Get maintenance record")
def get_record(record_id: int, db: Session = Depends(get_db)):
    return success_response("Maintenance record retrieved", maintenance_service.get_record(db, record_id))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Schedule maintenance for some units of an item")
def schedule_maintenance(
    body:  MaintenanceCreateRequest,
    db:    Session = Depends(get_db),
    actor: str     = Depends(get_actor),
):
    data = maintenance_service.schedule_maintenance(db, body, actor)
    return success_response("Maintenance scheduled successfully", data)


@router.put("/{record_id}", summary="Update maintenance record")
def update_record(
    record_id: int,
    body:      MaintenanceUpdateRequest,
    db:        Session = Depends(get_db),
    actor:     str     = Depends(get_actor),
):
    return success_response("Maintenance record updated",
                            maintenance_service.update_record(db, record_id, body, actor))


@router.put("/{record_id}/quantity", summary="Record how many units have been maintained")
def record_progress(
    record_id: int,
    body:      MaintenanceQuantityRequest,
    db:        Session = Depends(get_db),
    actor:     str     = Depends(get_actor),
):
    data = maintenance_service.record_progress(db, record_id, body.maintainedQuantity, actor)
    return success_response("Maintenance progress recorded", data)


@router.delete("/{record_id}", summary="Delete maintenance record (outstanding units are released)")
def delete_record(
    record_id: int,
    db:        Session = Depends(get_db),
    actor:     str     = Depends(get_actor),
):
    maintenance_service.delete_record(db, record_id, actor)
    return success_response("Maintenance record deleted")
