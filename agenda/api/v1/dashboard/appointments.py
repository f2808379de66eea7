# ============================================================================
# FILE: agenda/api/v1/dashboard/appointments.py
# Thin HTTP layer over the scheduling services
# ============================================================================
from fastapi import APIRouter, Depends, HTTPException, Query, Path
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional
from uuid import UUID
import logging

from agenda.config.database import get_db
from agenda.api.dependencies import get_auth_context
from agenda.models.appointment import AppointmentStatus
from agenda.schemas.appointment import (
    AppointmentCreateRequest,
    AppointmentUpdateRequest,
    StatusChangeRequest,
    StatusChangeResult,
)
from agenda.schemas.auth_context import AuthContext
from agenda.services.appointment.appointment_query_service import AppointmentQueryService
from agenda.services.appointment.appointment_service import AppointmentService
from agenda.services.availability.availability_service import AvailabilityService
from agenda.services.scheduling.errors import SchedulingError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["dashboard-appointments"])

serialize = AppointmentQueryService.serialize_appointment


def _http_error(error: SchedulingError) -> HTTPException:
    logger.info(f"Scheduling request rejected: {error.code} - {error.message}")
    return HTTPException(status_code=error.status_code, detail=error.to_dict())


def _status_response(result: StatusChangeResult) -> dict:
    return {
        "status": "success",
        "data": {
            "appointment": serialize(result.appointment),
            "future_changes": result.future_changes
        }
    }


@router.post("", status_code=201)
def create_appointment(
        payload: AppointmentCreateRequest,
        actor: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    """
    Book an appointment. With `recurrence`, the following occurrences are
    created as well; occurrences that cannot be booked are skipped.
    """
    try:
        result = AppointmentService.create_appointment(db, actor, payload)
    except SchedulingError as e:
        raise _http_error(e)

    return {
        "status": "success",
        "data": {
            "appointment": serialize(result.appointment),
            "recurring_appointments": [serialize(appt) for appt in result.recurring_appointments],
            "recurring_skipped": result.recurring_skipped,
            "is_outside_working_hours": result.is_outside_working_hours
        }
    }


@router.get("")
def list_appointments(
        start_date: Optional[date] = Query(None, description="Filter appointments on or after this date"),
        end_date: Optional[date] = Query(None, description="Filter appointments on or before this date"),
        status: Optional[AppointmentStatus] = Query(None, description="Filter by status"),
        client_id: Optional[UUID] = Query(None),
        professional_id: Optional[UUID] = Query(None),
        skip: int = Query(0, ge=0, description="Number of records to skip"),
        limit: int = Query(50, ge=1, le=100, description="Number of records to return"),
        actor: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    """Get a list of appointments of the account."""
    return AppointmentQueryService.list_appointments(
        db=db,
        actor=actor,
        start_date=start_date,
        end_date=end_date,
        status=status,
        client_id=client_id,
        professional_id=professional_id,
        skip=skip,
        limit=limit
    )


@router.get("/availability")
def get_available_slots(
        professional_id: UUID = Query(..., description="Professional to book"),
        day: date = Query(..., alias="date", description="Day to list"),
        service_id: UUID = Query(..., description="Service that sets the slot length"),
        actor: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    """Candidate start times of a working day, each with its availability."""
    try:
        slots = AvailabilityService.list_available_slots(
            db, professional_id, day, service_id, account_id=actor.account_id
        )
    except SchedulingError as e:
        raise _http_error(e)

    return {
        "status": "success",
        "data": {"slots": [slot.model_dump(mode="json") for slot in slots]}
    }


@router.get("/{appointment_id}")
def get_appointment(
        appointment_id: UUID = Path(..., description="The appointment ID"),
        actor: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    """Get detailed information about a specific appointment."""
    result = AppointmentQueryService.get_appointment_by_id(db, actor, appointment_id)

    if not result:
        raise HTTPException(
            status_code=404,
            detail="Appointment not found or you don't have access to it"
        )

    return result


@router.patch("/{appointment_id}")
def update_appointment(
        payload: AppointmentUpdateRequest,
        appointment_id: UUID = Path(..., description="The appointment ID"),
        apply_to_future: bool = Query(False, description="Apply the change to later occurrences"),
        actor: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    """Update an appointment; moves are re-checked for availability."""
    try:
        result = AppointmentService.update_appointment(
            db, actor, appointment_id, payload, apply_to_future=apply_to_future
        )
    except SchedulingError as e:
        raise _http_error(e)

    return {
        "status": "success",
        "data": {
            "appointment": serialize(result.appointment),
            "future_updates": result.future_updates,
            "future_skipped": result.future_skipped
        }
    }


@router.post("/{appointment_id}/cancel")
def cancel_appointment(
        appointment_id: UUID = Path(..., description="The appointment ID"),
        apply_to_future: bool = Query(False, description="Cancel later occurrences too"),
        actor: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    try:
        result = AppointmentService.cancel_appointment(
            db, actor, appointment_id, apply_to_future=apply_to_future
        )
    except SchedulingError as e:
        raise _http_error(e)

    return _status_response(result)


@router.post("/{appointment_id}/confirm")
def confirm_appointment(
        appointment_id: UUID = Path(..., description="The appointment ID"),
        apply_to_future: bool = Query(False, description="Confirm later occurrences too"),
        actor: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    try:
        result = AppointmentService.confirm_appointment(
            db, actor, appointment_id, apply_to_future=apply_to_future
        )
    except SchedulingError as e:
        raise _http_error(e)

    return _status_response(result)


@router.put("/{appointment_id}/status")
def change_appointment_status(
        payload: StatusChangeRequest,
        appointment_id: UUID = Path(..., description="The appointment ID"),
        apply_to_future: bool = Query(False),
        actor: AuthContext = Depends(get_auth_context),
        db: Session = Depends(get_db)
):
    try:
        result = AppointmentService.change_status(
            db, actor, appointment_id, payload.status, apply_to_future=apply_to_future
        )
    except SchedulingError as e:
        raise _http_error(e)

    return _status_response(result)
