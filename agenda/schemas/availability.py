# agenda/schemas/availability.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AvailabilityResult(BaseModel):
    """Verdict of a successful availability check"""
    is_available: bool = True
    is_outside_hours: bool = False
    is_override: bool = Field(False, description="Accepted only because an override was allowed")


class SlotAvailability(BaseModel):
    """One candidate start time of a day"""
    time: datetime
    available: bool
    is_outside_working_hours: bool = False
    is_override: bool = False
    error_code: Optional[str] = None
    error: Optional[str] = None
