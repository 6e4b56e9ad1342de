"""Calendar router - ICS export of booking calendar events"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...auth import AuthUser, get_current_user, require_business_access
from ...database import get_db
from ...shared.validators import parse_iso_datetime
from .ics import build_ics
from .repository import CalendarEventRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/booking", tags=["Calendar"])


@router.get("/ics")
async def export_ics(
    business_id: str = Query(..., alias="businessId"),
    start_from: Optional[str] = Query(None, alias="from"),
    start_to: Optional[str] = Query(None, alias="to"),
    current_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Export the business's calendar events as text/calendar"""
    require_business_access(db, current_user, business_id)

    from_dt = parse_iso_datetime(start_from)
    to_dt = parse_iso_datetime(start_to)
    if (start_from and not from_dt) or (start_to and not to_dt):
        raise HTTPException(status_code=400, detail="from/to must be ISO timestamps")

    events = CalendarEventRepository.list_events(db, business_id, from_dt, to_dt)
    logger.info(f"📅 ICS export for business {business_id}: {len(events)} events")

    return Response(
        content=build_ics(business_id, events),
        media_type="text/calendar; charset=utf-8",
        headers={
            "Content-Disposition": 'attachment; filename="bookings.ics"',
            "Cache-Control": "no-store",
        },
    )
