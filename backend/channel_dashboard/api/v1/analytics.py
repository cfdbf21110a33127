"""Analytics API."""
import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from channel_dashboard.dependencies import get_current_user, get_db
from channel_dashboard.models.user import User
from channel_dashboard.schemas.common import APIResponse
from channel_dashboard.services import analytics_service
from channel_dashboard.services.date_windows import DateSelection

router = APIRouter()


# GET /analytics
@router.get("", response_model=APIResponse)
async def get_analytics(
    response: Response,
    channel_id: str = Query("all", description="'all' or a connected channel id"),
    days: int | None = Query(None, ge=1, le=3650),
    start_date: date | None = None,
    end_date: date | None = None,
    month: int | None = Query(None, ge=1, le=12),
    year: int | None = Query(None, ge=1, le=9999),
    lifetime: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    target: uuid.UUID | None = None
    if channel_id != "all":
        try:
            target = uuid.UUID(channel_id)
        except ValueError:
            raise HTTPException(status_code=400, detail="channel_id must be 'all' or a channel id")

    selection = DateSelection(
        days=days,
        start_date=start_date,
        end_date=end_date,
        month=month,
        year=year,
        lifetime=lifetime,
    )
    result = await analytics_service.get_dashboard_analytics(db, current_user.id, selection, target)

    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return APIResponse(status="success", data=result.model_dump(mode="json"))
