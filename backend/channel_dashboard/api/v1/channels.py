"""Channels API - list and disconnect connected channels."""
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from channel_dashboard.dependencies import get_current_user, get_db
from channel_dashboard.models.user import User
from channel_dashboard.schemas.channel import ChannelSummary
from channel_dashboard.schemas.common import APIResponse
from channel_dashboard.services import channel_service

router = APIRouter()


# GET /channels
@router.get("", response_model=APIResponse)
async def list_channels(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    channels = await channel_service.list_channels(db, current_user.id)
    return APIResponse(
        status="success",
        data=[ChannelSummary.model_validate(c).model_dump(mode="json") for c in channels],
    )


# DELETE /channels/{id}
@router.delete("/{channel_id}", response_model=APIResponse)
async def delete_channel(
    channel_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await channel_service.delete_channel(db, current_user.id, channel_id):
        raise HTTPException(status_code=404, detail="Channel not found")
    return APIResponse(status="success", message="Channel disconnected")
