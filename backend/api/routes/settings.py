"""
Settings Routes - read and tune sequence settings
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional

from core.logger import log_ok
from ..dependencies import get_app_state, AppState

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingsRequest(BaseModel):
    tolerance: Optional[float] = None
    conveyor_power: Optional[float] = None
    pre_start_delay: Optional[float] = None
    hold_duration: Optional[float] = None
    arrival_wait: Optional[float] = None
    post_dispatch_wait: Optional[float] = None
    poll_interval: Optional[float] = None
    detection_timeout: Optional[float] = None
    reachability_timeout: Optional[float] = None
    max_attempts: Optional[int] = None
    retry_backoff: Optional[float] = None
    shipment_id: Optional[str] = None


@router.get("")
def get_settings(state: AppState = Depends(get_app_state)):
    """Get current sequence settings."""
    return state.settings.to_dict()


@router.put("")
def update_settings(req: SettingsRequest, state: AppState = Depends(get_app_state)):
    """
    Update sequence settings.

    Only fields present in the request change. Takes effect from the next
    run; a running sequence keeps the settings it started with.
    """
    changes = req.model_dump(exclude_unset=True)
    try:
        settings = state.settings.update(**changes)
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    log_ok("Settings updated", changes)
    return {"success": True, "settings": settings.to_dict()}


@router.post("/reset")
def reset_settings(state: AppState = Depends(get_app_state)):
    """Restore default settings."""
    return {"success": True, "settings": state.settings.reset().to_dict()}
