"""
Sequence Routes - start, cancel and observe inspection runs
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from typing import List

from core.logger import log_info
from perception.frames import CameraFrame
from ..dependencies import get_app_state, require_connection, require_idle, AppState

router = APIRouter(prefix="/sequence", tags=["sequence"])


class FrameRequest(BaseModel):
    """Camera frame to inject: one z coordinate per visible model."""
    coordinates: List[float] = Field(default_factory=list)


@router.post("/run")
def run_sequence(state: AppState = Depends(get_app_state)):
    """
    Start an inspection run in the background.

    Poll /sequence/state for progress.
    """
    require_idle()
    try:
        state.start_run()
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))
    log_info("Inspection run requested over API")
    return {"success": True}


@router.post("/cancel")
def cancel_sequence():
    """Cancel the running sequence at its next blocking point."""
    station = require_connection()
    cancelled = station.cancel("Cancelled over API")
    return {"success": cancelled}


@router.get("/state")
def get_sequence_state():
    """Get current state, transition history and last result."""
    station = require_connection()
    seq = station.sequence
    return {
        "running": station.is_running,
        "state": seq.state.name if seq else None,
        "history": [s.name for s in seq.history] if seq else [],
        "last_result": station.last_result.to_dict() if station.last_result else None,
    }


@router.post("/frame")
def inject_frame(req: FrameRequest, state: AppState = Depends(get_app_state)):
    """Push a camera frame into the feed (mock bus only)."""
    require_connection()
    source = state.frame_queue
    if source is None:
        raise HTTPException(status_code=400, detail="Frame injection needs the 'mock' bus")
    source.push(CameraFrame.at(*req.coordinates))
    return {"success": True, "models": len(req.coordinates)}
