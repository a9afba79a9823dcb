"""
Connection Routes - Connect/disconnect, status and call history
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Optional

from ..dependencies import get_app_state, AppState

router = APIRouter(tags=["connection"])


class ConnectRequest(BaseModel):
    port: str
    feed_port: Optional[str] = None


@router.get("/ports")
def get_ports():
    """List available serial ports."""
    from core.serial_transport import SerialTransport
    return {"ports": SerialTransport.list_ports()}


@router.get("/status")
def get_status(state: AppState = Depends(get_app_state)):
    """Get current connection status and sequence state."""
    return state.get_status()


@router.get("/history")
def get_history(limit: int = 50, state: AppState = Depends(get_app_state)):
    """Get recent call history."""
    return {"history": state.get_call_history(limit)}


@router.post("/connect")
def connect(req: ConnectRequest, state: AppState = Depends(get_app_state)):
    """Connect to the cell bus ('mock' and 'sim' need no hardware)."""
    if state.is_connected:
        return {"success": False, "message": "Already connected"}
    success = state.connect(req.port, req.feed_port)
    return {"success": success, "message": "Connected" if success else "Connection failed"}


@router.post("/disconnect")
def disconnect(state: AppState = Depends(get_app_state)):
    """Disconnect from the cell bus."""
    state.disconnect()
    return {"success": True}
