"""
GET /status
Reports the build controller's counters and whether its pod watch is running.
"""
from fastapi import APIRouter, HTTPException, Request

router = APIRouter()

@router.get("/status")
async def get_status(request: Request):
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(status_code=503, detail="Controller not started")
    return controller.snapshot()
