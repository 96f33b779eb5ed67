from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from ..config import settings
from ..database import get_db
from ..dependencies import get_session_manager, get_telemetry, get_token, require_role
from ..schemas.auth import ADMIN_ROLE, AdminLogin, SessionClaims
from ..services.dashboard_service import DashboardService
from ..services.session_service import SessionManager
from ..services.telemetry_service import TelemetryService

router = APIRouter(prefix="/admin", tags=["Admin"])


# Admin Login with username and password
@router.post("/login")
async def admin_login(
    form: AdminLogin,
    sessions: SessionManager = Depends(get_session_manager)
):
    token = sessions.issue_admin_session(form.username, form.password)
    
    return {
        "success": True,
        "token": token,
        "token_type": "bearer",
        "role": ADMIN_ROLE,
        "username": form.username,
        "expires_in": settings.SESSION_EXPIRE_MINUTES * 60
    }


@router.post("/logout")
async def admin_logout(
    current: SessionClaims = Depends(require_role(ADMIN_ROLE)),
    token: Optional[str] = Depends(get_token),
    sessions: SessionManager = Depends(get_session_manager)
):
    revoked = sessions.revoke(token)
    return {
        "success": True,
        "message": "Logged out" if revoked else "Logged out (token expires on its own)"
    }


@router.get("/dashboard")
async def get_dashboard(
    current: SessionClaims = Depends(require_role(ADMIN_ROLE)),
    db: Session = Depends(get_db),
    telemetry: TelemetryService = Depends(get_telemetry)
):
    """Get dashboard overview statistics"""
    data = await DashboardService.get_overview(
        db,
        telemetry,
        settings.SENSOR_LIVE_THRESHOLD_SECONDS,
        settings.DASHBOARD_RECENT_LIMIT
    )
    return {"success": True, "data": data}
