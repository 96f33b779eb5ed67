from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..config import settings
from ..database import get_db
from ..dependencies import get_credential_store, get_current_claims, get_session_manager, get_token
from ..exceptions import InvalidToken, NotFoundError
from ..schemas.auth import ADMIN_ROLE, AadhaarLogin, SessionClaims
from ..services.credentials import AdminAccount, CredentialStore
from ..services.sensor_service import SensorService
from ..services.session_service import SessionManager, VillagerIdentity
from ..services.villager_service import VillagerService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


# Aadhaar login: the configured sentinel number logs in as admin, anything else as villager
@router.post("/login")
async def login(
    request: AadhaarLogin,
    db: Session = Depends(get_db),
    sessions: SessionManager = Depends(get_session_manager),
    credentials: CredentialStore = Depends(get_credential_store)
):
    aadhaar = request.aadhaarNumber
    
    if settings.ADMIN_AADHAAR and aadhaar == settings.ADMIN_AADHAAR:
        account = credentials.get(settings.ADMIN_USERNAME) or AdminAccount(
            username=settings.ADMIN_USERNAME, password_hash=None
        )
        token = sessions.start_admin_session(account)
        logger.info("Admin logged in with Aadhaar sentinel")
        return {
            "success": True,
            "token": token,
            "user": {
                "name": "Admin User",
                "aadhaarNumber": aadhaar,
                "role": ADMIN_ROLE
            }
        }
    
    villager = VillagerService.find_by_aadhaar(db, aadhaar)
    if not villager:
        raise NotFoundError("Villager not found")
    
    token = sessions.issue_villager_session(VillagerIdentity.from_villager(villager))
    
    return {
        "success": True,
        "token": token,
        "user": {
            "id": villager.id,
            "name": villager.name,
            "aadhaarNumber": aadhaar,
            "phone": villager.phone,
            "village": villager.village,
            "panchayat": villager.panchayat,
            "role": "villager"
        }
    }


# Validate token
@router.get("/auth/validate")
async def validate_token(
    token: Optional[str] = Depends(get_token),
    sessions: SessionManager = Depends(get_session_manager)
):
    try:
        claims = sessions.validate(token)
    except InvalidToken as e:
        raise InvalidToken(e.message, code=e.code, valid=False) from e
    
    return {
        "success": True,
        "valid": True,
        "user": claims.public_dict(),
        "message": "Token is valid"
    }


# Caller's profile
@router.get("/profile")
async def get_profile(
    current: SessionClaims = Depends(get_current_claims),
    db: Session = Depends(get_db)
):
    if current.role == ADMIN_ROLE:
        return {
            "success": True,
            "user": current.public_dict(),
            "sensorCount": SensorService.count(db)
        }
    
    # Profile fields come from the session, captured at login
    return {
        "success": True,
        "user": current.public_dict(),
        "sensorCount": SensorService.count_for_villager(db, current.villager_id) if current.villager_id else 0
    }
