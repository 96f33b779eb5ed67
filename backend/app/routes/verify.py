"""
Mobile phone verification: check phone, send/resend OTP, verify OTP
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
import logging

from ..config import settings
from ..database import get_db
from ..dependencies import get_otp_registry, get_session_manager
from ..exceptions import NotFoundError
from ..limiter import limiter
from ..schemas.auth import OTPVerify, PhoneRequest
from ..services.otp_service import OTPRegistry
from ..services.session_service import SessionManager, VillagerIdentity
from ..services.villager_service import VillagerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verify", tags=["Phone Verification"])


def _registered_villager(db: Session, phone: str):
    villager = VillagerService.find_by_phone(db, phone)
    if not villager:
        raise NotFoundError("Phone number not registered in our system", code="phone_not_registered")
    return villager


def _otp_response(message: str, code: str) -> dict:
    response = {
        "success": True,
        "message": message,
        "expires_in": settings.OTP_EXPIRE_MINUTES * 60
    }
    if settings.OTP_TEST_MODE:
        response["otp"] = code
        response["test_mode"] = True
    return response


@router.post("/check-phone")
async def check_phone(payload: PhoneRequest, db: Session = Depends(get_db)):
    villager = _registered_villager(db, payload.phone)
    
    return {
        "success": True,
        "message": "Phone number verified",
        "villager": {
            "id": villager.id,
            "aadhaar_number": villager.aadhaar,
            "name": villager.name,
            "phone": villager.phone,
            "village": villager.village,
            "panchayat": villager.panchayat,
            "role": "villager"
        }
    }


@router.post("/send-otp")
@limiter.limit(settings.OTP_RATE_LIMIT)
async def send_otp(
    request: Request,
    payload: PhoneRequest,
    db: Session = Depends(get_db),
    registry: OTPRegistry = Depends(get_otp_registry)
):
    villager = _registered_villager(db, payload.phone)
    code = registry.issue(payload.phone, villager.id)
    return _otp_response("OTP sent successfully", code)


@router.post("/resend-otp")
@limiter.limit(settings.OTP_RATE_LIMIT)
async def resend_otp(
    request: Request,
    payload: PhoneRequest,
    db: Session = Depends(get_db),
    registry: OTPRegistry = Depends(get_otp_registry)
):
    registry.discard(payload.phone)
    villager = _registered_villager(db, payload.phone)
    code = registry.issue(payload.phone, villager.id)
    return _otp_response("New OTP sent successfully", code)


@router.post("/check-otp")
@limiter.limit(settings.OTP_RATE_LIMIT)
async def check_otp(
    request: Request,
    payload: OTPVerify,
    db: Session = Depends(get_db),
    registry: OTPRegistry = Depends(get_otp_registry),
    sessions: SessionManager = Depends(get_session_manager)
):
    villager_id = registry.verify(payload.phone, payload.otp)
    
    villager = VillagerService.find_by_id(db, villager_id)
    if not villager:
        raise NotFoundError("Villager data not found")
    
    token = sessions.issue_villager_session(VillagerIdentity.from_villager(villager))
    
    return {
        "success": True,
        "token": token,
        "user": {
            "id": villager.id,
            "name": villager.name,
            "aadhaar_number": villager.aadhaar,
            "phone": villager.phone,
            "village": villager.village,
            "panchayat": villager.panchayat,
            "role": "villager",
            "can_edit": False
        },
        "permissions": {
            "can_view": True,
            "can_edit": False,
            "can_delete": False
        }
    }
