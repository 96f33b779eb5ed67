from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..dependencies import get_telemetry, require_role
from ..schemas.auth import ADMIN_ROLE, SessionClaims
from ..schemas.villager import VillagerCreate, VillagerUpdate
from ..services.sensor_service import SensorService
from ..services.telemetry_service import TelemetryService
from ..services.villager_service import VillagerService

router = APIRouter(prefix="/villagers", tags=["Villagers"])

admin_only = require_role(ADMIN_ROLE)


@router.get("")
async def list_villagers(
    current: SessionClaims = Depends(admin_only),
    db: Session = Depends(get_db)
):
    villagers = [VillagerService.to_dict(v) for v in VillagerService.list_all(db)]
    return {"success": True, "villagers": villagers, "count": len(villagers)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_villager(
    data: VillagerCreate,
    current: SessionClaims = Depends(admin_only),
    db: Session = Depends(get_db)
):
    villager = VillagerService.create(db, data)
    return {
        "success": True,
        "message": "Villager added successfully",
        "villager": VillagerService.to_dict(villager)
    }


@router.get("/{aadhaar_number}")
async def get_villager(
    aadhaar_number: str,
    current: SessionClaims = Depends(admin_only),
    db: Session = Depends(get_db)
):
    villager = VillagerService.get_by_aadhaar(db, aadhaar_number)
    return {"success": True, "villager": VillagerService.to_dict(villager)}


@router.put("/{aadhaar_number}")
async def update_villager(
    aadhaar_number: str,
    data: VillagerUpdate,
    current: SessionClaims = Depends(admin_only),
    db: Session = Depends(get_db)
):
    villager = VillagerService.update(db, aadhaar_number, data)
    return {
        "success": True,
        "message": "Villager updated",
        "villager": VillagerService.to_dict(villager)
    }


@router.delete("/{aadhaar_number}")
async def delete_villager(
    aadhaar_number: str,
    current: SessionClaims = Depends(admin_only),
    db: Session = Depends(get_db)
):
    VillagerService.delete(db, aadhaar_number)
    return {"success": True, "message": "Villager deleted"}


# Sensors mapped to one villager, with latest reading
@router.get("/{aadhaar_number}/sensors")
async def get_villager_sensors(
    aadhaar_number: str,
    current: SessionClaims = Depends(admin_only),
    db: Session = Depends(get_db),
    telemetry: TelemetryService = Depends(get_telemetry)
):
    villager = VillagerService.get_by_aadhaar(db, aadhaar_number)
    sensors = await SensorService.decorate(
        SensorService.list_for_villager(db, villager.id),
        telemetry,
        settings.SENSOR_LIVE_THRESHOLD_SECONDS
    )
    return {
        "success": True,
        "villager": VillagerService.to_dict(villager),
        "sensors": sensors,
        "count": len(sensors)
    }
