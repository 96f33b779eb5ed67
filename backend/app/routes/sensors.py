from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional

from ..config import settings
from ..database import get_db
from ..dependencies import get_optional_claims, get_telemetry, require_role
from ..exceptions import InvalidToken, NotFoundError
from ..schemas.auth import ADMIN_ROLE, VILLAGER_ROLE, SessionClaims
from ..schemas.sensor import SensorCreate, SensorUpdate
from ..services.sensor_service import SensorService
from ..services.telemetry_service import TelemetryService
from ..services.villager_service import VillagerService


router = APIRouter(tags=["Sensors"])

admin_only = require_role(ADMIN_ROLE)


def _villager_id(claims: SessionClaims) -> int:
    if claims.villager_id is None:
        raise InvalidToken("Invalid token. Please login again.")
    return claims.villager_id


# Anonymous callers and admins see every sensor (public website); villagers only their own
@router.get("/sensors")
async def list_sensors(
    current: Optional[SessionClaims] = Depends(get_optional_claims),
    db: Session = Depends(get_db),
    telemetry: TelemetryService = Depends(get_telemetry)
):
    threshold = settings.SENSOR_LIVE_THRESHOLD_SECONDS
    
    if current is not None and current.role == VILLAGER_ROLE:
        villager_id = _villager_id(current)
        sensors = await SensorService.decorate(
            SensorService.list_for_villager(db, villager_id), telemetry, threshold
        )
        for sensor in sensors:
            sensor["isMine"] = True
        return {
            "success": True,
            "sensors": sensors,
            "count": len(sensors),
            "role": VILLAGER_ROLE,
            "message": f"Showing {len(sensors)} sensors mapped to you"
        }
    
    sensors = await SensorService.decorate(SensorService.list_all(db), telemetry, threshold)
    return {
        "success": True,
        "sensors": sensors,
        "count": len(sensors),
        "role": current.role if current else "guest",
        "message": f"Showing all {len(sensors)} sensors in the system"
    }


@router.get("/my-sensors")
async def list_my_sensors(
    current: SessionClaims = Depends(require_role(VILLAGER_ROLE)),
    db: Session = Depends(get_db),
    telemetry: TelemetryService = Depends(get_telemetry)
):
    villager = VillagerService.find_by_id(db, _villager_id(current))
    if not villager:
        raise NotFoundError("Villager not found in database")
    
    sensors = await SensorService.decorate(
        SensorService.list_for_villager(db, villager.id),
        telemetry,
        settings.SENSOR_LIVE_THRESHOLD_SECONDS
    )
    for sensor in sensors:
        sensor["isMine"] = True
    
    return {
        "success": True,
        "villager": {
            "name": villager.name,
            "aadhaar": villager.aadhaar,
            "phone": villager.phone,
            "village": villager.village,
            "panchayat": villager.panchayat
        },
        "sensors": sensors,
        "count": len(sensors),
        "message": f"You have {len(sensors)} sensor(s)"
    }


@router.get("/sensors/{dev_eui}")
async def get_sensor(
    dev_eui: str,
    current: Optional[SessionClaims] = Depends(get_optional_claims),
    db: Session = Depends(get_db),
    telemetry: TelemetryService = Depends(get_telemetry)
):
    villager_id = None
    if current is not None and current.role == VILLAGER_ROLE:
        villager_id = _villager_id(current)
    
    sensor = SensorService.get(db, dev_eui, villager_id=villager_id)
    data = SensorService.to_dict(sensor, with_owner=True)
    [reading] = await SensorService.decorate([sensor], telemetry, settings.SENSOR_LIVE_THRESHOLD_SECONDS)
    data.update(reading)
    return {"success": True, "sensor": data}


@router.post("/sensors", status_code=status.HTTP_201_CREATED)
async def create_sensor(
    data: SensorCreate,
    current: SessionClaims = Depends(admin_only),
    db: Session = Depends(get_db)
):
    sensor = SensorService.create(db, data)
    return {
        "success": True,
        "message": "Sensor registered and mapped to villager" if data.phone else "Sensor registered successfully",
        "sensor": SensorService.to_dict(sensor, with_owner=True)
    }


@router.put("/sensors/{dev_eui}")
async def update_sensor(
    dev_eui: str,
    data: SensorUpdate,
    current: SessionClaims = Depends(admin_only),
    db: Session = Depends(get_db)
):
    sensor = SensorService.update(db, dev_eui, data)
    return {
        "success": True,
        "message": "Sensor updated",
        "sensor": SensorService.to_dict(sensor, with_owner=True)
    }


@router.delete("/sensors/{dev_eui}")
async def delete_sensor(
    dev_eui: str,
    current: SessionClaims = Depends(admin_only),
    db: Session = Depends(get_db)
):
    SensorService.delete(db, dev_eui)
    return {"success": True, "message": "Sensor deleted successfully"}
