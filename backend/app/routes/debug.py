"""
Debug API Routes
Admin-only inspection of raw telemetry and sensor mappings. Mounted only when DEBUG is on.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_telemetry, require_role
from ..exceptions import NotFoundError
from ..schemas.auth import ADMIN_ROLE, SessionClaims
from ..services.sensor_service import SensorService
from ..services.telemetry_service import TelemetryService
from ..services.villager_service import VillagerService

router = APIRouter(prefix="/debug", tags=["Debug"])


@router.get("/telemetry")
async def raw_telemetry(
    limit: int = 50,
    current: SessionClaims = Depends(require_role(ADMIN_ROLE)),
    telemetry: TelemetryService = Depends(get_telemetry)
):
    rows = await telemetry.recent_rows(min(max(limit, 1), 500))
    return {"success": True, "data": rows, "count": len(rows)}


@router.get("/sensor-mappings/{villager_id}")
async def sensor_mappings(
    villager_id: int,
    current: SessionClaims = Depends(require_role(ADMIN_ROLE)),
    db: Session = Depends(get_db)
):
    villager = VillagerService.find_by_id(db, villager_id)
    if not villager:
        raise NotFoundError("Villager not found")
    
    mappings = [
        {
            "villager_id": villager.id,
            "villager_name": villager.name,
            "phone": villager.phone,
            "sensor_id": sensor.id,
            "devEUI": sensor.dev_eui,
            "sensor_name": sensor.name
        }
        for sensor in SensorService.list_for_villager(db, villager.id)
    ]
    return {"success": True, "mappings": mappings, "count": len(mappings)}
