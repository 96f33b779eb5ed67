from sqlalchemy.orm import Session
from sqlalchemy import func
from datetime import datetime, timezone
from typing import Dict, Any

from ..models.villager import Villager
from .liveness import SensorStatus, classify
from .sensor_service import SensorService
from .telemetry_service import TelemetryService
from .villager_service import VillagerService

class DashboardService:

    @staticmethod
    async def count_active_sensors(telemetry: TelemetryService, threshold_seconds: float) -> int:
        """Devices whose latest reading is within the liveness threshold"""
        last_seen = await telemetry.last_seen_by_device()
        now = datetime.now(timezone.utc)
        return sum(
            1 for t in last_seen.values()
            if classify(t, now, threshold_seconds) == SensorStatus.LIVE
        )

    @staticmethod
    async def get_overview(
        db: Session,
        telemetry: TelemetryService,
        threshold_seconds: float,
        recent_limit: int = 5
    ) -> Dict[str, Any]:
        """Get overview statistics for the admin dashboard"""
        total_villagers = VillagerService.count(db)
        total_sensors = SensorService.count(db)

        # Distinct villages across registered villagers
        total_villages = db.query(func.count(func.distinct(Villager.village))).scalar() or 0

        active_sensors = await DashboardService.count_active_sensors(telemetry, threshold_seconds)

        recent_villagers = [
            {
                "name": v.name,
                "aadhaar_number": v.aadhaar,
                "village": v.village,
                "phone": v.phone,
                "panchayat": v.panchayat
            }
            for v in VillagerService.list_all(db, limit=recent_limit)
        ]

        recent_sensors = [
            {
                "devEUI": s["devEUI"],
                "name": s["name"],
                "village": s["village"],
                "panchayat": s["panchayat"],
                "status": s["status"]
            }
            for s in await SensorService.decorate(
                SensorService.list_recent(db, recent_limit), telemetry, threshold_seconds
            )
        ]

        return {
            "statistics": {
                "totalVillagers": total_villagers,
                "totalSensors": total_sensors,
                "activeSensors": active_sensors,
                "totalVillages": total_villages
            },
            "recentVillagers": recent_villagers,
            "recentSensors": recent_sensors
        }
