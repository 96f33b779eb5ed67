"""
Sensor registry queries plus latest-reading/liveness decoration
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..exceptions import ConflictError, NotFoundError
from ..models.sensor import Sensor, villager_sensors
from ..schemas.sensor import SensorCreate, SensorUpdate
from .liveness import classify
from .telemetry_service import TelemetrySample, TelemetryService
from .villager_service import VillagerService

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SensorService:

    @staticmethod
    def to_dict(sensor: Sensor, with_owner: bool = False) -> Dict[str, Any]:
        data = {
            "id": sensor.id,
            "devEUI": sensor.dev_eui,
            "name": sensor.name,
            "village": sensor.village,
            "panchayat": sensor.panchayat,
            "installed_at": sensor.installed_at.isoformat() if sensor.installed_at else None,
        }
        if with_owner:
            owner = sensor.owner
            data.update({
                "phone": owner.phone if owner else None,
                "villager_name": owner.name if owner else None,
                "aadhaar": owner.aadhaar if owner else None,
            })
        return data

    @staticmethod
    def list_all(db: Session, limit: Optional[int] = None) -> List[Sensor]:
        query = db.query(Sensor).order_by(Sensor.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def list_recent(db: Session, limit: int) -> List[Sensor]:
        return db.query(Sensor).order_by(Sensor.installed_at.desc(), Sensor.id.desc()).limit(limit).all()

    @staticmethod
    def list_for_villager(db: Session, villager_id: int) -> List[Sensor]:
        return (
            db.query(Sensor)
            .join(villager_sensors, villager_sensors.c.sensor_id == Sensor.id)
            .filter(villager_sensors.c.villager_id == villager_id)
            .order_by(Sensor.id.desc())
            .all()
        )

    @staticmethod
    def count(db: Session) -> int:
        return db.query(Sensor).count()

    @staticmethod
    def count_for_villager(db: Session, villager_id: int) -> int:
        return db.query(villager_sensors).filter(villager_sensors.c.villager_id == villager_id).count()

    @staticmethod
    def get(db: Session, dev_eui: str, villager_id: Optional[int] = None) -> Sensor:
        """Sensor by devEUI; with `villager_id` only if mapped to that villager"""
        query = db.query(Sensor).filter(Sensor.dev_eui == dev_eui)
        if villager_id is not None:
            query = query.join(villager_sensors, villager_sensors.c.sensor_id == Sensor.id).filter(
                villager_sensors.c.villager_id == villager_id
            )
        sensor = query.first()
        if sensor is None:
            raise NotFoundError(
                "Sensor not found or not mapped to you" if villager_id is not None else "Sensor not found"
            )
        return sensor

    @staticmethod
    def _owner_for_phone(db: Session, phone: Optional[str]):
        if not phone:
            return None
        villager = VillagerService.find_by_phone(db, phone)
        if villager is None:
            raise NotFoundError("No villager found with this phone number")
        return villager

    @staticmethod
    def create(db: Session, data: SensorCreate) -> Sensor:
        owner = SensorService._owner_for_phone(db, data.phone)
        sensor = Sensor(
            dev_eui=data.devEUI,
            name=data.deviceName,
            village=data.village or None,
            panchayat=data.panchayat or None,
        )
        if owner is not None:
            sensor.owners = [owner]
        db.add(sensor)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Sensor already exists")
        db.refresh(sensor)
        logger.info(f"Sensor {sensor.dev_eui} registered" + (f" for villager {owner.id}" if owner else ""))
        return sensor

    @staticmethod
    def update(db: Session, dev_eui: str, data: SensorUpdate) -> Sensor:
        sensor = SensorService.get(db, dev_eui)
        owner = SensorService._owner_for_phone(db, data.phone)
        if data.deviceName:
            sensor.name = data.deviceName
        sensor.village = data.village or None
        sensor.panchayat = data.panchayat or None
        # The mapping is replaced on every update
        sensor.owners = [owner] if owner is not None else []
        db.commit()
        db.refresh(sensor)
        return sensor

    @staticmethod
    def delete(db: Session, dev_eui: str) -> None:
        sensor = SensorService.get(db, dev_eui)
        db.delete(sensor)
        db.commit()
        logger.info(f"Sensor {dev_eui} deleted")

    @staticmethod
    def describe(
        sensor: Sensor,
        sample: Optional[TelemetrySample],
        now: datetime,
        threshold_seconds: float,
    ) -> Dict[str, Any]:
        status = classify(sample.time if sample else None, now, threshold_seconds)
        return {
            "devEUI": sensor.dev_eui,
            "name": sensor.name,
            "village": sensor.village,
            "panchayat": sensor.panchayat,
            "measurement": f"{sample.field}: {sample.value}" if sample else "No data",
            "field": sample.field if sample else None,
            "value": sample.value if sample else None,
            "time": sample.time.isoformat() if sample else None,
            "status": status.value,
        }

    @staticmethod
    async def decorate(
        sensors: Iterable[Sensor],
        telemetry: TelemetryService,
        threshold_seconds: float,
        clock: Callable[[], datetime] = utcnow,
    ) -> List[Dict[str, Any]]:
        """Latest reading and Live/Offline status for each sensor, one query per sensor"""
        result = []
        for sensor in sensors:
            sample = await telemetry.latest_sample(sensor.dev_eui)
            result.append(SensorService.describe(sensor, sample, clock(), threshold_seconds))
        return result
