import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..exceptions import ConflictError, NotFoundError
from ..models.villager import Villager
from ..schemas.villager import VillagerCreate, VillagerUpdate

logger = logging.getLogger(__name__)


class VillagerService:

    @staticmethod
    def to_dict(villager: Villager) -> Dict[str, Any]:
        return {
            "id": villager.id,
            "aadhaar_number": villager.aadhaar,
            "name": villager.name,
            "phone": villager.phone,
            "village": villager.village,
            "panchayat": villager.panchayat,
            "occupation": villager.occupation,
            "address": villager.address,
            "created_at": villager.created_at.isoformat() if villager.created_at else None,
        }

    @staticmethod
    def list_all(db: Session, limit: Optional[int] = None) -> List[Villager]:
        query = db.query(Villager).order_by(Villager.created_at.desc(), Villager.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def count(db: Session) -> int:
        return db.query(Villager).count()

    @staticmethod
    def find_by_aadhaar(db: Session, aadhaar: str) -> Optional[Villager]:
        return db.query(Villager).filter(Villager.aadhaar == aadhaar).first()

    @staticmethod
    def find_by_phone(db: Session, phone: str) -> Optional[Villager]:
        return db.query(Villager).filter(Villager.phone == phone).first()

    @staticmethod
    def find_by_id(db: Session, villager_id: int) -> Optional[Villager]:
        return db.query(Villager).filter(Villager.id == villager_id).first()

    @staticmethod
    def get_by_aadhaar(db: Session, aadhaar: str) -> Villager:
        villager = VillagerService.find_by_aadhaar(db, aadhaar)
        if villager is None:
            raise NotFoundError("Villager not found")
        return villager

    @staticmethod
    def create(db: Session, data: VillagerCreate) -> Villager:
        villager = Villager(
            aadhaar=data.aadhaarNumber,
            name=data.name,
            phone=data.phone,
            village=data.village,
            panchayat=data.panchayat,
            occupation=data.occupation,
            address=data.address,
        )
        db.add(villager)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Aadhaar or phone already exists")
        db.refresh(villager)
        logger.info(f"Villager {villager.id} registered")
        return villager

    @staticmethod
    def update(db: Session, aadhaar: str, data: VillagerUpdate) -> Villager:
        villager = VillagerService.get_by_aadhaar(db, aadhaar)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field in ("name", "phone", "village", "panchayat") and value is None:
                continue
            setattr(villager, field, value)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Phone already exists")
        db.refresh(villager)
        return villager

    @staticmethod
    def delete(db: Session, aadhaar: str) -> None:
        villager = VillagerService.get_by_aadhaar(db, aadhaar)
        db.delete(villager)
        db.commit()
        logger.info(f"Villager {villager.id} deleted")
