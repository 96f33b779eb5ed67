from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..database import Base

class Villager(Base):
    __tablename__ = "villagers"
    
    id = Column(Integer, primary_key=True, index=True)
    aadhaar = Column(String(12), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(10), unique=True, nullable=False, index=True)
    village = Column(String(255), nullable=False)
    panchayat = Column(String(255), nullable=False)
    occupation = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    sensors = relationship("Sensor", secondary="villager_sensors", back_populates="owners")
