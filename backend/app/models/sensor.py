from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Table
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..database import Base

# A sensor is mapped to at most one villager (unique sensor_id)
villager_sensors = Table(
    "villager_sensors",
    Base.metadata,
    Column("villager_id", Integer, ForeignKey("villagers.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("sensor_id", Integer, ForeignKey("sensors.id", ondelete="CASCADE"), primary_key=True),
)

class Sensor(Base):
    __tablename__ = "sensors"
    
    id = Column(Integer, primary_key=True, index=True)
    dev_eui = Column("devEUI", String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    village = Column(String(255), nullable=True)
    panchayat = Column(String(255), nullable=True)
    installed_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    owners = relationship("Villager", secondary=villager_sensors, back_populates="sensors")
    
    @property
    def owner(self):
        return self.owners[0] if self.owners else None
