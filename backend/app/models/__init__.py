"""
Models package - Import all SQLAlchemy models here
"""

from .villager import Villager
from .sensor import Sensor, villager_sensors

__all__ = [
    "Villager",
    "Sensor",
    "villager_sensors"
]
