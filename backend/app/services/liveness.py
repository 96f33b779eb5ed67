"""
Sensor Liveness Evaluator
"""
from datetime import datetime
from enum import Enum
from typing import Optional


class SensorStatus(str, Enum):
    LIVE = "Live"
    OFFLINE = "Offline"


def classify(last_seen: Optional[datetime], now: datetime, threshold_seconds: float) -> SensorStatus:
    """
    Live iff a sample exists and is at most `threshold_seconds` old (inclusive).
    No sample at all is Offline.
    """
    if last_seen is None:
        return SensorStatus.OFFLINE
    if (now - last_seen).total_seconds() <= threshold_seconds:
        return SensorStatus.LIVE
    return SensorStatus.OFFLINE
