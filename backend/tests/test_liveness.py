from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.services.liveness import SensorStatus, classify

NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_recent_sample_is_live():
    assert classify(NOW - timedelta(seconds=19), NOW, 20) is SensorStatus.LIVE


def test_stale_sample_is_offline():
    assert classify(NOW - timedelta(seconds=21), NOW, 20) is SensorStatus.OFFLINE


def test_threshold_boundary_is_inclusive():
    assert classify(NOW - timedelta(seconds=20), NOW, 20) is SensorStatus.LIVE


def test_missing_sample_is_offline():
    assert classify(None, NOW, 20) is SensorStatus.OFFLINE


def test_status_values_match_api_strings():
    assert SensorStatus.LIVE.value == "Live"
    assert SensorStatus.OFFLINE.value == "Offline"
