"""
Telemetry Service - read access to sensor readings in InfluxDB

Readings live in one measurement, tagged by devEUI. Queries are blocking
client calls, so they run in the default executor.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from influxdb_client import InfluxDBClient

from ..exceptions import UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class TelemetrySample:
    dev_eui: str
    time: datetime
    field: Optional[str] = None
    value: Any = None


class TelemetryService:

    def __init__(
        self,
        client: InfluxDBClient,
        org: str,
        bucket: str,
        measurement: str = "sensor_data",
        lookback: str = "-1h",
        active_window: str = "-5m",
    ):
        self.client = client
        self.org = org
        self.bucket = bucket
        self.measurement = measurement
        self.lookback = lookback
        self.active_window = active_window

    @classmethod
    def from_settings(cls, settings) -> "TelemetryService":
        client = InfluxDBClient(
            url=settings.INFLUX_URL,
            token=settings.INFLUX_TOKEN,
            org=settings.INFLUX_ORG,
            timeout=settings.INFLUX_TIMEOUT_MS,
        )
        return cls(
            client,
            org=settings.INFLUX_ORG,
            bucket=settings.INFLUX_BUCKET,
            measurement=settings.INFLUX_MEASUREMENT,
            lookback=settings.TELEMETRY_LOOKBACK,
            active_window=settings.ACTIVE_SENSOR_WINDOW,
        )

    def _query(self, flux: str, params: Optional[Dict[str, Any]] = None) -> list:
        try:
            tables = self.client.query_api().query(flux, org=self.org, params=params)
        except Exception as e:
            logger.error(f"InfluxDB query error: {e}")
            raise UpstreamError("Telemetry store unavailable") from e
        return [record for table in tables for record in table.records]

    async def _run(self, flux: str, params: Optional[Dict[str, Any]] = None) -> list:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self._query(flux, params))

    async def latest_sample(self, dev_eui: str) -> Optional[TelemetrySample]:
        """Most recent reading of one device within the lookback window"""
        flux = f'''
            from(bucket: "{self.bucket}")
              |> range(start: {self.lookback})
              |> filter(fn: (r) => r._measurement == "{self.measurement}")
              |> filter(fn: (r) => r.devEUI == params.devEUI)
              |> group()
              |> sort(columns: ["_time"], desc: true)
              |> limit(n: 1)
        '''
        records = await self._run(flux, {"devEUI": dev_eui})
        if not records:
            return None
        record = records[0]
        return TelemetrySample(
            dev_eui=dev_eui,
            time=record.get_time(),
            field=record.get_field(),
            value=record.get_value(),
        )

    async def last_seen_by_device(self) -> Dict[str, datetime]:
        """Latest reading time per devEUI within the active-sensor window"""
        flux = f'''
            from(bucket: "{self.bucket}")
              |> range(start: {self.active_window})
              |> filter(fn: (r) => r._measurement == "{self.measurement}")
              |> group(columns: ["devEUI"])
              |> sort(columns: ["_time"], desc: true)
              |> limit(n: 1)
              |> keep(columns: ["devEUI", "_time"])
        '''
        seen: Dict[str, datetime] = {}
        for record in await self._run(flux):
            dev_eui = record.values.get("devEUI")
            if dev_eui is None:
                continue
            t = record.get_time()
            if dev_eui not in seen or t > seen[dev_eui]:
                seen[dev_eui] = t
        return seen

    async def recent_rows(self, limit: int = 50) -> List[Dict[str, Any]]:
        flux = f'''
            from(bucket: "{self.bucket}")
              |> range(start: {self.lookback})
              |> limit(n: {int(limit)})
        '''
        rows = []
        for record in await self._run(flux):
            rows.append({
                k: v.isoformat() if isinstance(v, datetime) else v
                for k, v in record.values.items()
                if k not in ("result", "table")
            })
        return rows

    def close(self):
        self.client.close()
