# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Optional external datastore.

The simulator works without a datastore. When one is configured it can supply
the initial sensor rows and receives a reading for every protocol write. The
implementation is chosen once at startup by create_datastore(); callers never
check whether a datastore is present.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from .state import SensorState

logger = logging.getLogger(__name__)

SENSOR_SELECT = (
    "id,module_id,name,sensor_type,unit,min_value,max_value,"
    "data_pattern,pattern_config,status,plc_modules(name,status)"
)


class Datastore:
    """Interface of the external datastore."""

    async def fetch_sensor_rows(self) -> Optional[list[dict]]:
        """Return current sensor rows, or None if there are none."""
        raise NotImplementedError

    def record_write(self, sensor: SensorState) -> None:
        """Record a written value. Must not block or raise."""
        raise NotImplementedError

    async def close(self) -> None:
        pass


class NullDatastore(Datastore):
    """Datastore used when none is configured."""

    async def fetch_sensor_rows(self) -> Optional[list[dict]]:
        return None

    def record_write(self, sensor: SensorState) -> None:
        pass


class RestDatastore(Datastore):
    """Datastore backed by a PostgREST (Supabase) REST API.

    Reads sensors from ``/rest/v1/sensors`` and stores written values as rows
    of ``/rest/v1/sensor_readings``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        headers = {}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), headers=headers, timeout=timeout
        )
        self._tasks: set[asyncio.Task] = set()

    async def fetch_sensor_rows(self) -> Optional[list[dict]]:
        try:
            response = await self._client.get(
                "/rest/v1/sensors",
                params={
                    "select": SENSOR_SELECT,
                    "status": "eq.online",
                    "order": "created_at.asc",
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Error fetching sensors from datastore: {e}")
            return None

        try:
            rows = response.json()
        except ValueError as e:
            logger.warning(f"Datastore returned invalid JSON: {e}")
            return None
        if not isinstance(rows, list) or not rows:
            logger.info("Datastore has no online sensors")
            return None
        logger.info(f"Fetched {len(rows)} sensor rows from datastore")
        return rows

    def record_write(self, sensor: SensorState) -> None:
        if sensor.external_id is None:
            logger.debug(f"{sensor.address.symbol} has no datastore id, not recording write")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, dropping datastore write")
            return
        task = loop.create_task(self._insert_reading(sensor.external_id, sensor.current_value))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _insert_reading(self, sensor_id, value: float) -> None:
        reading = {
            "sensor_id": sensor_id,
            "value": value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            response = await self._client.post("/rest/v1/sensor_readings", json=[reading])
            response.raise_for_status()
        except Exception as e:
            logger.warning(f"Error recording write for sensor {sensor_id}: {e}")

    async def close(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self._client.aclose()


def create_datastore(url: Optional[str] = None, api_key: Optional[str] = None) -> Datastore:
    """Select the datastore implementation for this run."""
    if not url:
        return NullDatastore()
    logger.info(f"Using REST datastore at {url}")
    return RestDatastore(url, api_key)
