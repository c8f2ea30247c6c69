"""
Background Crowd Sampler

Periodic task that synthesizes occupancy readings for the major
stations so the live dashboard keeps moving without real sensors.

Each tick:
- pick one major station at random
- draw a base passenger count, scaled up during rush hours
- record it with the canonical capacity

A failing tick is logged and skipped; the loop keeps running until
stop() cancels it.
"""

import asyncio
import time
from typing import List, Optional

import numpy as np

from crowd_monitor.crowd.exceptions import SamplerTickError
from crowd_monitor.crowd.pattern_table import DEFAULT_RUSH_HOURS, is_rush_hour
from crowd_monitor.crowd.store import CrowdStore
from crowd_monitor.models.crowd import CrowdDensityReading


DEFAULT_MAJOR_STATIONS = [1, 2, 3, 5, 7, 9, 12, 15, 18, 22, 25, 28]


class CrowdSampler:
    """
    Background service producing synthetic readings

    Usage:
        sampler = CrowdSampler(store, config=crowd_config)
        await sampler.start()
        # ... later ...
        await sampler.stop()
    """

    def __init__(self,
                 store: CrowdStore,
                 config: dict = None,
                 rng: np.random.Generator = None,
                 interval: float = None):
        """
        Initialize crowd sampler

        Args:
            store: Crowd store receiving the readings
            config: Crowd configuration dictionary
            rng: Random generator for station choice and counts
            interval: Seconds between ticks (overrides config)
        """
        self.store = store
        self.config = config or {}
        self.rng = rng or np.random.default_rng()

        sampler_config = self.config.get('sampler', {})

        self.interval = interval if interval is not None else sampler_config.get('interval', 120)
        self.major_stations: List[int] = list(self.config.get('majorStations', DEFAULT_MAJOR_STATIONS))
        self.capacity = self.config.get('capacity', 70)
        self.base_min = sampler_config.get('baseMin', 10)
        self.base_max = sampler_config.get('baseMax', 45)
        self.rush_multiplier = sampler_config.get('rushMultiplier', 2.1)
        self.sensor_type = sampler_config.get('sensorType', 'automatic')
        self.rush_hours = tuple(self.config.get('patterns', {}).get('rushHours', DEFAULT_RUSH_HOURS))

        if not self.major_stations:
            raise ValueError("Sampler needs at least one major station")

        self._running = False
        self._task: Optional[asyncio.Task] = None

        # Statistics
        self.total_samples = 0
        self.total_failures = 0
        self.last_sample_time = 0.0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the background sampling task"""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._sampling_loop())
        print(f"[OK] Crowd sampler started (every {self.interval}s, "
              f"{len(self.major_stations)} stations)")

    async def stop(self):
        """Stop the background sampling task"""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

            print("[SAMPLER] Crowd sampler stopped")

    async def _sampling_loop(self):
        """Main sampling loop"""
        while self._running:
            await asyncio.sleep(self.interval)

            try:
                # Store writes block, so keep them off the event loop
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, self.sample_once)
            except SamplerTickError as e:
                self.total_failures += 1
                print(f"[WARN] Crowd sampler tick skipped: {e}")

    def synthesize_count(self, hour: int) -> int:
        """Synthetic passenger count for the given local hour"""
        base = int(self.rng.integers(self.base_min, self.base_max))
        multiplier = self.rush_multiplier if is_rush_hour(hour, self.rush_hours) else 1.0
        return min(self.capacity, int(base * multiplier))

    def sample_once(self) -> CrowdDensityReading:
        """
        Record one synthetic reading

        Raises:
            SamplerTickError: If the reading could not be produced or stored
        """
        try:
            station_id = int(self.rng.choice(self.major_stations))
            count = self.synthesize_count(self.store.clock().hour)

            reading = self.store.record(
                station_id=station_id,
                passenger_count=count,
                capacity=self.capacity,
                sensor_type=self.sensor_type
            )
        except Exception as e:
            raise SamplerTickError(f"Sampling failed: {e}") from e

        self.total_samples += 1
        self.last_sample_time = time.time()
        return reading

    def get_statistics(self) -> dict:
        """Get sampler statistics"""
        return {
            'running': self._running,
            'interval': self.interval,
            'majorStations': self.major_stations,
            'totalSamples': self.total_samples,
            'totalFailures': self.total_failures,
            'lastSampleTime': self.last_sample_time
        }
