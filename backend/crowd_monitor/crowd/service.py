"""
Crowd Service

Facade over the crowd analytics core. Selects the storage backend,
wires classifier, pattern table, prediction generator, analytics and
sampler together, and exposes the operations consumed by the API:

- record_reading / latest_reading / query_readings
- lookup_pattern / aggregate_patterns
- generate_predictions / get_predictions
- get_analytics / get_system_summary
"""

import math
from datetime import timedelta
from typing import List, Optional, Sequence

import numpy as np

from crowd_monitor.crowd.analytics import CrowdAnalyticsAggregator
from crowd_monitor.crowd.density_classifier import DensityClassifier
from crowd_monitor.crowd.memory_store import MemoryCrowdStore
from crowd_monitor.crowd.pattern_table import HistoricalPatternTable, is_rush_hour
from crowd_monitor.crowd.prediction_generator import PredictionGenerator
from crowd_monitor.crowd.sampler import DEFAULT_MAJOR_STATIONS, CrowdSampler
from crowd_monitor.crowd.store import Clock, CrowdStore
from crowd_monitor.models.crowd import (
    CrowdAnalytics,
    CrowdDensityReading,
    CrowdPrediction,
    CrowdSummary,
    DensityLevel,
    HistoricalPattern,
    SensorType,
)


def create_store(config: dict = None,
                 classifier: DensityClassifier = None,
                 clock: Clock = None,
                 session_factory=None) -> CrowdStore:
    """
    Build the storage backend named by crowd.storage.backend

    Args:
        config: Crowd configuration dictionary
        classifier: Density classifier shared with the store
        clock: Callable returning the current local time
        session_factory: SQLAlchemy sessionmaker (sql backend only)

    Raises:
        ValueError: On an unknown backend name
    """
    config = config or {}
    backend = config.get('storage', {}).get('backend', 'memory')

    if backend == 'memory':
        return MemoryCrowdStore(classifier=classifier, clock=clock)

    if backend == 'sql':
        from crowd_monitor.crowd.sql_store import SqlCrowdStore

        if session_factory is None:
            from crowd_monitor.database.database import SessionLocal, init_db
            init_db()
            session_factory = SessionLocal
        return SqlCrowdStore(session_factory, classifier=classifier, clock=clock)

    raise ValueError(f"Unknown crowd storage backend: {backend}. Valid: ['memory', 'sql']")


class CrowdService:
    """
    Crowd analytics entry point

    Usage:
        service = CrowdService(config=crowd_config)
        service.seed()
        service.record_reading(3, 42, 70, 'manual')
        analytics = service.get_analytics(3)
    """

    def __init__(self,
                 config: dict = None,
                 store: CrowdStore = None,
                 rng: np.random.Generator = None,
                 clock: Clock = None,
                 session_factory=None):
        """
        Args:
            config: Crowd configuration dictionary (crowd.yaml contents)
            store: Pre-built store; created from config when None
            rng: Random generator shared by all synthetic components
            clock: Callable returning the current local time
            session_factory: SQLAlchemy sessionmaker for the sql backend
        """
        self.config = config or {}
        self.rng = rng or np.random.default_rng()

        self.classifier = DensityClassifier(self.config)
        self.store = store or create_store(
            self.config, self.classifier, clock, session_factory
        )

        self.capacity = self.config.get('capacity', 70)
        self.major_stations = list(self.config.get('majorStations', DEFAULT_MAJOR_STATIONS))
        self.route_ids = list(self.config.get('routeIds', [1, 2, 3, 4, 5]))

        self.pattern_table = HistoricalPatternTable(
            self.store, self.classifier, self.config, self.rng
        )
        self.generator = PredictionGenerator(
            self.store, self.classifier, self.config, self.rng
        )
        self.analytics = CrowdAnalyticsAggregator(
            self.store, self.pattern_table, self.generator, self.config
        )
        self.sampler = CrowdSampler(self.store, self.config, self.rng)

        print(f"[OK] Crowd service initialized ({self.store.backend_name} backend)")

    # ============================================
    # Readings
    # ============================================

    def record_reading(self,
                       station_id: int,
                       passenger_count: int,
                       capacity: int,
                       sensor_type,
                       bus_id: Optional[int] = None) -> CrowdDensityReading:
        """Validate, classify and append a reading"""
        return self.store.record(station_id, passenger_count, capacity, sensor_type, bus_id)

    def latest_reading(self, station_id: int) -> Optional[CrowdDensityReading]:
        """Most recent reading for a station, or None"""
        return self.store.latest(station_id)

    def query_readings(self,
                       station_id: Optional[int] = None,
                       bus_id: Optional[int] = None) -> List[CrowdDensityReading]:
        """Matching readings, newest first"""
        return self.store.query(station_id, bus_id)

    # ============================================
    # Patterns
    # ============================================

    def lookup_pattern(self,
                       station_id: int,
                       route_id: int,
                       day: int,
                       hour: int) -> Optional[HistoricalPattern]:
        """Exact-match pattern lookup, or None"""
        return self.pattern_table.lookup(station_id, route_id, day, hour)

    def get_patterns(self, station_id: int, route_id: int) -> List[HistoricalPattern]:
        """All pattern cells of a station/route pair"""
        return self.pattern_table.patterns(station_id, route_id)

    def aggregate_patterns(self, station_id: int, route_id: int) -> List[HistoricalPattern]:
        """Rebuild a pair's pattern cells from recorded readings"""
        return self.pattern_table.aggregate(station_id, route_id)

    # ============================================
    # Predictions & analytics
    # ============================================

    def generate_predictions(self, station_id: int, route_id: int) -> List[CrowdPrediction]:
        """Generate and store a fresh forecast"""
        return self.generator.generate(station_id, route_id)

    def get_predictions(self, station_id: int, route_id: int) -> List[CrowdPrediction]:
        """Stored predictions ordered by predicted time"""
        return self.store.predictions(station_id, route_id)

    def get_analytics(self, station_id: int, route_id: int = None) -> CrowdAnalytics:
        """Per-station analytics view"""
        return self.analytics.analyze(station_id, route_id)

    def get_system_summary(self) -> CrowdSummary:
        """
        Crowd statistics across every recorded reading

        avg_crowd_density is the mean occupancy ratio as a rounded
        percentage; peak_readings counts high and critical readings.
        """
        readings = self.store.query()

        avg_density = 0.0
        if readings:
            avg_density = float(np.mean([r.passenger_count / r.capacity for r in readings])) * 100

        peak = [
            r for r in readings
            if r.density_level in (DensityLevel.HIGH, DensityLevel.CRITICAL)
        ]

        return CrowdSummary(
            total_readings=len(readings),
            avg_crowd_density=round(avg_density),
            peak_readings=len(peak),
            stations_tracked=len({r.station_id for r in readings})
        )

    # ============================================
    # Seeding
    # ============================================

    def seed(self, stations: Sequence[dict] = None) -> dict:
        """
        Populate stations, initial readings and historical patterns

        Stations and readings are only seeded into an empty store;
        pattern cells are replaced by key on every call.

        Args:
            stations: Station catalog entries ({name, x, y, zone})

        Returns:
            Counts of seeded stations, readings and pattern cells
        """
        station_count = 0
        if stations and not self.store.list_stations():
            for entry in stations:
                self.store.add_station(
                    name=entry['name'],
                    x=entry['x'],
                    y=entry['y'],
                    zone=entry.get('zone', 1)
                )
                station_count += 1

        # Backfill only an empty log so restarts on a persistent store don't duplicate it
        reading_count = 0
        if not self.store.query():
            reading_count = self.seed_readings(self.major_stations)

        pattern_count = self.pattern_table.seed(self.major_stations, self.route_ids)

        print(f"[OK] Crowd data seeded: {station_count} stations, "
              f"{reading_count} readings, {pattern_count} patterns")

        return {
            'stations': station_count,
            'readings': reading_count,
            'patterns': pattern_count
        }

    def seed_readings(self, station_ids: Sequence[int]) -> int:
        """
        Backfill hourly readings for the past day at each station

        Counts follow the rush-hour logic of the sampler with the seed
        multiplier; sensors are camera (30%) or infrared.
        """
        seed_config = self.config.get('seed', {})
        hours = seed_config.get('readingsPerStation', 24)
        base_min = seed_config.get('baseMin', 10)
        base_max = seed_config.get('baseMax', 40)
        rush_multiplier = seed_config.get('rushMultiplier', 2.2)
        rush_hours = self.pattern_table.rush_hours

        now = self.store.clock()
        count = 0

        for station_id in station_ids:
            # Oldest first so the log stays in insertion order
            for i in reversed(range(hours)):
                moment = now - timedelta(hours=i)
                base = int(self.rng.integers(base_min, base_max))
                multiplier = rush_multiplier if is_rush_hour(moment.hour, rush_hours) else 1.0
                passengers = min(self.capacity, math.floor(base * multiplier))
                sensor = SensorType.CAMERA if self.rng.random() > 0.7 else SensorType.INFRARED

                self.store.record(
                    station_id=station_id,
                    passenger_count=passengers,
                    capacity=self.capacity,
                    sensor_type=sensor,
                    timestamp=moment
                )
                count += 1

        return count


# Global crowd service instance
_crowd_service: Optional[CrowdService] = None


def get_crowd_service() -> Optional[CrowdService]:
    """Get the global CrowdService instance"""
    return _crowd_service


def init_crowd_service(config: dict = None, **kwargs) -> CrowdService:
    """Initialize the global CrowdService with config"""
    global _crowd_service
    _crowd_service = CrowdService(config, **kwargs)
    return _crowd_service
