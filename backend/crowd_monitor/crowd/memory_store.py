"""
In-Memory Crowd Store

Dictionary-backed CrowdStore for development and tests. A single lock
guards id allocation and every mutation, so concurrent writers (the
background sampler and request handlers) never receive the same id.
"""

import itertools
import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from crowd_monitor.crowd.store import CrowdStore
from crowd_monitor.models.crowd import (
    CrowdDensityReading,
    CrowdPrediction,
    DensityLevel,
    HistoricalPattern,
    SensorType,
    Station,
)


PatternKey = Tuple[int, int, int, int]


class MemoryCrowdStore(CrowdStore):
    """
    CrowdStore backed by in-process dictionaries

    Usage:
        store = MemoryCrowdStore()
        store.record(1, 60, 70, 'camera')
        store.latest(1).density_level   # DensityLevel.CRITICAL
    """

    backend_name = "memory"

    def __init__(self, classifier=None, clock=None):
        super().__init__(classifier, clock)

        self._lock = threading.Lock()

        self._stations: Dict[int, Station] = {}
        self._readings: Dict[int, CrowdDensityReading] = {}
        self._patterns: Dict[PatternKey, HistoricalPattern] = {}
        self._predictions: Dict[int, CrowdPrediction] = {}

        # Per-entity id sequences
        self._station_ids = itertools.count(1)
        self._reading_ids = itertools.count(1)
        self._pattern_ids = itertools.count(1)
        self._prediction_ids = itertools.count(1)

    # Stations

    def add_station(self, name: str, x: float, y: float, zone: int = 1) -> Station:
        with self._lock:
            station = Station(id=next(self._station_ids), name=name, x=x, y=y, zone=zone)
            self._stations[station.id] = station
            return station.model_copy()

    def get_station(self, station_id: int) -> Optional[Station]:
        with self._lock:
            station = self._stations.get(station_id)
            return station.model_copy() if station else None

    def list_stations(self) -> List[Station]:
        with self._lock:
            return [self._stations[k].model_copy() for k in sorted(self._stations)]

    # Readings

    def _append_reading(self,
                        station_id: int,
                        bus_id: Optional[int],
                        passenger_count: int,
                        capacity: int,
                        density_level: DensityLevel,
                        sensor_type: SensorType,
                        timestamp: datetime) -> CrowdDensityReading:
        with self._lock:
            reading = CrowdDensityReading(
                id=next(self._reading_ids),
                station_id=station_id,
                bus_id=bus_id,
                passenger_count=passenger_count,
                capacity=capacity,
                density_level=density_level,
                sensor_type=sensor_type,
                timestamp=timestamp
            )
            self._readings[reading.id] = reading

            station = self._stations.get(station_id)
            if station is not None:
                station.passenger_count = passenger_count

            return reading

    def latest(self, station_id: int) -> Optional[CrowdDensityReading]:
        with self._lock:
            candidates = [r for r in self._readings.values() if r.station_id == station_id]
        if not candidates:
            return None
        return max(candidates, key=lambda r: (r.timestamp, r.id))

    def query(self,
              station_id: Optional[int] = None,
              bus_id: Optional[int] = None) -> List[CrowdDensityReading]:
        with self._lock:
            readings = list(self._readings.values())

        if station_id is not None:
            readings = [r for r in readings if r.station_id == station_id]
        if bus_id is not None:
            readings = [r for r in readings if r.bus_id == bus_id]

        return sorted(readings, key=lambda r: (r.timestamp, r.id), reverse=True)

    # Patterns

    def _find_pattern(self,
                      station_id: int,
                      route_id: int,
                      day: int,
                      hour: int) -> Optional[HistoricalPattern]:
        with self._lock:
            pattern = self._patterns.get((station_id, route_id, day, hour))
            return pattern.model_copy() if pattern else None

    def _upsert_patterns(self,
                         patterns: List[HistoricalPattern],
                         updated_at: datetime) -> List[HistoricalPattern]:
        stored = []
        with self._lock:
            for pattern in patterns:
                existing = self._patterns.get(pattern.key)
                pattern_id = existing.id if existing else next(self._pattern_ids)

                row = pattern.model_copy(update={'id': pattern_id, 'last_updated': updated_at})
                self._patterns[row.key] = row
                stored.append(row.model_copy())
        return stored

    def patterns(self, station_id: int, route_id: int) -> List[HistoricalPattern]:
        with self._lock:
            rows = [
                p.model_copy() for p in self._patterns.values()
                if p.station_id == station_id and p.route_id == route_id
            ]
        return sorted(rows, key=lambda p: (p.day_of_week, p.hour_of_day))

    def count_patterns(self) -> int:
        with self._lock:
            return len(self._patterns)

    # Predictions

    def add_predictions(self, predictions: List[CrowdPrediction]) -> List[CrowdPrediction]:
        with self._lock:
            return self._insert_predictions(predictions)

    def _insert_predictions(self, predictions: List[CrowdPrediction]) -> List[CrowdPrediction]:
        # Caller holds self._lock
        created_at = self.clock()
        stored = []
        for prediction in predictions:
            row = prediction.model_copy(update={
                'id': next(self._prediction_ids),
                'created_at': created_at
            })
            self._predictions[row.id] = row
            stored.append(row)
        return stored

    def _remove_predictions(self, station_id: int, route_id: int) -> int:
        # Caller holds self._lock
        doomed = [
            pid for pid, p in self._predictions.items()
            if p.station_id == station_id and p.route_id == route_id
        ]
        for pid in doomed:
            del self._predictions[pid]
        return len(doomed)

    def predictions(self, station_id: int, route_id: int) -> List[CrowdPrediction]:
        with self._lock:
            rows = [
                p for p in self._predictions.values()
                if p.station_id == station_id and p.route_id == route_id
            ]
        return sorted(rows, key=lambda p: (p.predicted_time, p.id))

    def delete_predictions(self, station_id: int, route_id: int) -> int:
        with self._lock:
            return self._remove_predictions(station_id, route_id)

    def replace_predictions(self,
                            station_id: int,
                            route_id: int,
                            predictions: List[CrowdPrediction]) -> List[CrowdPrediction]:
        with self._lock:
            self._remove_predictions(station_id, route_id)
            return self._insert_predictions(predictions)
