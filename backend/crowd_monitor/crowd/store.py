"""
Crowd Store Interface

Storage contract shared by the in-memory and SQL backends. Validation
and density classification live here so both backends behave the same;
subclasses only persist and fetch records.

Usage:
    store = MemoryCrowdStore()
    reading = store.record(3, 42, 70, SensorType.MANUAL)
    latest = store.latest(3)
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Union

from crowd_monitor.crowd.density_classifier import DensityClassifier
from crowd_monitor.crowd.exceptions import ValidationError
from crowd_monitor.models.crowd import (
    CrowdDensityReading,
    CrowdPrediction,
    DensityLevel,
    HistoricalPattern,
    SensorType,
    Station,
)


Clock = Callable[[], datetime]


def day_of_week(moment: datetime) -> int:
    """Day of week with 0 = Sunday .. 6 = Saturday"""
    return (moment.weekday() + 1) % 7


def validate_reading(station_id: int,
                     passenger_count: int,
                     capacity: int,
                     sensor_type: Union[SensorType, str]) -> SensorType:
    """
    Reject readings the classifier cannot handle

    Returns:
        The sensor type coerced to SensorType

    Raises:
        ValidationError: On a bad station id, count, capacity or sensor type
    """
    if station_id is None or station_id <= 0:
        raise ValidationError(f"Invalid station id: {station_id}")
    if passenger_count < 0:
        raise ValidationError(f"Passenger count cannot be negative: {passenger_count}")
    if capacity <= 0:
        raise ValidationError(f"Capacity must be positive: {capacity}")
    try:
        return SensorType(sensor_type)
    except ValueError:
        valid = [s.value for s in SensorType]
        raise ValidationError(f"Invalid sensor type: {sensor_type}. Valid: {valid}") from None


def validate_pattern_key(day: int, hour: int):
    """Raise ValidationError unless day is 0-6 and hour is 0-23"""
    if not 0 <= day <= 6:
        raise ValidationError(f"Day of week must be 0-6, got {day}")
    if not 0 <= hour <= 23:
        raise ValidationError(f"Hour of day must be 0-23, got {hour}")


class CrowdStore(ABC):
    """
    Abstract crowd storage

    Owns stations, the append-only reading log, the historical pattern
    table and stored predictions. Identifiers are allocated by the
    backend, increase monotonically per entity type and are never reused.
    """

    backend_name = "abstract"

    def __init__(self,
                 classifier: DensityClassifier = None,
                 clock: Clock = None):
        """
        Args:
            classifier: Density classifier (default thresholds if None)
            clock: Callable returning the current local time
        """
        self.classifier = classifier or DensityClassifier()
        self.clock = clock or datetime.now

    # ============================================
    # Stations
    # ============================================

    @abstractmethod
    def add_station(self, name: str, x: float, y: float, zone: int = 1) -> Station:
        """Register a station and return it with its new id"""

    @abstractmethod
    def get_station(self, station_id: int) -> Optional[Station]:
        """Get a station by id"""

    @abstractmethod
    def list_stations(self) -> List[Station]:
        """All stations ordered by id"""

    # ============================================
    # Readings
    # ============================================

    def record(self,
               station_id: int,
               passenger_count: int,
               capacity: int,
               sensor_type: Union[SensorType, str],
               bus_id: Optional[int] = None,
               timestamp: Optional[datetime] = None) -> CrowdDensityReading:
        """
        Append a reading to the log

        Args:
            station_id: Station the sample was taken at
            passenger_count: Passengers observed (>= 0)
            capacity: Seat capacity (> 0)
            sensor_type: Sample source
            bus_id: Vehicle the sample belongs to, if any
            timestamp: Sample time (default: now, per the store clock)

        Returns:
            The stored reading with id and density level assigned

        Raises:
            ValidationError: If the sample is out of range
        """
        sensor = validate_reading(station_id, passenger_count, capacity, sensor_type)
        density = self.classifier.classify(passenger_count, capacity)

        return self._append_reading(
            station_id=station_id,
            bus_id=bus_id,
            passenger_count=passenger_count,
            capacity=capacity,
            density_level=density,
            sensor_type=sensor,
            timestamp=timestamp or self.clock()
        )

    @abstractmethod
    def _append_reading(self,
                        station_id: int,
                        bus_id: Optional[int],
                        passenger_count: int,
                        capacity: int,
                        density_level: DensityLevel,
                        sensor_type: SensorType,
                        timestamp: datetime) -> CrowdDensityReading:
        """Assign an id, persist and return the reading"""

    @abstractmethod
    def latest(self, station_id: int) -> Optional[CrowdDensityReading]:
        """Most recent reading for a station (ties broken by highest id)"""

    @abstractmethod
    def query(self,
              station_id: Optional[int] = None,
              bus_id: Optional[int] = None) -> List[CrowdDensityReading]:
        """Matching readings, newest first; filters are ANDed"""

    # ============================================
    # Historical patterns
    # ============================================

    def lookup(self,
               station_id: int,
               route_id: int,
               day: int,
               hour: int) -> Optional[HistoricalPattern]:
        """
        Exact-match pattern lookup, no interpolation across hours

        Raises:
            ValidationError: If day or hour is out of range
        """
        validate_pattern_key(day, hour)
        return self._find_pattern(station_id, route_id, day, hour)

    @abstractmethod
    def _find_pattern(self,
                      station_id: int,
                      route_id: int,
                      day: int,
                      hour: int) -> Optional[HistoricalPattern]:
        """Fetch the pattern stored under a key"""

    def upsert(self, pattern: HistoricalPattern) -> HistoricalPattern:
        """Insert or replace the pattern stored under the same key"""
        return self.upsert_many([pattern])[0]

    def upsert_many(self, patterns: Iterable[HistoricalPattern]) -> List[HistoricalPattern]:
        """
        Insert or replace patterns by (station, route, day, hour)

        Existing rows keep their id; last_updated is refreshed.

        Raises:
            ValidationError: If any pattern key is out of range
        """
        patterns = list(patterns)
        for pattern in patterns:
            validate_pattern_key(pattern.day_of_week, pattern.hour_of_day)
            if pattern.avg_passenger_count < 0:
                raise ValidationError(
                    f"Average passenger count cannot be negative: {pattern.avg_passenger_count}"
                )
        return self._upsert_patterns(patterns, self.clock())

    @abstractmethod
    def _upsert_patterns(self,
                         patterns: List[HistoricalPattern],
                         updated_at: datetime) -> List[HistoricalPattern]:
        """Persist validated patterns, replacing by key"""

    @abstractmethod
    def patterns(self, station_id: int, route_id: int) -> List[HistoricalPattern]:
        """All patterns of a station/route pair ordered by (day, hour)"""

    @abstractmethod
    def count_patterns(self) -> int:
        """Total number of stored patterns"""

    # ============================================
    # Predictions
    # ============================================

    @abstractmethod
    def add_predictions(self, predictions: List[CrowdPrediction]) -> List[CrowdPrediction]:
        """Persist predictions, assigning ids and created_at"""

    @abstractmethod
    def predictions(self, station_id: int, route_id: int) -> List[CrowdPrediction]:
        """Stored predictions for a pair ordered by predicted time"""

    @abstractmethod
    def delete_predictions(self, station_id: int, route_id: int) -> int:
        """Remove stored predictions for a pair, returning how many"""

    @abstractmethod
    def replace_predictions(self,
                            station_id: int,
                            route_id: int,
                            predictions: List[CrowdPrediction]) -> List[CrowdPrediction]:
        """
        Atomically swap a pair's stored predictions for a new set

        Concurrent replacements for the same pair never interleave, and a
        failed insert leaves the previous set in place.
        """
