"""
Historical Pattern Table

Average occupancy per (station, route, day-of-week, hour-of-day) cell.

Two ways to populate it:
- seed(): one-time synthetic baseline with weekday rush-hour scaling
- aggregate(): bucket the recorded readings of a station by day/hour

Both write through the store's replace-by-key upsert, so a cell never
holds more than one row.
"""

import math
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from crowd_monitor.crowd.density_classifier import DensityClassifier
from crowd_monitor.crowd.store import CrowdStore, day_of_week
from crowd_monitor.models.crowd import HistoricalPattern


DEFAULT_RUSH_HOURS = (7, 8, 9, 17, 18, 19)


def is_rush_hour(hour: int, rush_hours: Sequence[int] = DEFAULT_RUSH_HOURS) -> bool:
    """Morning (7-9) or evening (17-19) rush, inclusive"""
    return hour in rush_hours


def is_weekend(day: int) -> bool:
    """Sunday (0) or Saturday (6)"""
    return day == 0 or day == 6


class HistoricalPatternTable:
    """
    Seed, aggregate and look up historical occupancy patterns

    Usage:
        table = HistoricalPatternTable(store, config=crowd_config)
        table.seed([1, 2, 3], [1, 2])
        pattern = table.lookup(1, 1, day=2, hour=8)
    """

    def __init__(self,
                 store: CrowdStore,
                 classifier: DensityClassifier = None,
                 config: dict = None,
                 rng: np.random.Generator = None):
        """
        Args:
            store: Backing crowd store
            classifier: Density classifier (defaults to the store's)
            config: Crowd configuration dictionary
            rng: Random generator for synthetic baselines
        """
        self.store = store
        self.classifier = classifier or store.classifier
        self.config = config or {}
        self.rng = rng or np.random.default_rng()

        pattern_config = self.config.get('patterns', {})

        self.capacity = self.config.get('capacity', 70)
        self.first_hour = pattern_config.get('firstHour', 6)
        self.last_hour = pattern_config.get('lastHour', 21)
        self.baseline_min = pattern_config.get('baselineMin', 0.20)
        self.baseline_max = pattern_config.get('baselineMax', 0.60)
        self.rush_multiplier = pattern_config.get('rushMultiplier', 2.5)
        self.max_ratio = pattern_config.get('maxRatio', 0.95)
        self.rush_hours = tuple(pattern_config.get('rushHours', DEFAULT_RUSH_HOURS))

    def seed(self, station_ids: Sequence[int], route_ids: Sequence[int]) -> int:
        """
        Populate synthetic baselines for every station x route pair

        Covers days 0-6 and hours first_hour..last_hour. Weekday rush
        hours scale a random 20-60% baseline ratio by the rush
        multiplier, capped at max_ratio of capacity.

        Returns:
            Number of pattern cells written
        """
        patterns = []

        for station_id in station_ids:
            for route_id in route_ids:
                for day in range(7):
                    for hour in range(self.first_hour, self.last_hour + 1):
                        patterns.append(self._synthesize(station_id, route_id, day, hour))

        self.store.upsert_many(patterns)
        print(f"[CROWD] Seeded {len(patterns)} historical pattern cells "
              f"({len(station_ids)} stations x {len(route_ids)} routes)")
        return len(patterns)

    def _synthesize(self, station_id: int, route_id: int, day: int, hour: int) -> HistoricalPattern:
        rush = is_rush_hour(hour, self.rush_hours)

        ratio = float(self.rng.uniform(self.baseline_min, self.baseline_max))
        if rush and not is_weekend(day):
            ratio = min(self.max_ratio, ratio * self.rush_multiplier)

        avg_count = math.floor(ratio * self.capacity)

        return HistoricalPattern(
            station_id=station_id,
            route_id=route_id,
            day_of_week=day,
            hour_of_day=hour,
            avg_passenger_count=avg_count,
            avg_density_level=self.classifier.classify(avg_count, self.capacity),
            peak_multiplier=self.rush_multiplier if rush else 1.0
        )

    def lookup(self,
               station_id: int,
               route_id: int,
               day: int,
               hour: int) -> Optional[HistoricalPattern]:
        """Exact-match lookup; None when the cell was never populated"""
        return self.store.lookup(station_id, route_id, day, hour)

    def upsert(self, pattern: HistoricalPattern) -> HistoricalPattern:
        """Insert or replace the cell identified by the pattern's key"""
        return self.store.upsert(pattern)

    def patterns(self, station_id: int, route_id: int) -> List[HistoricalPattern]:
        """All cells of a station/route pair ordered by (day, hour)"""
        return self.store.patterns(station_id, route_id)

    def aggregate(self, station_id: int, route_id: int) -> List[HistoricalPattern]:
        """
        Rebuild cells from the station's recorded readings

        Readings are bucketed by (day-of-week, hour). Each bucket's mean
        passenger count becomes the cell average; peak_multiplier is the
        bucket mean relative to the mean over all readings.

        Returns:
            The upserted patterns (empty if the station has no readings)
        """
        readings = self.store.query(station_id=station_id)
        if not readings:
            return []

        buckets: Dict[Tuple[int, int], List] = defaultdict(list)
        for reading in readings:
            buckets[(day_of_week(reading.timestamp), reading.timestamp.hour)].append(reading)

        overall_mean = float(np.mean([r.passenger_count for r in readings]))

        patterns = []
        for (day, hour), bucket in sorted(buckets.items()):
            avg_count = float(np.mean([r.passenger_count for r in bucket]))
            avg_capacity = float(np.mean([r.capacity for r in bucket]))
            multiplier = avg_count / overall_mean if overall_mean > 0 else 1.0

            patterns.append(HistoricalPattern(
                station_id=station_id,
                route_id=route_id,
                day_of_week=day,
                hour_of_day=hour,
                avg_passenger_count=round(avg_count, 2),
                avg_density_level=self.classifier.classify(avg_count, avg_capacity),
                peak_multiplier=round(multiplier, 2)
            ))

        stored = self.store.upsert_many(patterns)
        print(f"[CROWD] Aggregated {len(readings)} readings into {len(stored)} "
              f"pattern cells for station {station_id}, route {route_id}")
        return stored
