"""
Crowd Analytics Aggregator

Combines the latest reading, the historical pattern table and a fresh
forecast into one CrowdAnalytics view per station. Nothing here is
persisted except the predictions the generator writes.
"""

import numpy as np

from crowd_monitor.crowd.pattern_table import HistoricalPatternTable
from crowd_monitor.crowd.prediction_generator import PredictionGenerator
from crowd_monitor.crowd.store import CrowdStore
from crowd_monitor.models.crowd import CrowdAnalytics, DensityLevel, PeakTime


class CrowdAnalyticsAggregator:
    """
    Build per-station crowd analytics

    With no readings for a station the view reports density low,
    0 passengers, the canonical capacity and 0% utilization.
    """

    def __init__(self,
                 store: CrowdStore,
                 pattern_table: HistoricalPatternTable,
                 generator: PredictionGenerator,
                 config: dict = None):
        self.store = store
        self.pattern_table = pattern_table
        self.generator = generator
        self.config = config or {}

        analytics_config = self.config.get('analytics', {})

        self.default_capacity = self.config.get('capacity', 70)
        self.default_route_id = self.config.get('defaultRouteId', 1)
        self.peak_threshold = analytics_config.get('peakMultiplierThreshold', 1.5)
        self.max_peak_times = analytics_config.get('maxPeakTimes', 8)

    def analyze(self, station_id: int, route_id: int = None) -> CrowdAnalytics:
        """
        Assemble analytics for a station

        Args:
            station_id: Station to analyze
            route_id: Route context (default: configured default route)

        Returns:
            CrowdAnalytics view
        """
        if route_id is None:
            route_id = self.default_route_id

        latest = self.store.latest(station_id)
        predictions = self.generator.generate(station_id, route_id)
        patterns = self.pattern_table.patterns(station_id, route_id)

        historical_average = 0.0
        if patterns:
            historical_average = float(np.mean([p.avg_passenger_count for p in patterns]))

        peak_times = [
            PeakTime(hour=p.hour_of_day, avg_density=p.avg_density_level)
            for p in patterns
            if p.peak_multiplier > self.peak_threshold
        ][:self.max_peak_times]

        if latest is None:
            return CrowdAnalytics(
                station_id=station_id,
                current_density=DensityLevel.LOW,
                passenger_count=0,
                capacity=self.default_capacity,
                utilization_rate=0.0,
                predictions=predictions,
                historical_average=historical_average,
                peak_times=peak_times
            )

        return CrowdAnalytics(
            station_id=station_id,
            current_density=latest.density_level,
            passenger_count=latest.passenger_count,
            capacity=latest.capacity,
            utilization_rate=self.store.classifier.utilization_rate(
                latest.passenger_count, latest.capacity
            ),
            predictions=predictions,
            historical_average=historical_average,
            peak_times=peak_times
        )
