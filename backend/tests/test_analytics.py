"""
Crowd Analytics Tests
"""

import pytest

from crowd_monitor.crowd.analytics import CrowdAnalyticsAggregator
from crowd_monitor.crowd.pattern_table import HistoricalPatternTable
from crowd_monitor.crowd.prediction_generator import PredictionGenerator
from crowd_monitor.models.crowd import DensityLevel, HistoricalPattern


class TestAnalyze:
    """Tests for CrowdAnalyticsAggregator.analyze()"""

    @pytest.fixture
    def aggregator(self, store, rng):
        table = HistoricalPatternTable(store, rng=rng)
        generator = PredictionGenerator(store, rng=rng)
        return CrowdAnalyticsAggregator(store, table, generator)

    def test_station_without_readings(self, aggregator):
        """Test defaults: low, 0 passengers, capacity 70, 0%"""
        analytics = aggregator.analyze(7)

        assert analytics.station_id == 7
        assert analytics.current_density == DensityLevel.LOW
        assert analytics.passenger_count == 0
        assert analytics.capacity == 70
        assert analytics.utilization_rate == 0.0
        assert analytics.historical_average == 0.0
        assert analytics.peak_times == []
        assert len(analytics.predictions) == 6

    def test_latest_reading_drives_current_state(self, aggregator, store, clock):
        store.record(7, 20, 70, 'manual')
        clock.advance(minutes=5)
        store.record(7, 60, 70, 'camera')

        analytics = aggregator.analyze(7)

        assert analytics.current_density == DensityLevel.CRITICAL
        assert analytics.passenger_count == 60
        assert analytics.capacity == 70
        assert analytics.utilization_rate == pytest.approx(85.714, abs=1e-3)

    def test_utilization_uses_reading_capacity(self, aggregator, store):
        store.record(7, 20, 40, 'manual')

        analytics = aggregator.analyze(7)
        assert analytics.capacity == 40
        assert analytics.utilization_rate == pytest.approx(50.0)

    def test_historical_average(self, aggregator, store):
        store.upsert_many([
            HistoricalPattern(
                station_id=7, route_id=1, day_of_week=1, hour_of_day=hour,
                avg_passenger_count=avg, avg_density_level=DensityLevel.LOW
            )
            for hour, avg in ((6, 10.0), (7, 20.0), (8, 36.0))
        ])

        analytics = aggregator.analyze(7)
        assert analytics.historical_average == pytest.approx(22.0)

    def test_peak_times_from_seeded_patterns(self, aggregator, store):
        """Test peaks are rush-hour cells, capped at eight, in (day, hour) order"""
        aggregator.pattern_table.seed([7], [1])

        analytics = aggregator.analyze(7)

        assert len(analytics.peak_times) == 8
        assert [p.hour for p in analytics.peak_times] == [7, 8, 9, 17, 18, 19, 7, 8]

    def test_peak_threshold_is_strict(self, aggregator, store):
        store.upsert_many([
            HistoricalPattern(
                station_id=7, route_id=1, day_of_week=2, hour_of_day=hour,
                avg_passenger_count=30.0, avg_density_level=DensityLevel.MEDIUM,
                peak_multiplier=multiplier
            )
            for hour, multiplier in ((8, 1.5), (9, 1.51))
        ])

        analytics = aggregator.analyze(7)
        assert [(p.hour, p.avg_density) for p in analytics.peak_times] == [(9, DensityLevel.MEDIUM)]

    def test_route_selection(self, aggregator, store, rng):
        aggregator.pattern_table.seed([7], [2])

        assert aggregator.analyze(7).historical_average == 0.0
        assert aggregator.analyze(7, route_id=2).historical_average > 0.0

    def test_explicit_route_zero_kept(self, aggregator, store):
        """Test route 0 is honoured rather than replaced by the default route"""
        analytics = aggregator.analyze(7, route_id=0)

        assert all(p.route_id == 0 for p in analytics.predictions)
        assert len(store.predictions(7, 0)) == 6
        assert store.predictions(7, 1) == []

    def test_predictions_refreshed_each_call(self, aggregator, store):
        first = aggregator.analyze(7)
        second = aggregator.analyze(7)

        assert len(store.predictions(7, 1)) == 6
        assert {p.id for p in first.predictions}.isdisjoint({p.id for p in second.predictions})

    def test_camel_case_output(self, aggregator, store):
        store.record(7, 30, 70, 'manual')

        data = aggregator.analyze(7).to_dict()
        assert data['stationId'] == 7
        assert data['currentDensity'] == 'medium'
        assert 'utilizationRate' in data
        assert 'historicalAverage' in data
        assert 'peakTimes' in data
        assert data['predictions'][0]['predictedPassengerCount'] >= 5
