"""
Crowd Service Tests

Backend selection, seeding and system-wide summaries.
"""

from datetime import timedelta

import pytest

from crowd_monitor.crowd import service as service_module
from crowd_monitor.crowd.memory_store import MemoryCrowdStore
from crowd_monitor.crowd.service import (
    CrowdService,
    create_store,
    get_crowd_service,
    init_crowd_service,
)
from crowd_monitor.crowd.sql_store import SqlCrowdStore
from crowd_monitor.models.crowd import SensorType


CATALOG = [
    {"name": "Obalende", "x": 0.80, "y": 0.70, "zone": 1},
    {"name": "CMS", "x": 0.75, "y": 0.80, "zone": 1},
    {"name": "Ikeja Along", "x": 0.40, "y": 0.20},
]


class TestCreateStore:
    """Tests for create_store()"""

    def test_default_is_memory(self):
        assert isinstance(create_store(), MemoryCrowdStore)

    def test_memory_backend(self, clock):
        store = create_store({'storage': {'backend': 'memory'}}, clock=clock)
        assert store.backend_name == "memory"
        assert store.clock is clock

    def test_sql_backend(self, session_factory):
        store = create_store({'storage': {'backend': 'sql'}}, session_factory=session_factory)
        assert isinstance(store, SqlCrowdStore)
        assert store.backend_name == "sql"

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_store({'storage': {'backend': 'redis'}})


class TestSeed:
    """Tests for CrowdService.seed()"""

    def setup_method(self):
        self.config = {'capacity': 70, 'majorStations': [1, 2], 'routeIds': [1, 2]}

    def test_seed_counts(self, store, rng):
        service = CrowdService(self.config, store=store, rng=rng)
        counts = service.seed(CATALOG)

        assert counts == {
            'stations': 3,
            'readings': 2 * 24,
            'patterns': 2 * 2 * 7 * 16
        }
        assert [s.name for s in store.list_stations()] == ["Obalende", "CMS", "Ikeja Along"]
        assert store.get_station(3).zone == 1

    def test_seed_twice_keeps_catalog(self, store, rng):
        service = CrowdService(self.config, store=store, rng=rng)
        service.seed(CATALOG)
        counts = service.seed(CATALOG)

        assert counts['stations'] == 0
        assert len(store.list_stations()) == 3
        assert store.count_patterns() == 2 * 2 * 7 * 16

    def test_seed_twice_keeps_readings(self, store, rng):
        """Test a restart over a persistent store does not re-backfill readings"""
        service = CrowdService(self.config, store=store, rng=rng)
        service.seed(CATALOG)
        counts = service.seed(CATALOG)

        assert counts['readings'] == 0
        assert len(store.query()) == 2 * 24

    def test_restart_on_sql_store(self, session_factory, clock, rng):
        """Test a second service over the same database skips the backfill"""
        CrowdService(self.config, store=SqlCrowdStore(session_factory, clock=clock), rng=rng).seed(CATALOG)
        restarted = CrowdService(self.config, store=SqlCrowdStore(session_factory, clock=clock), rng=rng)
        counts = restarted.seed(CATALOG)

        assert counts == {'stations': 0, 'readings': 0, 'patterns': 2 * 2 * 7 * 16}
        assert restarted.get_system_summary().total_readings == 2 * 24

    def test_existing_readings_skip_backfill(self, store, rng):
        service = CrowdService(self.config, store=store, rng=rng)
        service.record_reading(1, 30, 70, 'manual')

        assert service.seed()['readings'] == 0
        assert len(store.query()) == 1

    def test_seed_without_catalog(self, store, rng):
        service = CrowdService(self.config, store=store, rng=rng)
        counts = service.seed()

        assert counts['stations'] == 0
        assert store.list_stations() == []
        assert counts['readings'] == 48

    def test_default_seed_size(self, rng, clock):
        service = CrowdService({}, store=MemoryCrowdStore(clock=clock), rng=rng)
        counts = service.seed()

        assert counts['readings'] == 12 * 24
        assert counts['patterns'] == 12 * 5 * 7 * 16


class TestSeedReadings:
    """Tests for CrowdService.seed_readings()"""

    def test_hourly_backfill(self, store, clock, rng):
        service = CrowdService({}, store=store, rng=rng)
        service.seed_readings([5])

        readings = store.query(station_id=5)
        assert len(readings) == 24
        assert readings[0].timestamp == clock()
        assert readings[-1].timestamp == clock() - timedelta(hours=23)

        for reading in readings:
            assert reading.capacity == 70
            assert 0 <= reading.passenger_count <= 70
            assert reading.sensor_type in (SensorType.CAMERA, SensorType.INFRARED)

    def test_rush_hour_scaling(self, store, clock, rng):
        service = CrowdService({}, store=store, rng=rng)
        service.seed_readings([5])

        for reading in store.query(station_id=5):
            if reading.timestamp.hour in (7, 8, 9, 17, 18, 19):
                assert 22 <= reading.passenger_count <= 70
            else:
                assert 10 <= reading.passenger_count <= 39

    def test_latest_is_newest_backfill(self, store, clock, rng):
        service = CrowdService({}, store=store, rng=rng)
        service.seed_readings([5])

        assert service.latest_reading(5).timestamp == clock()


class TestSystemSummary:
    """Tests for CrowdService.get_system_summary()"""

    def test_empty(self, store, rng):
        service = CrowdService({}, store=store, rng=rng)
        summary = service.get_system_summary()

        assert summary.total_readings == 0
        assert summary.avg_crowd_density == 0
        assert summary.peak_readings == 0
        assert summary.stations_tracked == 0

    def test_summary(self, store, rng):
        service = CrowdService({}, store=store, rng=rng)
        service.record_reading(1, 60, 70, 'camera')     # critical
        service.record_reading(1, 50, 70, 'camera')     # high
        service.record_reading(2, 20, 70, 'manual')     # low

        summary = service.get_system_summary()
        assert summary.total_readings == 3
        assert summary.avg_crowd_density == 62
        assert summary.peak_readings == 2
        assert summary.stations_tracked == 2

        assert summary.to_dict() == {
            'totalReadings': 3,
            'avgCrowdDensity': 62,
            'peakReadings': 2,
            'stationsTracked': 2
        }


class TestFacade:
    """Tests for the pass-through operations"""

    def test_round_trip(self, store, rng):
        service = CrowdService({}, store=store, rng=rng)
        service.pattern_table.seed([3], [1])
        service.record_reading(3, 42, 70, 'manual', bus_id=11)

        assert service.latest_reading(3).passenger_count == 42
        assert len(service.query_readings(bus_id=11)) == 1
        assert service.lookup_pattern(3, 1, 2, 8) is not None
        assert len(service.get_patterns(3, 1)) == 7 * 16

        predictions = service.generate_predictions(3, 1)
        assert service.get_predictions(3, 1) == predictions

        analytics = service.get_analytics(3)
        assert analytics.passenger_count == 42

    def test_aggregate_patterns(self, store, rng):
        service = CrowdService({}, store=store, rng=rng)
        service.record_reading(3, 35, 70, 'manual')

        patterns = service.aggregate_patterns(3, 1)
        assert len(patterns) == 1
        assert patterns[0].peak_multiplier == 1.0


class TestGlobalService:
    """Tests for the module-level service instance"""

    def setup_method(self):
        self._previous = service_module._crowd_service

    def teardown_method(self):
        service_module._crowd_service = self._previous

    def test_init_sets_global(self, rng):
        service = init_crowd_service({}, rng=rng)

        assert get_crowd_service() is service
        assert service.store.backend_name == "memory"
