"""
Configuration Tests
"""

import json

from crowd_monitor.config import ConfigManager
from crowd_monitor.crowd.density_classifier import DensityClassifier


class TestConfigManager:
    """Test ConfigManager loading and access"""

    def write_config(self, tmp_path):
        (tmp_path / "crowd.yaml").write_text(
            "capacity: 50\n"
            "sampler:\n"
            "  interval: 30\n"
            "storage:\n"
            "  backend: memory\n"
        )
        (tmp_path / "stations.json").write_text(json.dumps({
            "catalog": [{"name": "Ketu", "x": 0.2, "y": 0.3, "zone": 2}]
        }))
        return tmp_path

    def test_loads_yaml_and_json(self, tmp_path):
        cfg = ConfigManager(self.write_config(tmp_path))

        assert cfg.get('crowd.capacity') == 50
        assert cfg.get('stations.catalog')[0]['name'] == "Ketu"
        assert cfg.get_crowd_config()['sampler']['interval'] == 30

    def test_missing_key_default(self, tmp_path):
        cfg = ConfigManager(self.write_config(tmp_path))

        assert cfg.get('crowd.prediction.horizonHours', 6) == 6
        assert cfg.get('crowd.capacity.nested') is None
        assert cfg.get_system_config() == {}

    def test_missing_directory(self, tmp_path):
        cfg = ConfigManager(tmp_path / "absent")
        assert cfg.configs == {}
        assert cfg.get('crowd.capacity', 70) == 70

    def test_invalid_file_skipped(self, tmp_path):
        self.write_config(tmp_path)
        (tmp_path / "broken.json").write_text("{not json")

        cfg = ConfigManager(tmp_path)
        assert 'broken' not in cfg.configs
        assert cfg.get('crowd.capacity') == 50

    def test_set_creates_path(self, tmp_path):
        cfg = ConfigManager(self.write_config(tmp_path))
        cfg.set('crowd.prediction.replaceOnRegenerate', False)

        assert cfg.get('crowd.prediction.replaceOnRegenerate') is False
        assert cfg.get('crowd.capacity') == 50

    def test_reload_picks_up_changes(self, tmp_path):
        cfg = ConfigManager(self.write_config(tmp_path))
        (tmp_path / "crowd.yaml").write_text("capacity: 60\n")

        cfg.reload()
        assert cfg.get('crowd.capacity') == 60
        assert cfg.get('crowd.sampler.interval') is None

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CROWD_STORAGE_BACKEND", "sql")
        monkeypatch.setenv("CROWD_SAMPLER_INTERVAL", "15")

        cfg = ConfigManager(self.write_config(tmp_path))
        assert cfg.get('crowd.storage.backend') == "sql"
        assert cfg.get('crowd.sampler.interval') == 15


class TestShippedConfig:
    """Test the config files in backend/config"""

    def setup_method(self):
        self.cfg = ConfigManager()

    def test_crowd_defaults(self):
        crowd = self.cfg.get_crowd_config()

        assert crowd['capacity'] == 70
        assert crowd['prediction']['horizonHours'] == 6
        assert crowd['sampler']['interval'] == 120
        assert crowd['majorStations'] == [1, 2, 3, 5, 7, 9, 12, 15, 18, 22, 25, 28]

    def test_thresholds_accepted_by_classifier(self):
        classifier = DensityClassifier(self.cfg.get_crowd_config())
        assert classifier.get_thresholds() == {'medium': 0.40, 'high': 0.65, 'critical': 0.85}

    def test_station_catalog(self):
        catalog = self.cfg.get('stations.catalog')

        assert len(catalog) == 48
        for entry in catalog:
            assert {'name', 'x', 'y', 'zone'} <= set(entry)
