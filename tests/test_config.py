"""Tests für das Konfigurationssystem."""

from pathlib import Path

import pytest

from config.defaults import SESSION_TOPICS, default_integrity_config, default_scan_config
from config.manager import ConfigManager
from config.schema import IntegrityConfig, ScanConfig


# ─── DEFAULT-KONFIGURATION ────────────────────────────────────────────────────

class TestDefaultConfig:
    def test_default_config_valid(self):
        """Vollständige Default-Config ist valide."""
        config = default_integrity_config()
        assert config.timezone == "Asia/Ho_Chi_Minh"
        assert config.long_session_hours == 5.0
        assert config.data_path == "output/training_data.json"

    def test_default_scan_config(self):
        sc = default_scan_config()
        assert sc.timeout_seconds is None
        assert sc.cancel_check_interval == 200

    def test_tz_property(self):
        """tz liefert die ZoneInfo zur konfigurierten Zeitzone."""
        assert default_integrity_config().tz.key == "Asia/Ho_Chi_Minh"

    def test_topics_cover_both_types(self):
        types = {t for _, t in SESSION_TOPICS}
        assert types == {"theory", "practice"}


# ─── PYDANTIC-VALIDIERUNG ─────────────────────────────────────────────────────

class TestPydanticValidation:
    def test_unknown_timezone_raises(self):
        """Unbekannte Zeitzone → Validierungsfehler."""
        with pytest.raises(Exception):
            IntegrityConfig(timezone="Mond/Krater")

    def test_non_positive_threshold_raises(self):
        with pytest.raises(Exception):
            IntegrityConfig(long_session_hours=0)

    def test_check_interval_at_least_one(self):
        with pytest.raises(Exception):
            ScanConfig(cancel_check_interval=0)

    def test_timeout_positive(self):
        with pytest.raises(Exception):
            ScanConfig(timeout_seconds=-1)


# ─── YAML SPEICHERN / LADEN ───────────────────────────────────────────────────

class TestConfigManager:
    def _manager(self, tmp_path: Path) -> ConfigManager:
        mgr = ConfigManager()
        mgr.CONFIG_DIR = tmp_path
        mgr.DEFAULT_CONFIG = tmp_path / "integrity_config.yaml"
        return mgr

    def test_save_and_load_roundtrip(self, tmp_path: Path):
        """Config speichern, laden und validieren — vollständiger Roundtrip."""
        config = default_integrity_config().model_copy(update={
            "center_name": "Trung tâm Sát hạch",
            "long_session_hours": 4.5,
            "scan": ScanConfig(timeout_seconds=30, cancel_check_interval=50),
        })
        mgr = self._manager(tmp_path)
        mgr.save(config)
        assert mgr.DEFAULT_CONFIG.exists()

        loaded = mgr.load(mgr.DEFAULT_CONFIG)
        assert loaded.center_name == "Trung tâm Sát hạch"
        assert loaded.long_session_hours == 4.5
        assert loaded.scan.timeout_seconds == 30
        assert loaded.scan.cancel_check_interval == 50

    def test_yaml_contains_comments(self, tmp_path: Path):
        mgr = self._manager(tmp_path)
        mgr.save(default_integrity_config())
        text = mgr.DEFAULT_CONFIG.read_text(encoding="utf-8")
        assert "Zeitzone" in text
        assert "Batch-Analysen" in text

    def test_first_run_check_no_file(self, tmp_path: Path):
        """first_run_check gibt True zurück wenn keine Config existiert."""
        mgr = self._manager(tmp_path)
        assert mgr.first_run_check() is True

    def test_first_run_check_with_file(self, tmp_path: Path):
        mgr = self._manager(tmp_path)
        mgr.save(default_integrity_config())
        assert mgr.first_run_check() is False

    def test_load_missing_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            ConfigManager().load(tmp_path / "fehlt.yaml")

    def test_load_invalid_raises_value_error(self, tmp_path: Path):
        """Ungültige Werte in der YAML → ValueError mit Dateipfad."""
        path = tmp_path / "kaputt.yaml"
        path.write_text("timezone: Mond/Krater\n", encoding="utf-8")
        with pytest.raises(ValueError) as exc:
            ConfigManager().load(path)
        assert "kaputt.yaml" in str(exc.value)

    def test_load_or_default_without_file(self, tmp_path: Path):
        config = ConfigManager().load_or_default(tmp_path / "fehlt.yaml")
        assert config == default_integrity_config()
