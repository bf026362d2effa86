"""
Tests for settings loading.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from saju.settings import DEFAULT_SETTINGS, ChartSettings, EngineSettings, load_settings


class TestLoadSettings:
    """Test YAML settings loading."""

    def test_partial_override(self, tmp_path: Path) -> None:
        """Keys not in the file keep their defaults."""
        path = tmp_path / "engine.yaml"
        path.write_text("chart:\n  zi_rollover_minutes: 1380\nyongsin:\n  excess_percent: 35\n")
        settings = load_settings(path)
        assert settings.chart.zi_rollover_minutes == 1380
        assert settings.chart.scan_days == 50
        assert settings.yongsin.excess_percent == 35
        assert settings.compatibility == DEFAULT_SETTINGS.compatibility

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "engine.yaml"
        path.write_text("")
        assert load_settings(path) == DEFAULT_SETTINGS

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "engine.yaml"
        path.write_text("chart: [unclosed\n")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_settings(path)

    def test_schema_violation(self, tmp_path: Path) -> None:
        path = tmp_path / "engine.yaml"
        path.write_text("chart:\n  zi_rollover_minutes: 5000\n")
        with pytest.raises(ValueError, match="validation failed"):
            load_settings(path)

    def test_unknown_sun_model(self, tmp_path: Path) -> None:
        path = tmp_path / "engine.yaml"
        path.write_text("chart:\n  sun_model: vsop\n")
        with pytest.raises(ValueError):
            load_settings(path)


class TestModels:
    def test_frozen(self) -> None:
        with pytest.raises(ValidationError):
            DEFAULT_SETTINGS.chart.scan_days = 10

    def test_chart_settings_hashable(self) -> None:
        """Chart settings key the shared solar term engines."""
        assert hash(ChartSettings()) == hash(EngineSettings().chart)

    def test_tables_read_only(self) -> None:
        """Per-position tables cannot be changed in place."""
        with pytest.raises(TypeError):
            DEFAULT_SETTINGS.weighing.stem_weights["day"] = 0.0
        with pytest.raises(TypeError):
            DEFAULT_SETTINGS.compatibility.clash_points["month"] = 0
        assert DEFAULT_SETTINGS.weighing.stem_weights["day"] == 15.0

    def test_loaded_tables_read_only(self, tmp_path: Path) -> None:
        path = tmp_path / "engine.yaml"
        path.write_text("weighing:\n  stem_weights: {hour: 5, day: 15, month: 20, year: 10}\n")
        settings = load_settings(path)
        assert settings.weighing.stem_weights["hour"] == 5.0
        with pytest.raises(TypeError):
            settings.weighing.stem_weights["hour"] = 10.0
