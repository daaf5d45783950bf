"""
Tests for utils/config.py

Verifies:
- Default config loads all sections
- Override via custom path and PROPBENCH_CONFIG
- Reset clears cache
- Missing file raises error
"""

import os
import tempfile
import pytest
import yaml

from utils.config import get_config, get, reset


class TestConfigLoader:
    """Tests for config loading."""

    def setup_method(self):
        """Reset config cache before each test."""
        reset()

    def test_default_config_loads(self):
        """Default config should load all sections."""
        config = get_config()

        assert 'progress' in config
        assert 'trials' in config
        assert 'calibration' in config
        assert 'cache' in config

    def test_calibration_values(self):
        """Calibration candidates run from loose to tight."""
        calibration = get_config()['calibration']

        candidates = calibration['candidates']
        assert candidates[0] == 1e-2
        assert candidates[-1] == 1e-15
        assert candidates == sorted(candidates, reverse=True)
        assert calibration['machine_precision'] == 1e-14
        assert calibration['start_offset'] == 2

    def test_trials_values(self):
        """Trials section bounds samples and seconds."""
        trials = get_config()['trials']

        assert trials['samples'] == 100
        assert trials['seconds'] == 5.0
        assert trials['disable_gc'] is True

    def test_cache_values(self):
        """Cache section names the temp suffix."""
        assert get_config()['cache']['temp_suffix'] == '~'


class TestConfigGet:
    """Tests for get() convenience function."""

    def setup_method(self):
        """Reset config cache before each test."""
        reset()

    def test_get_existing_value(self):
        """Get should return existing value."""
        assert get('progress', 'enabled') is True

    def test_get_with_default(self):
        """Get should return default for missing key."""
        value = get('trials', 'nonexistent_key', 'default_value')
        assert value == 'default_value'

    def test_get_missing_section(self):
        """Get should return default for missing section."""
        value = get('nonexistent_section', 'key', 'default')
        assert value == 'default'


class TestConfigOverride:
    """Tests for config override."""

    def setup_method(self):
        """Reset config cache before each test."""
        reset()

    def test_override_via_path(self):
        """Config should load from custom path."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.dump({'trials': {'samples': 7}}, f)
            custom_path = f.name

        try:
            config = get_config(custom_path)
            assert config['trials']['samples'] == 7
        finally:
            os.unlink(custom_path)

    def test_override_via_env_var(self, monkeypatch):
        """Config should load from PROPBENCH_CONFIG env var."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.dump({'trials': {'samples': 11}}, f)
            custom_path = f.name

        try:
            monkeypatch.setenv('PROPBENCH_CONFIG', custom_path)
            reset()
            assert get('trials', 'samples') == 11
        finally:
            os.unlink(custom_path)

    def test_empty_file_gives_defaults(self, tmp_path):
        """An empty config file falls back to get() defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        get_config(str(path))
        assert get('trials', 'samples', 42) == 42


class TestConfigReset:
    """Tests for reset() function."""

    def test_reset_clears_cache(self):
        """Reset should clear cached config."""
        assert get_config()['trials']['samples'] == 100

        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.dump({'trials': {'samples': 3}}, f)
            custom_path = f.name

        try:
            reset()
            assert get_config(custom_path)['trials']['samples'] == 3

            reset()
            assert get_config()['trials']['samples'] == 100
        finally:
            os.unlink(custom_path)


class TestConfigErrors:
    """Tests for error handling."""

    def setup_method(self):
        """Reset config cache before each test."""
        reset()

    def test_missing_file_raises_error(self):
        """Missing config file should raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            get_config('/nonexistent/path/to/config.yaml')
