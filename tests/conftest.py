"""
Shared fixtures.

Every test starts with the default harness config and timings disabled.
"""

import pytest

from engine.timings import disable_timings
from utils.config import reset


@pytest.fixture(autouse=True)
def clean_state(monkeypatch):
    monkeypatch.delenv("PROPBENCH_CONFIG", raising=False)
    reset()
    disable_timings()
    yield
    reset()
    disable_timings()


@pytest.fixture
def quiet_config(tmp_path, monkeypatch):
    """Harness config with progress off and short trials."""
    path = tmp_path / "harness.yaml"
    path.write_text(
        "progress:\n"
        "  enabled: false\n"
        "  min_update_seconds: 0.0\n"
        "trials:\n"
        "  samples: 3\n"
        "  seconds: 1.0\n"
        "  disable_gc: true\n"
        "calibration:\n"
        "  candidates: [1.0e-2, 1.0e-3, 1.0e-4, 1.0e-5, 1.0e-6, 1.0e-7, 1.0e-8,\n"
        "               1.0e-9, 1.0e-10, 1.0e-11, 1.0e-12, 1.0e-13, 1.0e-14, 1.0e-15]\n"
        "  machine_precision: 1.0e-14\n"
        "  start_offset: 2\n"
        "cache:\n"
        "  temp_suffix: \"~\"\n"
        f"  directory: {tmp_path / 'cache'}\n"
    )
    monkeypatch.setenv("PROPBENCH_CONFIG", str(path))
    reset()
    return path
