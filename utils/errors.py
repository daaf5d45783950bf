"""
Error classes for the benchmark harness.

Configuration and merge problems are fatal and raised immediately.
Exceptions from user-supplied generator, calibration and benchmark
functions are never wrapped; they propagate as raised.
"""


class ConfigurationError(ValueError):
    """Invalid parameters or arguments, detected before any work runs."""


class ParameterTypeError(ConfigurationError, TypeError):
    """A parameter value is not a number, string, symbolic tag or reference."""


class MergeIntegrityError(ValueError):
    """Merged result tables do not describe the same combinations."""


class CalibrationError(RuntimeError):
    """No calibration candidate reached the requested precision."""
