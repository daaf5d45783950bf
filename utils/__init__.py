"""Utility modules for the propagation benchmark harness."""

from .canonical import (
    CacheKey, ObjectRef, canonicalize_spec, make_cache_key, stable_seed
)
from .errors import (
    ConfigurationError, ParameterTypeError, MergeIntegrityError, CalibrationError
)

__all__ = [
    'CacheKey', 'ObjectRef', 'canonicalize_spec', 'make_cache_key', 'stable_seed',
    'ConfigurationError', 'ParameterTypeError', 'MergeIntegrityError',
    'CalibrationError',
]
