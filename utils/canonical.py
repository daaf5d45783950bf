"""
Canonical parameter serialization for cache keys and deterministic seeds.

Two parameter mappings with the same key/value pairs must produce the same
cache key regardless of insertion order. Opaque references (modules,
functions, classes) that can be imported back by name are replaced by an
`ObjectRef` so that keys pickle without code objects. Any other reference,
such as a closure or lambda, stays in the key as the object itself and
compares by identity; such keys cannot be persisted.
"""

import enum
import hashlib
import inspect
import json
import sys
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

import numpy as np

from .errors import ParameterTypeError


@dataclass(frozen=True)
class ObjectRef:
    """Picklable stand-in for an importable module, function or class in a cache key."""
    name: str

    def __repr__(self) -> str:
        return f"<{self.name}>"


def qualified_name(obj: Any) -> str:
    """Return 'module.qualname' for functions/classes, the name for modules."""
    if inspect.ismodule(obj):
        return obj.__name__
    module = getattr(obj, '__module__', None) or ''
    qualname = getattr(obj, '__qualname__', None) or getattr(obj, '__name__', repr(obj))
    return f"{module}.{qualname}" if module else qualname


def is_opaque_reference(value: Any) -> bool:
    return (
        inspect.ismodule(value)
        or inspect.isfunction(value)
        or inspect.isclass(value)
        or inspect.isbuiltin(value)
    )


def resolves_by_name(obj: Any) -> bool:
    """True if looking up `obj`'s module and qualname gives back `obj` itself."""
    if inspect.ismodule(obj):
        return sys.modules.get(obj.__name__) is obj
    target = sys.modules.get(getattr(obj, '__module__', None) or '')
    if target is None:
        return False
    for attr in (getattr(obj, '__qualname__', None) or '').split('.'):
        target = getattr(target, attr, None)
        if target is None:
            return False
    return target is obj


def canonical_value(value: Any) -> Any:
    """Normalize a single parameter value for use inside a cache key."""
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, enum.Enum):
        return value
    if is_opaque_reference(value) and resolves_by_name(value):
        return ObjectRef(qualified_name(value))
    return value


@dataclass(frozen=True)
class CacheKey:
    """
    Order-independent, hashable representation of a parameter mapping.

    Items are stored sorted by parameter name; equality and hashing are
    structural.
    """
    items: Tuple[Tuple[str, Any], ...]

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.items)

    def __repr__(self) -> str:
        inner = ', '.join(f"{k}={v!r}" for k, v in self.items)
        return f"CacheKey({inner})"


def make_cache_key(params: Mapping[str, Any]) -> CacheKey:
    """
    Build a CacheKey from a parameter mapping (or pass a CacheKey through).

    Args:
        params: Mapping of parameter names to scalar values

    Returns:
        CacheKey that compares equal for any mapping with the same entries
    """
    if isinstance(params, CacheKey):
        return params
    return CacheKey(tuple(
        (str(k), canonical_value(v)) for k, v in sorted(params.items(), key=lambda kv: str(kv[0]))
    ))


def unnamed_references(key: CacheKey) -> Dict[str, Any]:
    """Entries of `key` holding references that cannot be imported by name."""
    return {k: v for k, v in key.items if is_opaque_reference(v)}


def _serialize_value(value: Any) -> Any:
    """Serialize a single value with deterministic float formatting."""
    value = canonical_value(value)
    if isinstance(value, float):
        return f"{value:.10e}"
    elif isinstance(value, complex):
        return [f"{value.real:.10e}", f"{value.imag:.10e}"]
    elif isinstance(value, ObjectRef):
        return f"ref:{value.name}"
    elif is_opaque_reference(value):
        raise ParameterTypeError(
            f"{qualified_name(value)} cannot be imported by name and has no stable serialization"
        )
    elif isinstance(value, enum.Enum):
        return f"enum:{qualified_name(type(value))}.{value.name}"
    elif isinstance(value, dict):
        return {str(k): _serialize_value(v) for k, v in sorted(value.items())}
    elif isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    else:
        return value


def canonicalize_spec(spec: Mapping[str, Any]) -> str:
    """
    Convert a parameter mapping to a canonical JSON string.

    Keys are sorted at all levels and floats are formatted with a fixed
    number of significant digits, so the output is stable across sessions.

    Raises:
        ParameterTypeError: If `spec` holds a closure, lambda or other
                            reference that cannot be imported by name
    """
    canonical = _serialize_value(dict(spec))
    return json.dumps(canonical, sort_keys=True, separators=(',', ':'))


def stable_seed(spec: Mapping[str, Any]) -> int:
    """Derive a 64-bit RNG seed from the canonical form of `spec`."""
    digest = hashlib.sha256(canonicalize_spec(spec).encode('utf-8')).digest()
    return int.from_bytes(digest[:8], 'little')
