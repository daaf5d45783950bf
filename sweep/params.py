"""
Parameter sets and Cartesian expansion (sweep/params.py).

A ParameterSet maps parameter names to fixed values or to `Vary` lists.
Expansion replaces every `Vary` with one of its values, producing the full
Cartesian product over the varied keys in declaration order.
"""

import enum
import numbers
from itertools import product
from typing import Any, Dict, Iterator, List, Sequence

from utils.canonical import is_opaque_reference
from utils.errors import ConfigurationError, ParameterTypeError


def _value_kind(value: Any) -> Any:
    """Group used for the one-type rule of Vary; numbers form one group."""
    if isinstance(value, numbers.Number):
        return numbers.Number
    if is_opaque_reference(value):
        return 'reference'
    return type(value)


def _check_vary_values(values: tuple) -> None:
    kinds = {_value_kind(v) for v in values}
    if len(kinds) > 1:
        raise ConfigurationError(
            f"Vary values must all be of one type, got {', '.join(repr(v) for v in values)}"
        )
    for i, value in enumerate(values):
        # unsupported values are reported by expand_variations
        if not is_sane_value(value):
            continue
        if any(value is other or value == other for other in values[:i]):
            raise ConfigurationError(f"Vary values must be distinct, {value!r} is repeated")


class Vary:
    """
    A parameter value that is to be varied in a benchmark.

    Usage:
        Vary(10, 100, 1000)
        Vary([1e-4, 1e-8])

    At least two distinct values of one type are required. Ints, floats
    and other numbers count as one type; references (modules, functions,
    classes) as another.
    """

    __slots__ = ('_values',)

    def __init__(self, *values):
        if len(values) == 1 and isinstance(values[0], (list, tuple)):
            values = tuple(values[0])
        if len(values) < 2:
            raise ConfigurationError(
                f"Vary requires at least two values, got {len(values)}"
            )
        _check_vary_values(values)
        object.__setattr__(self, '_values', tuple(values))

    def __setattr__(self, name, value):
        raise AttributeError("Vary is immutable")

    @property
    def values(self) -> tuple:
        return self._values

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Vary):
            return NotImplemented
        return self._values == other._values

    def __hash__(self) -> int:
        return hash(('Vary', self._values))

    def __repr__(self) -> str:
        return f"Vary({', '.join(repr(v) for v in self._values)})"

    def __reduce__(self):
        return (Vary, self._values)


class ParameterSet(dict):
    """Ordered mapping of parameter names to fixed values or `Vary` lists."""

    def varied_keys(self) -> List[str]:
        return [k for k, v in self.items() if isinstance(v, Vary)]

    def fixed_keys(self) -> List[str]:
        return [k for k, v in self.items() if not isinstance(v, Vary)]

    def __repr__(self) -> str:
        inner = ', '.join(f"{k}={v!r}" for k, v in self.items())
        return f"params({inner})"


def params(**kwargs) -> ParameterSet:
    """
    Construct parameters for `run_benchmarks`.

    Example:
        system_parameters = params(
            N=Vary(10, 100, 1000),
            exact_spectral_envelope=True,
            hermitian=True,
        )

    All values must be numbers, strings, symbolic tags (Enum members),
    opaque references (modules, functions, classes), or `Vary` instances.
    Validation happens during expansion.
    """
    return ParameterSet(kwargs)


def is_sane_value(value: Any) -> bool:
    """Check whether `value` may appear in a cache key."""
    return (
        isinstance(value, (numbers.Number, str, enum.Enum))
        or is_opaque_reference(value)
    )


def _check_sane(key: str, value: Any) -> None:
    if not is_sane_value(value):
        raise ParameterTypeError(
            f"Parameter '{key}' has unsupported type {type(value).__name__}: "
            f"must be a number, string, Enum member, module, function or class"
        )


def expand_variations(parameters: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Expand a parameter set to the list of concrete parameter dicts.

    Args:
        parameters: Mapping of names to fixed values or `Vary` instances
                    e.g., {'N': Vary(10, 100), 'dt': 1.0}

    Returns:
        List of dicts with all combinations, in product order over the
        varied keys:
        [{'N': 10, 'dt': 1.0}, {'N': 100, 'dt': 1.0}]
        A parameter set without `Vary` expands to a single dict.

    Raises:
        ParameterTypeError: If a fixed or varied value is not a sane type
    """
    keys_to_vary = []
    for key, value in parameters.items():
        if isinstance(value, Vary):
            keys_to_vary.append(key)
        else:
            _check_sane(key, value)

    result = []
    for combo in product(*[parameters[k].values for k in keys_to_vary]):
        expanded = dict(parameters)
        for key, value in zip(keys_to_vary, combo):
            _check_sane(key, value)
            expanded[key] = value
        result.append(expanded)

    return result


def count_variations(parameters: Dict[str, Any]) -> int:
    """Number of combinations `expand_variations` will produce."""
    n = 1
    for value in parameters.values():
        if isinstance(value, Vary):
            n *= len(value)
    return n


def varied_keys(*parameter_sets: Dict[str, Any]) -> List[str]:
    """Varied keys across all given parameter sets, in first-seen order."""
    keys: List[str] = []
    for parameters in parameter_sets:
        for key, value in parameters.items():
            if isinstance(value, Vary) and key not in keys:
                keys.append(key)
    return keys


def merge_params(*mappings: Dict[str, Any]) -> Dict[str, Any]:
    """Merge mappings left to right; later mappings win on shared keys."""
    merged: Dict[str, Any] = {}
    for mapping in mappings:
        merged.update(mapping)
    return merged


def format_params(parameters: Dict[str, Any], keys: Sequence[str] = ()) -> str:
    """Short 'k=v, ...' description, optionally restricted to `keys`."""
    items = parameters.items() if not keys else ((k, parameters[k]) for k in keys if k in parameters)
    return ', '.join(f"{k}={v!r}" for k, v in items)
