"""
Tests for sweep/params.py and utils/canonical.py

Covers:
- Vary construction and immutability
- Cartesian expansion order and counts
- Rejection of unsupported parameter values
- Order-independent cache keys and stable seeds
"""

import enum
import math
import pickle

import numpy as np
import pytest

from sweep.params import (
    Vary, ParameterSet, params, expand_variations, count_variations,
    varied_keys, merge_params, format_params
)
from utils.canonical import (
    CacheKey, ObjectRef, canonicalize_spec, make_cache_key, resolves_by_name, stable_seed
)
from utils.errors import ConfigurationError, ParameterTypeError


class Method(enum.Enum):
    TAYLOR = 'taylor'
    EXACT = 'exact'


class TestVary:
    """Tests for Vary."""

    def test_values_in_order(self):
        assert Vary(10, 100, 1000).values == (10, 100, 1000)

    def test_single_list_argument(self):
        """A single list is unpacked into the values."""
        assert Vary([1e-4, 1e-8]) == Vary(1e-4, 1e-8)

    def test_requires_two_values(self):
        with pytest.raises(ConfigurationError, match="at least two"):
            Vary(1)
        with pytest.raises(ConfigurationError):
            Vary()

    def test_immutable(self):
        v = Vary(1, 2)
        with pytest.raises(AttributeError):
            v.values = (3, 4)
        with pytest.raises(AttributeError):
            v.extra = 1

    def test_mixed_types_rejected(self):
        with pytest.raises(ConfigurationError, match="one type"):
            Vary(1, 'a')
        with pytest.raises(ConfigurationError, match="one type"):
            Vary(Method.TAYLOR, 'exact')
        with pytest.raises(ConfigurationError, match="one type"):
            Vary(math.sqrt, 1.0)

    def test_numbers_are_one_type(self):
        assert Vary(1, 2.5, np.float64(3.0)).values == (1, 2.5, 3.0)

    def test_references_are_one_type(self):
        assert len(Vary(math.sqrt, np, Method)) == 3

    def test_duplicates_rejected(self):
        with pytest.raises(ConfigurationError, match="distinct"):
            Vary(3, 3)
        with pytest.raises(ConfigurationError, match="distinct"):
            Vary(1, 1.0)
        with pytest.raises(ConfigurationError, match="distinct"):
            Vary(['a', 'b', 'a'])

    def test_pickle(self):
        v = Vary(1, 2.5, 4)
        assert pickle.loads(pickle.dumps(v)) == v


class TestParams:
    """Tests for params() and ParameterSet."""

    def test_preserves_declaration_order(self):
        p = params(b=1, a=Vary(1, 2), c='x')
        assert list(p.keys()) == ['b', 'a', 'c']
        assert isinstance(p, ParameterSet)

    def test_varied_and_fixed_keys(self):
        p = params(N=Vary(10, 20), dt=1.0, method='taylor')
        assert p.varied_keys() == ['N']
        assert p.fixed_keys() == ['dt', 'method']

    def test_no_validation_on_construction(self):
        """Bad values are only rejected at expansion."""
        p = params(x=[1, 2])
        with pytest.raises(ParameterTypeError):
            expand_variations(p)


class TestExpandVariations:
    """Tests for expand_variations."""

    def test_no_vary_single_set(self):
        p = params(a=1, b='x')
        assert expand_variations(p) == [{'a': 1, 'b': 'x'}]

    def test_empty_set(self):
        assert expand_variations(params()) == [{}]

    def test_product_order(self):
        """Last varied key changes fastest."""
        p = params(a=Vary(1, 2), fixed=0, b=Vary('x', 'y', 'z'))
        result = expand_variations(p)

        assert len(result) == 6
        assert [(r['a'], r['b']) for r in result] == [
            (1, 'x'), (1, 'y'), (1, 'z'),
            (2, 'x'), (2, 'y'), (2, 'z'),
        ]
        assert all(r['fixed'] == 0 for r in result)

    def test_count_matches_expansion(self):
        p = params(a=Vary(1, 2, 3), b=Vary(1, 2), c=5)
        assert count_variations(p) == 6 == len(expand_variations(p))

    def test_accepts_enum_and_references(self):
        p = params(method=Method.TAYLOR, module=np, fn=math.sqrt, cls=Method)
        assert expand_variations(p) == [dict(p)]

    def test_rejects_fixed_container(self):
        with pytest.raises(ParameterTypeError, match="'x'"):
            expand_variations(params(x={'a': 1}))

    def test_rejects_varied_container(self):
        with pytest.raises(ParameterTypeError):
            expand_variations(params(x=Vary([1, 2], [3, 4])))

    def test_rejects_none(self):
        with pytest.raises(ParameterTypeError):
            expand_variations(params(x=None))

    def test_parameter_type_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            expand_variations(params(x=object()))


class TestParamHelpers:
    """Tests for varied_keys, merge_params, format_params."""

    def test_varied_keys_first_seen_order(self):
        a = params(N=Vary(1, 2), dt=1.0)
        b = params(precision=Vary(1e-4, 1e-8), N=Vary(3, 4))
        assert varied_keys(a, b) == ['N', 'precision']

    def test_merge_later_wins(self):
        assert merge_params({'a': 1, 'b': 2}, {'b': 3}, {'c': 4}) == {'a': 1, 'b': 3, 'c': 4}

    def test_format_params(self):
        p = params(N=Vary(1, 2), dt=0.1)
        assert format_params(p) == "N=Vary(1, 2), dt=0.1"
        assert format_params(p, keys=['dt']) == "dt=0.1"


class TestCacheKey:
    """Tests for make_cache_key."""

    def test_order_independent(self):
        assert make_cache_key({'a': 1, 'b': 2.0}) == make_cache_key({'b': 2.0, 'a': 1})
        assert hash(make_cache_key({'a': 1, 'b': 2.0})) == hash(make_cache_key({'b': 2.0, 'a': 1}))

    def test_different_values_differ(self):
        assert make_cache_key({'a': 1}) != make_cache_key({'a': 2})

    def test_passthrough(self):
        key = make_cache_key({'a': 1})
        assert make_cache_key(key) is key

    def test_numpy_scalars_normalized(self):
        assert make_cache_key({'N': np.int64(10)}) == make_cache_key({'N': 10})

    def test_references_become_object_refs(self):
        key = make_cache_key({'fn': math.sqrt, 'module': np})
        d = key.to_dict()
        assert d['fn'] == ObjectRef('math.sqrt')
        assert d['module'] == ObjectRef('numpy')

    def test_closures_keep_identity(self):
        """Closures from one factory share a qualified name but not a key."""
        def make(k):
            return lambda x: x * k

        first, second = make(1), make(10)
        assert make_cache_key({'fn': first}) != make_cache_key({'fn': second})
        assert make_cache_key({'fn': first}) == make_cache_key({'fn': first})
        assert make_cache_key({'fn': first}).to_dict()['fn'] is first

    def test_resolves_by_name(self):
        def local():
            pass

        assert resolves_by_name(math.sqrt)
        assert resolves_by_name(np)
        assert resolves_by_name(Method)
        assert not resolves_by_name(local)
        assert not resolves_by_name(lambda: None)

    def test_key_pickles(self):
        key = make_cache_key({'fn': math.sqrt, 'method': Method.EXACT, 'N': 3})
        restored = pickle.loads(pickle.dumps(key))
        assert restored == key
        assert isinstance(restored, CacheKey)


class TestStableSeed:
    """Tests for canonicalize_spec and stable_seed."""

    def test_canonical_form_sorted(self):
        assert canonicalize_spec({'b': 1, 'a': 2}) == canonicalize_spec({'a': 2, 'b': 1})

    def test_float_formatting(self):
        assert canonicalize_spec({'dt': 0.1}) == '{"dt":"1.0000000000e-01"}'

    def test_seed_deterministic(self):
        spec = {'N': 10, 'dt': 1.0, 'hermitian': True}
        assert stable_seed(spec) == stable_seed(dict(reversed(list(spec.items()))))

    def test_seed_depends_on_values(self):
        assert stable_seed({'N': 10}) != stable_seed({'N': 11})

    def test_seed_from_importable_reference(self):
        assert stable_seed({'fn': math.sqrt}) == stable_seed({'fn': math.sqrt})
        assert stable_seed({'fn': math.sqrt}) != stable_seed({'fn': math.exp})

    def test_seed_rejects_closure(self):
        offset = 2
        with pytest.raises(ParameterTypeError):
            stable_seed({'fn': lambda x: x + offset})

    def test_seed_range(self):
        seed = stable_seed({'N': 10})
        assert 0 <= seed < 2 ** 64
