"""
Collected benchmark results (sweep/collected.py).

A CollectedBenchmarks table holds one row (dict) per benchmark plus a
stable, ordered list of column headers. Rows may have different key
subsets; reading a row always yields every header, with MISSING for
absent entries.
"""

from typing import Any, Callable, Dict, Iterator, List, Mapping, Sequence

import numpy as np
import pandas as pd

from utils.errors import MergeIntegrityError


class _Missing:
    """Marker for a column a row does not have."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'missing'

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Missing, ())


MISSING = _Missing()


def update_headers(headers: List[str], new_keys: Sequence[str]) -> List[str]:
    """
    Insert unseen keys into `headers` in place.

    Each new key goes right after the last key of the same row that is
    already known (or at the front if none is), keeping related columns
    adjacent.
    """
    insert_index = 0
    for key in new_keys:
        if key in headers:
            insert_index = headers.index(key) + 1
        else:
            headers.insert(insert_index, key)
            insert_index += 1
    return headers


def _values_equal(a: Any, b: Any) -> bool:
    if a is b:
        return True
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        return bool(np.array_equal(a, b))
    try:
        return bool(a == b)
    except (TypeError, ValueError):
        return False


class CollectedBenchmarks:
    """
    Table of benchmark rows with merge and filter operations.

    Usage:
        table = CollectedBenchmarks([{'N': 10, 'time': 1.2}, {'N': 20}])
        table.headers   # ['N', 'time']
        table[1]        # {'N': 20, 'time': missing}
    """

    def __init__(self, benchmarks: Sequence[Mapping[str, Any]] = ()):
        self.headers: List[str] = []
        self.benchmarks: List[Dict[str, Any]] = []
        for benchmark in benchmarks:
            row = dict(benchmark)
            update_headers(self.headers, list(row.keys()))
            self.benchmarks.append(row)

    def __len__(self) -> int:
        return len(self.benchmarks)

    def __getitem__(self, i: int) -> Dict[str, Any]:
        row = self.benchmarks[i]
        return {key: row.get(key, MISSING) for key in self.headers}

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        for i in range(len(self)):
            yield self[i]

    def __eq__(self, other) -> bool:
        if not isinstance(other, CollectedBenchmarks):
            return NotImplemented
        if self.headers != other.headers or len(self) != len(other):
            return False
        return all(
            _values_equal(a.get(k, MISSING), b.get(k, MISSING))
            for a, b in zip(self.benchmarks, other.benchmarks)
            for k in self.headers
        )

    @property
    def rows(self) -> List[Dict[str, Any]]:
        """All rows, each with every header."""
        return list(self)

    def column(self, key: str) -> List[Any]:
        return [row.get(key, MISSING) for row in self.benchmarks]

    def filter(self, predicate: Callable[[Dict[str, Any]], bool]) -> 'CollectedBenchmarks':
        """New table with the rows for which `predicate(row)` is true."""
        kept = [self.benchmarks[i] for i in range(len(self)) if predicate(self[i])]
        return CollectedBenchmarks(kept)

    def merge(self, *others: 'CollectedBenchmarks') -> 'CollectedBenchmarks':
        """
        Merge tables row by row.

        Row i of the result combines row i of this table and of every other
        table. All tables must have the same number of rows, and a key
        present in several tables must hold equal values at the same row.

        Raises:
            MergeIntegrityError: On differing row counts or conflicting values
        """
        n = len(self)
        for other in others:
            if len(other) != n:
                raise MergeIntegrityError(
                    f"All CollectedBenchmarks must have the same number of rows "
                    f"({len(other)} != {n})"
                )
        merged = []
        for i in range(n):
            row = dict(self.benchmarks[i])
            for other in others:
                for key, value in other.benchmarks[i].items():
                    if key in row and not _values_equal(row[key], value):
                        raise MergeIntegrityError(
                            f"Conflicting values for '{key}' in row {i}: "
                            f"{row[key]!r} != {value!r}"
                        )
                    row.setdefault(key, value)
            merged.append(row)
        return CollectedBenchmarks(merged)

    def to_dataframe(self) -> pd.DataFrame:
        """DataFrame with one column per header; MISSING becomes pd.NA."""
        records = [
            {k: (pd.NA if v is MISSING else v) for k, v in row.items()}
            for row in self
        ]
        return pd.DataFrame.from_records(records, columns=self.headers)

    def render(self, fmt: str = 'text') -> str:
        """Render the table as plain text or HTML, with row numbers."""
        df = self.to_dataframe()
        df.index = pd.RangeIndex(1, len(df) + 1, name='row')
        if fmt == 'text':
            return df.to_string()
        if fmt == 'html':
            return df.to_html()
        raise ValueError(f"Unknown render format: {fmt}")

    def __str__(self) -> str:
        return self.render('text')

    def __repr__(self) -> str:
        return f"<CollectedBenchmarks: {len(self)} rows x {len(self.headers)} columns>"

    def _repr_html_(self) -> str:
        return self.render('html')
