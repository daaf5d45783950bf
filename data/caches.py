"""
Memoization caches for the benchmark pipeline.

A BenchmarkCache maps parameter combinations to artifacts (systems, exact
solutions, calibrated parameters). Keys are canonicalized, so any mapping
with the same entries finds the same artifact.

Persistence uses joblib. Writes go to a sibling temporary file that is
merged with the existing file, moved over the target with os.replace, and
removed on every exit path.
"""

import logging
import os
from collections.abc import MutableMapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Union

import joblib

from utils.config import get
from utils.canonical import CacheKey, make_cache_key, unnamed_references
from utils.errors import ParameterTypeError

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


class BenchmarkCache(MutableMapping):
    """
    Mapping from parameter combination to a previously computed artifact.

    Usage:
        cache = BenchmarkCache()
        cache[{'N': 10, 'dt': 1.0}] = system
        system = cache[{'dt': 1.0, 'N': 10}]   # same key
    """

    def __init__(self, data: Optional[Mapping] = None):
        self._data: Dict[CacheKey, Any] = {}
        self.hits = 0
        self.misses = 0
        if data:
            for key, value in data.items():
                self[key] = value

    def __getitem__(self, key) -> Any:
        return self._data[make_cache_key(key)]

    def __setitem__(self, key, value) -> None:
        self._data[make_cache_key(key)] = value

    def __delitem__(self, key) -> None:
        del self._data[make_cache_key(key)]

    def __contains__(self, key) -> bool:
        found = make_cache_key(key) in self._data
        if found:
            self.hits += 1
        else:
            self.misses += 1
        return found

    def __iter__(self) -> Iterator[CacheKey]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"BenchmarkCache({len(self._data)} entries)"

    def to_dict(self) -> Dict[CacheKey, Any]:
        """Plain dict of canonical keys to artifacts (the on-disk form)."""
        return dict(self._data)


@contextmanager
def temporary_sibling(path: PathLike) -> Iterator[Path]:
    """
    Yield a sibling path for an atomic write; remove it on exit.

    The caller writes the temporary file and moves it over `path`; if
    anything fails, the temporary file is still removed.
    """
    path = Path(path)
    tmp = path.with_name(path.name + get('cache', 'temp_suffix', '~'))
    try:
        yield tmp
    finally:
        if tmp.exists():
            tmp.unlink()


def _read(path: Path) -> Any:
    return joblib.load(path)


def _write_atomic(path: Path, obj: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with temporary_sibling(path) as tmp:
        joblib.dump(obj, tmp)
        os.replace(tmp, path)


def load_cache(path: PathLike) -> BenchmarkCache:
    """
    Load a cache from disk.

    A missing file is not an error: an empty cache is returned.
    """
    path = Path(path)
    if not path.is_file():
        logger.debug(f"No cache file at {path}, starting empty")
        return BenchmarkCache()
    cache = BenchmarkCache(_read(path))
    logger.info(f"Loaded {len(cache)} cache entries from {path}")
    return cache


def save_cache(path: PathLike, cache: Mapping) -> None:
    """
    Persist `cache` to `path`, merging with any cache already on disk.

    Entries on disk that are not in `cache` are preserved; on conflict the
    in-memory value wins. The target is replaced atomically.

    Raises:
        ParameterTypeError: If a key holds a closure, lambda or other
                            reference that cannot be imported by name
    """
    path = Path(path)
    if isinstance(cache, BenchmarkCache):
        data = cache.to_dict()
    else:
        data = {make_cache_key(k): v for k, v in cache.items()}
    for key in data:
        unnamed = unnamed_references(key)
        if unnamed:
            raise ParameterTypeError(
                f"Cannot save cache to {path}: parameters {sorted(unnamed)} hold "
                f"references that cannot be imported by name"
            )
    if path.is_file():
        merged = {make_cache_key(k): v for k, v in _read(path).items()}
        merged.update(data)
        data = merged
    _write_atomic(path, data)
    logger.info(f"Saved {len(data)} cache entries to {path}")


def run_or_load(path: PathLike, producer: Callable[[], Any], force: bool = False) -> Any:
    """
    Return the object stored at `path`, or produce and store it.

    Args:
        path: File holding the stored result
        producer: Zero-argument function computing the result
        force: Ignore an existing file and re-run `producer`

    Returns:
        The stored or freshly produced object
    """
    path = Path(path)
    if path.is_file() and not force:
        logger.info(f"Loading stored result from {path}")
        return _read(path)
    result = producer()
    _write_atomic(path, result)
    logger.info(f"Stored result in {path}")
    return result


def load_result(path: PathLike) -> Any:
    """Load an object stored by `run_or_load`."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"No stored result at {path}")
    return _read(path)
