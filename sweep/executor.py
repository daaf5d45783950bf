"""
Sequential task executor (sweep/executor.py).

Tasks in one stage run strictly one after another. Running them in parallel
would let background activity in concurrent workers (garbage collection,
shared BLAS threads) distort the timings being measured.

Tasks are visited in a random order so that the progress meter's ETA sees a
representative mix of cheap and expensive tasks. Results are always
returned in input order.
"""

import sys
import time
from typing import Any, Callable, List, Mapping, Optional, Sequence, TextIO

import numpy as np

from utils.config import get


class ProgressMeter:
    """
    Minimal single-line progress meter with ETA.

    Usage:
        meter = ProgressMeter(len(tasks), "calibrate:        ")
        for task in tasks:
            ...
            meter.next()
    """

    def __init__(
        self,
        total: int,
        title: str = "",
        enabled: bool = True,
        stream: Optional[TextIO] = None,
        min_update_seconds: Optional[float] = None,
    ):
        self.total = total
        self.title = title
        self.enabled = enabled and total > 0
        self.stream = stream if stream is not None else sys.stderr
        if min_update_seconds is None:
            min_update_seconds = get('progress', 'min_update_seconds', 0.5)
        self.min_update_seconds = min_update_seconds
        self.count = 0
        self._start = time.monotonic()
        self._last_draw = float('-inf')

    def next(self) -> None:
        self.count += 1
        if not self.enabled:
            return
        now = time.monotonic()
        if self.count < self.total and now - self._last_draw < self.min_update_seconds:
            return
        self._last_draw = now
        self._draw(now)

    def _draw(self, now: float) -> None:
        elapsed = now - self._start
        percent = 100.0 * self.count / self.total
        if self.count < self.total:
            eta = elapsed / self.count * (self.total - self.count)
            tail = f"ETA: {_format_seconds(eta)}"
        else:
            tail = f"Time: {_format_seconds(elapsed)}"
        self.stream.write(f"\r{self.title}{percent:3.0f}% [{self.count}/{self.total}] {tail}")
        if self.count >= self.total:
            self.stream.write("\n")
        self.stream.flush()


def _format_seconds(seconds: float) -> str:
    seconds = int(round(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:d}:{minutes:02d}:{secs:02d}"


def map_tasks(
    fn: Callable[..., Any],
    *,
    title: str = "",
    as_args: Optional[Sequence[Sequence[Any]]] = None,
    as_kwargs: Optional[Sequence[Mapping[str, Any]]] = None,
    rng: Optional[np.random.Generator] = None,
    show_progress: Optional[bool] = None,
    **static_kwargs,
) -> List[Any]:
    """
    Call `fn` once per task and collect the results in task order.

    Task i is called as fn(*as_args[i], **as_kwargs[i], **static_kwargs),
    with static_kwargs taking precedence on shared names.

    Args:
        fn: Function to run
        title: Progress meter title
        as_args: Positional arguments per task
        as_kwargs: Keyword arguments per task
        rng: Generator used to shuffle the visitation order
        show_progress: Override the 'progress.enabled' config setting
        **static_kwargs: Keyword arguments passed to every task

    Returns:
        List of results, results[i] belonging to task i

    Raises:
        ValueError: If as_args and as_kwargs differ in length
    """
    if as_args is not None and as_kwargs is not None:
        if len(as_args) != len(as_kwargs):
            raise ValueError(
                f"as_args and as_kwargs must have equal length "
                f"({len(as_args)} != {len(as_kwargs)})"
            )
        ntasks = len(as_args)
    elif as_args is not None:
        ntasks = len(as_args)
    elif as_kwargs is not None:
        ntasks = len(as_kwargs)
    else:
        ntasks = 0

    if rng is None:
        rng = np.random.default_rng()
    if show_progress is None:
        show_progress = get('progress', 'enabled', True)

    results: List[Any] = [None] * ntasks
    meter = ProgressMeter(ntasks, title, enabled=show_progress)
    for i in rng.permutation(ntasks):
        i = int(i)
        args = () if as_args is None else as_args[i]
        kwargs = {} if as_kwargs is None else as_kwargs[i]
        results[i] = fn(*args, **{**kwargs, **static_kwargs})
        meter.next()
    return results
