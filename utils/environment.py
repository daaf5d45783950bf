"""
Information about the machine running a benchmark.
"""

import io
import os
import platform
import sys
from contextlib import redirect_stdout
from typing import Dict

import joblib
import numpy as np
import pandas as pd

THREAD_VARIABLES = ('OMP_NUM_THREADS', 'MKL_NUM_THREADS', 'OPENBLAS_NUM_THREADS')


def thread_environment() -> Dict[str, str]:
    """Environment variables that control thread counts of numerical libraries."""
    return {
        name: value for name, value in sorted(os.environ.items())
        if 'THREAD' in name or name in THREAD_VARIABLES
    }


def package_versions() -> Dict[str, str]:
    return {
        'numpy': np.__version__,
        'pandas': pd.__version__,
        'joblib': joblib.__version__,
    }


def blas_config() -> str:
    """numpy's build and BLAS/LAPACK configuration as text."""
    buffer = io.StringIO()
    with redirect_stdout(buffer):
        np.show_config()
    return buffer.getvalue().strip()


def info() -> str:
    """Print information about the system running the benchmark."""
    lines = [
        f"Python {sys.version.split()[0]} ({platform.python_implementation()})",
        f"Platform: {platform.platform()}",
        f"Machine: {platform.machine()}, {os.cpu_count()} CPUs",
        "",
        "Thread environment:",
    ]
    threads = thread_environment()
    if threads:
        lines.extend(f"  {name} = {value}" for name, value in threads.items())
    else:
        lines.append("  (none set)")

    lines.append("")
    lines.append("Packages:")
    versions = package_versions()
    width = max(len(name) for name in versions)
    lines.extend(f"  {name.ljust(width)}: {version}" for name, version in versions.items())

    lines.append("")
    lines.append("numpy configuration:")
    lines.extend(f"  {line}" for line in blas_config().splitlines())

    text = '\n'.join(lines)
    print(text)
    return text
