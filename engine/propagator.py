"""
Dense reference propagator.

Propagates a state vector under a piecewise-constant generator,
psi(t_{n+1}) = exp(-i H_n dt) psi(t_n), on a time grid `tlist`.

Methods:
- 'exact': eigendecomposition of each H_n
- 'taylor': truncated Taylor series of the exponential, stopped once the
  norm of a term drops below `taylor_coeffs_limit`
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

import numpy as np

from .timings import TimingData, maybe_span, timings_enabled

METHODS = ('exact', 'taylor')
MATVEC = "matrix-vector product"
STEP = "prop_step"


@dataclass
class DynamicGenerator:
    """H(t) = drift + sum_k amplitudes[k, n] * controls[k] on interval n."""
    drift: np.ndarray
    controls: List[np.ndarray] = field(default_factory=list)
    amplitudes: Optional[np.ndarray] = None

    @property
    def dim(self) -> int:
        return self.drift.shape[0]

    def at(self, n: int) -> np.ndarray:
        H = self.drift.copy()
        for k, control in enumerate(self.controls):
            H += self.amplitudes[k, n] * control
        return H


Generator = Union[np.ndarray, DynamicGenerator]


def evaluate_generator(generator: Generator, n: int) -> np.ndarray:
    if isinstance(generator, DynamicGenerator):
        return generator.at(n)
    return np.asarray(generator)


class DensePropagator:
    """
    In-place propagator over a time grid.

    Usage:
        propagator = init_prop(psi0, H, tlist, method='taylor')
        for _ in range(len(tlist) - 1):
            propagator.prop_step()
        psi = propagator.state
    """

    def __init__(
        self,
        initial_state: np.ndarray,
        generator: Generator,
        tlist,
        method: str = 'exact',
        taylor_coeffs_limit: float = 1e-15,
        max_taylor_terms: int = 1000,
        hermitian: Optional[bool] = None,
        check: bool = True,
    ):
        if method not in METHODS:
            raise ValueError(f"Unknown propagation method: {method}. Available: {METHODS}")
        self.state = np.array(initial_state, dtype=complex)
        self.generator = generator
        self.tlist = np.asarray(tlist, dtype=float)
        self.method = method
        self.taylor_coeffs_limit = float(taylor_coeffs_limit)
        self.max_taylor_terms = int(max_taylor_terms)
        self.hermitian = hermitian
        self.check = check
        self.n = 0
        self.timing_data: Optional[TimingData] = TimingData() if timings_enabled() else None
        if check:
            self._check_inputs()

    def _check_inputs(self) -> None:
        if len(self.tlist) < 2:
            raise ValueError("tlist must contain at least two points")
        if self.state.ndim != 1:
            raise ValueError(f"initial_state must be a vector, got shape {self.state.shape}")
        H = evaluate_generator(self.generator, 0)
        if H.shape != (len(self.state), len(self.state)):
            raise ValueError(
                f"generator shape {H.shape} does not match state dimension {len(self.state)}"
            )

    @property
    def t(self) -> float:
        return float(self.tlist[self.n])

    @property
    def finished(self) -> bool:
        return self.n >= len(self.tlist) - 1

    def prop_step(self) -> Optional[np.ndarray]:
        """Advance by one time step; return None once the grid is exhausted."""
        if self.finished:
            return None
        dt = self.tlist[self.n + 1] - self.tlist[self.n]
        with maybe_span(self.timing_data, STEP):
            H = evaluate_generator(self.generator, self.n)
            if self.method == 'exact':
                self.state = self._step_exact(H, dt)
            else:
                self.state = self._step_taylor(H, dt)
        self.n += 1
        return self.state

    def _matvec(self, A: np.ndarray, v: np.ndarray) -> np.ndarray:
        with maybe_span(self.timing_data, MATVEC):
            return A @ v

    def _step_exact(self, H: np.ndarray, dt: float) -> np.ndarray:
        hermitian = self.hermitian
        if hermitian is None:
            hermitian = np.allclose(H, H.conj().T)
        if hermitian:
            evals, U = np.linalg.eigh(H)
            U_inv = U.conj().T
        else:
            evals, U = np.linalg.eig(H)
            U_inv = np.linalg.inv(U)
        phases = np.exp(-1j * evals * dt)
        return self._matvec(U, phases * self._matvec(U_inv, self.state))

    def _step_taylor(self, H: np.ndarray, dt: float) -> np.ndarray:
        term = self.state
        result = self.state.copy()
        for k in range(1, self.max_taylor_terms + 1):
            term = self._matvec(H, term) * (-1j * dt / k)
            result += term
            if np.linalg.norm(term) < self.taylor_coeffs_limit:
                return result
        if self.check:
            raise RuntimeError(
                f"Taylor series did not converge to {self.taylor_coeffs_limit} "
                f"within {self.max_taylor_terms} terms"
            )
        return result


def init_prop(initial_state, generator, tlist, **kwargs) -> DensePropagator:
    """Create a propagator; keyword arguments are passed to DensePropagator."""
    return DensePropagator(initial_state, generator, tlist, **kwargs)


def propagate(initial_state, generator, tlist, **kwargs) -> np.ndarray:
    """Propagate over the whole time grid and return the final state."""
    propagator = init_prop(initial_state, generator, tlist, **kwargs)
    while not propagator.finished:
        propagator.prop_step()
    return propagator.state
