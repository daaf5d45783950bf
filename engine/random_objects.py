"""
Random matrices, states and dynamic generators for benchmark systems.

Every function takes an explicit numpy Generator; nothing here draws from
global random state.
"""

import numpy as np

from .propagator import DynamicGenerator


def random_matrix(
    N: int,
    *,
    rng: np.random.Generator,
    spectral_radius: float = 1.0,
    exact_spectral_radius: bool = False,
    density: float = 1.0,
    hermitian: bool = True,
) -> np.ndarray:
    """
    Random complex N x N matrix.

    Without `exact_spectral_radius` the matrix is scaled using the
    semicircle estimate 2 * sigma * sqrt(N * density), so its spectral
    radius is only approximately `spectral_radius`.
    """
    X = rng.normal(size=(N, N)) + 1j * rng.normal(size=(N, N))
    if density < 1:
        X = X * (rng.random((N, N)) < density)
    if hermitian:
        X = (X + X.conj().T) / 2
    if exact_spectral_radius:
        evals = np.linalg.eigvalsh(X) if hermitian else np.linalg.eigvals(X)
        radius = np.max(np.abs(evals))
        if radius > 0:
            X *= spectral_radius / radius
    else:
        sigma = np.std(X[X != 0]) if np.any(X != 0) else 1.0
        X *= spectral_radius / (2 * sigma * np.sqrt(max(N * density, 1.0)))
    return X


def random_state_vector(N: int, *, rng: np.random.Generator) -> np.ndarray:
    """Normalized complex Gaussian state vector."""
    psi = rng.normal(size=N) + 1j * rng.normal(size=N)
    return psi / np.linalg.norm(psi)


def random_amplitudes(
    tlist: np.ndarray,
    *,
    rng: np.random.Generator,
    n_frequencies: int = 5,
) -> np.ndarray:
    """
    Smooth random control amplitude sampled at interval midpoints.

    The result has len(tlist) - 1 entries and a maximum absolute value of 1.
    """
    tlist = np.asarray(tlist, dtype=float)
    t_mid = (tlist[:-1] + tlist[1:]) / 2
    T = max(tlist[-1] - tlist[0], 1e-12)
    u = np.zeros_like(t_mid)
    for n in range(1, n_frequencies + 1):
        a, b = rng.normal(size=2) / n
        u += a * np.sin(np.pi * n * t_mid / T) + b * np.cos(np.pi * n * t_mid / T)
    peak = np.max(np.abs(u))
    return u / peak if peak > 0 else u


def random_dynamic_generator(
    N: int,
    tlist,
    *,
    rng: np.random.Generator,
    spectral_envelope: float = 1.0,
    exact_spectral_envelope: bool = False,
    number_of_controls: int = 1,
    density: float = 1.0,
    hermitian: bool = True,
    n_frequencies: int = 5,
) -> DynamicGenerator:
    """
    Random time-dependent generator with one drift and several controls.

    The envelope is split evenly between the drift and the controls, and
    amplitudes are bounded by 1, so the spectral radius of H(t) stays at or
    below `spectral_envelope` (approximately, unless exact).
    """
    radius = spectral_envelope / (1 + number_of_controls)
    kwargs = dict(
        rng=rng,
        spectral_radius=radius,
        exact_spectral_radius=exact_spectral_envelope,
        density=density,
        hermitian=hermitian,
    )
    drift = random_matrix(N, **kwargs)
    controls = [random_matrix(N, **kwargs) for _ in range(number_of_controls)]
    amplitudes = np.array([
        random_amplitudes(tlist, rng=rng, n_frequencies=n_frequencies)
        for _ in range(number_of_controls)
    ]).reshape(number_of_controls, len(tlist) - 1)
    return DynamicGenerator(drift=drift, controls=controls, amplitudes=amplitudes)
