"""
Helpers shared by the algorithm modules and the tests.

- State comparison that ignores global phase, and pure-state fidelity
- Classical number theory for order finding (gcd, inverses)
- Continued fractions for period extraction
- Bit list conversions (LSB first, matching qubit numbering)
"""

from typing import List, Optional, Tuple

import numpy as np

from .state import SparseState, StateVector
from .sparse import to_dense


def _as_array(state) -> np.ndarray:
    if isinstance(state, StateVector):
        return state.amplitudes
    if isinstance(state, SparseState):
        return to_dense(state).amplitudes
    return np.asarray(state, dtype=np.complex128).reshape(-1)


# =============================================================================
# Quantum state utilities
# =============================================================================

def allclose_up_to_global_phase(v, w, atol: float = 1e-9) -> bool:
    """
    Check if two states are equal up to a global phase.

    Global phase has no physical significance, so decompositions that are
    only exact up to a phase (U3 -> RZ·RY·RZ) still compare equal.

    Args:
        v: StateVector, SparseState or array-like
        w: StateVector, SparseState or array-like
        atol: Absolute tolerance for comparison
    """
    v = _as_array(v)
    w = _as_array(w)
    if v.shape != w.shape:
        return False

    # Stable pivot: the largest amplitude of w
    idx = int(np.argmax(np.abs(w)))
    if abs(w[idx]) < atol:
        return bool(np.allclose(v, w, atol=atol))
    phase = v[idx] / w[idx]
    if abs(abs(phase) - 1.0) > atol * 10:
        return False
    return bool(np.allclose(v, phase * w, atol=atol))


def state_fidelity(v, w) -> float:
    """
    Fidelity F = |⟨v|w⟩|² between two pure states, in [0, 1] for unit vectors.
    """
    return float(abs(np.vdot(_as_array(v), _as_array(w))) ** 2)


# =============================================================================
# Number theory utilities
# =============================================================================

def gcd(a: int, b: int) -> int:
    """Greatest common divisor (Euclid), always non-negative."""
    a, b = abs(a), abs(b)
    while b:
        a, b = b, a % b
    return a


def is_coprime(a: int, N: int) -> bool:
    return gcd(a, N) == 1


def mod_inverse(a: int, N: int) -> Optional[int]:
    """
    x with (a * x) mod N == 1, or None when gcd(a, N) != 1.
    """
    if N <= 0 or gcd(a, N) != 1:
        return None
    old_r, r = a % N, N
    old_s, s = 1, 0
    while r:
        q = old_r // r
        old_r, r = r, old_r - q * r
        old_s, s = s, old_s - q * s
    return old_s % N


def multiplicative_order(a: int, N: int) -> Optional[int]:
    """Smallest r > 0 with a^r ≡ 1 (mod N), by brute force; None if not coprime."""
    if not is_coprime(a, N):
        return None
    value, r = a % N, 1
    while value != 1:
        value = (value * a) % N
        r += 1
    return r


# =============================================================================
# Continued fractions
# =============================================================================

def continued_fraction_expansion(numerator: int, denominator: int,
                                 max_terms: int = 64) -> List[int]:
    """
    Coefficients [a0, a1, ...] of numerator/denominator.

    Uses exact integer arithmetic, so the expansion of a measured value
    m / 2^n terminates without floating point noise.
    """
    if denominator == 0:
        raise ZeroDivisionError("continued fraction of x/0")
    coeffs = []
    while denominator and len(coeffs) < max_terms:
        q, rem = divmod(numerator, denominator)
        coeffs.append(q)
        numerator, denominator = denominator, rem
    return coeffs


def convergents(coeffs: List[int]) -> List[Tuple[int, int]]:
    """Successive (numerator, denominator) approximations of a continued fraction."""
    convs = []
    h_prev, h_curr = 0, 1
    k_prev, k_curr = 1, 0
    for a in coeffs:
        h_prev, h_curr = h_curr, a * h_curr + h_prev
        k_prev, k_curr = k_curr, a * k_curr + k_prev
        convs.append((h_curr, k_curr))
    return convs


def extract_period(measurement: int, num_qubits: int, N: int, a: int) -> Optional[int]:
    """
    Recover the period r of a^x mod N from a phase-estimation outcome.

    measurement / 2^num_qubits ≈ s/r. When s and r share a factor the
    convergent's denominator is a divisor of r, so multiples of each
    denominator below N are tried as well.

    Returns:
        The period, or None when the outcome carries no information
    """
    if measurement == 0:
        return None
    coeffs = continued_fraction_expansion(measurement, 2 ** num_qubits)
    for _, denom in convergents(coeffs):
        if denom <= 0:
            continue
        for r in range(denom, N, denom):
            if pow(a, r, N) == 1:
                return r
    return None


# =============================================================================
# Binary utilities
# =============================================================================

def int_to_bits(x: int, n: int) -> List[int]:
    """n bits of x, LSB first (bit i belongs to qubit i)."""
    return [(x >> i) & 1 for i in range(n)]


def bits_to_int(bits: List[int]) -> int:
    """Inverse of int_to_bits."""
    return sum(int(bit) << i for i, bit in enumerate(bits))
