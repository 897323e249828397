"""
Quantum teleportation over a Backend.

Alice holds |ψ⟩ = α|0⟩ + β|1⟩ on qubit 0 and shares a Bell pair (qubits 1
and 2) with Bob. She entangles her qubit with her half of the pair, measures
both, and sends the two classical bits; Bob applies X^m1 Z^m0 to qubit 2 and
ends up holding |ψ⟩.

Mid-circuit measurement goes through Backend.apply_operation, so the
outcomes come from the backend's seeded generator.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from . import gates as g
from .backend import Backend
from .errors import Result, ValidationError, capture
from .measurement import qubit_probabilities
from .state import QuantumState, get_amplitude
from .utils import state_fidelity

logger = logging.getLogger(__name__)

SOURCE, ALICE, BOB = 0, 1, 2


@dataclass(frozen=True)
class TeleportationResult:
    """
    Attributes:
        outcomes: Alice's measured bits (m0 on the source qubit, m1 on her Bell half)
        received: Bob's qubit amplitudes (a0, a1) after correction
        fidelity: |⟨ψ|received⟩|², 1.0 for a perfect run
    """

    outcomes: Tuple[int, int]
    received: Tuple[complex, complex]
    fidelity: float


def _normalized_input(alpha: complex, beta: complex) -> np.ndarray:
    psi = np.array([alpha, beta], dtype=np.complex128)
    norm = float(np.linalg.norm(psi))
    if not np.isfinite(norm) or norm == 0.0:
        raise ValidationError("amplitudes", f"alpha and beta must not both be zero, got ({alpha}, {beta})")
    return psi / norm


def preparation_angles(psi: np.ndarray) -> Tuple[float, float]:
    """(θ, φ) with U3(θ, φ, 0)|0⟩ equal to psi up to global phase."""
    theta = 2 * np.arccos(np.clip(abs(psi[0]), 0.0, 1.0))
    phi = float(np.angle(psi[1]) - np.angle(psi[0])) if abs(psi[1]) > 0 else 0.0
    return float(theta), phi


def _measured_bit(qubit: int, state: QuantumState) -> int:
    _, p1 = qubit_probabilities(qubit, state)
    return int(p1 > 0.5)


def _teleport(alpha: complex, beta: complex, backend: Backend) -> TeleportationResult:
    psi = _normalized_input(alpha, beta)
    theta, phi = preparation_angles(psi)

    state = backend.initialize_state(3).unwrap()
    # Alice's input state and the shared Bell pair
    state = backend.apply_operation([
        g.u3(SOURCE, theta, phi, 0.0),
        g.h(ALICE),
        g.cnot(ALICE, BOB),
    ], state).unwrap()

    # Bell measurement on Alice's side
    state = backend.apply_operation([
        g.cnot(SOURCE, ALICE),
        g.h(SOURCE),
        g.measure(SOURCE),
        g.measure(ALICE),
    ], state).unwrap()
    m0 = _measured_bit(SOURCE, state)
    m1 = _measured_bit(ALICE, state)

    # Bob's classically controlled corrections
    corrections = []
    if m1:
        corrections.append(g.x(BOB))
    if m0:
        corrections.append(g.z(BOB))
    if corrections:
        state = backend.apply_operation(corrections, state).unwrap()

    base = m0 | (m1 << 1)
    received = (get_amplitude(base, state), get_amplitude(base | (1 << BOB), state))
    fidelity = state_fidelity(psi, np.array(received))
    logger.debug("Teleported with outcomes (%d, %d), fidelity %.12f", m0, m1, fidelity)
    return TeleportationResult(outcomes=(m0, m1), received=received, fidelity=fidelity)


def teleport(alpha: complex, beta: complex, backend: Backend) -> Result[TeleportationResult]:
    """
    Teleport α|0⟩ + β|1⟩ from qubit 0 to qubit 2.

    The input is normalized first.

    Returns:
        Ok(TeleportationResult) or Err(ValidationError) for a zero input
    """
    return capture(_teleport, alpha, beta, backend, source="teleport")
