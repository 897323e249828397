"""
Quantum gate definitions.

This module holds the closed set of gate kinds the simulator understands,
the Gate value that places a kind on specific qubits, and the 2x2 unitary
matrices the engine applies to a target qubit.

Qubit order in Gate.qubits: controls first, target last
(cnot(0, 1) has control 0 and target 1; ccx(0, 1, 2) has target 2).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import ValidationError

# =============================================================================
# Single-qubit matrices
# =============================================================================

X_gate = np.array([[0, 1],      # Pauli X gate (NOT gate)
                   [1, 0]], dtype=complex)

Y_gate = np.array([[ 0, -1j],   # Pauli Y gate
                   [1j,   0]], dtype=complex)

Z_gate = np.array([[1,  0],     # Pauli Z gate = P(π) = S²
                   [0, -1]], dtype=complex)

H_gate = np.array([[1,  1],     # Hadamard gate
                   [1, -1]], dtype=complex) * np.sqrt(1/2)

S_gate = np.array([[1,  0],     # Phase gate = P(π/2) = T²
                   [0, 1j]], dtype=complex)

Sdg_gate = np.array([[1,   0],  # S† = P(-π/2)
                     [0, -1j]], dtype=complex)

T_gate = np.array([[1,                      0],   # T gate = P(π/4)
                   [0, np.exp(1j * np.pi / 4)]], dtype=complex)

Tdg_gate = np.array([[1,                       0],   # T† gate = P(-π/4)
                     [0, np.exp(-1j * np.pi / 4)]], dtype=complex)

I_gate = np.eye(2, dtype=complex)


def P_gate(phi):
    """Phase shift gate P(φ) = diag(1, e^{iφ})"""
    return np.array([[1,              0],
                     [0, np.exp(phi * 1j)]], dtype=complex)


def Rx_gate(theta):
    """X rotation gate Rx(θ)"""
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return np.array([[c,    -1j * s],
                     [-1j * s,    c]], dtype=complex)


def Ry_gate(theta):
    """Y rotation gate Ry(θ)"""
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return np.array([[c, -s],
                     [s,  c]], dtype=complex)


def Rz_gate(theta):
    """Z rotation gate Rz(θ)"""
    return np.array([[np.exp(-1j * theta / 2),                    0],
                     [                      0, np.exp(1j * theta / 2)]], dtype=complex)


def U3_gate(theta, phi, lam):
    """General single-qubit unitary U3(θ, φ, λ) = Rz(φ)·Ry(θ)·Rz(λ) up to global phase"""
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return np.array([[c,                  -np.exp(1j * lam) * s],
                     [np.exp(1j * phi) * s, np.exp(1j * (phi + lam)) * c]], dtype=complex)


# =============================================================================
# Gate kinds
# =============================================================================

class GateKind(Enum):
    """Every operation a circuit may contain."""

    # Single-qubit
    H = "H"
    X = "X"
    Y = "Y"
    Z = "Z"
    S = "S"
    SDG = "SDG"
    T = "T"
    TDG = "TDG"
    P = "P"
    RX = "RX"
    RY = "RY"
    RZ = "RZ"
    U3 = "U3"

    # Two-qubit
    CNOT = "CNOT"
    CZ = "CZ"
    CP = "CP"
    CRX = "CRX"
    CRY = "CRY"
    CRZ = "CRZ"
    SWAP = "SWAP"

    # Three-qubit
    CCX = "CCX"

    # Multi-controlled Z, any number of controls
    MCZ = "MCZ"

    # Non-unitary
    MEASURE = "MEASURE"
    BARRIER = "BARRIER"


# (number of qubits or None for variadic, number of angle parameters)
_ARITY = {
    GateKind.H: (1, 0), GateKind.X: (1, 0), GateKind.Y: (1, 0), GateKind.Z: (1, 0),
    GateKind.S: (1, 0), GateKind.SDG: (1, 0), GateKind.T: (1, 0), GateKind.TDG: (1, 0),
    GateKind.P: (1, 1), GateKind.RX: (1, 1), GateKind.RY: (1, 1), GateKind.RZ: (1, 1),
    GateKind.U3: (1, 3),
    GateKind.CNOT: (2, 0), GateKind.CZ: (2, 0), GateKind.SWAP: (2, 0),
    GateKind.CP: (2, 1), GateKind.CRX: (2, 1), GateKind.CRY: (2, 1), GateKind.CRZ: (2, 1),
    GateKind.CCX: (3, 0),
    GateKind.MCZ: (None, 0),
    GateKind.MEASURE: (1, 0),
    GateKind.BARRIER: (None, 0),
}

# Gate kind -> inverse kind, for gates whose inverse is another fixed gate
_FIXED_INVERSE = {
    GateKind.S: GateKind.SDG,
    GateKind.SDG: GateKind.S,
    GateKind.T: GateKind.TDG,
    GateKind.TDG: GateKind.T,
}

SELF_INVERSE = frozenset({
    GateKind.H, GateKind.X, GateKind.Y, GateKind.Z,
    GateKind.CNOT, GateKind.CZ, GateKind.SWAP, GateKind.CCX, GateKind.MCZ,
    GateKind.BARRIER,
})

NON_UNITARY = frozenset({GateKind.MEASURE, GateKind.BARRIER})

ALL_GATE_NAMES = frozenset(kind.value for kind in GateKind)


@dataclass(frozen=True)
class Gate:
    """
    A gate kind placed on concrete qubits.

    Attributes:
        kind: Which gate
        qubits: Qubit indices, controls first and target last
        params: Angle parameters (radians)
    """

    kind: GateKind
    qubits: Tuple[int, ...]
    params: Tuple[float, ...] = ()

    def __post_init__(self):
        qubits = tuple(int(q) for q in self.qubits)
        params = tuple(float(p) for p in self.params)
        object.__setattr__(self, "qubits", qubits)
        object.__setattr__(self, "params", params)

        n_qubits, n_params = _ARITY[self.kind]
        name = self.kind.value
        if n_qubits is not None and len(qubits) != n_qubits:
            raise ValidationError("qubits", f"{name} takes {n_qubits} qubit(s), got {len(qubits)}")
        if self.kind is GateKind.MCZ and len(qubits) < 2:
            raise ValidationError("qubits", "MCZ needs at least one control and a target")
        if len(params) != n_params:
            raise ValidationError("params", f"{name} takes {n_params} parameter(s), got {len(params)}")
        if any(q < 0 for q in qubits):
            raise ValidationError("qubits", f"{name} has a negative qubit index in {qubits}")
        if len(set(qubits)) != len(qubits):
            raise ValidationError("qubits", "The same qubit cannot occur twice as an argument")
        if any(not np.isfinite(p) for p in params):
            raise ValidationError("params", f"{name} has a non-finite angle in {params}")

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def is_unitary(self) -> bool:
        return self.kind not in NON_UNITARY

    @property
    def target(self) -> Optional[int]:
        """Target qubit (last listed), or None for BARRIER and SWAP."""
        if self.kind in (GateKind.BARRIER, GateKind.SWAP):
            return None
        return self.qubits[-1]

    @property
    def controls(self) -> Tuple[int, ...]:
        if self.kind in (GateKind.CNOT, GateKind.CZ, GateKind.CP, GateKind.CRX,
                         GateKind.CRY, GateKind.CRZ, GateKind.CCX, GateKind.MCZ):
            return self.qubits[:-1]
        return ()

    def max_qubit(self) -> int:
        return max(self.qubits) if self.qubits else -1

    def matrix(self) -> np.ndarray:
        """
        The 2x2 unitary applied to the target qubit (when all controls are 1).

        Raises:
            ValidationError: For SWAP, MEASURE and BARRIER, which have none
        """
        kind = self.kind
        if kind in _FIXED_MATRICES:
            return _FIXED_MATRICES[kind]
        if kind in (GateKind.P, GateKind.CP):
            return P_gate(self.params[0])
        if kind in (GateKind.RX, GateKind.CRX):
            return Rx_gate(self.params[0])
        if kind in (GateKind.RY, GateKind.CRY):
            return Ry_gate(self.params[0])
        if kind in (GateKind.RZ, GateKind.CRZ):
            return Rz_gate(self.params[0])
        if kind is GateKind.U3:
            return U3_gate(*self.params)
        raise ValidationError("gate", f"{kind.value} has no single-target matrix")

    def inverse(self) -> "Gate":
        """
        The gate undoing this one.

        Raises:
            ValidationError: For MEASURE, which is not reversible
        """
        kind = self.kind
        if kind is GateKind.MEASURE:
            raise ValidationError("gate", "MEASURE has no inverse")
        if kind in SELF_INVERSE:
            return self
        if kind in _FIXED_INVERSE:
            return Gate(_FIXED_INVERSE[kind], self.qubits)
        if kind is GateKind.U3:
            theta, phi, lam = self.params
            return Gate(kind, self.qubits, (-theta, -lam, -phi))
        return Gate(kind, self.qubits, tuple(-p for p in self.params))

    def __str__(self) -> str:
        args = ",".join(str(q) for q in self.qubits)
        if self.params:
            angles = ",".join(f"{p:.4g}" for p in self.params)
            return f"{self.kind.value}({angles}) {args}"
        return f"{self.kind.value} {args}"


_FIXED_MATRICES = {
    GateKind.H: H_gate,
    GateKind.X: X_gate,
    GateKind.Y: Y_gate,
    GateKind.Z: Z_gate,
    GateKind.S: S_gate,
    GateKind.SDG: Sdg_gate,
    GateKind.T: T_gate,
    GateKind.TDG: Tdg_gate,
    GateKind.CNOT: X_gate,
    GateKind.CCX: X_gate,
    GateKind.CZ: Z_gate,
    GateKind.MCZ: Z_gate,
}

for _m in list(_FIXED_MATRICES.values()):
    _m.setflags(write=False)


# =============================================================================
# Factories
# =============================================================================

def h(q: int) -> Gate:
    return Gate(GateKind.H, (q,))


def x(q: int) -> Gate:
    return Gate(GateKind.X, (q,))


def y(q: int) -> Gate:
    return Gate(GateKind.Y, (q,))


def z(q: int) -> Gate:
    return Gate(GateKind.Z, (q,))


def s(q: int) -> Gate:
    return Gate(GateKind.S, (q,))


def sdg(q: int) -> Gate:
    return Gate(GateKind.SDG, (q,))


def t(q: int) -> Gate:
    return Gate(GateKind.T, (q,))


def tdg(q: int) -> Gate:
    return Gate(GateKind.TDG, (q,))


def p(q: int, phi: float) -> Gate:
    return Gate(GateKind.P, (q,), (phi,))


def rx(q: int, theta: float) -> Gate:
    return Gate(GateKind.RX, (q,), (theta,))


def ry(q: int, theta: float) -> Gate:
    return Gate(GateKind.RY, (q,), (theta,))


def rz(q: int, theta: float) -> Gate:
    return Gate(GateKind.RZ, (q,), (theta,))


def u3(q: int, theta: float, phi: float, lam: float) -> Gate:
    return Gate(GateKind.U3, (q,), (theta, phi, lam))


def cnot(control: int, target: int) -> Gate:
    return Gate(GateKind.CNOT, (control, target))


cx = cnot


def cz(control: int, target: int) -> Gate:
    return Gate(GateKind.CZ, (control, target))


def cp(control: int, target: int, theta: float) -> Gate:
    return Gate(GateKind.CP, (control, target), (theta,))


def crx(control: int, target: int, theta: float) -> Gate:
    return Gate(GateKind.CRX, (control, target), (theta,))


def cry(control: int, target: int, theta: float) -> Gate:
    return Gate(GateKind.CRY, (control, target), (theta,))


def crz(control: int, target: int, theta: float) -> Gate:
    return Gate(GateKind.CRZ, (control, target), (theta,))


def swap(q1: int, q2: int) -> Gate:
    return Gate(GateKind.SWAP, (q1, q2))


def ccx(control1: int, control2: int, target: int) -> Gate:
    """Toffoli gate: target ^= control1 AND control2."""
    return Gate(GateKind.CCX, (control1, control2, target))


toffoli = ccx


def mcz(controls: Sequence[int], target: int) -> Gate:
    """Phase flip of the state where every control and the target are 1."""
    return Gate(GateKind.MCZ, tuple(controls) + (target,))


def measure(q: int) -> Gate:
    return Gate(GateKind.MEASURE, (q,))


def barrier(*qubits: int) -> Gate:
    return Gate(GateKind.BARRIER, tuple(qubits))
