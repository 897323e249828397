"""
Immutable quantum circuits.

A Circuit is a qubit count plus an ordered tuple of gates. Every builder
operation returns a new Circuit, so a circuit handed to a transpiler,
exporter or backend can never be changed behind the caller's back.

Example:
    >>> bell = empty(2).h(0).cnot(0, 1)
    >>> bell.gate_count
    2
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from . import gates as g
from .errors import CapacityError, ValidationError
from .gates import Gate, GateKind


@dataclass(frozen=True)
class Circuit:
    """
    Ordered gate sequence over a fixed number of qubits.

    Attributes:
        num_qubits: Declared qubit count
        gates: Gates in application order
    """

    num_qubits: int
    gates: Tuple[Gate, ...] = ()

    def __post_init__(self):
        if self.num_qubits < 0:
            raise ValidationError("num_qubits", f"must be non-negative, got {self.num_qubits}")
        gates = tuple(self.gates)
        object.__setattr__(self, "gates", gates)
        for gate in gates:
            _check_indices(gate, self.num_qubits)

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    @property
    def gate_count(self) -> int:
        return len(self.gates)

    @property
    def qubit_count(self) -> int:
        return self.num_qubits

    def count_ops(self) -> dict:
        """Number of gates per gate name."""
        counts: dict = {}
        for gate in self.gates:
            counts[gate.name] = counts.get(gate.name, 0) + 1
        return counts

    def unitary_gates(self) -> Tuple[Gate, ...]:
        return tuple(gate for gate in self.gates if gate.is_unitary)

    def measured_qubits(self) -> Tuple[int, ...]:
        """Qubits with a MEASURE, in order of first measurement."""
        seen: List[int] = []
        for gate in self.gates:
            if gate.kind is GateKind.MEASURE and gate.qubits[0] not in seen:
                seen.append(gate.qubits[0])
        return tuple(seen)

    def depth(self) -> int:
        """Circuit depth counting every gate (barriers synchronize their qubits)."""
        level = [0] * self.num_qubits
        for gate in self.gates:
            qubits = gate.qubits or tuple(range(self.num_qubits))
            if not qubits:
                continue
            layer = max(level[q] for q in qubits)
            if gate.kind is not GateKind.BARRIER:
                layer += 1
            for q in qubits:
                level[q] = layer
        return max(level, default=0)

    def __len__(self) -> int:
        return len(self.gates)

    def __iter__(self):
        return iter(self.gates)

    def __str__(self) -> str:
        lines = [f"Circuit({self.num_qubits} qubits, {self.gate_count} gates)"]
        lines.extend(f"  {gate}" for gate in self.gates)
        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # Functional updates
    # -------------------------------------------------------------------------

    def add_gate(self, gate: Gate) -> "Circuit":
        """
        New circuit with gate appended.

        Raises:
            ValidationError: If the gate references a qubit >= num_qubits
        """
        _check_indices(gate, self.num_qubits)
        return Circuit(self.num_qubits, self.gates + (gate,))

    def add_gates(self, gates: Iterable[Gate]) -> "Circuit":
        gates = tuple(gates)
        for gate in gates:
            _check_indices(gate, self.num_qubits)
        return Circuit(self.num_qubits, self.gates + gates)

    def compose(self, other: "Circuit") -> "Circuit":
        """
        Run self then other.

        Raises:
            ValidationError: If qubit counts differ
        """
        if other.num_qubits != self.num_qubits:
            raise ValidationError(
                "circuit",
                f"cannot compose {self.num_qubits}-qubit and {other.num_qubits}-qubit circuits",
            )
        return Circuit(self.num_qubits, self.gates + other.gates)

    def extend_to(self, num_qubits: int) -> "Circuit":
        """Same gates over a larger register."""
        if num_qubits < self.num_qubits:
            raise ValidationError("num_qubits", f"cannot shrink {self.num_qubits} to {num_qubits}")
        return Circuit(num_qubits, self.gates)

    def inverse(self) -> "Circuit":
        """
        Adjoint circuit: reversed order, each gate inverted.

        Raises:
            ValidationError: If the circuit contains MEASURE
        """
        return Circuit(self.num_qubits, tuple(gate.inverse() for gate in reversed(self.gates)))

    def without_measurements(self) -> "Circuit":
        return Circuit(self.num_qubits, tuple(gt for gt in self.gates if gt.kind is not GateKind.MEASURE))

    def optimize(self) -> "Circuit":
        """
        Peephole pass over adjacent gate pairs.

        Cancels H·H, X·X, Y·Y, Z·Z, S·SDG, T·TDG, CNOT·CNOT, CZ·CZ and SWAP·SWAP
        on identical qubits, and merges consecutive RX/RY/RZ/P on the same qubit.
        Repeats until nothing changes.
        """
        current = list(self.gates)
        while True:
            reduced = _peephole(current)
            if len(reduced) == len(current):
                return Circuit(self.num_qubits, tuple(reduced))
            current = reduced

    # -------------------------------------------------------------------------
    # Fluent helpers
    # -------------------------------------------------------------------------

    def h(self, q: int) -> "Circuit":
        return self.add_gate(g.h(q))

    def x(self, q: int) -> "Circuit":
        return self.add_gate(g.x(q))

    def y(self, q: int) -> "Circuit":
        return self.add_gate(g.y(q))

    def z(self, q: int) -> "Circuit":
        return self.add_gate(g.z(q))

    def s(self, q: int) -> "Circuit":
        return self.add_gate(g.s(q))

    def sdg(self, q: int) -> "Circuit":
        return self.add_gate(g.sdg(q))

    def t(self, q: int) -> "Circuit":
        return self.add_gate(g.t(q))

    def tdg(self, q: int) -> "Circuit":
        return self.add_gate(g.tdg(q))

    def p(self, q: int, phi: float) -> "Circuit":
        return self.add_gate(g.p(q, phi))

    def rx(self, q: int, theta: float) -> "Circuit":
        return self.add_gate(g.rx(q, theta))

    def ry(self, q: int, theta: float) -> "Circuit":
        return self.add_gate(g.ry(q, theta))

    def rz(self, q: int, theta: float) -> "Circuit":
        return self.add_gate(g.rz(q, theta))

    def u3(self, q: int, theta: float, phi: float, lam: float) -> "Circuit":
        return self.add_gate(g.u3(q, theta, phi, lam))

    def cnot(self, control: int, target: int) -> "Circuit":
        return self.add_gate(g.cnot(control, target))

    cx = cnot

    def cz(self, control: int, target: int) -> "Circuit":
        return self.add_gate(g.cz(control, target))

    def cp(self, control: int, target: int, theta: float) -> "Circuit":
        return self.add_gate(g.cp(control, target, theta))

    def crx(self, control: int, target: int, theta: float) -> "Circuit":
        return self.add_gate(g.crx(control, target, theta))

    def cry(self, control: int, target: int, theta: float) -> "Circuit":
        return self.add_gate(g.cry(control, target, theta))

    def crz(self, control: int, target: int, theta: float) -> "Circuit":
        return self.add_gate(g.crz(control, target, theta))

    def swap(self, q1: int, q2: int) -> "Circuit":
        return self.add_gate(g.swap(q1, q2))

    def ccx(self, control1: int, control2: int, target: int) -> "Circuit":
        return self.add_gate(g.ccx(control1, control2, target))

    def mcz(self, controls: Sequence[int], target: int) -> "Circuit":
        return self.add_gate(g.mcz(controls, target))

    def measure(self, q: int) -> "Circuit":
        return self.add_gate(g.measure(q))

    def measure_all(self) -> "Circuit":
        return self.add_gates(g.measure(q) for q in range(self.num_qubits))

    def barrier(self, *qubits: int) -> "Circuit":
        return self.add_gate(g.barrier(*qubits))


def _check_indices(gate: Gate, num_qubits: int) -> None:
    if gate.max_qubit() >= num_qubits:
        raise ValidationError(
            "qubits",
            f"{gate.name} on qubit(s) {list(gate.qubits)} exceeds circuit size {num_qubits}",
        )


_CANCELLING_PAIRS = {
    (GateKind.H, GateKind.H),
    (GateKind.X, GateKind.X),
    (GateKind.Y, GateKind.Y),
    (GateKind.Z, GateKind.Z),
    (GateKind.S, GateKind.SDG),
    (GateKind.SDG, GateKind.S),
    (GateKind.T, GateKind.TDG),
    (GateKind.TDG, GateKind.T),
    (GateKind.CNOT, GateKind.CNOT),
    (GateKind.CZ, GateKind.CZ),
}

_MERGEABLE = {GateKind.RX, GateKind.RY, GateKind.RZ, GateKind.P}


def _peephole(gates: List[Gate]) -> List[Gate]:
    out: List[Gate] = []
    for gate in gates:
        prev = out[-1] if out else None
        if prev is not None:
            pair = (prev.kind, gate.kind)
            if pair in _CANCELLING_PAIRS and prev.qubits == gate.qubits:
                out.pop()
                continue
            if pair == (GateKind.SWAP, GateKind.SWAP) and set(prev.qubits) == set(gate.qubits):
                out.pop()
                continue
            if prev.kind is gate.kind and gate.kind in _MERGEABLE and prev.qubits == gate.qubits:
                out[-1] = Gate(gate.kind, gate.qubits, (prev.params[0] + gate.params[0],))
                continue
        out.append(gate)
    return out


# =============================================================================
# Module-level builder functions
# =============================================================================

def empty(num_qubits: int) -> Circuit:
    """Circuit with no gates."""
    return Circuit(num_qubits)


def add_gate(gate: Gate, circuit: Circuit) -> Circuit:
    return circuit.add_gate(gate)


def add_gates(gates: Iterable[Gate], circuit: Circuit) -> Circuit:
    return circuit.add_gates(gates)


def compose(first: Circuit, second: Circuit) -> Circuit:
    return first.compose(second)


def gate_count(circuit: Circuit) -> int:
    return circuit.gate_count


def qubit_count(circuit: Circuit) -> int:
    return circuit.num_qubits


def validate(circuit: Circuit, max_qubits: Optional[int] = None) -> Circuit:
    """
    Check a circuit against a qubit ceiling and its own declared size.

    Raises:
        CapacityError: If num_qubits exceeds max_qubits
        ValidationError: If a gate references a qubit >= num_qubits
    """
    if max_qubits is not None and circuit.num_qubits > max_qubits:
        raise CapacityError("num_qubits", circuit.num_qubits, max_qubits)
    for gate in circuit.gates:
        _check_indices(gate, circuit.num_qubits)
    return circuit
