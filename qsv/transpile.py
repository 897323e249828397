"""
Gate decomposition for backends with a restricted gate set.

decompose() rewrites every gate the target backend does not list as
supported into a sequence of simpler gates, repeating until everything is
supported. Rewrites are exact except U3 -> RZ·RY·RZ and P -> RZ, which
agree up to a global phase.
"""

import logging
from typing import Callable, Dict, FrozenSet, Iterable, List

import numpy as np

from . import gates as g
from .circuit import Circuit
from .errors import NotImplementedFeatureError
from .gates import Gate, GateKind

logger = logging.getLogger(__name__)

# Nested rewrites deeper than this are treated as having no solution
MAX_DEPTH = 8


# =============================================================================
# Rewrite rules
# =============================================================================

def toffoli_decomposed(q1: int, q2: int, q3: int) -> List[Gate]:
    """
    Toffoli gate using H, T, T† and CNOT gates.

    This decomposition uses only gates from a universal gate set.
    """
    return [
        g.h(q3),
        g.cnot(q2, q3),
        g.tdg(q3),
        g.cnot(q1, q3),
        g.t(q3),
        g.cnot(q2, q3),
        g.tdg(q3),
        g.cnot(q1, q3),
        g.t(q2),
        g.t(q3),
        g.h(q3),
        g.cnot(q1, q2),
        g.t(q1),
        g.tdg(q2),
        g.cnot(q1, q2),
    ]


def cp_decomposed(control: int, target: int, theta: float) -> List[Gate]:
    """
    Controlled-phase gate from P and CNOT.

    CP(θ) = P(θ/2) on target, CNOT, P(-θ/2) on target, CNOT, P(θ/2) on control
    """
    return [
        g.p(target, theta / 2),
        g.cnot(control, target),
        g.p(target, -theta / 2),
        g.cnot(control, target),
        g.p(control, theta / 2),
    ]


def _controlled_rotation(rot: Callable[[int, float], Gate], control: int, target: int,
                         theta: float) -> List[Gate]:
    # Valid for RY and RZ: X·R(θ)·X = R(-θ)
    return [
        rot(target, theta / 2),
        g.cnot(control, target),
        rot(target, -theta / 2),
        g.cnot(control, target),
    ]


def _rule_ccx(gate: Gate) -> List[Gate]:
    return toffoli_decomposed(*gate.qubits)


def _rule_cp(gate: Gate) -> List[Gate]:
    c, t = gate.qubits
    return cp_decomposed(c, t, gate.params[0])


def _rule_swap(gate: Gate) -> List[Gate]:
    a, b = gate.qubits
    return [g.cnot(a, b), g.cnot(b, a), g.cnot(a, b)]


def _rule_cz(gate: Gate) -> List[Gate]:
    c, t = gate.qubits
    return [g.h(t), g.cnot(c, t), g.h(t)]


def _rule_cnot(gate: Gate) -> List[Gate]:
    c, t = gate.qubits
    return [g.h(t), g.cz(c, t), g.h(t)]


def _rule_mcz(gate: Gate) -> List[Gate]:
    *controls, t = gate.qubits
    if len(controls) == 1:
        return [g.cz(controls[0], t)]
    if len(controls) == 2:
        return [g.h(t), g.ccx(controls[0], controls[1], t), g.h(t)]
    raise NotImplementedFeatureError(
        f"MCZ with {len(controls)} controls",
        "Run on a backend with native MCZ support or rewrite the oracle with ancilla qubits",
    )


def _rule_u3(gate: Gate) -> List[Gate]:
    (q,) = gate.qubits
    theta, phi, lam = gate.params
    return [g.rz(q, lam), g.ry(q, theta), g.rz(q, phi)]


def _rule_crx(gate: Gate) -> List[Gate]:
    c, t = gate.qubits
    return [g.h(t)] + _controlled_rotation(g.rz, c, t, gate.params[0]) + [g.h(t)]


def _rule_cry(gate: Gate) -> List[Gate]:
    c, t = gate.qubits
    return _controlled_rotation(g.ry, c, t, gate.params[0])


def _rule_crz(gate: Gate) -> List[Gate]:
    c, t = gate.qubits
    return _controlled_rotation(g.rz, c, t, gate.params[0])


def _phase_rule(angle: float) -> Callable[[Gate], List[Gate]]:
    def rule(gate: Gate) -> List[Gate]:
        return [g.p(gate.qubits[0], angle)]
    return rule


def _rule_p(gate: Gate) -> List[Gate]:
    return [g.rz(gate.qubits[0], gate.params[0])]


_RULES: Dict[GateKind, Callable[[Gate], List[Gate]]] = {
    GateKind.CCX: _rule_ccx,
    GateKind.CP: _rule_cp,
    GateKind.SWAP: _rule_swap,
    GateKind.CZ: _rule_cz,
    GateKind.CNOT: _rule_cnot,
    GateKind.MCZ: _rule_mcz,
    GateKind.U3: _rule_u3,
    GateKind.CRX: _rule_crx,
    GateKind.CRY: _rule_cry,
    GateKind.CRZ: _rule_crz,
    GateKind.SDG: _phase_rule(-np.pi / 2),
    GateKind.TDG: _phase_rule(-np.pi / 4),
    GateKind.S: _phase_rule(np.pi / 2),
    GateKind.T: _phase_rule(np.pi / 4),
    GateKind.Z: _phase_rule(np.pi),
    GateKind.P: _rule_p,
}


# =============================================================================
# Public API
# =============================================================================

def _expand(gate: Gate, supported: FrozenSet[str], depth: int) -> List[Gate]:
    if gate.name in supported or not gate.is_unitary:
        return [gate]
    rule = _RULES.get(gate.kind)
    if rule is None or depth >= MAX_DEPTH:
        raise NotImplementedFeatureError(
            f"{gate.name} on a backend supporting {sorted(supported)}",
            "Choose a backend that supports this gate",
        )
    out: List[Gate] = []
    for sub in rule(gate):
        out.extend(_expand(sub, supported, depth + 1))
    return out


def decompose_gate(gate: Gate, supported_gates: Iterable[str]) -> List[Gate]:
    """
    Rewrite a single gate into supported gates.

    MEASURE and BARRIER are never rewritten.

    Raises:
        NotImplementedFeatureError: If no chain of rules reaches the supported set
    """
    return _expand(gate, frozenset(supported_gates), 0)


def decompose(circuit: Circuit, supported_gates: Iterable[str]) -> Circuit:
    """
    Rewrite a circuit so that it only uses supported gates.

    Args:
        circuit: Input circuit (left untouched)
        supported_gates: Gate names the backend accepts (e.g. {"H", "CNOT", "T", "TDG"})

    Returns:
        Equivalent circuit over the same qubits

    Raises:
        NotImplementedFeatureError: If some gate cannot be expressed
    """
    supported = frozenset(supported_gates)
    out: List[Gate] = []
    for gate in circuit.gates:
        out.extend(_expand(gate, supported, 0))
    if len(out) != circuit.gate_count:
        logger.debug("Decomposed %d gates into %d", circuit.gate_count, len(out))
    return Circuit(circuit.num_qubits, tuple(out))


def needs_decomposition(circuit: Circuit, supported_gates: Iterable[str]) -> bool:
    supported = frozenset(supported_gates)
    return any(gate.is_unitary and gate.name not in supported for gate in circuit.gates)
