"""
OpenQASM 2.0 import and export.

Covers the gate subset of this package:

    OPENQASM 2.0;
    include "qelib1.inc";
    qreg q[2];
    creg c[2];
    h q[0];
    cx q[0],q[1];
    rz(pi/4) q[1];
    measure q[0] -> c[0];

Angles are written with 10 decimals. On import, parameters may use pi
arithmetic ("pi/2", "-3*pi/4", "2*pi/2**3"); legacy names u1, cu1, u, u2,
sx, cnot and toffoli are accepted.
"""

import ast
import logging
import math
import operator
import re
from typing import Dict, List, Tuple

from . import gates as g
from .circuit import Circuit
from .errors import NotImplementedFeatureError, ValidationError
from .gates import Gate, GateKind

logger = logging.getLogger(__name__)

ANGLE_DECIMALS = 10

_EXPORT_NAMES = {
    GateKind.H: "h", GateKind.X: "x", GateKind.Y: "y", GateKind.Z: "z",
    GateKind.S: "s", GateKind.SDG: "sdg", GateKind.T: "t", GateKind.TDG: "tdg",
    GateKind.P: "p", GateKind.RX: "rx", GateKind.RY: "ry", GateKind.RZ: "rz",
    GateKind.U3: "u3",
    GateKind.CNOT: "cx", GateKind.CZ: "cz", GateKind.CP: "cp",
    GateKind.CRX: "crx", GateKind.CRY: "cry", GateKind.CRZ: "crz",
    GateKind.SWAP: "swap", GateKind.CCX: "ccx",
}


# =============================================================================
# Export
# =============================================================================

def _format_angle(value: float) -> str:
    return f"{value:.{ANGLE_DECIMALS}f}"


def _format_gate(gate: Gate) -> str:
    kind = gate.kind
    if kind is GateKind.MEASURE:
        q = gate.qubits[0]
        return f"measure q[{q}] -> c[{q}];"
    if kind is GateKind.BARRIER:
        if not gate.qubits:
            return "barrier q;"
        return "barrier " + ",".join(f"q[{q}]" for q in gate.qubits) + ";"
    if kind is GateKind.MCZ:
        raise NotImplementedFeatureError(
            "MCZ in OpenQASM 2.0 export",
            "Transpile with qsv.transpile.decompose before exporting",
        )
    name = _EXPORT_NAMES[kind]
    if gate.params:
        name += "(" + ",".join(_format_angle(p) for p in gate.params) + ")"
    return f"{name} " + ",".join(f"q[{q}]" for q in gate.qubits) + ";"


def to_qasm(circuit: Circuit) -> str:
    """
    Serialize a circuit as OpenQASM 2.0.

    Raises:
        NotImplementedFeatureError: If the circuit contains MCZ
    """
    n = circuit.num_qubits
    lines = [
        "OPENQASM 2.0;",
        'include "qelib1.inc";',
        f"qreg q[{n}];",
        f"creg c[{n}];",
    ]
    lines.extend(_format_gate(gate) for gate in circuit.gates)
    return "\n".join(lines) + "\n"


def save_qasm(circuit: Circuit, path) -> None:
    """Write to_qasm(circuit) to a file."""
    text = to_qasm(circuit)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    logger.info("Saved %d-qubit circuit to %s", circuit.num_qubits, path)


# =============================================================================
# Angle expressions
# =============================================================================

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
}

_UNARY_OPS = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}


def _eval_node(node) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) \
            and not isinstance(node.value, bool):
        return float(node.value)
    if isinstance(node, ast.Name) and node.id == "pi":
        return math.pi
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        return _BINARY_OPS[type(node.op)](_eval_node(node.left), _eval_node(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    raise ValueError(f"unsupported expression element {type(node).__name__}")


def eval_angle(text: str) -> float:
    """
    Evaluate a QASM parameter expression (numbers, pi, + - * / and ^ or **).

    Raises:
        ValidationError: If the expression is malformed or uses anything else
    """
    source = text.strip().replace("^", "**")
    try:
        value = _eval_node(ast.parse(source, mode="eval"))
    except (SyntaxError, ValueError, ZeroDivisionError, OverflowError) as e:
        raise ValidationError("parameter", f"cannot evaluate {text!r}: {e}") from e
    if not math.isfinite(value):
        raise ValidationError("parameter", f"{text!r} is not finite")
    return value


# =============================================================================
# Import
# =============================================================================

_STATEMENT = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*(?:\((.*)\))?\s*(.*)$", re.DOTALL)
_REGISTER = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*\[\s*(\d+)\s*\]$")
_OPERAND = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)(?:\s*\[\s*(\d+)\s*\])?$")


def _strip_comments(text: str) -> str:
    text = re.sub(r"/\*.*?\*/", " ", text, flags=re.DOTALL)
    return re.sub(r"//[^\n]*", "", text)


def _split_params(raw: str) -> List[float]:
    if raw is None or not raw.strip():
        return []
    return [eval_angle(part) for part in raw.split(",")]


class _Parser:
    def __init__(self):
        self.qregs: Dict[str, Tuple[int, int]] = {}
        self.cregs: Dict[str, int] = {}
        self.num_qubits = 0
        self.gates: List[Gate] = []

    def operand(self, text: str) -> List[int]:
        """Resolve q[i] to a global qubit index, or a bare register to all its qubits."""
        m = _OPERAND.match(text.strip())
        if not m:
            raise ValidationError("qasm", f"malformed operand {text!r}")
        name, index = m.group(1), m.group(2)
        if name not in self.qregs:
            raise ValidationError("qasm", f"unknown quantum register {name!r}")
        offset, size = self.qregs[name]
        if index is None:
            return list(range(offset, offset + size))
        i = int(index)
        if i >= size:
            raise ValidationError("qasm", f"qubit {name}[{i}] out of range for register of size {size}")
        return [offset + i]

    def single_operands(self, args: str, count: int, name: str) -> List[int]:
        parts = [p for p in args.split(",") if p.strip()]
        if len(parts) != count:
            raise ValidationError("qasm", f"{name} expects {count} operand(s), got {len(parts)}")
        qubits = []
        for part in parts:
            resolved = self.operand(part)
            if len(resolved) != 1:
                raise ValidationError("qasm", f"{name} needs indexed operands, got {part.strip()!r}")
            qubits.extend(resolved)
        return qubits

    def statement(self, stmt: str) -> None:
        if stmt.startswith("OPENQASM"):
            version = stmt.split(None, 1)[1].strip() if " " in stmt else ""
            if not version.startswith("2"):
                raise ValidationError("qasm", f"unsupported OpenQASM version {version!r}")
            return
        if stmt.startswith("include"):
            return
        if stmt.startswith("qreg") or stmt.startswith("creg"):
            self.register(stmt)
            return
        if stmt.startswith("measure"):
            self.measure(stmt)
            return
        m = _STATEMENT.match(stmt)
        if not m:
            raise ValidationError("qasm", f"cannot parse statement {stmt!r}")
        name, params, args = m.group(1), _split_params(m.group(2)), m.group(3)
        if not self.qregs:
            raise ValidationError("qasm", "gate used before any qreg declaration")
        if name == "barrier":
            parts = [p.strip() for p in args.split(",") if p.strip()]
            if len(self.qregs) == 1 and parts == list(self.qregs):
                # Whole single register, the form an empty barrier exports to
                self.gates.append(g.barrier())
                return
            qubits: List[int] = []
            for part in args.split(","):
                if part.strip():
                    qubits.extend(self.operand(part))
            self.gates.append(g.barrier(*qubits))
            return
        self.gates.append(self.gate(name, params, args))

    def register(self, stmt: str) -> None:
        kind, rest = stmt.split(None, 1)
        m = _REGISTER.match(rest.strip())
        if not m:
            raise ValidationError("qasm", f"malformed register declaration {stmt!r}")
        name, size = m.group(1), int(m.group(2))
        if kind == "qreg":
            if name in self.qregs:
                raise ValidationError("qasm", f"quantum register {name!r} declared twice")
            self.qregs[name] = (self.num_qubits, size)
            self.num_qubits += size
        else:
            self.cregs[name] = size

    def measure(self, stmt: str) -> None:
        body = stmt[len("measure"):]
        if "->" not in body:
            raise ValidationError("qasm", f"measure without target bit: {stmt!r}")
        source = body.split("->", 1)[0]
        for q in self.operand(source):
            self.gates.append(g.measure(q))

    def gate(self, name: str, params: List[float], args: str) -> Gate:
        lowered = name.lower()
        if lowered in _NO_PARAM_1Q:
            self.expect_params(name, params, 0)
            (q,) = self.single_operands(args, 1, name)
            return _NO_PARAM_1Q[lowered](q)
        if lowered in _ONE_PARAM_1Q:
            self.expect_params(name, params, 1)
            (q,) = self.single_operands(args, 1, name)
            return _ONE_PARAM_1Q[lowered](q, params[0])
        if lowered in ("u3", "u"):
            self.expect_params(name, params, 3)
            (q,) = self.single_operands(args, 1, name)
            return g.u3(q, *params)
        if lowered == "u2":
            self.expect_params(name, params, 2)
            (q,) = self.single_operands(args, 1, name)
            return g.u3(q, math.pi / 2, params[0], params[1])
        if lowered in _NO_PARAM_2Q:
            self.expect_params(name, params, 0)
            a, b = self.single_operands(args, 2, name)
            return _NO_PARAM_2Q[lowered](a, b)
        if lowered in _ONE_PARAM_2Q:
            self.expect_params(name, params, 1)
            a, b = self.single_operands(args, 2, name)
            return _ONE_PARAM_2Q[lowered](a, b, params[0])
        if lowered in ("ccx", "toffoli"):
            self.expect_params(name, params, 0)
            a, b, c = self.single_operands(args, 3, name)
            return g.ccx(a, b, c)
        raise ValidationError("qasm", f"unknown gate {name!r}")

    @staticmethod
    def expect_params(name: str, params: List[float], count: int) -> None:
        if len(params) != count:
            raise ValidationError("qasm", f"{name} expects {count} parameter(s), got {len(params)}")


_NO_PARAM_1Q = {
    "h": g.h, "x": g.x, "y": g.y, "z": g.z,
    "s": g.s, "sdg": g.sdg, "t": g.t, "tdg": g.tdg,
    "sx": lambda q: g.rx(q, math.pi / 2),
}

_ONE_PARAM_1Q = {
    "p": g.p, "u1": g.p, "rx": g.rx, "ry": g.ry, "rz": g.rz,
}

_NO_PARAM_2Q = {
    "cx": g.cnot, "cnot": g.cnot, "cz": g.cz, "swap": g.swap,
}

_ONE_PARAM_2Q = {
    "cp": g.cp, "cu1": g.cp, "crx": g.crx, "cry": g.cry, "crz": g.crz,
}


def from_qasm(text: str) -> Circuit:
    """
    Parse an OpenQASM 2.0 program into a Circuit.

    Multiple qreg declarations are laid out one after another in
    declaration order.

    Raises:
        ValidationError: On unknown gates, bad operands or a missing qreg
    """
    parser = _Parser()
    for raw in _strip_comments(text).split(";"):
        stmt = " ".join(raw.split())
        if stmt:
            parser.statement(stmt)
    if not parser.qregs:
        raise ValidationError("qasm", "no qreg declaration found")
    logger.debug("Parsed %d gates on %d qubits", len(parser.gates), parser.num_qubits)
    return Circuit(parser.num_qubits, tuple(parser.gates))


def load_qasm(path) -> Circuit:
    """Read and parse an OpenQASM 2.0 file."""
    with open(path, "r", encoding="utf-8") as f:
        return from_qasm(f.read())
