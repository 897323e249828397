"""
Error taxonomy and result values.

Inside the package, failures are raised as subclasses of QuantumError.
At the backend boundary they are caught and handed back as Result values,
so callers such as retry loops or cost estimators can branch on the error
kind without wrapping every call in try/except.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


# =============================================================================
# Error hierarchy
# =============================================================================

class QuantumError(Exception):
    """Base class for every error raised by the simulator."""

    category = "Other"

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(QuantumError, ValueError):
    """
    Caller supplied an out-of-contract input.

    Examples: non-positive shot count, qubit index out of range, amplitude
    list whose length is not a power of two.
    """

    category = "Validation"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Validation failed for '{field}': {reason}")


class CapacityError(ValidationError):
    """Requested size exceeds a hard simulation ceiling."""

    category = "Capacity"

    def __init__(self, field: str, requested: int, maximum: int):
        self.requested = requested
        self.maximum = maximum
        super().__init__(
            field,
            f"requested {requested} qubits but at most {maximum} are supported",
        )


class DomainError(QuantumError, ArithmeticError):
    """Mathematically undefined operation (e.g. normalizing a zero vector)."""

    category = "Domain"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"'{operation}' is undefined: {reason}")


class NotImplementedFeatureError(QuantumError, NotImplementedError):
    """Recognized but unsupported representation or operation."""

    category = "NotImplemented"

    def __init__(self, feature: str, hint: Optional[str] = None):
        self.feature = feature
        self.hint = hint
        text = f"'{feature}' is not yet implemented"
        if hint:
            text = f"{text}. {hint}"
        super().__init__(text)


class CancellationError(QuantumError):
    """An in-flight execution was cooperatively cancelled."""

    category = "Cancelled"

    def __init__(self, operation: str = "execution"):
        self.operation = operation
        super().__init__(f"'{operation}' was cancelled")


class BackendError(QuantumError):
    """Unexpected failure inside a backend, wrapped at the boundary."""

    category = "Backend"

    def __init__(self, backend: str, reason: str):
        self.backend = backend
        self.reason = reason
        super().__init__(f"Backend '{backend}' error: {reason}")


# =============================================================================
# Result values
# =============================================================================

_MISSING: Any = object()


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Either a value or a QuantumError.

    Build with Result.ok(value) or Result.err(error); never both.
    """

    _value: Any = _MISSING
    _error: Optional[QuantumError] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(_value=value)

    @classmethod
    def err(cls, error: QuantumError) -> "Result[T]":
        if not isinstance(error, QuantumError):
            raise TypeError(f"Result.err expects a QuantumError, got {type(error).__name__}")
        return cls(_error=error)

    @property
    def is_ok(self) -> bool:
        return self._error is None

    @property
    def is_err(self) -> bool:
        return self._error is not None

    @property
    def value(self) -> T:
        """The wrapped value; raises the wrapped error for an Err result."""
        return self.unwrap()

    @property
    def error(self) -> Optional[QuantumError]:
        return self._error

    def unwrap(self) -> T:
        if self._error is not None:
            raise self._error
        return self._value

    def unwrap_or(self, default: T) -> T:
        return default if self._error is not None else self._value

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        if self._error is not None:
            return Result.err(self._error)
        return capture(fn, self._value)

    def and_then(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        if self._error is not None:
            return Result.err(self._error)
        return fn(self._value)

    def __repr__(self) -> str:
        if self._error is not None:
            return f"Err({self._error!r})"
        return f"Ok({self._value!r})"


def capture(fn: Callable[..., T], *args, source: str = "qsv", **kwargs) -> Result[T]:
    """
    Call fn and fold its outcome into a Result.

    QuantumErrors pass through unchanged, floating point traps become
    DomainError, and anything else is logged and wrapped in BackendError.
    """
    try:
        return Result.ok(fn(*args, **kwargs))
    except QuantumError as exc:
        logger.debug("%s returned %s: %s", source, exc.category, exc)
        return Result.err(exc)
    except FloatingPointError as exc:
        return Result.err(DomainError(source, str(exc)))
    except Exception as exc:
        logger.exception("Unexpected failure in %s", source)
        return Result.err(BackendError(source, f"{type(exc).__name__}: {exc}"))
