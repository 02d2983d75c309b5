"""Structured error objects for the TIR semantic core.

Every error is machine-readable — no raw strings. Each error carries the
kind, a human message, and enough details to identify the offending node
(operator tag, variable name, shift operand) for the tool driving
evaluation or verification.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    MISMATCH = "mismatch"
    UNBOUND_VARIABLE = "unbound_variable"
    DOMAIN = "domain"
    DIVISION_BY_ZERO = "division_by_zero"
    UNKNOWN_OPERATOR = "unknown_operator"
    UNSUPPORTED_TYPE = "unsupported_type"
    ARITY = "arity"
    ITERATION_LIMIT = "iteration_limit"
    MALFORMED_NODE = "malformed_node"
    LINK = "link"


class TirError(Exception):
    """Base class for every error raised by the core."""

    kind: ErrorKind = ErrorKind.MALFORMED_NODE

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(str(self))

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.details:
            d["details"] = self.details
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __str__(self) -> str:
        return f"[{self.kind.value}]: {self.message}"


class MismatchError(TirError):
    """Operand signedness or width differ."""
    kind = ErrorKind.MISMATCH


class UnboundVariableError(TirError):
    kind = ErrorKind.UNBOUND_VARIABLE


class DomainError(TirError):
    """An operator received an operand outside its domain (shift amount)."""
    kind = ErrorKind.DOMAIN


class DivisionByZeroError(TirError):
    kind = ErrorKind.DIVISION_BY_ZERO


class UnknownOperatorError(TirError):
    kind = ErrorKind.UNKNOWN_OPERATOR


class UnsupportedTypeError(TirError):
    kind = ErrorKind.UNSUPPORTED_TYPE


class ArityError(TirError):
    kind = ErrorKind.ARITY


class IterationLimitError(TirError):
    kind = ErrorKind.ITERATION_LIMIT


class MalformedNodeError(TirError):
    kind = ErrorKind.MALFORMED_NODE


class LinkError(TirError):
    """Compilation, loading or symbol resolution of native code failed."""
    kind = ErrorKind.LINK


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

def mismatch_error(op: str, left_type: str, right_type: str) -> MismatchError:
    return MismatchError(
        f"Operand types differ for '{op}': {left_type} vs {right_type}",
        details={
            "operator": op,
            "left_type": left_type,
            "right_type": right_type,
        },
    )


def unbound_variable_error(name: str) -> UnboundVariableError:
    return UnboundVariableError(
        f"Unbound variable '{name}'",
        details={"name": name},
    )


def domain_error(op: str, shift_amount: int) -> DomainError:
    return DomainError(
        f"Shift amount {shift_amount} out of range for '{op}'",
        details={"operator": op, "shift_amount": shift_amount},
    )


def division_by_zero_error(op: str, dividend: int) -> DivisionByZeroError:
    return DivisionByZeroError(
        f"Division by zero in '{op}'",
        details={"operator": op, "dividend": dividend},
    )


def unknown_operator_error(op: Any) -> UnknownOperatorError:
    return UnknownOperatorError(
        f"Unknown operator tag '{op}'",
        details={"operator": str(op)},
    )


def unsupported_type_error(type_name: str, reason: str = "") -> UnsupportedTypeError:
    msg = f"Unsupported type '{type_name}'"
    if reason:
        msg += f": {reason}"
    return UnsupportedTypeError(msg, details={"type": type_name})


def arity_error(function: str, expected: int, actual: int) -> ArityError:
    return ArityError(
        f"'{function}' expects {expected} argument(s), got {actual}",
        details={"function": function, "expected": expected, "actual": actual},
    )


def malformed_node_error(node: Any) -> MalformedNodeError:
    return MalformedNodeError(
        f"Unexpected node of type {type(node).__name__}",
        details={"node_type": type(node).__name__},
    )
