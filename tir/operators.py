"""TIR Operator Table — fixed-width binary operation semantics.

Each operator tag maps to a pure function over the raw integer payloads of
two operands with equal signedness and width. The result keeps the operand
type; comparisons produce 1 or 0.

Arithmetic (iadd/isub/imul) is exact: no truncation happens at this layer.
Unsigned division and remainder reduce both operands modulo 2^width first.
Signed division truncates toward zero.

Shift amounts must be non-negative. Left shifts are also limited to
MAX_SHIFT bits: payloads are unbounded, so ``1 << 2**62`` has no
representation. Arithmetic right shifts accept any non-negative amount.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Union

from tir.errors import (
    division_by_zero_error, domain_error, mismatch_error, unknown_operator_error,
)
from tir.types import IntValue

MAX_SHIFT = 256


class BinOpKind(Enum):
    # Arithmetic
    IADD = "iadd"
    ISUB = "isub"
    IMUL = "imul"
    IUDIV = "iudiv"
    IUREM = "iurem"
    ISDIV = "isdiv"
    ISREM = "isrem"

    # Shifts
    ISHL = "ishl"
    IASHR = "iashr"

    # Bitwise
    IOR = "ior"
    IAND = "iand"
    IXOR = "ixor"

    # Comparison
    IEQ = "ieq"
    INE = "ine"
    IUGT = "iugt"
    IUGE = "iuge"
    IULT = "iult"
    IULE = "iule"
    ISGT = "isgt"
    ISGE = "isge"
    ISLT = "islt"
    ISLE = "isle"

    @property
    def is_comparison(self) -> bool:
        return self in COMPARISONS

    def __str__(self) -> str:
        return self.value


COMPARISONS = frozenset({
    BinOpKind.IEQ, BinOpKind.INE,
    BinOpKind.IUGT, BinOpKind.IUGE, BinOpKind.IULT, BinOpKind.IULE,
    BinOpKind.ISGT, BinOpKind.ISGE, BinOpKind.ISLT, BinOpKind.ISLE,
})

UNSIGNED_COMPARISONS = frozenset({
    BinOpKind.IUGT, BinOpKind.IUGE, BinOpKind.IULT, BinOpKind.IULE,
})


class UnsignedCompare(Enum):
    """Modulus used to reduce operands of unsigned comparisons.

    FIXED64 reduces modulo 2^64 for every width (reference behaviour).
    WIDTH reduces modulo 2^width of the operands.
    """
    FIXED64 = "fixed64"
    WIDTH = "width"


def to_binop_kind(op: Union[BinOpKind, str]) -> BinOpKind:
    if isinstance(op, BinOpKind):
        return op
    try:
        return BinOpKind(op)
    except ValueError:
        raise unknown_operator_error(op) from None


# ---------------------------------------------------------------------------
# Raw semantics
# ---------------------------------------------------------------------------

def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _udiv(a: int, b: int, width: int) -> int:
    m = 1 << width
    a, b = a % m, b % m
    if b == 0:
        raise division_by_zero_error("iudiv", a)
    return (a // b) % m


def _urem(a: int, b: int, width: int) -> int:
    m = 1 << width
    a, b = a % m, b % m
    if b == 0:
        raise division_by_zero_error("iurem", a)
    return (a % b) % m


def _sdiv(a: int, b: int, width: int) -> int:
    if b == 0:
        raise division_by_zero_error("isdiv", a)
    return _trunc_div(a, b)


def _srem(a: int, b: int, width: int) -> int:
    if b == 0:
        raise division_by_zero_error("isrem", a)
    return a - b * _trunc_div(a, b)


def _shl(a: int, b: int, width: int) -> int:
    if b < 0 or b > MAX_SHIFT:
        raise domain_error("ishl", b)
    return a << b


def _ashr(a: int, b: int, width: int) -> int:
    if b < 0:
        raise domain_error("iashr", b)
    return a >> b


RawOp = Callable[[int, int, int], int]

_ARITHMETIC: dict[BinOpKind, RawOp] = {
    BinOpKind.IADD: lambda a, b, w: a + b,
    BinOpKind.ISUB: lambda a, b, w: a - b,
    BinOpKind.IMUL: lambda a, b, w: a * b,
    BinOpKind.IUDIV: _udiv,
    BinOpKind.IUREM: _urem,
    BinOpKind.ISDIV: _sdiv,
    BinOpKind.ISREM: _srem,
    BinOpKind.ISHL: _shl,
    BinOpKind.IASHR: _ashr,
    BinOpKind.IOR: lambda a, b, w: a | b,
    BinOpKind.IAND: lambda a, b, w: a & b,
    BinOpKind.IXOR: lambda a, b, w: a ^ b,
}

_RELATIONS: dict[BinOpKind, Callable[[int, int], bool]] = {
    BinOpKind.IEQ: lambda a, b: a == b,
    BinOpKind.INE: lambda a, b: a != b,
    BinOpKind.IUGT: lambda a, b: a > b,
    BinOpKind.IUGE: lambda a, b: a >= b,
    BinOpKind.IULT: lambda a, b: a < b,
    BinOpKind.IULE: lambda a, b: a <= b,
    BinOpKind.ISGT: lambda a, b: a > b,
    BinOpKind.ISGE: lambda a, b: a >= b,
    BinOpKind.ISLT: lambda a, b: a < b,
    BinOpKind.ISLE: lambda a, b: a <= b,
}


class OperatorTable:
    """Maps operator tags to width-and-sign-aware binary functions."""

    def __init__(self, unsigned_compare: UnsignedCompare = UnsignedCompare.FIXED64):
        self.unsigned_compare = unsigned_compare

    @classmethod
    def from_config(cls, config) -> OperatorTable:
        return cls(UnsignedCompare(config.unsigned_compare))

    def unsigned_modulus(self, width: int) -> int:
        if self.unsigned_compare == UnsignedCompare.FIXED64:
            return 1 << 64
        return 1 << width

    def apply(self, op: Union[BinOpKind, str], left: IntValue, right: IntValue) -> IntValue:
        kind = to_binop_kind(op)
        if left.signed != right.signed or left.width != right.width:
            raise mismatch_error(kind.value, left.type.name, right.type.name)

        a, b = left.value, right.value
        if kind in _ARITHMETIC:
            result = _ARITHMETIC[kind](a, b, left.width)
        else:
            if kind in UNSIGNED_COMPARISONS:
                m = self.unsigned_modulus(left.width)
                a, b = a % m, b % m
            result = 1 if _RELATIONS[kind](a, b) else 0
        return IntValue(left.signed, left.width, result)


DEFAULT_TABLE = OperatorTable()


def apply_binop(op: Union[BinOpKind, str], left: IntValue, right: IntValue) -> IntValue:
    """Apply ``op`` with the default (reference) operator table."""
    return DEFAULT_TABLE.apply(op, left, right)
