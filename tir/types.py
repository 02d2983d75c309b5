"""TIR Type System.

Fixed-width integer types: i8, i16, i32, i64 and their unsigned variants.
Floating-point types f32/f64 exist only at the linking boundary.
Integer values carry their own type and an arbitrary-precision payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from tir.errors import unsupported_type_error

INT_WIDTHS = (8, 16, 32, 64)
FLOAT_WIDTHS = (32, 64)


# ---------------------------------------------------------------------------
# Type Representations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IntType:
    signed: bool = True
    width: int = 64

    def __post_init__(self) -> None:
        if self.width not in INT_WIDTHS:
            prefix = "i" if self.signed else "u"
            raise unsupported_type_error(
                f"{prefix}{self.width}",
                f"integer width must be one of {INT_WIDTHS}",
            )

    @property
    def name(self) -> str:
        return f"{'i' if self.signed else 'u'}{self.width}"

    @property
    def modulus(self) -> int:
        return 1 << self.width

    @property
    def min_value(self) -> int:
        if self.signed:
            return -(1 << (self.width - 1))
        return 0

    @property
    def max_value(self) -> int:
        if self.signed:
            return (1 << (self.width - 1)) - 1
        return (1 << self.width) - 1

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class FloatType:
    width: int = 64

    def __post_init__(self) -> None:
        if self.width not in FLOAT_WIDTHS:
            raise unsupported_type_error(
                f"f{self.width}",
                f"float width must be one of {FLOAT_WIDTHS}",
            )

    @property
    def name(self) -> str:
        return f"f{self.width}"

    def __str__(self) -> str:
        return self.name


IRType = Union[IntType, FloatType]


I8 = IntType(True, 8)
I16 = IntType(True, 16)
I32 = IntType(True, 32)
I64 = IntType(True, 64)
U8 = IntType(False, 8)
U16 = IntType(False, 16)
U32 = IntType(False, 32)
U64 = IntType(False, 64)
F32 = FloatType(32)
F64 = FloatType(64)

_BUILTIN_TYPES: dict[str, IRType] = {
    t.name: t for t in (I8, I16, I32, I64, U8, U16, U32, U64, F32, F64)
}


def parse_type(name: str) -> IRType:
    """Resolve a type name such as ``"u32"`` or ``"f64"``."""
    try:
        return _BUILTIN_TYPES[name]
    except KeyError:
        raise unsupported_type_error(name) from None


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IntValue:
    """An integer tagged with its signedness and width.

    The payload is never truncated on construction; wraparound is applied
    only by the operators that define it.
    """
    signed: bool
    width: int
    value: int

    def __post_init__(self) -> None:
        # validates the width
        IntType(self.signed, self.width)

    @classmethod
    def of(cls, value: int, ty: IntType = I64) -> IntValue:
        return cls(ty.signed, ty.width, value)

    @property
    def type(self) -> IntType:
        return IntType(self.signed, self.width)

    def is_true(self) -> bool:
        return self.value != 0

    def __str__(self) -> str:
        return f"{self.value}:{self.type.name}"
