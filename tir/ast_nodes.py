"""TIR AST Node definitions.

Expressions: variables, integer literals, binary operations.
Statements: skip, assignment, sequencing, conditional, annotated loop.
Assertions: logical connectives over expressions used as guards.

All nodes are immutable and compared structurally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple, Union

from tir.operators import BinOpKind, to_binop_kind
from tir.types import I64, IntType, IntValue, IRType


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Variable:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class IntegerLiteral:
    value: IntValue

    def __str__(self) -> str:
        return str(self.value.value)


@dataclass(frozen=True)
class BinaryOp:
    op: BinOpKind
    left: Expr
    right: Expr

    def __str__(self) -> str:
        return f"({self.left} {self.op.value} {self.right})"


Expr = Union[Variable, IntegerLiteral, BinaryOp]
EXPR_TYPES = (Variable, IntegerLiteral, BinaryOp)


# ---------------------------------------------------------------------------
# Assertions
# ---------------------------------------------------------------------------

@dataclass(frozen=True, init=False)
class And:
    """Conjunction. ``And()`` is true."""
    children: Tuple[Assertion, ...]

    def __init__(self, *children: Assertion):
        object.__setattr__(self, "children", tuple(children))

    def __str__(self) -> str:
        if not self.children:
            return "true"
        return "(" + " /\\ ".join(str(c) for c in self.children) + ")"


@dataclass(frozen=True, init=False)
class Or:
    """Disjunction. ``Or()`` is false."""
    children: Tuple[Assertion, ...]

    def __init__(self, *children: Assertion):
        object.__setattr__(self, "children", tuple(children))

    def __str__(self) -> str:
        if not self.children:
            return "false"
        return "(" + " \\/ ".join(str(c) for c in self.children) + ")"


@dataclass(frozen=True)
class Not:
    operand: Assertion

    def __str__(self) -> str:
        return f"!({self.operand})"


@dataclass(frozen=True)
class Implies:
    antecedent: Assertion
    consequent: Assertion

    def __str__(self) -> str:
        return f"({self.antecedent} => {self.consequent})"


Assertion = Union[And, Or, Not, Implies, Variable, IntegerLiteral, BinaryOp]
CONNECTIVE_TYPES = (And, Or, Not, Implies)

TRUE = And()
FALSE = Or()


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Skip:
    def __str__(self) -> str:
        return "skip"


@dataclass(frozen=True)
class Assign:
    dest: str
    expr: Expr

    def __str__(self) -> str:
        return f"{self.dest} := {self.expr}"


@dataclass(frozen=True)
class Sequence:
    first: Statement
    second: Statement

    def __str__(self) -> str:
        return f"{self.first}; {self.second}"


@dataclass(frozen=True)
class Conditional:
    guard: Expr
    then_branch: Statement
    else_branch: Statement

    def __str__(self) -> str:
        return f"if {self.guard} then {{ {self.then_branch} }} else {{ {self.else_branch} }}"


@dataclass(frozen=True)
class Loop:
    """``while guard do body``, annotated with its loop invariant.

    The invariant is only used by the axiomatic semantics; execution ignores it.
    """
    guard: Expr
    invariant: Assertion
    body: Statement

    def __str__(self) -> str:
        return f"while {self.guard} invariant {self.invariant} do {{ {self.body} }}"


Statement = Union[Skip, Assign, Sequence, Conditional, Loop]


# ---------------------------------------------------------------------------
# Functions (linking boundary)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Param:
    name: str
    type: IRType

    def __str__(self) -> str:
        return f"{self.name}: {self.type}"


@dataclass(frozen=True)
class Function:
    """An IR function: the value of ``result`` after running ``body``.

    ``locals`` declares the type of every non-parameter variable the body
    assigns; native lowering needs it, the interpreter does not.
    """
    name: str
    params: Tuple[Param, ...]
    return_type: IRType
    body: Statement
    result: str = "result"
    locals: Tuple[Param, ...] = field(default=())

    def signature(self) -> str:
        params = ", ".join(str(p) for p in self.params)
        return f"{self.name}({params}) -> {self.return_type}"


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def var(name: str) -> Variable:
    return Variable(name)


def lit(value: int, ty: IntType = I64) -> IntegerLiteral:
    return IntegerLiteral(IntValue.of(value, ty))


def binop(op: Union[BinOpKind, str], left: Expr, right: Expr) -> BinaryOp:
    return BinaryOp(to_binop_kind(op), left, right)


def assign(dest: str, expr: Expr) -> Assign:
    return Assign(dest, expr)


def seq(*stmts: Statement) -> Statement:
    """Right-nested sequence of ``stmts``; ``seq()`` is ``Skip()``."""
    if not stmts:
        return Skip()
    result = stmts[-1]
    for stmt in reversed(stmts[:-1]):
        result = Sequence(stmt, result)
    return result


def flatten_seq(stmt: Statement) -> List[Statement]:
    """The non-sequence statements of ``stmt`` in execution order.

    Walks nested ``Sequence`` nodes with an explicit stack, so long
    programs do not exhaust the Python call stack.
    """
    result: List[Statement] = []
    pending = [stmt]
    while pending:
        s = pending.pop()
        if isinstance(s, Sequence):
            pending.append(s.second)
            pending.append(s.first)
        else:
            result.append(s)
    return result


def if_(guard: Expr, then_branch: Statement, else_branch: Statement = Skip()) -> Conditional:
    return Conditional(guard, then_branch, else_branch)


def while_(guard: Expr, invariant: Assertion, body: Statement) -> Loop:
    return Loop(guard, invariant, body)
