"""Verification-condition discharge with Z3.

Given {P} S {Q}, we compute wp(S, Q) and check P => wp(S, Q).
The implication is valid iff  P /\\ !wp(S, Q)  is UNSAT under the range
constraints of every free variable's declared type. The consecution and
exit conditions of each loop are checked as separate VCs over all states.

Expressions are encoded as unbounded Z3 integers with the same meaning as
the concrete operator table:

  iadd/isub/imul       exact + - *
  iudiv/iurem          operands reduced mod 2^width, result reduced mod 2^width
  isdiv/isrem          quotient truncated toward zero, remainder a - b*q
  ishl                 a * 2^k, one case per feasible amount k
  iashr                a div 2^k (floor), one case per feasible amount k
  ior/iand/ixor        two's-complement bit-vectors wide enough for the
                       operands' magnitude bound, so nothing wraps
  comparisons          If(cond, 1, 0); unsigned ones reduce both operands
                       modulo the table's unsigned-compare modulus

Magnitude bounds come from the declared variable ranges and are propagated
through every operator (see ``Z3Translator.bound``).

Division by zero and out-of-range shift amounts are left unconstrained
(uninterpreted in Z3), which matches the liberal reading: a run that traps
does not terminate normally.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from tir.ast_nodes import (
    And, Assertion, BinaryOp, Expr, Implies, IntegerLiteral, Not, Or,
    Statement, Variable,
)
from tir.errors import malformed_node_error, mismatch_error
from tir.hoare import WPCalculator
from tir.operators import (
    BinOpKind, DEFAULT_TABLE, MAX_SHIFT, OperatorTable, UNSIGNED_COMPARISONS,
)
from tir.substitution import free_variables
from tir.types import I64, IntType

try:
    import z3
    HAS_Z3 = True
except ImportError:
    z3 = None
    HAS_Z3 = False

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10000

_BITWISE = frozenset({BinOpKind.IOR, BinOpKind.IAND, BinOpKind.IXOR})


class ProofStatus(Enum):
    VERIFIED = "verified"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class VerificationCondition:
    """A proof obligation: precondition => obligation."""
    name: str
    precondition: Assertion
    obligation: Assertion

    def formula(self) -> Assertion:
        return Implies(self.precondition, self.obligation)

    def __str__(self) -> str:
        return f"{self.name}: {self.precondition} => {self.obligation}"


@dataclass
class VerificationResult:
    status: ProofStatus
    vc: VerificationCondition
    counterexample: Dict[str, int] = field(default_factory=dict)

    @property
    def verified(self) -> bool:
        return self.status == ProofStatus.VERIFIED

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.vc.name,
            "status": self.status.value,
            "vc": str(self.vc.formula()),
        }
        if self.counterexample:
            d["counterexample"] = self.counterexample
        return d


# ---------------------------------------------------------------------------
# Translation to Z3
# ---------------------------------------------------------------------------

class Z3Translator:
    """Translates TIR expressions and assertions into Z3 terms."""

    def __init__(self, var_types: Optional[Mapping[str, IntType]] = None,
                 table: Optional[OperatorTable] = None):
        if not HAS_Z3:
            raise RuntimeError("z3-solver is required for verification. Install with: pip install z3-solver")
        self.var_types = dict(var_types or {})
        self.table = table or DEFAULT_TABLE
        self.z3_vars: Dict[str, Any] = {}
        self._bounds: Dict[BinaryOp, int] = {}
        self._undefined_fns: Dict[BinOpKind, Any] = {}

    def type_of(self, expr: Expr) -> IntType:
        if isinstance(expr, Variable):
            return self.var_types.get(expr.name, I64)
        if isinstance(expr, IntegerLiteral):
            return expr.value.type
        if isinstance(expr, BinaryOp):
            left = self.type_of(expr.left)
            right = self.type_of(expr.right)
            if left != right:
                raise mismatch_error(expr.op.value, left.name, right.name)
            return left
        raise malformed_node_error(expr)

    def variable(self, name: str) -> Any:
        if name not in self.z3_vars:
            self.z3_vars[name] = z3.Int(name)
        return self.z3_vars[name]

    def domain(self, names) -> Any:
        """Range constraints for the given variables."""
        parts = []
        for name in sorted(names):
            ty = self.var_types.get(name, I64)
            v = self.variable(name)
            parts.append(z3.And(v >= ty.min_value, v <= ty.max_value))
        return z3.And(*parts) if parts else z3.BoolVal(True)

    def bound(self, e: Expr) -> int:
        """Upper bound on |e| in every well-typed state where ``e`` is defined."""
        if isinstance(e, Variable):
            ty = self.var_types.get(e.name, I64)
            return max(-ty.min_value, ty.max_value)
        if isinstance(e, IntegerLiteral):
            return abs(e.value.value)
        if isinstance(e, BinaryOp):
            if e not in self._bounds:
                self._bounds[e] = self._binop_bound(e)
            return self._bounds[e]
        raise malformed_node_error(e)

    def _binop_bound(self, e: BinaryOp) -> int:
        op = e.op
        a, b = self.bound(e.left), self.bound(e.right)
        if op in (BinOpKind.IADD, BinOpKind.ISUB):
            return a + b
        if op == BinOpKind.IMUL:
            return a * b
        if op in (BinOpKind.IUDIV, BinOpKind.IUREM):
            return (1 << self.type_of(e).width) - 1
        if op in (BinOpKind.ISDIV, BinOpKind.IASHR):
            return a
        if op == BinOpKind.ISREM:
            return min(a, b)
        if op == BinOpKind.ISHL:
            return a << min(b, MAX_SHIFT)
        if op in _BITWISE:
            # both operands lie in [-2^n, 2^n), and so does the result
            return 1 << max(a, b).bit_length()
        # comparisons
        return 1

    def expr(self, e: Expr) -> Any:
        if isinstance(e, Variable):
            return self.variable(e.name)
        if isinstance(e, IntegerLiteral):
            return z3.IntVal(e.value.value)
        if isinstance(e, BinaryOp):
            self.type_of(e)
            return self._binop(e, self.expr(e.left), self.expr(e.right))
        raise malformed_node_error(e)

    def _binop(self, e: BinaryOp, a: Any, b: Any) -> Any:
        op = e.op
        if op == BinOpKind.IADD:
            return a + b
        if op == BinOpKind.ISUB:
            return a - b
        if op == BinOpKind.IMUL:
            return a * b

        if op in (BinOpKind.IUDIV, BinOpKind.IUREM):
            m = 1 << self.type_of(e).width
            ua, ub = a % m, b % m
            return ((ua / ub) if op == BinOpKind.IUDIV else (ua % ub)) % m

        if op in (BinOpKind.ISDIV, BinOpKind.ISREM):
            q = z3.If(a >= 0,
                      z3.If(b >= 0, a / b, -(a / -b)),
                      z3.If(b >= 0, -((-a) / b), (-a) / (-b)))
            return q if op == BinOpKind.ISDIV else a - b * q

        if op == BinOpKind.ISHL:
            return self._shift_left(e, a, b)
        if op == BinOpKind.IASHR:
            return self._shift_right(e, a, b)
        if op in _BITWISE:
            return self._bitwise(e, a, b)

        if op in UNSIGNED_COMPARISONS:
            m = self.table.unsigned_modulus(self.type_of(e).width)
            a, b = a % m, b % m

        relations = {
            BinOpKind.IEQ: lambda l, r: l == r,
            BinOpKind.INE: lambda l, r: l != r,
            BinOpKind.IUGT: lambda l, r: l > r,
            BinOpKind.IUGE: lambda l, r: l >= r,
            BinOpKind.IULT: lambda l, r: l < r,
            BinOpKind.IULE: lambda l, r: l <= r,
            BinOpKind.ISGT: lambda l, r: l > r,
            BinOpKind.ISGE: lambda l, r: l >= r,
            BinOpKind.ISLT: lambda l, r: l < r,
            BinOpKind.ISLE: lambda l, r: l <= r,
        }
        return z3.If(relations[op](a, b), z3.IntVal(1), z3.IntVal(0))

    def _undefined(self, op: BinOpKind, a: Any, b: Any) -> Any:
        """Unconstrained result of ``op`` where the concrete semantics traps."""
        if op not in self._undefined_fns:
            self._undefined_fns[op] = z3.Function(
                f"{op.value}.undefined", z3.IntSort(), z3.IntSort(), z3.IntSort())
        return self._undefined_fns[op](a, b)

    def _shift_left(self, e: BinaryOp, a: Any, b: Any) -> Any:
        top = min(self.bound(e.right), MAX_SHIFT)
        result = self._undefined(e.op, a, b)
        for k in range(top, -1, -1):
            result = z3.If(b == k, a * (1 << k), result)
        return result

    def _shift_right(self, e: BinaryOp, a: Any, b: Any) -> Any:
        # beyond the operand's bit length only the sign remains
        top = min(self.bound(e.right), self.bound(e.left).bit_length())
        result = z3.If(b < 0, self._undefined(e.op, a, b),
                       z3.If(a >= 0, z3.IntVal(0), z3.IntVal(-1)))
        for k in range(top, -1, -1):
            result = z3.If(b == k, a / (1 << k), result)
        return result

    def _bitwise(self, e: BinaryOp, a: Any, b: Any) -> Any:
        width = max(self.bound(e.left), self.bound(e.right)).bit_length() + 1
        la = z3.Int2BV(a, width)
        lb = z3.Int2BV(b, width)
        if e.op == BinOpKind.IOR:
            r = la | lb
        elif e.op == BinOpKind.IAND:
            r = la & lb
        else:
            r = la ^ lb
        return z3.BV2Int(r, is_signed=True)

    def assertion(self, a: Assertion) -> Any:
        if isinstance(a, And):
            parts = [self.assertion(c) for c in a.children]
            return z3.And(*parts) if parts else z3.BoolVal(True)
        if isinstance(a, Or):
            parts = [self.assertion(c) for c in a.children]
            return z3.Or(*parts) if parts else z3.BoolVal(False)
        if isinstance(a, Not):
            return z3.Not(self.assertion(a.operand))
        if isinstance(a, Implies):
            return z3.Implies(self.assertion(a.antecedent), self.assertion(a.consequent))
        return self.expr(a) != 0


# ---------------------------------------------------------------------------
# Prover
# ---------------------------------------------------------------------------

class Prover:
    """Generates and discharges verification conditions."""

    def __init__(self, table: Optional[OperatorTable] = None,
                 timeout_ms: int = DEFAULT_TIMEOUT_MS):
        if not HAS_Z3:
            raise RuntimeError("z3-solver is required for verification. Install with: pip install z3-solver")
        self.table = table or DEFAULT_TABLE
        self.timeout_ms = timeout_ms

    @classmethod
    def from_config(cls, config) -> Prover:
        return cls(OperatorTable.from_config(config), config.solver_timeout_ms)

    def vc_for(self, pre: Assertion, stmt: Statement, post: Assertion,
               name: str = "triple") -> VerificationCondition:
        return VerificationCondition(name, pre, WPCalculator().wp(stmt, post))

    def generate_vcs(self, pre: Assertion, stmt: Statement, post: Assertion,
                     name: str = "triple") -> List[VerificationCondition]:
        """VCs for {pre} stmt {post}.

        The first VC is pre => wp(stmt, post). Each loop then contributes
        its consecution and exit conditions as separate VCs over all states.
        """
        calc = WPCalculator()
        vcs = [VerificationCondition(name, pre, calc.wp(stmt, post))]
        for i, ob in enumerate(calc.loop_obligations):
            vcs.append(VerificationCondition(
                f"{name}.loop{i // 2}.{ob.kind}", ob.antecedent, ob.consequent))
        return vcs

    def verify(self, pre: Assertion, stmt: Statement, post: Assertion,
               var_types: Optional[Mapping[str, IntType]] = None,
               name: str = "triple") -> List[VerificationResult]:
        return [self.discharge(vc, var_types) for vc in self.generate_vcs(pre, stmt, post, name)]

    def check_valid(self, assertion: Assertion,
                    var_types: Optional[Mapping[str, IntType]] = None,
                    name: str = "assertion") -> VerificationResult:
        """Check that ``assertion`` holds in every well-typed state."""
        return self.discharge(VerificationCondition(name, And(), assertion), var_types)

    def discharge(self, vc: VerificationCondition,
                  var_types: Optional[Mapping[str, IntType]] = None) -> VerificationResult:
        """Check: (domain /\\ precondition /\\ !obligation) is UNSAT."""
        translator = Z3Translator(var_types, self.table)
        formula = vc.formula()
        names = free_variables(formula)

        solver = z3.Solver()
        solver.set("timeout", self.timeout_ms)
        solver.add(translator.domain(names))
        solver.add(z3.Not(translator.assertion(formula)))

        result = solver.check()
        logger.debug("vc %s: solver answered %s", vc.name, result)

        if result == z3.unsat:
            return VerificationResult(ProofStatus.VERIFIED, vc)
        if result == z3.sat:
            model = solver.model()
            failing = {
                name: model.eval(translator.variable(name), model_completion=True).as_long()
                for name in sorted(names)
            }
            return VerificationResult(ProofStatus.FAILED, vc, failing)
        return VerificationResult(ProofStatus.UNKNOWN, vc)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def verify_triple(pre: Assertion, stmt: Statement, post: Assertion,
                  var_types: Optional[Mapping[str, IntType]] = None,
                  timeout_ms: Optional[int] = None,
                  table: Optional[OperatorTable] = None) -> VerificationResult:
    """Verify the Hoare triple {pre} stmt {post} (partial correctness).

    1. Computes wp(stmt, post)
    2. Generates VCs: pre => wp(stmt, post), plus loop side conditions
    3. Discharges every VC to Z3
    4. Returns the first refuted VC (with counterexample), else the first
       undecided one, else the entry VC's result
    """
    prover = Prover(table, timeout_ms or DEFAULT_TIMEOUT_MS)
    results = prover.verify(pre, stmt, post, var_types)
    for status in (ProofStatus.FAILED, ProofStatus.UNKNOWN):
        for result in results:
            if result.status == status:
                return result
    return results[0]


def check_valid(assertion: Assertion,
                var_types: Optional[Mapping[str, IntType]] = None,
                timeout_ms: Optional[int] = None) -> VerificationResult:
    return Prover(timeout_ms=timeout_ms or DEFAULT_TIMEOUT_MS).check_valid(assertion, var_types)
