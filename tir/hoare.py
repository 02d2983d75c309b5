"""TIR Hoare Logic Engine — Weakest Liberal Precondition Calculus.

Implements Dijkstra's weakest precondition calculus for partial
correctness over TIR statements.

References:
  Dijkstra (1975) "Guarded Commands, Nondeterminacy and Formal Derivation
  of Programs" CACM 18(8), https://doi.org/10.1145/360933.360975

  Hoare (1969) "An Axiomatic Basis for Computer Programming"
  CACM 12(10), https://doi.org/10.1145/363235.363259

Core theory:

  A HOARE TRIPLE {P} S {Q} asserts:
    If precondition P holds before executing statement S,
    and S terminates, then postcondition Q holds afterwards.

  WEAKEST LIBERAL PRECONDITION wp(S, Q) is computed backwards from Q:

    wp(skip, Q)                 = Q
    wp(x := e, Q)               = Q[x/e]
    wp(S1; S2, Q)               = wp(S1, wp(S2, Q))
    wp(if b then T else E, Q)   = (!b => wp(E, Q)) /\\ (b => wp(T, Q))
    wp(while b inv I do B, Q)   = I
                                  /\\ ((b /\\ I) => wp(B, I))
                                  /\\ ((!b /\\ I) => Q)

  The loop invariant I is supplied with the loop; it is never inferred.
  A too-weak invariant yields an unprovable precondition, not an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from tir.ast_nodes import (
    And, Assertion, Assign, Conditional, Implies, Loop, Not, Or, Sequence,
    Skip, Statement, Variable, EXPR_TYPES, flatten_seq,
)
from tir.errors import malformed_node_error
from tir.substitution import substitute

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Weakest Precondition Calculator
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LoopObligation:
    """A loop side condition: antecedent => consequent, in every state.

    ``kind`` is "preserve" (consecution) or "exit".
    """
    kind: str
    loop: Loop
    antecedent: Assertion
    consequent: Assertion

    def formula(self) -> Assertion:
        return Implies(self.antecedent, self.consequent)


class WPCalculator:
    """Computes weakest liberal preconditions for TIR statements.

    The result is built from plain connectives with no simplification,
    so each rule's output is syntactically predictable.

    Consecution and exit conditions of every loop visited are also
    recorded in ``loop_obligations``; they must hold in all states, not
    only in the pre-state, so a prover discharges them separately.
    """

    def __init__(self):
        self.loop_obligations: List[LoopObligation] = []

    def wp(self, stmt: Statement, post: Assertion) -> Assertion:
        """Compute wp(stmt, post)."""
        if isinstance(stmt, Skip):
            return post
        if isinstance(stmt, Assign):
            return self._wp_assign(stmt, post)
        if isinstance(stmt, Sequence):
            return self.wp_block(flatten_seq(stmt), post)
        if isinstance(stmt, Conditional):
            return self._wp_conditional(stmt, post)
        if isinstance(stmt, Loop):
            return self._wp_loop(stmt, post)
        raise malformed_node_error(stmt)

    def wp_block(self, stmts: List[Statement], post: Assertion) -> Assertion:
        """wp(S1; S2; ...; Sn, Q), computed right-to-left."""
        result = post
        for stmt in reversed(stmts):
            result = self.wp(stmt, result)
        return result

    def _wp_assign(self, stmt: Assign, post: Assertion) -> Assertion:
        """wp(x := e, Q) = Q[x/e]"""
        return substitute(post, Variable(stmt.dest), stmt.expr)

    def _wp_conditional(self, stmt: Conditional, post: Assertion) -> Assertion:
        """wp(if b then T else E, Q) = (!b => wp(E,Q)) /\\ (b => wp(T,Q))"""
        wp_then = self.wp(stmt.then_branch, post)
        wp_else = self.wp(stmt.else_branch, post)
        return And(
            Implies(Not(stmt.guard), wp_else),
            Implies(stmt.guard, wp_then),
        )

    def _wp_loop(self, stmt: Loop, post: Assertion) -> Assertion:
        """wp(while b inv I do B, Q) with caller-supplied invariant I.

          1. INITIATION:    I                       (holds on entry)
          2. CONSECUTION:   (b /\\ I) => wp(B, I)   (preserved by the body)
          3. EXIT:          (!b /\\ I) => Q         (invariant + exit => post)
        """
        inv = stmt.invariant
        logger.debug("wp: loop on %s with invariant %s", stmt.guard, inv)
        preserved = Implies(And(stmt.guard, inv), self.wp(stmt.body, inv))
        exits = Implies(And(Not(stmt.guard), inv), post)
        self.loop_obligations.append(
            LoopObligation("preserve", stmt, preserved.antecedent, preserved.consequent))
        self.loop_obligations.append(
            LoopObligation("exit", stmt, exits.antecedent, exits.consequent))
        return And(inv, preserved, exits)


# ---------------------------------------------------------------------------
# Simplification
# ---------------------------------------------------------------------------

def is_true(a: Assertion) -> bool:
    return isinstance(a, And) and not a.children


def is_false(a: Assertion) -> bool:
    return isinstance(a, Or) and not a.children


def simplify(a: Assertion) -> Assertion:
    """Apply connective identities bottom-up.

    Flattens nested And/Or, drops true conjuncts and false disjuncts,
    short-circuits on false conjuncts and true disjuncts, removes double
    negation and trivial implications. Expressions are left untouched.
    """
    if isinstance(a, EXPR_TYPES):
        return a

    if isinstance(a, And):
        flat: List[Assertion] = []
        for c in (simplify(c) for c in a.children):
            if is_true(c):
                continue
            if is_false(c):
                return Or()
            if isinstance(c, And):
                flat.extend(c.children)
            else:
                flat.append(c)
        return flat[0] if len(flat) == 1 else And(*flat)

    if isinstance(a, Or):
        flat = []
        for c in (simplify(c) for c in a.children):
            if is_false(c):
                continue
            if is_true(c):
                return And()
            if isinstance(c, Or):
                flat.extend(c.children)
            else:
                flat.append(c)
        return flat[0] if len(flat) == 1 else Or(*flat)

    if isinstance(a, Not):
        inner = simplify(a.operand)
        if is_true(inner):
            return Or()
        if is_false(inner):
            return And()
        if isinstance(inner, Not):
            return inner.operand
        return Not(inner)

    if isinstance(a, Implies):
        lhs = simplify(a.antecedent)
        rhs = simplify(a.consequent)
        if is_true(lhs):
            return rhs
        if is_false(lhs) or is_true(rhs):
            return And()
        return Implies(lhs, rhs)

    raise malformed_node_error(a)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def wp(stmt: Statement, post: Assertion) -> Assertion:
    """Weakest liberal precondition of ``stmt`` with respect to ``post``."""
    return WPCalculator().wp(stmt, post)
