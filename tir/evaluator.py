"""TIR Operational Semantics — expression and statement evaluation.

  evaluate(store, e)  : Expr      -> IntValue
  execute(store, s)   : Statement -> Store

The store is an immutable mapping; every assignment yields a new store.
Loops and statement sequences are executed iteratively, so long-running
loops and long programs do not grow the Python call stack. The loop
budget counter is threaded through execution rather than stored on the
interpreter, so one interpreter can be shared between threads.
Termination is not guaranteed: a guard that never becomes zero keeps
the loop running unless an iteration budget is set.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Iterator, Optional, Sequence as SequenceT, Tuple

from tir.ast_nodes import (
    And, Assertion, Assign, BinaryOp, Conditional, Expr, Function, Implies,
    IntegerLiteral, Loop, Not, Or, Skip, Statement, Variable, flatten_seq,
)
from tir.errors import (
    IterationLimitError, arity_error, malformed_node_error, mismatch_error,
    unbound_variable_error, unsupported_type_error,
)
from tir.operators import DEFAULT_TABLE, OperatorTable
from tir.types import IntType, IntValue

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class Store(Mapping):
    """Immutable variable store: name -> IntValue."""

    __slots__ = ("_bindings",)

    def __init__(self, bindings: Optional[Mapping] = None):
        self._bindings: dict[str, IntValue] = dict(bindings or {})

    @classmethod
    def of(cls, **bindings: IntValue) -> Store:
        return cls(bindings)

    def bind(self, name: str, value: IntValue) -> Store:
        """Return a new store with ``name`` bound to ``value``."""
        updated = dict(self._bindings)
        updated[name] = value
        return Store(updated)

    def __getitem__(self, name: str) -> IntValue:
        return self._bindings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        items = ", ".join(f"{k}={v}" for k, v in self._bindings.items())
        return f"Store({items})"


# ---------------------------------------------------------------------------
# Interpreter
# ---------------------------------------------------------------------------

class Interpreter:
    """Executes TIR statements against a store.

    ``max_iterations`` bounds the total number of loop iterations a single
    ``execute`` call may perform; ``None`` means unbounded.
    """

    def __init__(self, table: Optional[OperatorTable] = None,
                 max_iterations: Optional[int] = None):
        self.table = table or DEFAULT_TABLE
        self.max_iterations = max_iterations

    @classmethod
    def from_config(cls, config) -> Interpreter:
        return cls(
            table=OperatorTable.from_config(config),
            max_iterations=config.max_iterations or None,
        )

    # -- expressions --------------------------------------------------------

    def evaluate(self, store: Mapping, expr: Expr) -> IntValue:
        if isinstance(expr, Variable):
            try:
                return store[expr.name]
            except KeyError:
                raise unbound_variable_error(expr.name) from None
        if isinstance(expr, IntegerLiteral):
            return expr.value
        if isinstance(expr, BinaryOp):
            left = self.evaluate(store, expr.left)
            right = self.evaluate(store, expr.right)
            return self.table.apply(expr.op, left, right)
        raise malformed_node_error(expr)

    # -- statements ---------------------------------------------------------

    def execute(self, store: Mapping, stmt: Statement) -> Store:
        if not isinstance(store, Store):
            store = Store(store)
        store, _ = self._exec(store, stmt, 0)
        return store

    def _exec(self, store: Store, stmt: Statement, iterations: int) -> Tuple[Store, int]:
        """Run ``stmt``; ``iterations`` counts loop iterations spent so far."""
        for s in flatten_seq(stmt):
            if isinstance(s, Skip):
                continue
            if isinstance(s, Assign):
                store = store.bind(s.dest, self.evaluate(store, s.expr))
            elif isinstance(s, Conditional):
                branch = s.then_branch if self.evaluate(store, s.guard).is_true() else s.else_branch
                store, iterations = self._exec(store, branch, iterations)
            elif isinstance(s, Loop):
                store, iterations = self._exec_loop(store, s, iterations)
            else:
                raise malformed_node_error(s)
        return store, iterations

    def _exec_loop(self, store: Store, loop: Loop, iterations: int) -> Tuple[Store, int]:
        while self.evaluate(store, loop.guard).is_true():
            iterations += 1
            if self.max_iterations is not None and iterations > self.max_iterations:
                raise IterationLimitError(
                    f"Loop iteration budget of {self.max_iterations} exceeded",
                    details={"max_iterations": self.max_iterations, "guard": str(loop.guard)},
                )
            store, iterations = self._exec(store, loop.body, iterations)
        logger.debug("loop %s exited after %d iteration(s) in total", loop.guard, iterations)
        return store, iterations

    # -- functions ----------------------------------------------------------

    def call(self, function: Function, args: SequenceT[IntValue]) -> IntValue:
        """Run ``function`` on positional ``args`` and return its result."""
        if len(args) != len(function.params):
            raise arity_error(function.name, len(function.params), len(args))

        store = Store()
        for param, arg in zip(function.params, args):
            if not isinstance(param.type, IntType):
                raise unsupported_type_error(param.type.name, "interpreter supports integer parameters only")
            if arg.type != param.type:
                raise mismatch_error(f"call {function.name}", param.type.name, arg.type.name)
            store = store.bind(param.name, arg)

        final = self.execute(store, function.body)
        try:
            return final[function.result]
        except KeyError:
            raise unbound_variable_error(function.result) from None

    # -- assertions ---------------------------------------------------------

    def holds(self, store: Mapping, assertion: Assertion) -> bool:
        """Evaluate an assertion in a concrete state."""
        if isinstance(assertion, And):
            return all(self.holds(store, c) for c in assertion.children)
        if isinstance(assertion, Or):
            return any(self.holds(store, c) for c in assertion.children)
        if isinstance(assertion, Not):
            return not self.holds(store, assertion.operand)
        if isinstance(assertion, Implies):
            return (not self.holds(store, assertion.antecedent)
                    or self.holds(store, assertion.consequent))
        return self.evaluate(store, assertion).is_true()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def evaluate(store: Mapping, expr: Expr) -> IntValue:
    """Evaluate ``expr`` under ``store`` with the reference operator table."""
    return Interpreter().evaluate(store, expr)


def execute(store: Mapping, stmt: Statement) -> Store:
    """Execute ``stmt`` starting from ``store``; returns the final store."""
    return Interpreter().execute(store, stmt)


def holds(store: Mapping, assertion: Assertion) -> bool:
    return Interpreter().holds(store, assertion)
