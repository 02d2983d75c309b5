"""Syntactic substitution: node[target := replacement].

This is the core operation of the assignment axiom:
  wp(x := e, Q) = Q[x/e]

Every sub-term structurally equal to ``target`` is replaced, in expressions
and through every assertion connective. Matching is whole-term only.
There is no capture avoidance: ``replacement`` must not mention a variable
that is rebound inside the term.
"""

from __future__ import annotations

from typing import FrozenSet, Union

from tir.ast_nodes import (
    And, Assertion, BinaryOp, Expr, Implies, IntegerLiteral, Not, Or, Variable,
)
from tir.errors import malformed_node_error

Node = Union[Expr, Assertion]


def substitute(node: Node, target: Expr, replacement: Expr) -> Node:
    """Replace every occurrence of ``target`` in ``node`` with ``replacement``."""
    if node == target:
        return replacement

    if isinstance(node, (Variable, IntegerLiteral)):
        return node

    if isinstance(node, BinaryOp):
        left = substitute(node.left, target, replacement)
        right = substitute(node.right, target, replacement)
        if left is node.left and right is node.right:
            return node
        return BinaryOp(node.op, left, right)

    if isinstance(node, And):
        return And(*(substitute(c, target, replacement) for c in node.children))
    if isinstance(node, Or):
        return Or(*(substitute(c, target, replacement) for c in node.children))
    if isinstance(node, Not):
        return Not(substitute(node.operand, target, replacement))
    if isinstance(node, Implies):
        return Implies(
            substitute(node.antecedent, target, replacement),
            substitute(node.consequent, target, replacement),
        )

    raise malformed_node_error(node)


def free_variables(node: Node) -> FrozenSet[str]:
    """Names of all variables occurring in ``node``."""
    if isinstance(node, Variable):
        return frozenset({node.name})
    if isinstance(node, IntegerLiteral):
        return frozenset()
    if isinstance(node, BinaryOp):
        return free_variables(node.left) | free_variables(node.right)
    if isinstance(node, (And, Or)):
        result: FrozenSet[str] = frozenset()
        for c in node.children:
            result |= free_variables(c)
        return result
    if isinstance(node, Not):
        return free_variables(node.operand)
    if isinstance(node, Implies):
        return free_variables(node.antecedent) | free_variables(node.consequent)
    raise malformed_node_error(node)
