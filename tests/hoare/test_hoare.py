"""TIR Hoare Logic Engine Tests — HOARE-001 through HOARE-009."""

import pytest

from tir.ast_nodes import (
    And, Assign, Conditional, Implies, IntegerLiteral, Loop, Not, Or, Sequence, Skip,
    Variable, TRUE, FALSE, assign, binop, if_, lit, seq, var, while_,
)
from tir.errors import MalformedNodeError
from tir.evaluator import Store, execute, holds
from tir.hoare import WPCalculator, simplify, wp
from tir.substitution import free_variables, substitute
from tir.types import I32, I64, IntValue


def v(n, ty=I64):
    return IntValue.of(n, ty)


X, Y = var("x"), var("y")


class TestSubstitution:
    """HOARE-001: substitute(node, target, replacement) implements Q[x/e]."""

    def test_var_match(self):
        assert substitute(X, X, lit(5)) == lit(5)

    def test_var_no_match(self):
        assert substitute(Y, X, lit(5)) == Y

    def test_in_binop(self):
        f = binop("iadd", X, lit(1))
        assert str(substitute(f, X, lit(3))) == "(3 iadd 1)"

    def test_all_occurrences(self):
        f = binop("imul", X, binop("iadd", X, Y))
        assert substitute(f, X, lit(2)) == binop("imul", lit(2), binop("iadd", lit(2), Y))

    def test_compound_target(self):
        target = binop("iadd", X, lit(1))
        f = binop("islt", target, binop("iadd", X, lit(2)))
        result = substitute(f, target, Y)
        assert result == binop("islt", Y, binop("iadd", X, lit(2)))

    def test_literal_target(self):
        assert substitute(binop("iadd", X, lit(1)), lit(1), lit(7)) == binop("iadd", X, lit(7))

    def test_literal_target_respects_type(self):
        f = binop("iadd", X, lit(1))
        assert substitute(f, lit(1, I32), lit(7)) == f

    def test_unchanged_is_same_object(self):
        f = binop("iadd", Y, lit(1))
        assert substitute(f, X, lit(5)) is f

    def test_through_connectives(self):
        p = binop("isge", X, lit(0))
        q = binop("isle", X, lit(10))
        f = And(Implies(p, Or(q, Not(p))))
        result = substitute(f, X, lit(5))
        assert "x" not in free_variables(result)
        assert str(result) == "(((5 isge 0) => ((5 isle 10) \\/ !((5 isge 0)))))"

    def test_empty_connectives(self):
        assert substitute(TRUE, X, lit(1)) == TRUE
        assert substitute(FALSE, X, lit(1)) == FALSE

    def test_no_capture_avoidance(self):
        # naive replacement: the replacement may mention the substituted name
        f = binop("isgt", X, lit(0))
        assert substitute(f, X, binop("iadd", X, lit(1))) == binop("isgt", binop("iadd", X, lit(1)), lit(0))

    def test_malformed(self):
        with pytest.raises(MalformedNodeError):
            substitute(Skip(), X, lit(1))


class TestFreeVariables:
    """HOARE-002: free variable collection."""

    def test_expression(self):
        assert free_variables(binop("iadd", X, binop("imul", Y, lit(2)))) == {"x", "y"}

    def test_assertion(self):
        assert free_variables(Implies(X, Not(And(Y, var("z"))))) == {"x", "y", "z"}

    def test_literal(self):
        assert free_variables(lit(4)) == frozenset()


class TestWPRules:
    """HOARE-003: each wp rule produces the exact syntactic shape."""

    post = binop("isgt", X, lit(0))

    def test_skip(self):
        assert wp(Skip(), self.post) == self.post

    def test_assign_is_substitution(self):
        e = binop("iadd", X, lit(1))
        assert wp(Assign("x", e), self.post) == substitute(self.post, Variable("x"), e)
        assert wp(Assign("x", e), self.post) == binop("isgt", e, lit(0))

    def test_assign_other_variable(self):
        assert wp(assign("y", lit(3)), self.post) == self.post

    def test_sequence(self):
        stmt = seq(assign("y", lit(1)), assign("x", Y))
        assert wp(stmt, self.post) == binop("isgt", lit(1), lit(0))

    def test_sequence_backward_order(self):
        s1, s2 = assign("x", binop("iadd", X, lit(1))), assign("x", binop("imul", X, lit(2)))
        expected = wp(s1, wp(s2, self.post))
        assert wp(seq(s1, s2), self.post) == expected
        assert expected == binop("isgt", binop("imul", binop("iadd", X, lit(1)), lit(2)), lit(0))

    def test_conditional_pairing(self):
        g = binop("islt", Y, lit(0))
        then_s, else_s = assign("x", lit(1)), assign("x", lit(2))
        result = wp(Conditional(g, then_s, else_s), self.post)
        assert result == And(
            Implies(Not(g), wp(else_s, self.post)),
            Implies(g, wp(then_s, self.post)),
        )
        assert result.children[0].consequent == binop("isgt", lit(2), lit(0))
        assert result.children[1].consequent == binop("isgt", lit(1), lit(0))

    def test_loop(self):
        g = binop("islt", X, lit(5))
        inv = binop("isle", X, lit(5))
        body = assign("x", binop("iadd", X, lit(1)))
        post = binop("ieq", X, lit(5))
        result = wp(Loop(g, inv, body), post)
        assert result == And(
            inv,
            Implies(And(g, inv), binop("isle", binop("iadd", X, lit(1)), lit(5))),
            Implies(And(Not(g), inv), post),
        )

    def test_loop_never_infers(self):
        loop = while_(binop("islt", X, lit(5)), TRUE, assign("x", binop("iadd", X, lit(1))))
        result = wp(loop, self.post)
        assert result.children[0] == TRUE

    def test_wp_block(self):
        stmts = [assign("y", lit(1)), assign("x", Y)]
        assert WPCalculator().wp_block(stmts, self.post) == wp(seq(*stmts), self.post)

    def test_malformed(self):
        with pytest.raises(MalformedNodeError):
            wp(X, self.post)


class TestWPSoundness:
    """HOARE-004: states satisfying wp(S, Q) reach Q when S runs."""

    def test_abs(self):
        stmt = if_(binop("islt", X, lit(0)),
                   assign("y", binop("isub", lit(0), X)),
                   assign("y", X))
        post = binop("isge", Y, lit(0))
        pre = wp(stmt, post)
        assert "y" not in free_variables(pre)
        for x in range(-5, 6):
            store = Store.of(x=v(x))
            assert holds(store, pre)
            assert holds(execute(store, stmt), post)

    def test_assignment_chain(self):
        stmt = seq(assign("y", binop("imul", X, lit(2))), assign("x", binop("iadd", Y, lit(1))))
        post = binop("ieq", binop("isrem", X, lit(2)), lit(1))
        pre = wp(stmt, post)
        for x in range(-4, 5):
            store = Store.of(x=v(x))
            assert holds(store, pre) == holds(execute(store, stmt), post)

    def test_loop_obligations_at_entry(self):
        loop = while_(binop("islt", X, lit(5)), binop("isle", X, lit(5)),
                      assign("x", binop("iadd", X, lit(1))))
        post = binop("ieq", X, lit(5))
        pre = wp(loop, post)
        for x in range(0, 6):
            store = Store.of(x=v(x))
            assert holds(store, pre)
            assert holds(execute(store, loop), post)
        assert not holds(Store.of(x=v(7)), pre)


class TestSimplify:
    """HOARE-005: optional connective simplification."""

    def test_and_absorbs_true(self):
        assert simplify(And(TRUE, X)) == X

    def test_and_flattens(self):
        a = simplify(And(X, And(Y, var("z"))))
        assert isinstance(a, And) and len(a.children) == 3

    def test_and_short_circuits_false(self):
        assert simplify(And(FALSE, X)) == FALSE

    def test_or_absorbs_false(self):
        assert simplify(Or(FALSE, X)) == X

    def test_or_short_circuits_true(self):
        assert simplify(Or(TRUE, X)) == TRUE

    def test_double_negation(self):
        assert simplify(Not(Not(X))) == X

    def test_not_constants(self):
        assert simplify(Not(TRUE)) == FALSE
        assert simplify(Not(FALSE)) == TRUE

    def test_implies(self):
        assert simplify(Implies(TRUE, X)) == X
        assert simplify(Implies(FALSE, X)) == TRUE
        assert simplify(Implies(X, TRUE)) == TRUE

    def test_simplify_wp_of_trivial_loop(self):
        loop = while_(X, TRUE, Skip())
        assert simplify(wp(loop, TRUE)) == TRUE

    def test_expressions_untouched(self):
        e = binop("iadd", X, lit(0))
        assert simplify(e) is e

    def test_preserves_meaning(self):
        a = And(Implies(TRUE, X), Or(FALSE, Not(Not(Y))))
        for x in (0, 1):
            for y in (0, 1):
                store = {"x": v(x), "y": v(y)}
                assert holds(store, a) == holds(store, simplify(a))


class TestWPDoesNotSimplify:
    """HOARE-006: wp output keeps trivial parts."""

    def test_conditional_with_true_post(self):
        result = wp(if_(X, Skip(), Skip()), TRUE)
        assert result == And(Implies(Not(X), TRUE), Implies(X, TRUE))


class TestLiteralsInAssertions:
    """HOARE-007: expressions are assertions (nonzero = true)."""

    def test_literal_guard(self):
        assert holds({}, IntegerLiteral(v(3)))
        assert not holds({}, lit(0))


class TestLoopObligations:
    """HOARE-008: loop side conditions are recorded by the calculator."""

    def test_recorded(self):
        g = binop("islt", X, lit(5))
        inv = binop("isle", X, lit(5))
        loop = while_(g, inv, assign("x", binop("iadd", X, lit(1))))
        post = binop("ieq", X, lit(5))
        calc = WPCalculator()
        result = calc.wp(loop, post)
        preserve, exit_ = calc.loop_obligations
        assert preserve.kind == "preserve" and exit_.kind == "exit"
        assert preserve.loop is loop
        assert preserve.formula() == result.children[1]
        assert exit_.formula() == result.children[2]

    def test_nested_loops(self):
        inner = while_(Y, TRUE, assign("y", lit(0)))
        outer = while_(X, TRUE, seq(inner, assign("x", lit(0))))
        calc = WPCalculator()
        calc.wp(outer, TRUE)
        assert [ob.loop for ob in calc.loop_obligations] == [inner, inner, outer, outer]

    def test_no_loops(self):
        calc = WPCalculator()
        calc.wp(assign("x", lit(1)), binop("isgt", X, lit(0)))
        assert calc.loop_obligations == []

    def test_reuse_gives_same_wp(self):
        calc = WPCalculator()
        post = binop("isgt", X, lit(0))
        assert calc.wp(assign("x", lit(1)), post) == calc.wp(assign("x", lit(1)), post)


class TestLongSequences:
    """HOARE-009: wp walks long statement sequences without deep recursion."""

    def test_long_right_nested(self):
        stmts = [assign(f"v{i}", lit(i)) for i in range(3000)]
        post = binop("islt", var("v0"), var("v2999"))
        assert wp(seq(*stmts), post) == binop("islt", lit(0), lit(2999))

    def test_long_left_nested(self):
        prog = Skip()
        for i in range(3000):
            prog = Sequence(prog, assign(f"v{i}", lit(i)))
        post = binop("isgt", var("v1500"), X)
        assert wp(prog, post) == binop("isgt", lit(1500), X)

    def test_matches_block(self):
        stmts = [assign("x", binop("iadd", X, lit(1))), assign("y", X), Skip()]
        post = binop("isgt", Y, lit(0))
        assert wp(seq(*stmts), post) == WPCalculator().wp_block(stmts, post)
