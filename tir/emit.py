"""TIR native lowering — IR functions to LLVM IR via llvmlite.

Each variable gets a stack slot in the entry block; conditionals and loops
become basic blocks. Guards branch on ``value != 0``. Comparisons are
zero-extended back to the operand width so they yield 1/0 integers, as in
the operator table.

Arithmetic here is machine arithmetic: results wrap at the operand width.
Division by zero and negative shift amounts are left to the target
(trap or poison), unlike the interpreter which raises.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Tuple

from tir.ast_nodes import (
    Assign, BinaryOp, Conditional, Expr, Function, IntegerLiteral, Loop,
    Sequence, Skip, Statement, Variable, flatten_seq,
)
from tir.errors import (
    malformed_node_error, mismatch_error, unbound_variable_error,
    unsupported_type_error,
)
from tir.operators import BinOpKind
from tir.types import FloatType, IntType, IRType

try:
    from llvmlite import ir as llvm_ir
    from llvmlite import binding as llvm_binding
    HAS_LLVMLITE = True
except ImportError:
    HAS_LLVMLITE = False

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# LLVM type mapping
# ---------------------------------------------------------------------------

def llvm_type_for(ty: IRType) -> Any:
    """Map a TIR type to its llvmlite IR type."""
    if isinstance(ty, IntType):
        return llvm_ir.IntType(ty.width)
    if isinstance(ty, FloatType):
        return llvm_ir.FloatType() if ty.width == 32 else llvm_ir.DoubleType()
    raise unsupported_type_error(str(ty))


def _const_int(value: int, ty: IntType) -> Any:
    # two's-complement bit pattern at the literal's width
    v = value % ty.modulus
    if v >= 1 << (ty.width - 1):
        v -= ty.modulus
    return llvm_ir.Constant(llvm_ir.IntType(ty.width), v)


_ARITH = {
    BinOpKind.IADD: "add",
    BinOpKind.ISUB: "sub",
    BinOpKind.IMUL: "mul",
    BinOpKind.IUDIV: "udiv",
    BinOpKind.IUREM: "urem",
    BinOpKind.ISDIV: "sdiv",
    BinOpKind.ISREM: "srem",
    BinOpKind.ISHL: "shl",
    BinOpKind.IASHR: "ashr",
    BinOpKind.IOR: "or_",
    BinOpKind.IAND: "and_",
    BinOpKind.IXOR: "xor",
}

_SIGNED_CMP = {
    BinOpKind.IEQ: "==",
    BinOpKind.INE: "!=",
    BinOpKind.ISGT: ">",
    BinOpKind.ISGE: ">=",
    BinOpKind.ISLT: "<",
    BinOpKind.ISLE: "<=",
}

_UNSIGNED_CMP = {
    BinOpKind.IUGT: ">",
    BinOpKind.IUGE: ">=",
    BinOpKind.IULT: "<",
    BinOpKind.IULE: "<=",
}


class LLVMEmitter:
    """Emits LLVM IR for TIR functions."""

    def __init__(self):
        if not HAS_LLVMLITE:
            raise RuntimeError("llvmlite is required for native lowering. Install with: pip install llvmlite")

        self.module: Optional[Any] = None
        self._builder: Optional[Any] = None
        self._func: Optional[Any] = None
        self._slots: dict[str, Any] = {}
        self._types: dict[str, IRType] = {}

    def emit_module(self, functions: Iterable[Function], name: str = "tir") -> str:
        """Emit LLVM IR for a set of functions. Returns LLVM IR string."""
        self.module = llvm_ir.Module(name=name)
        self.module.triple = llvm_binding.get_default_triple()
        for func in functions:
            self._emit_function(func)
        return str(self.module)

    def _emit_function(self, func: Function) -> None:
        param_types = [llvm_type_for(p.type) for p in func.params]
        ret_type = llvm_type_for(func.return_type)
        fn_type = llvm_ir.FunctionType(ret_type, param_types)
        self._func = llvm_ir.Function(self.module, fn_type, name=func.name)

        block = self._func.append_basic_block(name="entry")
        self._builder = llvm_ir.IRBuilder(block)
        self._slots = {}
        self._types = {}

        for i, param in enumerate(func.params):
            arg = self._func.args[i]
            arg.name = param.name
            slot = self._declare(param.name, param.type)
            self._builder.store(arg, slot)

        for local in func.locals:
            slot = self._declare(local.name, local.type)
            self._builder.store(llvm_ir.Constant(llvm_type_for(local.type), 0), slot)

        if func.result not in self._types:
            raise unbound_variable_error(func.result)
        if self._types[func.result] != func.return_type:
            raise mismatch_error(f"return {func.name}", str(func.return_type),
                                 str(self._types[func.result]))

        self._emit_stmt(func.body)
        self._builder.ret(self._builder.load(self._slots[func.result], name="result"))
        logger.debug("emitted %s", func.signature())

    def _declare(self, name: str, ty: IRType) -> Any:
        slot = self._builder.alloca(llvm_type_for(ty), name=f"{name}.addr")
        self._slots[name] = slot
        self._types[name] = ty
        return slot

    # -- statements ---------------------------------------------------------

    def _emit_stmt(self, stmt: Statement) -> None:
        if isinstance(stmt, Skip):
            return
        if isinstance(stmt, Assign):
            if stmt.dest not in self._types:
                raise unbound_variable_error(stmt.dest)
            val, ty = self._emit_expr(stmt.expr)
            if ty != self._types[stmt.dest]:
                raise mismatch_error(f"assign {stmt.dest}", str(self._types[stmt.dest]), str(ty))
            self._builder.store(val, self._slots[stmt.dest])
            return
        if isinstance(stmt, Sequence):
            for s in flatten_seq(stmt):
                self._emit_stmt(s)
            return
        if isinstance(stmt, Conditional):
            cond = self._emit_guard(stmt.guard)
            with self._builder.if_else(cond) as (then, otherwise):
                with then:
                    self._emit_stmt(stmt.then_branch)
                with otherwise:
                    self._emit_stmt(stmt.else_branch)
            return
        if isinstance(stmt, Loop):
            self._emit_loop(stmt)
            return
        raise malformed_node_error(stmt)

    def _emit_loop(self, loop: Loop) -> None:
        header = self._func.append_basic_block(name="loop.cond")
        body = self._func.append_basic_block(name="loop.body")
        exit_block = self._func.append_basic_block(name="loop.end")

        self._builder.branch(header)
        self._builder.position_at_end(header)
        self._builder.cbranch(self._emit_guard(loop.guard), body, exit_block)

        self._builder.position_at_end(body)
        self._emit_stmt(loop.body)
        self._builder.branch(header)

        self._builder.position_at_end(exit_block)

    def _emit_guard(self, guard: Expr) -> Any:
        val, ty = self._emit_expr(guard)
        if not isinstance(ty, IntType):
            raise unsupported_type_error(str(ty), "guards must be integers")
        zero = llvm_ir.Constant(val.type, 0)
        return self._builder.icmp_unsigned("!=", val, zero, name="guard")

    # -- expressions --------------------------------------------------------

    def _emit_expr(self, expr: Expr) -> Tuple[Any, IRType]:
        if isinstance(expr, Variable):
            if expr.name not in self._slots:
                raise unbound_variable_error(expr.name)
            return self._builder.load(self._slots[expr.name], name=expr.name), self._types[expr.name]

        if isinstance(expr, IntegerLiteral):
            ty = expr.value.type
            return _const_int(expr.value.value, ty), ty

        if isinstance(expr, BinaryOp):
            left, lt = self._emit_expr(expr.left)
            right, rt = self._emit_expr(expr.right)
            for t in (lt, rt):
                if not isinstance(t, IntType):
                    raise unsupported_type_error(str(t), f"'{expr.op.value}' needs integer operands")
            if lt != rt:
                raise mismatch_error(expr.op.value, str(lt), str(rt))
            return self._emit_binop(expr.op, left, right, lt), lt

        raise malformed_node_error(expr)

    def _emit_binop(self, op: BinOpKind, left: Any, right: Any, ty: IntType) -> Any:
        name = op.value
        if op in _ARITH:
            return getattr(self._builder, _ARITH[op])(left, right, name=name)
        if op in _SIGNED_CMP:
            bit = self._builder.icmp_signed(_SIGNED_CMP[op], left, right, name=name)
        else:
            bit = self._builder.icmp_unsigned(_UNSIGNED_CMP[op], left, right, name=name)
        return self._builder.zext(bit, llvm_ir.IntType(ty.width), name=f"{name}.ext")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def emit(functions: Iterable[Function], name: str = "tir") -> str:
    """Lower ``functions`` to an LLVM IR module. Returns LLVM IR string."""
    return LLVMEmitter().emit_module(functions, name)
