"""TIR linking boundary — compile IR functions and call them by name.

The type vocabulary maps one-to-one onto C calling-convention primitives:

  i8  i16  i32  i64   ->  c_int8  c_int16  c_int32  c_int64
  u8  u16  u32  u64   ->  c_uint8 c_uint16 c_uint32 c_uint64
  f32 f64             ->  c_float c_double

Functions are lowered with ``tir.emit``, JIT-compiled with llvmlite's MCJIT,
resolved by exported name and wrapped in a ctypes function prototype.
"""

from __future__ import annotations

import ctypes
import logging
from typing import Any, Dict, Iterable, Optional, Union

from tir.ast_nodes import Function
from tir.emit import HAS_LLVMLITE, emit
from tir.errors import LinkError, arity_error, mismatch_error, unsupported_type_error
from tir.types import (
    F32, F64, I8, I16, I32, I64, U8, U16, U32, U64, FloatType, IntType, IntValue, IRType,
)

if HAS_LLVMLITE:
    from llvmlite import binding as llvm_binding

logger = logging.getLogger(__name__)

_CTYPES: Dict[IRType, Any] = {
    I8: ctypes.c_int8,
    I16: ctypes.c_int16,
    I32: ctypes.c_int32,
    I64: ctypes.c_int64,
    U8: ctypes.c_uint8,
    U16: ctypes.c_uint16,
    U32: ctypes.c_uint32,
    U64: ctypes.c_uint64,
    F32: ctypes.c_float,
    F64: ctypes.c_double,
}


def ctype_for(ty: IRType) -> Any:
    """Map a TIR type to its ctypes primitive."""
    try:
        return _CTYPES[ty]
    except (KeyError, TypeError):
        raise unsupported_type_error(str(ty)) from None


def signature_for(function: Function) -> Any:
    """Build the ctypes prototype for ``function``."""
    return ctypes.CFUNCTYPE(
        ctype_for(function.return_type),
        *(ctype_for(p.type) for p in function.params),
    )


_llvm_initialized = False


def _initialize_llvm() -> None:
    """Initialize LLVM native target machinery (once per process)."""
    global _llvm_initialized
    if _llvm_initialized:
        return
    llvm_binding.initialize_native_target()
    llvm_binding.initialize_native_asmprinter()
    _llvm_initialized = True


Argument = Union[IntValue, int, float]


class NativeModule:
    """A set of IR functions compiled to native code in this process."""

    def __init__(self, functions: Dict[str, Function], engine: Any, llvm_ir: str):
        self.functions = functions
        self.llvm_ir = llvm_ir
        self._engine = engine
        self._callables: Dict[str, Any] = {}

    @classmethod
    def compile(cls, functions: Iterable[Function], opt_level: int = 2,
                name: str = "tir") -> NativeModule:
        """Lower, verify and JIT-compile ``functions``.

        Raises LinkError if LLVM rejects the module.
        """
        if not HAS_LLVMLITE:
            raise RuntimeError("llvmlite is required for native compilation. Install with: pip install llvmlite")

        functions = list(functions)
        llvm_ir_str = emit(functions, name)

        _initialize_llvm()
        target = llvm_binding.Target.from_default_triple()
        target_machine = target.create_target_machine(opt=opt_level)
        try:
            mod = llvm_binding.parse_assembly(llvm_ir_str)
            mod.verify()
            engine = llvm_binding.create_mcjit_compiler(mod, target_machine)
            engine.finalize_object()
        except RuntimeError as e:
            raise LinkError(
                f"Compilation of module '{name}' failed: {e}",
                details={"module": name},
            ) from e

        logger.debug("compiled module %s with %d function(s) at O%d", name, len(functions), opt_level)
        return cls({f.name: f for f in functions}, engine, llvm_ir_str)

    @classmethod
    def from_config(cls, functions: Iterable[Function], config) -> NativeModule:
        return cls.compile(functions, opt_level=config.opt_level)

    def resolve(self, name: str) -> Any:
        """Resolve an exported function to a ctypes callable."""
        if name in self._callables:
            return self._callables[name]
        function = self.functions.get(name)
        address = self._engine.get_function_address(name) if function else 0
        if not address:
            raise LinkError(f"No exported function named '{name}'", details={"function": name})
        fn = signature_for(function)(address)
        self._callables[name] = fn
        return fn

    def call(self, name: str, *args: Argument) -> Union[IntValue, float]:
        """Invoke an exported function with positional arguments."""
        fn = self.resolve(name)
        function = self.functions[name]
        if len(args) != len(function.params):
            raise arity_error(name, len(function.params), len(args))

        raw = [_to_native(p.type, a, name) for p, a in zip(function.params, args)]
        result = fn(*raw)
        if isinstance(function.return_type, IntType):
            return IntValue.of(int(result), function.return_type)
        return float(result)


def _to_native(ty: IRType, arg: Argument, function: str) -> Any:
    if isinstance(arg, IntValue):
        if arg.type != ty:
            raise mismatch_error(f"call {function}", str(ty), arg.type.name)
        return arg.value
    if isinstance(ty, FloatType):
        return float(arg)
    if isinstance(arg, float):
        raise mismatch_error(f"call {function}", str(ty), "float")
    return int(arg)


def compile_functions(functions: Iterable[Function], opt_level: Optional[int] = None) -> NativeModule:
    """Compile IR functions to a callable native module."""
    return NativeModule.compile(functions, opt_level=2 if opt_level is None else opt_level)
