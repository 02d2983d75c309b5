"""TIR — operational and axiomatic semantics for a typed imperative IR"""

__version__ = "0.1.0"

from tir.types import IntType, FloatType, IntValue, parse_type
from tir.operators import BinOpKind, OperatorTable, UnsignedCompare, apply_binop
from tir.ast_nodes import *
from tir.errors import TirError, ErrorKind
from tir.evaluator import Store, Interpreter, evaluate, execute, holds
from tir.substitution import substitute, free_variables
from tir.hoare import WPCalculator, wp, simplify
from tir.config import TirConfig, load_config
