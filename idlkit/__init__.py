"""idlkit - symbol resolution and boundary type ids for Rust-subset IDL crates."""

from idlkit.classify import BoundaryType, TypeClassifier
from idlkit.compiler import CompileResult, compile_file, compile_forest, compile_source, generate_typeid
from idlkit.config import IdlConfig
from idlkit.errors import IdlError
from idlkit.parser import IdlParser
from idlkit.rewrite import rewrite_interface
from idlkit.symbol_tree import SymbolTree

__all__ = [
    "BoundaryType",
    "CompileResult",
    "IdlConfig",
    "IdlError",
    "IdlParser",
    "SymbolTree",
    "TypeClassifier",
    "compile_file",
    "compile_forest",
    "compile_source",
    "generate_typeid",
    "rewrite_interface",
]
