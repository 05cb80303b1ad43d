#!/usr/bin/env python3

"""End-to-end pipeline: populate, resolve and classify a forest of IDL files."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from idlkit.classify import BoundaryType, TypeClassifier
from idlkit.config import IdlConfig
from idlkit.parser import IdlParser
from idlkit.populate import Populator
from idlkit.resolve import Resolver
from idlkit.symbol_tree import SymbolTree
from idlkit.syntax import SourceFile, TraitDecl
from idlkit.typeid import render_typeid_module

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    tree: SymbolTree
    boundary_types: list[BoundaryType] = field(default_factory=list)
    # Canonical copies of every interface, keyed by absolute path
    interfaces: dict[tuple[str, ...], TraitDecl] = field(default_factory=dict)


def compile_forest(forest: list[SourceFile], config: IdlConfig | None = None) -> CompileResult:
    config = config or IdlConfig()
    tree = SymbolTree(config.builtins)
    Populator(tree).populate(forest)
    Resolver(tree).resolve_all()

    classifier = TypeClassifier(tree, config)
    boundary_types = classifier.classify(forest)
    interfaces = {
        module.path + (decl.name,): classifier.resolve_interface(module, decl)
        for module, decl in classifier.interfaces(forest)
    }
    logger.info(
        f"Compiled {len(forest)} files: {len(interfaces)} interfaces, "
        f"{len(boundary_types)} boundary types"
    )
    return CompileResult(tree, boundary_types, interfaces)


def compile_source(code: bytes | str, config: IdlConfig | None = None) -> CompileResult:
    """Compile a single file holding the whole crate root."""
    return compile_forest([IdlParser().parse(code)], config)


def compile_file(path: Path, config: IdlConfig | None = None) -> CompileResult:
    """Compile `path` and every module file it declares with `mod name;`."""
    return compile_forest(IdlParser().load_forest(path), config)


def generate_typeid(code: bytes | str, config: IdlConfig | None = None) -> str:
    config = config or IdlConfig()
    result = compile_source(code, config)
    return render_typeid_module(result.boundary_types, config)
