#!/usr/bin/env python3

"""Population pass: insert every declared and imported name into the tree.

Cross-module references are left as unresolved aliases for `idlkit.resolve`.
"""

import logging

from idlkit.errors import IdlError, UnsupportedImportForm
from idlkit.symbol_tree import QUALIFIERS, AliasTarget, ModuleNode, Qualifier, SymbolEntry, SymbolTree
from idlkit.syntax import (
    ROOT_MODULE,
    SELF_MODULE,
    ConstDecl,
    EnumDecl,
    FunctionDecl,
    Item,
    ModuleDecl,
    SourceFile,
    StructDecl,
    TraitDecl,
    TypeAliasDecl,
    UnionDecl,
    UseDecl,
    UseGlob,
    UseGroup,
    UseName,
    UsePath,
    UseRename,
    UseTree,
)

logger = logging.getLogger(__name__)

DEFINITION_ITEMS = (
    StructDecl,
    EnumDecl,
    UnionDecl,
    TraitDecl,
    FunctionDecl,
    TypeAliasDecl,
    ConstDecl,
)


def flatten_use_tree(
    tree: UseTree, module_path: tuple[str, ...], prefix: tuple[str, ...] = ()
) -> list[tuple[str, tuple[str, ...]]]:
    """Flatten a possibly grouped `use` tree into (local name, written path) pairs.

    `use a::{self, b::C as D}` yields `[("a", ("a",)), ("D", ("a", "b", "C"))]`.
    """
    if isinstance(tree, UsePath):
        return flatten_use_tree(tree.tree, module_path, prefix + (tree.name,))
    if isinstance(tree, UseName):
        if tree.name == SELF_MODULE and prefix:
            return [(prefix[-1], prefix)]
        return [(tree.name, prefix + (tree.name,))]
    if isinstance(tree, UseRename):
        if tree.name == SELF_MODULE and prefix:
            return [(tree.rename, prefix)]
        return [(tree.rename, prefix + (tree.name,))]
    if isinstance(tree, UseGroup):
        result = []
        for item in tree.items:
            result.extend(flatten_use_tree(item, module_path, prefix))
        return result
    if isinstance(tree, UseGlob):
        raise UnsupportedImportForm(prefix, module_path)
    raise TypeError(f"Unknown use tree {tree!r}")


def alias_target(path: tuple[str, ...], leading_colon: bool) -> AliasTarget:
    """Split a written import path into its leading qualifier and the rest."""
    qualifier = QUALIFIERS.get(path[0]) if path and not leading_colon else None
    if qualifier is None:
        return AliasTarget(Qualifier.NONE, path, leading_colon)
    return AliasTarget(qualifier, path[1:], leading_colon)


class Populator:
    """Walks syntax trees and fills a `SymbolTree`."""

    def __init__(self, tree: SymbolTree):
        self.tree = tree

    def populate(self, forest: list[SourceFile]) -> SymbolTree:
        # Parents first, so `mod x;` fixes the visibility of `x` before its file is read.
        for source in sorted(forest, key=lambda s: len(s.module_path)):
            module = self._start_module(source.module_path)
            logger.info(f"Populating {'::'.join(module.path)} from {source.path or '<memory>'}")
            self.populate_items(module, source.items)
        return self.tree

    def _start_module(self, module_path: tuple[str, ...]) -> ModuleNode:
        if not module_path or module_path[0] != ROOT_MODULE:
            raise IdlError(f"Module path must start with `{ROOT_MODULE}`: {module_path}")
        module = self.tree.root
        for name in module_path[1:]:
            module = self.tree.child_module(module, name, public=True)
        return module

    def populate_items(self, module: ModuleNode, items: tuple[Item, ...]) -> None:
        for item in items:
            if isinstance(item, ModuleDecl):
                child = self.tree.child_module(module, item.name, item.public)
                if item.items is not None:
                    self.populate_items(child, item.items)
            elif isinstance(item, UseDecl):
                self._populate_use(module, item)
            elif isinstance(item, DEFINITION_ITEMS):
                entry = SymbolEntry.new_definition(item.name, module, item, item.public)
                self.tree.insert(module, item.name, entry)
            else:
                raise TypeError(f"Unknown item {item!r}")

    def _populate_use(self, module: ModuleNode, decl: UseDecl) -> None:
        for name, path in flatten_use_tree(decl.tree, module.path):
            target = alias_target(path, decl.leading_colon)
            entry = SymbolEntry.new_alias(name, module, target, decl.public)
            self.tree.insert(module, name, entry)


def populate(tree: SymbolTree, forest: list[SourceFile]) -> SymbolTree:
    return Populator(tree).populate(forest)
