#!/usr/bin/env python3

"""Type classification pass.

Every type in an interface method signature is rewritten to its canonical,
fully-qualified form. Payloads of the boundary-transfer wrapper (`RRef` by
default) are collected in discovery order and numbered from zero.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, replace

from idlkit.config import IdlConfig
from idlkit.errors import InvalidTypeUsage
from idlkit.resolve import Resolver
from idlkit.symbol_tree import DefinitionKind, EntryKind, ModuleNode, SymbolEntry, SymbolTree
from idlkit.syntax import (
    ArrayType,
    ConstArg,
    FunctionType,
    GenericArg,
    Item,
    ModuleDecl,
    PathSegment,
    PathType,
    PointerType,
    ReferenceType,
    SliceType,
    SourceFile,
    TraitDecl,
    TraitObjectType,
    TupleType,
    TypeExpr,
    UnsupportedType,
    render_path,
    render_type,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundaryType:
    """A canonical type that crosses an isolation boundary, and its runtime id."""

    type: TypeExpr
    id: int

    def __str__(self) -> str:
        return f"{render_type(self.type)} = {self.id}"


def _is_constant(entry: SymbolEntry | None) -> bool:
    return (
        entry is not None
        and entry.kind is EntryKind.DEFINITION
        and entry.definition is not None
        and entry.definition.kind is DefinitionKind.CONST
    )


class TypeClassifier:
    """Finds boundary types in the interfaces of a resolved symbol tree."""

    def __init__(self, tree: SymbolTree, config: IdlConfig | None = None):
        self.tree = tree
        self.config = config or IdlConfig()
        self.resolver = Resolver(tree)
        self.wrapper = self.config.boundary_wrapper_path()
        self._types: list[TypeExpr] = []
        self._ids: dict[TypeExpr, int] = {}

    def classify(self, forest: list[SourceFile]) -> list[BoundaryType]:
        """Classify every interface of `forest`, in the order the files are given."""
        for module, decl in self.interfaces(forest):
            self.classify_interface(module, decl)
        logger.info(f"Found {len(self._types)} boundary types")
        return self.boundary_types()

    def boundary_types(self) -> list[BoundaryType]:
        return [BoundaryType(ty, i) for i, ty in enumerate(self._types)]

    def interfaces(self, forest: list[SourceFile]) -> Iterator[tuple[ModuleNode, TraitDecl]]:
        """Yield every interface with the module that declares it, in pre-order."""
        for source in forest:
            module = self.tree.find_module(source.module_path)
            assert module is not None, f"Module {source.module_path} was not populated"
            yield from self._interfaces_in(module, source.items)

    def _interfaces_in(
        self, module: ModuleNode, items: tuple[Item, ...]
    ) -> Iterator[tuple[ModuleNode, TraitDecl]]:
        for item in items:
            if isinstance(item, TraitDecl):
                yield module, item
            elif isinstance(item, ModuleDecl) and item.items is not None:
                child = self.tree.find_module(module.path + (item.name,))
                assert child is not None, f"Module {item.name} was not populated"
                yield from self._interfaces_in(child, item.items)

    def classify_interface(self, module: ModuleNode, decl: TraitDecl) -> None:
        logger.debug(f"Classifying interface {'::'.join(module.path)}::{decl.name}")
        for method in decl.methods:
            for ty in method.types():
                self._discover(self.canonicalize(module, ty))

    def resolve_interface(self, module: ModuleNode, decl: TraitDecl) -> TraitDecl:
        """Return a copy of `decl` whose signature types are all canonical."""
        methods = []
        for method in decl.methods:
            params = tuple(
                replace(param, type=self.canonicalize(module, param.type))
                for param in method.params
            )
            output = method.output
            if output is not None:
                output = self.canonicalize(module, output)
            methods.append(replace(method, params=params, output=output))
        return replace(decl, methods=tuple(methods))

    def canonicalize(self, module: ModuleNode, ty: TypeExpr) -> TypeExpr:
        """Resolve every path inside `ty` as seen from `module`."""
        if isinstance(ty, PathType):
            return self._canonical_path(module, ty)
        if isinstance(ty, ArrayType):
            return ArrayType(
                self.canonicalize(module, ty.element),
                self._canonical_const(module, ty.length),
            )
        if isinstance(ty, SliceType):
            return SliceType(self.canonicalize(module, ty.element))
        if isinstance(ty, TupleType):
            return TupleType(tuple(self.canonicalize(module, elem) for elem in ty.elements))
        if isinstance(ty, ReferenceType):
            return ReferenceType(self.canonicalize(module, ty.element), ty.mutable)
        if isinstance(ty, TraitObjectType):
            return TraitObjectType(
                tuple(self._canonical_path(module, bound) for bound in ty.bounds)
            )
        if isinstance(ty, PointerType):
            raise InvalidTypeUsage(
                "Raw pointers cannot be used in interfaces", render_type(ty), module.path
            )
        if isinstance(ty, FunctionType):
            raise InvalidTypeUsage(
                "Function types cannot be used in interfaces", render_type(ty), module.path
            )
        if isinstance(ty, UnsupportedType):
            raise InvalidTypeUsage(
                f"Unsupported type ({ty.kind}) in interface", ty.text, module.path
            )
        raise TypeError(f"Not a type expression: {ty!r}")

    def _canonical_path(self, module: ModuleNode, path: PathType) -> PathType:
        for segment in path.segments[:-1]:
            if segment.args:
                raise InvalidTypeUsage(
                    "Generic arguments are only supported on the last path segment",
                    render_path(path),
                    module.path,
                )

        resolved = self.resolver.resolve_path(module, path)
        if resolved.entry is None and not path.leading_colon:
            raise InvalidTypeUsage("Unresolved type", render_path(path), module.path)
        if resolved.entry is not None and resolved.entry.kind is EntryKind.MODULE:
            raise InvalidTypeUsage(
                "Expecting a type, found a module", render_path(path), module.path
            )

        args = tuple(self._canonical_arg(module, arg) for arg in path.args)
        names = resolved.path
        segments = tuple(PathSegment(name) for name in names[:-1])
        segments += (PathSegment(names[-1], args),)
        return PathType(segments, leading_colon=path.leading_colon and resolved.entry is None)

    def _canonical_arg(self, module: ModuleNode, arg: GenericArg) -> GenericArg:
        if isinstance(arg, ConstArg):
            return self._canonical_const(module, arg)
        # `Foo<N>` parses `N` as a type; it may name a constant.
        if isinstance(arg, PathType) and not arg.args:
            resolved = self.resolver.resolve_path(module, arg)
            if _is_constant(resolved.entry):
                return self._constant_literal(module, resolved.entry, arg)
        return self.canonicalize(module, arg)

    def _canonical_const(self, module: ModuleNode, arg: ConstArg) -> ConstArg:
        if arg.literal is not None:
            return arg
        assert arg.path is not None
        resolved = self.resolver.resolve_path(module, arg.path)
        if not _is_constant(resolved.entry):
            raise InvalidTypeUsage(
                "Constant expressions must name a constant defined in the IDL",
                render_path(arg.path),
                module.path,
            )
        return self._constant_literal(module, resolved.entry, arg.path)

    def _constant_literal(self, module: ModuleNode, entry: SymbolEntry, path: PathType) -> ConstArg:
        assert entry.definition is not None
        literal = entry.definition.literal
        if literal is None:
            raise InvalidTypeUsage(
                "Constant must be initialized with a literal", render_path(path), module.path
            )
        return ConstArg(literal=literal)

    def _discover(self, ty: TypeExpr) -> None:
        """Register wrapper payloads found in a canonical type, outermost first."""
        if isinstance(ty, PathType):
            type_args = [arg for arg in ty.args if not isinstance(arg, ConstArg)]
            if ty.names == self.wrapper:
                if len(ty.args) != 1 or len(type_args) != 1:
                    raise InvalidTypeUsage(
                        f"`{'::'.join(self.wrapper)}` takes exactly one type argument",
                        render_type(ty),
                    )
                self._register(type_args[0])
            for arg in type_args:
                self._discover(arg)
        elif isinstance(ty, (ArrayType, SliceType, ReferenceType)):
            self._discover(ty.element)
        elif isinstance(ty, TupleType):
            for elem in ty.elements:
                self._discover(elem)
        elif isinstance(ty, TraitObjectType):
            for bound in ty.bounds:
                self._discover(bound)

    def _register(self, ty: TypeExpr) -> None:
        if ty in self._ids:
            return
        self._ids[ty] = len(self._types)
        self._types.append(ty)
        logger.debug(f"Boundary type {self._ids[ty]}: {render_type(ty)}")
