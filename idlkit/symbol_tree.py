#!/usr/bin/env python3

"""Hierarchical symbol table for IDL modules.

Modules live in a single arena owned by `SymbolTree` and refer to each other
by index, so parent links never form reference cycles. Each module maps local
names to `SymbolEntry` objects. Alias entries are rewritten in place into
terminal entries by the resolution pass.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from idlkit.config import DEFAULT_BUILTINS
from idlkit.errors import DuplicateSymbol, UnresolvedSymbol
from idlkit.syntax import (
    ROOT_MODULE,
    ConstDecl,
    EnumDecl,
    FunctionDecl,
    Item,
    StructDecl,
    TraitDecl,
    TypeAliasDecl,
    UnionDecl,
)

logger = logging.getLogger(__name__)

ROOT_INDEX = 0


class EntryKind(Enum):
    MODULE = "module"
    DEFINITION = "definition"
    ALIAS = "alias"
    FOREIGN = "foreign"
    BUILTIN = "builtin"

    @property
    def is_terminal(self) -> bool:
        return self is not EntryKind.ALIAS


class DefinitionKind(Enum):
    STRUCT = "struct"
    ENUM = "enum"
    UNION = "union"
    TRAIT = "trait"
    FUNCTION = "fn"
    TYPE_ALIAS = "type"
    CONST = "const"


class Qualifier(Enum):
    """How an import path starts."""

    NONE = "none"
    ROOT = "crate"
    PARENT = "super"
    SELF = "self"


# Keywords that may start a path and select the module the walk starts from
QUALIFIERS = {q.value: q for q in (Qualifier.ROOT, Qualifier.PARENT, Qualifier.SELF)}


@dataclass(frozen=True)
class Definition:
    """Payload of a definition entry."""

    kind: DefinitionKind
    item: Item

    @property
    def literal(self) -> str | None:
        """Literal value of a constant, None for everything else."""
        if isinstance(self.item, ConstDecl):
            return self.item.value
        return None

    @classmethod
    def from_item(cls, item: Item) -> "Definition":
        if isinstance(item, StructDecl):
            kind = DefinitionKind.STRUCT
        elif isinstance(item, EnumDecl):
            kind = DefinitionKind.ENUM
        elif isinstance(item, UnionDecl):
            kind = DefinitionKind.UNION
        elif isinstance(item, TraitDecl):
            kind = DefinitionKind.TRAIT
        elif isinstance(item, FunctionDecl):
            kind = DefinitionKind.FUNCTION
        elif isinstance(item, TypeAliasDecl):
            kind = DefinitionKind.TYPE_ALIAS
        elif isinstance(item, ConstDecl):
            kind = DefinitionKind.CONST
        else:
            raise TypeError(f"{type(item).__name__} is not a definition")
        return cls(kind, item)


@dataclass(frozen=True)
class AliasTarget:
    """Payload of an unresolved alias: the path exactly as written in `use`."""

    qualifier: Qualifier
    segments: tuple[str, ...]
    leading_colon: bool = False

    @property
    def written(self) -> tuple[str, ...]:
        if self.qualifier is Qualifier.NONE:
            return self.segments
        return (self.qualifier.value,) + self.segments

    def __str__(self) -> str:
        return ("::" if self.leading_colon else "") + "::".join(self.written)


@dataclass(eq=False)
class SymbolEntry:
    """One name in one module.

    `kind` selects which payload is meaningful:
    MODULE -> `module`, DEFINITION -> `definition`, ALIAS -> `alias`,
    FOREIGN and BUILTIN carry only `path`.
    """

    name: str
    kind: EntryKind
    owner: int  # Index of the module that holds this entry
    public: bool = False
    path: tuple[str, ...] | None = None  # Canonical path, set once terminal
    module: int | None = None
    definition: Definition | None = None
    alias: AliasTarget | None = None

    @property
    def is_terminal(self) -> bool:
        return self.kind.is_terminal

    @classmethod
    def new_definition(cls, name: str, owner: "ModuleNode", item: Item, public: bool) -> "SymbolEntry":
        return cls(
            name=name,
            kind=EntryKind.DEFINITION,
            owner=owner.index,
            public=public,
            path=owner.path + (name,),
            definition=Definition.from_item(item),
        )

    @classmethod
    def new_alias(cls, name: str, owner: "ModuleNode", target: AliasTarget, public: bool) -> "SymbolEntry":
        return cls(name=name, kind=EntryKind.ALIAS, owner=owner.index, public=public, alias=target)

    def resolve_to(self, target: "SymbolEntry") -> None:
        """Replace this alias by the terminal state of `target`."""
        assert target.is_terminal, f"{target.name} is not terminal"
        self.kind = target.kind
        self.path = target.path
        self.module = target.module
        self.definition = target.definition
        self.alias = None

    def resolve_to_foreign(self, path: tuple[str, ...]) -> None:
        self.kind = EntryKind.FOREIGN
        self.path = path
        self.alias = None

    def describe(self) -> str:
        """Short human-readable kind, e.g. `struct`, `module`, `alias`."""
        if self.kind is EntryKind.DEFINITION:
            assert self.definition is not None
            return self.definition.kind.value
        return self.kind.value


@dataclass
class ModuleNode:
    index: int
    path: tuple[str, ...]
    parent: int | None
    children: dict[str, SymbolEntry] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.path[-1]

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def __repr__(self) -> str:
        return f"ModuleNode({'::'.join(self.path)}, children={sorted(self.children)})"


class SymbolTree:
    """All modules and symbols of one compilation run."""

    def __init__(self, builtins: list[str] | None = None):
        self.modules: list[ModuleNode] = [ModuleNode(ROOT_INDEX, (ROOT_MODULE,), None)]
        # Builtins stay reachable from every module even when the root shadows one
        self.prelude: dict[str, SymbolEntry] = {}
        for name in sorted(set(DEFAULT_BUILTINS if builtins is None else builtins)):
            entry = SymbolEntry(
                name=name,
                kind=EntryKind.BUILTIN,
                owner=ROOT_INDEX,
                public=True,
                path=(name,),
            )
            self.prelude[name] = entry
            self.root.children[name] = entry

    @property
    def root(self) -> ModuleNode:
        return self.modules[ROOT_INDEX]

    def module(self, index: int) -> ModuleNode:
        return self.modules[index]

    def parent(self, module: ModuleNode) -> ModuleNode | None:
        if module.parent is None:
            return None
        return self.modules[module.parent]

    def insert(self, module: ModuleNode, name: str, entry: SymbolEntry) -> SymbolEntry:
        """Add `entry` to `module` under `name`.

        A definition in the root may shadow a builtin of the same name.
        """
        existing = module.children.get(name)
        if existing is not None and not (
            existing.kind is EntryKind.BUILTIN and module.is_root
        ):
            raise DuplicateSymbol(name, module.path)
        logger.debug(f"Adding {entry.describe()} {name} to {'::'.join(module.path)}")
        module.children[name] = entry
        return entry

    def child_module(self, module: ModuleNode, name: str, public: bool) -> ModuleNode:
        """Return the child module `name`, creating it if it does not exist yet."""
        existing = module.children.get(name)
        if existing is not None and existing.kind is EntryKind.MODULE:
            assert existing.module is not None
            return self.modules[existing.module]

        child = ModuleNode(len(self.modules), module.path + (name,), module.index)
        entry = SymbolEntry(
            name=name,
            kind=EntryKind.MODULE,
            owner=module.index,
            public=public,
            path=child.path,
            module=child.index,
        )
        self.insert(module, name, entry)
        self.modules.append(child)
        return child

    def get(self, module: ModuleNode, name: str) -> SymbolEntry | None:
        """Like `lookup`, but returns None for a missing name."""
        entry = module.children.get(name)
        if entry is None:
            return self.prelude.get(name)
        return entry

    def lookup(self, module: ModuleNode, name: str) -> SymbolEntry:
        entry = self.get(module, name)
        if entry is None:
            raise UnresolvedSymbol(name, module.path)
        return entry

    def find_module(self, path) -> ModuleNode | None:
        """Find a module by absolute path, e.g. `("crate", "pci")`."""
        path = tuple(path)
        if not path or path[0] != ROOT_MODULE:
            return None
        module = self.root
        for name in path[1:]:
            entry = module.children.get(name)
            if entry is None or entry.kind is not EntryKind.MODULE:
                return None
            assert entry.module is not None
            module = self.modules[entry.module]
        return module

    def find(self, path) -> SymbolEntry | None:
        """Find the entry stored at an absolute path, e.g. `("crate", "pci", "PCI")`."""
        path = tuple(path)
        if len(path) < 2:
            return None
        module = self.find_module(path[:-1])
        if module is None:
            return None
        return module.children.get(path[-1])

    def entries(self) -> Iterator[tuple[ModuleNode, str, SymbolEntry]]:
        """Iterate over every entry except the builtin prelude."""
        for module in self.modules:
            for name, entry in module.children.items():
                if module.is_root and entry is self.prelude.get(name):
                    continue
                yield module, name, entry

    def unresolved(self) -> list[SymbolEntry]:
        return [entry for _, _, entry in self.entries() if entry.kind is EntryKind.ALIAS]

    def __repr__(self) -> str:
        return f"SymbolTree(modules={[m.path for m in self.modules]})"
