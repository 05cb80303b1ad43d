#!/usr/bin/env python3

"""Resolution pass: turn every alias in the tree into a terminal entry.

Aliases are resolved lazily and may depend on other aliases in any module,
declared in any order. Dependencies are tracked on an explicit stack with an
in-progress set instead of native recursion, so alias chains of any length
are safe and true cycles are reported as `CyclicAlias`.
"""

import logging
from dataclasses import dataclass

from idlkit.errors import (
    CyclicAlias,
    InvalidPathSegment,
    ResolutionError,
    VisibilityViolation,
)
from idlkit.symbol_tree import QUALIFIERS, EntryKind, ModuleNode, Qualifier, SymbolEntry, SymbolTree
from idlkit.syntax import PARENT_MODULE, PathType

logger = logging.getLogger(__name__)


@dataclass
class _Walk:
    """Outcome of walking a path once.

    Exactly one field is set: the terminal `entry` reached, a `foreign`
    path outside the tree, or a `pending` alias that must be resolved first.
    """

    entry: SymbolEntry | None = None
    foreign: tuple[str, ...] | None = None
    pending: SymbolEntry | None = None


@dataclass(frozen=True)
class ResolvedPath:
    """A path resolved from inside a module.

    `entry` is None when the path names something outside the tree without
    going through an import.
    """

    path: tuple[str, ...]
    entry: SymbolEntry | None


class Resolver:
    def __init__(self, tree: SymbolTree):
        self.tree = tree

    def resolve_all(self) -> SymbolTree:
        """Resolve every alias in the tree."""
        aliases = self.tree.unresolved()
        logger.info(f"Resolving {len(aliases)} aliases")
        for entry in aliases:
            self.resolve(entry)
        assert not self.tree.unresolved(), "Aliases left unresolved"
        return self.tree

    def resolve(self, entry: SymbolEntry) -> SymbolEntry:
        """Resolve `entry` in place and return it. Terminal entries are returned as is."""
        if entry.is_terminal:
            return entry

        stack = [entry]
        in_progress = {entry}
        while stack:
            current = stack[-1]
            dependency = self._step(current)
            if dependency is not None:
                if dependency in in_progress:
                    chain = [self._describe(e) for e in stack] + [self._describe(dependency)]
                    owner = self.tree.module(dependency.owner)
                    raise CyclicAlias(dependency.name, owner.path, chain)
                in_progress.add(dependency)
                stack.append(dependency)
                continue
            stack.pop()
            in_progress.discard(current)
        return entry

    def resolve_path(self, module: ModuleNode, path: PathType) -> ResolvedPath:
        """Resolve a type path written inside `module` to its canonical path.

        Only the segment names are used; generic arguments are the caller's job.
        """
        names = path.names
        qualifier = Qualifier.NONE
        if not path.leading_colon and names[0] in QUALIFIERS:
            qualifier = QUALIFIERS[names[0]]
            names = names[1:]

        while True:
            walk = self._walk(module, qualifier, names, path.leading_colon, path.names)
            if walk.pending is not None:
                self.resolve(walk.pending)
                continue
            if walk.foreign is not None:
                return ResolvedPath(walk.foreign, None)
            assert walk.entry is not None and walk.entry.path is not None
            return ResolvedPath(walk.entry.path, walk.entry)

    def _step(self, entry: SymbolEntry) -> SymbolEntry | None:
        """Try to finish `entry`. Returns the alias it is waiting on, if any."""
        assert entry.alias is not None
        origin = self.tree.module(entry.owner)
        target = entry.alias
        walk = self._walk(
            origin, target.qualifier, target.segments, target.leading_colon, target.written, entry
        )
        if walk.pending is not None:
            return walk.pending
        if walk.foreign is not None:
            entry.resolve_to_foreign(walk.foreign)
        else:
            assert walk.entry is not None
            entry.resolve_to(walk.entry)
        logger.debug(
            f"Resolved {'::'.join(origin.path)}::{entry.name} ({target}) to "
            f"{entry.describe()} {'::'.join(entry.path or ())}"
        )
        return None

    def _walk(
        self,
        origin: ModuleNode,
        qualifier: Qualifier,
        segments: tuple[str, ...],
        leading_colon: bool,
        written: tuple[str, ...],
        resolving: SymbolEntry | None = None,
    ) -> _Walk:
        # `::name` always refers to an external crate.
        if leading_colon:
            return _Walk(foreign=written)

        current = self._start_module(origin, qualifier, written)
        if qualifier is Qualifier.PARENT:
            while segments and segments[0] == PARENT_MODULE:
                current = self._start_module(current, qualifier, written)
                segments = segments[1:]

        if not segments:
            return _Walk(entry=self._module_entry(current, origin, written))

        # An unknown head names an external crate. So does a head that finds the
        # alias being resolved, as in `use alloc;`.
        if qualifier is Qualifier.NONE:
            head = self.tree.get(current, segments[0])
            if head is None or head is resolving:
                return _Walk(foreign=written)

        last = len(segments) - 1
        for i, name in enumerate(segments):
            found = self.tree.lookup(current, name)
            if current.index != origin.index and not found.public:
                raise VisibilityViolation(name, current.path, origin.path)
            if not found.is_terminal:
                return _Walk(pending=found)
            if i == last:
                return _Walk(entry=found)

            if found.kind is EntryKind.MODULE:
                assert found.module is not None
                current = self.tree.module(found.module)
            elif found.kind is EntryKind.FOREIGN:
                assert found.path is not None
                return _Walk(foreign=found.path + segments[i + 1 :])
            elif found.kind in (EntryKind.DEFINITION, EntryKind.BUILTIN):
                raise InvalidPathSegment(name, current.path, found.describe())
            else:
                raise AssertionError(f"Unexpected entry kind {found.kind}")
        raise AssertionError("unreachable")

    def _start_module(
        self, origin: ModuleNode, qualifier: Qualifier, written: tuple[str, ...]
    ) -> ModuleNode:
        if qualifier is Qualifier.ROOT:
            return self.tree.root
        if qualifier is Qualifier.PARENT:
            parent = self.tree.parent(origin)
            if parent is None:
                raise ResolutionError(
                    "`super` cannot be used in the crate root", "::".join(written), origin.path
                )
            return parent
        return origin

    def _module_entry(
        self, module: ModuleNode, origin: ModuleNode, written: tuple[str, ...]
    ) -> SymbolEntry:
        """The entry that names `module` in its parent, for paths like `use super;`."""
        parent = self.tree.parent(module)
        if parent is None:
            raise ResolutionError(
                "The crate root cannot be imported", "::".join(written), origin.path
            )
        return parent.children[module.name]

    def _describe(self, entry: SymbolEntry) -> str:
        owner = self.tree.module(entry.owner)
        return "::".join(owner.path + (entry.name,))


def resolve(tree: SymbolTree) -> SymbolTree:
    return Resolver(tree).resolve_all()
