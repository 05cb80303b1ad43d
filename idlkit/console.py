#!/usr/bin/env python3

from rich.console import Console as RichConsole
from rich.table import Table

from idlkit.symbol_tree import SymbolTree


class Console:
    """Simple console wrapper focused on output."""

    def __init__(self):
        self._rich = RichConsole()

    def print(self, *args, **kwargs):
        """Print using Rich console."""
        return self._rich.print(*args, **kwargs)

    def print_symbols(self, tree: SymbolTree) -> None:
        """Print every resolved entry of `tree` as a table."""
        table = Table(title="Symbols")
        table.add_column("Path")
        table.add_column("Kind")
        table.add_column("Visibility")
        table.add_column("Target")
        for module, name, entry in tree.entries():
            table.add_row(
                "::".join(module.path + (name,)),
                entry.describe(),
                "pub" if entry.public else "private",
                "::".join(entry.path or ()),
            )
        self.print(table)
