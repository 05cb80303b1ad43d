#!/usr/bin/env python3

"""Errors raised while building, resolving and classifying an IDL symbol tree.

Every pass fails fast: the first error aborts the run.
"""


def _format_module(module: tuple[str, ...] | None) -> str:
    if not module:
        return "<unknown>"
    return "::".join(module)


class IdlError(Exception):
    """Base class for all IDL compilation failures."""

    def __init__(self, message: str, name: str | None = None, module: tuple[str, ...] | None = None):
        self.name = name
        self.module = tuple(module) if module else None
        self.message = message
        if name is not None:
            message = f"{message} (symbol `{name}` in module `{_format_module(self.module)}`)"
        super().__init__(message)


class IdlSyntaxError(IdlError):
    """Raised when the syntax-tree provider cannot parse the IDL source."""

    def __init__(self, message: str, line: int | None = None):
        self.line = line
        if line is not None:
            message = f"{message} at line {line}"
        super().__init__(message)


class ConfigError(IdlError):
    """Raised when the configuration file is missing fields or malformed."""
    pass


class DuplicateSymbol(IdlError):
    """The same name was inserted twice into one module."""

    def __init__(self, name: str, module: tuple[str, ...]):
        super().__init__("Duplicate definition", name, module)


class UnsupportedImportForm(IdlError):
    """A glob import (`use path::*`) was encountered."""

    def __init__(self, path: tuple[str, ...], module: tuple[str, ...]):
        self.path = path
        written = "::".join(path + ("*",))
        super().__init__(
            f"Glob imports are not allowed in IDL: `use {written}`", written, module
        )


class ResolutionError(IdlError):
    """A path could not be resolved. Base class for the resolution failures."""
    pass


class UnresolvedSymbol(ResolutionError):
    """A path segment has no matching child in the module being searched."""

    def __init__(self, name: str, module: tuple[str, ...]):
        super().__init__("Unable to find symbol", name, module)


class VisibilityViolation(ResolutionError):
    """A private name was reached from outside its declaring module."""

    def __init__(self, name: str, module: tuple[str, ...], origin: tuple[str, ...]):
        self.origin = origin
        super().__init__(
            f"Symbol is private and cannot be used from `{_format_module(origin)}`",
            name,
            module,
        )


class InvalidPathSegment(ResolutionError):
    """A path tried to descend through something that is not a module."""

    def __init__(self, name: str, module: tuple[str, ...], kind: str):
        self.kind = kind
        super().__init__(f"Symbol is a {kind} and cannot have children", name, module)


class CyclicAlias(ResolutionError):
    """An alias chain refers back to an alias that is still being resolved."""

    def __init__(self, name: str, module: tuple[str, ...], chain: list[str] | None = None):
        self.chain = chain or []
        message = "Cyclic import"
        if self.chain:
            message = f"{message}: {' -> '.join(self.chain)}"
        super().__init__(message, name, module)


class InvalidTypeUsage(IdlError):
    """A type shape that interface signatures do not support."""

    def __init__(self, message: str, type_text: str | None = None, module: tuple[str, ...] | None = None):
        self.type_text = type_text
        super().__init__(message, type_text, module)
