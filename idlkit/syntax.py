#!/usr/bin/env python3

"""Syntax model for the IDL subset.

The syntax-tree provider (see `idlkit.parser`) produces these objects; every
pass consumes them. All nodes are frozen dataclasses, so two type expressions
compare equal exactly when they are structurally equal.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

ROOT_MODULE = "crate"
PARENT_MODULE = "super"
SELF_MODULE = "self"


# Type expressions


@dataclass(frozen=True)
class ConstArg:
    """A const value used as an array length or a const generic argument.

    Exactly one of `literal` and `path` is set. Resolution replaces a path by
    the literal value of the constant it names.
    """

    literal: str | None = None
    path: "PathType | None" = None


@dataclass(frozen=True)
class PathSegment:
    name: str
    args: tuple["GenericArg", ...] = ()


@dataclass(frozen=True)
class PathType:
    """A named type such as `crate::rref::RRef<Foo>`."""

    segments: tuple[PathSegment, ...]
    leading_colon: bool = False

    @classmethod
    def from_names(cls, names, leading_colon: bool = False) -> "PathType":
        return cls(tuple(PathSegment(name) for name in names), leading_colon)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(segment.name for segment in self.segments)

    @property
    def args(self) -> tuple["GenericArg", ...]:
        """Generic arguments of the final segment."""
        return self.segments[-1].args


@dataclass(frozen=True)
class ArrayType:
    element: "TypeExpr"
    length: ConstArg


@dataclass(frozen=True)
class SliceType:
    element: "TypeExpr"


@dataclass(frozen=True)
class TupleType:
    """A tuple type. The empty tuple is the unit type `()`."""

    elements: tuple["TypeExpr", ...] = ()


@dataclass(frozen=True)
class ReferenceType:
    element: "TypeExpr"
    mutable: bool = False


@dataclass(frozen=True)
class TraitObjectType:
    """`dyn Trait`, with every bound written as a path."""

    bounds: tuple[PathType, ...]


@dataclass(frozen=True)
class PointerType:
    element: "TypeExpr"
    mutable: bool = False


@dataclass(frozen=True)
class FunctionType:
    text: str


@dataclass(frozen=True)
class UnsupportedType:
    """Any other type shape the parser saw, kept as text for diagnostics."""

    kind: str
    text: str


TypeExpr = Union[
    PathType,
    ArrayType,
    SliceType,
    TupleType,
    ReferenceType,
    TraitObjectType,
    PointerType,
    FunctionType,
    UnsupportedType,
]
GenericArg = Union[TypeExpr, ConstArg]


# Items


@dataclass(frozen=True)
class Param:
    name: str
    type: TypeExpr


@dataclass(frozen=True)
class Method:
    name: str
    params: tuple[Param, ...] = ()
    output: TypeExpr | None = None
    # `&self`, `&mut self`, `self` and so on; None for an associated function
    receiver: str | None = "&self"

    def types(self) -> list[TypeExpr]:
        """Parameter types followed by the return type, if any."""
        result = [param.type for param in self.params]
        if self.output is not None:
            result.append(self.output)
        return result


@dataclass(frozen=True)
class TraitDecl:
    """An interface: a trait whose methods are signatures."""

    name: str
    public: bool = False
    methods: tuple[Method, ...] = ()


@dataclass(frozen=True)
class StructDecl:
    name: str
    public: bool = False


@dataclass(frozen=True)
class EnumDecl:
    name: str
    public: bool = False


@dataclass(frozen=True)
class UnionDecl:
    name: str
    public: bool = False


@dataclass(frozen=True)
class FunctionDecl:
    name: str
    public: bool = False


@dataclass(frozen=True)
class TypeAliasDecl:
    name: str
    public: bool = False
    target: TypeExpr | None = None


@dataclass(frozen=True)
class ConstDecl:
    """A `const` or `static` item. `value` is the literal text, or None when
    the initializer is not a single literal."""

    name: str
    public: bool = False
    type: TypeExpr | None = None
    value: str | None = None
    is_static: bool = False


@dataclass(frozen=True)
class UseName:
    """`Foo` at the end of a use path."""

    name: str


@dataclass(frozen=True)
class UseRename:
    """`Foo as Bar`."""

    name: str
    rename: str


@dataclass(frozen=True)
class UseGlob:
    """`*`."""


@dataclass(frozen=True)
class UseGroup:
    """`{a, b::C}`."""

    items: tuple["UseTree", ...]


@dataclass(frozen=True)
class UsePath:
    """`a::<tree>`."""

    name: str
    tree: "UseTree"


UseTree = Union[UsePath, UseName, UseRename, UseGlob, UseGroup]


@dataclass(frozen=True)
class UseDecl:
    tree: UseTree
    public: bool = False
    leading_colon: bool = False


@dataclass(frozen=True)
class ModuleDecl:
    """`mod name { ... }`. `items` is None for `mod name;`."""

    name: str
    public: bool = False
    items: tuple["Item", ...] | None = None


Item = Union[
    ModuleDecl,
    TraitDecl,
    StructDecl,
    EnumDecl,
    UnionDecl,
    FunctionDecl,
    TypeAliasDecl,
    ConstDecl,
    UseDecl,
]


@dataclass(frozen=True)
class SourceFile:
    """One parsed file and the module its items belong to."""

    items: tuple[Item, ...]
    module_path: tuple[str, ...] = (ROOT_MODULE,)
    path: Path | None = field(default=None, compare=False)


# Rendering


def render_const(arg: ConstArg) -> str:
    if arg.literal is not None:
        return arg.literal
    assert arg.path is not None
    return render_path(arg.path)


def render_generic_arg(arg: GenericArg) -> str:
    if isinstance(arg, ConstArg):
        return render_const(arg)
    return render_type(arg)


def render_path(path: PathType) -> str:
    parts = []
    for segment in path.segments:
        text = segment.name
        if segment.args:
            text += "<" + ", ".join(render_generic_arg(arg) for arg in segment.args) + ">"
        parts.append(text)
    prefix = "::" if path.leading_colon else ""
    return prefix + "::".join(parts)


def render_type(ty: TypeExpr) -> str:
    """Render a type expression as Rust source text."""
    if isinstance(ty, PathType):
        return render_path(ty)
    if isinstance(ty, ArrayType):
        return f"[{render_type(ty.element)}; {render_const(ty.length)}]"
    if isinstance(ty, SliceType):
        return f"[{render_type(ty.element)}]"
    if isinstance(ty, TupleType):
        if len(ty.elements) == 1:
            return f"({render_type(ty.elements[0])},)"
        return "(" + ", ".join(render_type(elem) for elem in ty.elements) + ")"
    if isinstance(ty, ReferenceType):
        return ("&mut " if ty.mutable else "&") + render_type(ty.element)
    if isinstance(ty, PointerType):
        return ("*mut " if ty.mutable else "*const ") + render_type(ty.element)
    if isinstance(ty, TraitObjectType):
        return "dyn " + " + ".join(render_path(bound) for bound in ty.bounds)
    if isinstance(ty, FunctionType):
        return ty.text
    if isinstance(ty, UnsupportedType):
        return ty.text
    raise TypeError(f"Not a type expression: {ty!r}")


def render_method(method: Method) -> str:
    params = [method.receiver] if method.receiver else []
    params.extend(f"{param.name}: {render_type(param.type)}" for param in method.params)
    text = f"fn {method.name}({', '.join(params)})"
    if method.output is not None:
        text += f" -> {render_type(method.output)}"
    return text + ";"


def render_trait(decl: TraitDecl) -> str:
    lines = [f"{'pub ' if decl.public else ''}trait {decl.name} {{"]
    lines.extend(f"    {render_method(method)}" for method in decl.methods)
    lines.append("}")
    return "\n".join(lines)
