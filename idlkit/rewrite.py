#!/usr/bin/env python3

"""Rewrite the leading segment of type paths in an interface declaration.

The same interface is emitted under two root conventions, e.g. once with
`crate::` paths and once with `interface::` paths. No resolution happens
here; only the first segment of each path is compared and replaced.
"""

from dataclasses import replace

from idlkit.syntax import (
    ArrayType,
    ConstArg,
    GenericArg,
    Method,
    Param,
    PathSegment,
    PathType,
    ReferenceType,
    SliceType,
    TraitDecl,
    TraitObjectType,
    TupleType,
    TypeExpr,
)


def rewrite_path(path: PathType, src: str, dest: str) -> PathType:
    segments = tuple(
        PathSegment(segment.name, tuple(_rewrite_arg(arg, src, dest) for arg in segment.args))
        for segment in path.segments
    )
    if segments[0].name == src:
        segments = (replace(segments[0], name=dest),) + segments[1:]
    return replace(path, segments=segments)


def _rewrite_arg(arg: GenericArg, src: str, dest: str) -> GenericArg:
    if isinstance(arg, ConstArg):
        return arg
    return rewrite_type(arg, src, dest)


def rewrite_type(ty: TypeExpr, src: str, dest: str) -> TypeExpr:
    if isinstance(ty, PathType):
        return rewrite_path(ty, src, dest)
    if isinstance(ty, ArrayType):
        return replace(ty, element=rewrite_type(ty.element, src, dest))
    if isinstance(ty, (SliceType, ReferenceType)):
        return replace(ty, element=rewrite_type(ty.element, src, dest))
    if isinstance(ty, TupleType):
        return TupleType(tuple(rewrite_type(elem, src, dest) for elem in ty.elements))
    if isinstance(ty, TraitObjectType):
        return TraitObjectType(tuple(rewrite_path(bound, src, dest) for bound in ty.bounds))
    # Pointers, function types and unsupported shapes are left alone.
    return ty


def rewrite_method(method: Method, src: str, dest: str) -> Method:
    params = tuple(
        Param(param.name, rewrite_type(param.type, src, dest)) for param in method.params
    )
    output = method.output
    if output is not None:
        output = rewrite_type(output, src, dest)
    return replace(method, params=params, output=output)


def rewrite_interface(decl: TraitDecl, src: str, dest: str) -> TraitDecl:
    """Return a copy of `decl` with `src` replaced by `dest` as a leading path segment."""
    return replace(decl, methods=tuple(rewrite_method(m, src, dest) for m in decl.methods))
