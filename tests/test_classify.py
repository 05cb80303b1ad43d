#!/usr/bin/env python3

import pytest

from idlkit.classify import BoundaryType, TypeClassifier
from idlkit.config import IdlConfig
from idlkit.errors import InvalidTypeUsage
from idlkit.populate import populate
from idlkit.resolve import resolve
from idlkit.symbol_tree import SymbolTree
from idlkit.syntax import (
    ArrayType,
    ConstArg,
    ConstDecl,
    FunctionType,
    Method,
    ModuleDecl,
    Param,
    PathSegment,
    PathType,
    PointerType,
    ReferenceType,
    SliceType,
    SourceFile,
    StructDecl,
    TraitDecl,
    TraitObjectType,
    TupleType,
    UseDecl,
    UseName,
    UsePath,
    UseRename,
    render_type,
)

UNIT = TupleType()


def path(text, *args):
    """`path("a::B", arg)` builds `a::B<arg>`."""
    names = text.split("::")
    segments = tuple(PathSegment(name) for name in names[:-1])
    return PathType(segments + (PathSegment(names[-1], tuple(args)),))


def rref(ty):
    return path("RRef", ty)


def use(*names, rename=None):
    tree = UseRename(names[-1], rename) if rename else UseName(names[-1])
    for name in reversed(names[:-1]):
        tree = UsePath(name, tree)
    return UseDecl(tree)


def method(name, *params, output=None):
    return Method(name, tuple(Param(f"p{i}", ty) for i, ty in enumerate(params)), output)


RREF_MODULE = ModuleDecl(
    "rref",
    True,
    (ModuleDecl("rref", True, (StructDecl("RRef", True),)),),
)


def compile_items(*items, config=None):
    forest = [SourceFile((RREF_MODULE, use("crate", "rref", "rref", "RRef")) + tuple(items))]
    tree = SymbolTree()
    populate(tree, forest)
    resolve(tree)
    classifier = TypeClassifier(tree, config)
    return classifier, classifier.classify(forest)


def interface(*methods, name="Iface"):
    return TraitDecl(name, True, tuple(methods))


def test_numbering_is_deterministic_and_deduplicated():
    _, types = compile_items(
        StructDecl("Foo", True),
        StructDecl("Bar", True),
        interface(
            method("m1", rref(path("Foo")), output=UNIT),
            method("m2", output=rref(path("Bar"))),
            method("m3", output=rref(path("Foo"))),
        ),
    )
    assert types == [
        BoundaryType(PathType.from_names(("crate", "Foo")), 0),
        BoundaryType(PathType.from_names(("crate", "Bar")), 1),
    ]
    assert str(types[1]) == "crate::Bar = 1"


def test_aliases_collapse_to_one_id():
    _, types = compile_items(
        ModuleDecl("pci", True, (StructDecl("PCI", True),)),
        use("crate", "pci", "PCI"),
        use("self", "pci", "PCI", rename="Bus"),
        interface(method("a", rref(path("PCI"))), method("b", rref(path("Bus")))),
    )
    assert [render_type(t.type) for t in types] == ["crate::pci::PCI"]


def test_unwrapped_types_are_not_boundary_types():
    _, types = compile_items(
        StructDecl("Foo", True),
        interface(method("f", path("Foo"), path("u64"), output=path("Option", path("Foo")))),
    )
    assert types == []


def test_nested_wrappers_in_preorder():
    _, types = compile_items(
        StructDecl("Foo", True),
        StructDecl("Bar", True),
        interface(
            method(
                "f",
                TupleType((rref(path("Option", rref(path("Foo")))), rref(path("Bar")))),
            ),
        ),
    )
    assert [render_type(t.type) for t in types] == [
        "Option<crate::rref::rref::RRef<crate::Foo>>",
        "crate::Foo",
        "crate::Bar",
    ]
    assert [t.id for t in types] == [0, 1, 2]


def test_wrappers_inside_arrays_slices_and_references():
    _, types = compile_items(
        StructDecl("A", True),
        StructDecl("B", True),
        StructDecl("C", True),
        interface(
            method(
                "f",
                ArrayType(rref(path("A")), ConstArg(literal="4")),
                SliceType(rref(path("B"))),
                ReferenceType(rref(path("C")), mutable=True),
            ),
        ),
    )
    assert [render_type(t.type) for t in types] == ["crate::A", "crate::B", "crate::C"]


def test_array_length_constant_becomes_literal():
    _, types = compile_items(
        ConstDecl("N", True, path("usize"), "32"),
        interface(method("f", rref(ArrayType(path("u8"), ConstArg(path=path("N")))))),
    )
    assert types == [BoundaryType(ArrayType(path("u8"), ConstArg(literal="32")), 0)]
    assert render_type(types[0].type) == "[u8; 32]"


def test_const_generic_argument_becomes_literal():
    _, types = compile_items(
        ConstDecl("SIZE", True, path("usize"), "8"),
        StructDecl("Buf", True),
        interface(method("f", rref(path("Buf", path("SIZE"))))),
    )
    assert render_type(types[0].type) == "crate::Buf<8>"


def test_array_length_must_be_a_literal_constant():
    with pytest.raises(InvalidTypeUsage):
        compile_items(
            StructDecl("N", True),
            interface(method("f", ArrayType(path("u8"), ConstArg(path=path("N"))))),
        )
    with pytest.raises(InvalidTypeUsage, match="literal"):
        compile_items(
            ConstDecl("N", True, path("usize"), None),
            interface(method("f", ArrayType(path("u8"), ConstArg(path=path("N"))))),
        )


def test_foreign_types_keep_their_path():
    _, types = compile_items(
        use("alloc", "vec", "Vec"),
        StructDecl("X", True),
        interface(method("f", rref(path("Vec", path("X"))))),
    )
    assert render_type(types[0].type) == "alloc::vec::Vec<crate::X>"


def test_trait_objects_are_canonicalized():
    classifier, _ = compile_items(
        ModuleDecl("net", True, (TraitDecl("Net", True),)),
        use("crate", "net", "Net"),
        interface(method("f", rref(path("u8")))),
    )
    canonical = classifier.canonicalize(
        classifier.tree.root, ReferenceType(TraitObjectType((path("Net"),)))
    )
    assert render_type(canonical) == "&dyn crate::net::Net"


def test_resolve_interface():
    classifier, _ = compile_items(
        ModuleDecl("pci", True, (StructDecl("PCI", True),)),
        use("crate", "pci", "PCI"),
        StructDecl("Error", True),
    )
    decl = interface(
        method("probe", rref(path("PCI")), output=TupleType((path("u8"), path("Error")))),
    )
    resolved = classifier.resolve_interface(classifier.tree.root, decl)
    assert resolved.name == "Iface"
    params = resolved.methods[0].params
    assert render_type(params[0].type) == "crate::rref::rref::RRef<crate::pci::PCI>"
    assert render_type(resolved.methods[0].output) == "(u8, crate::Error)"
    # The input is left untouched
    assert decl.methods[0].params[0].type == rref(path("PCI"))


def test_interfaces_in_nested_modules():
    _, types = compile_items(
        ModuleDecl(
            "inner",
            True,
            (
                StructDecl("Foo", True),
                use("crate", "rref", "rref", "RRef"),
                interface(method("f", rref(path("Foo"))), name="Inner"),
            ),
        ),
        StructDecl("Foo", True),
        interface(method("g", rref(path("Foo")))),
    )
    assert [render_type(t.type) for t in types] == ["crate::inner::Foo", "crate::Foo"]


def test_custom_wrapper_path():
    config = IdlConfig(boundary_wrapper=["crate", "Boxed"])
    _, types = compile_items(
        StructDecl("Boxed", True),
        StructDecl("Foo", True),
        interface(method("f", path("Boxed", path("Foo")), rref(path("u8")))),
        config=config,
    )
    assert [render_type(t.type) for t in types] == ["crate::Foo"]


@pytest.mark.parametrize(
    "ty",
    [
        PointerType(path("u8"), mutable=True),
        FunctionType("fn(u8) -> u8"),
        path("Missing"),
        path("rref"),
        path("RRef"),
        path("RRef", path("u8"), path("u16")),
        PathType((PathSegment("rref", (path("u8"),)), PathSegment("rref"), PathSegment("RRef"))),
    ],
)
def test_invalid_type_usage(ty):
    with pytest.raises(InvalidTypeUsage):
        compile_items(interface(method("f", ty)))
