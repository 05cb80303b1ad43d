#!/usr/bin/env python3

import tempfile
from pathlib import Path

import pytest

from idlkit.errors import IdlError, IdlSyntaxError
from idlkit.parser import IdlParser
from idlkit.syntax import (
    ArrayType,
    ConstArg,
    ConstDecl,
    EnumDecl,
    FunctionDecl,
    FunctionType,
    ModuleDecl,
    PathType,
    PointerType,
    ReferenceType,
    SliceType,
    StructDecl,
    TraitDecl,
    TraitObjectType,
    TupleType,
    TypeAliasDecl,
    UseDecl,
    UseGlob,
    UseGroup,
    UseName,
    UsePath,
    UseRename,
    render_trait,
    render_type,
)


@pytest.fixture(scope="module")
def parser():
    return IdlParser()


@pytest.fixture
def temp_project():
    """Create a temporary directory for IDL sources."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


def test_parse_definitions(parser):
    source = parser.parse(
        """
        pub struct Foo;
        struct Bar { x: u8 }
        pub(crate) enum Kind { A, B }
        pub fn helper() {}
        pub type Alias = Foo;
        pub const N: usize = 16;
        static COUNTER: u32 = 0;
        const EXPR: usize = 4 * 4;
        """
    )
    assert source.module_path == ("crate",)
    assert source.items == (
        StructDecl("Foo", True),
        StructDecl("Bar", False),
        EnumDecl("Kind", True),
        FunctionDecl("helper", True),
        TypeAliasDecl("Alias", True, PathType.from_names(["Foo"])),
        ConstDecl("N", True, PathType.from_names(["usize"]), "16"),
        ConstDecl("COUNTER", False, PathType.from_names(["u32"]), "0", is_static=True),
        ConstDecl("EXPR", False, PathType.from_names(["usize"]), None),
    )


def test_parse_modules(parser):
    source = parser.parse(
        """
        pub mod pci;
        mod inner {
            pub struct Device;
            // comment
            #[derive(Debug)]
            pub struct Other;
        }
        """
    )
    assert source.items == (
        ModuleDecl("pci", True, None),
        ModuleDecl("inner", False, (StructDecl("Device", True), StructDecl("Other", True))),
    )


def test_parse_use_declarations(parser):
    source = parser.parse(
        """
        use alloc::vec::Vec;
        pub use crate::pci::{self, PCI as P, dev::Device};
        use super::Foo as Bar;
        use crate::net::*;
        """
    )
    assert source.items == (
        UseDecl(UsePath("alloc", UsePath("vec", UseName("Vec")))),
        UseDecl(
            UsePath(
                "crate",
                UsePath(
                    "pci",
                    UseGroup(
                        (
                            UseName("self"),
                            UseRename("PCI", "P"),
                            UsePath("dev", UseName("Device")),
                        )
                    ),
                ),
            ),
            public=True,
        ),
        UseDecl(UsePath("super", UseRename("Foo", "Bar"))),
        UseDecl(UsePath("crate", UsePath("net", UseGlob()))),
    )


def test_parse_trait_signatures(parser):
    source = parser.parse(
        """
        pub trait Net {
            fn send(&self, buf: RRef<[u8; N]>, flags: &mut [u8]) -> (u8, bool);
            fn info(&self) -> crate::a::B<u8, 4>;
            fn reset(&self);
            fn create() -> Option<Foo>;
        }
        """
    )
    (trait,) = source.items
    assert isinstance(trait, TraitDecl)
    assert trait.name == "Net"
    assert trait.public
    send, info, reset, create = trait.methods

    assert [p.name for p in send.params] == ["buf", "flags"]
    buf = send.params[0].type
    assert isinstance(buf, PathType)
    assert buf.names == ("RRef",)
    assert buf.args == (ArrayType(PathType.from_names(["u8"]), ConstArg(path=PathType.from_names(["N"]))),)
    assert send.params[1].type == ReferenceType(SliceType(PathType.from_names(["u8"])), mutable=True)
    assert send.output == TupleType((PathType.from_names(["u8"]), PathType.from_names(["bool"])))
    assert send.receiver

    assert render_type(info.output) == "crate::a::B<u8, 4>"
    assert info.output.args[1] == ConstArg(literal="4")

    assert reset.params == ()
    assert reset.output is None

    assert not create.receiver
    assert render_type(create.output) == "Option<Foo>"


def test_receivers_render_as_written(parser):
    code = "\n".join(
        [
            "pub trait Dev {",
            "    fn read(&self) -> u8;",
            "    fn write(&mut self, v: u8);",
            "    fn into_raw(self) -> u64;",
            "    fn consume(mut self);",
            "    fn new() -> u8;",
            "}",
        ]
    )
    (trait,) = parser.parse(code).items
    assert [m.receiver for m in trait.methods] == [
        "&self",
        "&mut self",
        "self",
        "mut self",
        None,
    ]
    assert render_trait(trait) == code


def test_parse_unit_and_unsupported_types(parser):
    source = parser.parse(
        """
        trait T {
            fn a(&self, cb: fn(u8) -> u8, p: *const u8, q: *mut u8) -> ();
            fn b(&self, x: &dyn Net);
        }
        """
    )
    a, b = source.items[0].methods
    assert isinstance(a.params[0].type, FunctionType)
    assert a.params[1].type == PointerType(PathType.from_names(["u8"]), mutable=False)
    assert a.params[2].type == PointerType(PathType.from_names(["u8"]), mutable=True)
    assert a.output == TupleType()
    assert b.params[0].type == ReferenceType(TraitObjectType((PathType.from_names(["Net"]),)))


def test_syntax_error(parser):
    with pytest.raises(IdlSyntaxError) as exc_info:
        parser.parse("pub struct Ok;\n\npub trait {\n")
    assert exc_info.value.line is not None
    assert "line" in str(exc_info.value)


def test_invalid_utf8_is_a_syntax_error(parser):
    with pytest.raises(IdlSyntaxError, match="UTF-8") as exc_info:
        parser.parse(b"pub struct Ok;\n\npub struct \xff\xfe;\n")
    assert exc_info.value.line == 3


def test_find_module_span(parser):
    code = "pub struct A;\npub mod typeid { pub trait X {} }\n"
    start, end = parser.find_module_span(code, "typeid")
    assert code[start:end] == "pub mod typeid { pub trait X {} }"
    assert parser.find_module_span(code, "missing") is None


def test_load_forest(parser, temp_project):
    (temp_project / "lib.rs").write_text("pub mod pci;\nmod net { pub mod dev; }\n")
    (temp_project / "pci.rs").write_text("pub mod bus;\npub struct PCI;\n")
    (temp_project / "pci").mkdir()
    (temp_project / "pci" / "bus.rs").write_text("pub struct Bus;\n")
    (temp_project / "net" / "dev").mkdir(parents=True)
    (temp_project / "net" / "dev" / "mod.rs").write_text("pub struct Dev;\n")

    forest = parser.load_forest(temp_project / "lib.rs")
    assert [source.module_path for source in forest] == [
        ("crate",),
        ("crate", "pci"),
        ("crate", "net", "dev"),
        ("crate", "pci", "bus"),
    ]
    assert forest[1].path == temp_project / "pci.rs"
    assert forest[3].items == (StructDecl("Bus", True),)


def test_load_forest_missing_module_file(parser, temp_project):
    (temp_project / "lib.rs").write_text("mod missing;\n")
    with pytest.raises(IdlError, match="crate::missing"):
        parser.load_forest(temp_project / "lib.rs")
