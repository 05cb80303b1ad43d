#!/usr/bin/env python3

"""tree-sitter based syntax-tree provider for IDL sources."""

import logging
from pathlib import Path

import tree_sitter_rust as tsrust
from tree_sitter import Language, Node, Parser

from idlkit.errors import IdlError, IdlSyntaxError
from idlkit.syntax import (
    ROOT_MODULE,
    ArrayType,
    ConstArg,
    ConstDecl,
    EnumDecl,
    FunctionDecl,
    FunctionType,
    GenericArg,
    Item,
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
    TypeAliasDecl,
    TypeExpr,
    UnionDecl,
    UnsupportedType,
    UseDecl,
    UseGlob,
    UseGroup,
    UseName,
    UsePath,
    UseRename,
    UseTree,
)

logger = logging.getLogger(__name__)

LITERAL_NODES = {
    "integer_literal",
    "float_literal",
    "boolean_literal",
    "char_literal",
    "string_literal",
    "raw_string_literal",
}

IGNORED_NODES = {
    "line_comment",
    "block_comment",
    "attribute_item",
    "inner_attribute_item",
}

NAME_NODES = {"identifier", "type_identifier", "primitive_type", "self", "super", "crate"}


# Helper to avoid type-checking warnings.
def _node_text(node: Node) -> str:
    assert node.text is not None
    return node.text.decode().strip()


def _line(node: Node) -> int:
    return node.start_point[0] + 1


def _named(node: Node) -> list[Node]:
    return [child for child in node.named_children if child.type not in IGNORED_NODES]


def _is_public(node: Node) -> bool:
    return any(child.type == "visibility_modifier" for child in node.children)


def _is_mutable(node: Node) -> bool:
    return any(child.type == "mutable_specifier" for child in node.children)


def _receiver(node: Node) -> str:
    """Receiver as written, e.g. `&self`, `&mut self` or `mut self`."""
    return " ".join(_node_text(child) for child in node.children).replace("& ", "&")


def _first_error(node: Node) -> Node | None:
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = _first_error(child)
        if found is not None:
            return found
    return node


def _nest(names: list[str], tree: UseTree) -> UseTree:
    for name in reversed(names):
        tree = UsePath(name, tree)
    return tree


class IdlParser:
    """Turns IDL source text into `SourceFile` syntax trees."""

    def __init__(self):
        self.rust_language = Language(tsrust.language())
        self.rust_parser = Parser(self.rust_language)

    def parse(
        self,
        code: bytes | str,
        module_path: tuple[str, ...] = (ROOT_MODULE,),
        path: Path | None = None,
    ) -> SourceFile:
        where = f" in {path}" if path else ""
        if isinstance(code, str):
            code = code.encode()
        else:
            try:
                code.decode()
            except UnicodeDecodeError as e:
                raise IdlSyntaxError(
                    f"Invalid UTF-8{where}", code[: e.start].count(b"\n") + 1
                ) from e
        tree = self.rust_parser.parse(code)
        error = _first_error(tree.root_node)
        if error is not None:
            raise IdlSyntaxError(f"Invalid IDL syntax{where}: `{_node_text(error)[:40]}`", _line(error))
        return SourceFile(self._items(tree.root_node), tuple(module_path), path)

    def parse_file(self, path: Path, module_path: tuple[str, ...] = (ROOT_MODULE,)) -> SourceFile:
        logger.debug(f"Parsing {path} as {'::'.join(module_path)}")
        return self.parse(path.read_bytes(), module_path, path)

    def find_module_span(self, code: bytes | str, name: str) -> tuple[int, int] | None:
        """Byte range of the top-level `mod name` item in `code`, if there is one."""
        if isinstance(code, str):
            code = code.encode()
        tree = self.rust_parser.parse(code)
        for child in tree.root_node.named_children:
            if child.type != "mod_item":
                continue
            name_node = child.child_by_field_name("name")
            if name_node is not None and _node_text(name_node) == name:
                return child.start_byte, child.end_byte
        return None

    def load_forest(self, root_file: Path) -> list[SourceFile]:
        """Parse `root_file` and every file it pulls in through `mod name;`.

        `mod x;` in the root file or a `mod.rs` is read from `x.rs` or `x/mod.rs`
        next to it; in any other `y.rs` it is read from `y/x.rs` or `y/x/mod.rs`.
        """
        forest = []
        pending = [(root_file, (ROOT_MODULE,), True)]
        while pending:
            file_path, module_path, is_mod_root = pending.pop(0)
            source = self.parse_file(file_path, module_path)
            forest.append(source)
            base = file_path.parent
            if not is_mod_root:
                base = base / file_path.stem
            for decl_path in self._external_modules(source.items, ()):
                pending.append(self._module_file(base, module_path, decl_path))
        return forest

    def _external_modules(
        self, items: tuple[Item, ...], prefix: tuple[str, ...]
    ) -> list[tuple[str, ...]]:
        result = []
        for item in items:
            if not isinstance(item, ModuleDecl):
                continue
            if item.items is None:
                result.append(prefix + (item.name,))
            else:
                result.extend(self._external_modules(item.items, prefix + (item.name,)))
        return result

    def _module_file(
        self, base: Path, parent_path: tuple[str, ...], decl_path: tuple[str, ...]
    ) -> tuple[Path, tuple[str, ...], bool]:
        directory = base.joinpath(*decl_path[:-1])
        name = decl_path[-1]
        module_path = parent_path + decl_path
        candidate = directory / f"{name}.rs"
        if candidate.exists():
            return candidate, module_path, False
        candidate = directory / name / "mod.rs"
        if candidate.exists():
            return candidate, module_path, True
        raise IdlError(f"File not found for module `{'::'.join(module_path)}` in {directory}")

    # Items

    def _items(self, node: Node) -> tuple[Item, ...]:
        items = []
        for child in _named(node):
            item = self._item(child)
            if item is not None:
                items.append(item)
        return tuple(items)

    def _item(self, node: Node) -> Item | None:
        public = _is_public(node)
        name_node = node.child_by_field_name("name")
        name = _node_text(name_node) if name_node is not None else ""

        if node.type == "mod_item":
            body = node.child_by_field_name("body")
            items = self._items(body) if body is not None else None
            return ModuleDecl(name, public, items)
        elif node.type == "trait_item":
            return TraitDecl(name, public, self._trait_methods(node))
        elif node.type == "struct_item":
            return StructDecl(name, public)
        elif node.type == "enum_item":
            return EnumDecl(name, public)
        elif node.type == "union_item":
            return UnionDecl(name, public)
        elif node.type in ("function_item", "function_signature_item"):
            return FunctionDecl(name, public)
        elif node.type == "type_item":
            return TypeAliasDecl(name, public, self._type(node.child_by_field_name("type")))
        elif node.type in ("const_item", "static_item"):
            type_node = node.child_by_field_name("type")
            return ConstDecl(
                name,
                public,
                self._type(type_node) if type_node is not None else None,
                self._literal(node.child_by_field_name("value")),
                is_static=node.type == "static_item",
            )
        elif node.type == "use_declaration":
            tree, leading_colon = self._use_tree(node.child_by_field_name("argument"))
            return UseDecl(tree, public, leading_colon)

        logger.debug(f"Skipping {node.type} at line {_line(node)}")
        return None

    def _trait_methods(self, node: Node) -> tuple[Method, ...]:
        body = node.child_by_field_name("body")
        if body is None:
            return ()
        methods = []
        for child in _named(body):
            if child.type not in ("function_signature_item", "function_item"):
                logger.debug(f"Skipping trait member {child.type} at line {_line(child)}")
                continue
            params = []
            receiver: str | None = None
            parameters = child.child_by_field_name("parameters")
            for param in _named(parameters) if parameters is not None else []:
                if param.type == "self_parameter":
                    receiver = _receiver(param)
                elif param.type == "parameter":
                    params.append(
                        Param(
                            _node_text(param.child_by_field_name("pattern")),
                            self._type(param.child_by_field_name("type")),
                        )
                    )
                else:
                    raise IdlSyntaxError(
                        f"Unsupported parameter `{_node_text(param)}`", _line(param)
                    )
            output_node = child.child_by_field_name("return_type")
            output = self._type(output_node) if output_node is not None else None
            name = _node_text(child.child_by_field_name("name"))
            methods.append(Method(name, tuple(params), output, receiver))
        return tuple(methods)

    def _literal(self, node: Node | None) -> str | None:
        if node is None:
            return None
        if node.type in LITERAL_NODES:
            return _node_text(node)
        if node.type == "negative_literal" or (
            node.type == "unary_expression"
            and _node_text(node).startswith("-")
            and all(child.type in LITERAL_NODES for child in _named(node))
        ):
            return _node_text(node).replace(" ", "")
        return None

    # Use trees

    def _use_tree(self, node: Node) -> tuple[UseTree, bool]:
        """Convert a use clause. Returns the tree and whether it starts with `::`."""
        if node.type in NAME_NODES:
            return UseName(_node_text(node)), False
        if node.type == "scoped_identifier":
            names, leading_colon = self._path_names(node)
            return _nest(names[:-1], UseName(names[-1])), leading_colon
        if node.type == "use_as_clause":
            names, leading_colon = self._path_names(node.child_by_field_name("path"))
            alias = _node_text(node.child_by_field_name("alias"))
            return _nest(names[:-1], UseRename(names[-1], alias)), leading_colon
        if node.type == "use_wildcard":
            children = _named(node)
            if not children:
                return UseGlob(), False
            names, leading_colon = self._path_names(children[0])
            return _nest(names, UseGlob()), leading_colon
        if node.type == "use_list":
            return UseGroup(tuple(self._use_tree(c)[0] for c in _named(node))), False
        if node.type == "scoped_use_list":
            group, _ = self._use_tree(node.child_by_field_name("list"))
            path = node.child_by_field_name("path")
            if path is None:
                return group, True
            names, leading_colon = self._path_names(path)
            return _nest(names, group), leading_colon
        raise IdlSyntaxError(f"Unsupported use clause `{_node_text(node)}`", _line(node))

    # Paths and types

    def _path_names(self, node: Node) -> tuple[list[str], bool]:
        segments, leading_colon = self._path_segments(node)
        return [segment.name for segment in segments], leading_colon

    def _path_segments(self, node: Node) -> tuple[list[PathSegment], bool]:
        if node.type in NAME_NODES:
            return [PathSegment(_node_text(node))], False
        if node.type in ("scoped_identifier", "scoped_type_identifier"):
            name = _node_text(node.child_by_field_name("name"))
            path = node.child_by_field_name("path")
            if path is None:
                return [PathSegment(name)], True
            segments, leading_colon = self._path_segments(path)
            return segments + [PathSegment(name)], leading_colon
        if node.type in ("generic_type", "generic_type_with_turbofish"):
            segments, leading_colon = self._path_segments(node.child_by_field_name("type"))
            args = self._type_arguments(node.child_by_field_name("type_arguments"))
            segments[-1] = PathSegment(segments[-1].name, args)
            return segments, leading_colon
        raise IdlSyntaxError(f"Unsupported path `{_node_text(node)}`", _line(node))

    def _type_arguments(self, node: Node) -> tuple[GenericArg, ...]:
        args: list[GenericArg] = []
        for child in _named(node):
            if child.type == "lifetime":
                continue
            const = self._const_arg(child)
            if const is not None:
                args.append(const)
            else:
                args.append(self._type(child))
        return tuple(args)

    def _const_arg(self, node: Node) -> ConstArg | None:
        """A const generic argument or array length, None if `node` is not one."""
        if node.type in LITERAL_NODES:
            return ConstArg(literal=_node_text(node))
        if node.type in ("identifier", "scoped_identifier"):
            segments, leading_colon = self._path_segments(node)
            return ConstArg(path=PathType(tuple(segments), leading_colon))
        if node.type in ("block", "expression_statement"):
            children = _named(node)
            if len(children) == 1:
                return self._const_arg(children[0])
        return None

    def _type(self, node: Node) -> TypeExpr:
        if node.type in (
            "type_identifier",
            "primitive_type",
            "scoped_type_identifier",
            "generic_type",
        ):
            segments, leading_colon = self._path_segments(node)
            return PathType(tuple(segments), leading_colon)
        elif node.type == "array_type":
            element = self._type(node.child_by_field_name("element"))
            length_node = node.child_by_field_name("length")
            if length_node is None:
                return SliceType(element)
            length = self._const_arg(length_node)
            if length is None:
                return UnsupportedType("array_length", _node_text(node))
            return ArrayType(element, length)
        elif node.type == "tuple_type":
            return TupleType(tuple(self._type(child) for child in _named(node)))
        elif node.type == "unit_type":
            return TupleType()
        elif node.type == "reference_type":
            return ReferenceType(self._type(node.child_by_field_name("type")), _is_mutable(node))
        elif node.type == "pointer_type":
            return PointerType(self._type(node.child_by_field_name("type")), _is_mutable(node))
        elif node.type == "function_type":
            return FunctionType(_node_text(node))
        elif node.type == "dynamic_type":
            return self._trait_object([node.child_by_field_name("trait")], node)
        elif node.type == "bounded_type":
            children = [c for c in _named(node) if c.type != "lifetime"]
            if children and children[0].type == "dynamic_type":
                children[0] = children[0].child_by_field_name("trait")
                return self._trait_object(children, node)

        return UnsupportedType(node.type, _node_text(node))

    def _trait_object(self, bound_nodes: list[Node], node: Node) -> TypeExpr:
        bounds = []
        for bound_node in bound_nodes:
            bound = self._type(bound_node)
            if not isinstance(bound, PathType):
                return UnsupportedType(node.type, _node_text(node))
            bounds.append(bound)
        return TraitObjectType(tuple(bounds))
