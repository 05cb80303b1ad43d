#!/usr/bin/env python3

"""Render the `typeid` module: runtime ids and destructors for boundary types."""

import logging

from idlkit.classify import BoundaryType
from idlkit.config import IdlConfig
from idlkit.parser import IdlParser
from idlkit.syntax import render_type

logger = logging.getLogger(__name__)

INDENT = "    "


def render_typeid_impl(boundary: BoundaryType, trait_name: str = "TypeIdentifiable") -> str:
    return "\n".join(
        [
            f"impl {trait_name} for {render_type(boundary.type)} {{",
            f"{INDENT}fn type_id() -> u64 {{",
            f"{INDENT * 2}{boundary.id}u64",
            f"{INDENT}}}",
            "}",
        ]
    )


def render_drop_map(boundary_types: list[BoundaryType], config: IdlConfig | None = None) -> str:
    """Render the `DropMap` that finds the destructor of a boundary type by its id.

    `populate_drop_map` registers every boundary type, in id order.
    """
    config = config or IdlConfig()
    map_type = config.drop_map_import[-1]
    bounds = f"{config.cleanup_trait[-1]} + {config.typeid_trait}"
    drop_fn = "unsafe fn(*mut u8) -> ()"
    lines = [
        f"use {'::'.join(config.drop_map_import)};",
        f"use {'::'.join(config.cleanup_trait)};",
        "",
        "/// Drops the pointer, assumes it is of type T",
        f"unsafe fn drop_t<T: {bounds}>(ptr: *mut u8) {{",
        f"{INDENT}core::ptr::drop_in_place(ptr as *mut T);",
        "}",
        "",
        f"pub struct DropMap({map_type}<u64, {drop_fn}>);",
        "",
        "impl DropMap {",
        f"{INDENT}pub fn new() -> Self {{",
        f"{INDENT * 2}let mut drop_map = Self({map_type}::new());",
        f"{INDENT * 2}drop_map.populate_drop_map();",
        f"{INDENT * 2}drop_map",
        f"{INDENT}}}",
        "",
        f"{INDENT}fn add_type<T: 'static + {bounds}>(&mut self) {{",
        f"{INDENT * 2}self.0.insert(T::type_id(), drop_t::<T>);",
        f"{INDENT}}}",
        "",
        f"{INDENT}pub fn get_drop(&self, type_id: u64) -> Option<&{drop_fn}> {{",
        f"{INDENT * 2}self.0.get(&type_id)",
        f"{INDENT}}}",
        "",
        f"{INDENT}fn populate_drop_map(&mut self) {{",
    ]
    for boundary in sorted(boundary_types, key=lambda b: b.id):
        lines.append(f"{INDENT * 2}self.add_type::<{render_type(boundary.type)}>();")
    lines.append(f"{INDENT}}}")
    lines.append("}")
    return "\n".join(lines)


def render_typeid_module(
    boundary_types: list[BoundaryType], config: IdlConfig | None = None
) -> str:
    """Render `pub mod typeid { ... }` with one impl per boundary type, in id order,
    followed by the drop map unless `config.drop_map` is off."""
    config = config or IdlConfig()
    trait_name = config.typeid_trait
    body = [
        f"pub trait {trait_name} {{",
        f"{INDENT}fn type_id() -> u64;",
        "}",
    ]
    for boundary in sorted(boundary_types, key=lambda b: b.id):
        body.append("")
        body.append(render_typeid_impl(boundary, trait_name))
    if config.drop_map:
        body.append("")
        body.append(render_drop_map(boundary_types, config))

    lines = [f"pub mod {config.typeid_module} {{"]
    for line in "\n".join(body).splitlines():
        lines.append(f"{INDENT}{line}" if line else "")
    lines.append("}")
    return "\n".join(lines) + "\n"


def inject_typeid_module(
    code: str, boundary_types: list[BoundaryType], config: IdlConfig | None = None
) -> str:
    """Return `code` with any existing `typeid` module replaced by a freshly rendered one."""
    config = config or IdlConfig()
    span = IdlParser().find_module_span(code, config.typeid_module)
    if span is not None:
        logger.info(f"Replacing existing `{config.typeid_module}` module")
        data = code.encode()
        code = (data[: span[0]] + data[span[1] :]).decode()
    return code.rstrip() + "\n\n" + render_typeid_module(boundary_types, config)
