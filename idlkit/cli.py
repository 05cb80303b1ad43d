#!/usr/bin/env python3

import logging
from pathlib import Path

import click

from idlkit.compiler import CompileResult, compile_file
from idlkit.config import IdlConfig
from idlkit.console import Console
from idlkit.errors import IdlError
from idlkit.rewrite import rewrite_interface
from idlkit.syntax import render_trait, render_type
from idlkit.typeid import inject_typeid_module, render_typeid_module


def _load_config(config_path: Path | None, source: Path) -> IdlConfig:
    if config_path is not None:
        return IdlConfig.load_from_file(config_path)
    return IdlConfig.find_config(source) or IdlConfig()


def _compile(ctx: click.Context, source: Path) -> tuple[CompileResult, IdlConfig]:
    try:
        config = _load_config(ctx.obj["config_path"], source)
        return compile_file(source, config), config
    except IdlError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to idlkit_config.json (searched upward from FILE by default)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool):
    """idlkit: symbol resolution and boundary type ids for IDL crates."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def symbols(ctx: click.Context, file: Path):
    """Print the resolved symbol table."""
    result, _ = _compile(ctx, file)
    Console().print_symbols(result.tree)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def boundary(ctx: click.Context, file: Path):
    """List the types that cross an isolation boundary, with their ids."""
    result, _ = _compile(ctx, file)
    for boundary_type in result.boundary_types:
        click.echo(f"{boundary_type.id}\t{render_type(boundary_type.type)}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write to this file instead of stdout",
)
@click.option("--inject", is_flag=True, help="Emit FILE with its typeid module replaced")
@click.pass_context
def typeid(ctx: click.Context, file: Path, output: Path | None, inject: bool):
    """Generate the typeid module for FILE."""
    result, config = _compile(ctx, file)
    if inject:
        text = inject_typeid_module(file.read_text(), result.boundary_types, config)
    else:
        text = render_typeid_module(result.boundary_types, config)

    if output is None:
        click.echo(text, nl=False)
    else:
        output.write_text(text)
        click.echo(f"Wrote {len(result.boundary_types)} type ids to {output}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--src", default="crate", show_default=True, help="Leading path segment to replace")
@click.option("--dest", required=True, help="Replacement for the leading segment")
@click.pass_context
def rewrite(ctx: click.Context, file: Path, src: str, dest: str):
    """Print every interface with its type paths rebased from SRC to DEST."""
    result, _ = _compile(ctx, file)
    for path, decl in result.interfaces.items():
        click.echo(f"// {'::'.join(path)}")
        click.echo(render_trait(rewrite_interface(decl, src, dest)))


if __name__ == "__main__":
    cli()
