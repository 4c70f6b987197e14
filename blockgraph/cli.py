"""Click CLI with scan, export, styles, and usages subcommands."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from blockgraph import __version__
from blockgraph.engine import BlockEngine
from blockgraph.models import BlockKind, ComponentBlock, CssClassBlock, EngineConfig

_KIND_CHOICES = [kind.value for kind in BlockKind]

_KIND_COLORS = {
    "component": "magenta",
    "element": "white",
    "component-instance": "green",
    "html-root": "bright_blue",
    "html-element": "blue",
    "css-class": "yellow",
    "object": "cyan",
}


def _load(project_dir: Path, tolerant: bool) -> BlockEngine:
    engine = BlockEngine(project_dir, EngineConfig(tolerate_syntax_errors=tolerant))
    try:
        engine.load_project()
    except ImportError as e:
        raise click.ClickException(str(e))
    return engine


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Log resolution details")
def cli(verbose: bool):
    """blockgraph: Parse a UI project into a queryable block graph."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("project_dir", type=click.Path(exists=True, file_okay=False, path_type=Path), default=".")
@click.option("--kind", "-k", type=click.Choice(_KIND_CHOICES), help="Filter by block kind")
@click.option("--tolerant", is_flag=True, help="Keep blocks from files with syntax errors")
def scan(project_dir: Path, kind: str | None, tolerant: bool):
    """List the top-level blocks of a project, grouped by file."""
    engine = _load(project_dir, tolerant)
    blocks = [b for b in engine.graph if b.parent_id is None or kind]
    if kind:
        blocks = [b for b in blocks if b.kind.value == kind]

    if not blocks:
        click.echo("No blocks found.")
        return

    click.echo(f"\nFound {len(blocks)} block(s):\n")

    by_file: dict[str, list] = {}
    for block in blocks:
        by_file.setdefault(block.rel_path, []).append(block)

    for rel_path, file_blocks in sorted(by_file.items()):
        click.echo(click.style(rel_path, fg="cyan"))
        for block in sorted(file_blocks, key=lambda b: (b.start_line, b.start_col)):
            color = _KIND_COLORS.get(block.kind.value, "white")
            extra = ""
            if isinstance(block, ComponentBlock) and block.usages:
                extra = click.style(f"  {len(block.usages)} usage(s)", fg="green")
            click.echo(
                f"  {click.style(block.kind.value, fg=color):>28}  "
                f"{block.name}  "
                f"{click.style(f'L{block.start_line}', dim=True)}{extra}"
            )
        click.echo()

    if engine.skipped:
        click.echo(click.style("Skipped:", fg="red"))
        for rel_path in engine.skipped:
            click.echo(f"  {rel_path}")
        click.echo()

    counts: dict[str, int] = {}
    for block in engine.graph:
        counts[block.kind.value] = counts.get(block.kind.value, 0) + 1
    click.echo("Summary:")
    for kind_name, count in sorted(counts.items()):
        click.echo(f"  {kind_name}: {count}")


@cli.command()
@click.argument("project_dir", type=click.Path(exists=True, file_okay=False, path_type=Path), default=".")
@click.option("-o", "--output", "output_file", type=click.Path(dir_okay=False, path_type=Path), help="Write JSON here instead of stdout")
@click.option("--tolerant", is_flag=True, help="Keep blocks from files with syntax errors")
def export(project_dir: Path, output_file: Path | None, tolerant: bool):
    """Export the full block graph as JSON."""
    engine = _load(project_dir, tolerant)
    data = engine.tree().to_dict()
    data["stats"] = {
        "blocks": len(engine.graph),
        "files": len({b.file_path for b in engine.graph}),
        "skipped": len(engine.skipped),
    }
    text = json.dumps(data, indent=2)

    if output_file is None:
        click.echo(text)
        return
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(text, encoding="utf-8")
    click.echo(f"Wrote {data['stats']['blocks']} block(s) to {output_file}")


@cli.command()
@click.argument("project_dir", type=click.Path(exists=True, file_okay=False, path_type=Path), default=".")
@click.argument("class_name")
def styles(project_dir: Path, class_name: str):
    """Show every rule for CLASS_NAME and the elements it styles."""
    engine = _load(project_dir, False)
    rules = [b for b in engine.graph.of_type(CssClassBlock) if b.name == class_name]
    if not rules:
        raise click.ClickException(f"No rule for class {class_name!r}")

    for rule in sorted(rules, key=lambda r: (r.rel_path, r.cascade_key)):
        click.echo(
            f"{click.style(rule.rel_path, fg='cyan')}:{rule.start_line}  "
            f"{rule.selector} {{ {rule.declarations} }}"
        )
        if not rule.used_in:
            click.echo(click.style("  (not applied)", dim=True))
        for user_id in rule.used_in:
            user = engine.get(user_id)
            if user is not None:
                click.echo(f"  <{user.name}>  {user.rel_path}:{user.start_line}")


@cli.command()
@click.argument("project_dir", type=click.Path(exists=True, file_okay=False, path_type=Path), default=".")
@click.argument("component_name")
def usages(project_dir: Path, component_name: str):
    """List the call sites of COMPONENT_NAME."""
    engine = _load(project_dir, False)
    components = engine.graph.find_components(component_name)
    if not components:
        raise click.ClickException(f"No component named {component_name!r}")

    for component in components:
        click.echo(click.style(f"{component.name}  {component.rel_path}:{component.start_line}", fg="magenta"))
        if component.args:
            args = ", ".join(f"{name}: {type_}" for name, type_ in component.args.items())
            click.echo(f"  args: {args}")
        if not component.usages:
            click.echo(click.style("  (no usages)", dim=True))
        for usage in component.usages:
            props = " ".join(f"{k}={v.value!r}" for k, v in usage.props.items())
            click.echo(f"  {usage.rel_path}:{usage.start_line}  {props}")


if __name__ == "__main__":
    cli()
