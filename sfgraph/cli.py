"""CLI entrypoint for sfgraph."""

import logging
import sys
from pathlib import Path

import click
import yaml

from . import __version__
from .categories import Category, RelationshipType
from .graph import GraphError
from .layout import LayoutConfig, load_layout_config
from .models import LayoutKind


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
        return
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


@click.group()
@click.version_option(__version__, prog_name="sfgraph")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="TOML file with [force], [circular] and [sankey] layout tuning",
)
@click.option("--verbose", is_flag=True, help="Log layout progress to stderr")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """sfgraph - Lay out Salesforce metadata relationship graphs.

    Reads a snapshot of components and relationships (JSON or YAML) and
    computes force-directed, circular/radial or Sankey flow layouts.
    """
    ctx.ensure_object(dict)
    _configure_logging(verbose)

    config = LayoutConfig()
    if config_path is not None:
        try:
            config = load_layout_config(config_path)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--config") from e
    ctx.obj["config"] = config


def _fail(e: Exception) -> click.ClickException:
    return click.ClickException(f"{type(e).__name__}: {e}" if isinstance(e, GraphError) else str(e))


_snapshot_argument = click.argument("snapshot", type=click.Path(exists=True, dir_okay=False, path_type=Path))


@cli.command()
@_snapshot_argument
@click.option(
    "--kind",
    type=click.Choice([k.value for k in LayoutKind]),
    default=LayoutKind.FORCE.value,
    show_default=True,
    help="Layout algorithm",
)
@click.option("--focal", type=str, default=None, metavar="ID", help="Focal component for the radial layout")
@click.option("--search", type=str, default=None, help="Keep components whose name or id contains this text")
@click.option(
    "--category",
    "categories",
    type=click.Choice([c.value for c in Category]),
    multiple=True,
    help="Keep only these component categories (repeatable)",
)
@click.option(
    "--relationship",
    "relationships",
    type=click.Choice([t.value for t in RelationshipType]),
    multiple=True,
    help="Keep only these relationship types (repeatable)",
)
@click.option("--seed", type=int, default=None, help="Random seed for force layout starting positions")
@click.option("--max-ticks", type=click.IntRange(min=1), default=None, help="Tick budget for the force layout")
@click.option("--lenient", is_flag=True, help="Drop invalid records instead of failing")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["md", "json", "rich", "svg"]),
    default="md",
    show_default=True,
    help="Output format",
)
@click.option("--out", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Write output to a file")
@click.pass_context
def layout(
    ctx: click.Context,
    snapshot: Path,
    kind: str,
    focal: str | None,
    search: str | None,
    categories: tuple[str, ...],
    relationships: tuple[str, ...],
    seed: int | None,
    max_ticks: int | None,
    lenient: bool,
    fmt: str,
    out: Path | None,
) -> None:
    """Compute a layout for a metadata snapshot."""
    from .commands.layout_cmd import run_layout

    try:
        exit_code = run_layout(
            snapshot,
            kind=kind,
            focal=focal,
            search=search,
            categories=categories,
            relationships=relationships,
            seed=seed,
            max_ticks=max_ticks,
            lenient=lenient,
            fmt=fmt,
            out=out,
            config=ctx.obj["config"],
        )
    except (GraphError, ValueError, OSError, yaml.YAMLError) as e:
        raise _fail(e) from e
    sys.exit(exit_code)


@cli.command()
@_snapshot_argument
@click.option("--lenient", is_flag=True, help="Drop invalid records instead of failing")
@click.option("--top", type=int, default=10, show_default=True, help="How many components to list as most connected")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["md", "json", "rich"]),
    default="md",
    show_default=True,
    help="Output format",
)
@click.option("--out", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Write output to a file")
def summary(snapshot: Path, lenient: bool, top: int, fmt: str, out: Path | None) -> None:
    """Summarize components, relationships and dropped records."""
    from .commands.layout_cmd import run_summary

    try:
        exit_code = run_summary(snapshot, lenient=lenient, top=top, fmt=fmt, out=out)
    except (GraphError, ValueError, OSError, yaml.YAMLError) as e:
        raise _fail(e) from e
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
