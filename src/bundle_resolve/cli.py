"""Main CLI entry point for bundle-resolve."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click

from .archive import FileReader
from .bundle import Bundle
from .config import ResolveConfig
from .engine import get_default_resolvers, resolve_input
from .errors import BundleResolveError

logger = logging.getLogger(__name__)


@dataclass
class ResolveSummary:
    """What a resolution reported through its events and hook."""

    resolver: Optional[str] = None
    resolved_name: Optional[str] = None
    dockerfile: Optional[str] = None

    def set_dockerfile(self, contents: str) -> None:
        self.dockerfile = contents


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="[%(levelname).4s] %(message)s",
        stream=sys.stderr,
    )


async def resolve_file(config: ResolveConfig, input_path: Path, output_path: Path) -> ResolveSummary:
    """
    Resolves the tar archive at ``input_path`` into ``output_path``.

    Raises whatever ended the resolution; the output file is then incomplete.
    """
    summary = ResolveSummary()
    resolvers = config.build_resolvers(config.build_catalog())

    with open(input_path, "rb") as src, open(output_path, "wb") as dest:
        bundle = Bundle(
            FileReader(src),
            config.device_type,
            config.architecture,
            hook=summary.set_dockerfile,
        )
        listeners = {
            "resolver": [lambda name: setattr(summary, "resolver", name)],
            "resolved-name": [lambda name: setattr(summary, "resolved_name", name)],
            "error": [lambda error: logger.debug("Resolution failed: %s", error)],
        }
        archive = resolve_input(bundle, resolvers, listeners, dockerfile=config.dockerfile)
        async for chunk in archive:
            dest.write(chunk)

    return summary


@click.group()
def cli():
    """Bundle Resolve: turn a project archive into a Docker build context."""
    pass


@cli.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Where to write the resolved tar archive.",
)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to a resolve config YAML.",
)
@click.option("--device-type", type=str, help="Device type the bundle targets.")
@click.option("--arch", type=str, help="Architecture the bundle targets.")
@click.option("--dockerfile", type=str, help="Resolve this Dockerfile instead of auto-detecting.")
@click.option("--print-dockerfile", is_flag=True, help="Print the resolved Dockerfile.")
@click.option("--verbose", is_flag=True, help="Show detailed output.")
def resolve(
    input_path: Path,
    output: Path,
    config: Optional[Path],
    device_type: Optional[str],
    arch: Optional[str],
    dockerfile: Optional[str],
    print_dockerfile: bool,
    verbose: bool,
):
    """Resolves a tar archive into a Docker-compatible tar archive."""
    setup_logging(verbose)

    cfg = ResolveConfig.from_yaml(config) if config else ResolveConfig()
    overrides = {
        "device_type": device_type,
        "architecture": arch,
        "dockerfile": dockerfile,
    }
    cfg = cfg.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    try:
        summary = asyncio.run(resolve_file(cfg, input_path, output))
    except BundleResolveError as e:
        output.unlink(missing_ok=True)
        raise click.ClickException(str(e))
    except Exception:
        # Never leave a truncated archive behind
        output.unlink(missing_ok=True)
        raise

    click.echo(f"Resolver: {summary.resolver}")
    if summary.resolved_name:
        click.echo(f"Dockerfile: {summary.resolved_name}")
    if print_dockerfile and summary.dockerfile is not None:
        click.echo(summary.dockerfile)
    click.echo(f"Resolved archive written to: {output}")


@cli.command()
def resolvers():
    """Lists the built-in resolvers with their priorities."""
    for resolver in get_default_resolvers():
        specified = "yes" if resolver.allow_specified_dockerfile else "no"
        click.echo(f"{resolver.priority}\t{resolver.name}\t(specified dockerfile: {specified})")


def main():
    cli()


if __name__ == "__main__":
    main()
