from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from .buildinfo import BuildInfoExtractionError, BuildInfoParseError, extract_build_info, parse
from .config import Config, ConfigError, load_config
from .license_classifier import LicenseFileClassifier
from .module_resolver import ModuleCacheResolver, ModuleResolutionError
from .reporting import render_json, write_report
from .scan import run
from .types import BuildInfo


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_build_infos(
    binaries: tuple[str, ...], buildinfo_file: Optional[str], go_bin: Optional[str]
) -> list[BuildInfo]:
    infos: list[BuildInfo] = []
    try:
        if buildinfo_file:
            if buildinfo_file == "-":
                text = click.get_text_stream("stdin").read()
            else:
                text = Path(buildinfo_file).read_text()
            infos.extend(parse(text))
        if binaries:
            infos.extend(extract_build_info(binaries, go_bin=go_bin))
    except (BuildInfoParseError, BuildInfoExtractionError) as exc:
        click.echo(f"Unable to read build info: {exc}", err=True)
        raise SystemExit(1)
    return infos


@click.group()
@click.option("--verbose", is_flag=True, help="Enable debug logging on stderr.")
def main(verbose: bool) -> None:
    """License compliance gate for Go binaries."""

    _configure_logging(verbose)


@main.command()
@click.argument("binaries", nargs=-1, type=click.Path(exists=True, dir_okay=False, path_type=str))
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=str),
    help="YAML policy file (allow-list, overrides, exceptions).",
)
@click.option(
    "--buildinfo",
    "buildinfo_file",
    type=click.Path(exists=True, allow_dash=True, dir_okay=False, path_type=str),
    help="Read pre-dumped `go version -m` output from a file ('-' for stdin) instead of running go.",
)
@click.option(
    "--mod-cache",
    type=click.Path(file_okay=False, path_type=str),
    help="Go module cache to read module sources from (defaults to GOMODCACHE).",
)
@click.option(
    "--go-bin",
    type=str,
    help="Go executable used to extract build info (defaults to LICHEN_GO_BIN or `go`).",
)
@click.option(
    "--template",
    type=click.Path(exists=True, dir_okay=False, path_type=str),
    help="Jinja2 template for text output.",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    show_default=True,
    help="Output format for the report.",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, writable=True, path_type=str),
    help="Write the report to a file instead of stdout.",
)
@click.option(
    "--json",
    "json_output",
    type=click.Path(dir_okay=False, writable=True, path_type=str),
    help="Additionally write the JSON summary to this file.",
)
def scan(
    binaries: tuple[str, ...],
    config_path: Optional[str],
    buildinfo_file: Optional[str],
    mod_cache: Optional[str],
    go_bin: Optional[str],
    template: Optional[str],
    fmt: str,
    output: Optional[str],
    json_output: Optional[str],
) -> None:
    """Check the licenses of every module linked into BINARIES."""

    if not binaries and not buildinfo_file:
        click.echo("No binaries or build info supplied; nothing to scan.", err=True)
        raise SystemExit(1)

    try:
        config = load_config(Path(config_path)) if config_path else Config()
    except ConfigError as exc:
        click.echo(f"Invalid config: {exc}", err=True)
        raise SystemExit(1)

    build_infos = _load_build_infos(binaries, buildinfo_file, go_bin)

    try:
        summary = run(
            build_infos,
            config,
            resolver=ModuleCacheResolver(mod_cache),
            classifier=LicenseFileClassifier(),
        )
    except ModuleResolutionError as exc:
        click.echo(f"Unable to resolve modules: {exc}", err=True)
        raise SystemExit(1)

    template_text = Path(template).read_text() if template else None
    destination = Path(output) if output else None
    rendered = write_report(summary, fmt, destination, template_text)
    if not destination:
        click.echo(rendered, nl=False)

    if json_output:
        json_path = Path(json_output)
        json_path.parent.mkdir(parents=True, exist_ok=True)
        json_path.write_text(render_json(summary))

    if not summary.passed:
        raise SystemExit(1)


@main.command()
@click.argument("binaries", nargs=-1, type=click.Path(exists=True, dir_okay=False, path_type=str))
@click.option(
    "--buildinfo",
    "buildinfo_file",
    type=click.Path(exists=True, allow_dash=True, dir_okay=False, path_type=str),
    help="Read pre-dumped `go version -m` output from a file ('-' for stdin).",
)
@click.option("--go-bin", type=str, help="Go executable used to extract build info.")
def buildinfo(binaries: tuple[str, ...], buildinfo_file: Optional[str], go_bin: Optional[str]) -> None:
    """Print the parsed build info of BINARIES as JSON."""

    infos = _load_build_infos(binaries, buildinfo_file, go_bin)
    click.echo(json.dumps([info.as_dict() for info in infos], indent=2))


if __name__ == "__main__":
    main()
