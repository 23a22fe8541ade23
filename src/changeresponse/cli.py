"""changeresponse CLI for checking and previewing override rules - Tyro implementation."""

import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import attrs
import tyro
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from changeresponse.config import ChangeResponseConfig, load_config
from changeresponse.context import CapturedResponse, headers_to_dict
from changeresponse.engine import OverrideEngine
from changeresponse.errors import ConfigError, UnsupportedBodyModeError


# Subcommand definitions using attrs
@attrs.define
class Check:
    """Validate changeresponse.yaml and list its override rules."""

    json: Annotated[bool, tyro.conf.arg(aliases=["-j"])] = False
    """Output the validated rules as JSON."""


@attrs.define
class Apply:
    """Preview the rewrite of a synthetic upstream response."""

    status: Annotated[int, tyro.conf.arg(aliases=["-s"])]
    """Upstream status code."""

    body: Annotated[str, tyro.conf.arg(aliases=["-b"])] = ""
    """Upstream response body."""

    header: Annotated[list[str], tyro.conf.arg(aliases=["-H"])] = attrs.Factory(list)
    """Upstream header as 'Name: value'. Repeatable."""

    json: Annotated[bool, tyro.conf.arg(aliases=["-j"])] = False
    """Output the result as JSON."""


# Type alias for all subcommands
Command = Annotated[Check, tyro.conf.subcommand(name="check")] | Annotated[Apply, tyro.conf.subcommand(name="apply")]


def setup_logging() -> None:
    """Configure logging with 100-character text width."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)-20s - %(levelname)-8s - %(message).100s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_header(raw: str) -> tuple[str, str]:
    """Parse a 'Name: value' header argument.

    Raises:
        ValueError: If the argument has no colon or an empty name
    """
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise ValueError(f"invalid header '{raw}', expected 'Name: value'")
    return name.strip(), value.strip()


def build_engine(config_dir: Path) -> OverrideEngine:
    """Load the config from config_dir and build an engine, exiting on errors."""
    try:
        config = load_config(config_dir)
        return OverrideEngine(config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(f"Config file: {config_dir / 'changeresponse.yaml'}", file=sys.stderr)
        sys.exit(1)


def rules_table(config: ChangeResponseConfig) -> Table:
    """Render override rules as a rich table."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="dim")
    table.add_column("From", style="cyan")
    table.add_column("To", style="green")
    table.add_column("Headers", style="yellow")
    table.add_column("Remove", style="red")
    table.add_column("Mode", style="magenta")
    table.add_column("Body")

    for i, rule in enumerate(config.overrides, 1):
        headers = "\n".join(f"{k}: {', '.join(v)}" for k, v in rule.set_headers.items())
        table.add_row(
            str(i),
            ", ".join(str(s) for s in rule.match_statuses),
            str(rule.target_status),
            headers or "-",
            ", ".join(rule.remove_headers) or "-",
            rule.body_mode or "replace",
            repr(rule.body_content) if rule.body_content else "-",
        )

    return table


def check_config(config_dir: Path, json_output: bool = False) -> None:
    """Validate the config and print its rules."""
    engine = build_engine(config_dir)
    config = engine.config

    if json_output:
        data = config.model_dump(mode="json", by_alias=True)
        print(json.dumps(data, indent=2))
        return

    console = Console()
    console.print(Panel(f"[bold cyan]changeresponse: {engine.name}[/bold cyan]", expand=False))
    console.print(f"Config: {config.config_path}")
    console.print(f"Debug: {'[green]on[/green]' if config.debug else '[dim]off[/dim]'}")
    console.print()
    console.print(rules_table(config))


def apply_rules(
    config_dir: Path,
    status: int,
    body: str = "",
    headers: list[str] | None = None,
    json_output: bool = False,
) -> None:
    """Run the rule pass on a synthetic response and print the result."""
    engine = build_engine(config_dir)

    try:
        parsed = [parse_header(h) for h in headers or []]
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    captured = CapturedResponse.from_parts(status, parsed, body)
    try:
        applied = engine.rewrite(captured)
    except UnsupportedBodyModeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    final_body = captured.body.decode("utf-8", errors="replace")

    if json_output:
        result = {
            "applied": applied,
            "status": captured.working_status,
            "headers": headers_to_dict(captured.headers),
            "body": final_body,
        }
        print(json.dumps(result, indent=2))
        return

    console = Console()
    marker = "[green]override applied[/green]" if applied else "[dim]no rule matched[/dim]"
    console.print(f"[bold]{status} → {captured.working_status}[/bold] ({marker})")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Header", style="cyan")
    table.add_column("Value")
    for name, value in captured.headers.items():
        table.add_row(name, value)
    console.print(table)

    console.print(Panel(final_body or "[dim](empty)[/dim]", title="Body", expand=False))


def main(
    cmd: Annotated[Command, tyro.conf.arg(name="")],
    *,
    config_dir: Annotated[Path | None, tyro.conf.arg(help="Configuration directory")] = None,
) -> None:
    """changeresponse - status-code driven HTTP response rewriting.

    Checks and previews the override rules used by the changeresponse
    ASGI middleware and mitmproxy addon.
    """
    if config_dir is None:
        config_dir = Path.home() / ".changeresponse"

    setup_logging()

    if isinstance(cmd, Check):
        check_config(config_dir, json_output=cmd.json)

    elif isinstance(cmd, Apply):
        apply_rules(config_dir, cmd.status, body=cmd.body, headers=cmd.header, json_output=cmd.json)


def entry_point() -> None:
    """Entry point for the changeresponse command."""
    tyro.cli(main)


if __name__ == "__main__":
    entry_point()
