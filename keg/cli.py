"""
Keg CLI - install prebuilt binary releases from checksummed formulas.
"""

import asyncio
import logging

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .core import KegCore
from .errors import KegError
from .settings import get_settings

# Setup
app = typer.Typer(
    name="keg",
    help="Install prebuilt binary releases from checksummed formulas",
    add_completion=False,
)
console = Console()


def configure_logging():
    """Configure logging based on settings."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Configure logging on module import
configure_logging()


def _create_command_panel(title: str, color: str, ref: str | None = None) -> Panel:
    """Create a Rich Panel for command display.

    Args:
        title: Command title (e.g., "Keg Install")
        color: Border color (e.g., "blue", "cyan", "red")
        ref: Formula reference the command works on

    Returns:
        Formatted Rich Panel
    """
    settings = get_settings()
    lines = [f"[bold {color}]{title}[/bold {color}]"]
    if ref:
        lines.append(f"Formula: {ref}")
    lines.append(f"Prefix: {settings.prefix}")
    return Panel.fit("\n".join(lines), border_style=color)


def _initialize_core() -> KegCore:
    """Initialize KegCore from the current settings."""
    return KegCore()


def _handle_command_error(e: Exception, command_type: str) -> None:
    """Print a keg error and exit with status 1.

    Raises:
        SystemExit: Always exits with code 1
    """
    console.print(f"\n[bold red]✗ {command_type.capitalize()} failed:[/bold red] {escape(str(e))}")
    raise typer.Exit(code=1)


def _run_command(
    command_name: str,
    core_method: str,
    success_handler,
    *args,
    **kwargs,
):
    """Execute a keg command with common setup and error handling.

    Args:
        command_name: Command name for error messages (e.g., "install", "test")
        core_method: Name of the KegCore method to call (e.g., "install")
        success_handler: Callable that takes the result and prints output
        *args: Positional arguments for the core method
        **kwargs: Keyword arguments for the core method
    """
    try:
        core = _initialize_core()
        method = getattr(core, core_method)

        # Check if method is async and run accordingly
        if asyncio.iscoroutinefunction(method):
            result = asyncio.run(method(*args, **kwargs))
        else:
            result = method(*args, **kwargs)
    except KegError as e:
        _handle_command_error(e, command_name)

    success_handler(result)


def _print_test_result(result: dict) -> None:
    if result.get("success"):
        console.print("\n[bold green]✓ All checks passed![/bold green]")
    else:
        console.print("\n[bold red]✗ Some checks failed[/bold red]")

    console.print("\n[bold]Test Summary:[/bold]")
    console.print(f"  Total: {result.get('total', 0)}")
    console.print(f"  Passed: {result.get('passed', 0)}")
    console.print(f"  Failed: {result.get('failed', 0)}")

    if result.get("version_output"):
        console.print(f"\n[dim]Version: {escape(result['version_output'])}[/dim]")

    failed = result.get("details", {}).get("failed", [])
    if failed:
        console.print("\n[bold red]Failed Checks:[/bold red]")
        for failure in failed:
            console.print(f"  • {failure['formula']}: {failure['assertion']}")
            if failure.get("error"):
                console.print(f"    [dim]Error: {escape(failure['error'])}[/dim]")


@app.command()
def install(
    formula: str = typer.Argument(..., help="Formula name or path to a formula file"),
    platform: str = typer.Option(
        None, "--platform", help="Platform key, e.g. darwin-arm64 (defaults to this host)"
    ),
    skip_test: bool = typer.Option(
        False, "--skip-test", help="Do not smoke-test the installed binary"
    ),
):
    """Fetch, verify, install and smoke-test a formula."""
    console.print(_create_command_panel("Keg Install", "blue", formula))

    def _handle_success(result):
        console.print(
            f"\n[bold green]✓ Installed {result['name']} {result['version']}[/bold green]"
        )
        if result.get("cached"):
            console.print("[dim]Artifact taken from the download cache[/dim]")
        for binary, link in result.get("binaries", {}).items():
            console.print(f"  {binary} → {link}")

        if result.get("test") is not None:
            _print_test_result(result["test"])
        if not result.get("success"):
            raise typer.Exit(code=1)

    _run_command(
        "install", "install", _handle_success, formula,
        platform=platform, skip_test=skip_test,
    )


@app.command()
def fetch(
    formula: str = typer.Argument(..., help="Formula name or path to a formula file"),
    platform: str = typer.Option(
        None, "--platform", help="Platform key, e.g. darwin-arm64 (defaults to this host)"
    ),
):
    """Download and verify an artifact into the cache without installing it."""

    def _handle_success(result):
        state = "cached" if result.get("cached") else "downloaded"
        console.print(f"[bold green]✓ {result['name']} {result['version']} {state}[/bold green]")
        console.print(f"  {result['path']}")
        console.print(f"  [dim]{result['checksum']}[/dim]")

    _run_command("fetch", "fetch", _handle_success, formula, platform=platform)


@app.command()
def test(
    formula: str = typer.Argument(..., help="Formula name or path to a formula file"),
):
    """Run the post-install checks against an installed formula."""
    console.print(_create_command_panel("Keg Test", "cyan", formula))

    def _handle_success(result):
        _print_test_result(result)
        if not result.get("success"):
            raise typer.Exit(code=1)

    _run_command("test", "test", _handle_success, formula)


@app.command()
def verify(
    formula: str = typer.Argument(..., help="Formula name or path to a formula file"),
    platform: str = typer.Option(
        None, "--platform", help="Platform key, e.g. darwin-arm64 (defaults to this host)"
    ),
    all_platforms: bool = typer.Option(
        False, "--all", help="Verify the artifact of every platform the formula lists"
    ),
):
    """Download the artifact fresh and check it against the formula checksum."""

    def _handle_success(result):
        for entry in result["artifacts"]:
            label = entry["platform"] or "any"
            if entry["ok"]:
                console.print(f"[green]✓[/green] {label}: {entry['expected']}")
            else:
                console.print(f"[red]✗[/red] {label}: {escape(entry['error'])}")
        if not result["success"]:
            raise typer.Exit(code=1)

    _run_command(
        "verify", "verify", _handle_success, formula,
        platform=platform, all_platforms=all_platforms,
    )


@app.command()
def outdated(
    formula: str = typer.Argument(..., help="Formula name or path to a formula file"),
):
    """Compare a formula's version with the latest upstream release."""

    def _handle_success(result):
        if result.get("warning"):
            console.print(f"[yellow]⚠ Warning:[/yellow] {result['warning']}")
            return
        if result["outdated"]:
            console.print(
                f"[yellow]⚠ {result['name']} {result['current']} is outdated, "
                f"latest is {result['latest']}[/yellow]"
            )
        else:
            console.print(
                f"[green]✓ {result['name']} {result['current']} is the latest version[/green]"
            )

    _run_command("outdated", "outdated", _handle_success, formula)


@app.command()
def uninstall(
    name: str = typer.Argument(..., help="Installed formula name"),
):
    """Remove an installed formula and its links."""

    def _handle_success(result):
        console.print(
            f"[bold green]✓ Uninstalled {result['name']} {result['version']}[/bold green]"
        )
        for link in result["removed"]:
            console.print(f"  [dim]• {link}[/dim]")

    _run_command("uninstall", "uninstall", _handle_success, name)


@app.command(name="list")
def list_cmd():
    """List installed formulas."""

    def _handle_success(kegs):
        if not kegs:
            console.print("[dim]No formulas installed[/dim]")
            return
        table = Table("Name", "Version", "Platform", "Binaries")
        for keg in kegs:
            table.add_row(
                keg.name,
                keg.version,
                keg.receipt.platform or "any",
                ", ".join(keg.binaries()),
            )
        console.print(table)

    _run_command("list", "list_installed", _handle_success)


@app.command()
def info(
    formula: str = typer.Argument(..., help="Formula name or path to a formula file"),
):
    """Show a formula's metadata and install state."""

    def _handle_success(result):
        console.print(f"[bold]{result['name']}[/bold] {result['version']}")
        if result["description"]:
            console.print(result["description"])
        if result["homepage"]:
            console.print(result["homepage"])
        console.print(f"\n  URL: {result['url']}")
        console.print(f"  Checksum: {result['checksum']}")
        console.print(f"  Platforms: {', '.join(result['platforms']) or 'any'}")
        for source, dest in result["install"].items():
            console.print(f"  Installs: {source} → {dest}")
        console.print(f"  Test: {' '.join(result['test'])}")
        installed = result["installed"] or "not installed"
        console.print(f"  Installed: {installed}")

    _run_command("info", "info", _handle_success, formula)


@app.command()
def formulas():
    """List the formulas keg can find."""

    def _handle_success(found):
        for name, path in found.items():
            console.print(f"{name} [dim]{path}[/dim]")

    _run_command("formulas", "formulas", _handle_success)


@app.command()
def version():
    """Show keg version."""
    from . import __version__

    console.print(f"keg version: [bold]{__version__}[/bold]")


if __name__ == "__main__":
    app()
