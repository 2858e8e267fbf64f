"""CLI app definition: 'dotfiles-install' runs the whole provisioning plan."""

import os
import platform
from typing import Annotated

import httpx
import typer

from dotfiles_kit.capabilities import CapabilityCache
from dotfiles_kit.config import FETCH_TIMEOUT_SECONDS, ProvisionConfig, load_config
from dotfiles_kit.context import ProvisionContext, StepResult
from dotfiles_kit.errors import UnsupportedPlatformError
from dotfiles_kit.prompter import Prompter
from dotfiles_kit.provisioner import Provisioner
from dotfiles_kit.steps import build_default_steps
from dotfiles_kit.utils import console, log
from dotfiles_kit.version import PACKAGE_VERSION, get_version


def _version_callback(value: bool):
    if value:
        console.print(get_version())
        raise typer.Exit()


def _detect_platform() -> tuple[str, str]:
    """Return (system, machine) as uname reports them."""
    return platform.system(), platform.machine()


def provision(config: ProvisionConfig, prompter: Prompter | None = None) -> list[StepResult]:
    """Run the default plan for *config* with a fresh context."""
    headers = {"User-Agent": f"dotfiles-kit/{PACKAGE_VERSION}"}
    if config.github_token:
        headers["Authorization"] = f"Bearer {config.github_token}"

    with httpx.Client(timeout=FETCH_TIMEOUT_SECONDS, headers=headers) as client:
        ctx = ProvisionContext(
            config=config,
            prompter=prompter or Prompter(console),
            capabilities=CapabilityCache(search_path=config.path),
            console=console,
            http=client,
        )
        steps = build_default_steps(config.dotfiles_dir, config.home)
        return Provisioner(ctx).run(steps)


app = typer.Typer(
    help="Provision developer tools and link dotfiles into $HOME.",
    add_completion=False,
)


@app.command()
def install(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit.", callback=_version_callback, is_eager=True),
    ] = False,
) -> None:
    """Install tools and link dotfiles, asking before anything destructive."""
    system, machine = _detect_platform()
    try:
        config = load_config(dict(os.environ), system, machine)
    except UnsupportedPlatformError as exc:
        console.print(f"ERROR: {exc}", style="bold red")
        raise typer.Exit(1)

    console.print()
    console.print("=========================================", style="bold magenta")
    console.print("        Dotfiles Installation", style="bold magenta")
    console.print("=========================================", style="bold magenta")
    console.print()
    log(f"Dotfiles: {config.dotfiles_dir} ({config.os_name} {config.arch})", style="dim", log_file=config.log_file)

    provision(config)
