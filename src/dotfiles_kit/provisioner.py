"""The provisioner: runs an ordered plan of install and link steps.

Each step is isolated. A step that fails (network, external command,
filesystem) is reported and the run moves on to the next one; only an
unsupported platform, detected before the run starts, is fatal.
"""

import os
import tarfile
from collections.abc import Callable
from dataclasses import dataclass, replace

import httpx
from rich.markup import escape
from rich.table import Table

from dotfiles_kit.context import ProvisionContext, StepResult, StepStatus
from dotfiles_kit.errors import MissingDependencyError, ProvisionError
from dotfiles_kit.links import link_file

_STEP_FAILURES = (ProvisionError, OSError, httpx.HTTPError, tarfile.TarError)

_STATUS_STYLES = {
    StepStatus.SATISFIED: "green",
    StepStatus.DONE: "bold green",
    StepStatus.DECLINED: "yellow",
    StepStatus.SKIPPED: "dim",
    StepStatus.FAILED: "bold red",
}


@dataclass
class InstallStep:
    """A tool or setup action: detect, confirm, act.

    The action returns an optional detail string, or a StepResult when it
    needs to report something other than DONE (e.g. a nested decline). A
    returned StepResult always carries the step's own name.
    """

    name: str
    action: Callable[[ProvisionContext], str | StepResult | None]
    detect: Callable[[ProvisionContext], bool] | None = None
    prompt: str = ""          # empty: run without asking
    default: bool = True      # answer on empty input
    platforms: tuple[str, ...] = ()  # empty: every platform


@dataclass
class LinkStep:
    """Symlink a file from the dotfiles dir into place."""

    source: str
    destination: str
    name: str = ""


Step = InstallStep | LinkStep


def _run_install_step(ctx: ProvisionContext, step: InstallStep) -> StepResult:
    if step.platforms and ctx.config.os_name not in step.platforms:
        return StepResult(step.name, StepStatus.SKIPPED, f"not applicable on {ctx.config.os_name}")

    if step.detect is not None and step.detect(ctx):
        ctx.success(f"{step.name}: already installed")
        return StepResult(step.name, StepStatus.SATISFIED)

    if step.prompt and not ctx.confirm(step.prompt, default=step.default):
        ctx.warn(f"Skipping {step.name}")
        return StepResult(step.name, StepStatus.DECLINED)

    outcome = step.action(ctx)
    if isinstance(outcome, StepResult):
        return replace(outcome, name=step.name)
    return StepResult(step.name, StepStatus.DONE, outcome or "")


def run_step(ctx: ProvisionContext, step: Step) -> StepResult:
    """Run one step and turn its outcome into a StepResult. Never raises for step errors."""
    name = step.name or (f"link {os.path.basename(step.destination)}" if isinstance(step, LinkStep) else "")
    try:
        if isinstance(step, LinkStep):
            return link_file(ctx, step.source, step.destination, name=name)
        return _run_install_step(ctx, step)
    except MissingDependencyError as exc:
        ctx.warn(f"{name}: {exc}")
        return StepResult(name, StepStatus.SKIPPED, str(exc))
    except _STEP_FAILURES as exc:
        ctx.error(f"{name} failed: {exc}")
        return StepResult(name, StepStatus.FAILED, str(exc))
    except Exception as exc:
        # Anything else is still confined to this step.
        ctx.error(f"{name} failed unexpectedly: {type(exc).__name__}: {exc}")
        return StepResult(name, StepStatus.FAILED, f"{type(exc).__name__}: {exc}")


def build_summary_table(results: list[StepResult]) -> Table:
    """Render step results as a rich table."""
    table = Table(title="Provisioning summary")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Detail", overflow="fold")
    for result in results:
        style = _STATUS_STYLES.get(result.status, "")
        table.add_row(escape(result.name), f"[{style}]{result.status.value}[/]", escape(result.detail))
    return table


def count_by_status(results: list[StepResult]) -> dict[StepStatus, int]:
    """Pure function: tally results per status (every status present, possibly 0)."""
    counts = {status: 0 for status in StepStatus}
    for result in results:
        counts[result.status] += 1
    return counts


class Provisioner:
    """Runs steps in order against one ProvisionContext and reports once at the end."""

    def __init__(self, ctx: ProvisionContext):
        self.ctx = ctx

    def run(self, steps: list[Step]) -> list[StepResult]:
        os.makedirs(self.ctx.config.local_bin, exist_ok=True)

        results = []
        for step in steps:
            results.append(run_step(self.ctx, step))

        self.report(results)
        return results

    def report(self, results: list[StepResult]) -> None:
        ctx = self.ctx
        ctx.console.print()
        ctx.console.print(build_summary_table(results))

        counts = count_by_status(results)
        summary = ", ".join(f"{counts[s]} {s.value}" for s in StepStatus if counts[s])
        if not all(result.ok for result in results):
            ctx.warn(f"Installation finished with failures ({summary})")
        else:
            ctx.success(f"Installation complete! ({summary})")

        ctx.console.print()
        ctx.info("Next steps:")
        ctx.console.print("  1. Restart your terminal or run: exec zsh")
        ctx.console.print("  2. Open nvim to let LazyVim install plugins")
        ctx.console.print()
