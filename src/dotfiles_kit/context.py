"""Run context threaded through every step, and the step result types."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import httpx
from rich.console import Console

from dotfiles_kit.capabilities import CapabilityCache
from dotfiles_kit.config import ProvisionConfig
from dotfiles_kit.prompter import Prompter
from dotfiles_kit.utils import log


class StepStatus(Enum):
    SATISFIED = "satisfied"  # already in place, nothing done
    DONE = "done"
    DECLINED = "declined"
    SKIPPED = "skipped"      # missing dependency or not applicable here
    FAILED = "failed"


@dataclass
class StepResult:
    name: str
    status: StepStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is not StepStatus.FAILED


@dataclass
class ProvisionContext:
    """The world a step sees: config, prompts, tool lookup, output, network."""

    config: ProvisionConfig
    prompter: Prompter
    capabilities: CapabilityCache
    console: Console
    http: httpx.Client
    sleep: Callable[[float], None] = time.sleep
    now: Callable[[], datetime] = field(default=datetime.now)

    def log(self, message: str, style: str = "") -> None:
        log(message, style=style, log_file=self.config.log_file, out=self.console)

    def info(self, message: str) -> None:
        self.log(f"→ {message}", style="cyan")

    def success(self, message: str) -> None:
        self.log(f"✓ {message}", style="green")

    def warn(self, message: str) -> None:
        self.log(f"! {message}", style="yellow")

    def error(self, message: str) -> None:
        self.log(f"✗ {message}", style="bold red")

    def confirm(self, message: str, default: bool = True) -> bool:
        return self.prompter.confirm(message, default=default)
