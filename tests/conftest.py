"""Shared fixtures: a provisioning context wired to tmp dirs and fakes."""

import io
from datetime import datetime

import httpx
import pytest
from rich.console import Console

from dotfiles_kit.capabilities import CapabilityCache
from dotfiles_kit.config import ProvisionConfig
from dotfiles_kit.context import ProvisionContext
from dotfiles_kit.prompter import Prompter

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0)


class ScriptedReader:
    """Answers prompts from a list and records every prompt it was shown."""

    def __init__(self, answers=()):
        self.answers = list(answers)
        self.prompts: list[str] = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {prompt!r}")
        return self.answers.pop(0)


def _not_found(request: httpx.Request) -> httpx.Response:
    return httpx.Response(404, json={"message": "Not Found"})


def fake_which(present: dict[str, str] | None = None):
    present = present or {}

    def _which(name, path=None):
        return present.get(name)

    return _which


@pytest.fixture
def make_ctx(tmp_path):
    """Build a ProvisionContext. Returns (ctx, reader)."""
    clients = []

    def _make(answers=(), present=None, handler=None, os_name="Linux", shell="/bin/bash"):
        home = tmp_path / "home"
        dotfiles = tmp_path / "dotfiles"
        home.mkdir(exist_ok=True)
        dotfiles.mkdir(exist_ok=True)
        config = ProvisionConfig(
            home=str(home),
            dotfiles_dir=str(dotfiles),
            os_name=os_name,
            arch="x86_64",
            arch_alt="amd64",
            shell=shell,
        )
        reader = ScriptedReader(answers)
        console = Console(file=io.StringIO(), width=120)
        client = httpx.Client(transport=httpx.MockTransport(handler or _not_found))
        clients.append(client)
        ctx = ProvisionContext(
            config=config,
            prompter=Prompter(console, reader),
            capabilities=CapabilityCache(search_path=config.path, which=fake_which(present)),
            console=console,
            http=client,
            sleep=lambda seconds: None,
            now=lambda: FIXED_NOW,
        )
        return ctx, reader

    yield _make
    for client in clients:
        client.close()
