"""Per-run cache of which command-line tools are available."""

import shutil
from collections.abc import Callable
from enum import Enum


class Capability(Enum):
    PRESENT = "present"
    ABSENT = "absent"


class CapabilityCache:
    """Looks each tool up on the search path once and remembers the answer.

    Call forget() after a step installs a tool so the next lookup sees it.
    """

    def __init__(self, search_path: str | None = None, which: Callable[..., str | None] = shutil.which):
        self.search_path = search_path
        self._which = which
        self._paths: dict[str, str | None] = {}

    def path(self, name: str) -> str | None:
        if name not in self._paths:
            self._paths[name] = self._which(name, path=self.search_path)
        return self._paths[name]

    def lookup(self, name: str) -> Capability:
        return Capability.PRESENT if self.path(name) else Capability.ABSENT

    def is_present(self, name: str) -> bool:
        return self.lookup(name) is Capability.PRESENT

    def missing(self, names) -> list[str]:
        """Return the subset of *names* that are absent, preserving order."""
        return [name for name in names if not self.is_present(name)]

    def forget(self, *names: str) -> None:
        for name in names:
            self._paths.pop(name, None)
