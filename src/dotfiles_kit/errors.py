"""Exception types raised while provisioning.

Declining a confirmation is not an error and has no exception here.
"""


class ProvisionError(Exception):
    """Base class for provisioning failures."""


class UnsupportedPlatformError(ProvisionError):
    """The OS or CPU architecture is not one the kit knows how to provision."""


class MissingDependencyError(ProvisionError):
    """A step cannot run because something it needs is absent. The step is skipped."""


class FetchError(ProvisionError):
    """A network fetch failed after all retries."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class CommandError(ProvisionError):
    """An external command exited non-zero."""

    def __init__(self, args: list[str], returncode: int, stderr: str = ""):
        message = f"'{' '.join(args)}' exited with {returncode}"
        if stderr:
            message += f": {stderr}"
        super().__init__(message)
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
