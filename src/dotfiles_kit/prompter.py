"""Yes/no confirmation prompts behind an injectable reader."""

from collections.abc import Callable

from rich.console import Console
from rich.markup import escape


def parse_confirmation(response: str, default: bool) -> bool:
    """Interpret a [Y/n] or [y/N] answer.

    Pure function: empty input means *default*; otherwise only answers
    starting with 'y' or 'Y' count as yes.
    """
    answer = response.strip()
    if not answer:
        return default
    return answer[0] in "yY"


def format_prompt(message: str, default: bool) -> str:
    suffix = "[Y/n]" if default else "[y/N]"
    return f"{message} {suffix} "


class Prompter:
    """Asks the user to confirm actions.

    *reader* takes the prompt text and returns one line of input. It
    defaults to the console's own input, so tests can swap in a script.
    """

    def __init__(self, console: Console, reader: Callable[[str], str] | None = None):
        self.console = console
        self.reader = reader or self._read_from_console

    def _read_from_console(self, prompt: str) -> str:
        return self.console.input(escape(prompt))

    def confirm(self, message: str, default: bool = True) -> bool:
        try:
            response = self.reader(format_prompt(message, default))
        except EOFError:
            return default
        return parse_confirmation(response, default)
