"""Operator interaction: confirmations, prompts and progress output."""

from typing import Callable, Optional, Protocol

import typer
from rich.console import Console


class Operator(Protocol):
    """The person running the workflow."""

    def confirm(self, question: str) -> bool: ...

    def ask(self, question: str, validate: Optional[Callable[[str], bool]] = None) -> str: ...

    def edit(self, template: str) -> str: ...

    def say(self, message: str) -> None: ...


class ConsoleOperator:
    """Operator backed by the terminal."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def confirm(self, question: str) -> bool:
        return typer.confirm(question, default=False)

    def ask(self, question: str, validate: Optional[Callable[[str], bool]] = None) -> str:
        """Prompt until the answer passes `validate`. An empty answer is allowed without a validator."""
        while True:
            answer = typer.prompt(question, default="", show_default=False).strip()
            if validate is None or validate(answer):
                return answer
            self.console.print(f"[red]Invalid answer:[/red] {answer!r}")

    def edit(self, template: str) -> str:
        # None means the editor was closed without saving
        return typer.edit(template) or ""

    def say(self, message: str) -> None:
        self.console.print(message)
