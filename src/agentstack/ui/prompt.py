"""Single-keystroke confirmation prompt."""

from typing import Callable

import click

Prompt = Callable[[str], str]


def read_single_char(message: str) -> str:
    """Show ``message`` and return the next key pressed.

    End of input counts as an empty answer, which callers treat as "no".
    """
    click.echo(message, nl=False)
    try:
        char = click.getchar()
    except EOFError:
        char = ""
    click.echo(char)
    return char


def confirmed(answer: str) -> bool:
    return answer.strip().lower() == "y"
