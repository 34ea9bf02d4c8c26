from typing import Any

from typer import Typer


def new_typer(**kwargs: Any) -> Typer:
    """
    Create a #Typer application with the settings shared by all `helm-diff` commands.
    """

    kwargs.setdefault("no_args_is_help", True)
    return Typer(pretty_exceptions_enable=False, **kwargs)
