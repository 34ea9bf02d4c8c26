from typing import Literal, overload
from pathlib import Path


@overload
def find_config_file(filename: str, cwd: Path | None = None, required: Literal[False] = False) -> Path | None: ...


@overload
def find_config_file(filename: str, cwd: Path | None = None, required: Literal[True] = True) -> Path: ...


def find_config_file(filename: str, cwd: Path | None = None, required: bool = True) -> Path | None:
    """
    Look for *filename* in *cwd* (the current directory by default) and then in each of its parents, nearest first.
    """

    start = (cwd or Path.cwd()).absolute()

    for directory in (start, *start.parents):
        if (candidate := directory / filename).is_file():
            return candidate

    if required:
        raise FileNotFoundError(f"'{filename}' not found in '{start}' or any of its parents.")

    return None
