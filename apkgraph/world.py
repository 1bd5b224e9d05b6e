"""Reading and writing the world and repositories files of an APK database."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

WORLD_FILE = Path("etc", "apk", "world")
REPOSITORIES_FILE = Path("etc", "apk", "repositories")


def _write_public(path: Path, data: str) -> None:
    path.write_text(data, encoding="utf-8")
    # The files must be readable by everyone.
    os.chmod(path, 0o644)


def get_world(root: str | os.PathLike[str]) -> list[str]:
    """Return the packages listed in ``etc/apk/world`` under ``root``."""
    return (Path(root) / WORLD_FILE).read_text(encoding="utf-8").split()


def set_world(root: str | os.PathLike[str], packages: Iterable[str]) -> None:
    """Write the sorted package list to ``etc/apk/world`` under ``root``.

    The ``etc/apk`` directory must already exist.
    """
    data = "\n".join(sorted(packages)) + "\n"
    _write_public(Path(root) / WORLD_FILE, data)


def get_repositories(root: str | os.PathLike[str]) -> list[str]:
    """Return the lines of ``etc/apk/repositories`` under ``root``."""
    text = (Path(root) / REPOSITORIES_FILE).read_text(encoding="utf-8")
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def set_repositories(root: str | os.PathLike[str], repos: Iterable[str]) -> None:
    """Write the repository list to ``etc/apk/repositories`` under ``root``.

    The ``etc/apk`` directory must already exist.
    """
    repos = list(repos)
    if not repos:
        raise ValueError("must provide at least one repository")
    _write_public(Path(root) / REPOSITORIES_FILE, "\n".join(repos) + "\n")