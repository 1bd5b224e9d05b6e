"""Small helpers shared by the package database code."""

from __future__ import annotations

import tarfile
from collections.abc import Hashable, Iterable
from typing import BinaryIO, TypeVar

T = TypeVar("T", bound=Hashable)


def uniqify(items: Iterable[T]) -> list[T]:
    """Return the items without repeats, keeping the first occurrence of each."""
    return list(dict.fromkeys(items))


def control_value(control_tar: BinaryIO, *args: str) -> dict[str, list[str]]:
    """Read the wanted keys from the ``.PKGINFO`` of an uncompressed control tar.

    ``args`` names the keys to collect; every value of each is returned in order.
    Raises FileNotFoundError when the archive holds no ``.PKGINFO``.
    """
    wanted = set(args)
    with tarfile.open(fileobj=control_tar, mode="r|") as tar:
        for member in tar:
            if member.name != ".PKGINFO":
                continue
            extracted = tar.extractfile(member)
            data = extracted.read() if extracted is not None else b""
            mapping: dict[str, list[str]] = {}
            for line in data.decode("utf-8", errors="replace").split("\n"):
                parts = line.split("=")
                if len(parts) != 2:
                    continue
                key = parts[0].strip()
                if key not in wanted:
                    continue
                mapping.setdefault(key, []).append(parts[1].strip())
            return mapping
    raise FileNotFoundError("control file not found")