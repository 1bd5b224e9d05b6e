"""Named package indexes and the errors raised while resolving packages."""

from __future__ import annotations

import abc
import json
from collections.abc import Iterable, Mapping, Sequence

from apkgraph.repository import RepositoryPackage, RepositoryWithIndex


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


class NamedIndex(abc.ABC):
    """An index holding all of its packages, with an optional name and source.

    Neither the name nor the source need be unique.
    """

    name: str = ""

    @abc.abstractmethod
    def packages(self) -> list[RepositoryPackage]:
        """Return every package in the index."""

    @abc.abstractmethod
    def count(self) -> int:
        """Return the number of packages in the index."""

    @abc.abstractmethod
    def source(self) -> str:
        """Return where the index came from, or an empty string."""


class NamedRepositoryWithIndex(NamedIndex):
    """A repository index carrying a name used for pinning."""

    def __init__(self, name: str, repo: RepositoryWithIndex | None = None) -> None:
        self.name = name
        self.repo = repo

    def __repr__(self) -> str:
        return f"NamedRepositoryWithIndex(name={self.name!r}, repo={self.repo!r})"

    def packages(self) -> list[RepositoryPackage]:
        if self.repo is None:
            return []
        return self.repo.packages()

    def count(self) -> int:
        if self.repo is None:
            return 0
        return self.repo.count()

    def source(self) -> str:
        if self.repo is None:
            return ""
        return self.repo.index_uri()


def index_names(indexes: Iterable[NamedIndex]) -> list[str]:
    """Return the source of each index, in order."""
    return [index.source() for index in indexes]


class ResolutionError(Exception):
    """Raised when packages cannot be resolved."""

    def __init__(self, message: str, causes: Sequence[BaseException] = ()) -> None:
        super().__init__(message)
        self.causes = tuple(causes)


class ConstraintError(ResolutionError):
    """A constraint could not be solved."""

    def __init__(self, constraint: str, wrapped: BaseException) -> None:
        super().__init__(f"solving {_quote(constraint)} constraint: {wrapped}", (wrapped,))
        self.constraint = constraint
        self.wrapped = wrapped
        self.__cause__ = wrapped


class DepError(ResolutionError):
    """The dependencies of a package could not be resolved."""

    def __init__(self, package: RepositoryPackage, wrapped: BaseException) -> None:
        super().__init__(
            f"resolving {_quote(package.filename())} deps:\n{wrapped}", (wrapped,)
        )
        self.package = package
        self.wrapped = wrapped
        self.__cause__ = wrapped


class DisqualifiedError(ResolutionError):
    """A package was ruled out for the given reason."""

    def __init__(self, package: RepositoryPackage, reason: str) -> None:
        super().__init__(f"  {package.filename()} disqualified because {reason}")
        self.package = package
        self.reason = reason


def disqualified_error(
    pkgs: Iterable[RepositoryPackage], dq: Mapping[RepositoryPackage, str]
) -> ResolutionError:
    """Explain why none of ``pkgs`` could be used.

    Returns an error listing each disqualified package with its reason, or one
    saying the packages are not in the indexes when none was disqualified.
    """
    errors = [DisqualifiedError(pkg, dq[pkg]) for pkg in pkgs if pkg in dq]
    if errors:
        return ResolutionError("\n".join(str(error) for error in errors), errors)
    return ResolutionError("not in indexes")