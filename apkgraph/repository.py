"""Repositories, their indexes and the packages they hold."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field


@dataclass(eq=False)
class Package:
    """A package as described by a repository index.

    Packages compare by identity, so the same name and version coming from
    two indexes are kept apart.
    """

    name: str
    version: str
    arch: str = ""
    description: str = ""
    origin: str = ""
    dependencies: list[str] = field(default_factory=list)
    provides: list[str] = field(default_factory=list)
    install_if: list[str] = field(default_factory=list)
    provider_priority: int = 0
    installed_size: int = 0
    size: int = 0

    def filename(self) -> str:
        """Return the file name of the package archive."""
        return f"{self.name}-{self.version}.apk"


@dataclass(frozen=True)
class Repository:
    """A package repository identified by its URI."""

    uri: str = ""

    def with_index(self, packages: Iterable[Package]) -> RepositoryWithIndex:
        """Return this repository together with the packages of its index."""
        return RepositoryWithIndex(self, packages)

    def index_uri(self) -> str:
        """Return the URI of the repository's APKINDEX."""
        return f"{self.uri}/APKINDEX.tar.gz"

    def is_remote(self) -> bool:
        """Return True if the repository must be fetched over the network."""
        return not self.uri.startswith("/")


class RepositoryWithIndex:
    """A repository whose index has been read and parsed."""

    def __init__(self, repository: Repository, index: Iterable[Package] = ()) -> None:
        self.repository = repository
        self.index: tuple[Package, ...] = tuple(index)
        self._packages = [RepositoryPackage(pkg, self) for pkg in self.index]

    def __repr__(self) -> str:
        return f"RepositoryWithIndex(uri={self.uri!r}, packages={len(self.index)})"

    @property
    def uri(self) -> str:
        return self.repository.uri

    def index_uri(self) -> str:
        """Return the URI of the repository's APKINDEX."""
        return self.repository.index_uri()

    def is_remote(self) -> bool:
        """Return True if the repository must be fetched over the network."""
        return self.repository.is_remote()

    def packages(self) -> list[RepositoryPackage]:
        """Return the packages of this repository."""
        return self._packages

    def count(self) -> int:
        """Return the number of packages in the index."""
        return len(self.index)

    def repo_abbr(self) -> str:
        """Return a short name made of the repository name and architecture."""
        return "/".join(self.uri.split("/")[-2:])


class RepositoryPackage:
    """A package together with the repository it comes from.

    Compares by identity, so it may be used as a key for disqualification.
    """

    __slots__ = ("package", "repository")

    def __init__(self, package: Package, repository: RepositoryWithIndex | None = None) -> None:
        self.package = package
        self.repository = repository

    def __repr__(self) -> str:
        return f"RepositoryPackage({self.package.filename()!r})"

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def version(self) -> str:
        return self.package.version

    @property
    def origin(self) -> str:
        return self.package.origin

    @property
    def arch(self) -> str:
        return self.package.arch

    @property
    def dependencies(self) -> Sequence[str]:
        return self.package.dependencies

    @property
    def provides(self) -> Sequence[str]:
        return self.package.provides

    @property
    def install_if(self) -> Sequence[str]:
        return self.package.install_if

    @property
    def provider_priority(self) -> int:
        return self.package.provider_priority

    @property
    def installed_size(self) -> int:
        return self.package.installed_size

    def filename(self) -> str:
        """Return the file name of the package archive."""
        return self.package.filename()

    def url(self) -> str:
        """Return the download URL of the package archive."""
        if self.repository is None:
            raise ValueError(f"package {self.filename()} has no repository")
        return f"{self.repository.uri}/{self.filename()}"


def new_repository_from_components(base_uri: str, release: str, repo: str, arch: str) -> Repository:
    """Build a repository whose URI is made from its components."""
    return Repository(uri=f"{base_uri}/{release}/{repo}/{arch}")