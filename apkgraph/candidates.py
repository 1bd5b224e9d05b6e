"""Choosing between packages that can satisfy the same requirement."""

from __future__ import annotations

import functools
from collections.abc import Callable, Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass

from apkgraph.repository import RepositoryPackage, RepositoryWithIndex
from apkgraph.version import (
    EQUAL,
    VersionDependency,
    VersionError,
    cached_parse_version,
    cached_resolve_constraint,
    compare_versions,
)


@dataclass(frozen=True, eq=False)
class Candidate:
    """A repository package together with the pin name of the index it came from."""

    package: RepositoryPackage
    pinned_name: str = ""

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
    def provides(self) -> Sequence[str]:
        return self.package.provides

    @property
    def dependencies(self) -> Sequence[str]:
        return self.package.dependencies

    @property
    def install_if(self) -> Sequence[str]:
        return self.package.install_if

    @property
    def provider_priority(self) -> int:
        return self.package.provider_priority

    @property
    def repository(self) -> RepositoryWithIndex | None:
        return self.package.repository

    def filename(self) -> str:
        """Return the file name of the package archive."""
        return self.package.filename()

    def url(self) -> str:
        """Return the download URL of the package archive."""
        return self.package.url()


def filter_packages(
    pkgs: Iterable[Candidate],
    dq: Mapping[RepositoryPackage, str] | None,
    version: str = "",
    compare: VersionDependency = VersionDependency.ANY,
    allow_pin: str = "",
    prefer_pin: str = "",
    installed: RepositoryPackage | None = None,
) -> list[Candidate]:
    """Return the candidates that are not disqualified and meet the version requirement.

    A candidate from a pinned index is kept only when its pin is allowed or
    preferred, or when it is the very package already installed.  A candidate
    also passes when one of its versioned provides meets the requirement.
    """
    dq = dq or {}
    installed_url = installed.url() if installed is not None else ""

    required = None
    if compare is not VersionDependency.ANY:
        try:
            required = cached_parse_version(version)
        except VersionError:
            # An unparsable requirement cannot match anything.
            return []

    passed: list[Candidate] = []
    for pkg in pkgs:
        if pkg.package in dq:
            continue
        pinned = pkg.pinned_name
        if pinned and pinned not in (allow_pin, prefer_pin):
            if installed is None or installed_url != pkg.url():
                continue
        if required is None:
            passed.append(pkg)
            continue

        try:
            actual = cached_parse_version(pkg.version)
        except VersionError:
            continue
        if compare.satisfies(actual, required):
            passed.append(pkg)
            continue

        for provide in pkg.provides:
            provided_version = cached_resolve_constraint(provide).version
            if not provided_version:
                continue
            try:
                actual = cached_parse_version(provided_version)
            except VersionError:
                continue
            if compare.satisfies(actual, required):
                passed.append(pkg)
                break
    return passed


def dep_version_for_name(pkg: Candidate, name: str) -> str:
    """Return the version under which ``pkg`` offers ``name``.

    That is the package's own version when ``name`` is empty or its own name,
    otherwise the version of the matching provide (falling back to the
    package version for an unversioned provide), or an empty string.
    """
    if not name or name == pkg.name:
        return pkg.version
    for provide in pkg.provides:
        constraint = cached_resolve_constraint(provide)
        if constraint.name == name:
            return constraint.version or pkg.version
    return ""


def _repo_uri(pkg: RepositoryPackage | Candidate) -> str:
    repository = pkg.repository
    return repository.uri if repository is not None else ""


def _prefer(a_flag: bool, b_flag: bool) -> int:
    if a_flag and not b_flag:
        return -1
    if b_flag and not a_flag:
        return 1
    return 0


def compare_packages(
    compare: RepositoryPackage | None = None,
    name: str = "",
    existing: Mapping[str, RepositoryPackage] | None = None,
    existing_origins: Collection[str] | None = None,
    pin: str = "",
) -> Callable[[Candidate, Candidate], int]:
    """Return a comparison function ordering candidates from most to least preferred.

    Preference goes, in turn, to the repository and origin of ``compare``, to a
    package already installed, to an origin already installed, to the pin, to
    a higher provider priority, to a higher version of ``name``, to a higher
    package version, and finally to the smaller name.
    """
    existing = existing or {}
    existing_origins = existing_origins or ()

    def _compare(a: Candidate, b: Candidate) -> int:
        a_version_str = dep_version_for_name(a, name)
        b_version_str = dep_version_for_name(b, name)

        if compare is not None:
            wanted_repo = _repo_uri(compare)
            result = _prefer(_repo_uri(a) == wanted_repo, _repo_uri(b) == wanted_repo)
            if result:
                return result
            result = _prefer(a.origin == compare.origin, b.origin == compare.origin)
            if result:
                return result

        a_match = existing.get(a.name)
        b_match = existing.get(b.name)
        result = _prefer(
            a_match is not None and a_match.version == a.version,
            b_match is not None and b_match.version == b.version,
        )
        if result:
            return result

        result = _prefer(a.origin in existing_origins, b.origin in existing_origins)
        if result:
            return result

        result = _prefer(a.pinned_name == pin, b.pinned_name == pin)
        if result:
            return result

        if a.provider_priority != b.provider_priority:
            return -1 if a.provider_priority > b.provider_priority else 1

        result = _compare_version_strings(a_version_str, b_version_str)
        if result:
            return result
        # Equal provided versions may still hide different package versions.
        if a_version_str != a.version or b_version_str != b.version:
            result = _compare_version_strings(a.version, b.version)
            if result:
                return result

        return (a.name > b.name) - (a.name < b.name)

    return _compare


def _compare_version_strings(a: str, b: str) -> int:
    """Order two version strings highest first; unparsable ones sort last."""
    try:
        a_version = cached_parse_version(a)
    except VersionError:
        return 1
    try:
        b_version = cached_parse_version(b)
    except VersionError:
        return -1
    result = compare_versions(a_version, b_version)
    return 0 if result == EQUAL else -result


def sort_packages(
    pkgs: Iterable[Candidate],
    compare: RepositoryPackage | None = None,
    name: str = "",
    existing: Mapping[str, RepositoryPackage] | None = None,
    existing_origins: Collection[str] | None = None,
    pin: str = "",
) -> list[Candidate]:
    """Return the candidates sorted from most to least preferred."""
    key = functools.cmp_to_key(compare_packages(compare, name, existing, existing_origins, pin))
    return sorted(pkgs, key=key)


def best_package(
    pkgs: Iterable[Candidate],
    compare: RepositoryPackage | None = None,
    name: str = "",
    existing: Mapping[str, RepositoryPackage] | None = None,
    existing_origins: Collection[str] | None = None,
    pin: str = "",
) -> Candidate | None:
    """Return the most preferred candidate, or None when there is none."""
    pkgs = list(pkgs)
    if not pkgs:
        return None
    key = functools.cmp_to_key(compare_packages(compare, name, existing, existing_origins, pin))
    return min(pkgs, key=key)