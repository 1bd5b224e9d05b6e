"""Package version parsing, ordering and dependency constraints."""

from __future__ import annotations

import enum
import functools
import re
from dataclasses import dataclass

GREATER = 1
EQUAL = 0
LESS = -1

_VERSION_RE = re.compile(
    r"([0-9]+)((\.[0-9]+)*)([a-z]?)"
    r"((_alpha|_beta|_pre|_rc)([0-9]*))?"
    r"((_cvs|_svn|_git|_hg|_p)([0-9]*))?"
    r"((-r)([0-9]+))?"
)
_PACKAGE_NAME_RE = re.compile(r"([^@=><~]+)(([=><~]+)([^@]+))?(@([a-zA-Z0-9]+))?")
_RELEASE_SUFFIX_RE = re.compile(r"-r[0-9]+\Z")


class VersionError(ValueError):
    """Raised when a version string cannot be parsed."""


class _PreSuffix(enum.IntEnum):
    # The order matters: it is the sort order of pre-release suffixes.
    NONE = 0
    ALPHA = 1
    BETA = 2
    PRE = 3
    RC = 4
    MAX = 1000


class _PostSuffix(enum.IntEnum):
    NONE = 0
    CVS = 1
    SVN = 2
    GIT = 3
    HG = 4
    P = 5
    MAX = 1000


_PRE_SUFFIXES = {
    "": _PreSuffix.NONE,
    "_alpha": _PreSuffix.ALPHA,
    "_beta": _PreSuffix.BETA,
    "_pre": _PreSuffix.PRE,
    "_rc": _PreSuffix.RC,
}

_POST_SUFFIXES = {
    "": _PostSuffix.NONE,
    "_cvs": _PostSuffix.CVS,
    "_svn": _PostSuffix.SVN,
    "_git": _PostSuffix.GIT,
    "_hg": _PostSuffix.HG,
    "_p": _PostSuffix.P,
}


@functools.total_ordering
@dataclass(frozen=True)
class Version:
    """A parsed package version such as ``1.2.3a_rc1_p2-r4``."""

    numbers: tuple[int, ...]
    letter: str = ""
    pre_suffix: int = _PreSuffix.NONE
    pre_suffix_number: int = 0
    post_suffix: int = _PostSuffix.NONE
    post_suffix_number: int = 0
    revision: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "numbers", tuple(self.numbers))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return compare_versions(self, other) == LESS


def parse_version(version: str) -> Version:
    """Parse a version string, raising VersionError when it is invalid."""
    match = _VERSION_RE.fullmatch(version)
    if match is None:
        raise VersionError(f"invalid version {version}, could not parse")

    numbers = [int(match.group(1))]
    numbers.extend(int(part) for part in match.group(2).split(".") if part)

    pre_name = match.group(6) or ""
    post_name = match.group(9) or ""
    try:
        pre_suffix = _PRE_SUFFIXES[pre_name]
    except KeyError:
        raise VersionError(
            f"invalid version {version}, pre-suffix {pre_name} is not valid"
        ) from None
    try:
        post_suffix = _POST_SUFFIXES[post_name]
    except KeyError:
        raise VersionError(
            f"invalid version {version}, suffix {post_name} is not valid"
        ) from None

    return Version(
        numbers=tuple(numbers),
        letter=match.group(4) or "",
        pre_suffix=pre_suffix,
        pre_suffix_number=int(match.group(7)) if match.group(7) else 0,
        post_suffix=post_suffix,
        post_suffix_number=int(match.group(10)) if match.group(10) else 0,
        revision=int(match.group(13)) if match.group(13) else 0,
    )


def _sign(a: int | str, b: int | str) -> int:
    if a > b:
        return GREATER
    if a < b:
        return LESS
    return EQUAL


def compare_versions(actual: Version, required: Version) -> int:
    """Return GREATER, EQUAL or LESS for ``actual`` relative to ``required``."""
    for a, r in zip(actual.numbers, required.numbers):
        if a != r:
            return _sign(a, r)
    if len(actual.numbers) != len(required.numbers):
        return _sign(len(actual.numbers), len(required.numbers))

    if actual.letter != required.letter:
        return _sign(actual.letter, required.letter)

    # No pre-release suffix sorts after every pre-release suffix.
    actual_pre = actual.pre_suffix or _PreSuffix.MAX
    required_pre = required.pre_suffix or _PreSuffix.MAX
    # Post-release suffixes are left alone: having one sorts above having none.
    for a, r in (
        (actual_pre, required_pre),
        (actual.pre_suffix_number, required.pre_suffix_number),
        (actual.post_suffix, required.post_suffix),
        (actual.post_suffix_number, required.post_suffix_number),
        (actual.revision, required.revision),
    ):
        if a != r:
            return _sign(a, r)
    return EQUAL


def includes_version(actual: Version, required: Version) -> bool:
    """Return True if ``actual`` falls within the more general ``required``."""
    if len(actual.numbers) < len(required.numbers):
        return False
    if actual.numbers[: len(required.numbers)] != required.numbers:
        return False
    if len(actual.numbers) > len(required.numbers):
        return True
    if required.letter and actual.letter != required.letter:
        return False
    if required.pre_suffix != _PreSuffix.NONE and actual.pre_suffix != required.pre_suffix:
        return False
    if required.pre_suffix_number and actual.pre_suffix_number != required.pre_suffix_number:
        return False
    if required.post_suffix != _PostSuffix.NONE and actual.post_suffix != required.post_suffix:
        return False
    if required.post_suffix_number and actual.post_suffix_number != required.post_suffix_number:
        return False
    if required.revision and actual.revision != required.revision:
        return False
    return True


class VersionDependency(enum.IntEnum):
    """The comparison a dependency places on a version."""

    ANY = 0
    EQUAL = 1
    GREATER = 2
    LESS = 3
    GREATER_EQUAL = 4
    LESS_EQUAL = 5
    TILDE = 6

    def satisfies(self, actual: Version, required: Version) -> bool:
        """Return True if ``actual`` meets this comparison against ``required``."""
        if self is VersionDependency.TILDE:
            return includes_version(actual, required)
        if self is VersionDependency.ANY:
            return True
        result = compare_versions(actual, required)
        accepted = {
            VersionDependency.EQUAL: (EQUAL,),
            VersionDependency.GREATER: (GREATER,),
            VersionDependency.LESS: (LESS,),
            VersionDependency.GREATER_EQUAL: (GREATER, EQUAL),
            VersionDependency.LESS_EQUAL: (LESS, EQUAL),
        }
        return result in accepted[self]


_MATCHERS = {
    "=": VersionDependency.EQUAL,
    ">": VersionDependency.GREATER,
    "<": VersionDependency.LESS,
    ">=": VersionDependency.GREATER_EQUAL,
    "<=": VersionDependency.LESS_EQUAL,
    "~": VersionDependency.TILDE,
    "=~": VersionDependency.TILDE,
}


@dataclass(frozen=True)
class ParsedConstraint:
    """A package name with an optional version requirement and repository pin."""

    name: str
    version: str = ""
    dep: VersionDependency = VersionDependency.ANY
    pin: str = ""

    def satisfied_by(self, version: Version) -> bool:
        """Return True if ``version`` meets this constraint."""
        if not self.version:
            return True
        return self.dep.satisfies(version, cached_parse_version(self.version))


def resolve_package_name_version_pin(pkg_name: str) -> ParsedConstraint:
    """Split ``name[op version][@pin]`` into its parts."""
    # Shared-library versions without a release suffix sort after those with one.
    if pkg_name.startswith("so:"):
        only_name, sep, pkg_version = pkg_name.partition("=")
        if sep and not _RELEASE_SUFFIX_RE.search(pkg_version):
            pkg_name = f"{only_name}=0.{pkg_version}"

    match = _PACKAGE_NAME_RE.fullmatch(pkg_name)
    if match is None:
        return ParsedConstraint(name=pkg_name)

    matcher = match.group(3) or ""
    return ParsedConstraint(
        name=match.group(1),
        version=match.group(4) or "",
        dep=_MATCHERS.get(matcher, VersionDependency.ANY),
        pin=match.group(6) or "",
    )


@functools.lru_cache(maxsize=None)
def cached_parse_version(version: str) -> Version:
    """Parse a version, remembering successful results."""
    return parse_version(version)


@functools.lru_cache(maxsize=None)
def cached_resolve_constraint(pkg_name: str) -> ParsedConstraint:
    """Parse a constraint, remembering the result."""
    return resolve_package_name_version_pin(pkg_name)