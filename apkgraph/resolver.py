"""Resolving package names and constraints to an ordered install list."""

from __future__ import annotations

import copy
import itertools
import json
import threading
from collections.abc import Iterable, Mapping, Sequence

from apkgraph.candidates import Candidate, best_package, filter_packages, sort_packages
from apkgraph.indexes import (
    ConstraintError,
    DepError,
    NamedIndex,
    ResolutionError,
    disqualified_error,
)
from apkgraph.repository import RepositoryPackage
from apkgraph.util import uniqify
from apkgraph.version import (
    ParsedConstraint,
    VersionDependency,
    VersionError,
    cached_parse_version,
    cached_resolve_constraint,
)

Disqualified = dict[RepositoryPackage, str]


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _build_maps(
    indexes: Sequence[NamedIndex],
) -> tuple[dict[str, list[Candidate]], dict[str, list[Candidate]]]:
    name_map: dict[str, list[Candidate]] = {}
    install_if_map: dict[str, list[Candidate]] = {}
    for index in indexes:
        for pkg in index.packages():
            name_map.setdefault(pkg.name, []).append(Candidate(pkg, index.name))
            for dep in pkg.install_if:
                install_if_map.setdefault(dep, []).append(Candidate(pkg, index.name))

    # Index every package also under each name it provides.
    for candidates in [list(versions) for versions in name_map.values()]:
        for candidate in candidates:
            for provide in candidate.provides:
                name = cached_resolve_constraint(provide).name
                name_map.setdefault(name, []).append(candidate)
    return name_map, install_if_map


def _provides_itself(pkg: RepositoryPackage, version: str, compare: VersionDependency) -> bool:
    """Return True if ``pkg`` meets a dependency on its own name."""
    try:
        actual = cached_parse_version(pkg.version)
        if compare is VersionDependency.ANY:
            return True
        return compare.satisfies(actual, cached_parse_version(version))
    except VersionError:
        # Invalid versions are accepted for the package itself but never fulfil.
        return False


class PkgResolver:
    """Resolves packages, and all their dependencies, from a list of indexes.

    Every index is searched for dependencies.  If the indexes change, a new
    resolver must be made.
    """

    def __init__(self, indexes: Iterable[NamedIndex]) -> None:
        self.indexes: tuple[NamedIndex, ...] = tuple(indexes)
        self.name_map, self.install_if_map = _build_maps(self.indexes)
        # Providers already chosen, by the name they were chosen for.
        self.selected: dict[str, RepositoryPackage] = {}

    def __repr__(self) -> str:
        return f"PkgResolver(indexes={len(self.indexes)}, names={len(self.name_map)})"

    def clone(self) -> PkgResolver:
        """Return a copy with its own maps and nothing selected."""
        other = copy.copy(self)
        other.name_map = dict(self.name_map)
        other.install_if_map = dict(self.install_if_map)
        other.selected = {}
        return other

    def _candidates_for(
        self, pkg_name: str, dq: Mapping[RepositoryPackage, str]
    ) -> tuple[ParsedConstraint, list[Candidate]]:
        constraint = cached_resolve_constraint(pkg_name)
        providers = self.name_map.get(constraint.name)
        if providers is None:
            raise ResolutionError(f"nothing provides {_quote(constraint.name)}")
        found = filter_packages(
            providers, dq, constraint.version, constraint.dep, prefer_pin=constraint.pin
        )
        if not found:
            raise disqualified_error((c.package for c in providers), dq)
        return constraint, found

    def resolve_package(
        self, pkg_name: str, dq: Mapping[RepositoryPackage, str] | None = None
    ) -> list[RepositoryPackage]:
        """Return every package satisfying ``pkg_name``, best match first.

        Raises ResolutionError when nothing satisfies it.
        """
        dq = {} if dq is None else dq
        constraint, found = self._candidates_for(pkg_name, dq)
        ordered = sort_packages(found, None, constraint.name, None, None, constraint.pin)
        return [c.package for c in ordered if c.package not in dq]

    def _resolve_best(self, pkg_name: str, dq: Mapping[RepositoryPackage, str]) -> RepositoryPackage:
        constraint, found = self._candidates_for(pkg_name, dq)
        best = best_package(found, None, constraint.name, None, None, constraint.pin)
        assert best is not None
        return best.package

    def _next_package(self, packages: Sequence[str], dq: Disqualified) -> str:
        """Pick the constraint with the fewest candidate packages."""
        chosen = ""
        least = 0
        for pkg_name in packages:
            try:
                pkgs = self.resolve_package(pkg_name, dq)
            except ResolutionError as exc:
                raise ConstraintError(pkg_name, exc) from exc
            if not pkgs:
                raise ResolutionError(f"could not find package {pkg_name}")
            if not chosen or len(pkgs) < least:
                chosen, least = pkg_name, len(pkgs)
        return chosen

    def _disqualify_providers(self, constraint: str, dq: Disqualified) -> None:
        """Disqualify everything that provides ``constraint`` (for ``!name``)."""
        parsed = cached_resolve_constraint(constraint)
        providers = self.name_map.get(parsed.name)
        if providers is None:
            return
        conflicting = filter_packages(
            providers, dq, parsed.version, parsed.dep, prefer_pin=parsed.pin
        )
        for conflict in conflicting:
            dq.setdefault(conflict.package, "excluded by !" + constraint)

    @staticmethod
    def _conflicting_version(constraint: ParsedConstraint, conflict: Candidate) -> bool:
        # A versioned provide conflicts with every other provider.
        if constraint.version:
            return True
        if conflict.name == constraint.name:
            return conflict.version != constraint.version
        for provide in conflict.provides:
            provided = cached_resolve_constraint(provide)
            if provided.name == constraint.name:
                return provided.version != constraint.version
        raise RuntimeError(
            f"{conflict.filename()} does not provide {_quote(constraint.name)}"
        )

    def _disqualify_conflicts(self, pkg: RepositoryPackage, dq: Disqualified) -> None:
        """Disqualify everything that conflicts with ``pkg``."""
        for provide in pkg.provides:
            constraint = cached_resolve_constraint(provide)
            for conflict in self.name_map.get(constraint.name, ()):
                if conflict.package is pkg or conflict.package in dq:
                    continue
                if not self._conflicting_version(constraint, conflict):
                    continue
                dq[conflict.package] = f"{pkg.filename()} already provides {constraint.name}"

    def _pick(self, pkg: RepositoryPackage) -> None:
        conflict = self.selected.get(pkg.name)
        if conflict is not None:
            if conflict is pkg:
                return
            raise ResolutionError(
                f"selecting package {pkg.filename()} conflicts with "
                f"{conflict.filename()} on {_quote(pkg.name)}"
            )
        self.selected[pkg.name] = pkg
        for provide in pkg.provides:
            constraint = cached_resolve_constraint(provide)
            conflict = self.selected.get(constraint.name)
            if conflict is not None:
                raise ResolutionError(
                    f"selecting package {pkg.filename()} conflicts with "
                    f"{conflict.filename()} on {_quote(constraint.name)}"
                )
            # Unversioned virtuals do not count as selections.
            if constraint.version:
                self.selected[constraint.name] = pkg

    def _constrain(self, constraints: Iterable[str], dq: Disqualified) -> None:
        """Disqualify every provider that a versioned constraint rules out."""
        for constraint in constraints:
            if constraint.startswith("!"):
                self._disqualify_providers(constraint[1:], dq)
                continue
            parsed = cached_resolve_constraint(constraint)
            if parsed.dep is VersionDependency.ANY:
                continue
            providers = self.name_map.get(parsed.name)
            if providers is None:
                continue
            try:
                required = cached_parse_version(parsed.version)
            except VersionError as exc:
                raise ResolutionError(
                    f"parsing constraint {_quote(constraint)}: {exc}", (exc,)
                ) from exc

            for provider in providers:
                if provider.name == parsed.name:
                    try:
                        actual = cached_parse_version(provider.version)
                    except VersionError as exc:
                        dq[provider.package] = (
                            f"parsing version {_quote(provider.version)} failed: {exc}"
                        )
                        continue
                    if not parsed.dep.satisfies(actual, required):
                        dq[provider.package] = (
                            f"{_quote(provider.version)} does not satisfy {_quote(constraint)}"
                        )
                    continue
                for provide in provider.provides:
                    provided = cached_resolve_constraint(provide)
                    if provided.name != parsed.name:
                        continue
                    try:
                        actual = cached_parse_version(provided.version)
                    except VersionError as exc:
                        dq[provider.package] = f"parsing {_quote(provided.version)}: {exc}"
                        continue
                    if not parsed.dep.satisfies(actual, required):
                        dq[provider.package] = (
                            f"{_quote(provider.filename())} provides {_quote(provide)} "
                            f"which does not satisfy {_quote(constraint)}"
                        )

    def get_packages_with_dependencies(
        self,
        packages: Sequence[str],
        all_archs: Mapping[str, Sequence[NamedIndex]] | None = None,
    ) -> tuple[list[RepositoryPackage], list[str]]:
        """Return the packages to install, in install order, and the conflicts.

        ``all_archs`` maps each architecture to its indexes; packages missing
        from any architecture are disqualified.  Already installed packages
        are not filtered out.
        """
        dq = DISQUALIFY_CACHE.get(all_archs)
        constraints = list(packages)
        dependencies_map: dict[str, RepositoryPackage] = {}
        install_tracked: dict[str, RepositoryPackage] = {}
        to_install: list[RepositoryPackage] = []
        conflicts: list[str] = []

        try:
            self._constrain(constraints, dq)
        except ResolutionError as exc:
            raise ResolutionError(f"constraining initial packages: {exc}", (exc,)) from exc

        while constraints:
            chosen = self._next_package(constraints, dq)
            try:
                pkg = self._resolve_best(chosen, dq)
            except ResolutionError as exc:
                raise ConstraintError(chosen, exc) from exc
            # Only recorded here; the install order comes with the dependencies.
            dependencies_map[pkg.name] = pkg
            constraints = [c for c in constraints if c != chosen]
            self._disqualify_conflicts(pkg, dq)

        for pkg_name in packages:
            try:
                pkg, deps, confs = self.get_package_with_dependencies(
                    pkg_name, dependencies_map, dq
                )
            except ResolutionError as exc:
                raise ConstraintError(pkg_name, exc) from exc
            for item in (*deps, pkg):
                if item.name not in install_tracked:
                    to_install.append(item)
                    install_tracked[item.name] = item
                dependencies_map.setdefault(item.name, item)
            conflicts.extend(confs)

        return to_install, uniqify(conflicts)

    def get_package_with_dependencies(
        self,
        pkg_name: str,
        existing: Mapping[str, RepositoryPackage] | None = None,
        dq: Disqualified | None = None,
    ) -> tuple[RepositoryPackage, list[RepositoryPackage], list[str]]:
        """Resolve one package and return it, its dependencies and its conflicts.

        ``existing`` holds packages already chosen, which are preferred; it is
        not modified.
        """
        dq = {} if dq is None else dq
        local_existing = dict(existing or {})
        existing_origins = {
            pkg.origin for pkg in local_existing.values() if pkg is not None and pkg.origin
        }

        try:
            pkg = self._resolve_best(pkg_name, dq)
        except ResolutionError as exc:
            raise ConstraintError(pkg_name, exc) from exc

        pin = cached_resolve_constraint(pkg_name).pin
        try:
            deps, conflicts = self._get_package_dependencies(
                pkg, pin, frozenset(), local_existing, existing_origins, dq
            )
        except ResolutionError as exc:
            raise DepError(pkg, exc) from exc

        added: dict[str, RepositoryPackage] = {}
        dependencies: list[RepositoryPackage] = []
        for dep in deps:
            if dep.name not in added:
                dependencies.append(dep)
                added[dep.name] = dep

        for dep_name, dep_pkg in list(added.items()):
            triggered = self.install_if_map.get(dep_name)
            if triggered is None:
                triggered = self.install_if_map.get(f"{dep_name}={dep_pkg.version}")
            if triggered is None:
                continue
            for candidate in triggered:
                if all(
                    self._install_if_met(condition, added) for condition in candidate.install_if
                ) and candidate.name not in added:
                    dependencies.append(candidate.package)
                    added[candidate.name] = candidate.package
        return pkg, dependencies, conflicts

    @staticmethod
    def _install_if_met(condition: str, added: Mapping[str, RepositoryPackage]) -> bool:
        if condition in added:
            return True
        constraint = cached_resolve_constraint(condition)
        match = added.get(constraint.name)
        return match is not None and match.version == constraint.version

    def _check_selected(self, picked: RepositoryPackage, dep: str, constraint: ParsedConstraint) -> None:
        """Raise unless the already selected ``picked`` meets ``dep``."""
        try:
            actual = cached_parse_version(picked.version)
            required = cached_parse_version(constraint.version)
            for provide in picked.provides:
                provided = cached_resolve_constraint(provide)
                # An unversioned virtual cannot meet a versioned constraint.
                if provided.name != constraint.name or not provided.version:
                    continue
                if provided.dep.satisfies(cached_parse_version(provided.version), required):
                    return
        except VersionError as exc:
            raise ResolutionError(str(exc), (exc,)) from exc
        if constraint.dep.satisfies(actual, required):
            return
        raise ResolutionError(
            f'we already selected "{picked.name}={picked.version}" which conflicts with {_quote(dep)}'
        )

    def _get_package_dependencies(
        self,
        pkg: RepositoryPackage,
        allow_pin: str,
        parents: frozenset[str],
        existing: dict[str, RepositoryPackage],
        existing_origins: set[str],
        dq: Disqualified,
    ) -> tuple[list[RepositoryPackage], list[str]]:
        """Walk the dependencies depth first: children before their parents.

        ``parents`` guards against cycles in the dependency lists.
        """
        if pkg.name in parents:
            return [], []
        my_provides: set[str] = set()
        for provide in pkg.provides:
            my_provides.add(provide)
            my_provides.add(cached_resolve_constraint(provide).name)

        constraints = list(pkg.dependencies)
        try:
            self._constrain(constraints, dq)
        except ResolutionError as exc:
            raise ResolutionError(f"constraining deps: {exc}", (exc,)) from exc

        dependencies: list[RepositoryPackage] = []
        conflicts: list[str] = []
        while constraints:
            options: dict[str, list[Candidate]] = {}
            for dep in constraints:
                if dep.startswith("!"):
                    conflicts.append(dep[1:])
                    continue
                constraint = cached_resolve_constraint(dep)
                name = constraint.name
                if name in my_provides or dep in my_provides:
                    continue
                if pkg.name == name and _provides_itself(pkg, constraint.version, constraint.dep):
                    continue

                picked = self.selected.get(name)
                if picked is not None:
                    if constraint.version:
                        self._check_selected(picked, dep, constraint)
                    continue

                providers = self.name_map.get(name)
                if providers is None:
                    raise ConstraintError(dep, ResolutionError(f"nothing provides {_quote(name)}"))
                found = filter_packages(
                    providers,
                    dq,
                    constraint.version,
                    constraint.dep,
                    allow_pin=allow_pin,
                    installed=existing.get(name),
                )
                if not found:
                    raise ConstraintError(
                        dep, disqualified_error((c.package for c in providers), dq)
                    )
                options[dep] = found

            if not options:
                break

            # Solve the constraint with the fewest options; ties go by name.
            lowest = min(options, key=lambda key: (len(options[key]), key))
            constraints = [key for key in options if key != lowest]
            name = cached_resolve_constraint(lowest).name

            best = best_package(options[lowest], None, name, existing, existing_origins, "")
            if best is None:
                raise ConstraintError(
                    name, ResolutionError(f"could not find package for {_quote(name)}")
                )
            dep_pkg = best.package
            self._disqualify_conflicts(dep_pkg, dq)
            self._pick(pkg)

            try:
                sub_deps, sub_conflicts = self._get_package_dependencies(
                    dep_pkg, allow_pin, parents | {pkg.name}, existing, existing_origins, dq
                )
            except ResolutionError as exc:
                raise ConstraintError(name, DepError(dep_pkg, exc)) from exc
            dependencies.extend(sub_deps)
            dependencies.append(dep_pkg)
            conflicts.extend(sub_conflicts)
            for sub in sub_deps:
                existing[sub.name] = sub
                existing_origins.add(sub.origin)
        return dependencies, conflicts


class ResolverCache:
    """Keeps one resolver per sequence of indexes and hands out clones."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[tuple[NamedIndex, ...], PkgResolver] = {}

    def get(self, indexes: Iterable[NamedIndex]) -> PkgResolver:
        """Return a fresh clone of the resolver for ``indexes``."""
        key = tuple(indexes)
        with self._lock:
            resolver = self._entries.get(key)
            if resolver is None:
                resolver = PkgResolver(key)
                self._entries[key] = resolver
            return resolver.clone()


class DisqualifyCache:
    """Keeps the cross-architecture disqualifications for each set of indexes."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[tuple[NamedIndex, ...], Disqualified] = {}

    def get(self, by_arch: Mapping[str, Sequence[NamedIndex]] | None) -> Disqualified:
        """Return a copy of the disqualifications for ``by_arch``."""
        by_arch = by_arch or {}
        key = tuple(
            sorted(itertools.chain.from_iterable(by_arch.values()), key=lambda index: index.name)
        )
        with self._lock:
            dq = self._entries.get(key)
            if dq is None:
                dq = disqualify_difference(by_arch)
                self._entries[key] = dq
            return dict(dq)


RESOLVER_CACHE = ResolverCache()
DISQUALIFY_CACHE = DisqualifyCache()


def new_pkg_resolver(indexes: Iterable[NamedIndex]) -> PkgResolver:
    """Return a resolver for ``indexes``, reusing earlier work where possible."""
    return RESOLVER_CACHE.get(indexes)


def disqualify_difference(by_arch: Mapping[str, Sequence[NamedIndex]]) -> Disqualified:
    """Disqualify every package whose name and version is missing from another architecture."""
    dq: Disqualified = {}
    if len(by_arch) == 1:
        return dq

    allowable: dict[str, dict[str, set[str]]] = {}
    for arch, indexes in by_arch.items():
        allowed: dict[str, set[str]] = {}
        for index in indexes:
            for pkg in index.packages():
                allowed.setdefault(pkg.name, set()).add(pkg.version)
        allowable[arch] = allowed

    for arch in allowable:
        resolver = PkgResolver(by_arch[arch])
        for other_arch, allowed in allowable.items():
            if other_arch == arch:
                continue
            for candidates in resolver.name_map.values():
                for candidate in candidates:
                    if candidate.version not in allowed.get(candidate.name, ()):
                        dq[candidate.package] = (
                            f"package {_quote(candidate.filename())} "
                            f"not available for arch {_quote(other_arch)}"
                        )
    return dq