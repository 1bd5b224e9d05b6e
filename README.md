# apkgraph

A library for working with APK package metadata: parsing and comparing
package versions, matching version constraints, modelling repositories and
the packages in their indexes, and resolving a set of requested packages
into an ordered install list with all of its dependencies.

It has no dependencies outside the standard library.

## Installation

```
pip install apkgraph
```

To run the test suite:

```
pip install "apkgraph[test]"
pytest
```

## Versions and constraints (`apkgraph.version`)

```python
from apkgraph.version import (
    compare_versions,
    parse_version,
    resolve_package_name_version_pin,
)

a = parse_version("1.2.3-r1")
b = parse_version("1.2.3_rc1")
compare_versions(a, b)   # 1 (GREATER): a release sorts after its release candidate
a > b                    # True; Version objects are ordered

c = resolve_package_name_version_pin("openssl>=3.0@edge")
c.name, c.version, c.pin                    # ("openssl", "3.0", "edge")
c.satisfied_by(parse_version("3.1.4-r0"))   # True
```

- `parse_version` raises `VersionError` (a `ValueError`) for strings it cannot parse.
- `compare_versions` returns `GREATER`, `EQUAL` or `LESS` (1, 0, -1).
- Constraints understand `=`, `>`, `<`, `>=`, `<=`, `~` and `=~`, plus an
  optional `@tag` repository pin. The comparison is a `VersionDependency`,
  whose `satisfies(actual, required)` applies it; `~` uses
  `includes_version`, which matches when the actual version falls within a
  more general one (`1.7.1-r1` is within `1.7`).
- A `so:` name whose version has no `-rN` release suffix gets `0.` put in
  front of its version, so such versions sort before properly versioned ones.
- `cached_parse_version` and `cached_resolve_constraint` are memoised forms
  of the two parsers.

## Repositories (`apkgraph.repository`)

```python
from apkgraph.repository import Package, new_repository_from_components

repo = new_repository_from_components(
    "https://packages.example.com/alpine", "edge", "main", "x86_64"
)
repo.index_uri()   # "https://packages.example.com/alpine/edge/main/x86_64/APKINDEX.tar.gz"
repo.is_remote()   # True; only URIs starting with "/" are local

indexed = repo.with_index([Package(name="busybox", version="1.36.1-r0")])
indexed.count()        # 1
indexed.repo_abbr()    # "main/x86_64"
pkg = indexed.packages()[0]
pkg.filename()         # "busybox-1.36.1-r0.apk"
pkg.url()              # ".../edge/main/x86_64/busybox-1.36.1-r0.apk"
```

`Package` holds name, version, origin, dependencies, provides, install_if,
provider priority and sizes. `Package` and `RepositoryPackage` compare by
identity, so the same name and version from two indexes stay distinct.

## Resolving dependencies (`apkgraph.resolver`)

```python
from apkgraph.indexes import NamedRepositoryWithIndex
from apkgraph.repository import Package, Repository
from apkgraph.resolver import new_pkg_resolver

indexed = Repository().with_index([
    Package(name="app", version="1.0", dependencies=["/bin/sh"]),
    Package(name="busybox", version="1.36.1-r0", provides=["/bin/sh"]),
])
resolver = new_pkg_resolver([NamedRepositoryWithIndex("", indexed)])
to_install, conflicts = resolver.get_packages_with_dependencies(["app"])
[p.filename() for p in to_install]   # ["busybox-1.36.1-r0.apk", "app-1.0.apk"]
```

- Packages come back in install order: dependencies before the packages
  that need them, each package once.
- `conflicts` lists the names excluded by `!name` dependencies.
- `resolve_package(name)` returns every package satisfying a constraint,
  best match first.
- `get_package_with_dependencies(name, existing, dq)` resolves one package
  and returns `(package, dependencies, conflicts)`, preferring packages in
  `existing` and adding `install_if` packages whose conditions are all met.
- Indexes are wrapped in `NamedRepositoryWithIndex(name, repo)`; a non-empty
  name is a pin, and packages from a pinned index are only used when asked
  for with `@name` (or when already installed).
- To resolve for several architectures at once, pass a mapping of
  architecture to indexes as `all_archs`; any package whose name and version
  is missing from another architecture is disqualified
  (`disqualify_difference`).
- `new_pkg_resolver` caches one resolver per sequence of indexes
  (`ResolverCache`) and returns a fresh clone each time.

Failures raise `ResolutionError` or its subclasses `ConstraintError` (a
constraint could not be solved) and `DepError` (a package's dependencies
could not be resolved). Each keeps the underlying errors in `causes`; when
candidates were ruled out, those are `DisqualifiedError`s carrying the
package and the reason.

## Choosing between candidates (`apkgraph.candidates`)

`filter_packages`, `sort_packages`, `best_package` and `compare_packages`
work on `Candidate` objects (a package with the pin name of its index).
Preference goes, in turn, to a given package's repository and origin, to an
already installed package, to an installed origin, to the pin, to a higher
provider priority, to a higher version, and finally to the smaller name.

## The world and repositories files (`apkgraph.world`)

These read and write `etc/apk/world` and `etc/apk/repositories` under a
root directory. The `etc/apk` directory must already exist.

```python
from pathlib import Path
from apkgraph.world import get_repositories, get_world, set_repositories, set_world

root = Path("/tmp/root")
(root / "etc" / "apk").mkdir(parents=True, exist_ok=True)

set_world(root, ["busybox", "alpine-baselayout"])
get_world(root)          # ["alpine-baselayout", "busybox"]

set_repositories(root, ["https://packages.example.com/alpine/edge/main"])
get_repositories(root)   # ["https://packages.example.com/alpine/edge/main"]
```

`set_world` writes the names sorted; `set_repositories` raises `ValueError`
for an empty list. Both write the files with mode 0644.

## Helpers (`apkgraph.util`)

- `uniqify(items)` drops repeats, keeping first occurrences in order.
- `control_value(control_tar, *keys)` reads the `.PKGINFO` of an
  uncompressed control tar stream and returns every value of each wanted
  key; it raises `FileNotFoundError` when there is no `.PKGINFO`.

## What it does not do

apkgraph works only on package metadata you give it. It does not download
or parse `APKINDEX` archives, verify signatures, fetch anything over HTTP or
add authentication to requests, and it does not install or unpack packages.
It has no command-line program.