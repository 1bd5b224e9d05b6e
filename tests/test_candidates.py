import pytest

from apkgraph.candidates import (
    Candidate,
    best_package,
    compare_packages,
    dep_version_for_name,
    filter_packages,
    sort_packages,
)
from apkgraph.repository import Package, Repository, RepositoryPackage, RepositoryWithIndex
from apkgraph.version import VersionDependency as VD


def _candidate(version, pin=""):
    repo = RepositoryWithIndex(Repository("local"))
    return Candidate(RepositoryPackage(Package(name="", version=version), repo), pin)


PIN_PACKAGE = _candidate("2.1.0", "pinA")
LOWEST_PACKAGE = _candidate("1.2.3-r0")
CANDIDATES = [
    LOWEST_PACKAGE,
    _candidate("1.3.6-r0"),
    _candidate("1.2.8-r0"),
    _candidate("1.7.1-r0"),
    _candidate("1.7.1-r1"),
    _candidate("2.0.6-r0"),
    _candidate("0.14.0-r3"),
    _candidate("0.15.0-r0"),
    PIN_PACKAGE,
]
INSTALLED = {None: None, "pin": PIN_PACKAGE, "lowest": LOWEST_PACKAGE}


@pytest.mark.parametrize(
    "version, compare, pin, installed, want",
    [
        ("1.2.3-r0", VD.EQUAL, "", None, "1.2.3-r0"),
        ("1.2.3-r10000", VD.EQUAL, "", None, ""),
        ("2.0.0", VD.GREATER, "", None, "2.0.6-r0"),
        ("2.0.0", VD.GREATER_EQUAL, "", None, "2.0.6-r0"),
        ("2.0.0", VD.GREATER_EQUAL, "", "pin", "2.1.0"),
        ("3.0.0", VD.GREATER_EQUAL, "", None, ""),
        ("2.1.0", VD.EQUAL, "", None, ""),
        ("2.1.0", VD.EQUAL, "", "pin", "2.1.0"),
        ("2.1.0", VD.EQUAL, "pinA", None, "2.1.0"),
        ("", VD.ANY, "", None, "2.0.6-r0"),
        ("", VD.ANY, "", "pin", "2.1.0"),
        ("", VD.ANY, "", "lowest", "1.2.3-r0"),
        ("1.6", VD.TILDE, "", None, ""),
        ("1.7", VD.TILDE, "", None, "1.7.1-r1"),
        ("1.7.1", VD.TILDE, "", None, "1.7.1-r1"),
        ("1.7.1-r2", VD.TILDE, "", None, ""),
        ("0.14", VD.TILDE, "", None, "0.14.0-r3"),
        ("0.14.0", VD.TILDE, "", None, "0.14.0-r3"),
        ("0.15", VD.TILDE, "", None, "0.15.0-r0"),
        ("0.15.0", VD.TILDE, "", None, "0.15.0-r0"),
    ],
)
def test_resolve_version(version, compare, pin, installed, want):
    installed_candidate = INSTALLED[installed]
    installed_pkg = installed_candidate.package if installed_candidate else None
    found = filter_packages(
        CANDIDATES, {}, version=version, compare=compare, prefer_pin=pin, installed=installed_pkg
    )
    existing = {}
    origins = set()
    if installed_pkg is not None:
        existing[installed_pkg.name] = installed_pkg
        origins.add(installed_pkg.origin)
    best = best_package(found, None, "", existing, origins, pin)
    if want:
        assert best is not None
        assert best.version == want
    else:
        assert best is None


def _repo_candidate(name, version, repo, order, origin=""):
    pkg = Package(name=name, version=version, origin=origin, installed_size=order)
    return Candidate(RepositoryPackage(pkg, RepositoryWithIndex(Repository(repo))))


def _repo_pkg(origin, repo, name="", version=""):
    pkg = Package(name=name, version=version, origin=origin)
    return RepositoryPackage(pkg, RepositoryWithIndex(Repository(repo)))


SORT_CASES = {
    "just versions": (
        [
            ("package1", "1.0.0", "http://a.b.com", 2, ""),
            ("package1", "2.0.1", "http://a.b.com", 0, ""),
            ("package1", "1.2.0abc", "http://a.b.com", 3, ""),
            ("package1", "1.2.0", "http://a.b.com", 1, ""),
        ],
        None,
        [],
    ),
    "just names": (
        [
            ("package1", "1.0.0", "http://a.b.com", 1, ""),
            ("package2", "1.0.0", "http://a.b.com", 2, ""),
            ("earlier", "1.0.0", "http://a.b.com", 0, ""),
        ],
        None,
        [],
    ),
    "just origins": (
        [
            ("package1", "1.0.0", "http://a.b.com", 2, "c"),
            ("package1", "2.0.1", "http://a.b.com", 1, "b"),
            ("package1", "1.2.0", "http://a.b.com", 0, "a"),
        ],
        ("a", ""),
        [],
    ),
    "just repositories": (
        [
            ("package1", "1.0.0", "http://other.com", 2, "c"),
            ("package1", "2.0.1", "http://example.com", 1, "b"),
            ("package1", "1.2.0", "http://a.b.com", 0, "a"),
        ],
        ("a", "http://a.b.com"),
        [],
    ),
    "just existing": (
        [
            ("package1", "1.0.0", "http://other.com", 0, "c"),
            ("package1", "2.0.1", "http://example.com", 1, "b"),
            ("package1", "1.2.0", "http://a.b.com", 2, "a"),
        ],
        None,
        [("package1", "1.0.0", "http://other.com", "c")],
    ),
    "origins and versions": (
        [
            ("package1", "1.0.0", "http://a.b.com", 1, "a"),
            ("package1", "2.0.1", "http://a.b.com", 2, "b"),
            ("package1", "1.2.0", "http://a.b.com", 0, "a"),
        ],
        ("a", ""),
        [],
    ),
    "origins and repositories and versions": (
        [
            ("package1", "1.0.0", "http://a.b.com", 1, "a"),
            ("package1", "2.0.1", "http://other.com", 4, "b"),
            ("package1", "2.0.0", "http://other.com", 5, "b"),
            ("package1", "1.0.0", "http://a.b.com", 2, "c"),
            ("package1", "1.2.0", "http://example.com", 3, "a"),
            ("package1", "1.2.0", "http://a.b.com", 0, "a"),
        ],
        ("a", "http://a.b.com"),
        [],
    ),
}


@pytest.mark.parametrize("case", list(SORT_CASES))
def test_sort_packages(case):
    specs, compare_spec, existing_specs = SORT_CASES[case]
    candidates = [_repo_candidate(n, v, r, o, origin) for n, v, r, o, origin in specs]
    compare = _repo_pkg(*compare_spec) if compare_spec else None
    existing = {}
    origins = set()
    for name, version, repo, origin in existing_specs:
        existing[name] = _repo_pkg(origin, repo, name, version)
        origins.add(origin)
    result = sort_packages(candidates, compare, "", existing, origins, "")
    assert [c.package.installed_size for c in result] == list(range(len(specs)))


def test_sort_packages_leaves_input_alone():
    candidates = [
        _repo_candidate("p", "1.0.0", "http://a.b.com", 1),
        _repo_candidate("p", "2.0.0", "http://a.b.com", 0),
    ]
    original = list(candidates)
    result = sort_packages(candidates)
    assert candidates == original
    assert [c.version for c in result] == ["2.0.0", "1.0.0"]


def test_best_package_empty_is_none():
    assert best_package([]) is None


def test_best_package_prefers_provider_priority():
    low = Candidate(RepositoryPackage(Package("a", "9.0", provider_priority=1)))
    high = Candidate(RepositoryPackage(Package("b", "1.0", provider_priority=10)))
    assert best_package([low, high]) is high


def test_compare_packages_orders_by_name_last():
    first = Candidate(RepositoryPackage(Package("alpha", "1.0")))
    second = Candidate(RepositoryPackage(Package("beta", "1.0")))
    comparator = compare_packages()
    assert comparator(first, second) == -1
    assert comparator(second, first) == 1
    assert comparator(first, first) == 0


def test_compare_packages_uses_provided_version():
    a = Candidate(RepositoryPackage(Package("ld-a", "2.38-r10", provides=["so:ld=1.1"])))
    b = Candidate(RepositoryPackage(Package("ld-b", "2.38-r11", provides=["so:ld=1.0"])))
    assert best_package([b, a], name="so:ld") is a


def test_compare_packages_prefers_pin():
    plain = _candidate("3.0.0")
    pinned = _candidate("1.0.0", "edge")
    assert best_package([plain, pinned], pin="edge") is pinned
    assert best_package([plain, pinned]) is plain


def test_dep_version_for_name():
    pkg = Candidate(
        RepositoryPackage(Package("package8", "2", provides=["package7=0.9", "virtual"]))
    )
    assert dep_version_for_name(pkg, "package7") == "0.9"
    assert dep_version_for_name(pkg, "package8") == "2"
    assert dep_version_for_name(pkg, "") == "2"
    assert dep_version_for_name(pkg, "virtual") == "2"
    assert dep_version_for_name(pkg, "missing") == ""


def test_filter_packages_matches_provided_version():
    pkg = _repo_candidate("package8", "2", "local", 0)
    pkg.package.package.provides.append("package7=0.9")
    assert filter_packages([pkg], {}, "0.9", VD.EQUAL) == [pkg]
    assert filter_packages([pkg], {}, "0.8", VD.EQUAL) == []


def test_filter_packages_skips_disqualified():
    first = _candidate("1.0.0")
    second = _candidate("2.0.0")
    result = filter_packages([first, second], {second.package: "excluded"})
    assert result == [first]


def test_filter_packages_invalid_requirement_matches_nothing():
    assert filter_packages(CANDIDATES, {}, "not-a-version", VD.EQUAL) == []


def test_filter_packages_pins():
    pinned = _candidate("2.1.0", "edge")
    assert filter_packages([pinned], {}) == []
    assert filter_packages([pinned], {}, allow_pin="edge") == [pinned]
    assert filter_packages([pinned], {}, prefer_pin="edge") == [pinned]
    assert filter_packages([pinned], {}, installed=pinned.package) == [pinned]


def test_filter_packages_skips_invalid_package_versions():
    bad = _candidate("1.2.0abc")
    good = _candidate("1.2.0")
    assert filter_packages([bad, good], {}, "1.0", VD.GREATER) == [good]


def test_candidate_delegates_to_package():
    cand = _repo_candidate("foo", "1.0-r0", "http://example.com/repo", 3, origin="bar")
    assert cand.name == "foo"
    assert cand.origin == "bar"
    assert cand.filename() == "foo-1.0-r0.apk"
    assert cand.url() == "http://example.com/repo/foo-1.0-r0.apk"