import io
import tarfile

import pytest

from apkgraph.util import control_value, uniqify


def _control_tar(files):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    buf.seek(0)
    return buf


PKGINFO = b"pkgname = foo\npkgver = 1.0-r0\ndepend = a\ndepend = b\nbroken=x=y\nnoequals\n"


def test_uniqify_keeps_first_occurrence():
    assert uniqify(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


def test_uniqify_is_idempotent():
    once = uniqify([3, 1, 3, 2, 1])
    assert uniqify(once) == once
    assert len(set(once)) == len(once)


def test_uniqify_empty():
    assert uniqify([]) == []


def test_control_value_collects_wanted_keys():
    tar = _control_tar({".post-install": b"#!/bin/sh\n", ".PKGINFO": PKGINFO})
    result = control_value(tar, "depend", "pkgname")
    assert result == {"pkgname": ["foo"], "depend": ["a", "b"]}


def test_control_value_skips_lines_with_extra_equals():
    tar = _control_tar({".PKGINFO": PKGINFO})
    assert "broken" not in control_value(tar, "broken", "pkgver")
    tar = _control_tar({".PKGINFO": PKGINFO})
    assert control_value(tar, "pkgver") == {"pkgver": ["1.0-r0"]}


def test_control_value_no_wanted_keys():
    tar = _control_tar({".PKGINFO": PKGINFO})
    assert control_value(tar) == {}


def test_control_value_missing_pkginfo():
    tar = _control_tar({".pre-install": b"#!/bin/sh\n"})
    with pytest.raises(FileNotFoundError):
        control_value(tar, "pkgname")