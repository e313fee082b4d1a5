"""Tests for what ends up inside the installable package."""

from __future__ import annotations

from pathlib import Path

import pytest

import applifix

_PACKAGE_DIR = Path(applifix.__file__).resolve().parent
_ROOT = _PACKAGE_DIR.parent


def test_no_pytest_modules_inside_package():
    shipped = [
        p.relative_to(_ROOT).as_posix()
        for p in _PACKAGE_DIR.rglob("conftest.py")
        if "tests" not in p.relative_to(_PACKAGE_DIR).parts
    ]
    assert shipped == []


def test_package_discovery_excludes_tests():
    setuptools = pytest.importorskip("setuptools")

    found = setuptools.find_namespace_packages(
        where=str(_ROOT), include=["applifix*"], exclude=["applifix.tests*"],
    )
    assert "applifix" in found
    assert "applifix.services" in found
    assert not [name for name in found if name.startswith("applifix.tests")]
