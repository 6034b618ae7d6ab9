"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import pytest

from tests.support import FakeRunner, MemoryKind
from workstation_bootstrap.lib.hostdetect import Platform


@pytest.fixture
def ubuntu() -> Platform:
    return Platform(
        family="linux",
        distro="ubuntu",
        package_manager="apt",
        version="24.04",
        codename="noble",
        like=("debian",),
        arch="amd64",
    )


@pytest.fixture
def fedora() -> Platform:
    return Platform(family="linux", distro="fedora", package_manager="dnf", version="40", arch="amd64")


@pytest.fixture
def memory_kind() -> MemoryKind:
    return MemoryKind()


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> FakeRunner:
    """Replace the command runner used by resource kinds."""
    fake = FakeRunner()
    monkeypatch.setattr("workstation_bootstrap.kinds.base.run_cmd", fake)
    monkeypatch.setattr("workstation_bootstrap.kinds.files.run_cmd", fake)
    return fake
