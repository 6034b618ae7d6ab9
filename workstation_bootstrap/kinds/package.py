from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Sequence

from ..errors import ProbeError
from ..lib.command import CmdResult
from ..lib.hostdetect import Platform
from ..resources import ApplyResult, ResourceDescriptor
from .base import apply_cmd, probe_cmd

logger = logging.getLogger(__name__)


def _dpkg_installed(r: CmdResult) -> bool:
    return r.ok and "install ok installed" in r.stdout


def _listed(r: CmdResult) -> bool:
    return r.ok and bool(r.stdout.strip())


def _exit_zero(r: CmdResult) -> bool:
    return r.ok


@dataclass(frozen=True)
class PackageManager:
    """How to query and install a single package with one manager."""

    name: str
    query: Sequence[str]
    install: Sequence[str]
    is_installed: Callable[[CmdResult], bool] = _exit_zero
    sudo: bool = True

    def query_argv(self, package: str) -> List[str]:
        return [*self.query, package]

    def install_argv(self, package: str, options: Sequence[str] = ()) -> List[str]:
        return [*self.install, *options, package]


MANAGERS: Dict[str, PackageManager] = {
    "apt": PackageManager(
        name="apt",
        query=["dpkg-query", "-W", "-f=${Status}"],
        install=["env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "install", "-y"],
        is_installed=_dpkg_installed,
    ),
    "snap": PackageManager(name="snap", query=["snap", "list"], install=["snap", "install"]),
    "dnf": PackageManager(name="dnf", query=["rpm", "-q"], install=["dnf", "install", "-y"]),
    "pacman": PackageManager(name="pacman", query=["pacman", "-Q"], install=["pacman", "-S", "--noconfirm", "--needed"]),
    "zypper": PackageManager(name="zypper", query=["rpm", "-q"], install=["zypper", "--non-interactive", "install"]),
    "brew": PackageManager(
        name="brew",
        query=["brew", "list", "--versions"],
        install=["brew", "install"],
        is_installed=_listed,
        sudo=False,
    ),
}


def _options(d: ResourceDescriptor) -> List[str]:
    opts = d.param("options") or []
    if isinstance(opts, str):
        return opts.split()
    return [str(o) for o in opts]


class PackageKind:
    """A package present in the host package database."""

    kind = "package"

    def _manager(self, d: ResourceDescriptor, platform: Platform) -> PackageManager:
        name = str(d.param("manager") or platform.package_manager)
        try:
            return MANAGERS[name]
        except KeyError:
            raise ProbeError(f"Unknown package manager '{name}'") from None

    def desired(self, d: ResourceDescriptor) -> bool:
        return True

    def probe(self, d: ResourceDescriptor, platform: Platform) -> bool:
        pm = self._manager(d, platform)
        r = probe_cmd(pm.query_argv(str(d.require("name"))))
        return pm.is_installed(r)

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        pm = self._manager(d, platform)
        name = str(d.require("name"))
        apply_cmd(pm.install_argv(name, _options(d)), sudo=pm.sudo)
        return ApplyResult(note=f"installed {name} via {pm.name}")


class DebUrlKind:
    """A .deb package installed from a download URL when dpkg lacks it."""

    kind = "deb-url"

    def desired(self, d: ResourceDescriptor) -> bool:
        return True

    def probe(self, d: ResourceDescriptor, platform: Platform) -> bool:
        pm = MANAGERS["apt"]
        return pm.is_installed(probe_cmd(pm.query_argv(str(d.require("name")))))

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        name = str(d.require("name"))
        url = str(d.require("url"))
        with tempfile.TemporaryDirectory(prefix="workstation-bootstrap-") as tmp:
            local = Path(tmp) / f"{name}.deb"
            apply_cmd(["curl", "-fsSL", "-o", str(local), url])
            apply_cmd(MANAGERS["apt"].install_argv(str(local)), sudo=True)
        return ApplyResult(note=f"installed {name} from {url}")
