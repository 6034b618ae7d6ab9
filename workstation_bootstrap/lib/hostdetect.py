from __future__ import annotations

import logging
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Tuple, Union

from ..errors import UnsupportedPlatformError
from .env import PATHS

logger = logging.getLogger(__name__)

Criterion = Union[str, Sequence[str], None]

# os-release ID (or ID_LIKE entry) -> package manager flavor
_PACKAGE_MANAGERS = {
    "ubuntu": "apt",
    "debian": "apt",
    "linuxmint": "apt",
    "pop": "apt",
    "elementary": "apt",
    "raspbian": "apt",
    "fedora": "dnf",
    "rhel": "dnf",
    "centos": "dnf",
    "rocky": "dnf",
    "almalinux": "dnf",
    "arch": "pacman",
    "manjaro": "pacman",
    "endeavouros": "pacman",
    "opensuse": "zypper",
    "opensuse-leap": "zypper",
    "opensuse-tumbleweed": "zypper",
    "suse": "zypper",
}


def normalize_arch(machine: str) -> str:
    m = machine.lower()
    return {
        "x86_64": "amd64",
        "amd64": "amd64",
        "aarch64": "arm64",
        "arm64": "arm64",
        "armv7l": "armhf",
        "armv6l": "armhf",
    }.get(m, m)


def _as_set(value: Criterion) -> Optional[frozenset]:
    if value is None:
        return None
    if isinstance(value, str):
        return frozenset({value.lower()})
    return frozenset(str(v).lower() for v in value)


@dataclass(frozen=True)
class Platform:
    """Detected host identity. Built once per process, read-only afterwards."""

    family: str
    distro: str
    package_manager: str
    version: str = ""
    codename: str = ""
    like: Tuple[str, ...] = ()
    arch: str = "amd64"

    @property
    def is_linux(self) -> bool:
        return self.family == "linux"

    def matches(
        self,
        *,
        family: Criterion = None,
        distro: Criterion = None,
        package_manager: Criterion = None,
        arch: Criterion = None,
    ) -> bool:
        """True when every given criterion matches; distro also matches ID_LIKE."""
        families = _as_set(family)
        if families is not None and self.family not in families:
            return False
        distros = _as_set(distro)
        if distros is not None and not ({self.distro, *self.like} & distros):
            return False
        managers = _as_set(package_manager)
        if managers is not None and self.package_manager not in managers:
            return False
        arches = _as_set(arch)
        if arches is not None and self.arch not in arches:
            return False
        return True

    def describe(self) -> str:
        parts = [self.distro]
        if self.version:
            parts.append(self.version)
        if self.codename:
            parts.append(f"({self.codename})")
        return f"{' '.join(parts)} {self.arch} [{self.package_manager}]"


def parse_os_release(text: str) -> Dict[str, str]:
    data: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
            value = value[1:-1]
        data[key.strip()] = value
    return data


def _pick_package_manager(candidates: Iterable[str]) -> Optional[str]:
    for c in candidates:
        pm = _PACKAGE_MANAGERS.get(c)
        if pm:
            return pm
    return None


def _detect_linux(os_release_path: str, arch: str) -> Platform:
    p = Path(os_release_path)
    try:
        info = parse_os_release(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise UnsupportedPlatformError(f"Cannot read {p}: {e}") from e

    distro = info.get("ID", "").lower()
    like = tuple(x.lower() for x in info.get("ID_LIKE", "").split() if x)
    if not distro:
        raise UnsupportedPlatformError(f"{p} has no ID field")

    pm = _pick_package_manager((distro, *like))
    if pm is None:
        raise UnsupportedPlatformError(f"Unsupported Linux distribution: {distro} (like: {' '.join(like) or '-'})")

    return Platform(
        family="linux",
        distro=distro,
        package_manager=pm,
        version=info.get("VERSION_ID", ""),
        codename=info.get("VERSION_CODENAME", "") or info.get("UBUNTU_CODENAME", ""),
        like=like,
        arch=arch,
    )


def detect(
    *,
    os_release_path: str = PATHS.os_release,
    system: Optional[str] = None,
    machine: Optional[str] = None,
) -> Platform:
    """Identify the running host.

    Raises UnsupportedPlatformError when no recognised OS signature matches.
    """

    sysname = (system if system is not None else platform.system()).lower()
    arch = normalize_arch(machine if machine is not None else platform.machine())

    if sysname == "linux":
        plat = _detect_linux(os_release_path, arch)
    elif sysname == "darwin":
        plat = Platform(
            family="darwin",
            distro="macos",
            package_manager="brew",
            version=platform.mac_ver()[0],
            arch=arch,
        )
    else:
        raise UnsupportedPlatformError(f"Unsupported operating system: {sysname or 'unknown'}")

    logger.info("Platform: %s", plat.describe())
    return plat
