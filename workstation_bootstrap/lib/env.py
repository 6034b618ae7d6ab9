from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


def repo_root() -> Path:
    # workstation_bootstrap/lib/env.py -> workstation_bootstrap -> repo root
    return Path(__file__).resolve().parents[2]


@dataclass(frozen=True)
class Paths:
    profile_default: str = str(repo_root() / "manifests" / "workstation.yaml")
    log_default: str = "~/.local/state/workstation-bootstrap/bootstrap.log"
    os_release: str = "/etc/os-release"
    reboot_required: str = "/var/run/reboot-required"


PATHS = Paths()
