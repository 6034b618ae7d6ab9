from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Sequence

from .errors import CommandError
from .lib.command import have, run_cmd
from .lib.env import PATHS
from .lib.hostdetect import Platform

logger = logging.getLogger(__name__)

# upgrade commands per package manager, run in order
_UPGRADE: Dict[str, List[Sequence[str]]] = {
    "apt": [
        ["apt-get", "update"],
        ["env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "dist-upgrade", "-y"],
        ["apt-get", "autoremove", "-y"],
    ],
    "dnf": [["dnf", "upgrade", "-y"]],
    "pacman": [["pacman", "-Syu", "--noconfirm"]],
    "zypper": [["zypper", "--non-interactive", "update"]],
    "brew": [["brew", "update"], ["brew", "upgrade"]],
}


def upgrade_system(platform: Platform, *, dry_run: bool = False) -> bool:
    """Bring already-installed packages up to date.

    Not a reconciled resource: it has no desired end state to verify. A
    failure is logged and reported as False, never raised.
    """

    steps = [(list(argv), platform.package_manager != "brew") for argv in _UPGRADE.get(platform.package_manager, [])]
    if platform.is_linux and have("snap"):
        steps.append((["snap", "refresh"], True))

    if not steps:
        logger.warning("No upgrade recipe for package manager %s", platform.package_manager)
        return False

    logger.info("Checking for %s package updates...", platform.package_manager)
    for argv, sudo in steps:
        try:
            run_cmd(argv, sudo=sudo, dry_run=dry_run)
        except (CommandError, OSError) as e:
            logger.warning("System upgrade step failed, continuing: %s", e)
            return False
    logger.info("Packages up to date.")
    return True


def reboot_required(platform: Platform, *, marker: str = PATHS.reboot_required) -> bool:
    if platform.package_manager != "apt":
        return False
    if not Path(marker).exists():
        return False
    logger.warning("*** System restart required *** (%s exists)", marker)
    return True
