from __future__ import annotations

import logging
from typing import Optional

from ..errors import ApplyError, ProbeError
from ..lib.hostdetect import Platform
from ..resources import ApplyResult, ResourceDescriptor
from .base import apply_cmd, expand_path, probe_cmd

logger = logging.getLogger(__name__)


class GitCloneKind:
    """A repository checked out at a destination directory."""

    kind = "git-clone"

    def desired(self, d: ResourceDescriptor) -> bool:
        return True

    def probe(self, d: ResourceDescriptor, platform: Platform) -> bool:
        dest = expand_path(d.require("dest"))
        try:
            return (dest / ".git").exists()
        except OSError as e:
            raise ProbeError(f"Cannot inspect {dest}: {e}") from e

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        dest = expand_path(d.require("dest"))
        url = str(d.require("url"))
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ApplyError(f"Cannot create {dest.parent}: {e}", cause=e) from e

        argv = ["git", "clone"]
        branch = d.param("branch")
        if branch:
            argv += ["--branch", str(branch)]
        apply_cmd([*argv, url, str(dest)])
        return ApplyResult(note=f"cloned {url}")


class GitConfigKind:
    """A global git configuration value."""

    kind = "git-config"

    def desired(self, d: ResourceDescriptor) -> str:
        return str(d.require("value"))

    def probe(self, d: ResourceDescriptor, platform: Platform) -> Optional[str]:
        r = probe_cmd(["git", "config", "--global", "--get", str(d.require("name"))])
        # exit 1: key not set
        if r.returncode == 1:
            return None
        if not r.ok:
            raise ProbeError(f"git config failed ({r.returncode}): {r.stderr.strip()}")
        return r.stdout.strip()

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        name = str(d.require("name"))
        apply_cmd(["git", "config", "--global", name, self.desired(d)])
        return ApplyResult(note=f"{name} set")
