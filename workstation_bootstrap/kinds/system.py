from __future__ import annotations

import getpass
import grp
import logging
import pwd
from pathlib import Path
from typing import List, Optional

from ..errors import ProbeError
from ..lib.hostdetect import Platform
from ..resources import ApplyResult, ResourceDescriptor
from .base import apply_cmd, probe_cmd

logger = logging.getLogger(__name__)

APT_SOURCES = Path("/etc/apt/sources.list")
APT_SOURCES_DIR = Path("/etc/apt/sources.list.d")

_LOCKED = {"L", "LK"}


def _user(d: ResourceDescriptor) -> str:
    return str(d.param("user") or getpass.getuser())


class LoginShellKind:
    """A user's login shell (replaces rewriting /etc/passwd by hand)."""

    kind = "login-shell"

    def desired(self, d: ResourceDescriptor) -> str:
        return str(d.require("shell"))

    def probe(self, d: ResourceDescriptor, platform: Platform) -> str:
        user = _user(d)
        try:
            return pwd.getpwnam(user).pw_shell
        except KeyError:
            raise ProbeError(f"No such user: {user}") from None

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        shell = self.desired(d)
        apply_cmd(["chsh", "-s", shell, _user(d)], sudo=True)
        return ApplyResult(note=f"login shell set to {shell}")


class GroupMemberKind:
    kind = "group-member"

    def desired(self, d: ResourceDescriptor) -> bool:
        return True

    def probe(self, d: ResourceDescriptor, platform: Platform) -> bool:
        group = str(d.require("group"))
        user = _user(d)
        try:
            g = grp.getgrnam(group)
        except KeyError:
            return False
        if user in g.gr_mem:
            return True
        try:
            return pwd.getpwnam(user).pw_gid == g.gr_gid
        except KeyError:
            raise ProbeError(f"No such user: {user}") from None

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        group = str(d.require("group"))
        user = _user(d)
        apply_cmd(["groupadd", "-f", group], sudo=True)
        apply_cmd(["usermod", "-aG", group, user], sudo=True)
        return ApplyResult(note=f"{user} added to {group} (takes effect on next login)")


class ServiceEnabledKind:
    """A systemd unit enabled at boot."""

    kind = "service-enabled"

    def desired(self, d: ResourceDescriptor) -> str:
        return "enabled"

    def probe(self, d: ResourceDescriptor, platform: Platform) -> str:
        r = probe_cmd(["systemctl", "is-enabled", str(d.require("name"))])
        state = r.stdout.strip()
        if not state:
            raise ProbeError(f"systemctl is-enabled gave no answer ({r.returncode}): {r.stderr.strip()}")
        return state

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        apply_cmd(["systemctl", "enable", str(d.require("name"))], sudo=True)
        return ApplyResult()


class AccountLockedKind:
    """A password-locked account (root by default)."""

    kind = "account-locked"

    def desired(self, d: ResourceDescriptor) -> bool:
        return True

    def probe(self, d: ResourceDescriptor, platform: Platform) -> bool:
        user = str(d.param("user") or "root")
        r = probe_cmd(["passwd", "-S", user], sudo=True)
        fields = r.stdout.split()
        if not r.ok or len(fields) < 2:
            raise ProbeError(f"passwd -S {user} failed ({r.returncode}): {r.stderr.strip()}")
        # P/PS: usable password, NP: no password, L/LK: locked (LK on Fedora/RHEL)
        return fields[1] in _LOCKED

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        user = str(d.param("user") or "root")
        apply_cmd(["passwd", "-l", user], sudo=True)
        return ApplyResult(note=f"password for {user} locked")


def _source_files(sources: Path, sources_dir: Path) -> List[Path]:
    files = [sources] if sources.exists() else []
    if sources_dir.is_dir():
        files += sorted(p for p in sources_dir.iterdir() if p.suffix in {".list", ".sources"})
    return files


def _repo_configured(text: str, repo: str) -> bool:
    """Match a ppa: spec or a one-line deb entry against a sources file.

    Both one-line (.list) and deb822 (.sources) files are accepted: a deb
    entry matches when its URI and suite both occur in the file.
    """
    if repo.startswith("ppa:"):
        return repo[len("ppa:"):] in text
    tokens = repo.split()
    uris = [i for i, t in enumerate(tokens) if "://" in t]
    if not uris:
        return repo in text
    i = uris[0]
    uri = tokens[i].rstrip("/")
    suite = tokens[i + 1] if i + 1 < len(tokens) else None
    if uri not in text:
        return False
    return suite is None or suite in text.split()


class AptRepositoryKind:
    """An APT source (deb line or ppa:) configured on the host."""

    kind = "apt-repository"

    def __init__(self, sources: Path = APT_SOURCES, sources_dir: Path = APT_SOURCES_DIR) -> None:
        self.sources = sources
        self.sources_dir = sources_dir

    def desired(self, d: ResourceDescriptor) -> bool:
        return True

    def probe(self, d: ResourceDescriptor, platform: Platform) -> bool:
        repo = str(d.require("repo"))
        try:
            for f in _source_files(self.sources, self.sources_dir):
                lines = f.read_text(encoding="utf-8", errors="ignore").splitlines()
                text = "\n".join(ln for ln in lines if not ln.strip().startswith("#"))
                if _repo_configured(text, repo):
                    return True
        except OSError as e:
            raise ProbeError(f"Cannot read APT sources: {e}") from e
        return False

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        repo = str(d.require("repo"))
        key_url: Optional[str] = d.param("key_url")
        if key_url:
            keyring = str(d.param("keyring") or f"/etc/apt/keyrings/{d.key}.asc")
            apply_cmd(["install", "-m", "0755", "-d", str(Path(keyring).parent)], sudo=True)
            apply_cmd(["curl", "-fsSL", "-o", keyring, key_url], sudo=True)
        apply_cmd(["add-apt-repository", "-y", repo], sudo=True)
        apply_cmd(["apt-get", "update"], sudo=True)
        return ApplyResult(note=f"added {repo}")
