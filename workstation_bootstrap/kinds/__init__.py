from __future__ import annotations

from typing import Dict

from ..errors import UnknownKindError
from ..resources import ResourceKind
from .files import DownloadKind, FileKind, LineInFileKind, LinkState, PermissionKind, SymlinkKind
from .git import GitCloneKind, GitConfigKind
from .package import DebUrlKind, PackageKind
from .system import AccountLockedKind, AptRepositoryKind, GroupMemberKind, LoginShellKind, ServiceEnabledKind

# Param naming the natural key of each kind, used when a profile entry omits `key`.
NATURAL_KEYS = {
    "package": "name",
    "deb-url": "name",
    "line-in-file": "path",
    "permission": "path",
    "symlink": "path",
    "file": "dest",
    "download": "dest",
    "git-clone": "dest",
    "git-config": "name",
    "login-shell": "shell",
    "group-member": "group",
    "service-enabled": "name",
    "account-locked": "user",
    "apt-repository": "repo",
}


def _build() -> Dict[str, ResourceKind]:
    handlers = [
        PackageKind(),
        DebUrlKind(),
        LineInFileKind(),
        PermissionKind(),
        SymlinkKind(),
        FileKind(),
        DownloadKind(),
        GitCloneKind(),
        GitConfigKind(),
        LoginShellKind(),
        GroupMemberKind(),
        ServiceEnabledKind(),
        AccountLockedKind(),
        AptRepositoryKind(),
    ]
    return {h.kind: h for h in handlers}


KINDS: Dict[str, ResourceKind] = _build()


def get_kind(name: str) -> ResourceKind:
    try:
        return KINDS[name]
    except KeyError:
        raise UnknownKindError(f"Unknown resource kind: {name}") from None


__all__ = [
    "KINDS",
    "NATURAL_KEYS",
    "LinkState",
    "get_kind",
]
