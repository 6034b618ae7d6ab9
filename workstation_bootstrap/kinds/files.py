from __future__ import annotations

import enum
import logging
import os
import shutil
import stat
from pathlib import Path
from typing import Optional, Tuple

from ..errors import ApplyError, ProbeError
from ..lib.command import run_cmd
from ..lib.hostdetect import Platform
from ..resources import ApplyResult, ResourceDescriptor
from .base import apply_cmd, expand_path, parse_mode, probe_cmd

logger = logging.getLogger(__name__)

FileState = Tuple[bool, Optional[int]]


def _read_text(path: Path) -> Optional[str]:
    """File contents, or None when the file does not exist.

    Undecodable bytes are kept as surrogates rather than raising.
    """
    try:
        return path.read_text(encoding="utf-8", errors="surrogateescape")
    except FileNotFoundError:
        return None


def _mode_of(path: Path) -> Optional[int]:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ProbeError(f"Cannot stat {path}: {e}") from e


def _chmod(path: Path, mode: int, *, sudo: bool) -> None:
    if sudo:
        apply_cmd(["chmod", format(mode, "o"), str(path)], sudo=True)
        return
    try:
        os.chmod(path, mode)
    except OSError as e:
        raise ApplyError(f"chmod {mode:o} {path} failed: {e}", cause=e) from e


def _ensure_parent(path: Path, *, sudo: bool) -> None:
    if path.parent.exists():
        return
    if sudo:
        apply_cmd(["mkdir", "-p", str(path.parent)], sudo=True)
        return
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ApplyError(f"Cannot create {path.parent}: {e}", cause=e) from e


class LineInFileKind:
    """A file contains a given line (exact line match)."""

    kind = "line-in-file"

    def _line(self, d: ResourceDescriptor) -> str:
        line = str(d.require("line"))
        if "\n" in line or "\r" in line:
            raise ValueError(f"line-in-file '{d.key}': 'line' must be a single line")
        return line

    def desired(self, d: ResourceDescriptor) -> bool:
        self._line(d)
        return True

    def probe(self, d: ResourceDescriptor, platform: Platform) -> bool:
        path = expand_path(d.require("path"))
        line = self._line(d)
        try:
            text = _read_text(path)
        except PermissionError as e:
            if not d.param("sudo"):
                raise ProbeError(f"Cannot read {path}: {e}") from e
            return self._probe_privileged(path, line)
        except OSError as e:
            raise ProbeError(f"Cannot read {path}: {e}") from e
        if text is None:
            return False
        return line in text.splitlines()

    def _probe_privileged(self, path: Path, line: str) -> bool:
        r = probe_cmd(["grep", "-qxF", "--", line, str(path)], sudo=True)
        if r.returncode in (0, 1):
            return r.returncode == 0
        raise ProbeError(f"sudo grep {path} failed ({r.returncode}): {r.stderr.strip()}")

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        path = expand_path(d.require("path"))
        line = self._line(d)
        sudo = bool(d.param("sudo"))

        _ensure_parent(path, sudo=sudo)
        if sudo:
            tail = run_cmd(["tail", "-c", "1", str(path)], check=False, sudo=True)
            prefix = "\n" if tail.ok and tail.stdout and not tail.stdout.endswith("\n") else ""
            apply_cmd(["tee", "-a", str(path)], sudo=True, input_text=prefix + line + "\n")
        else:
            try:
                existing = _read_text(path) or ""
                prefix = "\n" if existing and not existing.endswith("\n") else ""
                with path.open("a", encoding="utf-8") as f:
                    f.write(prefix + line + "\n")
            except OSError as e:
                raise ApplyError(f"Cannot append to {path}: {e}", cause=e) from e
        return ApplyResult(note=f"appended line to {path}")


class PermissionKind:
    """A path carries exact permission bits."""

    kind = "permission"

    def desired(self, d: ResourceDescriptor) -> int:
        return parse_mode(d.require("mode"))

    def probe(self, d: ResourceDescriptor, platform: Platform) -> Optional[int]:
        return _mode_of(expand_path(d.require("path")))

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        path = expand_path(d.require("path"))
        mode = self.desired(d)
        if not os.path.lexists(path):
            raise ApplyError(f"{path} does not exist")
        _chmod(path, mode, sudo=bool(d.param("sudo")))
        return ApplyResult(note=f"mode set to {mode:04o}")


class LinkState(str, enum.Enum):
    MISSING = "missing"
    WRONG_TARGET = "wrong-target"
    CORRECT = "correct"


class SymlinkKind:
    kind = "symlink"

    def _target(self, d: ResourceDescriptor) -> str:
        return str(expand_path(d.require("target")))

    def desired(self, d: ResourceDescriptor) -> LinkState:
        return LinkState.CORRECT

    def probe(self, d: ResourceDescriptor, platform: Platform) -> LinkState:
        path = expand_path(d.require("path"))
        try:
            if path.is_symlink():
                return LinkState.CORRECT if os.readlink(path) == self._target(d) else LinkState.WRONG_TARGET
            if os.path.lexists(path):
                return LinkState.WRONG_TARGET
        except OSError as e:
            raise ProbeError(f"Cannot inspect {path}: {e}") from e
        return LinkState.MISSING

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        path = expand_path(d.require("path"))
        target = self._target(d)
        try:
            if path.is_symlink() or path.is_file():
                path.unlink()
            elif path.is_dir():
                raise ApplyError(f"{path} is a directory; refusing to replace it with a symlink")
            path.parent.mkdir(parents=True, exist_ok=True)
            os.symlink(target, path)
        except OSError as e:
            raise ApplyError(f"Cannot link {path} -> {target}: {e}", cause=e) from e
        return ApplyResult(note=f"{path} -> {target}")


class _PresentFileKind:
    """Shared state model: (exists, mode) where mode is tracked only when requested."""

    kind = ""

    def _wanted_mode(self, d: ResourceDescriptor) -> Optional[int]:
        raw = d.param("mode")
        return None if raw is None else parse_mode(raw)

    def desired(self, d: ResourceDescriptor) -> FileState:
        return True, self._wanted_mode(d)

    def probe(self, d: ResourceDescriptor, platform: Platform) -> FileState:
        dest = expand_path(d.require("dest"))
        mode = _mode_of(dest)
        if mode is None:
            return False, None
        return True, (mode if self._wanted_mode(d) is not None else None)

    def _create(self, d: ResourceDescriptor, dest: Path, *, sudo: bool) -> None:
        raise NotImplementedError

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        dest = expand_path(d.require("dest"))
        sudo = bool(d.param("sudo"))
        notes = []
        if not dest.exists():
            _ensure_parent(dest, sudo=sudo)
            self._create(d, dest, sudo=sudo)
            notes.append(f"created {dest}")
        mode = self._wanted_mode(d)
        if mode is not None:
            _chmod(dest, mode, sudo=sudo)
            notes.append(f"mode {mode:04o}")
        return ApplyResult(note=", ".join(notes))


class FileKind(_PresentFileKind):
    """A file copied from the profile's files/ directory when missing."""

    kind = "file"

    def _create(self, d: ResourceDescriptor, dest: Path, *, sudo: bool) -> None:
        source = expand_path(d.require("source"))
        if not source.is_file():
            raise ApplyError(f"Source file missing: {source}")
        if sudo:
            apply_cmd(["cp", "-f", str(source), str(dest)], sudo=True)
            return
        try:
            shutil.copy2(source, dest)
        except OSError as e:
            raise ApplyError(f"Cannot copy {source} -> {dest}: {e}", cause=e) from e


class DownloadKind(_PresentFileKind):
    """A file fetched from a URL when missing (e.g. a standalone binary).

    curl writes to a sibling `.part` file; `dest` appears only after a complete
    transfer.
    """

    kind = "download"

    def _create(self, d: ResourceDescriptor, dest: Path, *, sudo: bool) -> None:
        part = dest.with_name(f".{dest.name}.part")
        try:
            apply_cmd(["curl", "-fsSL", "-o", str(part), str(d.require("url"))], sudo=sudo)
            if sudo:
                apply_cmd(["mv", "-f", str(part), str(dest)], sudo=True)
            else:
                try:
                    os.replace(part, dest)
                except OSError as e:
                    raise ApplyError(f"Cannot move {part} -> {dest}: {e}", cause=e) from e
        except ApplyError:
            self._discard(part, sudo=sudo)
            raise

    def _discard(self, part: Path, *, sudo: bool) -> None:
        if sudo:
            run_cmd(["rm", "-f", str(part)], check=False, sudo=True)
            return
        try:
            part.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Cannot remove partial download %s: %s", part, e)
