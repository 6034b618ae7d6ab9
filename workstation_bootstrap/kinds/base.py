from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Sequence

from ..errors import ApplyError, CommandError, ProbeError
from ..lib.command import CmdResult, run_cmd

logger = logging.getLogger(__name__)


def expand_path(value: Any) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(str(value))))


def parse_mode(value: Any) -> int:
    """Accept 0o600, 384, "0600" or "600"."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid file mode: {value!r}")
    if isinstance(value, int):
        return value
    txt = str(value).strip().lower()
    if txt.startswith("0o"):
        txt = txt[2:]
    try:
        return int(txt, 8)
    except ValueError as e:
        raise ValueError(f"Invalid file mode: {value!r}") from e


def probe_cmd(argv: Sequence[str], **kwargs: Any) -> CmdResult:
    """Run a read-only query; the exit code is the caller's to interpret."""
    try:
        return run_cmd(argv, check=False, **kwargs)
    except OSError as e:
        raise ProbeError(f"Cannot run {argv[0]}: {e}") from e


def apply_cmd(argv: Sequence[str], **kwargs: Any) -> CmdResult:
    try:
        return run_cmd(argv, check=True, **kwargs)
    except CommandError as e:
        raise ApplyError(str(e), cause=e) from e
    except OSError as e:
        raise ApplyError(f"Cannot run {argv[0]}: {e}", cause=e) from e
