from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Tuple

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default
FALLBACK_LOG_NAME = "workstation-bootstrap.log"

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"


def _open_log_file(requested: Path) -> Tuple[logging.FileHandler, Path]:
    try:
        requested.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(requested), requested
    except OSError:
        fallback = Path.cwd() / FALLBACK_LOG_NAME
        return logging.FileHandler(fallback), fallback


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Route every probe, command and outcome of a bootstrap run to a log file.

    The file defaults to ~/.local/state/workstation-bootstrap and the console
    mirrors it. An unwritable location falls back to the working directory.

    Only the first call installs handlers; later calls adjust the level and
    return the path already in use.
    """

    root = logging.getLogger()
    root.setLevel(level)
    if getattr(root, "_wsb_log_path", None):
        return root._wsb_log_path  # type: ignore[attr-defined]

    requested = Path(log_path).expanduser()
    file_handler, actual = _open_log_file(requested)

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
    handlers: List[logging.Handler] = [file_handler]
    if also_console:
        handlers.append(logging.StreamHandler())
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)

    root._wsb_log_path = str(actual)  # type: ignore[attr-defined]
    if actual != requested:
        logging.getLogger(__name__).warning("Cannot open %s; logging to %s instead", requested, actual)
    logging.getLogger(__name__).info("Log file: %s", actual)
    return str(actual)
