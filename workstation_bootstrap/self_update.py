from __future__ import annotations

import enum
import logging
from pathlib import Path
from typing import Callable

from .errors import CommandError
from .lib.command import CmdResult, have, run_cmd

logger = logging.getLogger(__name__)


class UpdateStatus(str, enum.Enum):
    NOT_A_CHECKOUT = "not-a-checkout"
    GIT_MISSING = "git-missing"
    LOCAL_CHANGES = "local-changes"
    FETCH_FAILED = "fetch-failed"
    UP_TO_DATE = "up-to-date"
    UPDATED = "updated"


def self_update(
    repo_dir: Path,
    *,
    remote: str = "origin",
    branch: str = "master",
    run: Callable[..., CmdResult] = run_cmd,
    git_available: Callable[[], bool] = lambda: have("git"),
) -> UpdateStatus:
    """Fast-forward the tool's own checkout when upstream has new commits.

    Never fails the run: a dirty tree, missing git or an unreachable remote
    are logged as warnings. The caller re-executes on UPDATED.
    """

    logger.info("Checking for self updates...")
    if not (repo_dir / ".git").exists():
        logger.info("Not running from a git checkout (%s); skipping self-update", repo_dir)
        return UpdateStatus.NOT_A_CHECKOUT
    if not git_available():
        # sys was just copied over to a new machine
        logger.warning("Git not installed, skipping self-update.")
        return UpdateStatus.GIT_MISSING

    git = ["git", "-C", str(repo_dir)]
    try:
        dirty = run([*git, "status", "--porcelain", "--untracked-files=no"])
        if dirty.stdout.strip():
            logger.warning("Local changes detected, skipping self-update.")
            return UpdateStatus.LOCAL_CHANGES

        run([*git, "fetch", remote])
        pending = run([*git, "log", f"HEAD..{remote}/{branch}", "--oneline"])
        if not pending.stdout.strip():
            logger.info("Up to date.")
            return UpdateStatus.UP_TO_DATE

        logger.info("Self updating (%d new commits)...", len(pending.stdout.strip().splitlines()))
        run([*git, "merge", "--ff-only", f"{remote}/{branch}"])
    except (CommandError, OSError) as e:
        logger.warning("Self-update failed, continuing with the current version: %s", e)
        return UpdateStatus.FETCH_FAILED

    logger.info("Self update done.")
    return UpdateStatus.UPDATED
