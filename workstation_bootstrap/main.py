from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from .errors import ProfileError, UnsupportedPlatformError
from .lib.env import PATHS, repo_root
from .lib.hostdetect import detect
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .preflight import reboot_required, upgrade_system
from .profile import load_profile
from .reconciler import Reconciler
from .report_store import save_report
from .self_update import UpdateStatus, self_update

logger = logging.getLogger(__name__)

PROG = "workstation-bootstrap"

USAGE = f"""\
Usage:
    {PROG} install [options]    check/install everything

Options for install:
    --profile PATH       resource profile (default: {PATHS.profile_default})
    --log PATH           log file (default: {DEFAULT_LOG_PATH})
    --report PATH        also write the plan report (.json or .yaml)
    --dry-run            probe only; report what would change
    --upgrade            upgrade installed packages before reconciling
    --no-self-update     do not pull a newer version of this tool
    -v, --verbose        debug logging
"""


class UsageError(Exception):
    pass


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    p = _Parser(prog=PROG, add_help=False)
    sub = p.add_subparsers(dest="command")

    sp = sub.add_parser("install", add_help=False)
    sp.add_argument("--profile", default=PATHS.profile_default)
    sp.add_argument("--log", default=DEFAULT_LOG_PATH)
    sp.add_argument("--report", default=None)
    sp.add_argument("--dry-run", action="store_true")
    sp.add_argument("--upgrade", action="store_true")
    sp.add_argument("--no-self-update", action="store_true")
    sp.add_argument("-v", "--verbose", action="store_true")
    return p


def is_superuser() -> bool:
    return os.geteuid() == 0


def reexec(argv: List[str]) -> None:
    """Replace the current process with a fresh run of the updated tool."""
    logger.info("Restarting with the updated version...")
    os.execv(sys.executable, [sys.executable, "-m", "workstation_bootstrap", *argv])


def run_install(args: argparse.Namespace, argv: List[str]) -> int:
    configure_logging(log_path=args.log, level=logging.DEBUG if args.verbose else logging.INFO)

    if not (args.no_self_update or args.dry_run):
        if self_update(repo_root()) is UpdateStatus.UPDATED:
            reexec(argv)
            return 0

    try:
        platform = detect()
    except UnsupportedPlatformError as e:
        logger.error("%s", e)
        return 1

    try:
        descriptors = load_profile(args.profile)
    except ProfileError as e:
        logger.error("Invalid profile: %s", e)
        return 1

    if args.upgrade:
        upgrade_system(platform, dry_run=args.dry_run)
    reboot_required(platform)

    report = Reconciler(dry_run=args.dry_run).run(descriptors, platform)

    print(report.render())
    if args.report:
        try:
            save_report(args.report, report)
        except OSError as e:
            logger.error("Cannot write plan report to %s: %s", args.report, e)
            return 1

    if report.succeeded:
        logger.info("Great Success! Re-start to make sure it's all good.")
        return 0
    logger.error("%d resource(s) not satisfied; investigate and re-run", len(report.failed))
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    if is_superuser():
        print("Refusing to run as root; privileged steps use sudo on their own.", file=sys.stderr)
        return 1

    try:
        args = build_parser().parse_args(argv)
    except UsageError:
        print(USAGE)
        return 1
    if args.command != "install":
        print(USAGE)
        return 1

    try:
        return run_install(args, argv)
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
