from __future__ import annotations

from typing import Optional, Sequence


class BootstrapError(RuntimeError):
    """Base class for every error raised by workstation-bootstrap."""


class UnsupportedPlatformError(BootstrapError):
    pass


class ProbeError(BootstrapError):
    """Reading the current state of a resource failed.

    Distinct from "resource absent", which probes report as a normal state.
    """


class ApplyError(BootstrapError):
    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class PostApplyVerificationMismatch(BootstrapError):
    """The action reported success but a second probe still sees a mismatch."""


class CommandError(BootstrapError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        msg = f"Command failed ({returncode}): {' '.join(self.argv)}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class ProfileError(ValueError):
    """The declared resource list is malformed."""


class DuplicateResourceError(ProfileError):
    pass


class UnknownKindError(ProfileError):
    pass
