from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

from .errors import ApplyError, PostApplyVerificationMismatch, ProbeError
from .lib.hostdetect import Platform
from .report import Outcome, PlanReport, PlanReportBuilder
from .resources import ResourceDescriptor, ResourceKind, validate_descriptors

logger = logging.getLogger(__name__)


class Reconciler:
    """Check-then-act over an ordered list of resource descriptors.

    Descriptors are evaluated sequentially in declaration order. Per-resource
    errors become `failed` outcomes; the run always continues to the end.
    Two reconcilers must not run against the same host concurrently.
    """

    def __init__(self, kinds: Optional[Mapping[str, ResourceKind]] = None, *, dry_run: bool = False) -> None:
        if kinds is None:
            from .kinds import KINDS

            kinds = KINDS
        self.kinds = dict(kinds)
        self.dry_run = dry_run

    def run(self, descriptors: Sequence[ResourceDescriptor], platform: Platform) -> PlanReport:
        validate_descriptors(descriptors, self.kinds.keys())

        builder = PlanReportBuilder(dry_run=self.dry_run)
        for descriptor in descriptors:
            outcome = builder.record(self.reconcile_one(descriptor, platform))
            log = logger.error if outcome.error_type else logger.info
            log("%s", outcome.render())

        report = builder.finish()
        logger.info("%s", report.summary())
        return report

    def reconcile_one(self, descriptor: ResourceDescriptor, platform: Platform) -> Outcome:
        d = descriptor
        if not d.applies_to(platform):
            return Outcome.skipped(d.key, d.kind, "not applicable", label=d.label)

        handler = self.kinds[d.kind]
        logger.debug("Checking %s:%s", d.kind, d.key)

        try:
            desired = handler.desired(d)
            current = handler.probe(d, platform)
        except ProbeError as e:
            return Outcome.failed(d.key, d.kind, e, label=d.label)
        except Exception as e:
            logger.exception("Probe crashed for %s:%s", d.kind, d.key)
            return Outcome.failed(d.key, d.kind, ProbeError(str(e)), label=d.label)

        if current == desired:
            return Outcome.already_satisfied(d.key, d.kind, label=d.label)

        if self.dry_run:
            return Outcome.skipped(d.key, d.kind, f"dry-run: would apply (current={current!r})", label=d.label)

        logger.info("Applying %s:%s (current=%r desired=%r)", d.kind, d.key, current, desired)
        try:
            result = handler.apply(d, platform)
        except ApplyError as e:
            return Outcome.failed(d.key, d.kind, e, label=d.label)
        except Exception as e:
            logger.exception("Action crashed for %s:%s", d.kind, d.key)
            return Outcome.failed(d.key, d.kind, ApplyError(str(e), cause=e), label=d.label)

        try:
            verify = handler.probe(d, platform)
        except ProbeError as e:
            return Outcome.failed(d.key, d.kind, e, label=d.label)
        except Exception as e:
            logger.exception("Verification probe crashed for %s:%s", d.kind, d.key)
            return Outcome.failed(d.key, d.kind, ProbeError(str(e)), label=d.label)

        if verify != desired:
            mismatch = PostApplyVerificationMismatch(
                f"post-apply verification mismatch (expected {desired!r}, found {verify!r})"
            )
            return Outcome.failed(d.key, d.kind, mismatch, label=d.label)

        return Outcome.applied(d.key, d.kind, result.note if result else "", label=d.label)


def reconcile(
    descriptors: Sequence[ResourceDescriptor],
    platform: Platform,
    *,
    dry_run: bool = False,
    kinds: Optional[Mapping[str, ResourceKind]] = None,
) -> PlanReport:
    return Reconciler(kinds, dry_run=dry_run).run(descriptors, platform)
