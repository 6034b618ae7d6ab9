"""
Tests for the reconciler — check-then-act protocol, ordering, isolation.
"""

from __future__ import annotations

import pytest

from tests.support import MemoryKind, mem
from workstation_bootstrap.errors import DuplicateResourceError, ProbeError, UnknownKindError
from workstation_bootstrap.reconciler import Reconciler, reconcile
from workstation_bootstrap.report import OutcomeStatus
from workstation_bootstrap.resources import PlatformMatch, ResourceDescriptor


def statuses(report):
    return [o.status for o in report.outcomes]


class TestCheckThenAct:
    def test_mismatch_is_applied_and_verified(self, ubuntu, memory_kind):
        report = reconcile([mem("a")], ubuntu, kinds={"memory": memory_kind})

        assert statuses(report) == [OutcomeStatus.APPLIED]
        assert memory_kind.world == {"a": "on"}
        assert memory_kind.calls == [("probe", "a"), ("apply", "a"), ("probe", "a")]
        assert report.outcomes[0].note == "set a"

    def test_match_is_left_alone(self, ubuntu, memory_kind):
        memory_kind.world["a"] = "on"
        report = reconcile([mem("a")], ubuntu, kinds={"memory": memory_kind})

        assert statuses(report) == [OutcomeStatus.ALREADY_SATISFIED]
        assert ("apply", "a") not in memory_kind.calls

    def test_second_run_is_idempotent(self, ubuntu, memory_kind):
        memory_kind.world["b"] = "on"
        descriptors = [mem("a"), mem("b"), mem("c", value=3)]

        first = reconcile(descriptors, ubuntu, kinds={"memory": memory_kind})
        second = reconcile(descriptors, ubuntu, kinds={"memory": memory_kind})

        assert statuses(first) == [OutcomeStatus.APPLIED, OutcomeStatus.ALREADY_SATISFIED, OutcomeStatus.APPLIED]
        assert statuses(second) == [OutcomeStatus.ALREADY_SATISFIED] * 3

    def test_broken_action_fails_verification(self, ubuntu, memory_kind):
        memory_kind.broken_apply.add("a")
        report = reconcile([mem("a")], ubuntu, kinds={"memory": memory_kind})

        outcome = report.outcomes[0]
        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.error_type == "PostApplyVerificationMismatch"
        assert "post-apply verification mismatch" in outcome.note
        assert not report.succeeded


class TestOrderingAndFiltering:
    def test_outcomes_follow_declaration_order(self, ubuntu, memory_kind):
        only_fedora = PlatformMatch(distro=("fedora",))
        memory_kind.world["b"] = "on"
        descriptors = [
            mem("c"),
            mem("a", applicability=only_fedora),
            mem("b"),
            mem("d", applicability=only_fedora),
        ]

        report = reconcile(descriptors, ubuntu, kinds={"memory": memory_kind})

        assert [o.key for o in report.outcomes] == ["c", "a", "b", "d"]
        assert statuses(report) == [
            OutcomeStatus.APPLIED,
            OutcomeStatus.SKIPPED,
            OutcomeStatus.ALREADY_SATISFIED,
            OutcomeStatus.SKIPPED,
        ]

    def test_inapplicable_resource_never_probed_or_applied(self, ubuntu, memory_kind):
        report = reconcile(
            [mem("mac-only", applicability=lambda p: p.family == "darwin")],
            ubuntu,
            kinds={"memory": memory_kind},
        )

        assert report.outcomes[0].status is OutcomeStatus.SKIPPED
        assert report.outcomes[0].note == "not applicable"
        assert not memory_kind.touched("mac-only")
        assert report.succeeded


class TestFailureIsolation:
    def test_failed_apply_does_not_stop_the_run(self, ubuntu, memory_kind):
        memory_kind.fail_apply.add("b")
        report = reconcile([mem("a"), mem("b"), mem("c"), mem("d")], ubuntu, kinds={"memory": memory_kind})

        assert statuses(report) == [
            OutcomeStatus.APPLIED,
            OutcomeStatus.FAILED,
            OutcomeStatus.APPLIED,
            OutcomeStatus.APPLIED,
        ]
        assert report.outcomes[1].error_type == "ApplyError"
        assert report.counts()["failed"] == 1
        assert not report.succeeded

    def test_probe_error_is_recorded_as_failed(self, ubuntu):
        class Unreadable(MemoryKind):
            def probe(self, d, platform):
                raise ProbeError("permission denied")

        kind = Unreadable()
        report = reconcile([mem("x"), mem("y")], ubuntu, kinds={"memory": kind})

        assert statuses(report) == [OutcomeStatus.FAILED, OutcomeStatus.FAILED]
        assert report.outcomes[0].error_type == "ProbeError"
        assert ("apply", "x") not in kind.calls

    def test_unexpected_exception_is_contained(self, ubuntu, memory_kind):
        class Crashy(MemoryKind):
            def apply(self, d, platform):
                raise KeyError("boom")

        report = reconcile([mem("a"), mem("b")], ubuntu, kinds={"memory": Crashy()})

        assert statuses(report) == [OutcomeStatus.FAILED, OutcomeStatus.FAILED]
        assert report.outcomes[0].error_type == "ApplyError"


class TestDryRun:
    def test_dry_run_probes_but_never_applies(self, ubuntu, memory_kind):
        memory_kind.world["b"] = "on"
        report = Reconciler({"memory": memory_kind}, dry_run=True).run([mem("a"), mem("b")], ubuntu)

        assert statuses(report) == [OutcomeStatus.SKIPPED, OutcomeStatus.ALREADY_SATISFIED]
        assert report.outcomes[0].note.startswith("dry-run: would apply")
        assert memory_kind.world == {"b": "on"}
        assert report.dry_run


class TestValidation:
    def test_duplicate_key_within_kind_is_rejected(self, ubuntu, memory_kind):
        with pytest.raises(DuplicateResourceError):
            reconcile([mem("a"), mem("a", value="off")], ubuntu, kinds={"memory": memory_kind})
        assert memory_kind.calls == []

    def test_same_key_in_different_kinds_is_allowed(self, ubuntu, memory_kind):
        other = MemoryKind(kind="other")
        descriptors = [mem("a"), ResourceDescriptor(kind="other", key="a", params={"value": 1})]

        report = reconcile(descriptors, ubuntu, kinds={"memory": memory_kind, "other": other})

        assert statuses(report) == [OutcomeStatus.APPLIED, OutcomeStatus.APPLIED]

    def test_unknown_kind_is_rejected(self, ubuntu, memory_kind):
        with pytest.raises(UnknownKindError):
            reconcile([ResourceDescriptor(kind="nope", key="x")], ubuntu, kinds={"memory": memory_kind})
