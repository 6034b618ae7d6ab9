"""Test doubles: an in-memory resource kind and a fake command runner."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from workstation_bootstrap.errors import ApplyError, CommandError
from workstation_bootstrap.lib.command import CmdResult
from workstation_bootstrap.lib.hostdetect import Platform
from workstation_bootstrap.resources import ApplyResult, ResourceDescriptor


@dataclass
class MemoryKind:
    """Resource kind over a dict: the desired value is params['value']."""

    kind: str = "memory"
    world: Dict[str, Any] = field(default_factory=dict)
    calls: List[tuple] = field(default_factory=list)
    fail_apply: set = field(default_factory=set)
    broken_apply: set = field(default_factory=set)

    def desired(self, d: ResourceDescriptor) -> Any:
        return d.params["value"]

    def probe(self, d: ResourceDescriptor, platform: Platform) -> Any:
        self.calls.append(("probe", d.key))
        return self.world.get(d.key)

    def apply(self, d: ResourceDescriptor, platform: Platform) -> ApplyResult:
        self.calls.append(("apply", d.key))
        if d.key in self.fail_apply:
            raise ApplyError(f"cannot set {d.key}")
        if d.key not in self.broken_apply:
            self.world[d.key] = d.params["value"]
        return ApplyResult(note=f"set {d.key}")

    def touched(self, key: str) -> bool:
        return any(k == key for _, k in self.calls)


def mem(key: str, value: Any = "on", **kwargs: Any) -> ResourceDescriptor:
    return ResourceDescriptor(kind="memory", key=key, params={"value": value}, **kwargs)


@dataclass
class FakeRunner:
    """Stands in for run_cmd; responses are matched on the argv prefix."""

    responses: List[tuple] = field(default_factory=list)
    calls: List[dict] = field(default_factory=list)

    def on(
        self,
        prefix: Sequence[str],
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        effect: Optional[Callable[[List[str]], None]] = None,
    ) -> "FakeRunner":
        self.responses.append((list(prefix), returncode, stdout, stderr, effect))
        return self

    def __call__(self, argv: Sequence[str], *, check: bool = True, sudo: bool = False, **kwargs: Any) -> CmdResult:
        argv = list(argv)
        self.calls.append({"argv": argv, "sudo": sudo, **kwargs})
        for prefix, rc, out, err, effect in self.responses:
            if argv[: len(prefix)] == prefix:
                if effect is not None:
                    effect(argv)
                if check and rc != 0:
                    raise CommandError(argv, rc, err)
                return CmdResult(argv=argv, returncode=rc, stdout=out, stderr=err)
        return CmdResult(argv=argv, returncode=0, stdout="", stderr="")

    @property
    def argvs(self) -> List[List[str]]:
        return [c["argv"] for c in self.calls]
