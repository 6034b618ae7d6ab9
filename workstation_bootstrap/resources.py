from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Protocol, Sequence, Tuple

from .errors import DuplicateResourceError, UnknownKindError
from .lib.hostdetect import Platform

Applicability = Callable[[Platform], bool]


def always(platform: Platform) -> bool:
    return True


@dataclass(frozen=True)
class PlatformMatch:
    """Declarative applicability predicate (a profile's `when:` block)."""

    family: Optional[Tuple[str, ...]] = None
    distro: Optional[Tuple[str, ...]] = None
    package_manager: Optional[Tuple[str, ...]] = None
    arch: Optional[Tuple[str, ...]] = None

    def __call__(self, platform: Platform) -> bool:
        return platform.matches(
            family=self.family,
            distro=self.distro,
            package_manager=self.package_manager,
            arch=self.arch,
        )

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "PlatformMatch":
        def tup(v: Any) -> Optional[Tuple[str, ...]]:
            if v is None:
                return None
            if isinstance(v, str):
                return (v,)
            return tuple(str(x) for x in v)

        unknown = set(raw) - {"family", "distro", "package_manager", "arch"}
        if unknown:
            raise ValueError(f"Unknown applicability criteria: {', '.join(sorted(unknown))}")
        return cls(
            family=tup(raw.get("family")),
            distro=tup(raw.get("distro")),
            package_manager=tup(raw.get("package_manager")),
            arch=tup(raw.get("arch")),
        )


@dataclass(frozen=True)
class ResourceDescriptor:
    """One unit of desired host state.

    Constructed once before a run and never mutated; `params` is exposed as a
    read-only mapping.
    """

    kind: str
    key: str
    params: Mapping[str, Any] = field(default_factory=dict)
    applicability: Applicability = always
    label: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        if not self.label:
            object.__setattr__(self, "label", self.key)

    def applies_to(self, platform: Platform) -> bool:
        return bool(self.applicability(platform))

    def param(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)

    def require(self, name: str) -> Any:
        value = self.params.get(name)
        if value is None or value == "":
            raise ValueError(f"{self.kind} '{self.key}': missing required param '{name}'")
        return value


@dataclass(frozen=True)
class ApplyResult:
    note: str = ""


class ResourceKind(Protocol):
    """Probe + Action pair for one resource kind.

    probe() must not mutate host state; apply() performs the mutation without
    re-checking (the reconciler guards it with probes before and after).
    """

    kind: str

    def probe(self, descriptor: ResourceDescriptor, platform: Platform) -> Any:
        ...

    def desired(self, descriptor: ResourceDescriptor) -> Any:
        ...

    def apply(self, descriptor: ResourceDescriptor, platform: Platform) -> ApplyResult:
        ...


def validate_descriptors(
    descriptors: Sequence[ResourceDescriptor],
    known_kinds: Optional[Iterable[str]] = None,
) -> None:
    """Reject duplicate (kind, key) pairs and kinds with no handler."""

    kinds = set(known_kinds) if known_kinds is not None else None
    seen: Dict[Tuple[str, str], int] = {}
    for idx, d in enumerate(descriptors):
        if kinds is not None and d.kind not in kinds:
            raise UnknownKindError(f"Resource #{idx} '{d.key}': unknown kind '{d.kind}'")
        ident = (d.kind, d.key)
        if ident in seen:
            raise DuplicateResourceError(
                f"Duplicate resource {d.kind}:{d.key} (entries #{seen[ident]} and #{idx})"
            )
        seen[ident] = idx
