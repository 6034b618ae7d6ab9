from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Set

import yaml

from .errors import ProfileError
from .kinds import KINDS, NATURAL_KEYS
from .resources import PlatformMatch, ResourceDescriptor, always, validate_descriptors

logger = logging.getLogger(__name__)

_RESERVED = {"kind", "key", "label", "when"}
_PATH_PARAMS = {"path", "dest", "target", "source", "keyring"}


def _load_yaml(p: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except OSError as e:
        raise ProfileError(f"Cannot read profile {p}: {e}") from e
    except yaml.YAMLError as e:
        raise ProfileError(f"Invalid YAML in {p}: {e}") from e
    if not isinstance(data, dict):
        raise ProfileError(f"Profile must be a mapping/dict: {p}")
    return data


def _expand(name: str, value: Any, base_dir: Path) -> Any:
    if name not in _PATH_PARAMS or not isinstance(value, str):
        return value
    expanded = os.path.expandvars(os.path.expanduser(value))
    if name == "source" and not os.path.isabs(expanded):
        # sources ship next to the profile (manifests/files/...)
        return str((base_dir / expanded).resolve())
    return expanded


def descriptor_from_entry(entry: Any, *, base_dir: Path, where: str) -> ResourceDescriptor:
    if not isinstance(entry, dict):
        raise ProfileError(f"{where}: resource entries must be mappings")

    kind = entry.get("kind")
    if not kind:
        raise ProfileError(f"{where}: missing 'kind'")
    kind = str(kind)
    if kind not in KINDS:
        raise ProfileError(f"{where}: unknown kind '{kind}'")

    params = {k: _expand(k, v, base_dir) for k, v in entry.items() if k not in _RESERVED}

    key = entry.get("key")
    if key is None:
        natural = NATURAL_KEYS.get(kind)
        key = params.get(natural) if natural else None
    if key is None or str(key).strip() == "":
        raise ProfileError(f"{where}: cannot determine key for {kind} resource")

    when = entry.get("when")
    if when is None:
        applicability = always
    elif isinstance(when, dict):
        try:
            applicability = PlatformMatch.from_mapping(when)
        except ValueError as e:
            raise ProfileError(f"{where}: {e}") from e
    else:
        raise ProfileError(f"{where}: 'when' must be a mapping")

    return ResourceDescriptor(
        kind=kind,
        key=str(key),
        params=params,
        applicability=applicability,
        label=str(entry.get("label") or ""),
    )


def _collect(p: Path, seen: Set[Path]) -> List[ResourceDescriptor]:
    p = p.resolve()
    if p in seen:
        raise ProfileError(f"Profile include cycle at {p}")
    seen = seen | {p}

    data = _load_yaml(p)
    out: List[ResourceDescriptor] = []

    includes = data.get("include") or []
    if not isinstance(includes, list):
        raise ProfileError(f"{p}: 'include' must be a list")
    for inc in includes:
        out.extend(_collect(p.parent / str(inc), seen))

    entries = data.get("resources") or []
    if not isinstance(entries, list):
        raise ProfileError(f"{p}: 'resources' must be a list")
    for idx, entry in enumerate(entries):
        out.append(descriptor_from_entry(entry, base_dir=p.parent, where=f"{p.name}#{idx}"))
    return out


def load_profile(path: str, *, validate: bool = True) -> List[ResourceDescriptor]:
    """Load the ordered resource list declared by a profile (and its includes)."""

    descriptors = _collect(Path(path).expanduser(), set())
    if validate:
        validate_descriptors(descriptors, KINDS.keys())
    logger.info("Loaded %d resources from %s", len(descriptors), path)
    return descriptors
