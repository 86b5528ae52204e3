"""Hierarchical path -> policy resolver.

Search order is shortest-suffix-first: the window starts at the leaf and grows
toward the root, and the first suffix found in the registry wins. Conventions are
expected to have disjoint minimal suffixes; a longer match further up is never
preferred over a shorter one.

If the literal path does not resolve, a synthetic path is built from tag metadata
(``<dir>/<sizetag>[_<aligntag>]<ext>``) together with a synthetic project name, and
the search is retried once.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from posterguard.errors import MalformedLeaf, PolicyNotFound
from posterguard.pathkey import PathKey
from posterguard.registry import DEFAULT_REGISTRY, PolicyRecord, Registry
from posterguard.tags import TagSource, name_from_tags, path_from_tags

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    policy: PolicyRecord
    project_dir: str
    project_name: str
    suffix: str
    size_tag: str
    used_fallback: bool = False


def _try_find_key(path: str | os.PathLike[str], name: str, registry: Registry) -> PathKey:
    key = PathKey.build(path, name)
    while True:
        if key.policy(registry) is not None:
            return key
        if not key.next_level():
            raise PolicyNotFound(f"{os.fspath(path)}: no naming convention matches")


def find_key(
    path: str | os.PathLike[str],
    tags: TagSource | None = None,
    *,
    registry: Registry = DEFAULT_REGISTRY,
) -> tuple[PathKey, bool]:
    """Return ``(key, used_fallback)``; ``tags`` is only read if the literal path misses."""
    try:
        return _try_find_key(path, "", registry), False
    except (PolicyNotFound, MalformedLeaf) as miss:
        if tags is None:
            raise
        literal_miss = miss

    # an invalid source (state() set) surfaces here as NoFallbackSource
    try:
        alt_path = path_from_tags(tags)
        alt_name = name_from_tags(tags)
    except PolicyNotFound as e:
        raise e from literal_miss

    log.debug("%s: literal path unresolved, retrying as %s (name=%s)", os.fspath(path), alt_path, alt_name)
    try:
        return _try_find_key(alt_path, alt_name, registry), True
    except (PolicyNotFound, MalformedLeaf) as e:
        raise PolicyNotFound(f"{os.fspath(path)}: no naming convention matches (fallback {alt_path}: {e})") from e


def resolve(
    path: str | os.PathLike[str],
    tags: TagSource | None = None,
    *,
    registry: Registry = DEFAULT_REGISTRY,
) -> Resolution:
    key, used_fallback = find_key(path, tags, registry=registry)
    policy = key.policy(registry)
    if policy is None:
        raise AssertionError("unreachable: resolved key without policy")
    if not key.project_dir:
        log.warning("%s: suffix %s consumed the whole path (no project directory)", os.fspath(path), key.suffix)
    return Resolution(
        policy=policy,
        project_dir=key.project_dir,
        project_name=key.project_name,
        suffix=key.suffix,
        size_tag=key.size_tag,
        used_fallback=used_fallback,
    )
